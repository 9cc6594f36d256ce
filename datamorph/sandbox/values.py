"""Value semantics for the sandboxed language.

Values are plain Python objects: ``dict`` for objects, ``list`` for arrays,
``str``, ``int``/``float``, ``bool``, ``None`` for null and the ``UNDEFINED``
sentinel. Only the members defined here are reachable from user code; there
is no attribute access on host objects.
"""

import functools
import json
import math
import re
from typing import Any, Callable, Iterable, Optional

from datamorph.errors import RuntimeTransformError

MAX_SAFE_INTEGER = 2 ** 53 - 1


class _Undefined:
    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class SandboxError(RuntimeTransformError):
    """Error thrown by user code while it runs."""

    kind = "Error"

    def __init__(self, message: str):
        self.detail = message
        super().__init__(f"{self.kind}: {message}")


class SandboxTypeError(SandboxError):
    kind = "TypeError"


class SandboxReferenceError(SandboxError):
    kind = "ReferenceError"


class SandboxRangeError(SandboxError):
    kind = "RangeError"


class Callable_:
    """Base for values that can be called from user code."""

    name = "anonymous"

    def call(self, args: list) -> Any:
        raise NotImplementedError


class NativeFunction(Callable_):
    """A host function exposed to user code."""

    __slots__ = ("fn", "name")

    def __init__(self, fn: Callable, name: str):
        self.fn = fn
        self.name = name

    def call(self, args: list) -> Any:
        return self.fn(*args)

    def __repr__(self) -> str:
        return f"<native {self.name}>"


class Namespace:
    """Read-only container of builtins (``Math``, ``Object``...)."""

    def __init__(self, name: str, members: dict):
        self.name = name
        self.members = members

    def get(self, key: str) -> Any:
        return self.members.get(key, UNDEFINED)


# ============================================
# Conversions
# ============================================

def normalize_number(value: Any) -> Any:
    """Collapse integral floats to ints, the way JSON output shows them."""
    if isinstance(value, float) and value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
        return int(value)
    return value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_callable(value: Any) -> bool:
    return isinstance(value, Callable_)


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if is_callable(value):
        return "function"
    return "object"


def truthy(value: Any) -> bool:
    if value is None or value is UNDEFINED:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    # Arrays and objects are truthy even when empty
    return True


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    # 1e-07 -> 1e-7
    return re.sub(r"e([+-])0*(\d)", r"e\1\2", text)


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join(
            "" if item is None or item is UNDEFINED else to_string(item) for item in value
        )
    if is_callable(value):
        return f"function {value.name}() {{ [native code] }}"
    return "[object Object]"


_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if value is None:
        return 0
    if value is UNDEFINED:
        return math.nan
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if _NUMERIC.match(text):
            return normalize_number(float(text)) if re.search(r"[.eE]", text) else int(text)
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        return math.nan
    if isinstance(value, list):
        if not value:
            return 0
        if len(value) == 1:
            return to_number(to_string(value[0]))
    return math.nan


def to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict)) or is_callable(value):
        return to_string(value)
    return value


def to_property_key(value: Any) -> str:
    if isinstance(value, str):
        return value
    return to_string(value)


def to_integer(value: Any, default: int = 0) -> int:
    if value is UNDEFINED:
        return default
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number):
            return 0
        if math.isinf(number):
            return MAX_SAFE_INTEGER if number > 0 else -MAX_SAFE_INTEGER
        return int(number)
    return number


def to_python(value: Any, _ancestors: frozenset = frozenset()) -> Any:
    """Convert a sandbox value into plain JSON-compatible Python data.

    Raises:
        SandboxTypeError: If a list or object contains itself
    """
    if value is UNDEFINED or is_callable(value) or isinstance(value, Namespace):
        return None
    if not isinstance(value, (list, dict)):
        return value

    if id(value) in _ancestors:
        raise SandboxTypeError("Converting circular structure to JSON")
    ancestors = _ancestors | {id(value)}
    if isinstance(value, list):
        return [to_python(item, ancestors) for item in value]
    return {key: to_python(item, ancestors) for key, item in value.items()}


# ============================================
# Operators
# ============================================

def _same_type(a: Any, b: Any) -> bool:
    return type_of(a) == type_of(b) and (a is None) == (b is None)


def strict_equals(a: Any, b: Any) -> bool:
    if not _same_type(a, b):
        return False
    if is_number(a):
        return a == b
    if isinstance(a, (str, bool)):
        return a == b
    if a is None or a is UNDEFINED:
        return True
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    nullish_a = a is None or a is UNDEFINED
    nullish_b = b is None or b is UNDEFINED
    if nullish_a or nullish_b:
        return nullish_a and nullish_b
    if _same_type(a, b):
        return strict_equals(a, b)
    if isinstance(a, bool):
        return loose_equals(to_number(a), b)
    if isinstance(b, bool):
        return loose_equals(a, to_number(b))
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, (list, dict)) and not isinstance(b, (list, dict)):
        return loose_equals(to_primitive(a), b)
    if isinstance(b, (list, dict)) and not isinstance(a, (list, dict)):
        return loose_equals(a, to_primitive(b))
    return False


def same_value_zero(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b) and math.isnan(a) and math.isnan(b):
        return True
    return strict_equals(a, b)


def add(a: Any, b: Any) -> Any:
    a, b = to_primitive(a), to_primitive(b)
    if isinstance(a, str) or isinstance(b, str):
        return to_string(a) + to_string(b)
    return normalize_number(to_number(a) + to_number(b))


def _divide(a: Any, b: Any) -> Any:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        negative = (a < 0) != (math.copysign(1, b) < 0)
        return -math.inf if negative else math.inf
    return normalize_number(a / b)


def _remainder(a: Any, b: Any) -> Any:
    if b == 0 or math.isnan(a) or math.isnan(b) or math.isinf(a):
        return math.nan
    if isinstance(a, int) and isinstance(b, int):
        result = abs(a) % abs(b)
        return result if a >= 0 else -result
    return normalize_number(math.fmod(a, b))


def arithmetic(op: str, a: Any, b: Any) -> Any:
    if op == "+":
        return add(a, b)
    x, y = to_number(a), to_number(b)
    if op == "-":
        return normalize_number(x - y)
    if op == "*":
        return normalize_number(x * y)
    if op == "/":
        return _divide(x, y)
    if op == "%":
        return _remainder(x, y)
    raise SandboxError(f"Unsupported operator {op}")


def compare(op: str, a: Any, b: Any) -> bool:
    a, b = to_primitive(a), to_primitive(b)
    if not (isinstance(a, str) and isinstance(b, str)):
        a, b = to_number(a), to_number(b)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    if op == ">=":
        return a >= b
    raise SandboxError(f"Unsupported operator {op}")


def binary_op(op: str, a: Any, b: Any) -> Any:
    if op == "===":
        return strict_equals(a, b)
    if op == "!==":
        return not strict_equals(a, b)
    if op == "==":
        return loose_equals(a, b)
    if op == "!=":
        return not loose_equals(a, b)
    if op in ("<", ">", "<=", ">="):
        return compare(op, a, b)
    return arithmetic(op, a, b)


# ============================================
# Calls and member access
# ============================================

def call_function(fn: Any, args: list, label: str = "expression") -> Any:
    if not is_callable(fn):
        raise SandboxTypeError(f"{label} is not a function")
    return fn.call(args)


def _callback(fn: Any, method: str) -> Callable_:
    if not is_callable(fn):
        raise SandboxTypeError(f"{to_string(fn)} is not a function (in {method})")
    return fn


def _array_index(key: Any) -> Optional[int]:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, float) and key.is_integer():
        return int(key)
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None


def get_member(obj: Any, key: Any) -> Any:
    """Read ``obj[key]`` with the language's rules."""
    if obj is None or obj is UNDEFINED:
        raise SandboxTypeError(
            f"Cannot read properties of {to_string(obj)} (reading '{to_property_key(key)}')"
        )

    if isinstance(obj, dict):
        name = to_property_key(key)
        if name in obj:
            return obj[name]
        method = _OBJECT_METHODS.get(name)
        return _bind(obj, name, method) if method else UNDEFINED

    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None:
            return obj[index] if 0 <= index < len(obj) else UNDEFINED
        name = to_property_key(key)
        if name == "length":
            return len(obj)
        method = _ARRAY_METHODS.get(name)
        return _bind(obj, name, method) if method else UNDEFINED

    if isinstance(obj, str):
        index = _array_index(key)
        if index is not None:
            return obj[index] if 0 <= index < len(obj) else UNDEFINED
        name = to_property_key(key)
        if name == "length":
            return len(obj)
        method = _STRING_METHODS.get(name)
        return _bind(obj, name, method) if method else UNDEFINED

    if isinstance(obj, Namespace):
        return obj.get(to_property_key(key))

    name = to_property_key(key)
    if is_number(obj) and name in _NUMBER_METHODS:
        return _bind(obj, name, _NUMBER_METHODS[name])
    if name == "toString":
        return NativeFunction(lambda *args: to_string(obj), "toString")
    return UNDEFINED


def set_member(obj: Any, key: Any, value: Any) -> Any:
    """Write ``obj[key] = value``; only objects and arrays are writable."""
    if obj is None or obj is UNDEFINED:
        raise SandboxTypeError(
            f"Cannot set properties of {to_string(obj)} (setting '{to_property_key(key)}')"
        )
    if isinstance(obj, dict):
        obj[to_property_key(key)] = value
        return value
    if isinstance(obj, list):
        index = _array_index(key)
        if index is None:
            if to_property_key(key) == "length":
                length = to_integer(value)
                del obj[length:]
                obj.extend([UNDEFINED] * (length - len(obj)))
                return value
            raise SandboxTypeError(f"Cannot set property '{key}' on an array")
        if index >= len(obj):
            obj.extend([UNDEFINED] * (index - len(obj) + 1))
        obj[index] = value
        return value
    raise SandboxTypeError(
        f"Cannot set property '{to_property_key(key)}' on {type_of(obj)}"
    )


def _bind(target: Any, name: str, method: Callable) -> NativeFunction:
    return NativeFunction(functools.partial(method, target), name)


# ============================================
# Array methods
# ============================================

def _relative_index(value: Any, length: int, default: int) -> int:
    if value is UNDEFINED:
        return default
    index = to_integer(value)
    if index < 0:
        return max(length + index, 0)
    return min(index, length)


def _iterate(arr: list, fn: Any, method: str) -> Iterable[tuple]:
    callback = _callback(fn, method)
    for index, item in enumerate(list(arr)):
        yield item, callback.call([item, index, arr])


def _filter(arr, fn=UNDEFINED, *_):
    return [item for item, keep in _iterate(arr, fn, "filter") if truthy(keep)]


def _map(arr, fn=UNDEFINED, *_):
    return [result for _, result in _iterate(arr, fn, "map")]


def _for_each(arr, fn=UNDEFINED, *_):
    for _ in _iterate(arr, fn, "forEach"):
        pass
    return UNDEFINED


def _find(arr, fn=UNDEFINED, *_):
    for item, found in _iterate(arr, fn, "find"):
        if truthy(found):
            return item
    return UNDEFINED


def _find_index(arr, fn=UNDEFINED, *_):
    for index, (_, found) in enumerate(_iterate(arr, fn, "findIndex")):
        if truthy(found):
            return index
    return -1


def _some(arr, fn=UNDEFINED, *_):
    return any(truthy(result) for _, result in _iterate(arr, fn, "some"))


def _every(arr, fn=UNDEFINED, *_):
    return all(truthy(result) for _, result in _iterate(arr, fn, "every"))


def _reduce(arr, fn=UNDEFINED, *initial):
    callback = _callback(fn, "reduce")
    items = list(arr)
    if initial:
        accumulator, start = initial[0], 0
    elif items:
        accumulator, start = items[0], 1
    else:
        raise SandboxTypeError("Reduce of empty array with no initial value")
    for index in range(start, len(items)):
        accumulator = callback.call([accumulator, items[index], index, arr])
    return accumulator


def _includes(arr, value=UNDEFINED, *_):
    return any(same_value_zero(item, value) for item in arr)


def _index_of(arr, value=UNDEFINED, *_):
    for index, item in enumerate(arr):
        if strict_equals(item, value):
            return index
    return -1


def _join(arr, separator=UNDEFINED, *_):
    sep = "," if separator is UNDEFINED else to_string(separator)
    return sep.join(
        "" if item is None or item is UNDEFINED else to_string(item) for item in arr
    )


def _slice(seq, start=UNDEFINED, end=UNDEFINED, *_):
    length = len(seq)
    begin = _relative_index(start, length, 0)
    stop = _relative_index(end, length, length)
    return seq[begin:stop] if begin < stop else seq[0:0]


def _concat(arr, *others):
    result = list(arr)
    for other in others:
        if isinstance(other, list):
            result.extend(other)
        else:
            result.append(other)
    return result


def _push(arr, *items):
    arr.extend(items)
    return len(arr)


def _pop(arr, *_):
    return arr.pop() if arr else UNDEFINED


def _shift(arr, *_):
    return arr.pop(0) if arr else UNDEFINED


def _unshift(arr, *items):
    arr[0:0] = items
    return len(arr)


def _reverse(arr, *_):
    arr.reverse()
    return arr


def _sort(arr, fn=UNDEFINED, *_):
    defined = [item for item in arr if item is not UNDEFINED]
    missing = len(arr) - len(defined)
    if fn is UNDEFINED:
        defined.sort(key=to_string)
    else:
        callback = _callback(fn, "sort")

        def order(a, b):
            result = to_number(callback.call([a, b]))
            if math.isnan(result):
                return 0
            return -1 if result < 0 else (1 if result > 0 else 0)

        defined.sort(key=functools.cmp_to_key(order))
    arr[:] = defined + [UNDEFINED] * missing
    return arr


def _flat(arr, depth=UNDEFINED, *_):
    levels = 1 if depth is UNDEFINED else to_integer(depth)

    def flatten(items, level):
        result = []
        for item in items:
            if isinstance(item, list) and level > 0:
                result.extend(flatten(item, level - 1))
            else:
                result.append(item)
        return result

    return flatten(arr, levels)


def _flat_map(arr, fn=UNDEFINED, *_):
    return _flat(_map(arr, fn), 1)


_ARRAY_METHODS = {
    "filter": _filter,
    "map": _map,
    "forEach": _for_each,
    "find": _find,
    "findIndex": _find_index,
    "some": _some,
    "every": _every,
    "reduce": _reduce,
    "includes": _includes,
    "indexOf": _index_of,
    "join": _join,
    "slice": _slice,
    "concat": _concat,
    "push": _push,
    "pop": _pop,
    "shift": _shift,
    "unshift": _unshift,
    "reverse": _reverse,
    "sort": _sort,
    "flat": _flat,
    "flatMap": _flat_map,
    "toString": lambda arr, *_: _join(arr),
}


# ============================================
# String and number methods
# ============================================

def _split(text, separator=UNDEFINED, limit=UNDEFINED, *_):
    if separator is UNDEFINED:
        parts = [text]
    elif to_string(separator) == "":
        parts = list(text)
    else:
        parts = text.split(to_string(separator))
    if limit is not UNDEFINED:
        parts = parts[:max(to_integer(limit), 0)]
    return parts


def _replace(text, pattern=UNDEFINED, replacement=UNDEFINED, *_):
    return text.replace(to_string(pattern), to_string(replacement), 1)


def _replace_all(text, pattern=UNDEFINED, replacement=UNDEFINED, *_):
    return text.replace(to_string(pattern), to_string(replacement))


def _substring(text, start=UNDEFINED, end=UNDEFINED, *_):
    length = len(text)
    begin = min(max(to_integer(start), 0), length)
    stop = length if end is UNDEFINED else min(max(to_integer(end), 0), length)
    if begin > stop:
        begin, stop = stop, begin
    return text[begin:stop]


def _pad(text, length, fill, at_start):
    target = to_integer(length)
    filler = " " if fill is UNDEFINED else to_string(fill)
    missing = target - len(text)
    if missing <= 0 or not filler:
        return text
    padding = (filler * (missing // len(filler) + 1))[:missing]
    return padding + text if at_start else text + padding


def _string_index_of(text, search=UNDEFINED, *_):
    return text.find(to_string(search))


def _repeat(text, count=UNDEFINED, *_):
    times = to_integer(count)
    if times < 0:
        raise SandboxRangeError(f"Invalid count value: {times}")
    return text * times


_STRING_METHODS = {
    "toUpperCase": lambda text, *_: text.upper(),
    "toLowerCase": lambda text, *_: text.lower(),
    "trim": lambda text, *_: text.strip(),
    "trimStart": lambda text, *_: text.lstrip(),
    "trimEnd": lambda text, *_: text.rstrip(),
    "split": _split,
    "includes": lambda text, search=UNDEFINED, *_: to_string(search) in text,
    "startsWith": lambda text, search=UNDEFINED, *_: text.startswith(to_string(search)),
    "endsWith": lambda text, search=UNDEFINED, *_: text.endswith(to_string(search)),
    "indexOf": _string_index_of,
    "lastIndexOf": lambda text, search=UNDEFINED, *_: text.rfind(to_string(search)),
    "replace": _replace,
    "replaceAll": _replace_all,
    "slice": _slice,
    "substring": _substring,
    "padStart": lambda text, length=0, fill=UNDEFINED, *_: _pad(text, length, fill, True),
    "padEnd": lambda text, length=0, fill=UNDEFINED, *_: _pad(text, length, fill, False),
    "charAt": lambda text, index=0, *_: _char_at(text, index),
    "repeat": _repeat,
    "concat": lambda text, *parts: text + "".join(to_string(part) for part in parts),
    "toString": lambda text, *_: text,
}


def _char_at(text, index):
    position = to_integer(index)
    return text[position] if 0 <= position < len(text) else ""


def _to_fixed(number, digits=UNDEFINED, *_):
    places = to_integer(digits)
    if not 0 <= places <= 100:
        raise SandboxRangeError("toFixed() digits argument must be between 0 and 100")
    if math.isnan(number) or math.isinf(number):
        return to_string(number)
    return f"{number:.{places}f}"


_NUMBER_METHODS = {
    "toFixed": _to_fixed,
    "toString": lambda number, *_: to_string(number),
}


# ============================================
# Object methods
# ============================================

_OBJECT_METHODS = {
    "hasOwnProperty": lambda obj, key=UNDEFINED, *_: to_property_key(key) in obj,
}


# ============================================
# Globals
# ============================================

def _require_object(value: Any, fn: str) -> Any:
    if value is None or value is UNDEFINED:
        raise SandboxTypeError(f"Cannot convert undefined or null to object (in {fn})")
    return value


def _keys(obj=UNDEFINED, *_):
    _require_object(obj, "Object.keys")
    if isinstance(obj, dict):
        return list(obj.keys())
    if isinstance(obj, (list, str)):
        return [str(i) for i in range(len(obj))]
    return []


def _values(obj=UNDEFINED, *_):
    _require_object(obj, "Object.values")
    if isinstance(obj, dict):
        return list(obj.values())
    if isinstance(obj, (list, str)):
        return list(obj)
    return []


def _entries(obj=UNDEFINED, *_):
    _require_object(obj, "Object.entries")
    if isinstance(obj, dict):
        return [[key, value] for key, value in obj.items()]
    if isinstance(obj, (list, str)):
        return [[str(i), value] for i, value in enumerate(obj)]
    return []


def _assign(target=UNDEFINED, *sources):
    _require_object(target, "Object.assign")
    if not isinstance(target, dict):
        raise SandboxTypeError("Object.assign target must be an object")
    for source in sources:
        if isinstance(source, dict):
            target.update(source)
    return target


def _from_entries(entries=UNDEFINED, *_):
    if not isinstance(entries, list):
        raise SandboxTypeError("Object.fromEntries requires an array of entries")
    result = {}
    for entry in entries:
        if not isinstance(entry, list):
            raise SandboxTypeError("Iterator value is not an entry object")
        key = entry[0] if entry else UNDEFINED
        value = entry[1] if len(entry) > 1 else UNDEFINED
        result[to_property_key(key)] = value
    return result


def _json_value(value: Any, _ancestors: frozenset = frozenset()) -> Any:
    # JSON.stringify drops undefined/function members and nulls them in arrays
    if isinstance(value, (list, dict)):
        if id(value) in _ancestors:
            raise SandboxTypeError("Converting circular structure to JSON")
        _ancestors = _ancestors | {id(value)}
    if isinstance(value, dict):
        return {
            key: _json_value(item, _ancestors)
            for key, item in value.items()
            if item is not UNDEFINED and not is_callable(item)
        }
    if isinstance(value, list):
        return [
            None if item is UNDEFINED or is_callable(item) else _json_value(item, _ancestors)
            for item in value
        ]
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    return value


def _stringify(value=UNDEFINED, replacer=UNDEFINED, space=UNDEFINED, *_):
    if value is UNDEFINED or is_callable(value):
        return UNDEFINED
    indent = None
    if is_number(space) and space > 0:
        indent = min(to_integer(space), 10)
    elif isinstance(space, str) and space:
        indent = space[:10]
    separators = (",", ": ") if indent is not None else (",", ":")
    return json.dumps(
        _json_value(value), ensure_ascii=False, indent=indent, separators=separators
    )


def _parse_json(text=UNDEFINED, *_):
    try:
        return json.loads(to_string(text))
    except json.JSONDecodeError as e:
        raise SandboxError(f"SyntaxError: {e.msg} in JSON at position {e.pos}")


def _math_unary(fn: Callable) -> Callable:
    def wrapper(value=UNDEFINED, *_):
        number = to_number(value)
        if math.isnan(number):
            return math.nan
        try:
            return normalize_number(fn(number))
        except (ValueError, OverflowError):
            return math.nan
    return wrapper


def _js_round(number):
    if math.isinf(number):
        return number
    return math.floor(number + 0.5)


def _sign(number):
    return (number > 0) - (number < 0)


def _math_extreme(pick: Callable, empty: float) -> Callable:
    def wrapper(*values):
        numbers = [to_number(value) for value in values]
        if any(math.isnan(n) for n in numbers):
            return math.nan
        return pick(numbers) if numbers else empty
    return wrapper


def _pow(base=UNDEFINED, exponent=UNDEFINED, *_):
    try:
        return normalize_number(math.pow(to_number(base), to_number(exponent)))
    except (ValueError, OverflowError):
        return math.nan


def _parse_int(value=UNDEFINED, radix=UNDEFINED, *_):
    text = to_string(value).strip()
    base = 10 if radix is UNDEFINED else to_integer(radix)
    match = re.match(r"^[+-]?[0-9a-zA-Z]+", text)
    if not match or not 2 <= base <= 36:
        return math.nan
    digits = match.group(0)
    sign = -1 if digits.startswith("-") else 1
    digits = digits.lstrip("+-")
    valid = ""
    for char in digits:
        if int(char, 36) >= base:
            break
        valid += char
    return sign * int(valid, base) if valid else math.nan


def _parse_float(value=UNDEFINED, *_):
    match = re.match(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", to_string(value).strip())
    if not match:
        return math.nan
    return normalize_number(float(match.group(0)))


def _is_nan(value=UNDEFINED, *_):
    number = to_number(value)
    return isinstance(number, float) and math.isnan(number)


def _is_finite(value=UNDEFINED, *_):
    number = to_number(value)
    return not (isinstance(number, float) and (math.isnan(number) or math.isinf(number)))


def _native(fn: Callable, name: str) -> NativeFunction:
    return NativeFunction(fn, name)


GLOBALS = {
    "Array": Namespace("Array", {
        "isArray": _native(lambda value=UNDEFINED, *_: isinstance(value, list), "isArray"),
        "from": _native(
            lambda value=UNDEFINED, *_: list(value) if isinstance(value, (list, str)) else [],
            "from",
        ),
    }),
    "Object": Namespace("Object", {
        "keys": _native(_keys, "keys"),
        "values": _native(_values, "values"),
        "entries": _native(_entries, "entries"),
        "assign": _native(_assign, "assign"),
        "fromEntries": _native(_from_entries, "fromEntries"),
    }),
    "JSON": Namespace("JSON", {
        "stringify": _native(_stringify, "stringify"),
        "parse": _native(_parse_json, "parse"),
    }),
    "Math": Namespace("Math", {
        "round": _native(_math_unary(_js_round), "round"),
        "floor": _native(_math_unary(math.floor), "floor"),
        "ceil": _native(_math_unary(math.ceil), "ceil"),
        "abs": _native(_math_unary(abs), "abs"),
        "trunc": _native(_math_unary(math.trunc), "trunc"),
        "sign": _native(_math_unary(_sign), "sign"),
        "sqrt": _native(_math_unary(math.sqrt), "sqrt"),
        "min": _native(_math_extreme(min, math.inf), "min"),
        "max": _native(_math_extreme(max, -math.inf), "max"),
        "pow": _native(_pow, "pow"),
        "PI": math.pi,
        "E": math.e,
    }),
    "Number": _native(lambda value=0, *_: to_number(value), "Number"),
    "String": _native(lambda value="", *_: to_string(value), "String"),
    "Boolean": _native(lambda value=UNDEFINED, *_: truthy(value), "Boolean"),
    "parseInt": _native(_parse_int, "parseInt"),
    "parseFloat": _native(_parse_float, "parseFloat"),
    "isNaN": _native(_is_nan, "isNaN"),
    "isFinite": _native(_is_finite, "isFinite"),
    "NaN": math.nan,
    "Infinity": math.inf,
}
