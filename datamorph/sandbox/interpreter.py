"""Compiler and evaluator for the restricted expression/script language.

The lark parse tree is compiled bottom-up into plain Python closures taking a
``Scope``. Only ``data`` and the builtins in ``values.GLOBALS`` are visible to
user code.
"""

import logging
import re
from typing import Any, Callable, Optional

from lark import Transformer, v_args
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)

from datamorph.errors import ValidationError
from datamorph.sandbox.grammar import get_parser
from datamorph.sandbox.values import (
    GLOBALS,
    UNDEFINED,
    Callable_,
    SandboxError,
    SandboxRangeError,
    SandboxReferenceError,
    SandboxTypeError,
    arithmetic,
    binary_op,
    call_function,
    get_member,
    normalize_number,
    set_member,
    to_number,
    to_property_key,
    to_string,
    truthy,
    type_of,
)

logger = logging.getLogger(__name__)


# ============================================
# Runtime structures
# ============================================

class Scope:
    """Lexical scope with ``const`` tracking."""

    __slots__ = ("vars", "consts", "parent")

    def __init__(self, parent: Optional["Scope"] = None):
        self.vars: dict = {}
        self.consts: set = set()
        self.parent = parent

    def declare(self, name: str, value: Any, const: bool = False) -> None:
        if name in self.vars:
            raise SandboxError(f"SyntaxError: Identifier '{name}' has already been declared")
        self.vars[name] = value
        if const:
            self.consts.add(name)

    def lookup(self, name: str) -> Any:
        scope = self
        while scope is not None:
            if name in scope.vars:
                return scope.vars[name]
            scope = scope.parent
        raise SandboxReferenceError(f"{name} is not defined")

    def assign(self, name: str, value: Any) -> Any:
        scope = self
        while scope is not None:
            if name in scope.vars:
                if name in scope.consts:
                    raise SandboxTypeError("Assignment to constant variable.")
                scope.vars[name] = value
                return value
            scope = scope.parent
        raise SandboxReferenceError(f"{name} is not defined")


def _global_scope() -> Scope:
    scope = Scope()
    for name, value in GLOBALS.items():
        scope.declare(name, value, const=True)
    return scope


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _Spread:
    __slots__ = ("fn",)

    def __init__(self, fn: Callable):
        self.fn = fn


_SHORT = object()


class ArrowFunction(Callable_):
    """A function value created by an arrow expression."""

    def __init__(self, params: list, body: tuple, scope: Scope, name: str = "anonymous"):
        self.params = params
        self.kind, self.body = body
        self.scope = scope
        self.name = name

    def call(self, args: list) -> Any:
        local = Scope(self.scope)
        for i, param in enumerate(self.params):
            local.declare(param, args[i] if i < len(args) else UNDEFINED)
        if self.kind == "expr":
            return self.body(local)
        try:
            self.body(local)
        except _Return as signal:
            return signal.value
        except (_Break, _Continue):
            raise SandboxError("SyntaxError: Illegal break or continue statement")
        return UNDEFINED

    def __repr__(self) -> str:
        return f"<function {self.name}>"


# ============================================
# Literal helpers
# ============================================

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v",
    "0": "\0", "\\": "\\", "'": "'", '"': '"', "`": "`", "$": "$",
}


def _unescape(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != "\\" or i + 1 >= len(text):
            out.append(char)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u" and re.match(r"[0-9a-fA-F]{4}", text[i + 2:i + 6]):
            out.append(chr(int(text[i + 2:i + 6], 16)))
            i += 6
        elif nxt == "x" and re.match(r"[0-9a-fA-F]{2}", text[i + 2:i + 4]):
            out.append(chr(int(text[i + 2:i + 4], 16)))
            i += 4
        elif nxt == "\n":
            i += 2
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def _parse_number(text: str) -> Any:
    if re.search(r"[.eE]", text):
        return normalize_number(float(text))
    return int(text)


def _split_template(body: str) -> list:
    """Split template text into literal strings and ``${...}`` sources."""
    parts: list = []
    literal = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            literal.append(body[i:i + 2])
            i += 2
            continue
        if char == "$" and body[i + 1:i + 2] == "{":
            parts.append(_unescape("".join(literal)))
            literal = []
            end = _closing_brace(body, i + 2)
            parts.append(("expr", body[i + 2:end]))
            i = end + 1
            continue
        literal.append(char)
        i += 1
    parts.append(_unescape("".join(literal)))
    return parts


def _closing_brace(text: str, start: int) -> int:
    depth = 1
    quote = None
    i = start
    while i < len(text):
        char = text[i]
        if quote:
            if char == "\\":
                i += 1
            elif char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ValidationError("Unterminated template expression")


def _iterable(value: Any, label: str = "value") -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return list(value)
    raise SandboxTypeError(f"{label} is not iterable")


def _evaluate_items(items: list, scope: Scope) -> list:
    values = []
    for item in items:
        if isinstance(item, _Spread):
            values.extend(_iterable(item.fn(scope), "spread argument"))
        else:
            values.append(item(scope))
    return values


def _nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


# ============================================
# Compiler
# ============================================

@v_args(inline=True)
class Compiler(Transformer):
    """Turn a parse tree into closures of one ``Scope`` argument."""

    def __init__(self, allow_assignment: bool = True):
        super().__init__()
        self.allow_assignment = allow_assignment

    def _require_assignment(self, what: str) -> None:
        if not self.allow_assignment:
            raise ValidationError(f"{what} is not allowed in expressions")

    # -- entry points --

    def program(self, statements):
        return statements

    def expression(self, expr):
        return expr

    # -- statements --

    def stmt_list(self, *statements):
        def run(scope):
            for statement in statements:
                statement(scope)
        return run

    def block(self, body):
        def run(scope):
            body(Scope(scope))
        return run

    def var_decl(self, decl, *declarators):
        self._require_assignment("Variable declaration")
        const = str(decl) == "const"

        def run(scope):
            for name, init in declarators:
                scope.declare(name, init(scope) if init else UNDEFINED, const=const)
        return run

    def declarator(self, name, init=None):
        if init is not None and getattr(init, "arrow", False):
            init.arrow_name = str(name)
        return str(name), init

    def return_stmt(self, expr=None):
        def run(scope):
            raise _Return(expr(scope) if expr else UNDEFINED)
        return run

    def break_stmt(self):
        def run(scope):
            raise _Break()
        return run

    def continue_stmt(self):
        def run(scope):
            raise _Continue()
        return run

    def expr_stmt(self, expr):
        def run(scope):
            expr(scope)
        return run

    def if_stmt(self, condition, then, otherwise=None):
        def run(scope):
            if truthy(condition(scope)):
                then(scope)
            elif otherwise is not None:
                otherwise(scope)
        return run

    def for_of_stmt(self, decl, name, iterable, body):
        const = str(decl) == "const"
        name = str(name)

        def run(scope):
            items = _iterable(iterable(scope), getattr(iterable, "label", "value"))
            index = 0
            while index < len(items):
                local = Scope(scope)
                local.declare(name, items[index], const=const)
                index += 1
                try:
                    body(local)
                except _Break:
                    break
                except _Continue:
                    continue
        return run

    # -- assignment --

    def assign(self, target, op, value):
        self._require_assignment("Assignment")
        ref = getattr(target, "ref", None)
        if ref is None:
            raise ValidationError("Invalid left-hand side in assignment")
        op = str(op)

        def run(scope):
            if op == "=":
                return _store(ref, scope, value(scope))
            current = _load(ref, scope)
            return _store(ref, scope, arithmetic(op[0], current, value(scope)))
        return run

    def postfix_update(self, target, op):
        self._require_assignment("Update expression")
        ref = getattr(target, "ref", None)
        if ref is None:
            raise ValidationError("Invalid left-hand side expression in postfix operation")
        delta = 1 if str(op) == "++" else -1

        def run(scope):
            old = to_number(_load(ref, scope))
            _store(ref, scope, normalize_number(old + delta))
            return old
        return run

    # -- functions --

    def arrow_fn(self, params, body):
        def run(scope):
            return ArrowFunction(params, body, scope, getattr(run, "arrow_name", "anonymous"))
        run.arrow = True
        return run

    def single_param(self, name):
        return [str(name)]

    def params(self, *names):
        return [str(name) for name in names]

    def block_body(self, block):
        return "block", block

    def expr_body(self, expr):
        return "expr", expr

    # -- operators --

    def ternary(self, condition, then, otherwise):
        def run(scope):
            return then(scope) if truthy(condition(scope)) else otherwise(scope)
        return run

    def nullish_op(self, left, right):
        def run(scope):
            value = left(scope)
            return right(scope) if _nullish(value) else value
        return run

    def or_op(self, left, right):
        def run(scope):
            value = left(scope)
            return value if truthy(value) else right(scope)
        return run

    def and_op(self, left, right):
        def run(scope):
            value = left(scope)
            return right(scope) if truthy(value) else value
        return run

    def binary(self, left, op, right):
        op = str(op)

        def run(scope):
            return binary_op(op, left(scope), right(scope))
        return run

    def not_op(self, operand):
        def run(scope):
            return not truthy(operand(scope))
        return run

    def neg(self, operand):
        def run(scope):
            return -to_number(operand(scope))
        return run

    def pos(self, operand):
        def run(scope):
            return to_number(operand(scope))
        return run

    def typeof_op(self, operand):
        ref = getattr(operand, "ref", None)

        def run(scope):
            try:
                return type_of(operand(scope))
            except SandboxReferenceError:
                # typeof on an undeclared name is not an error
                if ref is not None and ref[0] == "var":
                    return "undefined"
                raise
        return run

    # -- member access and calls --

    def member(self, obj, prop):
        name = str(prop)
        return self._access(obj, lambda scope: name, f"{_label(obj)}.{name}", optional=False)

    def opt_member(self, obj, prop):
        name = str(prop)
        return self._access(obj, lambda scope: name, f"{_label(obj)}?.{name}", optional=True)

    def index(self, obj, key):
        return self._access(obj, key, f"{_label(obj)}[...]", optional=False)

    def _access(self, obj, key, label, optional):
        target = _chain_of(obj)

        def chain(scope):
            container = target(scope)
            if container is _SHORT or (optional and _nullish(container)):
                return _SHORT
            return get_member(container, key(scope))

        run = _from_chain(chain)
        run.label = label
        run.ref = ("member", obj, key)
        return run

    def call(self, fn, args=None):
        args = args or []
        target = _chain_of(fn)
        label = _label(fn)

        def chain(scope):
            callee = target(scope)
            if callee is _SHORT:
                return _SHORT
            return call_function(callee, _evaluate_items(args, scope), label)

        return _from_chain(chain)

    def arguments(self, *items):
        return list(items)

    def elements(self, *items):
        return list(items)

    def spread(self, expr):
        return _Spread(expr)

    # -- literals --

    def number(self, token):
        value = _parse_number(str(token))
        return lambda scope: value

    def string(self, token):
        value = _unescape(str(token)[1:-1])
        return lambda scope: value

    def template(self, token):
        pieces = []
        for part in _split_template(str(token)[1:-1]):
            if isinstance(part, tuple):
                pieces.append(_compile(part[1], "expression", self.allow_assignment))
            elif part:
                pieces.append(part)

        def run(scope):
            return "".join(
                piece if isinstance(piece, str) else to_string(piece(scope))
                for piece in pieces
            )
        return run

    def true(self):
        return lambda scope: True

    def false(self):
        return lambda scope: False

    def null(self):
        return lambda scope: None

    def undefined(self):
        return lambda scope: UNDEFINED

    def var(self, token):
        name = str(token)

        def run(scope):
            return scope.lookup(name)
        run.label = name
        run.ref = ("var", name)
        return run

    def array(self, items=None):
        items = items or []

        def run(scope):
            return _evaluate_items(items, scope)
        return run

    def object(self, properties=None):
        properties = properties or []

        def run(scope):
            result = {}
            for kind, key, value in properties:
                if kind == "spread":
                    source = value(scope)
                    if isinstance(source, dict):
                        result.update(source)
                    elif isinstance(source, (list, str)):
                        result.update({str(i): item for i, item in enumerate(source)})
                else:
                    result[to_property_key(key(scope))] = value(scope)
            return result
        return run

    def properties(self, *props):
        return list(props)

    def prop_pair(self, name, value):
        name = str(name)
        return "pair", (lambda scope: name), value

    def prop_string(self, token, value):
        name = _unescape(str(token)[1:-1])
        return "pair", (lambda scope: name), value

    def prop_number(self, token, value):
        name = to_string(_parse_number(str(token)))
        return "pair", (lambda scope: name), value

    def prop_computed(self, key, value):
        return "pair", key, value

    def prop_shorthand(self, token):
        name = str(token)
        return "pair", (lambda scope: name), (lambda scope: scope.lookup(name))

    def prop_spread(self, value):
        return "spread", None, value


def _label(fn: Callable) -> str:
    return getattr(fn, "label", "expression")


def _chain_of(fn: Callable) -> Callable:
    return getattr(fn, "chain", fn)


def _from_chain(chain: Callable) -> Callable:
    def run(scope):
        value = chain(scope)
        return UNDEFINED if value is _SHORT else value
    run.chain = chain
    return run


def _load(ref: tuple, scope: Scope) -> Any:
    if ref[0] == "var":
        return scope.lookup(ref[1])
    _, obj, key = ref
    return get_member(obj(scope), key(scope))


def _store(ref: tuple, scope: Scope, value: Any) -> Any:
    if ref[0] == "var":
        return scope.assign(ref[1], value)
    _, obj, key = ref
    return set_member(obj(scope), key(scope), value)


# ============================================
# Parsing and public API
# ============================================

def _error_position(error: UnexpectedInput) -> Optional[int]:
    if isinstance(error, UnexpectedCharacters):
        return error.pos_in_stream
    if isinstance(error, UnexpectedToken):
        return getattr(error.token, "start_pos", None)
    return None


def _starts_line(text: str, pos: int) -> bool:
    i = pos
    while i > 0 and text[i - 1] in " \t\r\f\v":
        i -= 1
    return i > 0 and text[i - 1] == "\n"


def _syntax_message(error: UnexpectedInput, source: str, inserted: list) -> str:
    """Describe a parse error in terms of the source as the user wrote it.

    ``inserted`` holds the offsets of semicolons added at line breaks.
    """
    if isinstance(error, UnexpectedEOF):
        return "Unexpected end of input"
    pos = _error_position(error)
    if pos is None:
        return f"Unexpected token '{getattr(error, 'token', '')}'"
    pos -= sum(1 for offset in inserted if offset < pos)
    if pos >= len(source):
        return "Unexpected end of input"

    line = source.count("\n", 0, pos) + 1
    column = pos - (source.rfind("\n", 0, pos) + 1) + 1
    if isinstance(error, UnexpectedToken):
        return f"Unexpected token '{error.token}' at line {line} column {column}"
    return f"Unexpected character '{source[pos]}' at line {line} column {column}"


def _parse(source: str, start: str):
    """Parse ``source`` from the ``start`` rule.

    In programs a line break ends a statement when the next line cannot
    continue it: the parse is retried with a ``;`` before the first token
    that fails at the start of a line.
    """
    parser = get_parser()
    text = source
    inserted = []
    while True:
        try:
            return parser.parse(text, start=start)
        except (UnexpectedCharacters, UnexpectedToken) as e:
            pos = _error_position(e)
            retry = (
                start == "program"
                and pos is not None
                and pos not in inserted
                and _starts_line(text, pos)
            )
            if not retry:
                raise ValidationError(_syntax_message(e, source, inserted)) from e
            text = text[:pos] + ";" + text[pos:]
            inserted.append(pos)
        except UnexpectedInput as e:
            raise ValidationError(_syntax_message(e, source, inserted)) from e


def _compile(source: str, start: str, allow_assignment: bool) -> Callable:
    tree = _parse(source, start)

    try:
        return Compiler(allow_assignment=allow_assignment).transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, ValidationError):
            raise e.orig_exc from None
        raise ValidationError(str(e.orig_exc)) from e.orig_exc


def _guarded(fn: Callable, scope: Scope) -> Any:
    try:
        return fn(scope)
    except SandboxError:
        raise
    except RecursionError as e:
        raise SandboxRangeError("Maximum call stack size exceeded") from e
    except (ArithmeticError, ValueError, TypeError, IndexError, KeyError) as e:
        raise SandboxError(str(e)) from e


class Expression:
    """A compiled expression evaluated against one ``data`` value."""

    def __init__(self, source: str, fn: Callable):
        self.source = source
        self._fn = fn

    def evaluate(self, data: Any) -> Any:
        scope = Scope(_global_scope())
        scope.declare("data", data)
        return _guarded(self._fn, scope)

    def __repr__(self) -> str:
        return f"Expression({self.source!r})"


class Script:
    """A compiled function body receiving ``data``."""

    def __init__(self, source: str, fn: Callable):
        self.source = source
        self._fn = fn

    def run(self, data: Any) -> Any:
        """Execute the body and return the value of its ``return``.

        Returns ``UNDEFINED`` when the body finishes without returning.
        """
        scope = Scope(_global_scope())
        scope.declare("data", data)
        try:
            _guarded(self._fn, scope)
        except _Return as signal:
            return signal.value
        except (_Break, _Continue):
            raise SandboxError("SyntaxError: Illegal break or continue statement")
        return UNDEFINED

    def __repr__(self) -> str:
        return f"Script({len(self.source)} chars)"


def compile_expression(source: str, allow_assignment: bool = False) -> Expression:
    """Compile a single expression.

    Args:
        source: Expression text, e.g. ``data.age >= 18``
        allow_assignment: Permit ``=``/``+=``/``++`` inside the expression

    Raises:
        ValidationError: On syntax errors
    """
    if not isinstance(source, str):
        raise ValidationError(f"Expression must be a string, got {type(source).__name__}")
    return Expression(source, _compile(source, "expression", allow_assignment))


def compile_script(source: str) -> Script:
    """Compile a function body that receives ``data``.

    Raises:
        ValidationError: On syntax errors
    """
    if not isinstance(source, str):
        raise ValidationError(f"Script must be a string, got {type(source).__name__}")
    fn = _compile(source, "program", allow_assignment=True)
    logger.debug("Compiled script", extra={"source_length": len(source)})
    return Script(source, fn)


__all__ = [
    "Expression",
    "Script",
    "Scope",
    "compile_expression",
    "compile_script",
]
