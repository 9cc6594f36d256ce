"""Scripted transforms: a user-supplied function body receiving ``data``."""

import copy
import logging
from typing import Any

from datamorph.errors import ConversionError, RuntimeTransformError, ValidationError
from datamorph.sandbox import UNDEFINED, Script, to_python
from datamorph.sandbox import compile_script as _compile_sandbox_script

logger = logging.getLogger(__name__)

NO_RETURN = "script did not return a value"


def compile_script(source: str) -> Script:
    """Check and compile a transformation script.

    Raises:
        ValidationError: ``Invalid transformation script: <cause>``
    """
    if not isinstance(source, str) or not source.strip():
        raise ValidationError("Invalid transformation script: script is empty")
    try:
        return _compile_sandbox_script(source)
    except ValidationError as e:
        raise ValidationError(f"Invalid transformation script: {e.message}") from e


def run_script(data: Any, source: str) -> Any:
    """Run a script against a deep copy of ``data``.

    Args:
        data: Parsed JSON data, or raw text for CSV
        source: Function body; its ``return`` value is the result

    Returns:
        The returned value as plain Python data

    Raises:
        ValidationError: If the script does not compile
        RuntimeTransformError: ``Custom transformation failed: <cause>``
    """
    script = compile_script(source)
    try:
        result = script.run(copy.deepcopy(data))
        if result is UNDEFINED:
            raise RuntimeTransformError(NO_RETURN)
        converted = to_python(result)
    except ConversionError as e:
        raise RuntimeTransformError(f"Custom transformation failed: {e.message}") from e

    logger.debug(
        "Script transform finished",
        extra={"result_type": type(result).__name__},
    )
    return converted
