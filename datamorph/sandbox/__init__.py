"""Restricted JavaScript-style language for rule expressions and scripts.

Handles:
- Parsing with a lark grammar
- Compiling parse trees to closures
- Value semantics and a fixed set of pure builtins
"""

from .interpreter import Expression, Script, compile_expression, compile_script
from .values import UNDEFINED, SandboxError, to_python, truthy

__all__ = [
    "Expression",
    "Script",
    "compile_expression",
    "compile_script",
    "UNDEFINED",
    "SandboxError",
    "to_python",
    "truthy",
]
