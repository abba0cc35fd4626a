"""SEXP-Lang extension: basic string helpers.

Load with ``sexpln.py -ext ext/strings.py program.sexp``.
"""

from __future__ import annotations

from typing import Any, List

from extensions import ExtensionAPI

SEXP_LANG_EXTENSION_NAME = "strings"
SEXP_LANG_EXTENSION_API_VERSION = 1


def _expect_str(args: List[Any], rule: str) -> str:
    from interpreter import EvalError

    if len(args) != 1:
        raise EvalError(f"{rule} expects 1 arguments, got {len(args)}", rule=rule)
    value = args[0]
    if not isinstance(value, str):
        raise EvalError(f"{rule} expects a string argument", rule=rule)
    return value


def _upper(args, _context):
    return _expect_str(args, "upper").upper()


def _lower(args, _context):
    return _expect_str(args, "lower").lower()


def _length(args, _context):
    from interpreter import EvalError

    if len(args) != 1:
        raise EvalError(f"length expects 1 arguments, got {len(args)}", rule="length")
    value = args[0]
    if isinstance(value, (str, list, dict)):
        return len(value)
    raise EvalError("length expects a string, array or map", rule="length")


def sexp_lang_register(ext: ExtensionAPI) -> None:
    ext.metadata(name=SEXP_LANG_EXTENSION_NAME, version="0.1.0")
    ext.register_function("upper", _upper, doc="Uppercase a string")
    ext.register_function("lower", _lower, doc="Lowercase a string")
    ext.register_function("length", _length, doc="Length of a string, array or map")
