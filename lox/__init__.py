"""Lox tree-walking interpreter: public API."""

from __future__ import annotations

import logging

from .ast import Stmt
from .emit import to_sexpr, to_source
from .errors import LoxError, LoxRuntimeError
from .parse import ParseError as ParseError, parse_tokens
from .resolve import ResolveError as ResolveError, resolve
from .runtime import Interpreter as Interpreter, RunResult as RunResult, run
from .tokens import ScanError as ScanError, tokenize

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Interpreter",
    "LoxError",
    "LoxRuntimeError",
    "ParseError",
    "ResolveError",
    "RunResult",
    "ScanError",
    "parse",
    "resolve",
    "run",
    "to_sexpr",
    "to_source",
    "tokenize",
]


def parse(source: str) -> tuple[list[Stmt | None], list[ParseError]]:
    """Tokenize and parse Lox source. ScanError propagates; parse errors are returned."""
    return parse_tokens(tokenize(source))
