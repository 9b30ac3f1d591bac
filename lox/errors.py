"""Lox diagnostics: the error taxonomy shared by every pipeline stage."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .tokens import Token


class LoxError(Exception):
    """Base error for Lox scanning, parsing, resolution and evaluation.

    line/col are 0 when the error has no source position ("at end").
    """

    def __init__(self, msg: str, line: int = 0, col: int = 0):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        if line == 0:
            super().__init__(msg + " at end")
        else:
            super().__init__(msg + " at line " + str(line) + " col " + str(col))


# ============================================================
# Runtime faults
# ============================================================


class LoxRuntimeError(LoxError):
    """Raised during evaluation; aborts the current interpret() call."""

    def __init__(self, msg: str, token: Token | None = None):
        self.token: Token | None = token
        if token is None:
            super().__init__(msg)
        else:
            super().__init__(msg, token.line, token.col)


class UndefinedVariable(LoxRuntimeError):
    """Read or assignment of a name bound nowhere in the chain."""

    def __init__(self, name: str, token: Token | None = None):
        self.name: str = name
        super().__init__("Undefined variable '" + name + "'.", token)


class NotCallable(LoxRuntimeError):
    """Call of a value that is not a function or class."""


class ArityMismatch(LoxRuntimeError):
    def __init__(self, expected: int, got: int, token: Token | None = None):
        self.expected: int = expected
        self.got: int = got
        super().__init__(
            "Expected " + str(expected) + " arguments but got " + str(got) + ".",
            token,
        )


class NotAnInstance(LoxRuntimeError):
    """Property access on a value that is not an instance."""


class OperandTypeError(LoxRuntimeError):
    """Operator applied to operands of the wrong runtime type."""


class StackOverflow(LoxRuntimeError):
    """Call nesting exceeded the host stack."""

    def __init__(self, token: Token | None = None):
        super().__init__("Stack overflow.", token)
