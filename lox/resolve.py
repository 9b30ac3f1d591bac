"""Lox resolver: computes the scope distance of every local variable reference.

One pre-order walk over the parsed statements. Each frame on the scope stack
maps a declared name to whether its initializer has finished. References found
in no frame get no entry and are looked up in the globals at run time.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .ast import (
    Assign,
    Binary,
    Block,
    Call,
    Class,
    Expr,
    Expression,
    Function,
    Get,
    Grouping,
    If,
    Literal,
    Logical,
    Print,
    Return,
    Stmt,
    Unary,
    Var,
    Variable,
    While,
)
from .errors import LoxError
from .tokens import Token

logger = logging.getLogger(__name__)

FN_NONE = "none"
FN_FUNCTION = "function"


class ResolveError(LoxError):
    """Static scoping diagnostic. Recorded, never raised."""


class Resolver:
    def __init__(self) -> None:
        self.errors: list[ResolveError] = []
        self.scopes: list[dict[str, bool]] = []
        self.locals: dict[Expr, int] = {}
        self.current_fn: str = FN_NONE

    def error(self, msg: str, tok: Token) -> None:
        err = ResolveError(msg, tok.line, tok.col)
        logger.debug("resolve error: %s", err)
        self.errors.append(err)

    # ── Scope management ──────────────────────────────────────

    def enter_scope(self) -> None:
        self.scopes.append({})

    def exit_scope(self) -> None:
        self.scopes.pop()

    def declare(self, name: Token) -> None:
        if len(self.scopes) == 0:
            return
        scope = self.scopes[-1]
        if name.value in scope:
            self.error("Already a variable with this name in this scope.", name)
        scope[name.value] = False

    def define(self, name: Token) -> None:
        if len(self.scopes) == 0:
            return
        self.scopes[-1][name.value] = True

    def resolve_local(self, expr: Expr, name: Token) -> None:
        i = len(self.scopes) - 1
        while i >= 0:
            if name.value in self.scopes[i]:
                self.locals[expr] = len(self.scopes) - 1 - i
                return
            i -= 1
        # Not found: global

    # ── Statements ────────────────────────────────────────────

    def resolve(self, stmts: Sequence[Stmt | None]) -> dict[Expr, int]:
        """Resolve a statement list. None placeholders from parse recovery are skipped."""
        for stmt in stmts:
            if stmt is not None:
                self.resolve_stmt(stmt)
        return self.locals

    def resolve_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, Block):
            self.enter_scope()
            self.resolve(stmt.statements)
            self.exit_scope()
        elif isinstance(stmt, Var):
            self.declare(stmt.name)
            if stmt.initializer is not None:
                self.resolve_expr(stmt.initializer)
            self.define(stmt.name)
        elif isinstance(stmt, Function):
            # Bound before the body so the function can call itself
            self.declare(stmt.name)
            self.define(stmt.name)
            self.resolve_function(stmt, FN_FUNCTION)
        elif isinstance(stmt, Class):
            self.declare(stmt.name)
            self.define(stmt.name)
        elif isinstance(stmt, Expression):
            self.resolve_expr(stmt.expression)
        elif isinstance(stmt, Print):
            self.resolve_expr(stmt.expression)
        elif isinstance(stmt, If):
            self.resolve_expr(stmt.condition)
            self.resolve_stmt(stmt.then_branch)
            if stmt.else_branch is not None:
                self.resolve_stmt(stmt.else_branch)
        elif isinstance(stmt, While):
            self.resolve_expr(stmt.condition)
            self.resolve_stmt(stmt.body)
        elif isinstance(stmt, Return):
            if self.current_fn == FN_NONE:
                self.error("Can't return from top-level code.", stmt.keyword)
            if stmt.value is not None:
                self.resolve_expr(stmt.value)
        else:
            raise TypeError("unhandled statement type: " + type(stmt).__name__)

    def resolve_function(self, fn: Function, kind: str) -> None:
        enclosing_fn = self.current_fn
        self.current_fn = kind
        self.enter_scope()
        for param in fn.params:
            self.declare(param)
            self.define(param)
        self.resolve(fn.body)
        self.exit_scope()
        self.current_fn = enclosing_fn

    # ── Expressions ───────────────────────────────────────────

    def resolve_expr(self, expr: Expr) -> None:
        if isinstance(expr, Variable):
            if len(self.scopes) > 0 and self.scopes[-1].get(expr.name.value) is False:
                self.error("Can't read local variable in its own initializer.", expr.name)
            self.resolve_local(expr, expr.name)
        elif isinstance(expr, Assign):
            self.resolve_expr(expr.value)
            self.resolve_local(expr, expr.name)
        elif isinstance(expr, Binary) or isinstance(expr, Logical):
            self.resolve_expr(expr.left)
            self.resolve_expr(expr.right)
        elif isinstance(expr, Unary):
            self.resolve_expr(expr.right)
        elif isinstance(expr, Grouping):
            self.resolve_expr(expr.expression)
        elif isinstance(expr, Call):
            self.resolve_expr(expr.callee)
            for arg in expr.arguments:
                self.resolve_expr(arg)
        elif isinstance(expr, Get):
            self.resolve_expr(expr.object)
        elif isinstance(expr, Literal):
            pass
        else:
            raise TypeError("unhandled expression type: " + type(expr).__name__)


def resolve(stmts: Sequence[Stmt | None]) -> tuple[dict[Expr, int], list[ResolveError]]:
    """Resolve parsed statements. Returns (distances, errors)."""
    resolver = Resolver()
    distances = resolver.resolve(stmts)
    return distances, resolver.errors
