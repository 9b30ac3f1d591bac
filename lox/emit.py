"""Lox AST printer: renders nodes as parenthesized prefix expressions.

Every node type in `lox/ast.py` has a case here; an unknown node raises
TypeError.
"""

from __future__ import annotations

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
from .runtime import stringify


def to_sexpr(node: Expr | Stmt) -> str:
    """Render one expression or statement, e.g. `(+ 1 (group (* 2 3)))`."""
    if isinstance(node, Expr):
        return _expr(node)
    return _stmt(node)


def to_source(stmts: Sequence[Stmt | None]) -> str:
    """Render a parsed program, one top-level statement per line."""
    lines: list[str] = []
    for st in stmts:
        if st is None:
            lines.append("<error>")
        else:
            lines.append(_stmt(st))
    return "\n".join(lines)


def _parens(name: str, *parts: str) -> str:
    if len(parts) == 0:
        return "(" + name + ")"
    return "(" + name + " " + " ".join(parts) + ")"


def _expr(e: Expr) -> str:
    if isinstance(e, Literal):
        if isinstance(e.value, str):
            return '"' + e.value + '"'
        return stringify(e.value)
    if isinstance(e, Grouping):
        return _parens("group", _expr(e.expression))
    if isinstance(e, Unary):
        return _parens(e.operator.value, _expr(e.right))
    if isinstance(e, Binary) or isinstance(e, Logical):
        return _parens(e.operator.value, _expr(e.left), _expr(e.right))
    if isinstance(e, Variable):
        return e.name.value
    if isinstance(e, Assign):
        return _parens("=", e.name.value, _expr(e.value))
    if isinstance(e, Call):
        return _parens("call", _expr(e.callee), *[_expr(a) for a in e.arguments])
    if isinstance(e, Get):
        return _parens(".", _expr(e.object), e.name.value)
    raise TypeError("unhandled expression type: " + type(e).__name__)


def _stmt(s: Stmt) -> str:
    if isinstance(s, Expression):
        return _parens(";", _expr(s.expression))
    if isinstance(s, Print):
        return _parens("print", _expr(s.expression))
    if isinstance(s, Var):
        if s.initializer is None:
            return _parens("var", s.name.value)
        return _parens("var", s.name.value, _expr(s.initializer))
    if isinstance(s, Block):
        return _parens("block", *[_stmt(x) for x in s.statements])
    if isinstance(s, If):
        if s.else_branch is None:
            return _parens("if", _expr(s.condition), _stmt(s.then_branch))
        return _parens(
            "if", _expr(s.condition), _stmt(s.then_branch), _stmt(s.else_branch)
        )
    if isinstance(s, While):
        return _parens("while", _expr(s.condition), _stmt(s.body))
    if isinstance(s, Function):
        params = "(" + " ".join(p.value for p in s.params) + ")"
        return _parens("fun", s.name.value, params, *[_stmt(x) for x in s.body])
    if isinstance(s, Return):
        if s.value is None:
            return _parens("return")
        return _parens("return", _expr(s.value))
    if isinstance(s, Class):
        return _parens("class", s.name.value)
    raise TypeError("unhandled statement type: " + type(s).__name__)
