"""Lox AST: parse-time node definitions.

Nodes are frozen and compare by identity (eq=False), so the resolver can key
its side-table on the node object itself.
"""

from __future__ import annotations

from dataclasses import dataclass

from .tokens import Token


# ============================================================
# EXPRESSIONS
# ============================================================


class Expr:
    """Base for all expressions."""


@dataclass(frozen=True, eq=False)
class Literal(Expr):
    """nil, true, false, number, or string."""

    value: object


@dataclass(frozen=True, eq=False)
class Grouping(Expr):
    """( expression )."""

    expression: Expr


@dataclass(frozen=True, eq=False)
class Unary(Expr):
    """op right, op in '!' '-'."""

    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Binary(Expr):
    """left op right."""

    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Logical(Expr):
    """left and/or right, short-circuiting."""

    left: Expr
    operator: Token
    right: Expr


@dataclass(frozen=True, eq=False)
class Variable(Expr):
    """Variable reference."""

    name: Token


@dataclass(frozen=True, eq=False)
class Assign(Expr):
    """name = value."""

    name: Token
    value: Expr


@dataclass(frozen=True, eq=False)
class Call(Expr):
    """callee(arguments). paren is the closing ')' for error positions."""

    callee: Expr
    paren: Token
    arguments: tuple[Expr, ...]


@dataclass(frozen=True, eq=False)
class Get(Expr):
    """object.name."""

    object: Expr
    name: Token


# ============================================================
# STATEMENTS
# ============================================================


class Stmt:
    """Base for all statements."""


@dataclass(frozen=True, eq=False)
class Expression(Stmt):
    """Bare expression as statement."""

    expression: Expr


@dataclass(frozen=True, eq=False)
class Print(Stmt):
    """print expression."""

    expression: Expr


@dataclass(frozen=True, eq=False)
class Var(Stmt):
    """var name = initializer?."""

    name: Token
    initializer: Expr | None


@dataclass(frozen=True, eq=False)
class Block(Stmt):
    """{ statements }."""

    statements: tuple[Stmt, ...]


@dataclass(frozen=True, eq=False)
class If(Stmt):
    """if (condition) then_branch else else_branch?."""

    condition: Expr
    then_branch: Stmt
    else_branch: Stmt | None


@dataclass(frozen=True, eq=False)
class While(Stmt):
    """while (condition) body. Also the target of for-loop desugaring."""

    condition: Expr
    body: Stmt


@dataclass(frozen=True, eq=False)
class Function(Stmt):
    """fun name(params) { body }."""

    name: Token
    params: tuple[Token, ...]
    body: tuple[Stmt, ...]


@dataclass(frozen=True, eq=False)
class Return(Stmt):
    """return value?."""

    keyword: Token
    value: Expr | None


@dataclass(frozen=True, eq=False)
class Class(Stmt):
    """class Name { }."""

    name: Token
