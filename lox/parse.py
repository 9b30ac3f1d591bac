"""Lox parser: recursive descent, one method per grammar production."""

from __future__ import annotations

import logging

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
from .tokens import TK_IDENT, TK_NUMBER, TK_OP, TK_STRING, Token

logger = logging.getLogger(__name__)

MAX_ARGS = 255

# Tokens that plausibly begin a new statement; recovery stops in front of them
SYNC_KEYWORDS: set[str] = {
    "class",
    "fun",
    "var",
    "for",
    "if",
    "while",
    "print",
    "return",
}


class ParseError(LoxError):
    """Parse error with location info. line 0 means the input ran out."""


class Parser:
    """Recursive descent parser for Lox with panic-mode recovery."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.errors: list[ParseError] = []

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token | None:
        if self.pos >= len(self.tokens):
            return None
        return self.tokens[self.pos]

    def previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def advance(self) -> Token:
        if not self.at_end():
            self.pos += 1
        return self.previous()

    def at(self, value: str) -> bool:
        """True if the current token is the keyword or operator `value`."""
        tok = self.current()
        if tok is None:
            return False
        return tok.type == value or (tok.type == TK_OP and tok.value == value)

    def match(self, *values: str) -> bool:
        for value in values:
            if self.at(value):
                self.advance()
                return True
        return False

    def expect(self, value: str, msg: str) -> Token:
        if self.at(value):
            return self.advance()
        raise self.error(msg)

    def expect_ident(self, msg: str) -> Token:
        tok = self.current()
        if tok is not None and tok.type == TK_IDENT:
            return self.advance()
        raise self.error(msg)

    def error(self, msg: str, tok: Token | None = None) -> ParseError:
        if tok is None:
            tok = self.current()
        if tok is None:
            return ParseError(msg)
        return ParseError(msg, tok.line, tok.col)

    def report(self, err: ParseError) -> None:
        logger.debug("parse error: %s", err)
        self.errors.append(err)

    def skip_semicolon(self) -> None:
        """Statement terminators are optional: consume one if present."""
        self.match(";")

    def synchronize(self) -> None:
        """Discard tokens until the start of the next plausible statement."""
        self.advance()
        while not self.at_end():
            prev = self.previous()
            if prev.type == TK_OP and prev.value == ";":
                return
            tok = self.current()
            if tok is not None and tok.type in SYNC_KEYWORDS:
                return
            self.advance()

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> list[Stmt | None]:
        """Parse every declaration. None marks a statement lost to recovery."""
        stmts: list[Stmt | None] = []
        while not self.at_end():
            stmts.append(self.parse_decl())
        return stmts

    def parse_decl(self) -> Stmt | None:
        try:
            if self.match("class"):
                return self.parse_class_decl()
            if self.match("fun"):
                return self.parse_fn_decl("function")
            if self.match("var"):
                return self.parse_var_decl()
            return self.parse_stmt()
        except ParseError as e:
            self.report(e)
            self.synchronize()
            return None

    def parse_class_decl(self) -> Class:
        name = self.expect_ident("Expect class name.")
        self.expect("{", "Expect '{' before class body.")
        self.expect("}", "Expect '}' after class body.")
        return Class(name)

    def parse_fn_decl(self, kind: str) -> Function:
        name = self.expect_ident("Expect " + kind + " name.")
        self.expect("(", "Expect '(' after " + kind + " name.")
        params: list[Token] = []
        if not self.at(")"):
            while True:
                if len(params) >= MAX_ARGS:
                    self.report(self.error("Can't have more than 255 parameters."))
                params.append(self.expect_ident("Expect parameter name."))
                if not self.match(","):
                    break
        self.expect(")", "Expect ')' after parameters.")
        self.expect("{", "Expect '{' before " + kind + " body.")
        body = self.parse_block()
        return Function(name, tuple(params), tuple(body))

    def parse_var_decl(self) -> Var:
        decl = self.parse_var_binding()
        self.skip_semicolon()
        return decl

    def parse_var_binding(self) -> Var:
        """VarBinding = IDENT ( '=' Expr )?"""
        name = self.expect_ident("Expect variable name.")
        initializer: Expr | None = None
        if self.match("="):
            initializer = self.parse_expr()
        return Var(name, initializer)

    # ── Statements ───────────────────────────────────────────

    def parse_stmt(self) -> Stmt:
        if self.match("print"):
            return self.parse_print_stmt()
        if self.match("return"):
            return self.parse_return_stmt()
        if self.match("{"):
            return Block(tuple(self.parse_block()))
        if self.match("if"):
            return self.parse_if_stmt()
        if self.match("while"):
            return self.parse_while_stmt()
        if self.match("for"):
            return self.parse_for_stmt()
        return self.parse_expr_stmt()

    def parse_print_stmt(self) -> Print:
        value = self.parse_expr()
        self.skip_semicolon()
        return Print(value)

    def parse_return_stmt(self) -> Return:
        keyword = self.previous()
        value: Expr | None = None
        if self._at_expr_start():
            value = self.parse_expr()
        self.skip_semicolon()
        return Return(keyword, value)

    def parse_if_stmt(self) -> If:
        self.expect("(", "Expect '(' after 'if'.")
        condition = self.parse_expr()
        self.expect(")", "Expect ')' after if condition.")
        then_branch = self.parse_stmt()
        else_branch: Stmt | None = None
        if self.match("else"):
            else_branch = self.parse_stmt()
        return If(condition, then_branch, else_branch)

    def parse_while_stmt(self) -> While:
        self.expect("(", "Expect '(' after 'while'.")
        condition = self.parse_expr()
        self.expect(")", "Expect ')' after condition.")
        body = self.parse_stmt()
        return While(condition, body)

    def parse_for_stmt(self) -> Stmt:
        """Desugar `for (init; cond; incr) body` into a block holding a while loop."""
        self.expect("(", "Expect '(' after 'for'.")
        # Both header semicolons are required, unlike statement terminators
        initializer: Stmt | None = None
        if not self.at(";"):
            if self.match("var"):
                initializer = self.parse_var_binding()
            else:
                initializer = Expression(self.parse_expr())
        self.expect(";", "Expect ';' after loop initializer.")

        condition: Expr | None = None
        if not self.at(";"):
            condition = self.parse_expr()
        self.expect(";", "Expect ';' after loop condition.")

        increment: Expr | None = None
        if not self.at(")"):
            increment = self.parse_expr()
        self.expect(")", "Expect ')' after for clauses.")

        body = self.parse_stmt()
        if increment is not None:
            body = Block((body, Expression(increment)))
        if condition is None:
            condition = Literal(True)
        body = While(condition, body)
        if initializer is not None:
            body = Block((initializer, body))
        return body

    def parse_expr_stmt(self) -> Expression:
        expr = self.parse_expr()
        self.skip_semicolon()
        return Expression(expr)

    def parse_block(self) -> list[Stmt]:
        """Declarations up to the closing '}'. The '{' is already consumed."""
        stmts: list[Stmt] = []
        while not self.at("}") and not self.at_end():
            decl = self.parse_decl()
            if decl is not None:
                stmts.append(decl)
        self.expect("}", "Expect '}' after block.")
        return stmts

    def _at_expr_start(self) -> bool:
        """Check if current token can start an expression."""
        tok = self.current()
        if tok is None:
            return False
        if tok.type in (TK_NUMBER, TK_STRING, TK_IDENT):
            return True
        if tok.type in ("true", "false", "nil"):
            return True
        if tok.type == TK_OP and tok.value in ("(", "-", "!"):
            return True
        return False

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        return self.parse_assignment()

    def parse_assignment(self) -> Expr:
        """Assignment = IDENT '=' Assignment | Or"""
        expr = self.parse_or()
        if self.match("="):
            equals = self.previous()
            value = self.parse_assignment()
            if isinstance(expr, Variable):
                return Assign(expr.name, value)
            self.report(self.error("Invalid assignment target.", equals))
        return expr

    def parse_or(self) -> Expr:
        """Or = And ( 'or' And )*"""
        left = self.parse_and()
        while self.match("or"):
            op = self.previous()
            right = self.parse_and()
            left = Logical(left, op, right)
        return left

    def parse_and(self) -> Expr:
        """And = Equality ( 'and' Equality )*"""
        left = self.parse_equality()
        while self.match("and"):
            op = self.previous()
            right = self.parse_equality()
            left = Logical(left, op, right)
        return left

    def parse_equality(self) -> Expr:
        """Equality = Comparison ( ( '!=' | '==' ) Comparison )*"""
        left = self.parse_comparison()
        while self.match("!=", "=="):
            op = self.previous()
            right = self.parse_comparison()
            left = Binary(left, op, right)
        return left

    def parse_comparison(self) -> Expr:
        """Comparison = Term ( ( '>' | '>=' | '<' | '<=' ) Term )*"""
        left = self.parse_term()
        while self.match(">", ">=", "<", "<="):
            op = self.previous()
            right = self.parse_term()
            left = Binary(left, op, right)
        return left

    def parse_term(self) -> Expr:
        """Term = Factor ( ( '-' | '+' ) Factor )*"""
        left = self.parse_factor()
        while self.match("-", "+"):
            op = self.previous()
            right = self.parse_factor()
            left = Binary(left, op, right)
        return left

    def parse_factor(self) -> Expr:
        """Factor = Unary ( ( '/' | '*' ) Unary )*"""
        left = self.parse_unary()
        while self.match("/", "*"):
            op = self.previous()
            right = self.parse_unary()
            left = Binary(left, op, right)
        return left

    def parse_unary(self) -> Expr:
        """Unary = ( '!' | '-' ) Unary | Call"""
        if self.match("!", "-"):
            op = self.previous()
            right = self.parse_unary()
            return Unary(op, right)
        return self.parse_call()

    def parse_call(self) -> Expr:
        """Call = Primary ( '(' ArgList ')' | '.' IDENT )*"""
        expr = self.parse_primary()
        while True:
            if self.match("("):
                expr = self.finish_call(expr)
            elif self.match("."):
                name = self.expect_ident("Expect property name after '.'.")
                expr = Get(expr, name)
            else:
                break
        return expr

    def finish_call(self, callee: Expr) -> Call:
        args: list[Expr] = []
        if not self.at(")"):
            while True:
                if len(args) >= MAX_ARGS:
                    self.report(self.error("Can't have more than 255 arguments."))
                args.append(self.parse_expr())
                if not self.match(","):
                    break
        paren = self.expect(")", "Expect ')' after arguments.")
        return Call(callee, paren, tuple(args))

    def parse_primary(self) -> Expr:
        """Parse a primary expression."""
        tok = self.current()
        if tok is None:
            raise self.error("Expect expression.")

        if self.match("false"):
            return Literal(False)
        if self.match("true"):
            return Literal(True)
        if self.match("nil"):
            return Literal(None)

        if tok.type == TK_NUMBER:
            self.advance()
            return Literal(float(tok.value))
        if tok.type == TK_STRING:
            self.advance()
            return Literal(tok.value)
        if tok.type == TK_IDENT:
            self.advance()
            return Variable(tok)

        if self.match("("):
            expr = self.parse_expr()
            self.expect(")", "Expect ')' after expression.")
            return Grouping(expr)

        raise self.error("Expect expression.")


def parse_tokens(tokens: list[Token]) -> tuple[list[Stmt | None], list[ParseError]]:
    """Parse a token list. Returns (statements, errors); errors never abort the parse."""
    parser = Parser(tokens)
    stmts = parser.parse_program()
    return stmts, parser.errors
