"""Lox runtime: evaluate resolved Lox statements.

Values are plain Python objects: None is nil, float is number, str, bool,
plus the callable and instance classes below.
"""

from __future__ import annotations

from dataclasses import dataclass
import io
import logging
import math
import sys
import time
import weakref
from typing import Callable, Mapping, Sequence, TextIO

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
from .environment import Environment
from .errors import (
    ArityMismatch,
    LoxError,
    LoxRuntimeError,
    NotAnInstance,
    NotCallable,
    OperandTypeError,
    StackOverflow,
)
from .parse import parse_tokens
from .resolve import ResolveError, resolve
from .tokens import ScanError, Token, tokenize

logger = logging.getLogger(__name__)

# sysexits.h
EXIT_OK = 0
EXIT_DATAERR = 65
EXIT_SOFTWARE = 70

# Python frames available to a running program. A Lox call costs several
# frames, so the interpreter's default limit allows only shallow recursion.
RECURSION_LIMIT = 10000

NativeFn = Callable[["Interpreter", list[object]], object]
Reporter = Callable[[str, LoxError], None]


# ============================================================
# Values
# ============================================================


class LoxCallable:
    """Anything a call expression can invoke."""

    def arity(self) -> int:
        raise NotImplementedError

    def call(self, interpreter: Interpreter, args: list[object]) -> object:
        raise NotImplementedError


class LoxFunction(LoxCallable):
    def __init__(self, declaration: Function, closure: Environment):
        self.declaration = declaration
        self.closure = closure

    def arity(self) -> int:
        return len(self.declaration.params)

    def call(self, interpreter: Interpreter, args: list[object]) -> object:
        # Chained to the defining frame, not the caller's
        env = Environment(self.closure)
        for param, arg in zip(self.declaration.params, args):
            env.define(param.value, arg)
        try:
            interpreter.execute_block(self.declaration.body, env)
        except _Return as r:
            return r.value
        return None

    def __repr__(self) -> str:
        return "<fn " + self.declaration.name.value + ">"


class ForeignFunction(LoxCallable):
    """A host-provided function. fn receives the interpreter and the arguments."""

    def __init__(self, name: str, arity: int, fn: NativeFn):
        self.name = name
        self._arity = arity
        self.fn = fn

    def arity(self) -> int:
        return self._arity

    def call(self, interpreter: Interpreter, args: list[object]) -> object:
        result = self.fn(interpreter, args)
        # Host ints become Lox numbers; None is already nil
        if isinstance(result, int) and not isinstance(result, bool):
            return float(result)
        return result

    def __repr__(self) -> str:
        return "<native fn>"


class LoxClass(LoxCallable):
    def __init__(self, name: str):
        self.name = name

    def arity(self) -> int:
        return 0

    def call(self, interpreter: Interpreter, args: list[object]) -> object:
        return LoxInstance(self)

    def __repr__(self) -> str:
        return self.name


class LoxInstance:
    def __init__(self, klass: LoxClass):
        self.klass = klass
        self.fields: dict[str, object] = {}

    def get(self, name: Token) -> object:
        # No methods: missing fields read as nil
        return self.fields.get(name.value)

    def set(self, name: str, value: object) -> None:
        """Host-side field write. Lox source has no syntax for this."""
        self.fields[name] = value

    def __repr__(self) -> str:
        return self.klass.name + " instance"


def is_truthy(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_equal(a: object, b: object) -> bool:
    """Same runtime kind and same value. Never coerces across kinds."""
    if a is None or b is None:
        return a is None and b is None
    if type(a) is not type(b):
        return False
    if isinstance(a, (bool, float, str)):
        return a == b
    return a is b


def _format_number(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x.is_integer() and abs(x) < 1e21:
        return str(int(x))
    return repr(x)


def stringify(value: object) -> str:
    """Render a value the way `print` shows it."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, str):
        return value
    return repr(value)


def _divide(a: float, b: float) -> float:
    if b != 0:
        return a / b
    # IEEE-754: x/0 is a signed infinity, 0/0 is NaN
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


# ============================================================
# Control flow signals (internal)
# ============================================================


class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: object


# ============================================================
# Interpreter
# ============================================================


def _clock(interpreter: Interpreter, args: list[object]) -> object:
    return time.time()


class Interpreter:
    """Tree-walking evaluator. One instance keeps its globals across interpret() calls."""

    def __init__(
        self,
        *,
        stdout: TextIO | None = None,
        natives: Mapping[str, tuple[int, NativeFn]] | None = None,
    ):
        self.stdout: TextIO = stdout if stdout is not None else sys.stdout
        self.globals = Environment()
        self.environment = self.globals
        # Weak keys: entries for nodes no longer reachable (a finished REPL
        # line, say) drop out instead of accumulating for the session.
        self.locals: weakref.WeakKeyDictionary[Expr, int] = weakref.WeakKeyDictionary()
        self.errors: list[ResolveError] = []
        self.define_native("clock", 0, _clock)
        if natives is not None:
            for name, (arity, fn) in natives.items():
                self.define_native(name, arity, fn)

    def define_native(self, name: str, arity: int, fn: NativeFn) -> None:
        logger.debug("registering native %s/%d", name, arity)
        self.globals.define(name, ForeignFunction(name, arity, fn))

    def resolve(self, locals_: Mapping[Expr, int]) -> None:
        self.locals.update(locals_)

    # ---- Running -----------------------------------------------------------

    def prepare(self, stmts: Sequence[Stmt | None]) -> list[Stmt]:
        """Drop recovery placeholders and resolve what is left.

        Distances are merged into the side-table. Diagnostics replace
        `self.errors` and are logged as warnings.
        """
        program = [s for s in stmts if s is not None]
        distances, errors = resolve(program)
        for err in errors:
            logger.warning("resolve error: %s", err)
        self.resolve(distances)
        self.errors = errors
        return program

    def interpret(self, stmts: Sequence[Stmt | None], *, strict: bool = False) -> object:
        """Resolve and execute statements.

        Returns the value of the final statement if it is an expression
        statement, else nil. Resolution diagnostics are left on `self.errors`;
        with `strict` the first one is raised before anything runs.
        LoxRuntimeError propagates to the caller.
        """
        program = self.prepare(stmts)
        if strict and self.errors:
            raise self.errors[0]
        return self.execute_program(program)

    def run_source(
        self, source: str, report: Reporter, *, strict: bool = False
    ) -> tuple[int, object]:
        """Tokenize, parse, resolve and execute source in this interpreter.

        Every diagnostic goes to report(stage, error) where stage is "scan",
        "parse", "resolve" or "runtime". Returns the exit code and the value
        execute_program produced (nil if nothing ran to completion).
        """
        try:
            tokens = tokenize(source)
        except ScanError as e:
            report("scan", e)
            return EXIT_DATAERR, None

        stmts, parse_errors = parse_tokens(tokens)
        for pe in parse_errors:
            report("parse", pe)

        program = self.prepare(stmts)
        for re_ in self.errors:
            report("resolve", re_)
        if strict and self.errors:
            return EXIT_DATAERR, None

        try:
            value = self.execute_program(program)
        except LoxRuntimeError as e:
            report("runtime", e)
            return EXIT_SOFTWARE, None

        if parse_errors or self.errors:
            return EXIT_DATAERR, value
        return EXIT_OK, value

    def execute_program(self, program: Sequence[Stmt]) -> object:
        """Execute already-resolved statements. See interpret()."""
        last: object = None
        saved_limit = sys.getrecursionlimit()
        if saved_limit < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)
        try:
            for st in program:
                if isinstance(st, Expression):
                    last = self.evaluate(st.expression)
                else:
                    self.execute(st)
                    last = None
        except _Return as r:
            # Top-level return (already reported by the resolver) ends the run
            return r.value
        except LoxRuntimeError as e:
            logger.debug("runtime error: %s", e)
            raise
        finally:
            sys.setrecursionlimit(saved_limit)
        return last

    # ---- Statements --------------------------------------------------------

    def execute_block(self, stmts: Sequence[Stmt], env: Environment) -> None:
        previous = self.environment
        self.environment = env
        try:
            for st in stmts:
                self.execute(st)
        finally:
            self.environment = previous

    def execute(self, st: Stmt) -> None:
        if isinstance(st, Expression):
            self.evaluate(st.expression)
            return

        if isinstance(st, Print):
            value = self.evaluate(st.expression)
            self.stdout.write(stringify(value) + "\n")
            return

        if isinstance(st, Var):
            value: object = None
            if st.initializer is not None:
                value = self.evaluate(st.initializer)
            self.environment.define(st.name.value, value)
            return

        if isinstance(st, Block):
            self.execute_block(st.statements, Environment(self.environment))
            return

        if isinstance(st, If):
            if is_truthy(self.evaluate(st.condition)):
                self.execute(st.then_branch)
            elif st.else_branch is not None:
                self.execute(st.else_branch)
            return

        if isinstance(st, While):
            while is_truthy(self.evaluate(st.condition)):
                self.execute(st.body)
            return

        if isinstance(st, Function):
            fn = LoxFunction(st, self.environment)
            self.environment.define(st.name.value, fn)
            return

        if isinstance(st, Return):
            value = None
            if st.value is not None:
                value = self.evaluate(st.value)
            raise _Return(value)

        if isinstance(st, Class):
            self.environment.define(st.name.value, None)
            klass = LoxClass(st.name.value)
            self.environment.assign(st.name, klass)
            return

        raise TypeError("unhandled statement type: " + type(st).__name__)

    # ---- Expressions -------------------------------------------------------

    def evaluate(self, expr: Expr) -> object:
        if isinstance(expr, Literal):
            return expr.value

        if isinstance(expr, Grouping):
            return self.evaluate(expr.expression)

        if isinstance(expr, Unary):
            right = self.evaluate(expr.right)
            if expr.operator.value == "-":
                self._check_number(expr.operator, right)
                return -right  # type: ignore[operator]
            return not is_truthy(right)

        if isinstance(expr, Binary):
            return self._eval_binary(expr)

        if isinstance(expr, Logical):
            left = self.evaluate(expr.left)
            if expr.operator.value == "or":
                if is_truthy(left):
                    return left
            elif not is_truthy(left):
                return left
            return self.evaluate(expr.right)

        if isinstance(expr, Variable):
            return self._look_up(expr.name, expr)

        if isinstance(expr, Assign):
            value = self.evaluate(expr.value)
            distance = self.locals.get(expr)
            if distance is not None:
                self.environment.assign_at(distance, expr.name, value)
            else:
                self.globals.assign(expr.name, value)
            return value

        if isinstance(expr, Call):
            return self._eval_call(expr)

        if isinstance(expr, Get):
            obj = self.evaluate(expr.object)
            if isinstance(obj, LoxInstance):
                return obj.get(expr.name)
            raise NotAnInstance("Only instances have properties.", expr.name)

        raise TypeError("unhandled expression type: " + type(expr).__name__)

    def _look_up(self, name: Token, expr: Expr) -> object:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.environment.get_at(distance, name)
        return self.globals.get(name)

    def _eval_call(self, expr: Call) -> object:
        callee = self.evaluate(expr.callee)
        args = [self.evaluate(a) for a in expr.arguments]
        if not isinstance(callee, LoxCallable):
            raise NotCallable("Can only call functions and classes.", expr.paren)
        if len(args) != callee.arity():
            raise ArityMismatch(callee.arity(), len(args), expr.paren)
        try:
            return callee.call(self, args)
        except RecursionError:
            raise StackOverflow(expr.paren) from None

    def _eval_binary(self, expr: Binary) -> object:
        left = self.evaluate(expr.left)
        right = self.evaluate(expr.right)
        op = expr.operator.value

        if op == "==":
            return is_equal(left, right)
        if op == "!=":
            return not is_equal(left, right)

        if op == "+":
            if isinstance(left, float) and isinstance(right, float):
                return left + right
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            raise OperandTypeError(
                "Operands must be two numbers or two strings.", expr.operator
            )

        left, right = self._check_numbers(expr.operator, left, right)
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            return _divide(left, right)
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        raise TypeError("unknown binary operator: " + op)

    def _check_number(self, op: Token, operand: object) -> None:
        if isinstance(operand, float):
            return
        raise OperandTypeError("Operand must be a number.", op)

    def _check_numbers(
        self, op: Token, left: object, right: object
    ) -> tuple[float, float]:
        if isinstance(left, float) and isinstance(right, float):
            return left, right
        raise OperandTypeError("Operands must be numbers.", op)


# ============================================================
# Entry point
# ============================================================


@dataclass
class RunResult:
    exit_code: int
    stdout: str
    stderr: str


def run(
    source: str,
    *,
    stdout: TextIO | None = None,
    strict: bool = False,
    natives: Mapping[str, tuple[int, NativeFn]] | None = None,
) -> RunResult:
    """Tokenize, parse, resolve and run a Lox program in a fresh interpreter.

    Output is buffered into the result; if `stdout` is given it is also
    written there. Parse errors do not stop the recovered statements from
    running. With `strict`, resolution errors do.
    """
    out = io.StringIO()
    err = io.StringIO()

    def report(stage: str, e: LoxError) -> None:
        err.write(stage + " error: " + str(e) + "\n")

    interpreter = Interpreter(stdout=out, natives=natives)
    code, _ = interpreter.run_source(source, report, strict=strict)
    if stdout is not None:
        stdout.write(out.getvalue())
    return RunResult(code, out.getvalue(), err.getvalue())
