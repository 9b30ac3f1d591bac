"""Interpreter tests: values, errors, natives and host embedding."""

import gc
import io
import logging
import math
import sys

import pytest

from lox import Interpreter, ResolveError, parse, run
from lox.errors import (
    ArityMismatch,
    LoxRuntimeError,
    NotAnInstance,
    NotCallable,
    OperandTypeError,
    StackOverflow,
    UndefinedVariable,
)
from lox.runtime import (
    EXIT_DATAERR,
    EXIT_OK,
    EXIT_SOFTWARE,
    RECURSION_LIMIT,
    LoxClass,
    LoxInstance,
    is_equal,
    is_truthy,
    stringify,
)


def _interpret(interpreter: Interpreter, source: str) -> object:
    stmts, errors = parse(source)
    assert errors == []
    return interpreter.interpret(stmts)


def _output(source: str) -> list[str]:
    result = run(source)
    assert result.stderr == ""
    assert result.exit_code == EXIT_OK
    return result.stdout.splitlines()


def _raises(source: str, exc_type: type) -> LoxRuntimeError:
    interpreter = Interpreter(stdout=io.StringIO())
    with pytest.raises(exc_type) as exc:
        _interpret(interpreter, source)
    return exc.value


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, "nil"),
        (True, "true"),
        (False, "false"),
        (3.0, "3"),
        (-3.0, "-3"),
        (2.5, "2.5"),
        (0.1, "0.1"),
        ("text", "text"),
        (math.inf, "Infinity"),
        (-math.inf, "-Infinity"),
        (math.nan, "NaN"),
    ],
)
def test_stringify(value, expected):
    assert stringify(value) == expected


def test_stringify_instances_and_classes():
    klass = LoxClass("Point")
    assert stringify(klass) == "Point"
    assert stringify(LoxInstance(klass)) == "Point instance"


@pytest.mark.parametrize(
    "value,expected",
    [(None, False), (False, False), (True, True), (0.0, True), ("", True)],
)
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (None, None, True),
        (None, False, False),
        (1.0, 1.0, True),
        (1.0, True, False),
        (0.0, False, False),
        ("1", 1.0, False),
        ("a", "a", True),
        (math.nan, math.nan, False),
    ],
)
def test_is_equal(a, b, expected):
    assert is_equal(a, b) is expected


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("literal", ["0", "7", "12.25", "1000000"])
def test_printing_a_number_literal(literal):
    assert _output("print " + literal + ";") == [literal]


def test_for_and_while_are_equivalent():
    as_for = _output("for (var i = 0; i < 5; i = i + 1) print i * i;")
    as_while = _output(
        "{ var i = 0; while (i < 5) { print i * i; i = i + 1; } }"
    )
    assert as_for == as_while == ["0", "1", "4", "9", "16"]


def test_run_writes_through_to_stdout():
    sink = io.StringIO()
    result = run("print 1; print 2;", stdout=sink)
    assert result.stdout == "1\n2\n"
    assert sink.getvalue() == "1\n2\n"


def test_parse_errors_still_run_remaining_statements():
    result = run("var = 1;\nprint 1;\nprint 2;\nprint 3;")
    assert result.exit_code == EXIT_DATAERR
    assert result.stdout == "1\n2\n3\n"
    assert result.stderr.startswith("parse error: Expect variable name.")


def test_scan_error_runs_nothing():
    result = run("print 1;\nprint #;")
    assert result.exit_code == EXIT_DATAERR
    assert result.stdout == ""
    assert result.stderr == "scan error: Unexpected character: '#' at line 2 col 7\n"


def test_runtime_error_exit_code_and_message():
    result = run('print "a" + 1;')
    assert result.exit_code == EXIT_SOFTWARE
    assert result.stderr == (
        "runtime error: Operands must be two numbers or two strings. at line 1 col 11\n"
    )


def test_strict_mode_stops_before_running():
    result = run("print 1; { var a = a; }", strict=True)
    assert result.exit_code == EXIT_DATAERR
    assert result.stdout == ""
    assert "resolve error" in result.stderr


def test_without_strict_resolve_errors_are_reported_and_run_continues():
    result = run("print 1; { var a = a; }")
    assert result.exit_code == EXIT_SOFTWARE
    assert result.stdout == "1\n"
    assert "resolve error: Can't read local variable" in result.stderr
    assert "runtime error: Undefined variable 'a'." in result.stderr


# ---------------------------------------------------------------------------
# Runtime faults
# ---------------------------------------------------------------------------


def test_string_plus_number():
    err = _raises('"a" + 1;', OperandTypeError)
    assert err.msg == "Operands must be two numbers or two strings."
    assert err.token is not None and err.token.value == "+"


def test_negating_non_number():
    err = _raises("-nil;", OperandTypeError)
    assert err.msg == "Operand must be a number."


def test_arithmetic_on_non_numbers():
    err = _raises('"a" * 2;', OperandTypeError)
    assert err.msg == "Operands must be numbers."


@pytest.mark.parametrize("args,got", [("1", 1), ("1, 2, 3", 3)])
def test_arity_mismatch(args, got):
    err = _raises("fun add(a, b) { return a + b; } add(" + args + ");", ArityMismatch)
    assert err.expected == 2
    assert err.got == got
    assert err.msg == "Expected 2 arguments but got " + str(got) + "."


def test_undefined_variable():
    err = _raises("print nope;", UndefinedVariable)
    assert err.name == "nope"
    assert (err.line, err.col) == (1, 7)


def test_undefined_assignment():
    _raises("nope = 1;", UndefinedVariable)


@pytest.mark.parametrize("source", ['"str"();', "var x = 1; x();", "nil();"])
def test_not_callable(source):
    err = _raises(source, NotCallable)
    assert err.msg == "Can only call functions and classes."


@pytest.mark.parametrize("source", ["var x = 1; x.y;", '"s".len;', "nil.x;"])
def test_not_an_instance(source):
    err = _raises(source, NotAnInstance)
    assert err.msg == "Only instances have properties."


def test_runtime_faults_share_a_base():
    for exc_type in (ArityMismatch, NotAnInstance, NotCallable, OperandTypeError, UndefinedVariable):
        assert issubclass(exc_type, LoxRuntimeError)


def test_arguments_evaluated_before_arity_check():
    out = io.StringIO()
    interpreter = Interpreter(stdout=out)
    with pytest.raises(ArityMismatch):
        _interpret(interpreter, 'fun f() {} fun g() { print "arg"; } f(g());')
    assert out.getvalue() == "arg\n"


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------


def test_interpret_returns_last_expression_value():
    interpreter = Interpreter(stdout=io.StringIO())
    assert _interpret(interpreter, "1 + 2;") == 3.0
    assert _interpret(interpreter, "var a = 1;") is None
    assert _interpret(interpreter, "print 1; a;") == 1.0


def test_globals_persist_across_interpret_calls():
    out = io.StringIO()
    interpreter = Interpreter(stdout=out)
    _interpret(interpreter, "var a = 1;")
    _interpret(interpreter, "fun inc() { a = a + 1; }")
    _interpret(interpreter, "inc(); inc();")
    _interpret(interpreter, "print a;")
    assert out.getvalue() == "3\n"


def test_closures_survive_across_interpret_calls():
    interpreter = Interpreter(stdout=io.StringIO())
    _interpret(
        interpreter,
        "fun make() { var n = 0; fun next() { n = n + 1; return n; } return next; }"
        " var counter = make();",
    )
    _interpret(interpreter, "counter();")
    assert _interpret(interpreter, "counter();") == 2.0


def test_runtime_error_restores_global_environment():
    interpreter = Interpreter(stdout=io.StringIO())
    with pytest.raises(UndefinedVariable):
        _interpret(interpreter, "fun f() { { missing; } } f();")
    assert interpreter.environment is interpreter.globals
    assert _interpret(interpreter, "1;") == 1.0


def test_native_function():
    calls = []

    def twice(interpreter, args):
        calls.append(args)
        return args[0] * 2

    result = run("print twice(21);", natives={"twice": (1, twice)})
    assert result.stdout == "42\n"
    assert calls == [[21.0]]


def test_native_int_result_becomes_number():
    result = run("print answer() + 0.5;", natives={"answer": (0, lambda i, a: 42)})
    assert result.stdout == "42.5\n"


def test_native_none_result_is_nil():
    result = run("print nothing();", natives={"nothing": (0, lambda i, a: None)})
    assert result.stdout == "nil\n"


def test_native_arity_is_checked():
    interpreter = Interpreter(stdout=io.StringIO(), natives={"one": (1, lambda i, a: a[0])})
    with pytest.raises(ArityMismatch):
        _interpret(interpreter, "one();")


def test_define_native_after_construction():
    interpreter = Interpreter(stdout=io.StringIO())
    interpreter.define_native("greet", 1, lambda i, a: "hi " + a[0])
    assert _interpret(interpreter, 'greet("lox");') == "hi lox"


def test_clock_is_seconds_since_epoch():
    interpreter = Interpreter(stdout=io.StringIO())
    now = _interpret(interpreter, "clock();")
    assert isinstance(now, float)
    assert now > 1_000_000_000


def test_instance_fields_start_empty():
    interpreter = Interpreter(stdout=io.StringIO())
    assert _interpret(interpreter, "class Box {} Box().anything;") is None


def test_host_can_set_instance_fields():
    out = io.StringIO()
    interpreter = Interpreter(stdout=out)
    _interpret(interpreter, "class Point {} var p = Point();")
    p = _interpret(interpreter, "p;")
    assert isinstance(p, LoxInstance)
    assert p.klass.name == "Point"
    p.set("x", 3.0)
    _interpret(interpreter, "print p.x;")
    assert out.getvalue() == "3\n"


def test_instances_are_fresh_per_call():
    interpreter = Interpreter(stdout=io.StringIO())
    _interpret(interpreter, "class Box {} var a = Box(); var b = Box();")
    a = _interpret(interpreter, "a;")
    b = _interpret(interpreter, "b;")
    a.set("v", 1.0)
    assert b.fields == {}


# ---------------------------------------------------------------------------
# Resolver diagnostics through interpret
# ---------------------------------------------------------------------------


def test_interpret_keeps_resolve_errors():
    interpreter = Interpreter(stdout=io.StringIO())
    stmts, _ = parse("{ var a = a; }")
    with pytest.raises(UndefinedVariable):
        interpreter.interpret(stmts)
    assert [e.msg for e in interpreter.errors] == [
        "Can't read local variable in its own initializer."
    ]


def test_interpret_resets_errors_per_call():
    interpreter = Interpreter(stdout=io.StringIO())
    with pytest.raises(UndefinedVariable):
        _interpret(interpreter, "{ var a = a; }")
    _interpret(interpreter, "1;")
    assert interpreter.errors == []


def test_interpret_strict_raises_before_running():
    out = io.StringIO()
    interpreter = Interpreter(stdout=out)
    stmts, _ = parse("print 1; { var a = a; }")
    with pytest.raises(ResolveError) as exc:
        interpreter.interpret(stmts, strict=True)
    assert exc.value.msg == "Can't read local variable in its own initializer."
    assert out.getvalue() == ""


def test_interpret_logs_resolve_errors(caplog):
    interpreter = Interpreter(stdout=io.StringIO())
    with caplog.at_level(logging.WARNING, logger="lox"):
        with pytest.raises(UndefinedVariable):
            _interpret(interpreter, "{ var a = a; }")
    assert any("resolve error" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Call depth
# ---------------------------------------------------------------------------


def test_deep_recursion_completes():
    interpreter = Interpreter(stdout=io.StringIO())
    source = "fun count(n) { if (n == 0) return 0; return count(n - 1) + 1; } count(300);"
    assert _interpret(interpreter, source) == 300.0


def test_unbounded_recursion_is_a_runtime_error():
    before = sys.getrecursionlimit()
    err = _raises("fun f() { f(); } f();", StackOverflow)
    assert isinstance(err, LoxRuntimeError)
    assert err.msg == "Stack overflow."
    assert sys.getrecursionlimit() == before


def test_interpreter_usable_after_stack_overflow():
    interpreter = Interpreter(stdout=io.StringIO())
    with pytest.raises(StackOverflow):
        _interpret(interpreter, "fun f() { f(); } f();")
    assert interpreter.environment is interpreter.globals
    assert _interpret(interpreter, "1 + 1;") == 2.0


def test_stack_overflow_through_run():
    result = run("print 1; fun f(n) { return f(n + 1); } f(0);")
    assert result.exit_code == EXIT_SOFTWARE
    assert result.stdout == "1\n"
    assert result.stderr.startswith("runtime error: Stack overflow.")


def test_recursion_limit_is_above_default():
    assert RECURSION_LIMIT > 1000


# ---------------------------------------------------------------------------
# Resolution side-table
# ---------------------------------------------------------------------------


def test_side_table_drops_finished_programs():
    interpreter = Interpreter(stdout=io.StringIO())
    for _ in range(20):
        _interpret(interpreter, "{ var a = 1; print a; }")
    gc.collect()
    assert len(interpreter.locals) == 0


def test_side_table_keeps_live_function_bodies():
    interpreter = Interpreter(stdout=io.StringIO())
    _interpret(
        interpreter,
        "fun make() { var n = 0; fun next() { n = n + 1; return n; } return next; }"
        " var counter = make();",
    )
    gc.collect()
    assert len(interpreter.locals) > 0
    _interpret(interpreter, "counter();")
    assert _interpret(interpreter, "counter();") == 2.0
