from __future__ import annotations

import pytest

from tests.support.harness import (
    LexError,
    ParseError,
    ValorArityError,
    ValorNameError,
    ValorRuntimeError,
    ValorTypeError,
    ValorZeroDivisionError,
    execute,
    parse_with_errors,
)
from valor.lexer_rd import tokenize


@pytest.mark.parametrize(
    "source, probe, exc, rendered",
    [
        pytest.param(
            "Functions {\n function f() {\n return 1 / 0;\n }\n}",
            "f()",
            ValorZeroDivisionError,
            "[line 3] Error: Division by zero.",
            id="division-by-zero",
        ),
        pytest.param(
            "Functions {\n function f() {\n\n return -\"x\";\n }\n}",
            "f()",
            ValorTypeError,
            "[line 4] Error: Operand must be a number.",
            id="unary-operand",
        ),
        pytest.param(
            "Functions {\n function f() {\n return ghost;\n }\n}",
            "f()",
            ValorNameError,
            "[line 3] Error: Undefined variable 'ghost'.",
            id="undefined-variable",
        ),
        pytest.param(
            "Functions {\n function f() {\n return len(1, 2);\n }\n}",
            "f()",
            ValorArityError,
            "[line 3] Error: len() expects 1 argument(s); got 2.",
            id="native-arity",
        ),
        pytest.param(
            "Functions {\n function f() {\n return seq(\"x\");\n }\n}",
            "f()",
            ValorTypeError,
            "[line 3] Error: seq expects a number, got string.",
            id="native-error-gets-call-line",
        ),
        pytest.param(
            "Functions {\n function f() {\n\n apply damage(1)\n   to nobody;\n }\n}",
            "f()",
            ValorNameError,
            "[line 5] Error: Unknown target 'nobody'.",
            id="unknown-target-line",
        ),
    ],
)
def test_runtime_errors_carry_line(source: str, probe: str, exc: type, rendered: str) -> None:
    session = execute(source)

    with pytest.raises(exc) as exc_info:
        session.eval(probe)

    assert str(exc_info.value) == rendered


def test_runtime_errors_share_a_base() -> None:
    for exc_type in (ValorTypeError, ValorNameError, ValorArityError, ValorZeroDivisionError):
        assert issubclass(exc_type, ValorRuntimeError)


def test_runtime_error_without_location() -> None:
    assert str(ValorRuntimeError("boom")) == "Error: boom"


def test_error_during_declaration_aborts_run() -> None:
    source = """\
        set a = 1;
        set b = a / 0;
        set c = 3;
    """

    with pytest.raises(ValorZeroDivisionError) as exc_info:
        execute(source)

    assert exc_info.value.token is not None
    assert exc_info.value.token.line == 2


def test_lex_error_format() -> None:
    errors: list = []
    tokenize("set x = 1;\nset y = $;", errors)

    (err,) = errors
    assert isinstance(err, LexError)
    assert err.line == 2
    assert str(err) == "[line 2] Error: Unexpected character '$'."


def test_static_errors_are_collected_not_raised() -> None:
    program, errors = parse_with_errors("set x = 1 $;\nset y = ;")

    assert [type(e) for e in errors] == [LexError, ParseError]
    assert [v.name.lexeme for v in program.variables] == ["x"]
