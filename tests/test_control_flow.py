from __future__ import annotations

import pytest

from tests.support.harness import (
    ValorRuntimeError,
    ValorTypeError,
    execute,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param(
        """\
        Functions {
            function pick(n) {
                if (n > 10) { return "big"; }
                else if (n > 5) { return "medium"; }
                else if (n > 5) { return "unreachable"; }
                else { return "small"; }
            }
        }
        """,
        'pick(7) + pick(11) + pick(1)',
        ("string", "mediumbigsmall"),
        None,
        id="else-if-chain",
    ),
    pytest.param(
        'Functions { function t(v) { if (v) { return "yes"; } return "no"; } }',
        't(0) + t("") + t(nil) + t(false)',
        ("string", "yesyesnono"),
        None,
        id="truthiness",
    ),
    pytest.param(
        """\
        Functions {
            function sum(n) {
                set total = 0;
                set i = 0;
                while (i < n) {
                    i++;
                    total += i;
                }
                return total;
            }
        }
        """,
        "sum(4)",
        ("number", 10),
        None,
        id="while-loop",
    ),
    pytest.param(
        """\
        Functions {
            function total(items) {
                set t = 0;
                for (x in items) { t += x; }
                return t;
            }
        }
        """,
        "total(list(1, 2, 3))",
        ("number", 6),
        None,
        id="for-each-list",
    ),
    pytest.param(
        """\
        Functions {
            function count(word) {
                set n = 0;
                for (ch in word) { n++; }
                return n;
            }
        }
        """,
        'count("valor")',
        ("number", 5),
        None,
        id="for-each-string",
    ),
    pytest.param(
        "Functions { function bad() { for (x in 3) { } } }",
        "bad()",
        None,
        ValorTypeError,
        id="for-each-needs-iterable",
    ),
    pytest.param(
        """\
        Functions {
            function first_big(items) {
                for (x in items) {
                    if (x > 2) { return x; }
                }
                return nil;
            }
        }
        """,
        "first_big(list(1, 5, 7))",
        ("number", 5),
        None,
        id="return-unwinds-loop",
    ),
    pytest.param(
        """\
        Functions {
            function loop_return() {
                set i = 0;
                while (true) {
                    i++;
                    if (i == 3) { return i * 10; }
                }
            }
        }
        """,
        "loop_return()",
        ("number", 30),
        None,
        id="return-unwinds-while",
    ),
    pytest.param(
        "Functions { function nothing() { 1 + 1; } }",
        "nothing()",
        ("nil", None),
        None,
        id="no-return-yields-nil",
    ),
    pytest.param(
        "Functions { function early() { return; print(1); } }",
        "early()",
        ("nil", None),
        None,
        id="bare-return",
    ),
    pytest.param(
        """\
        Functions {
            function nested() {
                set n = 0;
                for (a in seq(3)) {
                    for (b in seq(3)) { n++; }
                }
                return n;
            }
        }
        """,
        "nested()",
        ("number", 9),
        None,
        id="nested-loops",
    ),
]


@pytest.mark.parametrize("source, probe, expectation, expected_exc", SCENARIOS)
def test_control_flow(source: str, probe: str, expectation, expected_exc) -> None:
    run_runtime_case(source, probe, expectation, expected_exc)


def test_if_false_runs_only_else() -> None:
    session = execute("""\
        Functions {
            function pick() {
                if (false) { print("X"); } else { print("Y"); }
            }
        }
    """)

    session.eval("pick()")

    assert session.output == ["Y"]


def test_statements_run_in_order() -> None:
    session = execute("""\
        Functions {
            function steps() {
                print("one");
                print("two");
                for (i in seq(2)) { print(i); }
                print("done");
            }
        }
    """)

    session.eval("steps()")

    assert session.output == ["one", "two", "0", "1", "done"]


def test_loop_cap_stops_runaway_loop() -> None:
    session = execute(
        "Functions { function spin() { while (true) { } } }",
        max_loop_iterations=5,
    )

    with pytest.raises(ValorRuntimeError, match="Loop exceeded 5 iterations."):
        session.eval("spin()")


def test_loop_cap_allows_loops_within_limit() -> None:
    session = execute(
        "Functions { function five() { set n = 0; for (i in seq(5)) { n++; } return n; } }",
        max_loop_iterations=5,
    )

    assert session.eval("five()").value == 5.0


def test_loop_cap_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VALOR_MAX_LOOP_ITERATIONS", "3")

    from valor.runtime import Runtime

    assert Runtime().config.max_loop_iterations == 3
