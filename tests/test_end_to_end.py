"""
End-to-end tests: source text -> WAT -> wasmtime, with the Python host stub
providing the imported procedures.
"""

import io

import pytest

from chocowat import values
from chocowat.host import HostRuntime
from chocowat.semantics import ArityMismatch, TypeMismatch


class TestBasicPrograms:

    def test_declaration_result(self, run_source):
        result, _ = run_source("x: int = 5\nx\n")
        assert result == 5

    def test_function_call(self, run_source):
        result, _ = run_source("def f(a: int, b: int) -> int:\n    return a + b\nf(2, 3)\n")
        assert result == 5

    def test_if_calls_print_with_encoded_word(self, compile_source, run_wat):
        seen = []

        class Recorder(HostRuntime):
            def print(self, word):
                seen.append(word)
                return super().print(word)

        host = Recorder(stream=io.StringIO())
        run_wat(compile_source("if 1 < 2:\n    print(1)\nelse:\n    print(2)\n"), host)
        assert seen == [values.encode_int(1)]
        assert host.output == ["1"]

    def test_reassignment(self, run_source):
        result, _ = run_source("x: int = 1\nx = 2\nx\n")
        assert result == 2

    def test_arity_mismatch_stops_compilation(self, compile_source):
        with pytest.raises(ArityMismatch):
            compile_source("def f(a: int, b: int) -> int:\n    return a + b\nf(1)\n")

    def test_missing_return_stops_compilation(self, compile_source):
        with pytest.raises(TypeMismatch):
            compile_source("def g() -> int:\n    pass\n")

    def test_program_without_result(self, run_source):
        result, host = run_source("x: int = 1\nprint(x)\nx = 3\n")
        assert result is None
        assert host.output == ["1"]


class TestArithmetic:

    @pytest.mark.parametrize(
        "expr,expected",
        [
            ("1 + 2 * 3", 7),
            ("(1 + 2) * 3", 9),
            ("10 - 20", -10),
            ("7 // 2", 3),
            ("-7 // 2", -3),
            ("7 % 3", 1),
            ("-7 % 3", -1),
            ("-(4 - 9)", 5),
            ("- -8", 8),
            ("100000 * 100000", 10000000000),
        ],
    )
    def test_expression(self, run_source, expr, expected):
        result, _ = run_source(f"{expr}\n")
        assert result == expected

    @pytest.mark.parametrize(
        "expr,expected",
        [
            ("abs(-12)", 12),
            ("abs(12)", 12),
            ("max(3, -4)", 3),
            ("min(3, -4)", -4),
            ("pow(2, 10)", 1024),
            ("pow(-3, 3)", -27),
            ("pow(2, -1)", 0),
        ],
    )
    def test_intrinsics(self, run_source, expr, expected):
        result, _ = run_source(f"{expr}\n")
        assert result == expected

    def test_integer_extremes(self, run_source):
        result, _ = run_source(f"{values.INT_MIN}\n")
        assert result == values.INT_MIN
        result, _ = run_source(f"{values.INT_MAX}\n")
        assert result == values.INT_MAX

    def test_print_returns_its_argument(self, run_source):
        result, host = run_source("print(print(7))\n")
        assert result == 7
        assert host.output == ["7", "7"]

    def test_print_negative(self, run_source):
        _, host = run_source("print(0 - 42)\n")
        assert host.output == ["-42"]


class TestBooleans:

    @pytest.mark.parametrize(
        "cond,expected",
        [
            ("1 < 2", 1),
            ("2 < 1", 0),
            ("-5 < -4", 1),
            ("3 <= 3", 1),
            ("3 >= 4", 0),
            ("4 > 3", 1),
            ("3 == 3", 1),
            ("3 != 3", 0),
            ("True == False", 0),
            ("not False", 1),
            ("not (1 < 2)", 0),
            ("None is None", 1),
        ],
    )
    def test_condition(self, run_source, cond, expected):
        result, _ = run_source(f"r: int = 0\nif {cond}:\n    r = 1\nr\n")
        assert result == expected

    def test_bool_variable(self, run_source):
        result, _ = run_source(
            """
flag: bool = False
n: int = 0
flag = not flag
if flag:
    n = 10
n
"""
        )
        assert result == 10

    def test_elif_chain(self, run_source):
        result, host = run_source(
            """
def grade(score: int) -> int:
    if score >= 90:
        return 1
    elif score >= 80:
        return 2
    elif score >= 70:
        return 3
    else:
        return 4
    return 0

print(grade(75) * 100 + grade(85) * 10 + grade(95))
"""
        )
        assert result == 321
        assert host.output == ["321"]


class TestLoopsAndFunctions:

    def test_while_sum(self, run_source):
        result, _ = run_source(
            """
i: int = 0
total: int = 0
while i < 10:
    total = total + i
    i = i + 1
total
"""
        )
        assert result == 45

    def test_recursive_fib(self, run_source):
        result, _ = run_source(
            """
def fib(n: int) -> int:
    if n < 2:
        return n
    return fib(n - 1) + fib(n - 2)
fib(10)
"""
        )
        assert result == 55

    def test_mutual_recursion(self, run_source):
        result, _ = run_source(
            """
def is_even(n: int) -> bool:
    if n == 0:
        return True
    return is_odd(n - 1)

def is_odd(n: int) -> bool:
    if n == 0:
        return False
    return is_even(n - 1)

r: int = 0
if is_even(10):
    r = r + 1
if is_odd(7):
    r = r + 10
if is_even(3):
    r = r + 100
r
"""
        )
        assert result == 11

    def test_loop_with_locals(self, run_source):
        result, _ = run_source(
            """
def sum_to(n: int) -> int:
    acc: int = 0
    i: int = 1
    while i <= n:
        acc = acc + i
        i = i + 1
    return acc
sum_to(100)
"""
        )
        assert result == 5050

    def test_function_mutates_global(self, run_source):
        result, host = run_source(
            """
counter: int = 0
def bump(by: int):
    counter = counter + by
bump(3)
bump(4)
print(counter)
counter
"""
        )
        assert result == 7
        assert host.output == ["7"]

    def test_local_shadows_global(self, run_source):
        result, _ = run_source(
            """
x: int = 1
def f() -> int:
    x: int = 50
    return x
f() + x
"""
        )
        assert result == 51

    def test_none_function_in_is_test(self, run_source):
        result, _ = run_source(
            """
def nothing():
    return
r: int = 0
if nothing() is None:
    r = 1
r
"""
        )
        assert result == 1

    def test_early_return_from_loop(self, run_source):
        result, _ = run_source(
            """
def first_square_above(limit: int) -> int:
    i: int = 0
    while True:
        if i * i > limit:
            return i
        i = i + 1
    return 0
first_square_above(50)
"""
        )
        assert result == 8

    def test_declarations_are_initialized_before_other_statements(self, run_source):
        result, host = run_source("print(x)\nx: int = 5\nx = x + 1\nx\n")
        assert host.output == ["5"]
        assert result == 6

    def test_global_read_before_its_declaration_runs(self, run_source):
        result, _ = run_source(
            """
def peek() -> int:
    return later
first: int = peek()
later: int = 9
first
"""
        )
        assert result == 0


class TestTypeSoundness:

    def test_intrinsics_only_ever_see_int_words(self, compile_source, run_wat):
        class StrictHost(HostRuntime):
            def _check(self, *words):
                for w in words:
                    assert values.is_int_word(w), w

            def print(self, word):
                self._check(word)
                return super().print(word)

            def max(self, left, right):
                self._check(left, right)
                return super().max(left, right)

            def abs(self, word):
                self._check(word)
                return super().abs(word)

        host = StrictHost(stream=io.StringIO())
        wat = compile_source(
            """
def f(a: int, b: bool) -> int:
    if b:
        return abs(a)
    return max(a, 0)
print(f(-4, True))
print(f(-4, False))
"""
        )
        run_wat(wat, host)
        assert host.output == ["4", "0"]
