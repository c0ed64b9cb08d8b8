"""Tests for pattern matching and rule-based rewriting."""

import logging

import pytest

from cas.config import Bounds
from cas.expressions import Function, Number, Commutativity, symbols, function, mul, add
from cas.functions import sin, cos, absolute
from cas.patterns import (Wildcard, Exact, PAdd, PMul, PPow, PFunction, instantiate,
    match, match_all, replace, wildcards)
from cas.rewriting import Rule, RuleSet, identity_rules

x, y, z = symbols("x y z")
A, B, C = symbols("A B C", Commutativity.matrix)
a, b, c, n, r = (Wildcard(name) for name in "abcnr")


class TestScenarios:
    """Commutative and noncommutative product patterns."""

    def test_commutative_product(self):
        """a*b matches 3*x*y and instantiates back to it."""
        expr = mul(3, x, y)
        pattern = PMul([a, b])
        bindings = match(expr, pattern)
        assert bindings is not None
        assert instantiate(pattern, bindings) == expr

    def test_noncommutative_order(self):
        """B*A does not match A*B for matrix symbols."""
        assert match(mul(A, B), PMul([Exact(B), Exact(A)])) is None
        assert match(mul(A, B), PMul([Exact(A), Exact(B)])) == {}


class TestMatching:
    """Matcher semantics."""

    def test_sum_with_coefficient(self):
        """c*y + r against x + 2*y."""
        bindings = match(x + 2 * y, PAdd([PMul([c, Exact(y)]), r]))
        assert bindings == {"c": Number(2), "r": x}

    def test_repeated_wildcard(self):
        """A wildcard used twice must bind the same expression."""
        pattern = PFunction("f", [a, a])
        assert match(function("f", x, x), pattern) == {"a": x}
        assert match(function("f", x, y), pattern) is None

    def test_power(self):
        """b**n against x**3."""
        assert match(x ** 3, PPow(b, n)) == {"b": x, "n": Number(3)}
        assert match(x, PPow(b, n)) is None

    def test_exact_converts_numbers(self):
        """Exact accepts plain Python numbers."""
        assert Exact(2).expr == Number(2)
        assert match(x ** 2, PPow(b, Exact(2))) == {"b": x}

    def test_exclusion(self):
        """Excluded subexpressions block a binding."""
        pattern = PFunction("sin", [Wildcard("u", exclude=(x,))])
        assert match(sin(2 * x), pattern) is None
        assert match(sin(y), pattern) == {"u": y}

    def test_predicate(self):
        """Predicates constrain wildcard bindings."""
        numeric = Wildcard("k", predicate=lambda e: isinstance(e, Number))
        assert match(3 * x, PMul([numeric, a])) == {"k": Number(3), "a": x}
        assert match(x * y, PMul([numeric, a])) is None

    def test_initial_bindings(self):
        """Existing bindings are respected."""
        assert match(x + y, PAdd([a, b]), {"a": y}) == {"a": y, "b": x}

    def test_absorbing_extra_operands(self):
        """A short pattern absorbs the remaining operands."""
        bindings = match(x + y + z, PAdd([Exact(x), r]))
        assert bindings == {"r": y + z}

    def test_noncommutative_runs(self):
        """Noncommutative operands split into contiguous runs."""
        results = list(match_all(mul(A, B, C), PMul([a, b])))
        assert results[0] == {"a": A, "b": mul(B, C)}
        assert {"a": mul(A, B), "b": C} in results
        assert len(results) == 2

    def test_many_operands_beyond_limit(self):
        """Greedy assignment handles sums beyond the permutation limit."""
        syms = symbols("p q s t u v w k")
        expr = add(*syms)
        pattern = PAdd([Wildcard(f"w{i}") for i in range(8)])
        bounds = Bounds(permutation_limit=3)
        bindings = match(expr, pattern, bounds=bounds)
        assert bindings is not None
        assert instantiate(pattern, bindings) == expr
        rest = match(expr, PAdd([Exact(syms[0]), r]), bounds=bounds)
        assert rest == {"r": add(*syms[1:])}

    def test_wildcard_names(self):
        """Wildcards are listed in order of first occurrence."""
        assert wildcards(PAdd([PMul([c, a]), a, b])) == ["c", "a", "b"]

    def test_unbound_wildcard(self):
        """Instantiating with a missing binding raises."""
        with pytest.raises(ValueError):
            instantiate(PMul([a, b]), {"a": x})


class TestRoundTrip:
    """Matching then instantiating recovers the expression."""

    @pytest.mark.parametrize("expr, pattern", [
        (x ** 2 + 3 * x + 1, PAdd([a, b, c])),
        (x ** 2 + 3 * x + 1, PAdd([PPow(a, Exact(2)), r])),
        (sin(x) * cos(y), PMul([PFunction("sin", [a]), b])),
        (2 * x ** 3, PMul([c, PPow(b, n)])),
        (x * y * z, PMul([a, r])),
        (mul(A, B, C), PMul([a, b, c])),
    ])
    def test_instantiate_match(self, expr, pattern):
        """instantiate(p, match(e, p)) == e."""
        bindings = match(expr, pattern)
        assert bindings is not None
        assert instantiate(pattern, bindings) == expr


class TestReplace:
    """Single-pass replacement."""

    def test_replace_functions(self):
        """Every sin becomes cos."""
        assert replace(sin(x) + sin(y), PFunction("sin", [a]), PFunction("cos", [a])) == cos(x) + cos(y)

    def test_callable_replacement(self):
        """Replacements may be functions of the bindings."""
        doubled = replace(x ** 3, PPow(b, n), lambda bs: bs["b"] ** (bs["n"] * 2))
        assert doubled == x ** 6


class TestRewriting:
    """Rule sets applied to a fixed point."""

    def test_identity_rules(self):
        """Registered function identities apply bottom-up."""
        rules = identity_rules()
        assert rules(absolute(-x)) == absolute(x)
        assert rules(sin(-x)) == -sin(x)
        assert rules(cos(-y) + absolute(x * y)) == cos(y) + absolute(x) * absolute(y)

    def test_trace(self):
        """The trace records each rule application."""
        result, trace = identity_rules().rewrite(absolute(-x), trace=True)
        assert result == absolute(x)
        assert trace.rules_applied() == ["abs-identity-0"]
        assert trace.final == result
        assert "abs-identity-0" in trace.format()

    def test_no_rule_applies(self):
        """Expressions without matches are returned unchanged."""
        result, trace = identity_rules().rewrite(x + 1, trace=True)
        assert result == x + 1
        assert len(trace) == 0

    def test_custom_rule(self):
        """User rules combine with the built-in ones."""
        square = Rule("square", PPow(a, Exact(2)), PMul([a, Function("sq", ())]))
        rules = RuleSet([square]) + identity_rules()
        assert rules(absolute(-x) ** 2) == mul(absolute(x), Function("sq", ()))

    def test_duplicate_rule_names(self):
        """Rule names must be unique."""
        rule = Rule("r", PFunction("f", [a]), a)
        with pytest.raises(ValueError):
            RuleSet([rule, rule])

    def test_iteration_bound(self, caplog):
        """A non-terminating rule set stops at the bound with a warning."""
        grow = Rule("grow", PFunction("f", [a]), PFunction("f", [PFunction("f", [a])]))
        rules = RuleSet([grow], Bounds(rewrite_max_iterations=5))
        with caplog.at_level(logging.WARNING, logger="cas.rewriting"):
            result, trace = rules.rewrite(function("f", x), trace=True)
        assert isinstance(result, Function) and result.name == "f"
        assert len(trace) == 5
        assert "stopped" in caplog.text
