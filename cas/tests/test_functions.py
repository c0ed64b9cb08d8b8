"""Tests for the function-property registry."""

import pytest

from cas.derivatives import derivative
from cas.expressions import Function, Number, pi, E, one, zero, minus_one, symbols, function
from cas.functions import (FunctionProperties, FunctionRegistry, RegistryFinalized, Simple,
    registry, sin, cos, tan, exp, log, absolute, sign)

x, y = symbols("x y")


class TestRegistry:
    """Registration and lookup."""

    def test_builtins_present(self):
        """The elementary functions are registered."""
        for name in ("sin", "cos", "tan", "exp", "log", "sinh", "cosh", "tanh",
                     "asin", "acos", "atan", "abs", "sign"):
            assert name in registry

    def test_unknown_function_stays_symbolic(self):
        """Unregistered names build plain Function nodes."""
        f = function("f", x, y)
        assert isinstance(f, Function)
        assert f.args == (x, y)
        assert registry.lookup("f") is None

    def test_registration_closed_after_use(self):
        """A registry rejects new entries once it has been read."""
        reg = FunctionRegistry()
        reg.register(FunctionProperties("g", derivative=Simple(one, "g")))
        assert reg.lookup("g").name == "g"
        assert reg.finalized
        with pytest.raises(RegistryFinalized):
            reg.register(FunctionProperties("h"))

    def test_duplicate_registration(self):
        """The same name cannot be registered twice."""
        reg = FunctionRegistry()
        reg.register(FunctionProperties("g"))
        with pytest.raises(ValueError):
            reg.register(FunctionProperties("g"))


class TestSpecialValues:
    """Exact values substituted at construction."""

    def test_trigonometric(self):
        """sin and cos at 0, pi/2 and pi."""
        assert sin(Number(0)) == zero
        assert sin(pi) == zero
        assert sin(pi / 2) == one
        assert cos(Number(0)) == one
        assert cos(pi) == minus_one

    def test_exponential_and_logarithm(self):
        """exp(0), exp(1), log(1), log(E)."""
        assert exp(Number(0)) == one
        assert exp(Number(1)) == E
        assert log(Number(1)) == zero
        assert log(E) == one

    def test_inverse_pairs(self):
        """exp(log(x)) and log(exp(x)) collapse to x."""
        assert exp(log(x)) == x
        assert log(exp(x)) == x

    def test_abs_and_sign(self):
        """abs and sign of exact numbers."""
        assert absolute(Number(-3)) == Number(3)
        assert absolute(absolute(x)) == absolute(x)
        assert sign(Number(-2)) == minus_one
        assert sign(Number(0)) == zero

    def test_float_arguments_evaluate(self):
        """Float arguments are evaluated numerically."""
        value = sin(Number(0.0))
        assert value == Number(0.0)
        assert value.variant == "Float"
        assert cos(Number(0.5)).value == pytest.approx(0.8775825618903728)

    def test_exact_arguments_stay_symbolic(self):
        """sin(1) is kept exact."""
        assert isinstance(sin(Number(1)), Function)


class TestCalculusRules:
    """Registry derivative and antiderivative rules."""

    def test_antiderivatives_differentiate_back(self):
        """d/dx of every registered antiderivative is the function itself."""
        checked = 0
        for name in registry.names():
            props = registry.lookup(name)
            if props.antiderivative is None:
                continue
            F = props.antiderivative.build(x)
            assert derivative(F, x) == function(name, x), name
            checked += 1
        assert checked >= 9

    def test_derivative_rules(self):
        """Derivatives come from the registry table."""
        assert derivative(sin(x), x) == cos(x)
        assert derivative(cos(x), x) == -sin(x)
        assert derivative(tan(x), x) == cos(x) ** -2
        assert derivative(log(x), x) == x ** -1
        assert derivative(absolute(x), x) == sign(x)
