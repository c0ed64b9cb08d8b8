"""Tests for dense integer and rational polynomials."""

import random
from fractions import Fraction

import pytest

from cas.errors import DivisionByZero, EmptyPolynomial, NonExact
from cas.expressions import symbols
from cas.intpoly import (IntPoly, RationalPoly, karatsuba, schoolbook, multiply,
    expression_to_int_poly, expression_to_rational_poly)

x, y = symbols("x y")


def random_poly(rng, max_degree, bound=20, nonzero=False):
    while True:
        cs = [rng.randint(-bound, bound) for _ in range(rng.randint(0, max_degree) + 1)]
        f = IntPoly(cs)
        if f or not nonzero:
            return f


class TestScenarios:
    """Worked examples."""

    def test_exact_division(self):
        """(x**2 - 1) / (x - 1) = x + 1 with no remainder."""
        q, r = IntPoly([-1, 0, 1]).div_rem(IntPoly([-1, 1]))
        assert q == IntPoly([1, 1])
        assert not r

    def test_divmod(self):
        """divmod and // and % agree with div_rem."""
        f, g = IntPoly([1, 0, 0, 1]), IntPoly([1, 1])
        assert divmod(f, g) == (IntPoly([1, -1, 1]), IntPoly([]))
        assert f // g == IntPoly([1, -1, 1])
        assert IntPoly([3, 0, 1]) % g == IntPoly([4])


class TestArithmetic:
    """Ring operations and representation."""

    def test_zero_polynomial(self):
        """The zero polynomial has no coefficients and no degree."""
        zero = IntPoly([0, 0])
        assert zero.coeffs == ()
        assert not zero
        with pytest.raises(EmptyPolynomial):
            zero.degree

    def test_big_coefficients(self):
        """Products beyond a machine word stay exact."""
        f = IntPoly([2**40, 1])
        assert (f * f).coeffs == (2**80, 2**41, 1)

    def test_big_flag(self):
        """Arbitrary-precision mode gives the same product."""
        f = IntPoly([1, 2, 3], big=True)
        g = IntPoly([4, 5])
        assert f * g == IntPoly([4, 13, 22, 15])
        assert (f * g).big

    def test_karatsuba_matches_schoolbook(self):
        """Karatsuba agrees with schoolbook multiplication."""
        rng = random.Random(7)
        for _ in range(10):
            a = [rng.randint(-10**30, 10**30) for _ in range(rng.randint(1, 120))]
            b = [rng.randint(-10**30, 10**30) for _ in range(rng.randint(1, 120))]
            assert IntPoly(karatsuba(a, b, 8)) == IntPoly(schoolbook(a, b))
            assert IntPoly(multiply(a, b)) == IntPoly(schoolbook(a, b))

    def test_word_sized_product(self):
        """Small coefficients take the machine-word path exactly."""
        rng = random.Random(8)
        a = [rng.randint(-1000, 1000) for _ in range(200)]
        b = [rng.randint(-1000, 1000) for _ in range(150)]
        assert multiply(a, b) == schoolbook(a, b)

    def test_power(self):
        """Repeated squaring."""
        assert IntPoly([1, 1]) ** 3 == IntPoly([1, 3, 3, 1])
        assert IntPoly([1, 1]) ** 0 == IntPoly([1])

    def test_evaluate(self):
        """Horner evaluation on integers and fractions."""
        f = IntPoly([1, -3, 2])
        assert f(2) == 3
        assert f.evaluate(Fraction(1, 2)) == 0


class TestDivision:
    """Pseudo-division and exact division."""

    def test_pseudo_division_identity(self):
        """m*A == q*B + r with deg r < deg B on random inputs."""
        rng = random.Random(42)
        for _ in range(200):
            A = random_poly(rng, 8)
            B = random_poly(rng, 5, nonzero=True)
            q, r, m = A.pseudo_divide(B)
            assert A * m == q * B + r
            if r:
                assert r.degree < B.degree

    def test_divide_by_zero(self):
        """Division by the zero polynomial raises."""
        with pytest.raises(DivisionByZero):
            IntPoly([1, 1]).div_rem(IntPoly([]))
        with pytest.raises(DivisionByZero):
            IntPoly([1, 1]).pseudo_divide(IntPoly([]))

    def test_inexact_division(self):
        """Non-dividing polynomials raise NonExact."""
        with pytest.raises(NonExact):
            IntPoly([1, 0, 1]).divide_exact(IntPoly([1, 1]))
        with pytest.raises(NonExact):
            IntPoly([1, 2]).divide_exact(IntPoly([2]))
        with pytest.raises(NonExact):
            IntPoly([1, 0, 1]).div_rem(IntPoly([1, 2]))

    def test_divide_exact(self):
        """Exact quotient of a product."""
        f, g = IntPoly([3, 2]), IntPoly([-5, 0, 7])
        assert (f * g).divide_exact(g) == f


class TestGcd:
    """Content, primitive part, gcd and lcm."""

    def test_content_and_primitive_part(self):
        """Primitive parts have content one and positive leading coefficient."""
        assert IntPoly([6, -4, 2]).content() == 2
        assert IntPoly([-6, 4, -2]).primitive_part() == IntPoly([3, -2, 1])

    def test_gcd_example(self):
        """gcd(x**2 - 1, x**2 - 2x + 1) = x - 1."""
        assert IntPoly([-1, 0, 1]).gcd(IntPoly([1, -2, 1])) == IntPoly([-1, 1])

    def test_gcd_with_zero(self):
        """gcd(0, f) is the primitive part of f."""
        assert IntPoly([]).gcd(IntPoly([2, 4])) == IntPoly([1, 2])
        assert IntPoly([2, 4]).gcd(IntPoly([])) == IntPoly([1, 2])

    def test_gcd_divides_both(self):
        """gcd(A, B) divides A and B and contains their common factor."""
        rng = random.Random(5)
        for _ in range(100):
            C = random_poly(rng, 3, bound=5, nonzero=True)
            A = C * random_poly(rng, 4, bound=5, nonzero=True)
            B = C * random_poly(rng, 4, bound=5, nonzero=True)
            g = A.gcd(B)
            assert not A.pseudo_divide(g)[1]
            assert not B.pseudo_divide(g)[1]
            assert not g.pseudo_divide(C.primitive_part())[1]
            assert g.lc > 0
            assert g.content() == 1

    def test_lcm(self):
        """lcm is the reduced product with positive leading coefficient."""
        assert IntPoly([-1, 0, 1]).lcm(IntPoly([-1, 1])) == IntPoly([-1, 0, 1])
        assert IntPoly([1, 1]).lcm(IntPoly([1, -1])) == IntPoly([-1, 0, 1])
        assert IntPoly([1, -1]).lcm(IntPoly([-1, 1])) == IntPoly([-1, 1])


class TestFactorisation:
    """Square-free decomposition and rational roots."""

    def test_square_free(self):
        """(x - 1)**2 * (x + 2) splits into its multiplicities."""
        f = IntPoly([2, -3, 0, 1])
        assert f.square_free() == [(IntPoly([2, 1]), 1), (IntPoly([-1, 1]), 2)]

    def test_square_free_reconstructs(self):
        """The product of factor**multiplicity is the primitive part."""
        f = IntPoly([1, 1]) ** 3 * IntPoly([-2, 0, 1]) * IntPoly([3, 1]) ** 2
        out = IntPoly([1])
        for g, m in f.square_free():
            out = out * g ** m
        assert out == f.primitive_part()

    def test_rational_roots(self):
        """Roots of 6x**2 - 5x + 1 are 1/3 and 1/2."""
        assert IntPoly([1, -5, 6]).rational_roots() == [Fraction(1, 3), Fraction(1, 2)]
        assert IntPoly([0, -2, 0, 2]).rational_roots() == [-1, 0, 1]
        assert IntPoly([1, 0, 1]).rational_roots() == []


class TestConversion:
    """Translation to and from expressions."""

    def test_to_expression(self):
        """Coefficients become a canonical sum."""
        assert IntPoly([1, 0, 3]).to_expression(x) == 3 * x ** 2 + 1

    def test_from_expression(self):
        """Integer polynomials are recognised."""
        assert expression_to_int_poly(3 * x ** 2 + 1, x) == IntPoly([1, 0, 3])
        assert expression_to_int_poly(x * y, x) is None
        assert expression_to_int_poly(x / 2, x) is None
        assert expression_to_rational_poly(x / 2, x) == RationalPoly([0, Fraction(1, 2)])


class TestRationalPoly:
    """Polynomials over Q."""

    def test_primitive(self):
        """x*3/4 + 1/2 is 1/4 * (3x + 2)."""
        assert RationalPoly([Fraction(1, 2), Fraction(3, 4)]).primitive() == (Fraction(1, 4), IntPoly([2, 3]))

    def test_gcd_is_monic(self):
        """gcd over Q is monic."""
        assert RationalPoly([-1, 0, 1]).gcd(RationalPoly([-2, 2])) == RationalPoly([-1, 1])

    def test_lcm(self):
        """lcm(x - 1, x + 1) = x**2 - 1."""
        assert RationalPoly([-1, 1]).lcm(RationalPoly([1, 1])) == RationalPoly([-1, 0, 1])

    def test_division(self):
        """Division over Q never fails for a nonzero divisor."""
        q, r = RationalPoly([1, 0, 1]).div_rem(RationalPoly([1, 2]))
        assert q * RationalPoly([1, 2]) + r == RationalPoly([1, 0, 1])
        assert r == RationalPoly([Fraction(5, 4)])
