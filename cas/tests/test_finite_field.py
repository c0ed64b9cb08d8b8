"""Tests for polynomials over Z_p, the NTT and Berlekamp factorization."""

import random
from functools import reduce

import numpy as np
import pytest

from cas.config import Bounds
from cas.errors import ConvergenceFailed, InvalidForm, NoInverse, Overflow
from cas.expressions import symbols
from cas.finite_field import (NTT_PRIMES, Montgomery, PolyZp, berlekamp, berlekamp_matrix,
    expression_to_poly_zp, factor_over_zp, factor_with_multiplicities, inverse_mod, is_irreducible,
    ntt_multiply, schoolbook_mod, square_free_decomposition)

x, = symbols("x")


def prod(polys, p):
    return reduce(lambda a, b: a * b, polys, PolyZp([1], p))


class TestScenarios:
    """Worked factorizations."""

    def test_difference_of_squares_mod_7(self):
        """x**2 - 1 over Z_7 splits into two monic linear factors."""
        f = PolyZp([-1, 0, 1], 7)
        factors = factor_over_zp(f)
        assert len(factors) == 2
        assert all(g.degree == 1 and g.lc == 1 for g in factors)
        assert prod(factors, 7) == f
        assert factors == [PolyZp([1, 1], 7), PolyZp([6, 1], 7)]


class TestArithmetic:
    """Field arithmetic and representation."""

    def test_coefficients_reduced(self):
        """Coefficients are kept in [0, p)."""
        assert PolyZp([-1, 8, 7], 7).coeffs == (6, 1)

    def test_modulus_part_of_equality(self):
        """Equal coefficients over different fields differ."""
        assert PolyZp([1, 1], 5) != PolyZp([1, 1], 7)
        with pytest.raises(ValueError):
            PolyZp([1], 5) + PolyZp([1], 7)

    def test_inverse_mod(self):
        """Modular inverse and its failure."""
        assert inverse_mod(3, 7) == 5
        with pytest.raises(NoInverse):
            inverse_mod(14, 7)

    def test_gcd_is_monic(self):
        """gcd(x**2 - 1, 3x - 3) = x - 1 over Z_7."""
        assert PolyZp([-1, 0, 1], 7).gcd(PolyZp([-3, 3], 7)) == PolyZp([-1, 1], 7)

    def test_division(self):
        """Division with remainder over the field."""
        f, g = PolyZp([1, 2, 3, 4], 11), PolyZp([5, 2], 11)
        q, r = f.div_rem(g)
        assert q * g + r == f
        assert r.is_constant()

    def test_pow_mod(self):
        """x**p == x modulo an irreducible of degree one."""
        f = PolyZp([3, 1], 7)
        assert PolyZp.x(7).pow_mod(7, f) == PolyZp.x(7) % f

    def test_expression_round_trip(self):
        """Conversion to and from expressions."""
        f = PolyZp([6, 0, 1], 7)
        assert f.to_expression(x) == x ** 2 + 6
        assert expression_to_poly_zp(x ** 2 - 1, x, 7) == f


class TestMontgomery:
    """Vectorised Montgomery arithmetic."""

    @pytest.mark.parametrize("p", sorted(NTT_PRIMES))
    def test_round_trip_and_product(self, p):
        """Values survive conversion and products are reduced correctly."""
        mont = Montgomery(p)
        values = [0, 1, 2, 12345, p - 2, p - 1]
        a = np.array(values, dtype=np.uint64)
        b = np.array(values[::-1], dtype=np.uint64)
        assert mont.from_montgomery(mont.to_montgomery(a)).tolist() == values
        got = mont.from_montgomery(mont.mul(mont.to_montgomery(a), mont.to_montgomery(b)))
        assert [int(v) for v in got] == [x * y % p for x, y in zip(values, values[::-1])]

    def test_even_modulus_rejected(self):
        """Montgomery form needs an odd modulus."""
        with pytest.raises(ValueError):
            Montgomery(10)


class TestNTT:
    """Number-theoretic transform multiplication."""

    def test_matches_schoolbook(self):
        """NTT products equal schoolbook products for every supported prime."""
        rng = random.Random(2024)
        for p in NTT_PRIMES:
            for _ in range(15):
                a = [rng.randrange(p) for _ in range(rng.randint(1, 300))]
                b = [rng.randrange(p) for _ in range(rng.randint(1, 300))]
                assert ntt_multiply(a, b, p) == schoolbook_mod(a, b, p)

    def test_polynomial_multiplication_switches(self):
        """PolyZp.mul gives the same product above and below the threshold."""
        rng = random.Random(3)
        p = 469762049
        f = PolyZp([rng.randrange(p) for _ in range(100)], p)
        g = PolyZp([rng.randrange(p) for _ in range(80)], p)
        assert f.mul(g, Bounds(ntt_threshold=1)) == f.mul(g, Bounds(ntt_threshold=1000))

    def test_unsupported_prime(self):
        """Only NTT-friendly primes are accepted."""
        with pytest.raises(Overflow):
            ntt_multiply([1, 2], [3, 4], 7)

    def test_size_limit(self):
        """Transforms larger than the prime supports are rejected."""
        ones = [1] * (2**20 + 1)
        with pytest.raises(Overflow):
            ntt_multiply(ones, ones, 23068673)


class TestSquareFree:
    """Square-free decomposition over Z_p."""

    def test_repeated_factor(self):
        """(x + 1)**2 * (x + 2) over Z_5."""
        f = PolyZp([1, 1], 5) * PolyZp([1, 1], 5) * PolyZp([2, 1], 5)
        assert square_free_decomposition(f) == [(PolyZp([2, 1], 5), 1), (PolyZp([1, 1], 5), 2)]

    def test_pth_power(self):
        """x**5 + 1 == (x + 1)**5 over Z_5."""
        f = PolyZp([1, 0, 0, 0, 0, 1], 5)
        assert square_free_decomposition(f) == [(PolyZp([1, 1], 5), 5)]

    def test_pth_root_rejects(self):
        """Only polynomials in x**p have a p-th root."""
        with pytest.raises(InvalidForm):
            PolyZp([1, 1], 5).pth_root()


class TestBerlekamp:
    """Berlekamp factorization."""

    def test_factors_are_irreducible(self):
        """Factors multiply back and factor no further."""
        rng = random.Random(11)
        for p in (3, 5, 7, 11):
            for _ in range(15):
                n = rng.randint(1, 6)
                f = PolyZp([rng.randrange(p) for _ in range(n)] + [1], p)
                for g, _ in square_free_decomposition(f):
                    factors = berlekamp(g)
                    assert prod(factors, p) == g
                    for h in factors:
                        assert h.lc == 1
                        assert berlekamp(h) == [h]

    def test_multiplicities_rebuild_input(self):
        """prod(h**m) times the leading coefficient is the input."""
        rng = random.Random(12)
        for p in (2, 3, 5, 7):
            for _ in range(10):
                n = rng.randint(1, 7)
                f = PolyZp([rng.randrange(p) for _ in range(n)] + [rng.randrange(1, p)], p)
                lc, pairs = factor_with_multiplicities(f)
                rebuilt = prod([h for h, m in pairs for _ in range(m)], p)
                assert rebuilt.scale(lc) == f

    def test_leading_coefficient(self):
        """The leading coefficient is reported separately."""
        lc, pairs = factor_with_multiplicities(PolyZp([-3, 0, 3], 7))
        assert lc == 3
        assert pairs == [(PolyZp([1, 1], 7), 1), (PolyZp([6, 1], 7), 1)]

    def test_requires_monic(self):
        """Berlekamp rejects non-monic input."""
        with pytest.raises(InvalidForm):
            berlekamp(PolyZp([1, 0, 2], 7))

    def test_attempt_budget(self):
        """Exhausting the attempt budget raises ConvergenceFailed."""
        with pytest.raises(ConvergenceFailed):
            berlekamp(PolyZp([-1, 0, 1], 7), Bounds(berlekamp_max_attempts=1))

    def test_irreducibility(self):
        """x**2 + 1 is irreducible over Z_3 but not over Z_5."""
        assert is_irreducible(PolyZp([1, 0, 1], 3))
        assert not is_irreducible(PolyZp([1, 0, 1], 5))
        assert not is_irreducible(PolyZp([1, 2, 1], 3))

    def test_primes_beyond_word_size(self):
        """Residues above 2**31 keep exact Python ints in the Berlekamp matrix."""
        p = 2**32 + 15
        f = PolyZp([1, 0, 1], p)
        assert berlekamp_matrix(f).dtype == object
        assert berlekamp_matrix(PolyZp([1, 0, 1], 7)).dtype == np.int64
        assert is_irreducible(f)
        g = prod([PolyZp([-r, 1], p) for r in (1, 2, 3)], p)
        assert set(factor_over_zp(g)) == {PolyZp([-r, 1], p) for r in (1, 2, 3)}
