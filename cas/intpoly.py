"""
Dense univariate polynomials over the integers and the rationals.

IntPoly keeps its coefficients lowest degree first with trailing zeros
stripped, so the zero polynomial has no coefficients at all. Products run
through numpy's int64 convolution whenever the coefficient bound proves the
result cannot overflow a machine word, and through Python integers
(schoolbook or Karatsuba) otherwise.
"""
from fractions import Fraction
from typing import List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from .config import Bounds, resolve
from .errors import DivisionByZero, EmptyPolynomial, NonExact
from .expressions import (Expr, Number, Symbol, Pow, Mul, Add, convert, integer,
    power, product, summation)

_logger = logging.getLogger(__name__)

WORD_LIMIT = 2**63

def strip(cs : List) -> List:
    while cs and cs[-1] == 0:
        cs.pop()
    return cs

def schoolbook(a : Sequence[int], b : Sequence[int]) -> List[int]:
    if not a or not b:
        return []
    out = [0] * (len(a) + len(b) - 1)
    for i, x in enumerate(a):
        if x == 0:
            continue
        for j, y in enumerate(b):
            out[i + j] += x * y
    return out

def karatsuba(a : Sequence[int], b : Sequence[int], threshold : int) -> List[int]:
    if min(len(a), len(b)) <= 1 or len(a) + len(b) <= threshold:
        return schoolbook(a, b)
    m = max(len(a), len(b)) // 2
    a0, a1 = list(a[:m]), list(a[m:])
    b0, b1 = list(b[:m]), list(b[m:])
    z0 = karatsuba(a0, b0, threshold)
    z2 = karatsuba(a1, b1, threshold)
    z1 = karatsuba(add_lists(a0, a1), add_lists(b0, b1), threshold)
    z1 = add_lists(z1, [-c for c in add_lists(z0, z2)])
    out = [0] * (len(a) + len(b) + m)
    for i, c in enumerate(z0):
        out[i] += c
    for i, c in enumerate(z1):
        out[i + m] += c
    for i, c in enumerate(z2):
        out[i + 2*m] += c
    return strip(out)

def add_lists(a, b):
    if len(a) < len(b):
        a, b = b, a
    out = list(a)
    for i, c in enumerate(b):
        out[i] += c
    return out

def multiply(a : Sequence[int], b : Sequence[int], big : bool = False,
             bounds : Optional[Bounds] = None) -> List[int]:
    if not a or not b:
        return []
    if not big:
        bound = max(abs(c) for c in a) * max(abs(c) for c in b) * min(len(a), len(b))
        if bound < WORD_LIMIT:
            return np.convolve(np.array(a, dtype=np.int64), np.array(b, dtype=np.int64)).tolist()
    threshold = resolve(bounds).karatsuba_threshold
    if len(a) + len(b) > threshold:
        return karatsuba(a, b, threshold)
    return schoolbook(a, b)

class IntPoly:
    __slots__ = ("coeffs", "big")

    def __init__(self, coeffs=(), big=False):
        self.coeffs = tuple(strip([int(c) for c in coeffs]))
        self.big = big

    @classmethod
    def monomial(cls, c, n):
        return cls([0] * n + [c])

    @classmethod
    def x(cls):
        return cls([0, 1])

    def __bool__(self):
        return bool(self.coeffs)

    def __len__(self):
        return len(self.coeffs)

    def __eq__(self, other):
        if isinstance(other, IntPoly):
            return self.coeffs == other.coeffs
        if isinstance(other, int):
            return self.coeffs == IntPoly([other]).coeffs
        return NotImplemented

    def __hash__(self):
        return hash(self.coeffs)

    def __repr__(self):
        return f"IntPoly({list(self.coeffs)})"

    @property
    def degree(self) -> int:
        if not self.coeffs:
            raise EmptyPolynomial()
        return len(self.coeffs) - 1

    @property
    def lc(self) -> int:
        if not self.coeffs:
            raise EmptyPolynomial("leading coefficient of the zero polynomial")
        return self.coeffs[-1]

    def is_constant(self) -> bool:
        return len(self.coeffs) <= 1

    def __neg__(self):
        return IntPoly([-c for c in self.coeffs], self.big)

    def __add__(self, other):
        other = as_int_poly(other)
        return IntPoly(add_lists(self.coeffs, other.coeffs), self.big or other.big)

    __radd__ = __add__

    def __sub__(self, other):
        return self + (-as_int_poly(other))

    def __rsub__(self, other):
        return as_int_poly(other) - self

    def __mul__(self, other):
        if isinstance(other, int):
            return IntPoly([c * other for c in self.coeffs], self.big)
        return self.mul(other)

    __rmul__ = __mul__

    def mul(self, other, big=False, bounds=None):
        other = as_int_poly(other)
        big = big or self.big or other.big
        return IntPoly(multiply(self.coeffs, other.coeffs, big, bounds), big)

    def __pow__(self, n):
        if n < 0:
            raise ValueError("negative power of a polynomial")
        out = IntPoly([1], self.big)
        base = self
        while n:
            if n & 1:
                out = out * base
            base = base * base
            n >>= 1
        return out

    def shift(self, n):
        """Multiply by x**n."""
        if not self.coeffs:
            return self
        return IntPoly([0] * n + list(self.coeffs), self.big)

    def pseudo_divide(self, other) -> Tuple['IntPoly', 'IntPoly', int]:
        """(q, r, m) with m*self == q*other + r, deg r < deg other, m = lc(other)**(deg self - deg other + 1)."""
        other = as_int_poly(other)
        if not other:
            raise DivisionByZero("polynomial division by zero")
        if not self or len(self.coeffs) < len(other.coeffs):
            return IntPoly([], self.big), self, 1
        d = other.degree
        b = other.lc
        e = self.degree - d + 1
        r = list(self.coeffs)
        q = [0] * e
        n = e
        while r and len(r) - 1 >= d:
            k = len(r) - 1 - d
            s = r[-1]
            q = [c * b for c in q]
            q[k] += s
            r = [c * b for c in r]
            for i, c in enumerate(other.coeffs):
                r[i + k] -= s * c
            strip(r)
            n -= 1
        scale = b ** n
        return (IntPoly([c * scale for c in q], self.big),
                IntPoly([c * scale for c in r], self.big), b ** e)

    def divide_exact(self, other) -> 'IntPoly':
        q, r, m = self.pseudo_divide(other)
        if r or any(c % m for c in q.coeffs):
            raise NonExact(f"{other} does not divide {self} over the integers")
        return IntPoly([c // m for c in q.coeffs], self.big)

    def div_rem(self, other) -> Tuple['IntPoly', 'IntPoly']:
        """Division with remainder over the integers; every quotient step must be integral."""
        other = as_int_poly(other)
        if not other:
            raise DivisionByZero("polynomial division by zero")
        d = other.degree
        b = other.lc
        r = list(self.coeffs)
        q = [0] * max(len(r) - d, 0)
        while r and len(r) - 1 >= d:
            if r[-1] % b:
                raise NonExact(f"leading coefficient {b} does not divide {r[-1]}")
            k = len(r) - 1 - d
            s = r[-1] // b
            q[k] = s
            for i, c in enumerate(other.coeffs):
                r[i + k] -= s * c
            strip(r)
        return IntPoly(q, self.big), IntPoly(r, self.big)

    def __divmod__(self, other):
        return self.div_rem(other)

    def __floordiv__(self, other):
        return self.div_rem(other)[0]

    def __mod__(self, other):
        return self.div_rem(other)[1]

    def content(self) -> int:
        g = 0
        for c in self.coeffs:
            g = math.gcd(g, c)
        return g

    def primitive_part(self) -> 'IntPoly':
        if not self.coeffs:
            return self
        c = self.content()
        if self.lc < 0:
            c = -c
        return IntPoly([x // c for x in self.coeffs], self.big)

    def gcd(self, other) -> 'IntPoly':
        """Primitive GCD with positive leading coefficient (subresultant remainder sequence)."""
        other = as_int_poly(other)
        if not self:
            return other.primitive_part()
        if not other:
            return self.primitive_part()
        a, b = self.primitive_part(), other.primitive_part()
        if len(a) < len(b):
            a, b = b, a
        g = h = 1
        while True:
            delta = a.degree - b.degree
            _, r, _ = a.pseudo_divide(b)
            if not r:
                break
            if r.is_constant():
                return IntPoly([1], self.big)
            scale = g * h**delta
            a, b = b, IntPoly([c // scale for c in r.coeffs], self.big)
            g = a.lc
            if delta:
                h = g**delta // h**(delta - 1)
        return b.primitive_part()

    def lcm(self, other) -> 'IntPoly':
        other = as_int_poly(other)
        if not self or not other:
            return IntPoly([], self.big)
        out = (self * other).divide_exact(self.gcd(other))
        return -out if out.lc < 0 else out

    def derivative(self) -> 'IntPoly':
        return IntPoly([i * c for i, c in enumerate(self.coeffs)][1:], self.big)

    def evaluate(self, x):
        out = 0
        for c in reversed(self.coeffs):
            out = out * x + c
        return out

    __call__ = evaluate

    def square_free(self) -> List[Tuple['IntPoly', int]]:
        """Yun's decomposition of the primitive part: [(factor, multiplicity)]."""
        f = self.primitive_part()
        if not f or f.is_constant():
            return []
        df = f.derivative()
        a = f.gcd(df)
        b = f.divide_exact(a)
        c = df.divide_exact(a)
        d = c - b.derivative()
        out = []
        i = 1
        while not b.is_constant():
            a = b.gcd(d)
            b = b.divide_exact(a)
            c = d.divide_exact(a)
            d = c - b.derivative()
            if not a.is_constant():
                out.append((a, i))
            i += 1
        return out

    def rational_roots(self) -> List[Fraction]:
        """Distinct rational roots in increasing order."""
        if not self:
            raise EmptyPolynomial("every number is a root of the zero polynomial")
        cs = list(self.coeffs)
        roots = set()
        if cs[0] == 0:
            roots.add(Fraction(0))
            while cs and cs[0] == 0:
                cs.pop(0)
        if len(cs) <= 1:
            return sorted(roots)
        f = IntPoly(cs)
        for p in divisors(cs[0]):
            for q in divisors(cs[-1]):
                for r in (Fraction(p, q), Fraction(-p, q)):
                    if r not in roots and f.evaluate(r) == 0:
                        roots.add(r)
        return sorted(roots)

    def to_expression(self, var : Symbol) -> Expr:
        return summation([product([integer(c), power(var, integer(i))])
                          for i, c in enumerate(self.coeffs) if c])

def divisors(n : int) -> List[int]:
    n = abs(n)
    small = [d for d in range(1, math.isqrt(n) + 1) if n % d == 0]
    return sorted(set(small + [n // d for d in small]))

def as_int_poly(obj) -> IntPoly:
    if isinstance(obj, IntPoly):
        return obj
    if isinstance(obj, int):
        return IntPoly([obj])
    raise TypeError(f"cannot use {type(obj).__name__} as an integer polynomial")

def monomial_terms(e : Expr, var : Symbol):
    """(coefficient, degree) pairs of a sum of monomials in `var`, or None."""
    e = convert(e)
    out = []
    for t in (e.terms if isinstance(e, Add) else (e,)):
        coeff, rest = 1, t
        if isinstance(t, Mul) and isinstance(t.factors[0], Number):
            coeff = t.factors[0].value
            rest = t.factors[1] if len(t.factors) == 2 else None
        if isinstance(t, Number):
            coeff, n = t.value, 0
        elif rest == var:
            n = 1
        elif isinstance(rest, Pow) and rest.base == var and isinstance(rest.exponent, Number) \
             and isinstance(rest.exponent.value, int) and rest.exponent.value > 0:
            n = rest.exponent.value
        else:
            return None
        out.append((coeff, n))
    return out

def expression_to_int_poly(e, var : Symbol) -> Optional[IntPoly]:
    terms = monomial_terms(e, var)
    if terms is None or any(not isinstance(c, int) for c, _ in terms):
        return None
    cs = [0] * (max((n for _, n in terms), default=0) + 1)
    for c, n in terms:
        cs[n] += c
    return IntPoly(cs)

def expression_to_rational_poly(e, var : Symbol) -> Optional['RationalPoly']:
    terms = monomial_terms(e, var)
    if terms is None or any(isinstance(c, float) for c, _ in terms):
        return None
    cs = [Fraction(0)] * (max((n for _, n in terms), default=0) + 1)
    for c, n in terms:
        cs[n] += c
    return RationalPoly(cs)

class RationalPoly:
    """Dense univariate polynomial over the rationals."""
    __slots__ = ("coeffs",)

    def __init__(self, coeffs=()):
        self.coeffs = tuple(strip([Fraction(c) for c in coeffs]))

    @classmethod
    def from_int_poly(cls, f : IntPoly) -> 'RationalPoly':
        return cls(f.coeffs)

    def __bool__(self):
        return bool(self.coeffs)

    def __eq__(self, other):
        if isinstance(other, RationalPoly):
            return self.coeffs == other.coeffs
        return NotImplemented

    def __hash__(self):
        return hash(self.coeffs)

    def __repr__(self):
        return f"RationalPoly({[str(c) for c in self.coeffs]})"

    @property
    def degree(self) -> int:
        if not self.coeffs:
            raise EmptyPolynomial()
        return len(self.coeffs) - 1

    @property
    def lc(self) -> Fraction:
        if not self.coeffs:
            raise EmptyPolynomial("leading coefficient of the zero polynomial")
        return self.coeffs[-1]

    def __neg__(self):
        return RationalPoly([-c for c in self.coeffs])

    def __add__(self, other):
        return RationalPoly(add_lists(self.coeffs, as_rational_poly(other).coeffs))

    def __sub__(self, other):
        return self + (-as_rational_poly(other))

    def __mul__(self, other):
        if isinstance(other, (int, Fraction)):
            return RationalPoly([c * other for c in self.coeffs])
        return RationalPoly(schoolbook(self.coeffs, as_rational_poly(other).coeffs))

    __rmul__ = __mul__

    def div_rem(self, other) -> Tuple['RationalPoly', 'RationalPoly']:
        other = as_rational_poly(other)
        if not other:
            raise DivisionByZero("polynomial division by zero")
        d = other.degree
        r = list(self.coeffs)
        q = [Fraction(0)] * max(len(r) - d, 0)
        while r and len(r) - 1 >= d:
            k = len(r) - 1 - d
            s = r[-1] / other.lc
            q[k] = s
            for i, c in enumerate(other.coeffs):
                r[i + k] -= s * c
            strip(r)
        return RationalPoly(q), RationalPoly(r)

    def __divmod__(self, other):
        return self.div_rem(other)

    def monic(self) -> 'RationalPoly':
        if not self.coeffs:
            return self
        return self * (1 / self.lc)

    def gcd(self, other) -> 'RationalPoly':
        a, b = self, as_rational_poly(other)
        while b:
            a, b = b, a.div_rem(b)[1]
        return a.monic()

    def lcm(self, other) -> 'RationalPoly':
        other = as_rational_poly(other)
        if not self or not other:
            return RationalPoly()
        q, _ = (self * other).div_rem(self.gcd(other))
        return q.monic()

    def derivative(self) -> 'RationalPoly':
        return RationalPoly([i * c for i, c in enumerate(self.coeffs)][1:])

    def evaluate(self, x):
        out = Fraction(0)
        for c in reversed(self.coeffs):
            out = out * x + c
        return out

    __call__ = evaluate

    def primitive(self) -> Tuple[Fraction, IntPoly]:
        """(scale, f) with self == scale * f and f primitive with positive leading coefficient."""
        if not self.coeffs:
            return Fraction(0), IntPoly()
        den = 1
        for c in self.coeffs:
            den = den * c.denominator // math.gcd(den, c.denominator)
        f = IntPoly([c * den for c in self.coeffs])
        g = f.primitive_part()
        return Fraction(f.lc, g.lc) / den, g

    def to_expression(self, var : Symbol) -> Expr:
        return summation([product([Number(c), power(var, integer(i))])
                          for i, c in enumerate(self.coeffs) if c])

def as_rational_poly(obj) -> RationalPoly:
    if isinstance(obj, RationalPoly):
        return obj
    if isinstance(obj, IntPoly):
        return RationalPoly.from_int_poly(obj)
    if isinstance(obj, (int, Fraction)):
        return RationalPoly([obj])
    raise TypeError(f"cannot use {type(obj).__name__} as a rational polynomial")
