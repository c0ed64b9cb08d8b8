"""
Polynomials over Z_p.

Multiplication switches to a number-theoretic transform for large operands
when p is one of the NTT-friendly primes below. The transform runs on
numpy uint64 vectors in Montgomery form with R = 2**32, so each modular
product is two multiplications, a mask and a shift.

Factorization follows the classical route: make monic, split into
square-free parts, then Berlekamp's algorithm on each part.
"""
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import threading

import numpy as np

from .config import Bounds, resolve
from .errors import ConvergenceFailed, DivisionByZero, EmptyPolynomial, InvalidForm, NoInverse, Overflow
from .expressions import Expr, Symbol, integer, power, product, summation
from .intpoly import IntPoly, expression_to_int_poly

_logger = logging.getLogger(__name__)

# p -> (primitive root, log2 of the largest supported transform)
# Residues below this multiply without overflowing int64.
WORD_PRIME_LIMIT = 2**31

NTT_PRIMES : Dict[int, Tuple[int, int]] = {
    2013265921: (31, 27),   # 15 * 2**27 + 1
    469762049:  (3, 26),    # 7 * 2**26 + 1
    23068673:   (3, 21),    # 11 * 2**21 + 1
}

def inverse_mod(a : int, p : int) -> int:
    a %= p
    if a == 0:
        raise NoInverse(a, p)
    return pow(a, -1, p)

class Montgomery:
    """Vectorised Montgomery arithmetic modulo an odd p < 2**31."""
    SHIFT = np.uint64(32)
    MASK = np.uint64(0xFFFFFFFF)

    def __init__(self, p : int):
        if p % 2 == 0 or p >= 2**31:
            raise ValueError(f"Montgomery form needs an odd modulus below 2**31, got {p}")
        self.p = p
        self.p64 = np.uint64(p)
        self.p_inv_neg = np.uint64((-pow(p, -1, 2**32)) % 2**32)
        self.r2 = np.uint64(pow(2, 64, p))

    def reduce(self, t):
        m = ((t & self.MASK) * self.p_inv_neg) & self.MASK
        u = (t + m * self.p64) >> self.SHIFT
        return np.where(u >= self.p64, u - self.p64, u)

    def mul(self, a, b):
        return self.reduce(a * b)

    def to_montgomery(self, a):
        return self.mul(a, self.r2)

    def from_montgomery(self, a):
        return self.reduce(a)

_local = threading.local()

def _tables(n : int, p : int):
    """(bit reversal, forward twiddles, inverse twiddles, n^-1) for a size-n transform, cached per thread."""
    cache = getattr(_local, "tables", None)
    if cache is None:
        cache = _local.tables = {}
    key = (n, p)
    if key not in cache:
        g, _ = NTT_PRIMES[p]
        mont = Montgomery(p)
        omega = pow(g, (p - 1) // n, p)
        omega_inv = pow(omega, -1, p)
        forward, inverse = [1], [1]
        for _ in range(n // 2 - 1):
            forward.append(forward[-1] * omega % p)
            inverse.append(inverse[-1] * omega_inv % p)
        half = max(n // 2, 1)
        fw = mont.to_montgomery(np.array(forward[:half], dtype=np.uint64))
        iw = mont.to_montgomery(np.array(inverse[:half], dtype=np.uint64))
        n_inv = mont.to_montgomery(np.array([pow(n, -1, p)], dtype=np.uint64))[0]
        bits = n.bit_length() - 1
        idx = np.arange(n, dtype=np.int64)
        rev = np.zeros(n, dtype=np.int64)
        for i in range(bits):
            rev |= ((idx >> i) & 1) << (bits - 1 - i)
        cache[key] = (mont, rev, fw, iw, n_inv)
    return cache[key]

def _transform(a, rev, roots, mont):
    a = a[rev]
    p = mont.p64
    n = len(a)
    h = 1
    while h < n:
        step = n // (2 * h)
        w = roots[::step][:h]
        blocks = a.reshape(-1, 2 * h)
        u = blocks[:, :h]
        v = mont.mul(blocks[:, h:], w)
        s = u + v
        d = u + p - v
        s = np.where(s >= p, s - p, s)
        d = np.where(d >= p, d - p, d)
        a = np.concatenate([s, d], axis=1).reshape(-1)
        h *= 2
    return a

def ntt_multiply(a : Sequence[int], b : Sequence[int], p : int) -> List[int]:
    """Product of two coefficient lists over Z_p via the NTT; p must be NTT-friendly."""
    if not a or not b:
        return []
    if p not in NTT_PRIMES:
        raise Overflow(f"{p} is not an NTT-friendly prime")
    size = len(a) + len(b) - 1
    n = 1 << (size - 1).bit_length()
    cap = NTT_PRIMES[p][1]
    if n > 1 << cap:
        raise Overflow(f"transform of size {n} exceeds 2**{cap} for p = {p}")
    mont, rev, fw, iw, n_inv = _tables(n, p)
    fa = np.zeros(n, dtype=np.uint64)
    fb = np.zeros(n, dtype=np.uint64)
    fa[:len(a)] = [x % p for x in a]
    fb[:len(b)] = [x % p for x in b]
    fa = _transform(mont.to_montgomery(fa), rev, fw, mont)
    fb = _transform(mont.to_montgomery(fb), rev, fw, mont)
    fc = _transform(mont.mul(fa, fb), rev, iw, mont)
    fc = mont.from_montgomery(mont.mul(fc, n_inv))
    out = [int(x) for x in fc[:size]]
    while out and out[-1] == 0:
        out.pop()
    return out

def schoolbook_mod(a : Sequence[int], b : Sequence[int], p : int) -> List[int]:
    if not a or not b:
        return []
    out = [0] * (len(a) + len(b) - 1)
    for i, x in enumerate(a):
        if x == 0:
            continue
        for j, y in enumerate(b):
            out[i + j] += x * y
    out = [c % p for c in out]
    while out and out[-1] == 0:
        out.pop()
    return out

class PolyZp:
    __slots__ = ("coeffs", "p")

    def __init__(self, coeffs=(), p=2):
        if p < 2:
            raise ValueError(f"modulus must be a prime >= 2, got {p}")
        cs = [int(c) % p for c in coeffs]
        while cs and cs[-1] == 0:
            cs.pop()
        self.coeffs = tuple(cs)
        self.p = p

    @classmethod
    def from_signed_coeffs(cls, coeffs, p):
        return cls(coeffs, p)

    @classmethod
    def from_int_poly(cls, f : IntPoly, p):
        return cls(f.coeffs, p)

    @classmethod
    def constant(cls, c, p):
        return cls([c], p)

    @classmethod
    def x(cls, p):
        return cls([0, 1], p)

    def _same_field(self, other):
        if isinstance(other, int):
            return PolyZp([other], self.p)
        if not isinstance(other, PolyZp):
            raise TypeError(f"cannot combine PolyZp with {type(other).__name__}")
        if other.p != self.p:
            raise ValueError(f"moduli differ: {self.p} and {other.p}")
        return other

    def __bool__(self):
        return bool(self.coeffs)

    def __eq__(self, other):
        if isinstance(other, PolyZp):
            return self.p == other.p and self.coeffs == other.coeffs
        return NotImplemented

    def __hash__(self):
        return hash((self.p, self.coeffs))

    def __lt__(self, other):
        return (len(self.coeffs), self.coeffs[::-1]) < (len(other.coeffs), other.coeffs[::-1])

    def __repr__(self):
        return f"PolyZp({list(self.coeffs)}, p={self.p})"

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

    def is_one(self) -> bool:
        return self.coeffs == (1,)

    def is_constant(self) -> bool:
        return len(self.coeffs) <= 1

    def __neg__(self):
        return PolyZp([-c for c in self.coeffs], self.p)

    def __add__(self, other):
        other = self._same_field(other)
        n = max(len(self.coeffs), len(other.coeffs))
        a = self.coeffs + (0,) * (n - len(self.coeffs))
        b = other.coeffs + (0,) * (n - len(other.coeffs))
        return PolyZp([x + y for x, y in zip(a, b)], self.p)

    __radd__ = __add__

    def __sub__(self, other):
        return self + (-self._same_field(other))

    def __rsub__(self, other):
        return self._same_field(other) - self

    def __mul__(self, other):
        if isinstance(other, int):
            return self.scale(other)
        return self.mul(other)

    __rmul__ = __mul__

    def scale(self, c : int) -> 'PolyZp':
        return PolyZp([x * c for x in self.coeffs], self.p)

    def mul(self, other, bounds : Optional[Bounds] = None) -> 'PolyZp':
        other = self._same_field(other)
        threshold = resolve(bounds).ntt_threshold
        if self.p in NTT_PRIMES and min(len(self.coeffs), len(other.coeffs)) >= threshold:
            cs = ntt_multiply(self.coeffs, other.coeffs, self.p)
        else:
            cs = schoolbook_mod(self.coeffs, other.coeffs, self.p)
        return PolyZp(cs, self.p)

    def div_rem(self, other) -> Tuple['PolyZp', 'PolyZp']:
        other = self._same_field(other)
        if not other:
            raise DivisionByZero("polynomial division by zero")
        p = self.p
        d = other.degree
        inv = inverse_mod(other.lc, p)
        r = list(self.coeffs)
        q = [0] * max(len(r) - d, 0)
        while r and len(r) - 1 >= d:
            k = len(r) - 1 - d
            s = r[-1] * inv % p
            q[k] = s
            for i, c in enumerate(other.coeffs):
                r[i + k] = (r[i + k] - s * c) % p
            while r and r[-1] == 0:
                r.pop()
        return PolyZp(q, p), PolyZp(r, p)

    def __divmod__(self, other):
        return self.div_rem(other)

    def __floordiv__(self, other):
        return self.div_rem(other)[0]

    def __mod__(self, other):
        return self.div_rem(other)[1]

    def monic(self) -> 'PolyZp':
        if not self.coeffs or self.lc == 1:
            return self
        return self.scale(inverse_mod(self.lc, self.p))

    def gcd(self, other) -> 'PolyZp':
        """Monic GCD by the Euclidean algorithm."""
        a, b = self.monic(), self._same_field(other).monic()
        while b:
            a, b = b, (a % b).monic()
        return a

    def pow_mod(self, e : int, modulus : 'PolyZp') -> 'PolyZp':
        if e < 0:
            raise ValueError("negative exponent")
        out = PolyZp([1], self.p) % modulus
        base = self % modulus
        while e:
            if e & 1:
                out = (out * base) % modulus
            base = (base * base) % modulus
            e >>= 1
        return out

    def derivative(self) -> 'PolyZp':
        return PolyZp([i * c for i, c in enumerate(self.coeffs)][1:], self.p)

    def evaluate(self, x : int) -> int:
        out = 0
        for c in reversed(self.coeffs):
            out = (out * x + c) % self.p
        return out

    __call__ = evaluate

    def pth_root(self) -> 'PolyZp':
        """g with g**p == self, for a polynomial in x**p."""
        p = self.p
        if any(c for i, c in enumerate(self.coeffs) if i % p):
            raise InvalidForm(f"{self} is not a polynomial in x**{p}")
        return PolyZp(self.coeffs[::p], p)

    def to_expression(self, var : Symbol) -> Expr:
        return summation([product([integer(c), power(var, integer(i))])
                          for i, c in enumerate(self.coeffs) if c])

def expression_to_poly_zp(e, var : Symbol, p : int) -> Optional[PolyZp]:
    f = expression_to_int_poly(e, var)
    return None if f is None else PolyZp.from_int_poly(f, p)

def square_free_decomposition(f : PolyZp) -> List[Tuple[PolyZp, int]]:
    """[(g, m)] with monic square-free g and f.monic() == prod g**m."""
    if not f:
        raise EmptyPolynomial("square-free decomposition of the zero polynomial")
    f = f.monic()
    if f.is_constant():
        return []
    p = f.p
    df = f.derivative()
    if not df:
        return [(g, m * p) for g, m in square_free_decomposition(f.pth_root())]
    out = []
    c = f.gcd(df)
    w = f // c
    i = 1
    while not w.is_one():
        y = w.gcd(c)
        z = w // y
        if not z.is_one():
            out.append((z, i))
        i += 1
        w = y
        c = c // y
    if not c.is_one():
        out.extend((g, m * p) for g, m in square_free_decomposition(c.pth_root()))
    return out

class _Budget:
    def __init__(self, limit):
        self.limit = limit
        self.used = 0

    def tick(self, partial=None):
        self.used += 1
        if self.used > self.limit:
            raise ConvergenceFailed(f"Berlekamp exceeded {self.limit} attempts", partial)

def berlekamp_matrix(f : PolyZp) -> np.ndarray:
    """Q with column j holding the coefficients of x**(p*j) mod f.

    Entries are int64 while products of two residues fit a word, Python
    ints otherwise.
    """
    n = f.degree
    p = f.p
    xp = PolyZp.x(p).pow_mod(p, f)
    q = np.zeros((n, n), dtype=np.int64 if p < WORD_PRIME_LIMIT else object)
    col = PolyZp([1], p)
    for j in range(n):
        for i, c in enumerate(col.coeffs):
            q[i, j] = c
        col = (col * xp) % f
    return q

def null_space_mod(m : np.ndarray, p : int, budget : _Budget) -> List[List[int]]:
    """Basis of the null space of m over Z_p by Gauss-Jordan elimination."""
    m = m % p
    rows, cols = m.shape
    pivots = []
    r = 0
    for c in range(cols):
        if r == rows:
            break
        nz = np.nonzero(m[r:, c])[0]
        if len(nz) == 0:
            continue
        budget.tick()
        k = r + int(nz[0])
        if k != r:
            m[[r, k]] = m[[k, r]]
        m[r] = m[r] * inverse_mod(int(m[r, c]), p) % p
        factors = m[:, c].copy()
        factors[r] = 0
        m = (m - np.outer(factors, m[r])) % p
        pivots.append(c)
        r += 1
    basis = []
    for free in range(cols):
        if free in pivots:
            continue
        v = [0] * cols
        v[free] = 1
        for i, c in enumerate(pivots):
            v[c] = int(-m[i, free]) % p
        basis.append(v)
    return basis

def berlekamp(f : PolyZp, bounds : Optional[Bounds] = None) -> List[PolyZp]:
    """Irreducible factors of a monic square-free f."""
    bounds = resolve(bounds)
    if not f:
        raise EmptyPolynomial("Berlekamp on the zero polynomial")
    if f.lc != 1:
        raise InvalidForm("Berlekamp needs a monic polynomial")
    if f.degree <= 1:
        return [f]
    p = f.p
    n = f.degree
    budget = _Budget(bounds.berlekamp_max_attempts)
    q = berlekamp_matrix(f)
    q[np.diag_indices(n)] -= 1
    basis = null_space_mod(q, p, budget)
    k = len(basis)
    _logger.debug("Berlekamp: degree %d over Z_%d has %d irreducible factors", n, p, k)
    if k == 1:
        return [f]
    factors = [f]
    for v in basis:
        v = PolyZp(v, p)
        if v.is_constant():
            continue
        split = []
        for h in factors:
            if h.degree <= 1:
                split.append(h)
                continue
            found = 0
            for c in range(p):
                budget.tick(factors)
                g = h.gcd(v - c)
                if not g.is_constant():
                    split.append(g)
                    found += g.degree
                    if found == h.degree:
                        break
        factors = split
        if len(factors) == k:
            break
    return sorted(factors)

def factor_with_multiplicities(f : PolyZp, bounds : Optional[Bounds] = None) -> Tuple[int, List[Tuple[PolyZp, int]]]:
    """(leading coefficient, [(monic irreducible, multiplicity)])."""
    if not f:
        raise EmptyPolynomial("factorization of the zero polynomial")
    out = []
    for g, m in square_free_decomposition(f):
        for h in berlekamp(g, bounds):
            out.append((h, m))
    out.sort()
    _logger.info("factored degree %d polynomial over Z_%d into %d distinct factors",
                 f.degree, f.p, len(out))
    return f.lc, out

def factor_over_zp(f : PolyZp, bounds : Optional[Bounds] = None) -> List[PolyZp]:
    """Monic irreducible factors of f, each repeated by its multiplicity."""
    _, pairs = factor_with_multiplicities(f, bounds)
    return [h for h, m in pairs for _ in range(m)]

def is_irreducible(f : PolyZp, bounds : Optional[Bounds] = None) -> bool:
    if not f or f.degree < 1:
        return False
    f = f.monic()
    if not f.gcd(f.derivative()).is_one():
        return False
    return len(berlekamp(f, bounds)) == 1
