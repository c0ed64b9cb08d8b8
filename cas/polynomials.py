from collections import deque
from enum import Enum
from fractions import Fraction
from functools import reduce as fold
from typing import Dict, Iterable, List, Optional, Sequence
import logging
import time

from . import numbers
from .config import Bounds, resolve
from .errors import ConvergenceFailed, InvalidForm
from .expressions import (Expr, Number, Pow, Mul, Add, convert, power, product, summation)

_logger = logging.getLogger(__name__)

class Monomial:
    """Exponent vector over a fixed variable list."""
    __slots__ = ("exps",)

    def __init__(self, exps):
        self.exps = tuple(exps)
        assert all(e >= 0 for e in self.exps), self.exps

    @classmethod
    def one(cls, nvars):
        return cls((0,) * nvars)

    @classmethod
    def var(cls, index, nvars):
        return cls(1 if i == index else 0 for i in range(nvars))

    def __hash__(self):
        return hash(self.exps)

    def __eq__(self, other):
        return isinstance(other, Monomial) and self.exps == other.exps

    @property
    def degree(self):
        return sum(self.exps)

    def __mul__(self, other):
        return Monomial(a + b for a, b in zip(self.exps, other.exps))

    def __pow__(self, n):
        return Monomial(e * n for e in self.exps)

    def divides(self, other):
        return all(a <= b for a, b in zip(self.exps, other.exps))

    def __truediv__(self, other):
        return Monomial(a - b for a, b in zip(self.exps, other.exps))

    def lcm(self, other):
        return Monomial(max(a, b) for a, b in zip(self.exps, other.exps))

    def coprime(self, other):
        return all(a == 0 or b == 0 for a, b in zip(self.exps, other.exps))

    def pretty(self, variables):
        return "*".join(f"{x}**{e}" if e > 1 else f"{x}"
                        for x, e in zip(variables, self.exps) if e)

    def __repr__(self):
        return f"Monomial({list(self.exps)})"

class MonomialOrder(Enum):
    lex     = "lex"
    grlex   = "grlex"
    grevlex = "grevlex"

    def key(self, m : Monomial):
        if self is MonomialOrder.lex:
            return m.exps
        if self is MonomialOrder.grlex:
            return (m.degree, m.exps)
        # grevlex: ties go to the smaller exponent in the last differing variable
        return (m.degree, tuple(-e for e in reversed(m.exps)))

    def compare(self, a : Monomial, b : Monomial) -> int:
        ka, kb = self.key(a), self.key(b)
        return (ka > kb) - (ka < kb)

    def less(self, a : Monomial, b : Monomial) -> bool:
        return self.key(a) < self.key(b)

def as_order(order) -> MonomialOrder:
    if isinstance(order, MonomialOrder):
        return order
    return MonomialOrder(order)

class SparsePoly:
    """Terms (monomial, coefficient) strictly descending under `order`; coefficients in Q."""
    __slots__ = ("terms", "variables", "order")

    def __init__(self, terms, variables, order=MonomialOrder.grevlex):
        self.variables = tuple(variables)
        self.order = as_order(order)
        items = terms.items() if isinstance(terms, dict) else terms
        merged : Dict[Monomial, object] = {}
        for m, c in items:
            if len(m.exps) != len(self.variables):
                raise ValueError(f"{m} does not fit variables {self.variables}")
            merged[m] = numbers.add(merged.get(m, 0), c) if m in merged else numbers.canonical(c)
        key = self.order.key
        self.terms = tuple(sorted(((m, c) for m, c in merged.items() if c != 0),
                                  key=lambda t: key(t[0]), reverse=True))

    @classmethod
    def zero(cls, variables, order=MonomialOrder.grevlex):
        return cls((), variables, order)

    @classmethod
    def constant(cls, c, variables, order=MonomialOrder.grevlex):
        return cls({Monomial.one(len(variables)): c}, variables, order)

    @classmethod
    def from_expression(cls, e, variables, order=MonomialOrder.grevlex) -> 'SparsePoly':
        """Polynomial of an expanded expression; raises InvalidForm for anything else."""
        from .simplify import expand
        variables = tuple(variables)
        index = {v: i for i, v in enumerate(variables)}
        n = len(variables)
        e = expand(convert(e))
        terms = []
        for t in (e.terms if isinstance(e, Add) else (e,)):
            coeff = 1
            exps = [0] * n
            for f in (t.factors if isinstance(t, Mul) else (t,)):
                if isinstance(f, Number):
                    if not f.is_exact:
                        raise InvalidForm(f"inexact coefficient {f}")
                    coeff = numbers.mul(coeff, f.value)
                elif f in index:
                    exps[index[f]] += 1
                elif isinstance(f, Pow) and f.base in index and isinstance(f.exponent, Number) \
                     and isinstance(f.exponent.value, int) and f.exponent.value > 0:
                    exps[index[f.base]] += f.exponent.value
                else:
                    raise InvalidForm(f"{t} is not a monomial in {', '.join(map(str, variables))}")
            terms.append((Monomial(exps), coeff))
        return cls(terms, variables, order)

    def to_expression(self) -> Expr:
        return summation([product([Number(c)] + [power(x, e) for x, e in zip(self.variables, m.exps)])
                          for m, c in self.terms])

    def _like(self, terms):
        return SparsePoly(terms, self.variables, self.order)

    def _check(self, other):
        if self.variables != other.variables:
            raise ValueError(f"variables differ: {self.variables} and {other.variables}")
        if self.order is not other.order:
            raise ValueError(f"orders differ: {self.order.value} and {other.order.value}")

    def with_order(self, order) -> 'SparsePoly':
        return SparsePoly(self.terms, self.variables, order)

    def __bool__(self):
        return bool(self.terms)

    def __eq__(self, other):
        if isinstance(other, SparsePoly):
            return self.variables == other.variables and self.terms == other.terms
        return NotImplemented

    def __hash__(self):
        return hash((self.variables, self.terms))

    def __repr__(self):
        if not self.terms:
            return "0"
        parts = []
        for m, c in self.terms:
            mono = m.pretty(self.variables)
            parts.append(f"{c}*{mono}" if mono else f"{c}")
        return " + ".join(parts)

    def lm(self) -> Optional[Monomial]:
        return self.terms[0][0] if self.terms else None

    def lc(self):
        return self.terms[0][1] if self.terms else 0

    def total_degree(self) -> int:
        return max((m.degree for m, _ in self.terms), default=0)

    def __neg__(self):
        return self._like([(m, -c) for m, c in self.terms])

    def __add__(self, other):
        self._check(other)
        return self._like(list(self.terms) + list(other.terms))

    def __sub__(self, other):
        self._check(other)
        return self._like(list(self.terms) + [(m, -c) for m, c in other.terms])

    def scale(self, c) -> 'SparsePoly':
        if c == 0:
            return self._like(())
        return self._like([(m, numbers.mul(k, c)) for m, k in self.terms])

    def mul_term(self, mono : Monomial, c) -> 'SparsePoly':
        if c == 0:
            return self._like(())
        return self._like([(m * mono, numbers.mul(k, c)) for m, k in self.terms])

    def __mul__(self, other):
        if not isinstance(other, SparsePoly):
            return self.scale(numbers.canonical(other))
        self._check(other)
        out : Dict[Monomial, object] = {}
        for m1, c1 in self.terms:
            for m2, c2 in other.terms:
                m = m1 * m2
                out[m] = numbers.add(out.get(m, 0), numbers.mul(c1, c2))
        return self._like(out)

    __rmul__ = __mul__

    def monic(self) -> 'SparsePoly':
        lc = self.lc()
        if lc == 0 or lc == 1:
            return self
        return self.scale(Fraction(1) / Fraction(lc))

    def evaluate(self, point):
        """Value at `point`, a sequence aligned with the variables or a {variable: value} map."""
        if isinstance(point, dict):
            point = [point[v] for v in self.variables]
        total = 0
        for m, c in self.terms:
            t = c
            for x, e in zip(point, m.exps):
                t = t * x**e
            total = total + t
        return total

def lm(poly : SparsePoly) -> Monomial:
    m = poly.lm()
    if m is None:
        raise ValueError("polynomial is null")
    return m

def poly_reduce(f : SparsePoly, G : Sequence[SparsePoly], order=None) -> SparsePoly:
    """Normal form of f modulo G; the first divisor in G wins.

    Leading terms are taken in `order`, by default the order of f.
    """
    order = f.order if order is None else as_order(order)
    if f.order is not order:
        f = f.with_order(order)
    G = [g if g.order is order else g.with_order(order) for g in G if g]
    key = order.key
    p : Dict[Monomial, object] = dict(f.terms)
    r = []
    while p:
        m = max(p, key=key)
        c = p[m]
        for g in G:
            g_lm, g_lc = g.terms[0]
            if g_lm.divides(m):
                q = m / g_lm
                s = numbers.div(c, g_lc)
                for gm, gc in g.terms:
                    t = gm * q
                    v = numbers.sub(p.get(t, 0), numbers.mul(s, gc))
                    if v == 0:
                        p.pop(t, None)
                    else:
                        p[t] = v
                break
        else:
            r.append((m, c))
            del p[m]
    return SparsePoly(r, f.variables, order)

def s_polynomial(f : SparsePoly, g : SparsePoly) -> SparsePoly:
    lcm_m = lm(f).lcm(lm(g))
    mono_f = lcm_m / f.lm()
    mono_g = lcm_m / g.lm()
    coeff_f = Fraction(1) / Fraction(f.lc())
    coeff_g = Fraction(1) / Fraction(g.lc())
    return f.mul_term(mono_f, coeff_f) - g.mul_term(mono_g, coeff_g)

class _Limits:
    def __init__(self, bounds):
        self.max_pairs = bounds.groebner_max_pairs
        self.deadline = time.monotonic() + bounds.groebner_time_limit
        self.pairs = 0

    def check(self, G):
        self.pairs += 1
        if self.pairs > self.max_pairs:
            raise ConvergenceFailed(f"Groebner basis exceeded {self.max_pairs} pairs", list(G))
        if time.monotonic() > self.deadline:
            raise ConvergenceFailed("Groebner basis exceeded its time limit", list(G))

def _start(F):
    G = [f.monic() for f in F if f]
    if G:
        variables, order = G[0].variables, G[0].order
        for g in G:
            if g.variables != variables or g.order is not order:
                raise ValueError("generators must share variables and monomial order")
    return G

def buchberger(F : Iterable[SparsePoly], bounds : Optional[Bounds] = None) -> List[SparsePoly]:
    """Gröbner basis by the plain pair-queue algorithm (not reduced)."""
    limits = _Limits(resolve(bounds))
    G = _start(F)
    pairs = deque((i, j) for j in range(len(G)) for i in range(j))
    while pairs:
        limits.check(G)
        i, j = pairs.popleft()
        r = poly_reduce(s_polynomial(G[i], G[j]), G)
        if r:
            G.append(r.monic())
            pairs.extend((k, len(G) - 1) for k in range(len(G) - 1))
            _logger.debug("pair (%d, %d) added basis element %s", i, j, r)
    return G

def efficient_buchberger(F : Iterable[SparsePoly], bounds : Optional[Bounds] = None) -> List[SparsePoly]:
    """Buchberger with the coprime and chain criteria."""
    limits = _Limits(resolve(bounds))
    G = _start(F)
    pairs = deque((i, j) for j in range(len(G)) for i in range(j))
    pending = set(pairs)
    skipped = 0
    while pairs:
        limits.check(G)
        i, j = pairs.popleft()
        pending.discard((i, j))
        a, b = lm(G[i]), lm(G[j])
        if a.coprime(b) or _chain(i, j, a.lcm(b), G, pending):
            skipped += 1
            continue
        r = poly_reduce(s_polynomial(G[i], G[j]), G)
        if r:
            G.append(r.monic())
            n = len(G) - 1
            for k in range(n):
                pairs.append((k, n))
                pending.add((k, n))
            _logger.debug("pair (%d, %d) added basis element %s", i, j, r)
    _logger.debug("criteria skipped %d of %d pairs", skipped, limits.pairs)
    return G

def _chain(i, j, lcm_m, G, pending):
    for k in range(len(G)):
        if k == i or k == j:
            continue
        if (min(i, k), max(i, k)) in pending or (min(j, k), max(j, k)) in pending:
            continue
        if lm(G[k]).divides(lcm_m):
            return True
    return False

def reduced_basis(G : Iterable[SparsePoly]) -> List[SparsePoly]:
    """The unique reduced Gröbner basis spanned by a Gröbner basis G."""
    G = [g.monic() for g in G if g]
    minimal = []
    for i, g in enumerate(G):
        m = lm(g)
        if any(lm(h).divides(m) and (lm(h) != m or j < i)
               for j, h in enumerate(G) if j != i):
            continue
        minimal.append(g)
    out = []
    for i, g in enumerate(minimal):
        others = minimal[:i] + minimal[i+1:]
        out.append(poly_reduce(g, others).monic())
    if out:
        key = out[0].order.key
        out.sort(key=lambda g: key(lm(g)))
    return out

def groebner(polys, variables=None, order="grevlex", reduced=True, efficient=True,
             bounds : Optional[Bounds] = None) -> List[SparsePoly]:
    """Gröbner basis of expressions or SparsePolys."""
    polys = list(polys)
    order = as_order(order)
    if variables is None:
        variables = sorted(fold(set.union, (convert(p).free_symbols for p in polys
                                            if not isinstance(p, SparsePoly)), set()))
    F = [p.with_order(order) if isinstance(p, SparsePoly) else
         SparsePoly.from_expression(p, variables, order) for p in polys]
    G = (efficient_buchberger if efficient else buchberger)(F, bounds)
    if reduced:
        G = reduced_basis(G)
    _logger.info("Groebner basis (%s) with %d elements", order.value, len(G))
    return G

def in_ideal(f : SparsePoly, G : Sequence[SparsePoly]) -> bool:
    """Ideal membership; G must be a Gröbner basis."""
    return not poly_reduce(f, G)
