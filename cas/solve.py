from fractions import Fraction
from typing import Dict, List, Optional, Sequence
import logging
import math

import numpy as np

from .config import Bounds, resolve
from .derivatives import derivative, diff
from .errors import InvalidForm, MaxIterationsReached, UndefinedError
from .expressions import (Expr, Number, Symbol, I, convert, floating, half, is_zero, minus_one,
    power, product, summation)
from .intpoly import IntPoly, expression_to_rational_poly
from .polynomials import MonomialOrder, groebner
from .simplify import evaluate, expand, simplify, substitute

_logger = logging.getLogger(__name__)

def _as_zero_form(equation):
    if isinstance(equation, tuple):
        lhs, rhs = equation
        return summation([convert(lhs), product([minus_one, convert(rhs)])])
    return convert(equation)

def solve(equation, x : Symbol, bounds : Optional[Bounds] = None) -> List[Expr]:
    """
    Roots of a polynomial equation in x.

    `equation` is an expression meaning `equation == 0`, or a pair
    (lhs, rhs). Rational roots come first in increasing order, then exact
    quadratic roots, then real roots of any higher-degree remainder found
    numerically.
    """
    e = expand(_as_zero_form(equation))
    f = expression_to_rational_poly(e, x)
    if f is None:
        raise InvalidForm(f"{e} is not a polynomial in {x} with rational coefficients")
    if not f:
        raise InvalidForm("equation holds for every value")
    _, g = f.primitive()
    if g.degree == 0:
        return []
    roots : List[Expr] = []
    rest = IntPoly([1])
    for h, _ in g.square_free():
        for r in h.rational_roots():
            roots.append(Number(r))
            h = h.divide_exact(IntPoly([-r.numerator, r.denominator]))
        if h.degree > 0:
            rest = rest * h
    roots.sort(key=lambda n: n.value)
    if rest.degree == 2:
        roots.extend(quadratic(*rest.coeffs))
    elif rest.degree > 2:
        roots.extend(numeric_roots(rest, bounds))
    _logger.debug("solve %s = 0 in %s: %d roots", e, x, len(roots))
    return roots

def quadratic(c, b, a) -> List[Expr]:
    """Exact roots of a*x**2 + b*x + c."""
    disc = b * b - 4 * a * c
    s, rest = square_part(abs(disc))
    root = Number(s) if rest == 1 else product([Number(s), power(Number(rest), half)])
    if disc < 0:
        root = product([I, root])
    denom = Number(Fraction(1, 2 * a))
    return [simplify(product([denom, summation([Number(-b), product([minus_one, root])])])),
            simplify(product([denom, summation([Number(-b), root])]))]

def square_part(n : int, limit : int = 1 << 16):
    """Split n into s**2 * r with r free of square factors below limit."""
    s, k = 1, 2
    while k * k <= n and k < limit:
        while n % (k * k) == 0:
            s *= k
            n //= k * k
        k += 1
    return s, n

def numeric_roots(f, bounds : Optional[Bounds] = None) -> List[Expr]:
    """Real roots as floats, via the companion matrix eigenvalues.

    `f` is an IntPoly or a list of float coefficients, highest degree first.
    """
    tol = max(resolve(bounds).tolerance, 1e-9)
    coeffs = f.coeffs[::-1] if isinstance(f, IntPoly) else f
    values = np.roots(np.array(coeffs, dtype=float))
    real = sorted(float(v.real) for v in values if abs(v.imag) <= tol * max(1.0, abs(v)))
    return [floating(v) for v in real]

def solve_system(equations : Sequence, variables : Sequence[Symbol],
                 bounds : Optional[Bounds] = None) -> List[Dict[Symbol, Expr]]:
    """Solutions of a zero-dimensional polynomial system via a lex Gröbner basis."""
    variables = tuple(variables)
    polys = [expand(_as_zero_form(eq)) for eq in equations]
    G = groebner(polys, variables, MonomialOrder.lex, bounds=bounds)
    if len(G) == 1 and G[0].total_degree() == 0:
        _logger.info("system is inconsistent")
        return []
    basis = [g.to_expression() for g in G]
    solutions = [{}]
    for v in reversed(variables):
        extended = []
        for partial in solutions:
            eqs = [simplify(substitute(b, partial), bounds) for b in basis]
            univariate = [q for q in eqs if q.free_symbols == {v}]
            if not univariate:
                raise InvalidForm(f"{v} is not determined: the system has infinitely many solutions")
            for root in _substituted_roots(univariate[0], v, bounds):
                candidate = {**partial, v: root}
                if all(_vanishes(q, {v: root}) for q in eqs if q.free_symbols <= {v}):
                    extended.append(candidate)
        solutions = extended
    return solutions

def _substituted_roots(q : Expr, v : Symbol, bounds : Optional[Bounds] = None) -> List[Expr]:
    """
    Roots of q in v after earlier roots were substituted into it.

    The coefficients may be irrational. Linear equations keep an exact root;
    higher degrees fall back to real roots of the numeric coefficients.
    """
    try:
        return solve(q, v, bounds)
    except InvalidForm:
        pass
    coeffs = []
    d = q
    for k in range(resolve(bounds).max_iterations):
        if is_zero(d):
            break
        c = simplify(substitute(d, {v: Number(0)}), bounds)
        coeffs.append(simplify(product([Number(Fraction(1, math.factorial(k))), c]), bounds))
        d = derivative(d, v, bounds=bounds)
    else:
        raise InvalidForm(f"{q} is not a polynomial in {v}")
    if len(coeffs) == 2:
        return [simplify(product([minus_one, coeffs[0], power(coeffs[1], minus_one)]), bounds)]
    try:
        values = [evaluate(c) for c in reversed(coeffs)]
    except UndefinedError as err:
        raise InvalidForm(f"{q} has coefficients without a real value") from err
    return numeric_roots(values, bounds)

def _vanishes(e, values) -> bool:
    value = simplify(substitute(e, values))
    if isinstance(value, Number):
        return abs(value.value) < 1e-9 if not value.is_exact else value.value == 0
    try:
        return abs(evaluate(value)) < 1e-9
    except UndefinedError:
        return False

def _numeric(f, x):
    f = convert(f)
    df = diff(f, x)
    return (lambda v: evaluate(f, {x: v})), (lambda v: evaluate(df, {x: v}))

def newton(f, x : Symbol, x0 : float, tol=None, max_iterations=None,
           bounds : Optional[Bounds] = None) -> float:
    bounds = resolve(bounds)
    tol = bounds.tolerance if tol is None else tol
    max_iterations = bounds.max_iterations if max_iterations is None else max_iterations
    F, dF = _numeric(f, x)
    v = float(x0)
    for _ in range(max_iterations):
        fv = F(v)
        if abs(fv) < tol:
            return v
        slope = dF(v)
        if slope == 0:
            raise MaxIterationsReached(max_iterations, v).add_context(f"zero derivative at {v}")
        step = fv / slope
        v -= step
        if abs(step) < tol * max(1.0, abs(v)):
            return v
    raise MaxIterationsReached(max_iterations, v).add_context("newton")

def bisection(f, x : Symbol, a : float, b : float, tol=None, max_iterations=None,
              bounds : Optional[Bounds] = None) -> float:
    bounds = resolve(bounds)
    tol = bounds.tolerance if tol is None else tol
    max_iterations = bounds.max_iterations if max_iterations is None else max_iterations
    F, _ = _numeric(f, x)
    a, b = float(a), float(b)
    fa, fb = F(a), F(b)
    if fa == 0:
        return a
    if fb == 0:
        return b
    if math.copysign(1, fa) == math.copysign(1, fb):
        raise InvalidForm(f"no sign change on [{a}, {b}]")
    for _ in range(max_iterations):
        m = (a + b) / 2
        fm = F(m)
        if fm == 0 or (b - a) / 2 < tol:
            return m
        if math.copysign(1, fm) == math.copysign(1, fa):
            a, fa = m, fm
        else:
            b, fb = m, fm
    raise MaxIterationsReached(max_iterations, (a + b) / 2).add_context("bisection")

def secant(f, x : Symbol, x0 : float, x1 : float, tol=None, max_iterations=None,
           bounds : Optional[Bounds] = None) -> float:
    bounds = resolve(bounds)
    tol = bounds.tolerance if tol is None else tol
    max_iterations = bounds.max_iterations if max_iterations is None else max_iterations
    F, _ = _numeric(f, x)
    a, b = float(x0), float(x1)
    fa, fb = F(a), F(b)
    for _ in range(max_iterations):
        if abs(fb) < tol:
            return b
        if fb == fa:
            break
        a, b = b, b - fb * (b - a) / (fb - fa)
        fa, fb = fb, F(b)
        if abs(b - a) < tol * max(1.0, abs(b)):
            return b
    raise MaxIterationsReached(max_iterations, b).add_context("secant")
