"""
Integration strategy dispatch.

Strategies are tried in a fixed order; the first that produces a closed
form wins. Anything left over is returned as an unevaluated Integral node.
"""
from typing import Optional, Tuple
import logging

from .config import Bounds, resolve
from .derivatives import diff
from .expressions import (Expr, Symbol, Function, Pow, Mul, Add, Integral, Undefined,
    E, convert, undefined, zero, one, minus_one, half, is_integer, function, power,
    product, summation)
from .simplify import expand, simplify, substitute

_logger = logging.getLogger(__name__)

PARTS_PARTNERS = ("exp", "sin", "cos", "sinh", "cosh")

def integrate(e, x : Symbol, lower=None, upper=None, bounds : Optional[Bounds] = None) -> Expr:
    """Antiderivative of e in x, or the definite integral when both limits are given."""
    bounds = resolve(bounds)
    e = simplify(e, bounds)
    if (lower is None) != (upper is None):
        raise ValueError("a definite integral needs both limits")
    F = simplify(antiderivative(e, x, bounds.integration_depth), bounds)
    if lower is None:
        return F
    lower, upper = convert(lower), convert(upper)
    if contains_integral(F):
        return Integral(e, x, lower, upper)
    return simplify(summation([substitute(F, {x: upper}),
                               product([minus_one, substitute(F, {x: lower})])]), bounds)

def contains_integral(e : Expr) -> bool:
    if isinstance(e, Integral):
        return True
    return any(contains_integral(a) for a in e.subexpressions())

def linear(u : Expr, x : Symbol) -> Optional[Tuple[Expr, Expr]]:
    """(a, b) with u == a*x + b and a free of x and nonzero, or None."""
    a = simplify(diff(u, x))
    if a.has(x) or a == zero or isinstance(a, Undefined):
        return None
    b = expand(summation([u, product([minus_one, a, x])]))
    if b.has(x):
        return None
    return a, b

def is_polynomial(u : Expr, x : Symbol) -> bool:
    if not u.has(x):
        return True
    if u == x:
        return True
    if isinstance(u, Pow):
        return is_integer(u.exponent) and u.exponent.value > 0 and is_polynomial(u.base, x)
    if isinstance(u, (Add, Mul)):
        return all(is_polynomial(a, x) for a in u.subexpressions())
    return False

def antiderivative(e : Expr, x : Symbol, depth : int) -> Expr:
    if isinstance(e, Undefined):
        return undefined
    if not e.has(x):
        return product([e, x])
    if isinstance(e, Add):
        return summation([antiderivative(t, x, depth) for t in e.terms])
    if isinstance(e, Mul):
        constant = [f for f in e.factors if not f.has(x)]
        if constant and e.is_commutative:
            rest = product([f for f in e.factors if f.has(x)])
            return product(constant + [antiderivative(rest, x, depth)])
    for strategy in (power_rule, exponential, registry_rule):
        result = strategy(e, x)
        if result is not None:
            _logger.debug("%s integrated by %s", e, strategy.__name__)
            return result
    if depth > 0:
        result = by_parts(e, x, depth)
        if result is not None:
            _logger.debug("%s integrated by parts", e)
            return result
        expanded = expand(e)
        if expanded != e and isinstance(expanded, Add):
            return antiderivative(expanded, x, depth - 1)
    _logger.debug("no strategy for %s, leaving it unevaluated", e)
    return Integral(e, x)

def power_rule(e, x):
    if e == x:
        return product([half, power(x, 2)])
    if not isinstance(e, Pow) or e.exponent.has(x):
        return None
    ab = linear(e.base, x)
    if ab is None:
        return None
    a, _ = ab
    n = e.exponent
    if n == minus_one:
        return product([power(a, minus_one), function("log", e.base)])
    n1 = summation([n, one])
    return product([power(n1, minus_one), power(a, minus_one), power(e.base, n1)])

def exponential(e, x):
    if not isinstance(e, Pow) or e.base.has(x):
        return None
    ab = linear(e.exponent, x)
    if ab is None:
        return None
    a, _ = ab
    if e.base == E:
        return product([power(a, minus_one), e])
    return product([power(product([a, function("log", e.base)]), minus_one), e])

def registry_rule(e, x):
    from .functions import LinearSubstitution, registry
    if not isinstance(e, Function) or len(e.args) != 1:
        return None
    props = registry.lookup(e.name)
    if props is None or props.antiderivative is None:
        return None
    (u,) = e.args
    rule = props.antiderivative
    if u == x:
        return rule.build(x)
    if isinstance(rule, LinearSubstitution):
        ab = linear(u, x)
        if ab is not None:
            return product([power(ab[0], minus_one), rule.build(u)])
    return None

def _parts_partner(f, x):
    if isinstance(f, Function) and f.name in PARTS_PARTNERS and len(f.args) == 1:
        return linear(f.args[0], x) is not None
    if isinstance(f, Pow) and f.base == E:
        return linear(f.exponent, x) is not None
    return False

def by_parts(e, x, depth):
    """Polynomial times exp/sin/cos/sinh/cosh of a linear argument."""
    if not isinstance(e, Mul) or not e.is_commutative:
        return None
    dependent = [f for f in e.factors if f.has(x)]
    if len(dependent) != 2:
        return None
    for u, dv in (dependent, dependent[::-1]):
        if is_polynomial(u, x) and _parts_partner(dv, x):
            v = antiderivative(dv, x, depth - 1)
            if contains_integral(v):
                return None
            coeff = product([f for f in e.factors if not f.has(x)])
            rest = antiderivative(simplify(product([diff(u, x), v])), x, depth - 1)
            return product([coeff, summation([product([u, v]), product([minus_one, rest])])])
    return None
