from typing import List, Optional, Sequence
import logging

from .config import Bounds
from .expressions import (Expr, Number, Symbol, Constant, Function, Pow, Mul, Add,
    Undefined, Derivative, Integral, Sum, convert, undefined, zero, one, minus_one,
    function, power, product, summation)
from .simplify import simplify, substitute

_logger = logging.getLogger(__name__)

def derivative(e, x : Symbol, order : int = 1, bounds : Optional[Bounds] = None) -> Expr:
    """d^order e / dx^order, simplified after every application."""
    if order < 0:
        raise ValueError(f"derivative order must be >= 0, got {order}")
    e = convert(e)
    for _ in range(order):
        e = simplify(diff(e, x), bounds)
    return e

def diff(e : Expr, x : Symbol) -> Expr:
    """First derivative of e with respect to x."""
    if isinstance(e, Undefined):
        return undefined
    if isinstance(e, (Number, Constant)):
        return zero
    if isinstance(e, Symbol):
        return one if e == x else zero
    if not e.has(x):
        return zero
    if isinstance(e, Add):
        return summation([diff(t, x) for t in e.terms])
    if isinstance(e, Mul):
        return product_rule(list(e.factors), x)
    if isinstance(e, Pow):
        return power_rule(e.base, e.exponent, x)
    if isinstance(e, Function):
        return chain_rule(e, x)
    if isinstance(e, Derivative):
        if e.variable == x:
            return Derivative(e.expr, x, e.order + 1)
        return Derivative(e, x, 1)
    if isinstance(e, Integral):
        return leibniz_rule(e, x)
    if isinstance(e, Sum) and e.variable != x:
        return Sum(diff(e.expr, x), e.variable, e.lower, e.upper)
    return Derivative(e, x, 1)

def product_rule(factors : List[Expr], x : Symbol) -> Expr:
    # Each term replaces one factor in place, so noncommutative order survives.
    terms = []
    for i, f in enumerate(factors):
        df = diff(f, x)
        if df == zero:
            continue
        terms.append(product(factors[:i] + [df] + factors[i+1:]))
    return summation(terms)

def power_rule(f : Expr, g : Expr, x : Symbol) -> Expr:
    df = diff(f, x)
    if not g.has(x):
        return product([g, power(f, summation([g, minus_one])), df])
    dg = diff(g, x)
    ln_f = function("log", f)
    if not f.has(x):
        return product([power(f, g), ln_f, dg])
    return product([power(f, g),
                    summation([product([dg, ln_f]),
                               product([g, df, power(f, minus_one)])])])

def chain_rule(e : Function, x : Symbol) -> Expr:
    from .functions import registry
    props = registry.lookup(e.name)
    if props is None or props.derivative is None or len(e.args) != 1:
        _logger.debug("no derivative rule for %s, leaving it unevaluated", e.name)
        return Derivative(e, x, 1)
    (u,) = e.args
    return product([props.derivative.build(u), diff(u, x)])

def leibniz_rule(e : Integral, x : Symbol) -> Expr:
    if not e.definite:
        if e.variable == x:
            return e.integrand
        return Integral(diff(e.integrand, x), e.variable)
    v = e.variable
    terms = [product([substitute(e.integrand, {v: e.upper}), diff(e.upper, x)]),
             product([minus_one, substitute(e.integrand, {v: e.lower}), diff(e.lower, x)])]
    if v != x and e.integrand.has(x):
        terms.append(Integral(diff(e.integrand, x), v, e.lower, e.upper))
    return summation(terms)

def gradient(e, variables : Sequence[Symbol], bounds : Optional[Bounds] = None) -> List[Expr]:
    return [derivative(e, v, 1, bounds) for v in variables]

def jacobian(es : Sequence, variables : Sequence[Symbol],
             bounds : Optional[Bounds] = None) -> List[List[Expr]]:
    return [gradient(e, variables, bounds) for e in es]

def hessian(e, variables : Sequence[Symbol], bounds : Optional[Bounds] = None) -> List[List[Expr]]:
    return jacobian(gradient(e, variables, bounds), variables, bounds)
