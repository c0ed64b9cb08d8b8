from typing import Dict, List, Mapping, Optional
import logging
import math

from .config import Bounds, resolve
from .errors import UndefinedError
from .expressions import (Expr, Number, Symbol, Constant, Function, Pow, Mul, Add,
    Calculus, Undefined, convert, is_integer, power, product, summation)

_logger = logging.getLogger(__name__)

def is_atom(e : Expr) -> bool:
    return isinstance(e, (Number, Symbol, Constant, Undefined))

def simplify(e, bounds : Optional[Bounds] = None) -> Expr:
    """
    Canonical form of `e`.

    Children are rebuilt through the smart constructors, which fold numbers,
    merge like terms and sort commutative operands. Passes repeat until the
    tree stops changing or `simplify_passes` is used up.
    """
    bounds = resolve(bounds)
    e = convert(e)
    for _ in range(bounds.simplify_passes):
        new = _rebuild(e, bounds)
        if new == e:
            return new
        e = new
    _logger.warning("simplify did not converge after %d passes: %s", bounds.simplify_passes, e)
    return e

def _rebuild(e, bounds):
    if is_atom(e):
        return e
    if isinstance(e, Pow):
        result = power(_rebuild(e.base, bounds), _rebuild(e.exponent, bounds))
        if bounds.fold_nested_powers and isinstance(result, Pow) and isinstance(result.base, Pow):
            result = power(result.base.base, product([result.base.exponent, result.exponent]))
        return result
    if isinstance(e, Calculus):
        return e.apply(lambda u: _rebuild(u, bounds))
    return e.rebuild(lambda u: _rebuild(u, bounds))

def expand(e) -> Expr:
    """Distribute products over sums and multiply out positive integer powers of sums."""
    e = convert(e)
    if is_atom(e):
        return e
    if isinstance(e, Add):
        return summation([expand(t) for t in e.terms])
    if isinstance(e, Mul):
        return distribute([expand(f) for f in e.factors])
    if isinstance(e, Pow):
        b = expand(e.base)
        n = expand(e.exponent)
        if isinstance(b, Add) and is_integer(n) and n.value > 1:
            out = b
            for _ in range(n.value - 1):
                out = distribute([out, b])
            return out
        p = power(b, n)
        if isinstance(p, Mul):
            return distribute([expand(f) for f in p.factors])
        return p
    if isinstance(e, Calculus):
        return e.apply(expand)
    return e.rebuild(expand)

def distribute(factors : List[Expr]) -> Expr:
    """Product of factors with every Add multiplied out, keeping factor order."""
    rows = [[]]
    for f in factors:
        terms = f.terms if isinstance(f, Add) else (f,)
        rows = [row + [t] for row in rows for t in terms]
    return summation([product(row) for row in rows])

def substitute(e, mapping : Mapping) -> Expr:
    """Simultaneous structural replacement, re-canonicalised on the way up."""
    table = {convert(k): convert(v) for k, v in mapping.items()}
    def walk(u, table):
        if u in table:
            return table[u]
        if is_atom(u):
            return u
        if isinstance(u, Calculus):
            bound = u.bound_symbols()
            inner = {k: v for k, v in table.items() if k not in bound}
            return u.apply(lambda w: walk(w, inner))
        return u.rebuild(lambda w: walk(w, table))
    return walk(convert(e), table)

CONSTANT_VALUES = {"pi": math.pi, "e": math.e, "oo": math.inf}

def evaluate(e, values : Optional[Mapping] = None) -> float:
    """Float value of `e` with symbols bound by `values`."""
    from .functions import registry
    env : Dict[Expr, float] = {}
    for k, v in (values or {}).items():
        key = Symbol(k) if isinstance(k, str) else convert(k)
        env[key] = float(v)

    def walk(u):
        if isinstance(u, Number):
            return float(u.value)
        if isinstance(u, Symbol):
            try:
                return env[u]
            except KeyError:
                raise UndefinedError(f"no value for symbol {u}") from None
        if isinstance(u, Constant):
            if u.name not in CONSTANT_VALUES:
                raise UndefinedError(f"{u} has no real value")
            return CONSTANT_VALUES[u.name]
        if isinstance(u, Add):
            return math.fsum(walk(t) for t in u.terms)
        if isinstance(u, Mul):
            return math.prod(walk(f) for f in u.factors)
        if isinstance(u, Pow):
            b, x = walk(u.base), walk(u.exponent)
            try:
                result = b ** x
            except ZeroDivisionError:
                raise UndefinedError(f"{u} divides by zero") from None
            except OverflowError:
                return math.inf
            if isinstance(result, complex):
                raise UndefinedError(f"{u} is not real")
            return result
        if isinstance(u, Function):
            props = registry.lookup(u.name)
            if props is None or props.evaluator is None:
                raise UndefinedError(f"no numeric evaluator for {u.name}")
            try:
                return float(props.evaluator(*(walk(a) for a in u.args)))
            except (ValueError, ZeroDivisionError) as err:
                raise UndefinedError(f"{u}: {err}") from None
        raise UndefinedError(f"cannot evaluate {u}")

    return walk(convert(e))
