"""
Pattern language and matcher.

A pattern mirrors the expression tree with wildcards at the leaves. Add
and Mul patterns match their operands associatively and commutatively when
every operand commutes; otherwise operands align by position. A sub-pattern
may absorb a group of operands when the pattern is shorter than the node,
the group being rebuilt with the node's own constructor.
"""
from dataclasses import dataclass
from itertools import permutations, product as cartesian
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .config import Bounds, resolve
from .expressions import (Expr, Add, Mul, Pow, Function, convert, function,
    power, product, summation)

Bindings = Dict[str, Expr]

class Pattern:
    priority = 2

@dataclass(frozen=True)
class Wildcard(Pattern):
    name      : str
    exclude   : Tuple[Expr, ...] = ()
    predicate : Optional[Callable[[Expr], bool]] = None
    priority = 3

    def accepts(self, expr : Expr) -> bool:
        if any(expr.contains(e) for e in self.exclude):
            return False
        return self.predicate is None or bool(self.predicate(expr))

@dataclass(frozen=True)
class Exact(Pattern):
    expr : Expr
    priority = 0

    def __post_init__(self):
        object.__setattr__(self, "expr", convert(self.expr))

@dataclass(frozen=True)
class PAdd(Pattern):
    terms : Tuple[Pattern, ...]

    def __init__(self, terms):
        object.__setattr__(self, "terms", tuple(as_pattern(t) for t in terms))

@dataclass(frozen=True)
class PMul(Pattern):
    factors : Tuple[Pattern, ...]

    def __init__(self, factors):
        object.__setattr__(self, "factors", tuple(as_pattern(f) for f in factors))

@dataclass(frozen=True)
class PPow(Pattern):
    base     : Pattern
    exponent : Pattern
    priority = 1

    def __init__(self, base, exponent):
        object.__setattr__(self, "base", as_pattern(base))
        object.__setattr__(self, "exponent", as_pattern(exponent))

@dataclass(frozen=True)
class PFunction(Pattern):
    name : str
    args : Tuple[Pattern, ...]
    priority = 1

    def __init__(self, name, args):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "args", tuple(as_pattern(a) for a in args))

def as_pattern(obj) -> Pattern:
    if isinstance(obj, Pattern):
        return obj
    return Exact(convert(obj))

def wildcards(pattern : Pattern) -> List[str]:
    """Wildcard names in order of first occurrence."""
    out = []
    def walk(p):
        if isinstance(p, Wildcard):
            if p.name not in out:
                out.append(p.name)
        for child in children(p):
            walk(child)
    walk(pattern)
    return out

def children(pattern : Pattern) -> Sequence[Pattern]:
    if isinstance(pattern, PAdd):
        return pattern.terms
    if isinstance(pattern, PMul):
        return pattern.factors
    if isinstance(pattern, PPow):
        return (pattern.base, pattern.exponent)
    if isinstance(pattern, PFunction):
        return pattern.args
    return ()

def match(expr : Expr, pattern, bindings : Optional[Bindings] = None,
          bounds : Optional[Bounds] = None) -> Optional[Bindings]:
    """First consistent binding of `pattern` against `expr`, or None."""
    for b in match_all(expr, pattern, bindings, bounds):
        return b
    return None

def match_all(expr : Expr, pattern, bindings : Optional[Bindings] = None,
              bounds : Optional[Bounds] = None) -> Iterator[Bindings]:
    limit = resolve(bounds).permutation_limit
    return _match(convert(expr), as_pattern(pattern), dict(bindings or {}), limit)

def _match(expr, pat, b, limit) -> Iterator[Bindings]:
    if isinstance(pat, Wildcard):
        if not pat.accepts(expr):
            return
        if pat.name in b:
            if b[pat.name] == expr:
                yield b
        else:
            yield {**b, pat.name: expr}
    elif isinstance(pat, Exact):
        if expr == pat.expr:
            yield b
    elif isinstance(pat, PPow):
        if isinstance(expr, Pow):
            for b1 in _match(expr.base, pat.base, b, limit):
                yield from _match(expr.exponent, pat.exponent, b1, limit)
    elif isinstance(pat, PFunction):
        if isinstance(expr, Function) and expr.name == pat.name \
           and len(expr.args) == len(pat.args):
            yield from _sequence(list(expr.args), list(pat.args), b, limit)
    elif isinstance(pat, PAdd):
        if isinstance(expr, Add):
            yield from _operands(list(expr.terms), list(pat.terms), b, limit, summation)
    elif isinstance(pat, PMul):
        if isinstance(expr, Mul):
            yield from _operands(list(expr.factors), list(pat.factors), b, limit, product)
    else:
        raise TypeError(f"not a pattern: {pat!r}")

def _sequence(exprs, pats, b, limit):
    if not pats:
        yield b
        return
    for b1 in _match(exprs[0], pats[0], b, limit):
        yield from _sequence(exprs[1:], pats[1:], b1, limit)

def _operands(ops, pats, b, limit, rebuild):
    n, m = len(pats), len(ops)
    if n == 0 or n > m:
        return
    commutative = all(op.is_commutative for op in ops)
    if n == m:
        if not commutative:
            yield from _sequence(ops, pats, b, limit)
        elif m <= limit:
            for perm in permutations(ops):
                yield from _sequence(list(perm), pats, b, limit)
        else:
            order = sorted(range(n), key=lambda i: pats[i].priority)
            yield from _greedy(ops, [pats[i] for i in order], b, limit)
    elif not commutative:
        for groups in _runs(ops, n):
            yield from _sequence([rebuild(g) for g in groups], pats, b, limit)
    elif m <= limit:
        for groups in _groupings(ops, n):
            yield from _sequence([rebuild(g) for g in groups], pats, b, limit)
    else:
        yield from _absorb_rest(ops, pats, b, limit, rebuild)

def _greedy(ops, pats, b, limit):
    """Assign each pattern to the first compatible unused operand, backtracking."""
    if not pats:
        yield b
        return
    for i, op in enumerate(ops):
        for b1 in _match(op, pats[0], b, limit):
            yield from _greedy(ops[:i] + ops[i+1:], pats[1:], b1, limit)

def _groupings(ops, n):
    """Every split of ops into n non-empty groups, one group per pattern."""
    seen = set()
    for assign in cartesian(range(n), repeat=len(ops)):
        if len(set(assign)) != n:
            continue
        groups = tuple(tuple(op for op, k in zip(ops, assign) if k == i) for i in range(n))
        if groups in seen:
            continue
        seen.add(groups)
        yield [list(g) for g in groups]

def _runs(ops, n):
    """Every split of ops into n contiguous non-empty runs."""
    if n == 1:
        yield [ops]
        return
    for cut in range(1, len(ops) - n + 2):
        for rest in _runs(ops[cut:], n - 1):
            yield [ops[:cut]] + rest

def _absorb_rest(ops, pats, b, limit, rebuild):
    # Beyond the permutation limit one pattern takes every operand the
    # others leave unmatched; wildcards are tried as the absorber first.
    order = sorted(range(len(pats)), key=lambda i: -pats[i].priority)
    for k in order:
        others = [pats[i] for i in range(len(pats)) if i != k]
        others.sort(key=lambda p: p.priority)
        for used, b1 in _greedy_taken(ops, others, b, limit):
            rest = [op for i, op in enumerate(ops) if i not in used]
            yield from _match(rebuild(rest), pats[k], b1, limit)

def _greedy_taken(ops, pats, b, limit, taken=frozenset()):
    if not pats:
        yield taken, b
        return
    for i, op in enumerate(ops):
        if i in taken:
            continue
        for b1 in _match(op, pats[0], b, limit):
            yield from _greedy_taken(ops, pats[1:], b1, limit, taken | {i})

def instantiate(pattern, bindings : Bindings) -> Expr:
    """Build the expression a pattern denotes under `bindings`."""
    pattern = as_pattern(pattern)
    if isinstance(pattern, Wildcard):
        try:
            return bindings[pattern.name]
        except KeyError:
            raise ValueError(f"wildcard {pattern.name!r} is unbound") from None
    if isinstance(pattern, Exact):
        return pattern.expr
    if isinstance(pattern, PAdd):
        return summation([instantiate(t, bindings) for t in pattern.terms])
    if isinstance(pattern, PMul):
        return product([instantiate(f, bindings) for f in pattern.factors])
    if isinstance(pattern, PPow):
        return power(instantiate(pattern.base, bindings), instantiate(pattern.exponent, bindings))
    if isinstance(pattern, PFunction):
        return function(pattern.name, *[instantiate(a, bindings) for a in pattern.args])
    raise TypeError(f"not a pattern: {pattern!r}")

Replacement = Union[Pattern, Expr, Callable[[Bindings], Expr]]

def build(replacement : Replacement, bindings : Bindings) -> Expr:
    if isinstance(replacement, (Pattern, Expr)):
        return instantiate(replacement, bindings)
    return convert(replacement(bindings))

def replace(expr : Expr, pattern, replacement : Replacement,
            bounds : Optional[Bounds] = None) -> Expr:
    """Single top-down pass: every maximal match is replaced once."""
    pattern = as_pattern(pattern)
    def walk(u):
        b = match(u, pattern, bounds=bounds)
        if b is not None:
            return build(replacement, b)
        if not any(True for _ in u.subexpressions()):
            return u
        return u.rebuild(walk)
    return walk(convert(expr))
