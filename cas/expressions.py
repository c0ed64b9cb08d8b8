from dataclasses import dataclass, fields
from enum import Enum
from fractions import Fraction
from typing import List, Dict, Optional, Tuple, Any, Set, Union, Iterator

from . import numbers
from .errors import DivisionByZero

class Commutativity(Enum):
    scalar     = "Scalar"
    matrix     = "Matrix"
    operator   = "Operator"
    quaternion = "Quaternion"

CONSTANT_NAMES = ("pi", "e", "i", "oo")

@dataclass(eq=False)
class Expr:
    precedence = 1000
    kind = -1

    def __str__(self):
        return self.stringify(default_repr)

    def __add__(self, other):
        return add(self, convert(other))

    def __radd__(self, other):
        return add(convert(other), self)

    def __sub__(self, other):
        return add(self, neg(convert(other)))

    def __rsub__(self, other):
        return add(convert(other), neg(self))

    def __mul__(self, other):
        return mul(self, convert(other))

    def __rmul__(self, other):
        return mul(convert(other), self)

    def __truediv__(self, other):
        return mul(self, power(convert(other), minus_one))

    def __rtruediv__(self, other):
        return mul(convert(other), power(self, minus_one))

    def __pow__(self, other):
        return power(self, convert(other))

    def __rpow__(self, other):
        return power(convert(other), self)

    def __neg__(self):
        return neg(self)

    def __hash__(self):
        h = self.__dict__.get("_hash")
        if h is None:
            h = hash((self.kind, type(self).__name__) + self._parts())
            self.__dict__["_hash"] = h
        return h

    def __eq__(self, other):
        if self is other:
            return True
        if isinstance(other, Expr) and self.kind == other.kind and type(self) is type(other):
            return self._eq(other)
        return False

    def __lt__(self, other):
        if not isinstance(other, Expr):
            return NotImplemented
        if self.kind != other.kind:
            return self.kind < other.kind
        return self._lt(other)

    def _parts(self) -> Tuple:
        return tuple(getattr(self, f.name) for f in fields(self))

    def _eq(self, other):
        return self._parts() == other._parts()

    def _lt(self, other):
        if type(self) is not type(other):
            return type(self).__name__ < type(other).__name__
        return lex_less(self._parts(), other._parts())

    def subexpressions(self) -> Iterator['Expr']:
        for f in fields(self):
            a = getattr(self, f.name)
            if isinstance(a, Expr):
                yield a

    def apply(self, fn):
        """Raw rebuild with `fn` applied to every child; no canonicalisation."""
        attrs = {}
        for f in fields(self):
            a = getattr(self, f.name)
            attrs[f.name] = fn(a) if isinstance(a, Expr) else a
        return type(self)(**attrs)

    def rebuild(self, fn):
        """Rebuild through the smart constructor of this node type."""
        return self.apply(fn)

    @property
    def is_commutative(self) -> bool:
        return all(a.is_commutative for a in self.subexpressions())

    @property
    def free_symbols(self) -> Set['Symbol']:
        out = set()
        for a in self.subexpressions():
            out |= a.free_symbols
        return out

    def has(self, sym) -> bool:
        return sym in self.free_symbols

    def contains(self, sub) -> bool:
        if self == sub:
            return True
        return any(a.contains(sub) for a in self.subexpressions())

@dataclass(eq=False)
class Number(Expr):
    value : Union[int, Fraction, float]
    kind = 0

    def __post_init__(self):
        self.value = numbers.canonical(self.value)

    @property
    def precedence(self):
        if isinstance(self.value, Fraction) or self.value < 0:
            return 15
        return 1000

    @property
    def variant(self) -> str:
        return numbers.variant(self.value)

    @property
    def is_exact(self) -> bool:
        return numbers.is_exact(self.value)

    @property
    def is_commutative(self):
        return True

    @property
    def free_symbols(self):
        return set()

    def stringify(self, s):
        return str(self.value)

    def __float__(self):
        return float(self.value)

    def _eq(self, other):
        return self.is_exact == other.is_exact and self.value == other.value

    def _lt(self, other):
        if self.value != other.value:
            return self.value < other.value
        return self.is_exact and not other.is_exact

@dataclass(eq=False)
class Constant(Expr):
    name : str
    kind = 1

    def __post_init__(self):
        if self.name not in CONSTANT_NAMES:
            raise ValueError(f"unknown constant {self.name!r}, expected one of {CONSTANT_NAMES}")

    @property
    def is_commutative(self):
        return True

    @property
    def free_symbols(self):
        return set()

    def stringify(self, s):
        return {"pi": "pi", "e": "E", "i": "I", "oo": "oo"}[self.name]

    def _lt(self, other):
        return CONSTANT_NAMES.index(self.name) < CONSTANT_NAMES.index(other.name)

@dataclass(eq=False)
class Symbol(Expr):
    name : str
    commutativity : Commutativity = Commutativity.scalar
    kind = 2

    @property
    def is_commutative(self):
        return self.commutativity is Commutativity.scalar

    @property
    def free_symbols(self):
        return {self}

    def stringify(self, s):
        return self.name

    def _lt(self, other):
        return (self.name, self.commutativity.value) < (other.name, other.commutativity.value)

@dataclass(eq=False)
class Function(Expr):
    name : str
    args : Tuple[Expr, ...]
    kind = 3

    def __post_init__(self):
        self.args = tuple(self.args)

    def subexpressions(self):
        yield from self.args

    def apply(self, fn):
        return Function(self.name, tuple(fn(a) for a in self.args))

    def rebuild(self, fn):
        return function(self.name, *[fn(a) for a in self.args])

    def stringify(self, s):
        return self.name + "(" + ", ".join(s(a) for a in self.args) + ")"

    def _parts(self):
        return (self.name,) + self.args

    def _lt(self, other):
        if self.name != other.name:
            return self.name < other.name
        if len(self.args) != len(other.args):
            return len(self.args) < len(other.args)
        return lex_less(self.args, other.args)

@dataclass(eq=False)
class Pow(Expr):
    base     : Expr
    exponent : Expr
    kind = 4
    precedence = 30

    def rebuild(self, fn):
        return power(fn(self.base), fn(self.exponent))

    @property
    def is_commutative(self):
        return self.base.is_commutative

    def stringify(self, s):
        return f"{s(self.base, 30)}**{s(self.exponent, 30)}"

    def _lt(self, other):
        if self.base != other.base:
            return self.base < other.base
        return self.exponent < other.exponent

@dataclass(eq=False)
class Mul(Expr):
    factors : Tuple[Expr, ...]
    kind = 5
    precedence = 20

    def __post_init__(self):
        self.factors = tuple(self.factors)

    def subexpressions(self):
        yield from self.factors

    def apply(self, fn):
        return Mul(tuple(fn(x) for x in self.factors))

    def rebuild(self, fn):
        return product([fn(x) for x in self.factors])

    def stringify(self, s):
        out = []
        for factor in self.factors:
            out.append(s(factor, 20))
        return "*".join(out)

    def _parts(self):
        return self.factors

    def _lt(self, other):
        m = len(self.factors)
        n = len(other.factors)
        if m != n:
            return m < n
        return lex_less(self.factors, other.factors)

@dataclass(eq=False)
class Add(Expr):
    terms : Tuple[Expr, ...]
    kind = 6
    precedence = 10

    def __post_init__(self):
        self.terms = tuple(self.terms)

    def subexpressions(self):
        yield from self.terms

    def apply(self, fn):
        return Add(tuple(fn(x) for x in self.terms))

    def rebuild(self, fn):
        return summation([fn(x) for x in self.terms])

    def stringify(self, s):
        out = []
        for term in self.terms:
            out.append(s(term, 10))
        return " + ".join(out)

    def _parts(self):
        return self.terms

    def _lt(self, other):
        m = len(self.terms)
        n = len(other.terms)
        if m != n:
            return m < n
        return lex_less(self.terms, other.terms)

@dataclass(eq=False)
class Calculus(Expr):
    kind = 7

    def bound_symbols(self) -> Set[Symbol]:
        return set()

    def apply(self, fn):
        # the variable names the binder, it is never rewritten
        attrs = {}
        for f in fields(self):
            a = getattr(self, f.name)
            attrs[f.name] = fn(a) if isinstance(a, Expr) and f.name != "variable" else a
        return type(self)(**attrs)

    @property
    def free_symbols(self):
        return super().free_symbols - self.bound_symbols()

    def stringify(self, s):
        parts = [s(a) if isinstance(a, Expr) else str(a) for a in self._parts() if a is not None]
        return type(self).__name__ + "(" + ", ".join(parts) + ")"

@dataclass(eq=False)
class Derivative(Calculus):
    expr     : Expr
    variable : Symbol
    order    : int = 1

@dataclass(eq=False)
class Integral(Calculus):
    integrand : Expr
    variable  : Symbol
    lower     : Optional[Expr] = None
    upper     : Optional[Expr] = None

    @property
    def definite(self):
        return self.lower is not None and self.upper is not None

    def bound_symbols(self):
        return {self.variable} if self.definite else set()

@dataclass(eq=False)
class Limit(Calculus):
    expr      : Expr
    variable  : Symbol
    point     : Expr
    direction : str = "both"

    def bound_symbols(self):
        return {self.variable}

@dataclass(eq=False)
class Sum(Calculus):
    expr     : Expr
    variable : Symbol
    lower    : Expr
    upper    : Expr

    def bound_symbols(self):
        return {self.variable}

@dataclass(eq=False)
class Product(Calculus):
    expr     : Expr
    variable : Symbol
    lower    : Expr
    upper    : Expr

    def bound_symbols(self):
        return {self.variable}

@dataclass(eq=False)
class Undefined(Expr):
    kind = 8

    @property
    def is_commutative(self):
        return True

    @property
    def free_symbols(self):
        return set()

    def stringify(self, s):
        return "undefined"

def lex_less(xs, ys):
    for x, y in zip(xs, ys):
        if x == y:
            continue
        if x is None or y is None:
            return x is None
        if type(x) is not type(y) and not (isinstance(x, Expr) and isinstance(y, Expr)):
            return type(x).__name__ < type(y).__name__
        return x < y
    return len(xs) < len(ys)

undefined = Undefined()
zero      = Number(0)
one       = Number(1)
minus_one = Number(-1)
half      = Number(Fraction(1, 2))
pi        = Constant("pi")
E         = Constant("e")
I         = Constant("i")
oo        = Constant("oo")

def convert(obj) -> Expr:
    if isinstance(obj, Expr):
        return obj
    elif isinstance(obj, (bool, int, Fraction, float)):
        return Number(obj)
    else:
        raise TypeError(f"cannot convert {obj!r} : {type(obj).__name__} to an expression")

def is_number(u, value=None) -> bool:
    if not isinstance(u, Number):
        return False
    return value is None or (u.is_exact and u.value == value)

def is_zero(u) -> bool:
    return isinstance(u, Number) and u.value == 0

def is_integer(u) -> bool:
    return isinstance(u, Number) and isinstance(u.value, int)

def is_negative_number(u) -> bool:
    return isinstance(u, Number) and u.value < 0

def is_nonnegative(u) -> bool:
    if isinstance(u, Number):
        return u.value >= 0
    if isinstance(u, Constant):
        return u.name in ("pi", "e", "oo")
    return False

def base(u):
    if isinstance(u, Pow):
        return u.base
    else:
        return u

def exponent(u):
    if isinstance(u, Pow):
        return u.exponent
    else:
        return one

def term(u):
    """The non-numeric tail of a summand."""
    if isinstance(u, Mul) and isinstance(u.factors[0], Number):
        if len(u.factors) == 2:
            return u.factors[1]
        else:
            return Mul(u.factors[1:])
    return u

def const(u):
    """The numeric coefficient of a summand."""
    if isinstance(u, Mul) and isinstance(u.factors[0], Number):
        return u.factors[0]
    return one

def scaled(coeff, tail):
    if numbers.is_exact(coeff) and coeff == 1:
        return tail
    if isinstance(tail, Mul):
        return Mul((Number(coeff),) + tail.factors)
    return Mul((Number(coeff), tail))

def integer(n) -> Number:
    return Number(int(n))

def rational(p, q=1) -> Number:
    if q == 0:
        raise DivisionByZero(f"rational {p}/{q}")
    return Number(Fraction(p, q))

def floating(x) -> Number:
    return Number(float(x))

def symbol(name, commutativity=Commutativity.scalar) -> Symbol:
    return Symbol(name, commutativity)

def symbols(names, commutativity=Commutativity.scalar) -> Tuple[Symbol, ...]:
    return tuple(Symbol(n, commutativity) for n in names.replace(",", " ").split())

def constant(name) -> Constant:
    return Constant(name)

def add(*terms):
    return summation(list(terms))

def mul(*factors):
    return product(list(factors))

def neg(u):
    return product([minus_one, u])

def function(name, *args):
    from .functions import registry
    return registry.canonical(name, [convert(a) for a in args])

def power(v, w):
    v = convert(v)
    w = convert(w)
    if isinstance(v, Undefined) or isinstance(w, Undefined):
        return undefined
    if is_zero(w):
        if is_zero(v):
            return undefined
        return Number(1.0) if not w.is_exact else one
    if is_number(w, 1):
        return v
    if isinstance(v, Number):
        if is_number(v, 1):
            return one
        if is_zero(v):
            if isinstance(w, Number):
                if w.value > 0:
                    return v
                raise DivisionByZero(f"{v} ** {w}")
            return Pow(v, w)
        if isinstance(w, Number):
            value = numbers.power(v.value, w.value)
            if value is not None:
                return Number(value)
        return Pow(v, w)
    if v == I and is_integer(w):
        return (one, I, minus_one, neg(I))[w.value % 4]
    if isinstance(v, Pow):
        inner, a = v.base, v.exponent
        if (is_integer(a) and is_integer(w)) or is_nonnegative(inner):
            return power(inner, product([a, w]))
        return Pow(v, w)
    if isinstance(v, Mul) and is_integer(w) and v.is_commutative:
        return product([power(x, w) for x in v.factors])
    return Pow(v, w)

def summation(terms):
    flat = []
    for t in terms:
        t = convert(t)
        if isinstance(t, Add):
            flat.extend(t.terms)
        else:
            flat.append(t)
    if any(isinstance(t, Undefined) for t in flat):
        return undefined
    total = 0
    others = []
    for t in flat:
        if isinstance(t, Number):
            total = numbers.add(total, t.value)
        else:
            others.append(t)
    if all(t.is_commutative for t in others):
        buckets : Dict[Expr, Any] = {}
        for t in others:
            tail = term(t)
            c = const(t).value
            buckets[tail] = numbers.add(buckets[tail], c) if tail in buckets else c
        out = []
        for tail, c in buckets.items():
            if c != 0:
                out.append(scaled(c, tail))
            elif not numbers.is_exact(c):
                # a cancelled float term leaves a float zero behind
                total = numbers.add(total, c)
        out.sort()
    else:
        out = summation_fold(others)
        if not out and not all(numbers.is_exact(const(t).value) for t in others):
            total = numbers.add(total, 0.0)
    if not out:
        return Number(total)
    if total != 0:
        out.insert(0, Number(total))
    if len(out) == 1:
        return out[0]
    return Add(tuple(out))

def summation_fold(terms):
    """Combine adjacent like terms without reordering."""
    out = []
    for t in terms:
        if out and term(out[-1]) == term(t):
            c = numbers.add(const(out[-1]).value, const(t).value)
            tail = term(t)
            out.pop()
            if c != 0:
                out.append(scaled(c, tail))
        else:
            out.append(t)
    return out

def product(factors):
    flat = []
    for f in factors:
        f = convert(f)
        if isinstance(f, Mul):
            flat.extend(f.factors)
        else:
            flat.append(f)
    if any(isinstance(f, Undefined) for f in flat):
        return undefined
    coeff = 1
    others = []
    for f in flat:
        if isinstance(f, Number):
            coeff = numbers.mul(coeff, f.value)
        else:
            others.append(f)
    if coeff == 0:
        for f in others:
            if isinstance(f, Pow) and is_zero(f.base) and is_negative_number(f.exponent):
                raise DivisionByZero(f"{f} in product")
        return Number(coeff)
    commutative = all(f.is_commutative for f in others)
    changed = True
    while changed:
        if commutative:
            coeff, others, changed = product_fold(coeff, others)
        else:
            coeff, others, changed = product_fold_ordered(coeff, others)
        if coeff is None:
            return undefined
        if coeff == 0:
            return Number(coeff)
    if commutative:
        others.sort()
    if not others:
        return Number(coeff)
    if not (numbers.is_exact(coeff) and coeff == 1):
        others.insert(0, Number(coeff))
    if len(others) == 1:
        return others[0]
    return Mul(tuple(others))

def absorb(coeff, out, p):
    """Place a merged power into the running product; True if it reshaped the factor list."""
    if isinstance(p, Undefined):
        return None, True
    if isinstance(p, Number):
        return numbers.mul(coeff, p.value), True
    if isinstance(p, Mul):
        for f in p.factors:
            if isinstance(f, Number):
                coeff = numbers.mul(coeff, f.value)
            else:
                out.append(f)
        return coeff, True
    out.append(p)
    return coeff, False

def product_fold(coeff, factors):
    buckets : Dict[Expr, List[Expr]] = {}
    for f in factors:
        buckets.setdefault(base(f), []).append(f)
    out = []
    changed = False
    for b, fs in buckets.items():
        if len(fs) == 1:
            out.append(fs[0])
            continue
        p = power(b, summation([exponent(f) for f in fs]))
        coeff, reshaped = absorb(coeff, out, p)
        changed |= reshaped
        if coeff is None:
            return None, out, False
    return coeff, out, changed

def product_fold_ordered(coeff, factors):
    out = []
    changed = False
    for f in factors:
        if out and base(out[-1]) == base(f):
            prev = out.pop()
            p = power(base(f), summation([exponent(prev), exponent(f)]))
            coeff, _ = absorb(coeff, out, p)
            changed = True
            if coeff is None:
                return None, out, False
        else:
            out.append(f)
    return coeff, out, changed

def default_repr(expr, precedence=0):
    if not isinstance(expr, Expr):
        return str(expr)
    elif precedence < expr.precedence:
        return str(expr)
    else:
        return "(" + str(expr) + ")"
