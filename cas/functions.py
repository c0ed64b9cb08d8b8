"""
Function-property registry.

Every named function the algebra knows about has one FunctionProperties
record: its special values, its derivative and antiderivative rules, the
structural identities the rewrite runtime may apply, and a float evaluator.
The registry is seeded below from a static table and finalized on first
lookup; after that it is a read-only mapping and further registration is
rejected.
"""
from dataclasses import dataclass
from fractions import Fraction
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Tuple, Union
import logging
import math

from .expressions import (Expr, Function, Number, Undefined, undefined,
    zero, one, minus_one, half, pi, E, function, power, product, summation)
from .patterns import Pattern, Wildcard, Exact, PMul, PFunction

_logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Simple:
    """rule(u) = coefficient * name(u)"""
    coefficient : Expr
    name        : str

    def build(self, u : Expr) -> Expr:
        return product([self.coefficient, function(self.name, u)])

@dataclass(frozen=True)
class Custom:
    builder : Callable[[Expr], Expr]

    def build(self, u : Expr) -> Expr:
        return self.builder(u)

@dataclass(frozen=True)
class LinearSubstitution:
    """An antiderivative F that may be applied to f(a*x + b) as F(a*x + b)/a."""
    inner : Union[Simple, Custom]

    def build(self, u : Expr) -> Expr:
        return self.inner.build(u)

DerivativeRule = Union[Simple, Custom]
AntiderivativeRule = Union[Simple, Custom, LinearSubstitution]

@dataclass(frozen=True)
class FunctionProperties:
    name           : str
    arity          : int = 1
    special_values : Tuple[Tuple[Tuple[Expr, ...], Expr], ...] = ()
    derivative     : Optional[DerivativeRule] = None
    antiderivative : Optional[AntiderivativeRule] = None
    identities     : Tuple[Tuple[Pattern, Pattern], ...] = ()
    evaluator      : Optional[Callable[..., float]] = None
    exact          : Optional[Callable[[Tuple[Expr, ...]], Optional[Expr]]] = None

    def special_value(self, args : Tuple[Expr, ...]) -> Optional[Expr]:
        for pattern, value in self.special_values:
            if pattern == args:
                return value
        return None

class RegistryFinalized(RuntimeError):
    pass

class FunctionRegistry:
    def __init__(self):
        self._table : Dict[str, FunctionProperties] = {}
        self._final = False

    def register(self, props : FunctionProperties):
        if self._final:
            raise RegistryFinalized(f"cannot register {props.name!r}: registry already in use")
        if props.name in self._table:
            raise ValueError(f"function {props.name!r} registered twice")
        self._table[props.name] = props

    def finalize(self):
        if not self._final:
            self._table = MappingProxyType(self._table)
            self._final = True
            _logger.debug("function registry finalized with %d entries", len(self._table))

    @property
    def finalized(self) -> bool:
        return self._final

    def lookup(self, name : str) -> Optional[FunctionProperties]:
        self.finalize()
        return self._table.get(name)

    def names(self) -> List[str]:
        self.finalize()
        return sorted(self._table)

    def __contains__(self, name):
        return self.lookup(name) is not None

    def canonical(self, name : str, args : List[Expr]) -> Expr:
        """Build name(*args), substituting special values and exact results."""
        args = tuple(args)
        if any(isinstance(a, Undefined) for a in args):
            return undefined
        props = self.lookup(name)
        if props is None or len(args) != props.arity:
            return Function(name, args)
        value = props.special_value(args)
        if value is not None:
            return value
        if props.exact is not None:
            value = props.exact(args)
            if value is not None:
                return value
        if props.evaluator is not None and all(isinstance(a, Number) for a in args) \
           and not all(a.is_exact for a in args):
            try:
                return Number(float(props.evaluator(*(float(a.value) for a in args))))
            except (ValueError, OverflowError):
                return undefined
        return Function(name, args)

def sqrt(u) -> Expr:
    return power(u, half)

def exp(u):  return function("exp", u)
def log(u):  return function("log", u)
def sin(u):  return function("sin", u)
def cos(u):  return function("cos", u)
def tan(u):  return function("tan", u)
def sinh(u): return function("sinh", u)
def cosh(u): return function("cosh", u)
def tanh(u): return function("tanh", u)
def asin(u): return function("asin", u)
def acos(u): return function("acos", u)
def atan(u): return function("atan", u)
def sign(u): return function("sign", u)

def absolute(u):
    return function("abs", u)

def _inverse_of(outer):
    """exact hook: outer(inner(u)) -> u"""
    def hook(args):
        (u,) = args
        if isinstance(u, Function) and u.name == outer and len(u.args) == 1:
            return u.args[0]
        return None
    return hook

def _abs_exact(args):
    (u,) = args
    if isinstance(u, Number):
        return Number(abs(u.value))
    if isinstance(u, Function) and u.name == "abs":
        return u
    return None

def _sign_exact(args):
    (u,) = args
    if isinstance(u, Number):
        s = (u.value > 0) - (u.value < 0)
        return Number(float(s)) if not u.is_exact else Number(s)
    return None

def _one_minus_square(u):
    return summation([one, product([minus_one, power(u, 2)])])

def _one_plus_square(u):
    return summation([one, power(u, 2)])

def _neg_pattern():
    return PMul([Exact(minus_one), Wildcard("x")])

def _builtin() -> List[FunctionProperties]:
    x = Wildcard("x")
    a = Wildcard("a")
    b = Wildcard("b")
    return [
        FunctionProperties("sin",
            special_values=(((zero,), zero), ((pi,), zero), ((product([half, pi]),), one)),
            derivative=Simple(one, "cos"),
            antiderivative=LinearSubstitution(Simple(minus_one, "cos")),
            identities=((PFunction("sin", [_neg_pattern()]),
                         PMul([Exact(minus_one), PFunction("sin", [x])])),),
            evaluator=math.sin),
        FunctionProperties("cos",
            special_values=(((zero,), one), ((pi,), minus_one), ((product([half, pi]),), zero)),
            derivative=Simple(minus_one, "sin"),
            antiderivative=LinearSubstitution(Simple(one, "sin")),
            identities=((PFunction("cos", [_neg_pattern()]), PFunction("cos", [x])),),
            evaluator=math.cos),
        FunctionProperties("tan",
            special_values=(((zero,), zero), ((pi,), zero)),
            derivative=Custom(lambda u: power(cos(u), -2)),
            identities=((PFunction("tan", [_neg_pattern()]),
                         PMul([Exact(minus_one), PFunction("tan", [x])])),),
            evaluator=math.tan),
        FunctionProperties("exp",
            special_values=(((zero,), one), ((one,), E)),
            derivative=Simple(one, "exp"),
            antiderivative=LinearSubstitution(Simple(one, "exp")),
            evaluator=math.exp,
            exact=_inverse_of("log")),
        FunctionProperties("log",
            special_values=(((zero,), undefined), ((one,), zero), ((E,), one)),
            derivative=Custom(lambda u: power(u, minus_one)),
            antiderivative=Custom(lambda u: summation([product([u, log(u)]), product([minus_one, u])])),
            evaluator=math.log,
            exact=_inverse_of("exp")),
        FunctionProperties("sinh",
            special_values=(((zero,), zero),),
            derivative=Simple(one, "cosh"),
            antiderivative=LinearSubstitution(Simple(one, "cosh")),
            identities=((PFunction("sinh", [_neg_pattern()]),
                         PMul([Exact(minus_one), PFunction("sinh", [x])])),),
            evaluator=math.sinh),
        FunctionProperties("cosh",
            special_values=(((zero,), one),),
            derivative=Simple(one, "sinh"),
            antiderivative=LinearSubstitution(Simple(one, "sinh")),
            identities=((PFunction("cosh", [_neg_pattern()]), PFunction("cosh", [x])),),
            evaluator=math.cosh),
        FunctionProperties("tanh",
            special_values=(((zero,), zero),),
            derivative=Custom(lambda u: summation([one, product([minus_one, power(tanh(u), 2)])])),
            evaluator=math.tanh),
        FunctionProperties("asin",
            special_values=(((zero,), zero), ((one,), product([half, pi]))),
            derivative=Custom(lambda u: power(_one_minus_square(u), Number(Fraction(-1, 2)))),
            antiderivative=Custom(lambda u: summation([product([u, asin(u)]),
                                                      sqrt(_one_minus_square(u))])),
            evaluator=math.asin),
        FunctionProperties("acos",
            special_values=(((one,), zero), ((zero,), product([half, pi]))),
            derivative=Custom(lambda u: product([minus_one,
                                                 power(_one_minus_square(u), Number(Fraction(-1, 2)))])),
            antiderivative=Custom(lambda u: summation([product([u, acos(u)]),
                                                      product([minus_one, sqrt(_one_minus_square(u))])])),
            evaluator=math.acos),
        FunctionProperties("atan",
            special_values=(((zero,), zero), ((one,), product([Number(Fraction(1, 4)), pi]))),
            derivative=Custom(lambda u: power(_one_plus_square(u), minus_one)),
            antiderivative=Custom(lambda u: summation([product([u, atan(u)]),
                                                      product([Number(Fraction(-1, 2)), log(_one_plus_square(u))])])),
            evaluator=math.atan),
        FunctionProperties("abs",
            derivative=Custom(sign),
            identities=((PFunction("abs", [_neg_pattern()]), PFunction("abs", [x])),
                        (PFunction("abs", [PMul([a, b])]),
                         PMul([PFunction("abs", [a]), PFunction("abs", [b])]))),
            evaluator=abs,
            exact=_abs_exact),
        FunctionProperties("sign",
            derivative=Custom(lambda u: zero),
            evaluator=lambda v: float((v > 0) - (v < 0)),
            exact=_sign_exact),
    ]

registry = FunctionRegistry()
for _props in _builtin():
    registry.register(_props)
