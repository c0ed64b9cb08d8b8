"""
Exact numeric tower.

Values are plain Python numbers kept in canonical form:

    int       Integer when it fits a signed 64-bit word, BigInteger otherwise
    Fraction  Rational, always with denominator > 1
    float     Float, contagious: any operation involving one yields a float

Python integers never overflow, so promotion from Integer to BigInteger is
a matter of classification (`variant`) rather than representation.
"""
from fractions import Fraction
from typing import Optional, Union
import math

from .errors import DivisionByZero

Value = Union[int, Fraction, float]

I64_MIN = -2**63
I64_MAX = 2**63 - 1

# Exact powers beyond this many bits stay symbolic.
MAX_EXACT_BITS = 1 << 20

def canonical(value) -> Value:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return int(value.numerator)
        return value
    if isinstance(value, float):
        return value
    raise TypeError(f"not a number: {value!r} : {type(value).__name__}")

def fits_i64(n : int) -> bool:
    return I64_MIN <= n <= I64_MAX

def variant(value : Value) -> str:
    if isinstance(value, float):
        return "Float"
    if isinstance(value, Fraction):
        return "Rational"
    return "Integer" if fits_i64(value) else "BigInteger"

def is_exact(value : Value) -> bool:
    return not isinstance(value, float)

def is_integer(value : Value) -> bool:
    return isinstance(value, int)

def add(a : Value, b : Value) -> Value:
    return canonical(a + b)

def sub(a : Value, b : Value) -> Value:
    return canonical(a - b)

def mul(a : Value, b : Value) -> Value:
    return canonical(a * b)

def div(a : Value, b : Value) -> Value:
    if b == 0:
        raise DivisionByZero(f"{a} / {b}")
    if isinstance(a, float) or isinstance(b, float):
        return float(a) / float(b)
    return canonical(Fraction(a) / Fraction(b))

def integer_root(n : int, k : int) -> Optional[int]:
    """Exact k-th root of a non-negative integer, or None."""
    if n < 0 or k < 1:
        return None
    if n < 2 or k == 1:
        return n
    if k == 2:
        r = math.isqrt(n)
    else:
        # Newton iteration on integers, started above the root.
        r = 1 << ((n.bit_length() + k - 1) // k)
        while True:
            s = ((k - 1) * r + n // r**(k - 1)) // k
            if s >= r:
                break
            r = s
    return r if r**k == n else None

def power(base : Value, exp : Value) -> Optional[Value]:
    """
    Evaluate base**exp when the result is representable in the tower.

    Returns None when the result would be inexact for exact operands (for
    example 2**(1/2)) or complex (a negative base with a fractional exponent).
    A zero base with a negative exponent raises DivisionByZero.
    """
    if base == 0 and exp < 0:
        raise DivisionByZero(f"{base} ** {exp}")
    if isinstance(exp, int):
        if isinstance(base, float):
            try:
                return float(base) ** exp
            except OverflowError:
                return None
        bits = max(abs(base.numerator).bit_length(), abs(base.denominator).bit_length()) \
            if isinstance(base, Fraction) else abs(base).bit_length()
        if bits * abs(exp) > MAX_EXACT_BITS:
            return None
        return canonical(Fraction(base) ** exp)
    if base < 0:
        return None
    if isinstance(exp, float) or isinstance(base, float):
        try:
            return float(base) ** float(exp)
        except OverflowError:
            return None
    base = Fraction(base)
    p, q = exp.numerator, exp.denominator
    num = integer_root(base.numerator, q)
    den = integer_root(base.denominator, q)
    if num is None or den is None:
        return None
    return power(canonical(Fraction(num, den)), p)

def sign(value : Value) -> int:
    return (value > 0) - (value < 0)
