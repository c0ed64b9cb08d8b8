from typing import Any, List, Optional

class MathError(Exception):
    """Base of every structured failure raised by the algebra core.

    `context` collects frames appended while the error propagates, so a
    caller catching it can tell where it happened without a traceback.
    """
    def __init__(self, message : str = ""):
        super().__init__(message)
        self.message = message
        self.context : List[str] = []

    def add_context(self, frame : str) -> 'MathError':
        self.context.append(frame)
        return self

    def __str__(self):
        text = self.message or type(self).__name__
        if self.context:
            text += " [" + " <- ".join(self.context) + "]"
        return text

class DivisionByZero(MathError, ZeroDivisionError):
    def __init__(self, message="division by zero"):
        super().__init__(message)

class UndefinedError(MathError):
    def __init__(self, message="undefined value"):
        super().__init__(message)

class NonExact(MathError):
    def __init__(self, message="operation is not exact"):
        super().__init__(message)

class Overflow(MathError, OverflowError):
    def __init__(self, message="size exceeds supported bound"):
        super().__init__(message)

class NoInverse(MathError):
    def __init__(self, value, modulus):
        super().__init__(f"{value} has no inverse modulo {modulus}")
        self.value = value
        self.modulus = modulus

class ConvergenceFailed(MathError):
    def __init__(self, reason : str, partial : Optional[Any] = None):
        super().__init__(f"did not converge: {reason}")
        self.reason = reason
        self.partial = partial

class MaxIterationsReached(MathError):
    def __init__(self, bound : int, partial : Optional[Any] = None):
        super().__init__(f"maximum of {bound} iterations reached")
        self.bound = bound
        self.partial = partial

class InvalidForm(MathError):
    def __init__(self, reason : str):
        super().__init__(f"invalid form: {reason}")
        self.reason = reason

class EmptyPolynomial(MathError, ValueError):
    def __init__(self, message="degree of the zero polynomial"):
        super().__init__(message)
