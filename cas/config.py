from dataclasses import dataclass, replace as _replace
from typing import Optional

@dataclass(frozen=True)
class Bounds:
    """
    Iteration bounds and algorithm thresholds.

    Every operation whose running time is not polynomial in its input takes
    an optional `bounds` argument; the defaults let textbook examples finish.
    """
    simplify_passes        : int   = 8
    fold_nested_powers     : bool  = False
    karatsuba_threshold    : int   = 64
    ntt_threshold          : int   = 64
    groebner_max_pairs     : int   = 10000
    groebner_time_limit    : float = 60.0
    berlekamp_max_attempts : int   = 200000
    permutation_limit      : int   = 6
    rewrite_max_iterations : int   = 1000
    integration_depth      : int   = 8
    max_iterations         : int   = 100
    tolerance              : float = 1e-12

    def __post_init__(self):
        for name in ("simplify_passes", "groebner_max_pairs", "berlekamp_max_attempts",
                     "rewrite_max_iterations", "max_iterations"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.integration_depth < 0:
            raise ValueError(f"integration_depth must be >= 0, got {self.integration_depth}")
        if self.groebner_time_limit <= 0:
            raise ValueError("groebner_time_limit must be positive")

    def replace(self, **changes) -> 'Bounds':
        return _replace(self, **changes)

DEFAULT_BOUNDS = Bounds()

def resolve(bounds : Optional[Bounds]) -> Bounds:
    return DEFAULT_BOUNDS if bounds is None else bounds
