"""
Engine configuration for RECTUS.

A single immutable EngineConfig carries every tunable of the kernel:
decimal precision and rounding for Real arithmetic, the rewrite step
budget, expansion limits, the memo size, and the thresholds used when
rendering numbers back to JSON.

Presets:
    EngineConfig.low_precision()   - 10 digits, small step budget
    EngineConfig.medium_precision()- the defaults
    EngineConfig.high_precision()  - 50 digits, larger expansion limits
"""

import decimal
from dataclasses import dataclass, replace

from .numeric import make_context


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for canonicalization and simplification.

    Attributes:
        precision: Significant digits kept by Real arithmetic. Exact results
            needing more digits than this are converted to Reals.
        rounding: Decimal rounding mode (half-even by default).
        max_steps: Maximum rewrite steps per simplify call before the driver
            gives up and returns the best form reached.
        max_expand_power: Largest integer power of a sum that is expanded.
        max_expand_terms: Expansion is abandoned past this many terms.
        cache_size: Entries kept in the engine's simplify memo (0 disables it).
        native_integer_limit: Integers at or above this magnitude are emitted
            as {"num": "..."} strings instead of JSON numbers.
        native_digits: Reals with more significant digits than this are
            emitted as {"num": "..."} strings instead of JSON floats.
    """
    precision: int = 21
    rounding: str = decimal.ROUND_HALF_EVEN
    max_steps: int = 1000
    max_expand_power: int = 8
    max_expand_terms: int = 256
    cache_size: int = 256
    native_integer_limit: int = 2 ** 53
    native_digits: int = 15

    def __post_init__(self):
        if self.precision < 1:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")
        if self.max_expand_power < 1:
            raise ValueError(f"max_expand_power must be positive, got {self.max_expand_power}")
        if self.cache_size < 0:
            raise ValueError(f"cache_size must be non-negative, got {self.cache_size}")

    def decimal_context(self) -> decimal.Context:
        """Decimal context for Real arithmetic under this configuration."""
        return make_context(self.precision, self.rounding)

    def with_precision(self, precision: int) -> "EngineConfig":
        return replace(self, precision=precision)

    @classmethod
    def low_precision(cls) -> "EngineConfig":
        """Fast configuration: 10 digits and a small rewrite budget."""
        return cls(precision=10, max_steps=200, max_expand_power=4)

    @classmethod
    def medium_precision(cls) -> "EngineConfig":
        """Default configuration."""
        return cls()

    @classmethod
    def high_precision(cls) -> "EngineConfig":
        """Careful configuration: 50 digits and generous limits."""
        return cls(precision=50, max_steps=5000, max_expand_power=12, max_expand_terms=1024)


DEFAULT_CONFIG = EngineConfig()
