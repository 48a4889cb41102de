"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_DEPTH = 48
DEFAULT_MAX_SOURCE_LENGTH = 100_000


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Limits applied when compiling expressions.

    Attributes:
        max_depth: Maximum nesting depth of sub-expressions and prefix operators
        max_source_length: Maximum number of characters in an expression
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    max_source_length: int = DEFAULT_MAX_SOURCE_LENGTH

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        Resolution order for each limit:
        1. LIBCEL_MAX_DEPTH / LIBCEL_MAX_SOURCE_LENGTH env vars
        2. Built-in defaults
        """
        return cls(
            max_depth=_positive_int("LIBCEL_MAX_DEPTH", DEFAULT_MAX_DEPTH),
            max_source_length=_positive_int(
                "LIBCEL_MAX_SOURCE_LENGTH", DEFAULT_MAX_SOURCE_LENGTH
            ),
        )
