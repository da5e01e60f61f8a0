"""Result values for fallible parsing steps.

Doc-tag type parsing and constant folding both report failure through a
``Result`` instead of raising, so each caller picks its own fallback.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an error message."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or ``default`` when this is a failure."""
        if self.ok:
            return self.value  # type: ignore[return-value]
        return default

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "Result[T]":
        return cls(error=error)
