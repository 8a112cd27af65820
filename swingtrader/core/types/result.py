"""
Result value for operations whose failure is an expected outcome.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Result[T]:
    """Either a value or an error message, never both."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising ValueError for a failed result."""
        if self.error is not None:
            raise ValueError(self.error)
        return self.value  # type: ignore[return-value]
