"""
Pawmatch — Success / error outcome returned by every public service call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from app.exceptions import PawmatchError

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    value: T | None = None
    error: PawmatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PawmatchError) -> "ServiceResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
