"""Explicit result type for best-effort operations.

Counter increments and prompt enhancement never raise. They return an
``Outcome`` so that the failure stays visible. A caller that does not care
about the error drops it at the call site, and says so there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, value: T, error: str) -> Outcome[T]:
        return cls(value=value, error=error)
