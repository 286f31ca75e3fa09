"""Result containers for operations with best-effort side effects.

Several product workflows commit to the database and then perform follow-up
work that must never fail the request: refreshing the featured cache, writing
back a cache miss, or deleting a hosted image.  Instead of discarding those
failures after logging them, services return an :class:`OperationResult` so
callers (the HTTP layer, scripts, tests) can inspect what went wrong.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SideEffectFailure:
    """A non-fatal failure of a follow-up step."""

    operation: str
    detail: str


@dataclass
class OperationResult(Generic[T]):
    """Value of a completed operation plus any side effects that failed."""

    value: T
    side_effect_failures: list[SideEffectFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.side_effect_failures

    def record_failure(self, operation: str, exc: BaseException) -> None:
        self.side_effect_failures.append(
            SideEffectFailure(operation=operation, detail=f"{type(exc).__name__}: {exc}")
        )

    def merge(self, other: OperationResult[object]) -> None:
        """Carry over failures collected by a nested operation."""

        self.side_effect_failures.extend(other.side_effect_failures)


__all__ = ["OperationResult", "SideEffectFailure"]
