# canceldemo/core/outcome.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = ["OutcomeKind", "FailureKind", "Outcome", "AggregateOutcome"]



class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"



class FailureKind(str, Enum):
    TRANSPORT = "transport"     # Connection refused/reset, DNS, ...
    TIMEOUT = "timeout"         # Protocol-level client timeout, not the cancellation trigger
    HTTP_STATUS = "httpStatus"  # Server answered with a non-2xx status other than 499
    UNEXPECTED = "unexpected"



@dataclass(frozen=True, slots=True)
class Outcome:
    """Terminal result of one request. Exactly one is produced per request."""
    kind: OutcomeKind
    url: str = ""
    status: int | None = None
    payload: Any = None
    reason: str | None = None
    failure: FailureKind | None = None
    elapsedMs: int = 0
    # True when the server answered 499, False when the trigger fired locally
    serverReported: bool = False

    @classmethod
    def completed(cls, payload: Any = None, **kwargs: Any) -> Outcome:
        return cls(OutcomeKind.COMPLETED, payload=payload, **kwargs)

    @classmethod
    def cancelled(cls, reason: str | None = None, **kwargs: Any) -> Outcome:
        return cls(OutcomeKind.CANCELLED, reason=reason or "cancelled", **kwargs)

    @classmethod
    def failed(cls, failure: FailureKind, reason: str, **kwargs: Any) -> Outcome:
        return cls(OutcomeKind.FAILED, failure=failure, reason=reason, **kwargs)

    @property
    def isCompleted(self) -> bool:
        return self.kind is OutcomeKind.COMPLETED

    @property
    def isCancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED

    @property
    def isFailed(self) -> bool:
        return self.kind is OutcomeKind.FAILED

    def describe(self) -> str:
        if self.isCompleted:
            return f"completed ({self.status}) in {self.elapsedMs} ms"
        if self.isCancelled:
            where = "by server" if self.serverReported else "locally"
            return f"cancelled {where} after {self.elapsedMs} ms ({self.reason})"
        failure = self.failure.value if self.failure else "?"
        return f"failed [{failure}] after {self.elapsedMs} ms: {self.reason}"



@dataclass(frozen=True, slots=True)
class AggregateOutcome:
    """
    Result of several concurrent calls sharing one trigger.

    Cancelled when any part was cancelled, failed when any part failed,
    completed only when every part completed.
    """
    parts: tuple[Outcome, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, parts: Sequence[Outcome]) -> AggregateOutcome:
        return cls(tuple(parts))

    @property
    def kind(self) -> OutcomeKind:
        if any(part.isCancelled for part in self.parts):
            return OutcomeKind.CANCELLED
        if any(part.isFailed for part in self.parts):
            return OutcomeKind.FAILED
        return OutcomeKind.COMPLETED

    @property
    def isCancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED
