"""Error taxonomy raised by the scheduling engine.

Every error carries a stable ``code`` and a ``retryable`` flag so the HTTP
layer (and any other caller) can tell "pick another resource or time" from
"this can never succeed" from "try again shortly".
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SchedulingError(RuntimeError):
    """Base class for scheduling engine failures."""

    code = "scheduling_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable}


class ValidationError(SchedulingError):
    """Malformed request rejected before any resource lookup."""

    code = "validation_error"


class NotFoundError(SchedulingError):
    """Unknown booking, resource or assignment id."""

    code = "not_found"


class StateError(SchedulingError):
    """The requested transition is not legal from the current state."""

    code = "invalid_state"

    def __init__(self, message: str, *, current_state: Optional[str] = None) -> None:
        super().__init__(message)
        self.current_state = current_state

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.current_state is not None:
            payload["currentState"] = self.current_state
        return payload


class ConflictError(SchedulingError):
    """One or more requested resources are unavailable.

    ``details`` is the serialisable per-resource (or per-occurrence) conflict
    listing; ``report`` keeps the structured availability result for
    in-process callers.
    """

    code = "resource_conflict"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[List[Dict[str, Any]]] = None,
        report: Any = None,
    ) -> None:
        super().__init__(message)
        self.details = details or []
        self.report = report

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["conflicts"] = self.details
        return payload


class ConcurrencyError(SchedulingError):
    """The check-then-commit guard detected a race; safe to retry once."""

    code = "concurrent_modification"
    retryable = True


class DeadlineExceededError(SchedulingError):
    """The caller's deadline elapsed before all availability checks finished."""

    code = "deadline_exceeded"
    retryable = True


__all__ = [
    "SchedulingError",
    "ValidationError",
    "NotFoundError",
    "StateError",
    "ConflictError",
    "ConcurrencyError",
    "DeadlineExceededError",
]
