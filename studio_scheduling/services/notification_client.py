"""HTTP client for interacting with the notification microservice."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from studio_scheduling.core.config import settings

logger = logging.getLogger(__name__)

_NOTIFICATIONS_PATH = "/api/studio/v1/notification/notifications"


class NotificationClient:
    """Small wrapper around the notification API endpoints.

    Delivery is best effort: failures are logged and never raised, so a
    committed booking or custody change is not undone by an unreachable
    notification service.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        configured_base = settings.NOTIFICATION_SERVICE_URL if base_url is None else base_url
        self._base_url = configured_base.rstrip("/") if configured_base else ""
        self._timeout = timeout or settings.NOTIFICATION_SERVICE_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url)

    def _post(self, path: str, payload: Dict[str, Any], description: str) -> None:
        if not self.is_configured:
            logger.info("Notification service URL not configured; skipping %s", description)
            return

        url = f"{self._base_url}{_NOTIFICATIONS_PATH}{path}"

        try:
            response = httpx.post(url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:  # pragma: no cover - network dependent
            logger.warning(
                "Notification service returned HTTP %s while sending %s: %s",
                exc.response.status_code,
                description,
                exc.response.text,
            )
        except httpx.RequestError as exc:  # pragma: no cover - network dependent
            logger.warning("Failed to reach notification service for %s: %s", description, exc)

    def notify_maintenance_needed(self, equipment_id: int, reason: str) -> None:
        self._post(
            "/maintenance-needed",
            {"equipmentId": equipment_id, "reason": reason},
            "maintenance notice",
        )

    def notify_assignment_proposed(
        self,
        staff_user_id: int,
        booking_id: int,
        role: Optional[str] = None,
    ) -> None:
        self._post(
            "/assignment-proposed",
            {"staffUserId": staff_user_id, "bookingId": booking_id, "role": role},
            "assignment proposal",
        )


__all__ = ["NotificationClient"]
