from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from advisor_crm.client.api_client import ApiError, CRMApiClient


logger = logging.getLogger("app.client")


@dataclass
class Snackbar:
    message: str
    kind: str = "success"


@dataclass
class AppState:
    """Shared application state handed to every page workflow.

    Holds the activity list, the notification feed and the toasts shown so far.
    The newest item comes first in each list except ``snackbars``, which keeps
    display order.
    """

    api: CRMApiClient
    activities: list[dict[str, Any]] = field(default_factory=list)
    notifications: list[dict[str, Any]] = field(default_factory=list)
    snackbars: list[Snackbar] = field(default_factory=list)

    @property
    def snackbar(self) -> Snackbar | None:
        return self.snackbars[-1] if self.snackbars else None

    def load_activities(self) -> list[dict[str, Any]]:
        try:
            self.activities = self.api.list_activities()
        except ApiError as exc:
            logger.warning("client.activities_load_failed", extra={"error": exc.message})
            self.activities = []
        return self.activities

    def add_activity(self, fields: dict[str, Any]) -> dict[str, Any]:
        created = self.api.create_activity(fields)
        self.activities.insert(0, created)
        return created

    def add_notification(self, fields: dict[str, Any]) -> dict[str, Any]:
        notification = {
            **fields,
            "id": f"notif_{uuid.uuid4().hex}",
            "date": datetime.now(timezone.utc).isoformat(),
            "read": False,
        }
        self.notifications.insert(0, notification)
        return notification

    def show_snackbar(self, message: str, kind: str = "success") -> None:
        self.snackbars.append(Snackbar(message=message, kind=kind))
