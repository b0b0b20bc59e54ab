from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from advisor_crm.context import get_correlation_id
from advisor_crm.core.events import event_bus

SYSTEM_STARTED = "system.started"
OPPORTUNITY_STAGE_CHANGED = "crm.opportunity.stage_changed"

ENVELOPE_VERSION = 1
MAX_PUBLISHED_EVENTS = 10_000

# Recent envelopes, newest last.
published_events: deque[dict[str, Any]] = deque(maxlen=MAX_PUBLISHED_EVENTS)


def build_envelope(
    event_type: str,
    actor_user_id: str,
    payload: dict[str, Any],
    correlation_id: str | None = None,
) -> dict[str, Any]:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": actor_user_id,
        "correlation_id": correlation_id or get_correlation_id(),
        "version": ENVELOPE_VERSION,
        "payload": payload,
    }


def publish(envelope: dict[str, Any]) -> None:
    published_events.append(envelope)
    event_bus.publish(envelope["event_type"], envelope)


def events_of_type(event_type: str) -> list[dict[str, Any]]:
    return [item for item in published_events if item.get("event_type") == event_type]
