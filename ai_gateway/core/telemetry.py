"""
Usage telemetry and spike alerts.

Every consumption event is prepended to a capped log. Recording an event
also checks the rolling one-hour token sum and raises an alert when it
reaches the configured threshold.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .clock import Clock, SystemClock
from ai_gateway.storage.models import UsageAlert, UsageEvent, UsageKind
from ai_gateway.storage.repository import SnapshotStore

logger = logging.getLogger(__name__)

MAX_USAGE_EVENTS = 2000
MAX_USAGE_ALERTS = 200
ALERT_WINDOW = timedelta(hours=1)


def rolling_token_sum(events: Iterable[UsageEvent], since: datetime) -> int:
    """Sum of tokens of events created at or after `since`."""
    return sum(event.tokens for event in events if event.created_at >= since)


class UsageTelemetry:
    """Append-only usage log with threshold alerts."""

    def __init__(
        self,
        store: SnapshotStore,
        hourly_threshold: int = 0,
        clock: Optional[Clock] = None
    ):
        self.store = store
        self.hourly_threshold = hourly_threshold
        self.clock = clock or SystemClock()

    def record(
        self,
        kind: UsageKind,
        tokens: int,
        model: Optional[str] = None,
        unit_ids: Optional[List[str]] = None,
        tool: Optional[str] = None
    ) -> UsageEvent:
        """Append a usage event and raise an alert if the hourly sum spikes.

        Returns:
            The recorded event
        """
        now = self.clock.now()
        event = UsageEvent(
            id=str(uuid.uuid4()),
            kind=kind,
            tokens=tokens,
            created_at=now,
            model=model,
            unit_ids=list(unit_ids or []),
            tool=tool,
        )

        snapshot = self.store.load()
        snapshot.usage_events = ([event] + snapshot.usage_events)[:MAX_USAGE_EVENTS]

        if self.hourly_threshold > 0:
            total = rolling_token_sum(snapshot.usage_events, now - ALERT_WINDOW)
            if total >= self.hourly_threshold:
                alert = UsageAlert(
                    id=str(uuid.uuid4()),
                    level="warn",
                    message=f"Usage spike: {total} tokens in the last hour.",
                    created_at=now,
                )
                snapshot.usage_alerts = ([alert] + snapshot.usage_alerts)[:MAX_USAGE_ALERTS]
                logger.warning(
                    "Hourly token usage %d reached threshold %d", total, self.hourly_threshold
                )

        self.store.save(snapshot)
        return event

    def recent_events(self, limit: int = 100) -> List[UsageEvent]:
        """Newest-first usage events."""
        return self.store.load().usage_events[:limit]

    def recent_alerts(self, limit: int = 20) -> List[UsageAlert]:
        """Newest-first usage alerts."""
        return self.store.load().usage_alerts[:limit]
