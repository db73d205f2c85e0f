"""In-memory audit store for testing and development."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from ..ports import IAuthAuditStore

if TYPE_CHECKING:
    from .events import MfaAuditEvent, MfaEventType


class InMemoryAuditStore(IAuthAuditStore):
    """In-memory implementation of IAuthAuditStore.

    Events are indexed by principal and by type. They are lost on restart,
    so this is not suitable for production use.

    Example:
        ```python
        audit = InMemoryAuditStore()
        mfa = AccountsMfa(config, audit_store=audit)
        ...
        failures = await audit.get_recent_failures(principal_id="user-123")
        ```
    """

    def __init__(self) -> None:
        self._events: list[MfaAuditEvent] = []
        self._by_principal: dict[str, list[int]] = defaultdict(list)
        self._by_type: dict[str, list[int]] = defaultdict(list)

    async def record(self, event: MfaAuditEvent) -> None:
        index = len(self._events)
        self._events.append(event)

        if event.principal_id:
            self._by_principal[event.principal_id].append(index)

        self._by_type[event.event_type.value].append(index)

    async def get_events(
        self,
        principal_id: str,
        *,
        event_types: list[MfaEventType] | None = None,
        limit: int = 100,
    ) -> list[MfaAuditEvent]:
        results: list[MfaAuditEvent] = []
        for idx in reversed(self._by_principal.get(principal_id, [])):
            event = self._events[idx]
            if event_types and event.event_type not in event_types:
                continue

            results.append(event)
            if len(results) >= limit:
                break

        return results

    async def get_events_by_type(
        self,
        event_type: MfaEventType,
        *,
        limit: int = 100,
    ) -> list[MfaAuditEvent]:
        """Get audit events by type across all principals, most recent first."""
        indices = self._by_type.get(event_type.value, [])
        return [self._events[idx] for idx in reversed(indices)][:limit]

    async def get_recent_failures(
        self,
        *,
        principal_id: str | None = None,
        minutes: int = 15,
        limit: int = 100,
    ) -> list[MfaAuditEvent]:
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)

        if principal_id:
            indices = self._by_principal.get(principal_id, [])
        else:
            indices = list(range(len(self._events)))

        results: list[MfaAuditEvent] = []
        for idx in reversed(indices):
            event = self._events[idx]
            if event.success or event.timestamp < cutoff:
                continue

            results.append(event)
            if len(results) >= limit:
                break

        return results

    def clear(self) -> None:
        """Clear all stored events."""
        self._events.clear()
        self._by_principal.clear()
        self._by_type.clear()

    def count(self) -> int:
        return len(self._events)

    def count_by_type(self, event_type: MfaEventType) -> int:
        return len(self._by_type.get(event_type.value, []))


__all__: list[str] = ["InMemoryAuditStore"]
