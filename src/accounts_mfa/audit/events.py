"""Audit events for MFA operations.

Standardized events for tracking challenges, verifications and
enrollments across all factors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models import ConnectionInfo


class MfaEventType(Enum):
    """Types of MFA audit events.

    Event naming follows the pattern: `mfa.<resource>.<action>`
    """

    CHALLENGE_ISSUED = "mfa.challenge.issued"
    CHALLENGE_REJECTED = "mfa.challenge.rejected"
    VERIFIED = "mfa.verified"
    FAILED = "mfa.failed"
    AUTHENTICATOR_ACTIVATED = "mfa.authenticator.activated"
    ASSOCIATE_STARTED = "mfa.associate.started"


@dataclass(frozen=True)
class MfaAuditEvent:
    """MFA audit event.

    Attributes:
        event_type: The type of MFA event.
        principal_id: The user the event is about.
        factor: The factor (authenticator type) involved.
        timestamp: When the event occurred (UTC).
        ip_address: Client IP address (if available).
        user_agent: Client user agent string (if available).
        challenge_id: Challenge involved (never the bearer token).
        authenticator_id: Authenticator involved.
        success: Whether the operation was successful.
        error_code: Error code if operation failed.
        metadata: Additional event-specific data.
    """

    event_type: MfaEventType
    principal_id: str | None = None
    factor: str = "unknown"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: str | None = None
    user_agent: str | None = None
    challenge_id: str | None = None
    authenticator_id: str | None = None
    success: bool = True
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error_code:
            object.__setattr__(self, "error_code", "UNKNOWN_ERROR")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-serializable dictionary."""
        return {
            "event_type": self.event_type.value,
            "principal_id": self.principal_id,
            "factor": self.factor,
            "timestamp": self.timestamp.isoformat(),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "challenge_id": self.challenge_id,
            "authenticator_id": self.authenticator_id,
            "success": self.success,
            "error_code": self.error_code,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MfaAuditEvent:
        """Create event from dictionary.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        event_type_str = data.get("event_type")
        if event_type_str is None:
            raise ValueError("Missing required 'event_type'")

        try:
            event_type = MfaEventType(event_type_str)
        except ValueError as e:
            raise ValueError(f"Invalid event_type: {event_type_str}") from e

        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
        elif timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            event_type=event_type,
            principal_id=data.get("principal_id"),
            factor=data.get("factor", "unknown"),
            timestamp=timestamp,
            ip_address=data.get("ip_address"),
            user_agent=data.get("user_agent"),
            challenge_id=data.get("challenge_id"),
            authenticator_id=data.get("authenticator_id"),
            success=data.get("success", True),
            error_code=data.get("error_code"),
            metadata=data.get("metadata", {}),
        )


# ═══════════════════════════════════════════════════════════════
# EVENT FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════


def _connection_fields(info: ConnectionInfo | None) -> dict[str, str | None]:
    if info is None:
        return {"ip_address": None, "user_agent": None}
    return {"ip_address": info.ip, "user_agent": info.user_agent}


def challenge_issued_event(
    principal_id: str,
    factor: str,
    *,
    challenge_id: str,
    authenticator_id: str,
    connection_info: ConnectionInfo | None = None,
) -> MfaAuditEvent:
    """Create a challenge issued event."""
    return MfaAuditEvent(
        event_type=MfaEventType.CHALLENGE_ISSUED,
        principal_id=principal_id,
        factor=factor,
        challenge_id=challenge_id,
        authenticator_id=authenticator_id,
        **_connection_fields(connection_info),
    )


def challenge_rejected_event(
    error_code: str,
    *,
    principal_id: str | None = None,
    challenge_id: str | None = None,
    authenticator_id: str | None = None,
    connection_info: ConnectionInfo | None = None,
    metadata: dict[str, Any] | None = None,
) -> MfaAuditEvent:
    """Create an event for a challenge request that was refused."""
    return MfaAuditEvent(
        event_type=MfaEventType.CHALLENGE_REJECTED,
        principal_id=principal_id,
        challenge_id=challenge_id,
        authenticator_id=authenticator_id,
        success=False,
        error_code=error_code,
        metadata=metadata or {},
        **_connection_fields(connection_info),
    )


def mfa_verified_event(
    principal_id: str,
    factor: str,
    *,
    challenge_id: str,
    authenticator_id: str,
    connection_info: ConnectionInfo | None = None,
    metadata: dict[str, Any] | None = None,
) -> MfaAuditEvent:
    """Create an MFA verified event."""
    return MfaAuditEvent(
        event_type=MfaEventType.VERIFIED,
        principal_id=principal_id,
        factor=factor,
        challenge_id=challenge_id,
        authenticator_id=authenticator_id,
        metadata=metadata or {},
        **_connection_fields(connection_info),
    )


def mfa_failed_event(
    principal_id: str,
    factor: str,
    *,
    error_code: str,
    challenge_id: str,
    authenticator_id: str,
    connection_info: ConnectionInfo | None = None,
) -> MfaAuditEvent:
    """Create an MFA failed event."""
    return MfaAuditEvent(
        event_type=MfaEventType.FAILED,
        principal_id=principal_id,
        factor=factor,
        challenge_id=challenge_id,
        authenticator_id=authenticator_id,
        success=False,
        error_code=error_code,
        **_connection_fields(connection_info),
    )


def authenticator_activated_event(
    principal_id: str,
    factor: str,
    *,
    authenticator_id: str,
    challenge_id: str | None = None,
    connection_info: ConnectionInfo | None = None,
) -> MfaAuditEvent:
    """Create an authenticator activated event."""
    return MfaAuditEvent(
        event_type=MfaEventType.AUTHENTICATOR_ACTIVATED,
        principal_id=principal_id,
        factor=factor,
        authenticator_id=authenticator_id,
        challenge_id=challenge_id,
        **_connection_fields(connection_info),
    )


def associate_started_event(
    principal_id: str,
    factor: str,
    *,
    challenge_id: str | None = None,
    connection_info: ConnectionInfo | None = None,
) -> MfaAuditEvent:
    """Create an associate started event."""
    return MfaAuditEvent(
        event_type=MfaEventType.ASSOCIATE_STARTED,
        principal_id=principal_id,
        factor=factor,
        challenge_id=challenge_id,
        metadata={"forced": challenge_id is not None},
        **_connection_fields(connection_info),
    )


__all__: list[str] = [
    "MfaEventType",
    "MfaAuditEvent",
    "challenge_issued_event",
    "challenge_rejected_event",
    "mfa_verified_event",
    "mfa_failed_event",
    "authenticator_activated_event",
    "associate_started_event",
]
