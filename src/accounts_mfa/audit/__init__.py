"""Audit module for MFA events.

Audit event types, factory functions and an in-memory store for tracking
challenges, verifications and enrollments.
"""

from __future__ import annotations

from .events import (
    MfaAuditEvent,
    MfaEventType,
    associate_started_event,
    authenticator_activated_event,
    challenge_issued_event,
    challenge_rejected_event,
    mfa_failed_event,
    mfa_verified_event,
)
from .memory import InMemoryAuditStore

__all__: list[str] = [
    # Event types and classes
    "MfaEventType",
    "MfaAuditEvent",
    # Event factory functions
    "challenge_issued_event",
    "challenge_rejected_event",
    "mfa_verified_event",
    "mfa_failed_event",
    "authenticator_activated_event",
    "associate_started_event",
    # Store implementations
    "InMemoryAuditStore",
]
