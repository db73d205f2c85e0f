"""Ports (protocols) consumed by the MFA core.

The core owns no long-lived state. Everything lives behind ``IMfaStore``;
audit events optionally go to an ``IAuthAuditStore``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit.events import MfaAuditEvent, MfaEventType
    from .models import Authenticator, MfaChallenge, MfaChallengeScope, User


# ═══════════════════════════════════════════════════════════════
# STORE PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IMfaStore(Protocol):
    """Protocol for the persistent store holding users, authenticators and challenges.

    The two challenge mutations must be atomic conditional updates at the
    storage layer, e.g.::

        UPDATE mfa_challenges SET deactivated = true
        WHERE id = :id AND deactivated = false

    and report whether the row was changed. Read-modify-write at the
    application layer lets two concurrent requests consume the same token.
    """

    async def find_mfa_challenge_by_token(self, token: str) -> MfaChallenge | None:
        """Get a challenge by its bearer token.

        Args:
            token: The MFA token.

        Returns:
            The challenge or None if unknown.
        """
        ...

    async def find_authenticator_by_id(
        self, authenticator_id: str
    ) -> Authenticator | None:
        """Get an authenticator by id.

        Args:
            authenticator_id: Authenticator identifier.

        Returns:
            The authenticator or None if unknown.
        """
        ...

    async def find_user_authenticators(self, user_id: str) -> list[Authenticator]:
        """Get every authenticator (active and inactive) of a user.

        Args:
            user_id: User identifier.

        Returns:
            List of authenticators, possibly empty.
        """
        ...

    async def find_user_by_id(self, user_id: str) -> User | None:
        """Get a user by id.

        Args:
            user_id: User identifier.

        Returns:
            The user or None if unknown.
        """
        ...

    async def create_authenticator(
        self,
        user_id: str,
        type: str,  # noqa: A002
        *,
        active: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> Authenticator:
        """Create an authenticator for a user.

        Args:
            user_id: Owning user id.
            type: Factor key.
            active: Initial active flag.
            metadata: Factor-specific data.

        Returns:
            The stored authenticator.
        """
        ...

    async def activate_authenticator(self, authenticator_id: str) -> None:
        """Mark an authenticator active. Idempotent.

        Args:
            authenticator_id: Authenticator identifier.
        """
        ...

    async def create_mfa_challenge(
        self,
        user_id: str,
        *,
        scope: MfaChallengeScope,
        authenticator_id: str | None = None,
    ) -> MfaChallenge:
        """Mint a new challenge with an unguessable token.

        Args:
            user_id: Owning user id.
            scope: Challenge scope.
            authenticator_id: Optional pre-attached authenticator.

        Returns:
            The stored challenge.
        """
        ...

    async def update_mfa_challenge(self, challenge_id: str, **fields: Any) -> bool:
        """Update fields of a challenge that is still active.

        Args:
            challenge_id: Challenge identifier.
            **fields: Fields to update.

        Returns:
            True if the challenge was updated, False if it is unknown or
            already deactivated.
        """
        ...

    async def deactivate_mfa_challenge(self, challenge_id: str) -> bool:
        """Consume a challenge.

        Args:
            challenge_id: Challenge identifier.

        Returns:
            True only for the caller that flipped the flag; False if the
            challenge is unknown or was already deactivated.
        """
        ...


# ═══════════════════════════════════════════════════════════════
# AUDIT PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IAuthAuditStore(Protocol):
    """Protocol for MFA audit event storage."""

    async def record(self, event: MfaAuditEvent) -> None:
        """Record an audit event.

        Args:
            event: The audit event to record.
        """
        ...

    async def get_events(
        self,
        principal_id: str,
        *,
        event_types: list[MfaEventType] | None = None,
        limit: int = 100,
    ) -> list[MfaAuditEvent]:
        """Get audit events for a user, most recent first.

        Args:
            principal_id: User ID to query.
            event_types: Optional filter by event types.
            limit: Maximum number of events to return.
        """
        ...

    async def get_recent_failures(
        self,
        *,
        principal_id: str | None = None,
        minutes: int = 15,
        limit: int = 100,
    ) -> list[MfaAuditEvent]:
        """Get recent failed events, most recent first.

        Useful for detecting brute force attempts against a challenge.

        Args:
            principal_id: Optional filter by user.
            minutes: Time window in minutes.
            limit: Maximum number of events to return.
        """
        ...


__all__: list[str] = [
    "IMfaStore",
    "IAuthAuditStore",
]
