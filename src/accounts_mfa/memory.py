"""In-memory MFA store for development and testing.

WARNING: This implementation is NOT suitable for production use.
It stores data in memory and will NOT work with multiple workers.
"""

from __future__ import annotations

import asyncio
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any

from .models import Authenticator, MfaChallenge, MfaChallengeScope, User
from .ports import IMfaStore

# Fields a challenge update may never touch; deactivation has its own operation.
_PROTECTED_CHALLENGE_FIELDS = frozenset(
    {"id", "token", "user_id", "deactivated", "deactivated_at"}
)


class InMemoryMfaStore(IMfaStore):
    """Dict-backed implementation of ``IMfaStore``.

    Conditional updates run under a single ``asyncio.Lock`` so that two
    coroutines racing on the same challenge observe a single winner.

    Example:
        ```python
        store = InMemoryMfaStore()
        store.add_user(User(id="user-1"))
        challenge = await store.create_mfa_challenge(
            "user-1", scope=MfaChallengeScope.LOGIN
        )
        ```
    """

    def __init__(self, token_bytes: int = 32) -> None:
        """Initialize the in-memory store.

        Args:
            token_bytes: Entropy of minted challenge tokens, in bytes.
        """
        self._users: dict[str, User] = {}
        self._authenticators: dict[str, Authenticator] = {}
        self._challenges: dict[str, MfaChallenge] = {}
        self._token_index: dict[str, str] = {}
        self._token_bytes = token_bytes
        self._lock = asyncio.Lock()

    # ── Reads ────────────────────────────────────────────────────

    async def find_mfa_challenge_by_token(self, token: str) -> MfaChallenge | None:
        challenge_id = self._token_index.get(token)
        if challenge_id is None:
            return None
        return self._challenges.get(challenge_id)

    async def find_authenticator_by_id(
        self, authenticator_id: str
    ) -> Authenticator | None:
        return self._authenticators.get(authenticator_id)

    async def find_user_authenticators(self, user_id: str) -> list[Authenticator]:
        return [
            authenticator
            for authenticator in self._authenticators.values()
            if authenticator.user_id == user_id
        ]

    async def find_user_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    # ── Authenticators ───────────────────────────────────────────

    async def create_authenticator(
        self,
        user_id: str,
        type: str,  # noqa: A002
        *,
        active: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> Authenticator:
        authenticator = Authenticator(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=type,
            active=active,
            activated_at=datetime.now(timezone.utc) if active else None,
            metadata=dict(metadata or {}),
        )
        async with self._lock:
            self._authenticators[authenticator.id] = authenticator
        return authenticator

    async def activate_authenticator(self, authenticator_id: str) -> None:
        async with self._lock:
            authenticator = self._authenticators.get(authenticator_id)
            if authenticator is None or authenticator.active:
                return
            self._authenticators[authenticator_id] = authenticator.model_copy(
                update={"active": True, "activated_at": datetime.now(timezone.utc)}
            )

    # ── Challenges ───────────────────────────────────────────────

    async def create_mfa_challenge(
        self,
        user_id: str,
        *,
        scope: MfaChallengeScope = MfaChallengeScope.LOGIN,
        authenticator_id: str | None = None,
    ) -> MfaChallenge:
        challenge = MfaChallenge(
            id=str(uuid.uuid4()),
            token=secrets.token_urlsafe(self._token_bytes),
            user_id=user_id,
            authenticator_id=authenticator_id,
            scope=scope,
        )
        async with self._lock:
            self._challenges[challenge.id] = challenge
            self._token_index[challenge.token] = challenge.id
        return challenge

    async def update_mfa_challenge(self, challenge_id: str, **fields: Any) -> bool:
        forbidden = _PROTECTED_CHALLENGE_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Cannot update challenge fields: {sorted(forbidden)}")

        async with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None or challenge.deactivated:
                return False
            self._challenges[challenge_id] = challenge.model_copy(update=fields)
            return True

    async def deactivate_mfa_challenge(self, challenge_id: str) -> bool:
        async with self._lock:
            challenge = self._challenges.get(challenge_id)
            if challenge is None or challenge.deactivated:
                return False
            self._challenges[challenge_id] = challenge.model_copy(
                update={
                    "deactivated": True,
                    "deactivated_at": datetime.now(timezone.utc),
                }
            )
            return True

    # ── Test helpers ─────────────────────────────────────────────

    def add_user(self, user: User) -> User:
        """Register a user record (the account system owns users)."""
        self._users[user.id] = user
        return user

    def add_authenticator(self, authenticator: Authenticator) -> Authenticator:
        """Insert a fully built authenticator record."""
        self._authenticators[authenticator.id] = authenticator
        return authenticator

    def add_mfa_challenge(self, challenge: MfaChallenge) -> MfaChallenge:
        """Insert a fully built challenge record."""
        self._challenges[challenge.id] = challenge
        self._token_index[challenge.token] = challenge.id
        return challenge

    def clear(self) -> None:
        self._users.clear()
        self._authenticators.clear()
        self._challenges.clear()
        self._token_index.clear()


__all__: list[str] = ["InMemoryMfaStore"]
