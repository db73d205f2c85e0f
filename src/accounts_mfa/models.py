"""Immutable records handled by the MFA core.

All records are frozen pydantic models. Stores produce updated copies with
``model_copy(update=...)``; the core never mutates a record in place.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Record(BaseModel):
    """Base class for immutable records.

    Equality is structural (all fields compared).
    """

    model_config = ConfigDict(frozen=True)


class MfaChallengeScope(str, Enum):
    """What a successful challenge completes.

    ``LOGIN`` is an ordinary second-factor login. ``ASSOCIATE`` additionally
    completes the enrollment of the attached authenticator.
    """

    LOGIN = "login"
    ASSOCIATE = "associate"


class User(Record):
    """Identity record owned by the account system.

    Only ``id`` is interpreted here; any other attribute is carried through.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str


class Authenticator(Record):
    """A second factor registered to a user.

    Attributes:
        id: Unique authenticator id.
        user_id: Owning user id.
        type: Factor key used to resolve the factor implementation.
        active: Whether the authenticator may serve ordinary logins.
        activated_at: When the authenticator was activated.
        created_at: When the authenticator was created.
        metadata: Factor-specific data (secrets included), owned by the factor.
    """

    id: str
    user_id: str
    type: str
    active: bool = False
    activated_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class MfaChallenge(Record):
    """Single-use credential minted after a successful primary login.

    Attributes:
        id: Unique challenge id.
        token: Unguessable bearer secret handed to the client.
        user_id: Owning user id.
        authenticator_id: Authenticator attached by the challenge step.
        scope: ``login`` or ``associate``.
        deactivated: Terminal flag, set once the challenge is consumed.
        deactivated_at: When the challenge was consumed.
        created_at: When the challenge was minted.
    """

    id: str
    token: str
    user_id: str
    authenticator_id: str | None = None
    scope: MfaChallengeScope = MfaChallengeScope.LOGIN
    deactivated: bool = False
    deactivated_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ConnectionInfo(Record):
    """Connection metadata of the request being served."""

    ip: str | None = None
    user_agent: str | None = None


__all__: list[str] = [
    "Record",
    "MfaChallengeScope",
    "User",
    "Authenticator",
    "MfaChallenge",
    "ConnectionInfo",
]
