"""Configuration for the MFA service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import timedelta

    from .factors import Factor


@dataclass(frozen=True)
class ErrorMessages:
    """Human-readable messages attached to MFA errors.

    Override to localize or rephrase; error codes never change.
    """

    invalid_mfa_token: str = "Invalid mfa token"  # noqa: S105
    invalid_authenticator_id: str = "Invalid authenticator id"
    authenticator_not_found: str = "Authenticator not found"
    authentication_failed: str = "Authenticator was not able to authenticate user"
    authenticator_inactive: str = "Authenticator is not active"
    invalid_associate_token: str = "Invalid associate token"  # noqa: S105


@dataclass(frozen=True)
class MfaConfig:
    """MFA service configuration.

    Attributes:
        factors: Mapping of authenticator type to factor.
        errors: Error messages.
        challenge_ttl: Maximum age of a challenge. ``None`` keeps challenges
            valid until they are consumed.
        required_factors: Authenticator types that must have a factor bound.

    Example:
        ```python
        config = MfaConfig(
            factors={"totp": TotpFactor()},
            challenge_ttl=timedelta(minutes=5),
        )
        mfa = AccountsMfa(config)
        ```
    """

    factors: Mapping[str, Factor]
    errors: ErrorMessages = field(default_factory=ErrorMessages)
    challenge_ttl: timedelta | None = None
    required_factors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.challenge_ttl is not None and self.challenge_ttl.total_seconds() <= 0:
            raise ValueError("challenge_ttl must be a positive duration")


__all__: list[str] = [
    "ErrorMessages",
    "MfaConfig",
]
