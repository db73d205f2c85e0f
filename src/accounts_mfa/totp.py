"""TOTP (Time-based One-Time Password) factor.

Works with any RFC 6238 authenticator app (Google Authenticator,
Microsoft Authenticator, Authy, 1Password, FreeOTP, ...).

Uses pyotp library internally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pyotp

from .exceptions import InvalidAssociateTokenError
from .factors import Factor
from .models import MfaChallenge, MfaChallengeScope

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .models import Authenticator, ConnectionInfo

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TotpConfig:
    """TOTP configuration.

    Attributes:
        issuer: Application name shown in the authenticator app.
        digits: Number of digits in a code.
        interval: Time step in seconds.
        valid_window: Accept codes ±N steps for clock drift.
    """

    issuer: str = "accounts-mfa"
    digits: int = 6
    interval: int = 30
    valid_window: int = 1


class TotpFactor(Factor):
    """Factor for authenticator apps.

    Association creates an inactive ``totp`` authenticator holding a fresh
    secret and an ``associate`` challenge pointing at it. The user proves
    the app is set up by authenticating that challenge with a code, which
    activates the authenticator.

    Example:
        ```python
        mfa = AccountsMfa(MfaConfig(factors={"totp": TotpFactor()}))
        mfa.set_store(store)

        enrollment = await mfa.associate("user-123", "totp", {}, info)
        # show enrollment["otpauth_uri"] as a QR code, then:
        await mfa.authenticate(
            {"mfa_token": enrollment["mfa_token"], "code": "123456"}, info
        )
        ```
    """

    service_name = "totp"

    def __init__(self, config: TotpConfig | None = None) -> None:
        super().__init__()
        self.config = config or TotpConfig()

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=self.config.digits,
            interval=self.config.interval,
            issuer=self.config.issuer,
        )

    async def associate(
        self,
        user_or_challenge: str | MfaChallenge,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo,
    ) -> dict[str, Any]:
        """Create an inactive TOTP authenticator and its enrollment challenge.

        Args:
            user_or_challenge: User id, or the ``associate`` challenge of a
                user mid-login (which is re-pointed to the new authenticator).
            params: Optional ``account_name`` shown in the app.
            connection_info: Request metadata.

        Returns:
            ``id``, ``mfa_token``, ``secret`` and ``otpauth_uri``.

        Raises:
            InvalidAssociateTokenError: The ``associate`` challenge was consumed
                before the new authenticator could be attached.
        """
        if isinstance(user_or_challenge, MfaChallenge):
            user_id = user_or_challenge.user_id
        else:
            user_id = user_or_challenge

        secret = pyotp.random_base32()
        authenticator = await self.store.create_authenticator(
            user_id, self.service_name, metadata={"secret": secret}
        )

        if isinstance(user_or_challenge, MfaChallenge):
            challenge = user_or_challenge
            attached = await self.store.update_mfa_challenge(
                challenge.id, authenticator_id=authenticator.id
            )
            if not attached:
                # The new authenticator stays inactive and can never be used.
                _logger.warning(
                    "Challenge %s was consumed before totp authenticator %s "
                    "could be attached",
                    challenge.id,
                    authenticator.id,
                )
                raise InvalidAssociateTokenError()
        else:
            challenge = await self.store.create_mfa_challenge(
                user_id,
                scope=MfaChallengeScope.ASSOCIATE,
                authenticator_id=authenticator.id,
            )

        _logger.info(
            "Created totp authenticator %s for user %s", authenticator.id, user_id
        )
        account_name = params.get("account_name") or user_id
        return {
            "id": authenticator.id,
            "mfa_token": challenge.token,
            "secret": secret,
            "otpauth_uri": self._totp(secret).provisioning_uri(
                name=account_name, issuer_name=self.config.issuer
            ),
        }

    async def authenticate(
        self,
        challenge: MfaChallenge,
        authenticator: Authenticator,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo,
    ) -> bool:
        """Verify ``params["code"]`` against the authenticator's secret."""
        code = params.get("code")
        secret = authenticator.metadata.get("secret")
        if not code or not secret:
            return False
        return bool(
            self._totp(secret).verify(str(code), valid_window=self.config.valid_window)
        )

    def sanitize(self, authenticator: Authenticator) -> Authenticator:
        """Strip the shared secret."""
        metadata = {
            key: value
            for key, value in authenticator.metadata.items()
            if key != "secret"
        }
        return authenticator.model_copy(update={"metadata": metadata})


__all__: list[str] = [
    "TotpConfig",
    "TotpFactor",
]
