"""MFA orchestration service.

Drives the second step of a login: a primary login flow mints an
``MfaChallenge`` and hands its token to the client, which then

1. lists the factors it may use (``find_user_authenticators_by_mfa_token``),
2. picks one (``challenge``),
3. completes it (``authenticate``).

The service also starts enrollment of new authenticators (``associate``,
``associate_by_mfa_token``). It holds no mutable state: everything lives in
the injected ``IMfaStore``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .audit.events import (
    associate_started_event,
    authenticator_activated_event,
    challenge_issued_event,
    challenge_rejected_event,
    mfa_failed_event,
    mfa_verified_event,
)
from .exceptions import (
    AuthenticationFailedError,
    AuthenticatorInactiveError,
    AuthenticatorNotFoundError,
    InvalidAssociateTokenError,
    InvalidAuthenticatorIdError,
    InvalidMfaTokenError,
    MfaErrorCode,
    StoreNotConfiguredError,
)
from .factors import FactorRegistry
from .models import Authenticator, ConnectionInfo, MfaChallenge, MfaChallengeScope
from .observability import MfaMetrics, MfaTracing

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .audit.events import MfaAuditEvent
    from .config import MfaConfig
    from .models import User
    from .ports import IAuthAuditStore, IMfaStore

_logger = logging.getLogger(__name__)


class AccountsMfa:
    """Authentication service named ``"mfa"``.

    Example:
        ```python
        mfa = AccountsMfa(MfaConfig(factors={"totp": TotpFactor()}))
        mfa.set_store(store)

        # mfa_token comes from the primary login flow
        await mfa.challenge(mfa_token, authenticator_id, info)
        user = await mfa.authenticate({"mfa_token": mfa_token, "code": "123456"}, info)
        ```
    """

    service_name = "mfa"

    def __init__(
        self,
        config: MfaConfig,
        *,
        audit_store: IAuthAuditStore | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Service configuration. Factor bindings are validated here.
            audit_store: Optional sink for audit events.

        Raises:
            FactorConfigurationError: If the factor bindings are invalid.
        """
        self.config = config
        self.errors = config.errors
        self.factors = FactorRegistry(config.factors, required=config.required_factors)
        self.audit_store = audit_store
        self._store: IMfaStore | None = None

    def set_store(self, store: IMfaStore) -> None:
        """Inject the persistent store into the service and every factor."""
        self._store = store
        self.factors.set_store(store)

    @property
    def store(self) -> IMfaStore:
        if self._store is None:
            raise StoreNotConfiguredError(self.service_name)
        return self._store

    # ═══════════════════════════════════════════════════════════════
    # LOGIN
    # ═══════════════════════════════════════════════════════════════

    async def challenge(
        self,
        mfa_token: str,
        authenticator_id: str,
        connection_info: ConnectionInfo | None = None,
    ) -> Any:
        """Request a challenge for the MFA authentication.

        Args:
            mfa_token: A valid MFA token obtained during the login process.
            authenticator_id: The id of the authenticator to challenge.
            connection_info: Request metadata.

        Returns:
            The factor's challenge payload, or
            ``{"mfa_token": ..., "authenticator_id": ...}`` when the factor
            needs no extra round trip.

        Raises:
            InvalidMfaTokenError: Token missing, unknown, consumed, expired, or
                the authenticator belongs to another user.
            InvalidAuthenticatorIdError: Authenticator id missing.
            AuthenticatorNotFoundError: No authenticator with this id.
            UnregisteredFactorError: No factor bound to the authenticator type.
        """
        info = connection_info or ConnectionInfo()
        with (
            MfaTracing.span("challenge") as span,
            MfaMetrics.operation("challenge") as labels,
        ):
            if not mfa_token:
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
            if not authenticator_id:
                raise InvalidAuthenticatorIdError(self.errors.invalid_authenticator_id)

            challenge = await self.store.find_mfa_challenge_by_token(mfa_token)
            if challenge is None or not self.is_mfa_challenge_valid(challenge):
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
            MfaTracing.set_attribute(span, "mfa.user_id", challenge.user_id)

            authenticator = await self.store.find_authenticator_by_id(authenticator_id)
            if authenticator is None:
                raise AuthenticatorNotFoundError(self.errors.authenticator_not_found)

            # Same error as an unknown token so ownership cannot be probed.
            if authenticator.user_id != challenge.user_id:
                _logger.warning(
                    "Challenge %s refused: authenticator %s belongs to another user",
                    challenge.id,
                    authenticator.id,
                )
                await self._audit(
                    challenge_rejected_event(
                        MfaErrorCode.INVALID_MFA_TOKEN.value,
                        principal_id=challenge.user_id,
                        challenge_id=challenge.id,
                        authenticator_id=authenticator.id,
                        connection_info=info,
                        metadata={"reason": "ownership_mismatch"},
                    )
                )
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)

            factor = self.factors.resolve(authenticator.type)
            labels.factor = authenticator.type
            MfaTracing.set_attribute(span, "mfa.factor", authenticator.type)

            payload = await factor.challenge(challenge, authenticator, info)
            if payload is None:
                attached = await self.store.update_mfa_challenge(
                    challenge.id, authenticator_id=authenticator.id
                )
                if not attached:
                    # Consumed between the lookup and the update.
                    raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
                _logger.info(
                    "Attached authenticator %s to challenge %s",
                    authenticator.id,
                    challenge.id,
                )
                payload = {
                    "mfa_token": challenge.token,
                    "authenticator_id": authenticator.id,
                }

            await self._audit(
                challenge_issued_event(
                    challenge.user_id,
                    authenticator.type,
                    challenge_id=challenge.id,
                    authenticator_id=authenticator.id,
                    connection_info=info,
                )
            )
            return payload

    async def authenticate(
        self,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo | None = None,
    ) -> User:
        """Complete a challenge and return the authenticated user.

        Args:
            params: ``{"mfa_token": ...}`` plus the factor's proof
                (e.g. ``"code"``), passed through to the factor.
            connection_info: Request metadata.

        Returns:
            The user owning the challenge.

        Raises:
            InvalidMfaTokenError: Token missing, unknown, not challenged yet,
                consumed (including by a concurrent request) or expired.
            UnregisteredFactorError: No factor bound to the authenticator type.
            AuthenticationFailedError: The factor rejected the proof. The
                challenge remains usable.
            AuthenticatorInactiveError: Correct proof against an authenticator
                that is not enrolled yet, on a ``login`` challenge.

        On an ``associate`` challenge the authenticator is activated before
        the challenge is consumed. Store errors propagate unchanged and
        leave the challenge usable, so the same proof can be retried.
        """
        info = connection_info or ConnectionInfo()
        with (
            MfaTracing.span("authenticate") as span,
            MfaMetrics.operation("authenticate") as labels,
        ):
            mfa_token = params.get("mfa_token")
            if not mfa_token:
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)

            challenge = await self.store.find_mfa_challenge_by_token(mfa_token)
            # A challenge must go through `challenge` before it can authenticate.
            if (
                challenge is None
                or not challenge.authenticator_id
                or not self.is_mfa_challenge_valid(challenge)
            ):
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
            MfaTracing.set_attribute(span, "mfa.user_id", challenge.user_id)

            authenticator = await self.store.find_authenticator_by_id(
                challenge.authenticator_id
            )
            if authenticator is None:
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)

            factor = self.factors.resolve(authenticator.type)
            labels.factor = authenticator.type
            MfaTracing.set_attribute(span, "mfa.factor", authenticator.type)

            if not await factor.authenticate(challenge, authenticator, params, info):
                _logger.warning(
                    "Factor %s rejected proof for challenge %s",
                    authenticator.type,
                    challenge.id,
                )
                await self._audit_failure(
                    challenge, authenticator, MfaErrorCode.AUTHENTICATION_FAILED, info
                )
                raise AuthenticationFailedError(self.errors.authentication_failed)

            activate = False
            if not authenticator.active:
                if challenge.scope is not MfaChallengeScope.ASSOCIATE:
                    _logger.warning(
                        "Authenticator %s is not active, login refused",
                        authenticator.id,
                    )
                    await self._audit_failure(
                        challenge,
                        authenticator,
                        MfaErrorCode.AUTHENTICATOR_INACTIVE,
                        info,
                    )
                    raise AuthenticatorInactiveError(self.errors.authenticator_inactive)
                # Idempotent. Must run before consumption: a store failure here
                # leaves the challenge usable.
                await self.store.activate_authenticator(authenticator.id)
                activate = True

            # Single-use: only the request that flips the flag may proceed.
            if not await self.store.deactivate_mfa_challenge(challenge.id):
                _logger.warning(
                    "Challenge %s was consumed by a concurrent request", challenge.id
                )
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
            _logger.info("Consumed challenge %s", challenge.id)

            if activate:
                _logger.info(
                    "Activated authenticator %s for user %s",
                    authenticator.id,
                    authenticator.user_id,
                )
                await self._audit(
                    authenticator_activated_event(
                        challenge.user_id,
                        authenticator.type,
                        authenticator_id=authenticator.id,
                        challenge_id=challenge.id,
                        connection_info=info,
                    )
                )

            user = await self.store.find_user_by_id(challenge.user_id)
            if user is None:
                raise InvalidMfaTokenError(self.errors.invalid_mfa_token)

            await self._audit(
                mfa_verified_event(
                    user.id,
                    authenticator.type,
                    challenge_id=challenge.id,
                    authenticator_id=authenticator.id,
                    connection_info=info,
                    metadata={"scope": challenge.scope.value},
                )
            )
            return user

    # ═══════════════════════════════════════════════════════════════
    # ENROLLMENT
    # ═══════════════════════════════════════════════════════════════

    async def associate(
        self,
        user_id: str,
        factor_type: str,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo | None = None,
    ) -> Any:
        """Start the association of a new authenticator.

        For callers already authenticated through the primary session.

        Args:
            user_id: User id to link the new authenticator to.
            factor_type: Type of the authenticator to create.
            params: Parameters for the factor.
            connection_info: Request metadata.

        Returns:
            The factor's enrollment material.

        Raises:
            UnregisteredFactorError: No factor bound to ``factor_type``.
        """
        info = connection_info or ConnectionInfo()
        with (
            MfaTracing.span("associate", attributes={"mfa.factor": factor_type}),
            MfaMetrics.operation("associate", factor=factor_type),
        ):
            factor = self.factors.resolve(factor_type)
            result = await factor.associate(user_id, params, info)
            _logger.info("Started %s association for user %s", factor_type, user_id)
            await self._audit(
                associate_started_event(user_id, factor_type, connection_info=info)
            )
            return result

    async def associate_by_mfa_token(
        self,
        mfa_token: str,
        factor_type: str,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo | None = None,
    ) -> Any:
        """Start the association of a new authenticator during login.

        Used when the user must enroll a second factor before the first login
        can complete. The token must belong to an ``associate`` challenge.

        Args:
            mfa_token: A valid ``associate``-scoped MFA token.
            factor_type: Type of the authenticator to create.
            params: Parameters for the factor.
            connection_info: Request metadata.

        Returns:
            The factor's enrollment material.

        Raises:
            InvalidAssociateTokenError: Token missing, invalid or wrong scope.
            UnregisteredFactorError: No factor bound to ``factor_type``.
        """
        info = connection_info or ConnectionInfo()
        with (
            MfaTracing.span(
                "associate_by_mfa_token", attributes={"mfa.factor": factor_type}
            ),
            MfaMetrics.operation("associate_by_mfa_token", factor=factor_type),
        ):
            if not mfa_token:
                raise InvalidAssociateTokenError(self.errors.invalid_associate_token)
            factor = self.factors.resolve(factor_type)

            challenge = await self.store.find_mfa_challenge_by_token(mfa_token)
            if (
                challenge is None
                or not self.is_mfa_challenge_valid(challenge)
                or challenge.scope is not MfaChallengeScope.ASSOCIATE
            ):
                raise InvalidAssociateTokenError(self.errors.invalid_associate_token)

            result = await factor.associate(challenge, params, info)
            _logger.info(
                "Started %s association for user %s with challenge %s",
                factor_type,
                challenge.user_id,
                challenge.id,
            )
            await self._audit(
                associate_started_event(
                    challenge.user_id,
                    factor_type,
                    challenge_id=challenge.id,
                    connection_info=info,
                )
            )
            return result

    # ═══════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════

    async def find_user_authenticators(self, user_id: str) -> list[Authenticator]:
        """Return the active and inactive authenticators of a user.

        Records are sanitized by their factor. A record whose type has no
        bound factor is returned unchanged; list such types in
        ``MfaConfig.required_factors`` to enforce the binding at startup.
        """
        authenticators = await self.store.find_user_authenticators(user_id)
        return [self._sanitize(authenticator) for authenticator in authenticators]

    async def find_user_authenticators_by_mfa_token(
        self, mfa_token: str
    ) -> list[Authenticator]:
        """Return the active authenticators usable to complete a login.

        Args:
            mfa_token: A valid MFA token obtained during the login process.

        Raises:
            InvalidMfaTokenError: Token missing, unknown, consumed or expired.
        """
        if not mfa_token:
            raise InvalidMfaTokenError(self.errors.invalid_mfa_token)
        challenge = await self.store.find_mfa_challenge_by_token(mfa_token)
        if challenge is None or not self.is_mfa_challenge_valid(challenge):
            raise InvalidMfaTokenError(self.errors.invalid_mfa_token)

        authenticators = await self.store.find_user_authenticators(challenge.user_id)
        return [
            self._sanitize(authenticator)
            for authenticator in authenticators
            if authenticator.active
        ]

    def is_mfa_challenge_valid(self, challenge: MfaChallenge) -> bool:
        """Whether ``challenge`` may still be used.

        A challenge is invalid once deactivated, or, when ``challenge_ttl`` is
        configured, once it is older than the TTL. A naive ``created_at`` is
        read as UTC.
        """
        if challenge.deactivated:
            return False
        ttl = self.config.challenge_ttl
        if ttl is None:
            return True

        created_at = challenge.created_at
        # Handle naive datetime (assume UTC)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - created_at <= ttl

    # ── Internals ────────────────────────────────────────────────

    def _sanitize(self, authenticator: Authenticator) -> Authenticator:
        factor = self.factors.get(authenticator.type)
        if factor is None:
            return authenticator
        return factor.sanitize(authenticator)

    async def _audit_failure(
        self,
        challenge: MfaChallenge,
        authenticator: Authenticator,
        code: MfaErrorCode,
        info: ConnectionInfo,
    ) -> None:
        await self._audit(
            mfa_failed_event(
                challenge.user_id,
                authenticator.type,
                error_code=code.value,
                challenge_id=challenge.id,
                authenticator_id=authenticator.id,
                connection_info=info,
            )
        )

    async def _audit(self, event: MfaAuditEvent) -> None:
        MfaMetrics.record_event(event)
        if self.audit_store is not None:
            await self.audit_store.record(event)


__all__: list[str] = ["AccountsMfa"]
