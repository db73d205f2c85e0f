"""MFA-related domain and infrastructure exceptions.

Every MFA error carries a stable machine-readable ``code`` so transports can
map failures to responses without parsing messages. Messages are
configurable through :class:`~accounts_mfa.config.ErrorMessages`.
"""

from __future__ import annotations

from enum import Enum


class MfaErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    INVALID_MFA_TOKEN = "InvalidMfaToken"  # noqa: S105
    INVALID_AUTHENTICATOR_ID = "InvalidAuthenticatorId"
    AUTHENTICATOR_NOT_FOUND = "AuthenticatorNotFound"
    UNREGISTERED_FACTOR = "UnregisteredFactor"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    AUTHENTICATOR_INACTIVE = "AuthenticatorInactive"
    INVALID_ASSOCIATE_TOKEN = "InvalidAssociateToken"  # noqa: S105


# ═══════════════════════════════════════════════════════════════
# BASE ERRORS
# ═══════════════════════════════════════════════════════════════


class AccountsMfaError(Exception):
    """Root exception for the accounts-mfa package."""


class DomainError(AccountsMfaError):
    """Base class for all domain-related errors."""


class InfrastructureError(AccountsMfaError):
    """Base class for all infrastructure-related errors."""


class PersistenceError(InfrastructureError):
    """Raised by store adapters when the underlying storage fails."""


class StoreNotConfiguredError(InfrastructureError):
    """Raised when an operation runs before a store was injected."""

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name
        super().__init__(
            f"No store configured for service {service_name!r}. "
            "Call set_store() during startup."
        )


# ═══════════════════════════════════════════════════════════════
# MFA ERRORS
# ═══════════════════════════════════════════════════════════════


class MfaError(DomainError):
    """Base class for MFA errors surfaced to callers.

    Attributes:
        code: Stable error code.
    """

    code: MfaErrorCode

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code.value)


class InvalidMfaTokenError(MfaError):
    """Raised when an MFA token is missing, unknown, consumed or expired.

    Also raised when a challenge targets an authenticator owned by another
    user, so that ownership cannot be probed through error codes.
    """

    code = MfaErrorCode.INVALID_MFA_TOKEN


class InvalidAuthenticatorIdError(MfaError):
    """Raised when the authenticator id argument is missing."""

    code = MfaErrorCode.INVALID_AUTHENTICATOR_ID


class AuthenticatorNotFoundError(MfaError):
    """Raised when no authenticator exists for the given id."""

    code = MfaErrorCode.AUTHENTICATOR_NOT_FOUND


class AuthenticationFailedError(MfaError):
    """Raised when a factor rejects the supplied proof.

    The challenge stays usable for another attempt.
    """

    code = MfaErrorCode.AUTHENTICATION_FAILED


class AuthenticatorInactiveError(MfaError):
    """Raised when a correct proof targets an authenticator not yet enrolled."""

    code = MfaErrorCode.AUTHENTICATOR_INACTIVE


class InvalidAssociateTokenError(MfaError):
    """Raised when a forced-enrollment token is missing, invalid or wrong scope."""

    code = MfaErrorCode.INVALID_ASSOCIATE_TOKEN


class UnregisteredFactorError(MfaError):
    """Raised when an authenticator type has no bound factor.

    This is a server misconfiguration and is never retried.

    Attributes:
        factor_type: The authenticator type that could not be resolved.
    """

    code = MfaErrorCode.UNREGISTERED_FACTOR

    def __init__(self, factor_type: str, message: str | None = None) -> None:
        self.factor_type = factor_type
        super().__init__(
            message or f"No factor with the name {factor_type!r} was registered"
        )


class FactorConfigurationError(UnregisteredFactorError):
    """Raised at startup when the factor configuration is inconsistent."""


# ═══════════════════════════════════════════════════════════════
# REGISTRY ERRORS
# ═══════════════════════════════════════════════════════════════


class ServiceRegistrationError(AccountsMfaError):
    """Raised when two services are registered under the same name."""


class UnregisteredServiceError(AccountsMfaError):
    """Raised when no authentication service is bound to a name."""


__all__: list[str] = [
    "MfaErrorCode",
    # Base
    "AccountsMfaError",
    "DomainError",
    "InfrastructureError",
    "PersistenceError",
    "StoreNotConfiguredError",
    # MFA
    "MfaError",
    "InvalidMfaTokenError",
    "InvalidAuthenticatorIdError",
    "AuthenticatorNotFoundError",
    "AuthenticationFailedError",
    "AuthenticatorInactiveError",
    "InvalidAssociateTokenError",
    "UnregisteredFactorError",
    "FactorConfigurationError",
    # Registry
    "ServiceRegistrationError",
    "UnregisteredServiceError",
]
