"""accounts-mfa

Multi-factor authentication core: issues and verifies one-time MFA
challenges after a primary login and governs enrollment of new
authenticators through pluggable factors.

Usage:
    ```python
    from accounts_mfa import AccountsMfa, InMemoryMfaStore, MfaConfig, TotpFactor

    mfa = AccountsMfa(MfaConfig(factors={"totp": TotpFactor()}))
    mfa.set_store(InMemoryMfaStore())

    factors = await mfa.find_user_authenticators_by_mfa_token(mfa_token)
    await mfa.challenge(mfa_token, factors[0].id, info)
    user = await mfa.authenticate({"mfa_token": mfa_token, "code": code}, info)
    ```

Submodules:
    - `factors`: Factor contract and registry
    - `totp`: TOTP factor (pyotp)
    - `audit`: Audit events and in-memory audit store
    - `observability`: Prometheus metrics and OpenTelemetry tracing
"""

from __future__ import annotations

from .audit import InMemoryAuditStore, MfaAuditEvent, MfaEventType
from .config import ErrorMessages, MfaConfig
from .exceptions import (
    AccountsMfaError,
    AuthenticationFailedError,
    AuthenticatorInactiveError,
    AuthenticatorNotFoundError,
    DomainError,
    FactorConfigurationError,
    InfrastructureError,
    InvalidAssociateTokenError,
    InvalidAuthenticatorIdError,
    InvalidMfaTokenError,
    MfaError,
    MfaErrorCode,
    PersistenceError,
    ServiceRegistrationError,
    StoreNotConfiguredError,
    UnregisteredFactorError,
    UnregisteredServiceError,
)
from .factors import Factor, FactorRegistry
from .memory import InMemoryMfaStore
from .models import (
    Authenticator,
    ConnectionInfo,
    MfaChallenge,
    MfaChallengeScope,
    User,
)
from .ports import IAuthAuditStore, IMfaStore
from .registry import AuthenticationService, AuthenticationServiceRegistry
from .service import AccountsMfa
from .totp import TotpConfig, TotpFactor

__all__: list[str] = [
    # Service
    "AccountsMfa",
    "MfaConfig",
    "ErrorMessages",
    # Models
    "User",
    "Authenticator",
    "MfaChallenge",
    "MfaChallengeScope",
    "ConnectionInfo",
    # Ports
    "IMfaStore",
    "IAuthAuditStore",
    "InMemoryMfaStore",
    # Factors
    "Factor",
    "FactorRegistry",
    "TotpFactor",
    "TotpConfig",
    # Host integration
    "AuthenticationService",
    "AuthenticationServiceRegistry",
    # Audit
    "MfaAuditEvent",
    "MfaEventType",
    "InMemoryAuditStore",
    # Exceptions
    "AccountsMfaError",
    "DomainError",
    "InfrastructureError",
    "PersistenceError",
    "StoreNotConfiguredError",
    "MfaError",
    "MfaErrorCode",
    "InvalidMfaTokenError",
    "InvalidAuthenticatorIdError",
    "AuthenticatorNotFoundError",
    "AuthenticationFailedError",
    "AuthenticatorInactiveError",
    "InvalidAssociateTokenError",
    "UnregisteredFactorError",
    "FactorConfigurationError",
    "ServiceRegistrationError",
    "UnregisteredServiceError",
]

__version__ = "0.1.0"
