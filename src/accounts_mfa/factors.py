"""Factor contract and the registry binding authenticator types to factors.

A factor implements verification, challenge and association for one
authenticator type (time-based codes, hardware keys, push approval, ...).
The MFA core only talks to factors through :class:`Factor`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from .exceptions import (
    FactorConfigurationError,
    StoreNotConfiguredError,
    UnregisteredFactorError,
)

if TYPE_CHECKING:
    from .models import Authenticator, ConnectionInfo, MfaChallenge
    from .ports import IMfaStore


class Factor(ABC):
    """Base class for authenticator factors.

    Subclasses must implement ``authenticate`` and ``associate``.
    ``challenge`` and ``sanitize`` have explicit defaults:

    - ``challenge`` returns ``None``: the factor needs no extra round trip and
      the MFA service attaches the authenticator to the challenge itself.
    - ``sanitize`` returns the authenticator unchanged.

    Example:
        ```python
        class PushFactor(Factor):
            service_name = "push"

            async def authenticate(self, challenge, authenticator, params, info):
                return await push_gateway.was_approved(challenge.id)

            async def associate(self, user_or_challenge, params, info):
                ...
        ```
    """

    service_name: str = ""

    def __init__(self) -> None:
        self._store: IMfaStore | None = None

    def set_store(self, store: IMfaStore) -> None:
        """Inject the persistent store."""
        self._store = store

    @property
    def store(self) -> IMfaStore:
        """The injected store.

        Raises:
            StoreNotConfiguredError: If ``set_store`` was never called.
        """
        if self._store is None:
            raise StoreNotConfiguredError(self.service_name)
        return self._store

    @abstractmethod
    async def authenticate(
        self,
        challenge: MfaChallenge,
        authenticator: Authenticator,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo,
    ) -> bool:
        """Verify the proof carried by ``params``.

        Args:
            challenge: The challenge being completed.
            authenticator: The authenticator attached to the challenge.
            params: Caller-supplied parameters (e.g. ``{"code": "123456"}``).
            connection_info: Request metadata.

        Returns:
            True if the proof is valid.
        """

    async def challenge(
        self,
        challenge: MfaChallenge,
        authenticator: Authenticator,
        connection_info: ConnectionInfo,
    ) -> Any | None:
        """Prepare a challenge for ``authenticator``.

        Factors overriding this are responsible for any persistence they
        need, including attaching the authenticator to the challenge.

        Returns:
            An opaque payload forwarded to the caller, or ``None`` to let the
            MFA service attach the authenticator and answer by itself.
        """
        return None

    @abstractmethod
    async def associate(
        self,
        user_or_challenge: str | MfaChallenge,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo,
    ) -> Any:
        """Start enrolling a new authenticator.

        Args:
            user_or_challenge: The user id of an authenticated caller, or the
                ``associate``-scoped challenge of a caller mid-login.
            params: Factor-specific parameters.
            connection_info: Request metadata.

        Returns:
            Opaque enrollment material (secret, registration challenge, ...).
        """

    def sanitize(self, authenticator: Authenticator) -> Authenticator:
        """Strip private metadata before exposing ``authenticator``."""
        return authenticator


class FactorRegistry(Mapping[str, Factor]):
    """Immutable mapping from authenticator type to factor.

    The mapping is validated on construction so configuration mistakes fail
    at startup instead of on the first request.
    """

    def __init__(
        self,
        factors: Mapping[str, Factor],
        *,
        required: Iterable[str] = (),
    ) -> None:
        """Build and validate the registry.

        Args:
            factors: Mapping of authenticator type to factor.
            required: Types that must be bound (e.g. types already present
                in the store).

        Raises:
            FactorConfigurationError: If a binding is invalid or missing.
        """
        for factor_type, factor in factors.items():
            if not factor_type:
                raise FactorConfigurationError(
                    factor_type, "Factor types must be non-empty strings"
                )
            if not isinstance(factor, Factor):
                raise FactorConfigurationError(
                    factor_type,
                    f"Factor bound to {factor_type!r} must be a Factor instance, "
                    f"got {type(factor).__name__}",
                )
            if factor.service_name and factor.service_name != factor_type:
                raise FactorConfigurationError(
                    factor_type,
                    f"Factor {factor.service_name!r} is bound to type {factor_type!r}",
                )

        missing = sorted(set(required) - set(factors))
        if missing:
            raise FactorConfigurationError(
                missing[0], f"No factor registered for required types: {missing}"
            )

        self._factors: dict[str, Factor] = dict(factors)

    def __getitem__(self, factor_type: str) -> Factor:
        return self._factors[factor_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._factors)

    def __len__(self) -> int:
        return len(self._factors)

    def resolve(self, factor_type: str) -> Factor:
        """Get the factor bound to ``factor_type``.

        Raises:
            UnregisteredFactorError: If no factor is bound.
        """
        factor = self._factors.get(factor_type)
        if factor is None:
            raise UnregisteredFactorError(factor_type)
        return factor

    def set_store(self, store: IMfaStore) -> None:
        """Inject ``store`` into every factor."""
        for factor in self._factors.values():
            factor.set_store(store)


__all__: list[str] = [
    "Factor",
    "FactorRegistry",
]
