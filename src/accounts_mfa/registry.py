"""Authentication service registry for the host server.

The host builds one registry at startup, registers its services
(password, mfa, ...) and injects the store once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .exceptions import ServiceRegistrationError, UnregisteredServiceError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from .models import ConnectionInfo, User
    from .ports import IMfaStore


@runtime_checkable
class AuthenticationService(Protocol):
    """Protocol for services pluggable into the host authentication server."""

    service_name: str

    def set_store(self, store: IMfaStore) -> None:
        """Inject the persistent store."""
        ...

    async def authenticate(
        self,
        params: Mapping[str, Any],
        connection_info: ConnectionInfo | None = None,
    ) -> User:
        """Authenticate a user from service-specific parameters."""
        ...


class AuthenticationServiceRegistry:
    """Explicit registry of authentication services keyed by name.

    Example:
        ```python
        services = AuthenticationServiceRegistry()
        services.register(AccountsMfa(config))
        services.set_store(store)

        user = await services.get("mfa").authenticate(params, info)
        ```
    """

    def __init__(self) -> None:
        self._services: dict[str, AuthenticationService] = {}

    def register(self, service: AuthenticationService) -> None:
        """Register ``service`` under its ``service_name``.

        Raises:
            ServiceRegistrationError: If the name is empty or already taken.
        """
        name = service.service_name
        if not name:
            raise ServiceRegistrationError("Services must define a service_name")
        if name in self._services:
            raise ServiceRegistrationError(
                f"A service named {name!r} is already registered"
            )
        self._services[name] = service

    def get(self, name: str) -> AuthenticationService:
        """Get the service registered under ``name``.

        Raises:
            UnregisteredServiceError: If no service has that name.
        """
        try:
            return self._services[name]
        except KeyError:
            raise UnregisteredServiceError(
                f"No service with the name {name!r} was registered"
            ) from None

    def set_store(self, store: IMfaStore) -> None:
        """Inject ``store`` into every registered service."""
        for service in self._services.values():
            service.set_store(store)

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)


__all__: list[str] = [
    "AuthenticationService",
    "AuthenticationServiceRegistry",
]
