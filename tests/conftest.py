"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from accounts_mfa import (
    AccountsMfa,
    ConnectionInfo,
    Factor,
    InMemoryAuditStore,
    InMemoryMfaStore,
    MfaChallenge,
    MfaChallengeScope,
    MfaConfig,
    PersistenceError,
    User,
)


class RecordingMfaStore(InMemoryMfaStore):
    """In-memory store that records every mutating call."""

    def __init__(self) -> None:
        super().__init__()
        self.mutations: list[tuple[str, Any]] = []

    async def activate_authenticator(self, authenticator_id: str) -> None:
        self.mutations.append(("activate_authenticator", authenticator_id))
        await super().activate_authenticator(authenticator_id)

    async def update_mfa_challenge(self, challenge_id: str, **fields: Any) -> bool:
        self.mutations.append(("update_mfa_challenge", challenge_id))
        return await super().update_mfa_challenge(challenge_id, **fields)

    async def deactivate_mfa_challenge(self, challenge_id: str) -> bool:
        self.mutations.append(("deactivate_mfa_challenge", challenge_id))
        return await super().deactivate_mfa_challenge(challenge_id)


class FlakyActivationStore(RecordingMfaStore):
    """Recording store whose first ``failures`` activations fail."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    async def activate_authenticator(self, authenticator_id: str) -> None:
        if self.failures > 0:
            self.failures -= 1
            self.mutations.append(("activate_authenticator", authenticator_id))
            raise PersistenceError("connection reset during activation")
        await super().activate_authenticator(authenticator_id)


class CodeFactor(Factor):
    """Factor accepting the code "valid", with no challenge step."""

    service_name = "code"

    def __init__(self) -> None:
        super().__init__()
        self.authenticate_calls = 0
        self.associate_calls: list[Any] = []

    async def authenticate(self, challenge, authenticator, params, connection_info):
        self.authenticate_calls += 1
        # Yield so concurrent callers interleave like real I/O would.
        await asyncio.sleep(0)
        return params.get("code") == "valid"

    async def associate(self, user_or_challenge, params, connection_info):
        self.associate_calls.append(user_or_challenge)
        user_id = (
            user_or_challenge.user_id
            if isinstance(user_or_challenge, MfaChallenge)
            else user_or_challenge
        )
        authenticator = await self.store.create_authenticator(
            user_id, self.service_name, metadata={"secret": "s3cr3t", "label": "phone"}
        )
        return {"id": authenticator.id}

    def sanitize(self, authenticator):
        metadata = {k: v for k, v in authenticator.metadata.items() if k != "secret"}
        return authenticator.model_copy(update={"metadata": metadata})


class NonceFactor(Factor):
    """Factor with its own challenge step."""

    service_name = "nonce"

    def __init__(self) -> None:
        super().__init__()
        self.challenges: list[tuple[MfaChallenge, Any, ConnectionInfo]] = []

    async def authenticate(self, challenge, authenticator, params, connection_info):
        return params.get("nonce") == "n-1"

    async def challenge(self, challenge, authenticator, connection_info):
        self.challenges.append((challenge, authenticator, connection_info))
        await self.store.update_mfa_challenge(
            challenge.id, authenticator_id=authenticator.id
        )
        return {"nonce_sent": True}

    async def associate(self, user_or_challenge, params, connection_info):
        return {"ok": True}


@pytest.fixture
def store() -> RecordingMfaStore:
    store = RecordingMfaStore()
    store.add_user(User(id="user-1", email="one@example.com"))
    store.add_user(User(id="user-2", email="two@example.com"))
    return store


@pytest.fixture
def code_factor() -> CodeFactor:
    return CodeFactor()


@pytest.fixture
def nonce_factor() -> NonceFactor:
    return NonceFactor()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def mfa(
    store: RecordingMfaStore,
    code_factor: CodeFactor,
    nonce_factor: NonceFactor,
    audit_store: InMemoryAuditStore,
) -> AccountsMfa:
    service = AccountsMfa(
        MfaConfig(factors={"code": code_factor, "nonce": nonce_factor}),
        audit_store=audit_store,
    )
    service.set_store(store)
    return service


@pytest.fixture
def info() -> ConnectionInfo:
    return ConnectionInfo(ip="203.0.113.7", user_agent="pytest")


@pytest_asyncio.fixture
async def login_challenge(store: RecordingMfaStore) -> MfaChallenge:
    return await store.create_mfa_challenge("user-1", scope=MfaChallengeScope.LOGIN)


@pytest_asyncio.fixture
async def associate_challenge(store: RecordingMfaStore) -> MfaChallenge:
    return await store.create_mfa_challenge(
        "user-1", scope=MfaChallengeScope.ASSOCIATE
    )
