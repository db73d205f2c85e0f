"""Tests for AccountsMfa.authenticate."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from accounts_mfa import (
    AccountsMfa,
    AuthenticationFailedError,
    AuthenticatorInactiveError,
    InvalidMfaTokenError,
    MfaChallenge,
    MfaChallengeScope,
    MfaConfig,
    MfaErrorCode,
    MfaEventType,
    PersistenceError,
    UnregisteredFactorError,
    User,
)

from .conftest import FlakyActivationStore


async def _attach(store, challenge, *, type_="code", active=True, user_id="user-1"):
    authenticator = await store.create_authenticator(user_id, type_, active=active)
    await store.update_mfa_challenge(challenge.id, authenticator_id=authenticator.id)
    store.mutations.clear()
    return authenticator


class TestAuthenticatePreconditions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"mfa_token": ""}, {"mfa_token": None}])
    async def test_missing_token(self, mfa, store, info, params) -> None:
        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate({**params, "code": "valid"}, info)
        assert store.mutations == []

    @pytest.mark.asyncio
    async def test_unknown_token(self, mfa, store, info) -> None:
        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate({"mfa_token": "nope", "code": "valid"}, info)
        assert store.mutations == []

    @pytest.mark.asyncio
    async def test_requires_challenge_step_first(
        self, mfa, store, info, code_factor, login_challenge
    ) -> None:
        await store.create_authenticator("user-1", "code", active=True)

        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "valid"}, info
            )

        assert code_factor.authenticate_calls == 0
        assert store.mutations == []

    @pytest.mark.asyncio
    async def test_attached_authenticator_vanished(
        self, mfa, store, info, login_challenge
    ) -> None:
        await store.update_mfa_challenge(login_challenge.id, authenticator_id="gone")
        store.mutations.clear()

        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "valid"}, info
            )
        assert store.mutations == []

    @pytest.mark.asyncio
    async def test_unregistered_factor(self, mfa, store, info, login_challenge) -> None:
        await _attach(store, login_challenge, type_="carrier-pigeon")

        with pytest.raises(UnregisteredFactorError):
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "valid"}, info
            )
        assert store.mutations == []


class TestAuthenticateVerification:
    @pytest.mark.asyncio
    async def test_success_consumes_challenge(
        self, mfa, store, info, login_challenge
    ) -> None:
        await _attach(store, login_challenge)

        user = await mfa.authenticate(
            {"mfa_token": login_challenge.token, "code": "valid"}, info
        )

        assert user == User(id="user-1", email="one@example.com")
        challenge = await store.find_mfa_challenge_by_token(login_challenge.token)
        assert challenge.deactivated is True
        assert challenge.deactivated_at is not None
        assert store.mutations == [("deactivate_mfa_challenge", login_challenge.id)]

    @pytest.mark.asyncio
    async def test_rejected_proof_keeps_challenge_usable(
        self, mfa, store, info, login_challenge
    ) -> None:
        await _attach(store, login_challenge)

        with pytest.raises(AuthenticationFailedError) as exc_info:
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "wrong"}, info
            )
        assert exc_info.value.code is MfaErrorCode.AUTHENTICATION_FAILED
        assert store.mutations == []

        user = await mfa.authenticate(
            {"mfa_token": login_challenge.token, "code": "valid"}, info
        )
        assert user.id == "user-1"

    @pytest.mark.asyncio
    async def test_rejected_proof_is_audited(
        self, mfa, store, info, audit_store, login_challenge
    ) -> None:
        authenticator = await _attach(store, login_challenge)

        with pytest.raises(AuthenticationFailedError):
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "wrong"}, info
            )

        failures = await audit_store.get_recent_failures(principal_id="user-1")
        assert len(failures) == 1
        assert failures[0].event_type is MfaEventType.FAILED
        assert failures[0].error_code == "AuthenticationFailed"
        assert failures[0].authenticator_id == authenticator.id

    @pytest.mark.asyncio
    async def test_params_reach_the_factor(
        self, mfa, store, info, nonce_factor, login_challenge
    ) -> None:
        await _attach(store, login_challenge, type_="nonce")

        user = await mfa.authenticate(
            {"mfa_token": login_challenge.token, "nonce": "n-1"}, info
        )
        assert user.id == "user-1"

    @pytest.mark.asyncio
    async def test_deleted_user(self, mfa, store, info) -> None:
        challenge = await store.create_mfa_challenge(
            "ghost", scope=MfaChallengeScope.LOGIN
        )
        await _attach(store, challenge, user_id="ghost")

        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate(
                {"mfa_token": challenge.token, "code": "valid"}, info
            )


class TestAuthenticateActivation:
    @pytest.mark.asyncio
    async def test_associate_scope_activates_authenticator(
        self, mfa, store, info, audit_store, associate_challenge
    ) -> None:
        authenticator = await _attach(store, associate_challenge, active=False)

        user = await mfa.authenticate(
            {"mfa_token": associate_challenge.token, "code": "valid"}, info
        )

        assert user.id == "user-1"
        stored = await store.find_authenticator_by_id(authenticator.id)
        assert stored.active is True
        assert stored.activated_at is not None
        challenge = await store.find_mfa_challenge_by_token(associate_challenge.token)
        assert challenge.deactivated is True
        assert audit_store.count_by_type(MfaEventType.AUTHENTICATOR_ACTIVATED) == 1
        assert store.mutations == [
            ("activate_authenticator", authenticator.id),
            ("deactivate_mfa_challenge", associate_challenge.id),
        ]

    @pytest.mark.asyncio
    async def test_activation_failure_keeps_challenge_usable(
        self, code_factor, info
    ) -> None:
        store = FlakyActivationStore(failures=1)
        store.add_user(User(id="user-1"))
        mfa = AccountsMfa(MfaConfig(factors={"code": code_factor}))
        mfa.set_store(store)
        challenge = await store.create_mfa_challenge(
            "user-1", scope=MfaChallengeScope.ASSOCIATE
        )
        authenticator = await _attach(store, challenge, active=False)
        params = {"mfa_token": challenge.token, "code": "valid"}

        with pytest.raises(PersistenceError):
            await mfa.authenticate(params, info)

        stored = await store.find_mfa_challenge_by_token(challenge.token)
        assert stored.deactivated is False
        assert ("deactivate_mfa_challenge", challenge.id) not in store.mutations

        user = await mfa.authenticate(params, info)

        assert user.id == "user-1"
        activated = await store.find_authenticator_by_id(authenticator.id)
        assert activated.active is True
        stored = await store.find_mfa_challenge_by_token(challenge.token)
        assert stored.deactivated is True

    @pytest.mark.asyncio
    async def test_login_scope_refuses_inactive_authenticator(
        self, mfa, store, info, login_challenge
    ) -> None:
        authenticator = await _attach(store, login_challenge, active=False)

        with pytest.raises(AuthenticatorInactiveError) as exc_info:
            await mfa.authenticate(
                {"mfa_token": login_challenge.token, "code": "valid"}, info
            )

        assert exc_info.value.code is MfaErrorCode.AUTHENTICATOR_INACTIVE
        stored = await store.find_authenticator_by_id(authenticator.id)
        assert stored.active is False
        assert store.mutations == []

    @pytest.mark.asyncio
    async def test_associate_scope_with_active_authenticator(
        self, mfa, store, info, associate_challenge
    ) -> None:
        await _attach(store, associate_challenge, active=True)

        await mfa.authenticate(
            {"mfa_token": associate_challenge.token, "code": "valid"}, info
        )

        assert store.mutations == [
            ("deactivate_mfa_challenge", associate_challenge.id)
        ]


class TestAuthenticateSingleUse:
    @pytest.mark.asyncio
    async def test_second_call_fails(self, mfa, store, info, login_challenge) -> None:
        await _attach(store, login_challenge)
        params = {"mfa_token": login_challenge.token, "code": "valid"}

        await mfa.authenticate(params, info)
        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate(params, info)

    @pytest.mark.asyncio
    async def test_concurrent_calls_have_one_winner(
        self, mfa, store, info, audit_store, associate_challenge
    ) -> None:
        authenticator = await _attach(store, associate_challenge, active=False)
        params = {"mfa_token": associate_challenge.token, "code": "valid"}

        results = await asyncio.gather(
            mfa.authenticate(params, info),
            mfa.authenticate(params, info),
            return_exceptions=True,
        )

        users = [r for r in results if isinstance(r, User)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(users) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidMfaTokenError)
        activated = await store.find_authenticator_by_id(authenticator.id)
        assert activated.active is True
        assert audit_store.count_by_type(MfaEventType.AUTHENTICATOR_ACTIVATED) == 1
        assert audit_store.count_by_type(MfaEventType.VERIFIED) == 1


class TestAuthenticateExpiry:
    @pytest.mark.asyncio
    async def test_expired_challenge_is_rejected(
        self, store, code_factor, info
    ) -> None:
        mfa = AccountsMfa(
            MfaConfig(
                factors={"code": code_factor}, challenge_ttl=timedelta(minutes=5)
            )
        )
        mfa.set_store(store)
        authenticator = await store.create_authenticator("user-1", "code", active=True)
        store.add_mfa_challenge(
            MfaChallenge(
                id="old",
                token="old-token",
                user_id="user-1",
                authenticator_id=authenticator.id,
                created_at=datetime.now(timezone.utc) - timedelta(minutes=10),
            )
        )

        with pytest.raises(InvalidMfaTokenError):
            await mfa.authenticate({"mfa_token": "old-token", "code": "valid"}, info)
        assert code_factor.authenticate_calls == 0

    @pytest.mark.asyncio
    async def test_fresh_challenge_within_ttl(self, store, code_factor, info) -> None:
        mfa = AccountsMfa(
            MfaConfig(
                factors={"code": code_factor}, challenge_ttl=timedelta(minutes=5)
            )
        )
        mfa.set_store(store)
        challenge = await store.create_mfa_challenge(
            "user-1", scope=MfaChallengeScope.LOGIN
        )
        await _attach(store, challenge)

        user = await mfa.authenticate(
            {"mfa_token": challenge.token, "code": "valid"}, info
        )
        assert user.id == "user-1"
