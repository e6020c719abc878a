"""
Tests for the single-chain provisioner and its state machine.
Tests: 1) Pure transitions 2) Retry bound and backoff 3) Non-retryable failures
"""

import pytest
from unittest.mock import AsyncMock

from mocks import (
    MOCK_RECIPIENT,
    MOCK_TX_HASH,
    MOCK_WALLET_BASE,
    FakeFactory,
    create_mock_registry,
)

from quirk_wallets.engine.exceptions import (
    AttemptsExhaustedError,
    ConfigurationError,
    EventNotFoundError,
    InvalidTransition,
    NotOwnerError,
    RpcError,
    UnsupportedChainError,
)
from quirk_wallets.engine.provisioner import (
    AttemptFailed,
    AttemptPhase,
    AttemptSucceeded,
    ProvisioningAttempt,
    Rejected,
    Start,
    WalletProvisioner,
    transition,
)


def make_provisioner(factory: FakeFactory, *chains: str) -> WalletProvisioner:
    provisioner = WalletProvisioner(create_mock_registry(*(chains or ("base",))), factory)
    provisioner._sleep_async = AsyncMock()
    return provisioner


# ==================== State machine ====================

class TestTransition:

    def test_start_enters_first_attempt(self):
        state = transition(ProvisioningAttempt(chain_key="base"), Start())

        assert state.phase == AttemptPhase.ATTEMPTING
        assert state.attempt_number == 1

    def test_success_is_terminal(self):
        state = transition(ProvisioningAttempt(chain_key="base"), Start())
        state = transition(state, AttemptSucceeded(MOCK_WALLET_BASE, MOCK_TX_HASH))

        assert state.phase == AttemptPhase.SUCCEEDED
        assert state.is_terminal
        assert state.wallet_address == MOCK_WALLET_BASE

    def test_retryable_failure_moves_to_next_attempt(self):
        error = RpcError("timeout")
        state = transition(ProvisioningAttempt(chain_key="base"), Start())
        state = transition(state, AttemptFailed(error))

        assert state.phase == AttemptPhase.ATTEMPTING
        assert state.attempt_number == 2
        assert state.last_error is error

    def test_failure_on_last_attempt_is_terminal(self):
        state = ProvisioningAttempt(chain_key="base", phase=AttemptPhase.ATTEMPTING, attempt_number=2)
        state = transition(state, AttemptFailed(EventNotFoundError("no event")))

        assert state.phase == AttemptPhase.FAILED
        assert state.attempt_number == 2

    def test_non_retryable_failure_is_terminal(self):
        state = transition(ProvisioningAttempt(chain_key="base"), Start())
        state = transition(state, AttemptFailed(ConfigurationError("bad key")))

        assert state.phase == AttemptPhase.FAILED
        assert state.attempt_number == 1

    def test_rejection_does_not_consume_attempt(self):
        state = transition(ProvisioningAttempt(chain_key="base"), Start())
        state = transition(state, Rejected(NotOwnerError("Not factory owner")))

        assert state.phase == AttemptPhase.FAILED
        assert state.attempt_number == 1

    def test_rejected_before_start(self):
        state = transition(ProvisioningAttempt(chain_key="solana"), Rejected(UnsupportedChainError("nope")))

        assert state.phase == AttemptPhase.FAILED
        assert state.attempt_number == 0

    @pytest.mark.parametrize("outcome", [
        Start(),
        AttemptSucceeded(MOCK_WALLET_BASE),
        AttemptFailed(RpcError("x")),
        Rejected(NotOwnerError("x")),
    ])
    def test_terminal_states_reject_outcomes(self, outcome):
        state = ProvisioningAttempt(chain_key="base", phase=AttemptPhase.SUCCEEDED, attempt_number=1)

        with pytest.raises(InvalidTransition):
            transition(state, outcome)

    def test_success_before_start_is_invalid(self):
        with pytest.raises(InvalidTransition):
            transition(ProvisioningAttempt(chain_key="base"), AttemptSucceeded(MOCK_WALLET_BASE))

    def test_transition_does_not_mutate_input(self):
        original = ProvisioningAttempt(chain_key="base")
        transition(original, Start())

        assert original.phase == AttemptPhase.NOT_STARTED


# ==================== Provisioner ====================

class TestWalletProvisioner:

    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        factory = FakeFactory(outcomes={"base": [MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert result.is_success()
        assert result.wallet_address == MOCK_WALLET_BASE
        assert result.tx_hash == MOCK_TX_HASH
        assert result.attempts == 1
        assert factory.create_calls == [("base", 6, MOCK_RECIPIENT)]
        provisioner._sleep_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_chain_key_is_case_insensitive(self):
        factory = FakeFactory(outcomes={"base": [MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("BASE", 6, MOCK_RECIPIENT)

        assert result.is_success()
        assert result.chain_key == "base"

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        factory = FakeFactory(outcomes={"base": [RpcError("timeout"), MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert result.is_success()
        assert result.attempts == 2
        provisioner._sleep_async.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_always_failing_chain_stops_after_two_attempts(self):
        factory = FakeFactory(outcomes={"base": [RpcError("down"), RpcError("still down"), MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert not result.is_success()
        assert len(factory.create_calls) == 2
        assert provisioner._sleep_async.await_count == 1
        provisioner._sleep_async.assert_awaited_once_with(2.0)
        assert isinstance(result.error, AttemptsExhaustedError)
        assert result.error_message == "BASE wallet creation failed after 2 attempts: still down"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_event_not_found_is_retried(self):
        factory = FakeFactory(outcomes={"base": [EventNotFoundError("no event"), MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert result.is_success()
        assert len(factory.create_calls) == 2

    @pytest.mark.asyncio
    async def test_unsupported_chain_fails_immediately(self):
        factory = FakeFactory()
        provisioner = make_provisioner(factory, "base")

        result = await provisioner.provision("solana", 6, MOCK_RECIPIENT)

        assert isinstance(result.error, UnsupportedChainError)
        assert result.attempts == 0
        assert factory.ownership_calls == []
        provisioner._sleep_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_owner_fails_without_retry(self):
        factory = FakeFactory(owners={"base": False}, outcomes={"base": [MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert isinstance(result.error, NotOwnerError)
        assert result.error_code == "not_owner"
        assert factory.ownership_calls == ["base"]
        assert factory.create_calls == []
        provisioner._sleep_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ownership_rpc_failure_counts_as_attempt(self):
        factory = FakeFactory(
            owners={"base": [RpcError("owner read timeout"), True]},
            outcomes={"base": [MOCK_WALLET_BASE]},
        )
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert result.is_success()
        assert result.attempts == 2
        assert factory.ownership_calls == ["base", "base"]

    @pytest.mark.asyncio
    async def test_ownership_checked_once_when_confirmed(self):
        factory = FakeFactory(outcomes={"base": [RpcError("timeout"), MOCK_WALLET_BASE]})
        provisioner = make_provisioner(factory)

        await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert factory.ownership_calls == ["base"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self):
        factory = FakeFactory(outcomes={"base": [KeyError("boom"), KeyError("boom")]})
        provisioner = make_provisioner(factory)

        result = await provisioner.provision("base", 6, MOCK_RECIPIENT)

        assert not result.is_success()
        assert isinstance(result.error, AttemptsExhaustedError)

    def test_rejects_zero_attempt_budget(self):
        with pytest.raises(ValueError):
            WalletProvisioner(create_mock_registry("base"), FakeFactory(), max_attempts=0)
