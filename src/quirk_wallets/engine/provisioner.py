"""
Single-chain wallet provisioning.

Drives one chain's wallet creation to success or exhaustion. Retry control
flow is an explicit state machine: ``transition(state, outcome)`` is pure and
``WalletProvisioner`` only performs the I/O each state asks for.

States::

    NOT_STARTED --Start--------------> ATTEMPTING(1)
    NOT_STARTED --Rejected-----------> FAILED
    ATTEMPTING(n) --AttemptSucceeded-> SUCCEEDED
    ATTEMPTING(n) --AttemptFailed----> ATTEMPTING(n+1)   retryable, n < max
                                   \-> FAILED            otherwise
    ATTEMPTING(n) --Rejected---------> FAILED            no retry consumed
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from ..adapters.bases import WalletFactory
from ..adapters.evm.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    ChainRegistry,
    normalize_chain_key,
)
from .exceptions import (
    AttemptsExhaustedError,
    InvalidTransition,
    NotOwnerError,
    RpcError,
    UnsupportedChainError,
    WalletServiceError,
)

logger = logging.getLogger(__name__)


class AttemptPhase(str, Enum):
    NOT_STARTED = "not_started"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ==================== Outcomes ====================

@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class AttemptSucceeded:
    wallet_address: str
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class AttemptFailed:
    error: WalletServiceError


@dataclass(frozen=True)
class Rejected:
    """A failure that no retry can fix (unsupported chain, not the owner)."""
    error: WalletServiceError


Outcome = Union[Start, AttemptSucceeded, AttemptFailed, Rejected]


@dataclass(frozen=True)
class ProvisioningAttempt:
    """
    Transient per-chain provisioning state.

    Attributes:
        chain_key: Chain being provisioned
        phase: Current state machine phase
        attempt_number: 1-based number of the current or last attempt
        max_attempts: Attempt budget
        last_error: Most recent failure, if any
        wallet_address: Created wallet once SUCCEEDED
        tx_hash: Creation transaction once SUCCEEDED
    """
    chain_key: str
    phase: AttemptPhase = AttemptPhase.NOT_STARTED
    attempt_number: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    last_error: Optional[WalletServiceError] = None
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (AttemptPhase.SUCCEEDED, AttemptPhase.FAILED)


def transition(state: ProvisioningAttempt, outcome: Outcome) -> ProvisioningAttempt:
    """
    Compute the next provisioning state.

    Raises:
        InvalidTransition: If ``outcome`` is not valid in ``state.phase``.
    """
    if state.phase == AttemptPhase.NOT_STARTED:
        if isinstance(outcome, Start):
            return replace(state, phase=AttemptPhase.ATTEMPTING, attempt_number=1)
        if isinstance(outcome, Rejected):
            return replace(state, phase=AttemptPhase.FAILED, last_error=outcome.error)

    elif state.phase == AttemptPhase.ATTEMPTING:
        if isinstance(outcome, AttemptSucceeded):
            return replace(
                state,
                phase=AttemptPhase.SUCCEEDED,
                wallet_address=outcome.wallet_address,
                tx_hash=outcome.tx_hash,
            )
        if isinstance(outcome, AttemptFailed):
            if outcome.error.retryable and state.attempt_number < state.max_attempts:
                return replace(state, attempt_number=state.attempt_number + 1, last_error=outcome.error)
            return replace(state, phase=AttemptPhase.FAILED, last_error=outcome.error)
        if isinstance(outcome, Rejected):
            return replace(state, phase=AttemptPhase.FAILED, last_error=outcome.error)

    raise InvalidTransition(
        f"{type(outcome).__name__} is not valid in phase {state.phase.value} for {state.chain_key}"
    )


# ==================== Result ====================

@dataclass(frozen=True)
class ProvisioningResult:
    """Outcome of provisioning one chain; failures are values, not exceptions."""
    chain_key: str
    attempts: int
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[WalletServiceError] = None

    def is_success(self) -> bool:
        return self.wallet_address is not None and self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None


class WalletProvisioner:
    """
    Provision a wallet on one chain with bounded retries.

    Ownership is verified at the start of an attempt until it has been
    confirmed once. A ``False`` owner check rejects the chain; an RPC failure
    during the check counts as a failed attempt.

    Example:
        provisioner = WalletProvisioner(ChainRegistry.from_env(), FactoryClient())
        result = await provisioner.provision("base", 6, "0x" + "ab" * 20)
        if result.is_success():
            print(result.wallet_address)
    """

    def __init__(
        self,
        registry: ChainRegistry,
        factory: WalletFactory,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.registry = registry
        self.factory = factory
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    async def provision(self, chain_key: str, destination_domain: int, mint_recipient: str) -> ProvisioningResult:
        state = ProvisioningAttempt(chain_key=normalize_chain_key(chain_key), max_attempts=self.max_attempts)

        try:
            config = self.registry.require(state.chain_key)
        except UnsupportedChainError as e:
            logger.error("%s: %s", state.chain_key.upper(), e)
            return self._finish(transition(state, Rejected(e)))

        state = transition(state, Start())
        owner_confirmed = False

        while state.phase == AttemptPhase.ATTEMPTING:
            if state.attempt_number > 1:
                await self._sleep_async(self.backoff_seconds)

            label = state.chain_key.upper()
            logger.info("%s wallet creation attempt %d/%d", label, state.attempt_number, state.max_attempts)
            try:
                if not owner_confirmed:
                    if not await self.factory.verify_ownership(config):
                        state = transition(state, Rejected(
                            NotOwnerError("Not factory owner", chain_key=state.chain_key)
                        ))
                        continue
                    owner_confirmed = True
                receipt = await self.factory.create_wallet(config, destination_domain, mint_recipient)
            except WalletServiceError as e:
                logger.warning("%s attempt %d failed: %s", label, state.attempt_number, e)
                state = transition(state, AttemptFailed(e))
                continue
            except Exception as e:
                logger.warning("%s attempt %d failed unexpectedly", label, state.attempt_number, exc_info=True)
                state = transition(state, AttemptFailed(RpcError(str(e), chain_key=state.chain_key)))
                continue

            logger.info(
                "%s wallet created on attempt %d: %s (%s)",
                label, state.attempt_number, receipt.wallet_address,
                receipt.explorer_link(config.explorer_base_url),
            )
            state = transition(state, AttemptSucceeded(receipt.wallet_address, receipt.tx_hash))

        return self._finish(state)

    @staticmethod
    def _finish(state: ProvisioningAttempt) -> ProvisioningResult:
        if state.phase == AttemptPhase.SUCCEEDED:
            return ProvisioningResult(
                chain_key=state.chain_key,
                attempts=state.attempt_number,
                wallet_address=state.wallet_address,
                tx_hash=state.tx_hash,
            )

        error = state.last_error
        if error is not None and error.retryable:
            error = AttemptsExhaustedError(state.chain_key, state.attempt_number, str(error))
        return ProvisioningResult(chain_key=state.chain_key, attempts=state.attempt_number, error=error)

    @staticmethod
    async def _sleep_async(seconds: float):
        await asyncio.sleep(seconds)
