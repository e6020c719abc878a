"""
Typed provisioning events and the hook bus that publishes them.

Events carry their own data; infrastructure such as the record store is
injected separately through ``Dependencies``. Hooks are side effects only:
their failures are logged and never reach the orchestrator.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..records.gateway import RecordStoreGateway
from ..schemas.https import WalletCreationResult

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        pass


# ==================== Per-chain Events ====================

class ChainProvisionedEvent(BaseModel, BaseEvent):
    """A wallet was created on one chain and its line written to the stream."""
    chain_key: str
    wallet_address: str
    tx_hash: Optional[str] = None
    attempts: int = 1
    identity: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"ChainProvisionedEvent(chain={self.chain_key}, wallet={self.wallet_address})"


class ChainFailedEvent(BaseModel, BaseEvent):
    """A chain terminated without a wallet."""
    chain_key: str
    error_code: str
    error_message: str
    attempts: int = 0
    identity: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"ChainFailedEvent(chain={self.chain_key}, code={self.error_code})"


# ==================== Batch Events ====================

class BatchCompletedEvent(BaseModel, BaseEvent):
    """Every requested chain terminated and the channel is closed."""
    result: WalletCreationResult
    identity: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return (
            f"BatchCompletedEvent(wallets={list(self.result.wallets)}, "
            f"errors={list(self.result.errors)}, identity=***)"
        )


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    record_store: Optional[RecordStoreGateway] = None


# ==================== Event Bus ====================

EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Dispatches events to hooks registered per event class."""

    def __init__(self) -> None:
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.

        Args:
            event_class: The event class to hook into.
            hook_func: Async function(event, deps) -> None.

        Raises:
            TypeError: If hook_func is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        if event_class not in self._hooks:
            self._hooks[event_class] = []
        self._hooks[event_class].append(hook_func)

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> None:
        """
        Run all hooks registered for the event's class concurrently.

        A hook that raises is logged; the other hooks still complete.
        """
        hooks = self._hooks.get(type(event), [])
        if not hooks:
            return

        results = await asyncio.gather(
            *(hook(event, deps) for hook in hooks), return_exceptions=True
        )
        for hook, result in zip(hooks, results):
            if isinstance(result, Exception):
                logger.error(
                    "Hook %s failed for %r: %s",
                    getattr(hook, "__name__", repr(hook)), event, result,
                    exc_info=result,
                )
