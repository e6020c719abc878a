"""
Built-in hooks for the wallet provisioning workflow.

Persists finished batches to the record store and reports failed chains in
the logs, since the streaming endpoint never shows them to the caller.
"""

import logging

from ..engine.events import (
    BatchCompletedEvent,
    ChainFailedEvent,
    Dependencies,
    EventBus,
)

logger = logging.getLogger(__name__)


# ==================== Hooks ====================

async def persist_wallets(event: BatchCompletedEvent, deps: Dependencies) -> None:
    """Save the batch's wallets against the caller. Not retried on failure."""
    if not event.identity or deps.record_store is None or not event.result.wallets:
        return

    saved = await deps.record_store.save_wallets(event.identity, dict(event.result.wallets))
    if saved:
        logger.info("Saved %d wallets for %s", len(event.result.wallets), event.identity)
    else:
        logger.error("Wallets for %s were created but not saved: %s", event.identity, event.result.wallets)


async def report_chain_failure(event: ChainFailedEvent, deps: Dependencies) -> None:
    logger.error(
        "%s wallet not created after %d attempt(s) [%s]: %s",
        event.chain_key.upper(), event.attempts, event.error_code, event.error_message,
    )


# ==================== Setup ====================

def setup_event_bus(persist_results: bool = True) -> EventBus:
    """Create an EventBus with the built-in hooks.

    Args:
        persist_results: Register the record store hook (default: True)
    """
    bus = EventBus()
    bus.hook(ChainFailedEvent, report_chain_failure)
    if persist_results:
        bus.hook(BatchCompletedEvent, persist_wallets)
    return bus
