"""
Multi-chain wallet provisioning orchestrator.

Runs the single-chain provisioner over an ordered list of chains, one chain
at a time, writes a ``"{CHAIN}: {address}"`` line to the response channel as
soon as each wallet exists, and returns the aggregate result.
"""

import logging
from typing import Any, Dict, Optional, Union

from .channels import StreamingResponseChannel
from .events import (
    BaseEvent,
    BatchCompletedEvent,
    ChainFailedEvent,
    ChainProvisionedEvent,
    Dependencies,
    EventBus,
)
from .exceptions import StreamInterruptedError
from .provisioner import WalletProvisioner
from ..schemas.https import WalletCreationRequest, WalletCreationResult

logger = logging.getLogger(__name__)


def format_progress_line(chain_key: str, wallet_address: str) -> str:
    return f"{chain_key.upper()}: {wallet_address}"


class MultiChainOrchestrator:
    """
    Sequential multi-chain provisioning with incremental delivery.

    Stream writes are best-effort: once the consumer disconnects,
    provisioning continues and later lines are dropped. Failed chains never
    produce a line; they are visible in the returned result, in the logs and
    through ``ChainFailedEvent`` hooks.

    Example:
        orchestrator = MultiChainOrchestrator(provisioner, event_bus, deps)
        result = await orchestrator.run(
            {"chains": ["base", "arbitrum"], "destinationDomain": 6, "mintRecipient": "0x..."},
            channel,
        )
    """

    def __init__(
        self,
        provisioner: WalletProvisioner,
        event_bus: Optional[EventBus] = None,
        deps: Optional[Dependencies] = None,
    ):
        self.provisioner = provisioner
        self.event_bus = event_bus or EventBus()
        self.deps = deps or Dependencies()

    async def run(
        self,
        request: Union[WalletCreationRequest, Dict[str, Any]],
        channel: StreamingResponseChannel,
        identity: Optional[str] = None,
    ) -> WalletCreationResult:
        """
        Provision every requested chain and stream each success.

        Args:
            request: Parsed request or its raw JSON body.
            channel: Channel to write progress lines to. Opened only after
                validation succeeds and always closed before returning.
            identity: Already-authenticated caller handle, passed to hooks.

        Returns:
            WalletCreationResult: Never raises for per-chain failures.

        Raises:
            ValidationError: If the request is malformed. The channel is left unopened.
        """
        if not isinstance(request, WalletCreationRequest):
            request = WalletCreationRequest.parse(request)

        logger.info(
            "Creating wallets on %d chains: %s (domain %d)",
            len(request.chains), ", ".join(request.chains), request.destination_domain,
        )

        await channel.open()
        wallets: Dict[str, str] = {}
        errors: Dict[str, str] = {}
        stream_alive = True

        try:
            for chain_key in request.chains:
                result = await self.provisioner.provision(
                    chain_key, request.destination_domain, request.mint_recipient
                )

                if result.is_success():
                    # re-insert so iteration order follows completion order
                    wallets.pop(chain_key, None)
                    wallets[chain_key] = result.wallet_address
                    errors.pop(chain_key, None)

                    if stream_alive:
                        try:
                            await channel.write(format_progress_line(chain_key, result.wallet_address))
                        except StreamInterruptedError:
                            stream_alive = False
                            logger.warning(
                                "Stream interrupted; %s and later wallets will not reach the caller",
                                chain_key.upper(),
                            )

                    await self._publish(ChainProvisionedEvent(
                        chain_key=chain_key,
                        wallet_address=result.wallet_address,
                        tx_hash=result.tx_hash,
                        attempts=result.attempts,
                        identity=identity,
                    ))
                else:
                    if chain_key not in wallets:
                        errors[chain_key] = result.error_message
                    logger.error("%s provisioning failed: %s", chain_key.upper(), result.error_message)

                    await self._publish(ChainFailedEvent(
                        chain_key=chain_key,
                        error_code=result.error_code,
                        error_message=result.error_message,
                        attempts=result.attempts,
                        identity=identity,
                    ))
        finally:
            await channel.close()

        summary = WalletCreationResult(wallets=wallets, errors=errors)
        logger.info(
            "Wallet creation finished: %d succeeded, %d failed%s",
            len(summary.wallets), len(summary.errors),
            f" ({', '.join(summary.failed_chains())})" if summary.errors else "",
        )
        logger.debug("Wallet creation result: %s", summary.to_canonical_json())
        await self._publish(BatchCompletedEvent(result=summary, identity=identity))
        return summary

    async def _publish(self, event: BaseEvent) -> None:
        await self.event_bus.dispatch(event, self.deps)
