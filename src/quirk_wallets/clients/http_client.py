"""
Wallet Service HTTP Client

Extends httpx.AsyncClient with typed helpers for the wallet service, including
an incremental reader for the streaming multi-chain endpoint.
"""

from typing import AsyncGenerator, Dict, List, Optional, Tuple

import httpx

from ..adapters.evm.constants import normalize_chain_key
from ..engine.exceptions import StreamInterruptedError, ValidationError
from ..schemas.https import WalletStreamSummary


class WalletServiceClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient for the wallet provisioning endpoints.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        async with WalletServiceClient(base_url="http://localhost:3001") as client:
            async for chain, address in client.stream_wallets(["base", "arbitrum"], 6, recipient):
                print(chain, address)
        ```
    """

    def __init__(self, identity: Optional[str] = None, **kwargs):
        """
        Args:
            identity: Caller handle sent as ``X-Quirk-User`` so the server
                can save created wallets.
            **kwargs: All standard httpx.AsyncClient arguments (base_url, timeout, etc.)
        """
        kwargs.setdefault("timeout", httpx.Timeout(10.0, read=None))
        super().__init__(**kwargs)
        self.identity = identity

    def _identity_headers(self) -> Dict[str, str]:
        return {"X-Quirk-User": self.identity} if self.identity else {}

    @staticmethod
    def _raise_for_validation(response: httpx.Response) -> None:
        if response.status_code == 400:
            raise ValidationError(response.json().get("error", "Invalid request"))

    async def stream_wallets(
        self,
        chains: List[str],
        destination_domain: int,
        mint_recipient: str,
    ) -> AsyncGenerator[Tuple[str, str], None]:
        """
        Yield ``(chain_key, wallet_address)`` as the server streams each line.

        Raises:
            ValidationError: If the server rejected the request.
            StreamInterruptedError: If the connection dropped mid-stream.
        """
        payload = {
            "chains": chains,
            "destinationDomain": destination_domain,
            "mintRecipient": mint_recipient,
        }
        async with self.stream(
            "POST", "/api/create-wallet-master", json=payload, headers=self._identity_headers()
        ) as response:
            if response.status_code == 400:
                await response.aread()
            self._raise_for_validation(response)
            response.raise_for_status()

            try:
                async for line in response.aiter_lines():
                    chain, sep, address = line.strip().partition(": ")
                    if not sep or not address:
                        continue
                    yield chain.lower(), address.strip()
            except httpx.TransportError as e:
                raise StreamInterruptedError(f"Wallet stream interrupted: {e}") from e

    async def create_wallets(
        self,
        chains: List[str],
        destination_domain: int,
        mint_recipient: str,
    ) -> WalletStreamSummary:
        """Collect the whole stream and list the chains that produced no line."""
        wallets: Dict[str, str] = {}
        interrupted = False
        try:
            async for chain, address in self.stream_wallets(chains, destination_domain, mint_recipient):
                wallets[chain] = address
        except StreamInterruptedError:
            interrupted = True

        missing = []
        for chain in chains:
            key = normalize_chain_key(chain)
            if key not in wallets and key not in missing:
                missing.append(key)
        return WalletStreamSummary(wallets=wallets, missing=missing, interrupted=interrupted)

    async def create_wallet(
        self,
        chain: str,
        destination_domain: int,
        mint_recipient: str,
    ) -> Optional[str]:
        """
        Create one wallet via the single-chain endpoint.

        Returns:
            The wallet address, or None if the server reported a failure.
        """
        response = await self.post(
            f"/api/create-wallet/{chain}",
            json={"destinationDomain": destination_domain, "mintRecipient": mint_recipient},
            headers=self._identity_headers(),
        )
        self._raise_for_validation(response)
        if response.status_code >= 500:
            return None
        response.raise_for_status()
        return response.json()["walletAddress"]
