from quirk_wallets.adapters.evm.constants import get_domain_id
from quirk_wallets.clients.http_client import WalletServiceClient

mail = "alice@example.com"  # Identity handle from your identity provider
recipient = "0x" + "0" * 24 + "1c7D4B196Cb0C7B01d743Fbc6116a902379C7238".lower()
settlement_domain = get_domain_id("base")  # Funds settle to the user's chosen chain


async def main():
    async with WalletServiceClient(identity=mail, base_url="http://localhost:3001") as client:
        async for chain, address in client.stream_wallets(["base", "arbitrum"], settlement_domain, recipient):
            print(f"{chain}: {address}")

        return await client.create_wallets(["eth"], settlement_domain, recipient)


if __name__ == "__main__":
    import asyncio
    summary = asyncio.run(main())
    print("Summary:", summary.model_dump())
