from quirk_wallets.servers import WalletServer
from quirk_wallets.engine.events import ChainProvisionedEvent, BatchCompletedEvent
from quirk_wallets.utils import setup_logger

setup_logger()

# ✨ Chains are read from ETH_/ARBITRUM_/BASE_/AVALANCHE_ PRIVATE_KEY, FACTORY_ADDRESS, RPC_URL
app = WalletServer(title="Quirk Wallet API")


# Optional: Add event hooks for custom logic
@app.hook(ChainProvisionedEvent)
async def on_wallet_created(event, deps):
    """Log each wallet as soon as it exists."""
    print(f"✅ {event.chain_key.upper()} wallet: {event.wallet_address} (tx {event.tx_hash})")

@app.hook(BatchCompletedEvent)
async def on_batch_completed(event, deps):
    """Log failed chains, which the stream never shows."""
    if event.result.errors:
        print(f"❌ Failed chains: {event.result.errors}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="localhost", port=3001, log_level="info")
