"""
Swap venue facade - the quote/execute/balance surface consumed by the trading core
"""
from loguru import logger

from thinscalp.venue.jupiter_client import JupiterClient, Route
from thinscalp.venue.solana_rpc import SolanaRpcClient
from thinscalp.venue.wallet import Signer


class SwapVenue:
    """Jupiter routing plus Solana submission for one wallet"""

    def __init__(
        self,
        jupiter: JupiterClient,
        rpc: SolanaRpcClient,
        signer: Signer,
        native_mint: str,
        confirm_timeout_seconds: float = 60.0,
    ):
        self.jupiter = jupiter
        self.rpc = rpc
        self.signer = signer
        self.native_mint = native_mint
        self.confirm_timeout_seconds = confirm_timeout_seconds

    @property
    def wallet_address(self) -> str:
        return self.signer.public_key

    async def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount_raw: int,
        slippage_bps: int,
    ) -> Route:
        return await self.jupiter.get_quote(input_mint, output_mint, amount_raw, slippage_bps)

    async def execute(self, route: Route) -> str:
        """
        Build, sign, submit and confirm a quoted route.

        Returns:
            Transaction signature
        """
        unsigned = await self.jupiter.build_swap(route, self.wallet_address)
        signed = self.signer.sign_transaction(unsigned)
        signature = await self.rpc.send_transaction(signed)
        await self.rpc.confirm_transaction(signature, timeout_seconds=self.confirm_timeout_seconds)
        logger.info(f"Swap confirmed {signature[:16]}... ({route.in_amount} -> {route.out_amount})")
        return signature

    async def token_balance(self, mint: str) -> int:
        return await self.rpc.get_token_balance(self.wallet_address, mint)

    async def native_balance(self) -> int:
        return await self.rpc.get_balance(self.wallet_address)

    async def instrument_exists(self, mint: str) -> bool:
        return await self.rpc.account_exists(mint)

    async def close(self):
        await self.jupiter.close()
        await self.rpc.close()
