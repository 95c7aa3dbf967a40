"""
Solana JSON-RPC client - balances, mint lookups, submission and confirmation
"""
import asyncio
import itertools
import time
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from thinscalp.errors import SubmissionError, ThinScalpError


class RpcError(ThinScalpError):
    """JSON-RPC transport or method error"""


class SolanaRpcClient:
    """Minimal async JSON-RPC client for the calls the bot needs"""

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout_seconds: float = 20.0,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def _session(self) -> aiohttp.ClientSession:
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def call(self, method: str, params: List[Any]) -> Any:
        """Invoke a JSON-RPC method and return its ``result``"""
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        session = await self._session()
        try:
            async with session.post(self.rpc_url, json=body) as response:
                if response.status != 200:
                    text = await response.text()
                    raise RpcError(f"{method} HTTP {response.status}: {text[:200]}")
                data = await response.json()
        except aiohttp.ClientError as e:
            raise RpcError(f"{method} request error: {e}") from e

        if data.get("error"):
            raise RpcError(f"{method} error: {data['error']}")
        return data.get("result")

    async def get_balance(self, owner: str) -> int:
        """Native balance in lamports"""
        result = await self.call("getBalance", [owner, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw token balance summed over the owner's accounts for a mint (0 if none)"""
        result = await self.call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        total = 0
        for account in result.get("value", []):
            info = account["account"]["data"]["parsed"]["info"]
            total += int(info["tokenAmount"]["amount"])
        return total

    async def account_exists(self, address: str) -> bool:
        result = await self.call("getAccountInfo", [address, {"encoding": "jsonParsed"}])
        return bool(result and result.get("value"))

    async def send_transaction(self, signed_tx_b64: str) -> str:
        """Submit a signed transaction; returns its signature"""
        try:
            return await self.call(
                "sendTransaction",
                [signed_tx_b64, {"encoding": "base64", "skipPreflight": True, "maxRetries": 3}],
            )
        except RpcError as e:
            raise SubmissionError(str(e)) from e

    async def confirm_transaction(
        self,
        signature: str,
        timeout_seconds: float = 60.0,
        poll_seconds: float = 1.0,
    ) -> Dict[str, Any]:
        """
        Poll signature status until confirmed.

        Raises:
            SubmissionError: the transaction failed on chain or timed out
        """
        deadline = time.monotonic() + timeout_seconds
        wanted = ("confirmed", "finalized") if self.commitment != "finalized" else ("finalized",)

        while time.monotonic() < deadline:
            try:
                result = await self.call("getSignatureStatuses", [[signature]])
            except RpcError as e:
                logger.warning(f"Status poll failed for {signature[:12]}: {e}")
                result = None

            status = (result or {}).get("value", [None])[0]
            if status:
                if status.get("err") is not None:
                    raise SubmissionError(f"Swap failed: {status['err']}")
                if status.get("confirmationStatus") in wanted:
                    return status
            await asyncio.sleep(poll_seconds)

        raise SubmissionError(f"Confirmation timed out for {signature}")

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
