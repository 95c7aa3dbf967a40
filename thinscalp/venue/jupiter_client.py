"""
Jupiter aggregator client - route quotes and swap transaction building
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from thinscalp.errors import RouteUnavailableError, SubmissionError


@dataclass
class Route:
    """Executable route returned by a quote request"""
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    payload: Dict[str, Any] = field(default_factory=dict)


def parse_route(
    data: Dict[str, Any],
    input_mint: str,
    output_mint: str,
    requested_amount: int,
    impact_is_percent: bool = False,
) -> Route:
    """
    Convert a quote response into a Route.

    Accepts the flat v6 response as well as the older ``{"data": [route, ...]}``
    shape. Jupiter reports ``priceImpactPct`` as a fraction unless
    ``impact_is_percent`` says otherwise.
    """
    quote = data
    if isinstance(data.get("data"), list):
        if not data["data"]:
            raise RouteUnavailableError(f"No route {input_mint[:6]} -> {output_mint[:6]}")
        quote = data["data"][0]

    if not quote or quote.get("outAmount") is None:
        raise RouteUnavailableError(f"No route {input_mint[:6]} -> {output_mint[:6]}")

    raw_impact = quote.get("priceImpactPct")
    try:
        impact = float(raw_impact)
    except (TypeError, ValueError):
        raise RouteUnavailableError(f"Route has no price impact estimate ({raw_impact!r})")
    if math.isnan(impact):
        raise RouteUnavailableError("Route has no price impact estimate (NaN)")

    return Route(
        input_mint=input_mint,
        output_mint=output_mint,
        in_amount=int(quote.get("inAmount") or requested_amount),
        out_amount=int(quote["outAmount"]),
        price_impact_pct=impact if impact_is_percent else impact * 100,
        payload=quote,
    )


class JupiterClient:
    """Thin async wrapper over the Jupiter quote/swap HTTP API"""

    def __init__(
        self,
        quote_url: str,
        swap_url: str,
        impact_is_percent: bool = False,
        timeout_seconds: float = 15.0,
    ):
        self.quote_url = quote_url
        self.swap_url = swap_url
        self.impact_is_percent = impact_is_percent
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

    async def _session(self) -> aiohttp.ClientSession:
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount_raw: int,
        slippage_bps: int,
    ) -> Route:
        """
        Request a route for an exact input amount.

        Raises:
            RouteUnavailableError: HTTP failure or no viable route
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount_raw)),
            "slippageBps": str(int(slippage_bps)),
            "onlyDirectRoutes": "false",
        }
        session = await self._session()
        try:
            async with session.get(self.quote_url, params=params) as response:
                if response.status != 200:
                    body = await response.text()
                    raise RouteUnavailableError(f"Quote failed ({response.status}): {body[:200]}")
                data = await response.json()
        except aiohttp.ClientError as e:
            raise RouteUnavailableError(f"Quote request error: {e}") from e

        route = parse_route(data, input_mint, output_mint, amount_raw, self.impact_is_percent)
        logger.debug(
            f"Quote {input_mint[:6]}->{output_mint[:6]} in={route.in_amount} "
            f"out={route.out_amount} impact={route.price_impact_pct:.2f}%"
        )
        return route

    async def build_swap(self, route: Route, user_public_key: str) -> str:
        """
        Build an unsigned swap transaction for a quoted route.

        Returns:
            Base64-encoded versioned transaction
        """
        payload = {
            "quoteResponse": route.payload,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
        }
        session = await self._session()
        try:
            async with session.post(self.swap_url, json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise SubmissionError(f"Swap build failed ({response.status}): {body[:200]}")
                data = await response.json()
        except aiohttp.ClientError as e:
            raise SubmissionError(f"Swap build request error: {e}") from e

        swap_tx = data.get("swapTransaction")
        if not swap_tx:
            raise SubmissionError("Swap build returned no transaction")
        return swap_tx

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
