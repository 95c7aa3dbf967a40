"""
Momentum tick feed - websocket subscription to new-token and trade events
"""
import asyncio
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import websockets
from loguru import logger

from thinscalp.analysis.momentum_feed import MomentumFeedAggregator, TradeTick


@dataclass
class NewInstrument:
    """Notification that a new token was created"""
    instrument_id: str


FeedEvent = Union[NewInstrument, TradeTick]


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def parse_feed_message(message: Dict[str, Any], now: float = None) -> Optional[FeedEvent]:
    """
    Translate one feed message into a typed event.

    Returns None for subscription acks and anything else not understood.
    """
    mint = message.get("mint")
    tx_type = str(message.get("txType") or "").lower()
    if not mint or not tx_type:
        return None

    if tx_type == "create":
        return NewInstrument(instrument_id=mint)

    if tx_type not in ("buy", "sell"):
        return None

    sol_amount = _num(message.get("solAmount"))
    token_amount = _num(message.get("tokenAmount"))
    if sol_amount > 0 and token_amount > 0:
        price = sol_amount / token_amount
    else:
        v_sol = _num(message.get("vSolInBondingCurve"))
        v_tokens = _num(message.get("vTokensInBondingCurve"))
        if v_sol <= 0 or v_tokens <= 0:
            return None
        price = v_sol / v_tokens

    return TradeTick(
        instrument_id=mint,
        side=tx_type,
        price=price,
        amount_native=sol_amount,
        timestamp=time.time() if now is None else now,
    )


class TickFeed:
    """Keeps the aggregator fed from the websocket, reconnecting on failure"""

    def __init__(
        self,
        url: str,
        aggregator: MomentumFeedAggregator,
        max_trade_subscriptions: int = 500,
        reconnect_delay_seconds: float = 2.0,
        max_reconnect_delay_seconds: float = 60.0,
    ):
        self.url = url
        self.aggregator = aggregator
        self.max_trade_subscriptions = max_trade_subscriptions
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self.max_reconnect_delay_seconds = max_reconnect_delay_seconds
        self.subscribed: "OrderedDict[str, None]" = OrderedDict()
        self.ws = None
        self.running = False

    async def _send(self, payload: Dict[str, Any]):
        if self.ws is not None:
            await self.ws.send(json.dumps(payload))

    async def _subscribe_trades(self, mint: str):
        if mint in self.subscribed:
            return
        self.subscribed[mint] = None
        await self._send({"method": "subscribeTokenTrade", "keys": [mint]})

        if len(self.subscribed) > self.max_trade_subscriptions:
            oldest, _ = self.subscribed.popitem(last=False)
            await self._send({"method": "unsubscribeTokenTrade", "keys": [oldest]})
            logger.debug(f"Trade subscription cap reached - dropped {oldest[:8]}")

    async def handle_message(self, message: Dict[str, Any]):
        event = parse_feed_message(message)
        if isinstance(event, NewInstrument):
            self.aggregator.on_new_instrument(event.instrument_id)
            await self._subscribe_trades(event.instrument_id)
        elif isinstance(event, TradeTick):
            self.aggregator.on_trade(event)

    async def _consume(self):
        async with websockets.connect(self.url, ping_interval=20) as ws:
            self.ws = ws
            logger.info(f"✅ Tick feed connected ({self.url})")
            await self._send({"method": "subscribeNewToken"})
            if self.subscribed:
                await self._send({"method": "subscribeTokenTrade", "keys": list(self.subscribed)})

            async for raw in ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.debug(f"Ignoring non-JSON feed frame: {str(raw)[:80]}")
                    continue
                if isinstance(message, dict):
                    await self.handle_message(message)

    async def run_forever(self):
        self.running = True
        delay = self.reconnect_delay_seconds
        while self.running:
            try:
                await self._consume()
                delay = self.reconnect_delay_seconds
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Tick feed disconnected: {e} - reconnecting in {delay:.0f}s")
            finally:
                self.ws = None
            if self.running:
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_reconnect_delay_seconds)

    async def stop(self):
        self.running = False
        if self.ws is not None:
            await self.ws.close()
