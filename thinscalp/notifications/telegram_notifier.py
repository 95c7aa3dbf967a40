"""
Telegram Notification Module - Sends entry/exit alerts and command replies to Telegram
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class TelegramNotifier:
    """Telegram notification handler"""

    def __init__(self, bot_token: str, chat_id: Optional[str] = None, timeout_seconds: float = 60.0):
        """
        Initialize Telegram notifier

        Args:
            bot_token: Telegram bot token
            chat_id: Chat ID for alerts; falls back to the last chat that sent a command
            timeout_seconds: HTTP timeout, must exceed the long-poll timeout
        """
        self.bot_token = bot_token
        self.chat_id = chat_id or None
        self.last_active_chat_id: Optional[str] = None
        self.base_url = f"https://api.telegram.org/bot{bot_token}"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info("Telegram notifier initialized")

    async def initialize(self) -> bool:
        """Initialize async session and verify the token"""
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

        try:
            me = await self.call("getMe")
            logger.info(f"✅ Telegram connection verified (@{me.get('username', '?')})")
            return True
        except Exception as e:
            logger.error(f"❌ Telegram connection failed: {e}")
            return False

    async def call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a Bot API method

        Returns:
            The ``result`` field of the response

        Raises:
            aiohttp.ClientError on transport failure, RuntimeError when the API reports an error
        """
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

        async with self.session.post(f"{self.base_url}/{method}", json=payload or {}) as response:
            data = await response.json()
        if not data.get("ok"):
            raise RuntimeError(f"Telegram {method} error: {data.get('description', data)}")
        return data.get("result")

    def remember_chat(self, chat_id: Any):
        """Record the chat of the latest authorized command"""
        self.last_active_chat_id = str(chat_id)

    @property
    def alert_chat_id(self) -> Optional[str]:
        return self.chat_id or self.last_active_chat_id

    async def send_message(
        self,
        text: str,
        chat_id: Optional[str] = None,
        parse_mode: Optional[str] = "HTML",
        disable_notification: bool = False,
    ) -> bool:
        """
        Send a message to Telegram

        Args:
            text: Message text
            chat_id: Target chat; defaults to the alert chat
            parse_mode: HTML, Markdown or None for plain text
            disable_notification: Silent notification

        Returns:
            True if sent successfully
        """
        target = chat_id or self.alert_chat_id
        if not target:
            logger.warning("Cannot send message - no chat ID available yet (send /start to the bot)")
            return False

        payload = {
            "chat_id": target,
            "text": text,
            "disable_notification": disable_notification,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            await self.call("sendMessage", payload)
            logger.debug("Message sent to Telegram")
            return True
        except Exception as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False

    async def send_entry_alert(self, position, result, autopilot: bool = False):
        """Send entry alert for a newly opened (or scaled-in) position"""
        header = "🤖 <b>AUTOPILOT BUY</b>" if autopilot else "🟢 <b>BUY</b>"
        message = f"""
{header}

🪙 <code>{position.instrument_id}</code>
💰 Spent: {result.spent_native:.6f} SOL in {result.shard_count} shard(s)
📦 Received: {result.received_raw} raw
🎯 TP: +{position.take_profit_pct:g}% | 🛑 SL: -{position.stop_loss_pct:g}%
        """

        if result.signatures:
            message += f"\n🔗 Last tx: <code>{result.signatures[-1]}</code>"

        message += f"\n\n⏰ {_utc_stamp()} UTC"

        await self.send_message(message)

    async def send_exit_alert(self, action: str, instrument_id: str, pnl_pct: float, received_native: float):
        """Send TP/SL exit alert"""
        if action == "stop_loss":
            title = "🛑 <b>STOP LOSS</b>"
        elif action == "partial_tp":
            title = "💚 <b>PARTIAL TAKE PROFIT</b> (SL moved to breakeven)"
        else:
            title = "🎯 <b>TAKE PROFIT</b>"

        message = f"""
{title}

🪙 <code>{instrument_id}</code>
📊 PnL at trigger: {pnl_pct:+.1f}%
💵 Received: {received_native:.6f} SOL

⏰ {_utc_stamp()} UTC
        """
        await self.send_message(message)

    async def send_error(self, title: str, error: str):
        """Send error message"""
        text = f"""
🚨 <b>ERROR: {title}</b> 🚨

{error}

Please check the logs for details.

⏰ {_utc_stamp()} UTC
        """
        await self.send_message(text, disable_notification=False)

    async def send_startup_message(self, wallet: str, balance_native: float, exit_profile: str, source: str):
        """Send bot startup message"""
        message = f"""
🚀 <b>THINSCALP STARTED</b> 🚀

👛 Wallet: <code>{wallet}</code>
💰 Balance: {balance_native:.4f} SOL
🎯 Exit profile: {exit_profile}
📡 Candidates: {source}

⏰ {_utc_stamp()} UTC
        """
        await self.send_message(message)

    async def send_shutdown_message(self, open_positions: int):
        """Send bot shutdown message"""
        message = f"""
🛑 <b>BOT SHUTDOWN</b> 🛑

📈 Open positions left: {open_positions}

Bot stopped successfully.

⏰ {_utc_stamp()} UTC
        """
        await self.send_message(message)

    async def close(self):
        """Close the session"""
        if self.session:
            await self.session.close()
            self.session = None
