"""
Telegram control channel - long-polls bot updates and dispatches authorized commands
"""
import asyncio
from typing import Any, Dict, Iterable, Optional, Set

from loguru import logger

from thinscalp.commands import parser as cmd
from thinscalp.commands.handlers import CommandContext, CommandHandler
from thinscalp.errors import CommandError
from thinscalp.notifications.telegram_notifier import TelegramNotifier

# answered without an allow-list match so operators can discover their ids
OPEN_COMMANDS = (cmd.WhoAmI, cmd.AuthStatus)


class AccessPolicy:
    """User-id or chat-id allow-list"""

    def __init__(self, user_ids: Iterable[Any] = (), chat_ids: Iterable[Any] = ()):
        self.user_ids: Set[str] = {str(u).strip() for u in user_ids if str(u).strip()}
        self.chat_ids: Set[str] = {str(c).strip() for c in chat_ids if str(c).strip()}

    def allows(self, user_id: Any, chat_id: Any) -> bool:
        return str(user_id) in self.user_ids or str(chat_id) in self.chat_ids


class TelegramControl:
    """Command loop over getUpdates"""

    def __init__(
        self,
        notifier: TelegramNotifier,
        handler: CommandHandler,
        policy: AccessPolicy,
        poll_timeout_seconds: int = 30,
        error_backoff_seconds: float = 5.0,
        log_ids: bool = False,
    ):
        self.notifier = notifier
        self.handler = handler
        self.policy = policy
        self.poll_timeout_seconds = poll_timeout_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.log_ids = log_ids
        self.offset: Optional[int] = None
        self.running = False

    async def handle_update(self, update: Dict[str, Any]) -> Optional[str]:
        """
        Process one update and send the reply.

        Returns:
            The reply text, or None when the update was ignored
        """
        message = update.get("message") or update.get("edited_message")
        if not message or not message.get("text"):
            return None

        sender = message.get("from") or {}
        chat_id = (message.get("chat") or {}).get("id")
        context = CommandContext(
            user_id=sender.get("id"),
            chat_id=chat_id,
            username=sender.get("username"),
            authorized=self.policy.allows(sender.get("id"), chat_id),
        )
        if self.log_ids:
            logger.info(f"Telegram message from user {context.user_id} in chat {context.chat_id} (allowed={context.authorized})")
        if context.authorized:
            self.notifier.remember_chat(chat_id)

        reply = await self.dispatch(message["text"], context)
        if reply is not None:
            await self.notifier.send_message(reply, chat_id=str(chat_id), parse_mode=None)
        return reply

    async def dispatch(self, text: str, context: CommandContext) -> Optional[str]:
        try:
            command = cmd.parse_command(text)
        except CommandError as e:
            return str(e) if context.authorized else "Not authorized."

        if command is None:
            return None
        if not context.authorized and not isinstance(command, OPEN_COMMANDS):
            logger.warning(f"Rejected {type(command).__name__} from user {context.user_id} chat {context.chat_id}")
            return "Not authorized."

        logger.info(f"📩 Command {type(command).__name__} from {context.username or context.user_id}")
        try:
            return await self.handler.handle(command, context)
        except CommandError as e:
            return str(e)
        except Exception as e:
            logger.error(f"[Command error] {text}: {e}")
            return f"Command failed: {e}"

    async def poll_once(self) -> int:
        """Fetch and process one batch of updates; returns the batch size"""
        payload: Dict[str, Any] = {
            "timeout": self.poll_timeout_seconds,
            "allowed_updates": ["message", "edited_message"],
        }
        if self.offset is not None:
            payload["offset"] = self.offset

        updates = await self.notifier.call("getUpdates", payload) or []
        for update in updates:
            self.offset = update["update_id"] + 1
            try:
                await self.handle_update(update)
            except Exception as e:
                logger.error(f"[Telegram update {update.get('update_id')}] {e}")
        return len(updates)

    async def run_forever(self):
        self.running = True
        logger.info("Telegram command loop started")
        while self.running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Telegram polling error: {e}")
                await asyncio.sleep(self.error_backoff_seconds)

    def stop(self):
        self.running = False
