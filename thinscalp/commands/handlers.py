"""
Command handlers - one handler per command variant, each returning the reply text
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from loguru import logger

from thinscalp.commands import parser as cmd
from thinscalp.controls.autopilot_config import AutopilotConfig, AutopilotConfigStore
from thinscalp.controls.cooldowns import EntryCooldowns
from thinscalp.errors import CommandError, InstrumentNotFoundError
from thinscalp.execution.sharded_execution import ShardedExecutionEngine, to_native
from thinscalp.positions.entry_executor import EntryExecutor
from thinscalp.positions.position_store import PositionStore

HELP_TEXT = """ThinScalp commands

/bal - wallet SOL balance
/buy <mint> [sol] - sharded buy, not monitored
/sell <mint> [pct] - sharded sell of pct% of the held balance
/autobuy <mint> [sol] - buy and monitor with TP/SL
/status - monitored positions
/cancel <mint> - stop monitoring a position (no sell)
/autopilot on|off|status
/autofilters - show autopilot filters
/autofilters budget|maxopen|minliq|cooldown|retry <value>
/autofilters minbuys<h>|minchg<h> <value>
/autofilters blacklist show|add <mint>|remove <mint>
/whoami - your user and chat ids
/authstatus - allow-list check for this chat"""

MS_PER_MINUTE = 60_000


@dataclass
class CommandContext:
    """Who sent the command"""
    user_id: Optional[int] = None
    chat_id: Optional[int] = None
    username: Optional[str] = None
    authorized: bool = False


def _short(mint: str) -> str:
    return f"{mint[:4]}…{mint[-4:]}" if len(mint) > 12 else mint


class CommandHandler:
    """Executes parsed commands against the trading core"""

    def __init__(
        self,
        venue,
        engine: ShardedExecutionEngine,
        entries: EntryExecutor,
        store: PositionStore,
        config: AutopilotConfig,
        config_store: AutopilotConfigStore,
        cooldowns: EntryCooldowns,
        default_buy_native: float = 0.01,
    ):
        self.venue = venue
        self.engine = engine
        self.entries = entries
        self.store = store
        self.config = config
        self.config_store = config_store
        self.cooldowns = cooldowns
        self.default_buy_native = default_buy_native

        self._handlers: Dict[type, Callable] = {
            cmd.Help: self._help,
            cmd.WhoAmI: self._whoami,
            cmd.AuthStatus: self._authstatus,
            cmd.Balance: self._balance,
            cmd.Buy: self._buy,
            cmd.Sell: self._sell,
            cmd.AutoBuy: self._autobuy,
            cmd.Status: self._status,
            cmd.Cancel: self._cancel,
            cmd.AutopilotSwitch: self._autopilot,
            cmd.ShowFilters: self._show_filters,
            cmd.SetFilter: self._set_filter,
            cmd.BlacklistShow: self._blacklist_show,
            cmd.BlacklistAdd: self._blacklist_add,
            cmd.BlacklistRemove: self._blacklist_remove,
        }

    async def handle(self, command: cmd.Command, context: CommandContext = None) -> str:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise CommandError(f"Unsupported command: {type(command).__name__}")
        return await handler(command, context or CommandContext())

    # ----- info -----

    async def _help(self, command: cmd.Help, context: CommandContext) -> str:
        return HELP_TEXT

    async def _whoami(self, command: cmd.WhoAmI, context: CommandContext) -> str:
        return (
            f"user_id: {context.user_id}\n"
            f"chat_id: {context.chat_id}\n"
            f"username: @{context.username or '-'}"
        )

    async def _authstatus(self, command: cmd.AuthStatus, context: CommandContext) -> str:
        return (
            "Auth debug:\n"
            f"- from.id: {context.user_id}\n"
            f"- chat.id: {context.chat_id}\n"
            f"- allowed: {'YES' if context.authorized else 'NO'}"
        )

    async def _balance(self, command: cmd.Balance, context: CommandContext) -> str:
        lamports = await self.venue.native_balance()
        return f"Balance: {to_native(lamports):.6f} SOL\nWallet: {self.venue.wallet_address}"

    async def _status(self, command: cmd.Status, context: CommandContext) -> str:
        positions = list(self.store)
        if not positions:
            return "No monitored positions."

        lines = [f"Monitored positions ({len(positions)}):"]
        for p in positions:
            checked = p.last_evaluated_at.strftime("%H:%M:%S") if p.last_evaluated_at else "never"
            lines.append(
                f"• {_short(p.instrument_id)} [{p.state}] cost {p.entry_cost_native:.6f} SOL, "
                f"TP +{p.take_profit_pct:g}% / SL -{p.stop_loss_pct:g}%, {p.source}, checked {checked}"
            )
        return "\n".join(lines)

    # ----- trading -----

    async def _buy(self, command: cmd.Buy, context: CommandContext) -> str:
        amount = command.amount_native or self.default_buy_native
        try:
            if not await self.venue.instrument_exists(command.instrument_id):
                raise InstrumentNotFoundError(f"Mint does not exist: {command.instrument_id}")
            result = await self.engine.buy_by_native(command.instrument_id, amount)
        except Exception as e:
            logger.error(f"[Buy error] {command.instrument_id}: {e}")
            return f"Buy failed: {e}"

        return (
            f"✅ Bought {_short(command.instrument_id)}: {result.spent_native:.6f} SOL -> "
            f"{result.received_raw} raw in {result.shard_count} shard(s)\n"
            f"tx: {', '.join(result.signatures)}"
        )

    async def _sell(self, command: cmd.Sell, context: CommandContext) -> str:
        try:
            balance = await self.venue.token_balance(command.instrument_id)
            raw_amount = balance * int(round(command.percent * 100)) // 10_000
            result = await self.engine.sell_by_raw(command.instrument_id, raw_amount)
        except Exception as e:
            logger.error(f"[Sell error] {command.instrument_id}: {e}")
            return f"Sell failed: {e}"

        return (
            f"✅ Sold {result.sold_raw} raw of {_short(command.instrument_id)} ({command.percent:g}%) for "
            f"{result.received_native:.6f} SOL in {result.shard_count} shard(s)\n"
            f"tx: {', '.join(result.signatures)}"
        )

    async def _autobuy(self, command: cmd.AutoBuy, context: CommandContext) -> str:
        amount = command.amount_native or self.default_buy_native
        try:
            position, result = await self.entries.open_position(command.instrument_id, amount, source="manual")
        except Exception as e:
            logger.error(f"[Autobuy error] {command.instrument_id}: {e}")
            return f"Autobuy failed: {e}"

        return (
            f"✅ Monitoring {_short(position.instrument_id)}: spent {result.spent_native:.6f} SOL "
            f"in {result.shard_count} shard(s), cost basis {position.entry_cost_native:.6f} SOL\n"
            f"TP +{position.take_profit_pct:g}% / SL -{position.stop_loss_pct:g}%"
        )

    async def _cancel(self, command: cmd.Cancel, context: CommandContext) -> str:
        if self.store.remove(command.instrument_id) is None:
            return f"No monitored position for {_short(command.instrument_id)}."
        logger.info(f"Monitoring cancelled for {command.instrument_id}")
        return f"Stopped monitoring {_short(command.instrument_id)} (tokens were not sold)."

    # ----- autopilot -----

    def _persist(self):
        self.config_store.save(self.config)

    async def _autopilot(self, command: cmd.AutopilotSwitch, context: CommandContext) -> str:
        if command.action in ("on", "off"):
            self.config.enabled = command.action == "on"
            self._persist()
            logger.info(f"Autopilot switched {command.action}")

        wait_min = self.cooldowns.next_entry_in_ms() / MS_PER_MINUTE
        return (
            f"Autopilot: {'ON' if self.config.enabled else 'OFF'}\n"
            f"Open positions: {len(self.store)}/{self.config.max_open_positions}\n"
            f"Budget per entry: {self.config.budget_native:g} SOL\n"
            f"Next entry allowed in: {wait_min:.1f} min"
        )

    async def _show_filters(self, command: cmd.ShowFilters, context: CommandContext) -> str:
        c = self.config
        lines = [
            "Autopilot filters",
            f"budget: {c.budget_native:g} SOL",
            f"maxopen: {c.max_open_positions}",
            f"minliq: {c.min_liquidity_usd:g} USD",
            f"cooldown: {c.cooldown_ms / MS_PER_MINUTE:g} min",
            f"retry: {c.retry_cooldown_ms / MS_PER_MINUTE:g} min",
        ]
        for name, gate in c.sorted_gates():
            lines.append(
                f"{name}: minbuys{name} {gate.min_buys}, minchg{name} {gate.min_change_pct:g}% "
                f"(weights {gate.buy_weight:g}/{gate.change_weight:g})"
            )
        lines.append(f"blacklist: {len(c.blacklist)} mint(s)")
        return "\n".join(lines)

    async def _set_filter(self, command: cmd.SetFilter, context: CommandContext) -> str:
        c = self.config
        field, value = command.field, command.value

        if field == "budget":
            if value <= 0:
                raise CommandError("Invalid budget")
            c.budget_native = value
        elif field == "maxopen":
            c.max_open_positions = int(value)
        elif field == "minliq":
            c.min_liquidity_usd = value
        elif field == "cooldown":
            c.cooldown_ms = int(value * MS_PER_MINUTE)
        elif field == "retry":
            c.retry_cooldown_ms = int(value * MS_PER_MINUTE)
        else:
            gate = c.gates.get(command.horizon)
            if gate is None:
                known = ", ".join(name for name, _ in c.sorted_gates()) or "none"
                raise CommandError(f"Unknown horizon {command.horizon}. Known: {known}")
            if field == "minbuys":
                gate.min_buys = int(value)
            else:
                gate.min_change_pct = value
            field = f"{field}{command.horizon}"

        self._persist()
        logger.info(f"Autopilot filter {field} set to {value:g}")
        return f"✅ {field} = {value:g}"

    async def _blacklist_show(self, command: cmd.BlacklistShow, context: CommandContext) -> str:
        if not self.config.blacklist:
            return "Blacklist is empty."
        return "Blacklist:\n" + "\n".join(self.config.blacklist)

    async def _blacklist_add(self, command: cmd.BlacklistAdd, context: CommandContext) -> str:
        if command.instrument_id in self.config.blacklist:
            return f"{_short(command.instrument_id)} is already blacklisted."
        self.config.blacklist.append(command.instrument_id)
        self._persist()
        return f"✅ Blacklisted {_short(command.instrument_id)}"

    async def _blacklist_remove(self, command: cmd.BlacklistRemove, context: CommandContext) -> str:
        if command.instrument_id not in self.config.blacklist:
            return f"{_short(command.instrument_id)} is not blacklisted."
        self.config.blacklist.remove(command.instrument_id)
        self._persist()
        return f"✅ Removed {_short(command.instrument_id)} from blacklist"
