"""
ThinScalp - Main Entry Point
Thin-liquidity Solana scalp bot: sharded execution, TP/SL monitoring and autonomous momentum entries
"""
import asyncio
import signal
import sys
from typing import List, Optional

from loguru import logger

from config.settings import Settings
from thinscalp.analysis.candidate_selector import CandidateSelector
from thinscalp.analysis.momentum_feed import MomentumFeedAggregator
from thinscalp.analysis.screener import SCREENER_HORIZONS, ScreenerSource
from thinscalp.commands.handlers import CommandHandler
from thinscalp.controls.autopilot_config import AutopilotConfigStore
from thinscalp.controls.cooldowns import EntryCooldowns
from thinscalp.errors import ConfigError
from thinscalp.execution.sharded_execution import ShardedExecutionEngine, to_native
from thinscalp.feeds.tick_feed import TickFeed
from thinscalp.notifications.telegram_control import AccessPolicy, TelegramControl
from thinscalp.notifications.telegram_notifier import TelegramNotifier
from thinscalp.positions.entry_executor import EntryExecutor
from thinscalp.positions.position_monitor import PositionMonitor
from thinscalp.positions.position_store import PositionStore
from thinscalp.venue.jupiter_client import JupiterClient
from thinscalp.venue.solana_rpc import SolanaRpcClient
from thinscalp.venue.swap_venue import SwapVenue
from thinscalp.venue.wallet import KeypairSigner


class ThinScalpBot:
    """Process root: owns every long-lived object and schedules the loops"""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the bot"""
        self.settings = settings or Settings.load()
        self._setup_logging()

        logger.info("=" * 80)
        logger.info("THINSCALP INITIALIZING")
        logger.info("=" * 80)

        self.settings.require_runtime_secrets()
        s = self.settings

        # Venue
        signer = KeypairSigner(s.venue.wallet_private_key)
        self.venue = SwapVenue(
            jupiter=JupiterClient(
                quote_url=s.venue.quote_url,
                swap_url=s.venue.swap_url,
                impact_is_percent=s.venue.price_impact_is_percent,
                timeout_seconds=s.venue.http_timeout_seconds,
            ),
            rpc=SolanaRpcClient(
                rpc_url=s.venue.rpc_url,
                commitment=s.venue.commitment,
                timeout_seconds=s.venue.http_timeout_seconds,
            ),
            signer=signer,
            native_mint=s.venue.native_mint,
            confirm_timeout_seconds=s.venue.confirm_timeout_seconds,
        )

        self.engine = ShardedExecutionEngine(
            self.venue,
            slippage_bps_base=s.execution.max_slippage_bps_base,
            slippage_bps_cap=s.execution.max_slippage_bps_cap,
            target_impact_pct=s.execution.target_impact_pct,
            hard_impact_pct=s.execution.hard_impact_pct,
            max_shards=s.execution.max_shards,
            min_shard_native=s.execution.min_shard_sol,
            shard_delay_ms=s.execution.shard_delay_ms,
            exit_shards=s.execution.exit_shards,
            exit_delay_ms=s.execution.exit_delay_ms,
        )

        # State
        self.store = PositionStore(s.storage.positions_path)
        self.config_store = AutopilotConfigStore(
            s.storage.autopilot_path,
            defaults=s.autopilot.initial_config(s.strategy.candidate_source),
        )
        self.autopilot = self.config_store.load()
        self.cooldowns = EntryCooldowns(self.autopilot, self.config_store)

        # Notifications
        self.telegram: Optional[TelegramNotifier] = None
        if s.telegram.enabled:
            self.telegram = TelegramNotifier(
                bot_token=s.telegram.bot_token,
                chat_id=s.telegram.chat_id,
                timeout_seconds=s.telegram.poll_timeout_seconds + 30,
            )

        # Positions
        self.exit_profile = s.strategy.resolve_exit_profile()
        logger.info(
            f"Exit profile {self.exit_profile.name}: TP +{self.exit_profile.take_profit_pct}% / "
            f"SL -{self.exit_profile.stop_loss_pct}% (partial exits {'on' if self.exit_profile.partial_exits else 'off'})"
        )
        self.entries = EntryExecutor(
            self.engine, self.store, self.venue, self.exit_profile, verify_instruments=s.venue.verify_mints
        )
        self.monitor = PositionMonitor(
            self.store,
            self.engine,
            self.venue,
            notifier=self.telegram,
            partial_exits=self.exit_profile.partial_exits,
            poll_seconds=s.monitor.poll_seconds,
        )

        # Candidates
        self.tick_feed: Optional[TickFeed] = None
        self.screener: Optional[ScreenerSource] = None
        if s.strategy.candidate_source == "screener":
            self.screener = ScreenerSource(
                s.feed.screener_url, chain_id=s.feed.screener_chain_id, timeout_seconds=s.venue.http_timeout_seconds
            )
            source = self.screener
            unknown = set(self.autopilot.gates) - set(SCREENER_HORIZONS.values())
            if unknown:
                logger.warning(f"Gates {sorted(unknown)} have no screener horizon; no candidate will pass them")
        else:
            aggregator = MomentumFeedAggregator({name: gate.seconds for name, gate in self.autopilot.gates.items()})
            self.tick_feed = TickFeed(
                s.feed.websocket_url,
                aggregator,
                max_trade_subscriptions=s.feed.max_trade_subscriptions,
                reconnect_delay_seconds=s.feed.reconnect_delay_seconds,
                max_reconnect_delay_seconds=s.feed.max_reconnect_delay_seconds,
            )
            source = aggregator
        logger.info(f"Candidate source: {s.strategy.candidate_source}")

        self.selector = CandidateSelector(
            self.autopilot,
            self.cooldowns,
            source,
            self.store,
            self.entries,
            notifier=self.telegram,
            tick_seconds=s.autopilot.tick_seconds,
        )

        # Control channel
        self.control: Optional[TelegramControl] = None
        if self.telegram:
            handler = CommandHandler(
                self.venue,
                self.engine,
                self.entries,
                self.store,
                self.autopilot,
                self.config_store,
                self.cooldowns,
                default_buy_native=s.execution.default_buy_sol,
            )
            self.control = TelegramControl(
                self.telegram,
                handler,
                AccessPolicy(s.telegram.allowed_user_ids, s.telegram.allowed_chat_ids),
                poll_timeout_seconds=s.telegram.poll_timeout_seconds,
                log_ids=s.telegram.debug_ids,
            )
            if not (s.telegram.allowed_user_ids or s.telegram.allowed_chat_ids):
                logger.warning("Telegram allow-lists are empty - every command will be refused (use /whoami)")

        self.running = False
        self._tasks: List[asyncio.Task] = []
        self._stopped = False

    def _setup_logging(self):
        """Configure logging"""
        logger.remove()  # Remove default handler

        # Console logging
        logger.add(
            sys.stderr,
            level=self.settings.logging.log_level,
            format=self.settings.logging.log_format,
        )

        # File logging
        if self.settings.logging.log_to_file:
            logger.add(
                self.settings.logging.log_file_path,
                level=self.settings.logging.log_level,
                format=self.settings.logging.log_format,
                rotation=f"{self.settings.logging.log_max_size_mb} MB",
                retention=self.settings.logging.log_backup_count,
            )

    async def initialize(self):
        """Verify connectivity and announce startup"""
        logger.info("Performing startup checks...")
        logger.info(f"Wallet: {self.venue.wallet_address}")

        balance_native = 0.0
        try:
            balance_native = to_native(await self.venue.native_balance())
            logger.info(f"✅ RPC connection successful - balance {balance_native:.4f} SOL")
        except Exception as e:
            logger.warning(f"Balance check failed: {e}")

        logger.info(
            f"Autopilot {'ON' if self.autopilot.enabled else 'OFF'}, "
            f"{len(self.store)}/{self.autopilot.max_open_positions} positions open"
        )

        if self.telegram:
            await self.telegram.initialize()
            try:
                await self.telegram.send_startup_message(
                    wallet=self.venue.wallet_address,
                    balance_native=balance_native,
                    exit_profile=self.exit_profile.name,
                    source=self.settings.strategy.candidate_source,
                )
            except Exception as e:
                logger.warning(f"Failed to send startup notification: {e}")

    async def run(self):
        """Run every loop until shutdown"""
        self.running = True
        loops = [self.monitor.run_forever(), self.selector.run_forever()]
        if self.tick_feed:
            loops.append(self.tick_feed.run_forever())
        if self.control:
            loops.append(self.control.run_forever())

        self._tasks = [asyncio.create_task(loop) for loop in loops]
        logger.info(f"Started {len(self._tasks)} loops")
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Loops cancelled")

    async def shutdown(self):
        """Graceful shutdown"""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Shutting down ThinScalp...")
        self.running = False

        self.monitor.stop()
        self.selector.stop()
        if self.control:
            self.control.stop()
        if self.tick_feed:
            await self.tick_feed.stop()

        for task in self._tasks:
            task.cancel()

        if self.telegram:
            try:
                await self.telegram.send_shutdown_message(open_positions=len(self.store))
            except Exception as e:
                logger.warning(f"Failed to send shutdown notification: {e}")
            await self.telegram.close()

        if self.screener:
            await self.screener.close()
        await self.venue.close()

        logger.info("Shutdown complete")


async def main():
    """Main entry point"""
    try:
        bot = ThinScalpBot()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Interrupt received, shutting down...")
        asyncio.create_task(bot.shutdown())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await bot.initialize()
        await bot.run()

    except Exception as e:
        logger.exception(f"Fatal error: {e}")

    finally:
        await bot.shutdown()


def cli():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
