"""
Configuration settings for the ThinScalp bot
"""
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from thinscalp.controls.autopilot_config import AutopilotConfig, HorizonGate
from thinscalp.errors import ConfigError
from thinscalp.positions.position_monitor import EXIT_PROFILES, ExitProfile

CandidateSource = Literal["momentum_feed", "screener"]


def _csv(value: str) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class VenueSettings(BaseSettings):
    """Solana RPC and Jupiter routing configuration"""
    model_config = {"env_file": ".env", "env_prefix": "VENUE_", "extra": "ignore"}

    rpc_url: str = "https://api.mainnet-beta.solana.com"
    commitment: str = "confirmed"
    quote_url: str = "https://quote-api.jup.ag/v6/quote"
    swap_url: str = "https://quote-api.jup.ag/v6/swap"
    native_mint: str = "So11111111111111111111111111111111111111112"
    wallet_private_key: Optional[str] = Field(None, description="Base58 encoded secret key")
    confirm_timeout_seconds: float = Field(60.0, gt=0)
    http_timeout_seconds: float = Field(15.0, gt=0)
    price_impact_is_percent: bool = False
    verify_mints: bool = True


class ExecutionSettings(BaseSettings):
    """Sharded execution configuration"""
    model_config = {"env_file": ".env", "env_prefix": "THIN_", "extra": "ignore"}

    max_slippage_bps_base: int = Field(200, ge=1)
    max_slippage_bps_cap: int = Field(500, ge=1)
    target_impact_pct: float = Field(2.0, gt=0)
    hard_impact_pct: float = Field(5.0, gt=0)
    max_shards: int = Field(5, ge=1, le=50)
    min_shard_sol: float = Field(0.005, gt=0)
    shard_delay_ms: int = Field(800, ge=0)
    exit_shards: int = Field(3, ge=1, le=50)
    exit_delay_ms: int = Field(1200, ge=0)
    default_buy_sol: float = Field(0.05, gt=0)


class StrategySettings(BaseSettings):
    """Exit profile and candidate source, selectable independently"""
    model_config = {"env_file": ".env", "env_prefix": "STRATEGY_", "extra": "ignore"}

    exit_profile: Literal["scalp_thin", "scalp_tight"] = "scalp_thin"
    take_profit_pct: Optional[float] = Field(None, gt=0)
    stop_loss_pct: Optional[float] = Field(None, ge=0)
    partial_exits: Optional[bool] = None
    candidate_source: CandidateSource = "momentum_feed"

    def resolve_exit_profile(self) -> ExitProfile:
        """Preset with any TP/SL/partial overrides applied"""
        profile = EXIT_PROFILES[self.exit_profile]
        overrides = {}
        if self.take_profit_pct is not None:
            overrides["take_profit_pct"] = self.take_profit_pct
        if self.stop_loss_pct is not None:
            overrides["stop_loss_pct"] = self.stop_loss_pct
        if self.partial_exits is not None:
            overrides["partial_exits"] = self.partial_exits
        return replace(profile, **overrides) if overrides else profile


class MonitorSettings(BaseSettings):
    """Position monitor configuration"""
    model_config = {"env_file": ".env", "env_prefix": "MONITOR_", "extra": "ignore"}

    poll_seconds: float = Field(10.0, gt=0)


# Default horizon gates per candidate source. Shorter horizons carry the larger weights.
DEFAULT_GATES: Dict[str, Dict[str, dict]] = {
    "momentum_feed": {
        "30s": {"seconds": 30, "min_buys": 5, "min_change_pct": 2.0, "buy_weight": 2.0, "change_weight": 1.5},
        "5m": {"seconds": 300, "min_buys": 15, "min_change_pct": 4.0, "buy_weight": 1.0, "change_weight": 1.0},
    },
    "screener": {
        "5m": {"seconds": 300, "min_buys": 20, "min_change_pct": 4.0, "buy_weight": 1.0, "change_weight": 1.0},
        "1h": {"seconds": 3600, "min_buys": 0, "min_change_pct": 0.0, "buy_weight": 0.2, "change_weight": 0.2},
    },
}


class AutopilotSettings(BaseSettings):
    """Initial autopilot defaults, persisted to the autopilot record on first run"""
    model_config = {"env_file": ".env", "env_prefix": "AUTOPILOT_", "extra": "ignore"}

    enabled: bool = False
    budget_sol_per_buy: float = Field(0.02, gt=0)
    max_open_positions: int = Field(3, ge=0)
    min_liq_usd: float = Field(6000.0, ge=0)
    cooldown_min: float = Field(30.0, ge=0)
    retry_cooldown_min: float = Field(30.0, ge=0)
    blacklist: str = Field("", description="Comma separated mints")
    tick_seconds: float = Field(60.0, gt=0)

    @property
    def blacklist_mints(self) -> List[str]:
        return list(dict.fromkeys(_csv(self.blacklist)))

    def initial_config(self, source: CandidateSource) -> AutopilotConfig:
        return AutopilotConfig(
            enabled=self.enabled,
            budget_native=self.budget_sol_per_buy,
            max_open_positions=self.max_open_positions,
            gates={name: HorizonGate(**gate) for name, gate in DEFAULT_GATES[source].items()},
            min_liquidity_usd=self.min_liq_usd,
            cooldown_ms=int(self.cooldown_min * 60_000),
            retry_cooldown_ms=int(self.retry_cooldown_min * 60_000),
            blacklist=self.blacklist_mints,
        )


class FeedSettings(BaseSettings):
    """Candidate source configuration"""
    model_config = {"env_file": ".env", "env_prefix": "FEED_", "extra": "ignore"}

    websocket_url: str = "wss://pumpportal.fun/api/data"
    max_trade_subscriptions: int = Field(500, ge=1)
    reconnect_delay_seconds: float = Field(2.0, gt=0)
    max_reconnect_delay_seconds: float = Field(60.0, gt=0)
    screener_url: str = "https://api.dexscreener.com/latest/dex/search?q=solana"
    screener_chain_id: str = "solana"


class TelegramSettings(BaseSettings):
    """Telegram control channel configuration"""
    model_config = {"env_file": ".env", "env_prefix": "TELEGRAM_", "extra": "ignore"}

    enabled: bool = True
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    allowed_user_id: str = Field("", description="Comma separated user ids")
    allowed_chat_id: str = Field("", description="Comma separated chat ids")
    poll_timeout_seconds: int = Field(30, ge=0, le=50)
    debug_ids: bool = False

    @property
    def allowed_user_ids(self) -> List[str]:
        return _csv(self.allowed_user_id)

    @property
    def allowed_chat_ids(self) -> List[str]:
        return _csv(self.allowed_chat_id)


class StorageSettings(BaseSettings):
    """State file locations"""
    model_config = {"env_file": ".env", "env_prefix": "STORAGE_", "extra": "ignore"}

    data_dir: Path = Path("data")
    positions_file: str = "positions.json"
    autopilot_file: str = "autopilot.json"

    @property
    def positions_path(self) -> Path:
        return self.data_dir / self.positions_file

    @property
    def autopilot_path(self) -> Path:
        return self.data_dir / self.autopilot_file


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    model_config = {"env_file": ".env", "extra": "ignore"}

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_to_file: bool = True
    log_file_path: Path = Path("logs/thinscalp.log")
    log_max_size_mb: int = 50
    log_backup_count: int = 10
    log_format: str = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"


class Settings(BaseSettings):
    """Main settings aggregator"""
    model_config = {"extra": "ignore"}  # Ignore extra env vars since they're loaded by nested classes

    venue: VenueSettings = Field(default_factory=VenueSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    strategy: StrategySettings = Field(default_factory=StrategySettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    autopilot: AutopilotSettings = Field(default_factory=AutopilotSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment"""
        return cls(
            venue=VenueSettings(),
            execution=ExecutionSettings(),
            strategy=StrategySettings(),
            monitor=MonitorSettings(),
            autopilot=AutopilotSettings(),
            feed=FeedSettings(),
            telegram=TelegramSettings(),
            storage=StorageSettings(),
            logging=LoggingSettings(),
        )

    def require_runtime_secrets(self):
        """
        Fail fast on secrets the bot cannot run without

        Raises:
            ConfigError: listing every missing variable
        """
        missing = []
        if not self.venue.wallet_private_key:
            missing.append("VENUE_WALLET_PRIVATE_KEY")
        if self.telegram.enabled and not self.telegram.bot_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        if self.execution.max_slippage_bps_base > self.execution.max_slippage_bps_cap:
            raise ConfigError("THIN_MAX_SLIPPAGE_BPS_BASE must not exceed THIN_MAX_SLIPPAGE_BPS_CAP")
        if self.execution.target_impact_pct > self.execution.hard_impact_pct:
            raise ConfigError("THIN_TARGET_IMPACT_PCT must not exceed THIN_HARD_IMPACT_PCT")
