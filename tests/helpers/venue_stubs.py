"""
Test helpers for execution, monitor and selector tests.

Provides a scripted in-memory venue, a recording notifier and a manual clock.
Use these instead of mocks so the engine sees the same Route objects it gets in production.
"""
import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from thinscalp.errors import SubmissionError
from thinscalp.venue.jupiter_client import Route

NATIVE_MINT = "So11111111111111111111111111111111111111112"
MINT_A = "MintAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
MINT_B = "MintBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB"
MINT_C = "MintCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCC"


class FakeVenue:
    """
    Scripted quote/execute venue.

    Buys return ``buy_rate`` raw per lamport; sells return ``exit_rates[mint]``
    lamports per raw. Executed routes move the fake wallet balances.
    """

    native_mint = NATIVE_MINT
    wallet_address = "Wa11etWa11etWa11etWa11etWa11etWa11etWa11et1"

    def __init__(
        self,
        buy_rate: float = 1.0,
        impact_fn: Optional[Callable[[int], float]] = None,
        exit_rates: Optional[Dict[str, float]] = None,
        balances: Optional[Dict[str, int]] = None,
        native_lamports: int = 10_000_000_000,
        missing_mints: Tuple[str, ...] = (),
        failing_mints: Tuple[str, ...] = (),
    ):
        self.buy_rate = buy_rate
        self.impact_fn = impact_fn or (lambda amount: 0.5)
        self.exit_rates: Dict[str, float] = dict(exit_rates or {})
        self.balances: Dict[str, int] = dict(balances or {})
        self.native_lamports = native_lamports
        self.missing_mints = set(missing_mints)
        self.failing_mints = set(failing_mints)
        self.quotes: List[Tuple[str, str, int, int]] = []
        self.executed: List[Route] = []
        self._sigs = itertools.count(1)

    async def quote(self, input_mint: str, output_mint: str, amount_raw: int, slippage_bps: int) -> Route:
        self.quotes.append((input_mint, output_mint, amount_raw, slippage_bps))
        if input_mint == self.native_mint:
            out_amount = int(amount_raw * self.buy_rate)
            impact = self.impact_fn(amount_raw)
        else:
            out_amount = int(amount_raw * self.exit_rates.get(input_mint, 1.0))
            impact = 0.1
        return Route(input_mint, output_mint, amount_raw, out_amount, impact)

    async def execute(self, route: Route) -> str:
        traded = route.output_mint if route.input_mint == self.native_mint else route.input_mint
        if traded in self.failing_mints:
            raise SubmissionError(f"Transaction failed for {traded}")
        self.executed.append(route)
        if route.input_mint == self.native_mint:
            self.native_lamports -= route.in_amount
            self.balances[route.output_mint] = self.balances.get(route.output_mint, 0) + route.out_amount
        else:
            self.balances[route.input_mint] = self.balances.get(route.input_mint, 0) - route.in_amount
            self.native_lamports += route.out_amount
        return f"sig{next(self._sigs)}"

    async def token_balance(self, mint: str) -> int:
        return self.balances.get(mint, 0)

    async def native_balance(self) -> int:
        return self.native_lamports

    async def instrument_exists(self, mint: str) -> bool:
        return mint not in self.missing_mints

    @property
    def executed_buys(self) -> List[Route]:
        return [r for r in self.executed if r.input_mint == self.native_mint]

    @property
    def executed_sells(self) -> List[Route]:
        return [r for r in self.executed if r.input_mint != self.native_mint]


@dataclass
class RecordingNotifier:
    """Collects alerts instead of sending them"""
    entries: List[tuple] = field(default_factory=list)
    exits: List[tuple] = field(default_factory=list)
    errors: List[tuple] = field(default_factory=list)
    fail: bool = False

    async def send_entry_alert(self, position, result, autopilot: bool = False):
        if self.fail:
            raise RuntimeError("telegram down")
        self.entries.append((position.instrument_id, result.spent_native, autopilot))

    async def send_exit_alert(self, action: str, instrument_id: str, pnl_pct: float, received_native: float):
        if self.fail:
            raise RuntimeError("telegram down")
        self.exits.append((action, instrument_id, pnl_pct, received_native))

    async def send_error(self, title: str, error: str):
        if self.fail:
            raise RuntimeError("telegram down")
        self.errors.append((title, error))


class ManualClock:
    """Injectable millisecond clock"""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


class StaticSource:
    """Candidate source returning a fixed snapshot"""

    def __init__(self, snapshot=None):
        self.snapshot_value = dict(snapshot or {})
        self.calls = 0

    async def snapshot(self, now: float = None):
        self.calls += 1
        return dict(self.snapshot_value)
