"""
Control command parsing - free text to a closed set of command variants
"""
import math
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from thinscalp.errors import CommandError


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class WhoAmI:
    pass


@dataclass(frozen=True)
class AuthStatus:
    pass


@dataclass(frozen=True)
class Balance:
    pass


@dataclass(frozen=True)
class Buy:
    instrument_id: str
    amount_native: Optional[float] = None


@dataclass(frozen=True)
class Sell:
    instrument_id: str
    percent: float = 100.0


@dataclass(frozen=True)
class AutoBuy:
    instrument_id: str
    amount_native: Optional[float] = None


@dataclass(frozen=True)
class Status:
    pass


@dataclass(frozen=True)
class Cancel:
    instrument_id: str


@dataclass(frozen=True)
class AutopilotSwitch:
    action: str  # on | off | status


@dataclass(frozen=True)
class ShowFilters:
    pass


@dataclass(frozen=True)
class SetFilter:
    field: str  # budget | maxopen | minliq | cooldown | retry | minbuys | minchg
    value: float
    horizon: Optional[str] = None


@dataclass(frozen=True)
class BlacklistShow:
    pass


@dataclass(frozen=True)
class BlacklistAdd:
    instrument_id: str


@dataclass(frozen=True)
class BlacklistRemove:
    instrument_id: str


Command = Union[
    Help, WhoAmI, AuthStatus, Balance, Buy, Sell, AutoBuy, Status, Cancel, AutopilotSwitch,
    ShowFilters, SetFilter, BlacklistShow, BlacklistAdd, BlacklistRemove,
]

SCALAR_FILTERS = ("budget", "maxopen", "minliq", "cooldown", "retry")
HORIZON_FILTER_RE = re.compile(r"^(minbuys|minchg)([0-9]+[smh])$")

USAGE = {
    "buy": "Usage: /buy <mint> [sol]",
    "sell": "Usage: /sell <mint> [percent 1-100]",
    "autobuy": "Usage: /autobuy <mint> [sol]",
    "cancel": "Usage: /cancel <mint>",
    "autopilot": "Usage: /autopilot on | off | status",
    "blacklist": "Usage: /autofilters blacklist show|add <MINT>|remove <MINT>",
    "autofilters": "Unknown subcommand. Send /autofilters to see options.",
}


def _number(value: Optional[str], name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise CommandError(f"Invalid {name}")
    if not math.isfinite(number) or number < 0:
        raise CommandError(f"Invalid {name}")
    return number


def _positive_amount(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        amount = float(value)
    except ValueError:
        raise CommandError("Invalid SOL amount.")
    if not math.isfinite(amount) or amount <= 0:
        raise CommandError("Invalid SOL amount.")
    return amount


def _parse_filters(args: List[str]) -> Command:
    if not args:
        return ShowFilters()

    name = args[0].lower()
    value = args[1] if len(args) > 1 else None

    if name == "blacklist":
        sub = (args[1] if len(args) > 1 else "").lower()
        mint = args[2] if len(args) > 2 else None
        if sub == "show":
            return BlacklistShow()
        if sub == "add":
            if not mint:
                raise CommandError("Usage: /autofilters blacklist add <MINT>")
            return BlacklistAdd(mint)
        if sub == "remove":
            if not mint:
                raise CommandError("Usage: /autofilters blacklist remove <MINT>")
            return BlacklistRemove(mint)
        raise CommandError(USAGE["blacklist"])

    if name in SCALAR_FILTERS:
        return SetFilter(field=name, value=_number(value, name))

    match = HORIZON_FILTER_RE.match(name)
    if match:
        return SetFilter(field=match.group(1), value=_number(value, name), horizon=match.group(2))

    raise CommandError(USAGE["autofilters"])


def parse_command(text: str) -> Optional[Command]:
    """
    Parse one control message.

    Returns:
        A command variant, or None when the text is not a command

    Raises:
        CommandError: a known command with bad arguments, or an unknown command
    """
    parts = (text or "").strip().split()
    if not parts or not parts[0].startswith("/"):
        return None

    name = parts[0][1:].split("@", 1)[0].lower()
    args = parts[1:]

    if name in ("start", "help"):
        return Help()
    if name == "whoami":
        return WhoAmI()
    if name == "authstatus":
        return AuthStatus()
    if name == "bal":
        return Balance()
    if name == "status":
        return Status()

    if name in ("buy", "autobuy"):
        if not args:
            raise CommandError(USAGE[name])
        amount = _positive_amount(args[1] if len(args) > 1 else None)
        return Buy(args[0], amount) if name == "buy" else AutoBuy(args[0], amount)

    if name == "sell":
        if not args:
            raise CommandError(USAGE["sell"])
        try:
            percent = float(args[1]) if len(args) > 1 else 100.0
        except ValueError:
            raise CommandError(USAGE["sell"])
        if not math.isfinite(percent) or percent <= 0 or percent > 100:
            raise CommandError(USAGE["sell"])
        return Sell(args[0], percent)

    if name == "cancel":
        if not args:
            raise CommandError(USAGE["cancel"])
        return Cancel(args[0])

    if name == "autopilot":
        action = args[0].lower() if args else "status"
        if action not in ("on", "off", "status"):
            raise CommandError(USAGE["autopilot"])
        return AutopilotSwitch(action)

    if name == "autofilters":
        return _parse_filters(args)

    raise CommandError("Unknown command. Send /help for the list.")
