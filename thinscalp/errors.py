"""
Exception hierarchy for ThinScalp
"""


class ThinScalpError(Exception):
    """Base error for all trading failures"""


class RouteUnavailableError(ThinScalpError):
    """No executable route exists for the requested pair and size"""


class PriceImpactError(ThinScalpError):
    """Estimated price impact is above the hard cap at minimum shard size"""

    def __init__(self, impact_pct: float, hard_cap_pct: float):
        self.impact_pct = impact_pct
        self.hard_cap_pct = hard_cap_pct
        super().__init__(f"Price impact too high ({impact_pct:.2f}% > {hard_cap_pct:.2f}%)")


class SubmissionError(ThinScalpError):
    """Swap build, submission or confirmation failed"""


class ZeroOutputError(ThinScalpError):
    """A buy finished without receiving anything"""


class NothingToSellError(ThinScalpError):
    """A sell was requested for a zero amount"""


class InstrumentNotFoundError(ThinScalpError):
    """The mint does not exist on chain"""


class CommandError(ThinScalpError):
    """Malformed control command; the message is shown to the operator"""


class ConfigError(ThinScalpError):
    """Missing or invalid runtime configuration"""
