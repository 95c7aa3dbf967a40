"""Momentum analysis and candidate selection"""
from .candidate_selector import CandidateSelector, ScoredCandidate
from .momentum_feed import CandidateMetrics, HorizonMetrics, MomentumFeedAggregator, TradeTick
from .screener import ScreenerSource

__all__ = [
    "CandidateSelector",
    "ScoredCandidate",
    "CandidateMetrics",
    "HorizonMetrics",
    "MomentumFeedAggregator",
    "TradeTick",
    "ScreenerSource",
]
