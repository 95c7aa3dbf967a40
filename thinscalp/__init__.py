"""ThinScalp - thin-liquidity Solana scalp bot"""

__version__ = "0.1.0"
