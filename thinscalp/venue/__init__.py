"""Solana swap venue: Jupiter routing, RPC submission and signing"""
from .jupiter_client import JupiterClient, Route
from .solana_rpc import SolanaRpcClient
from .swap_venue import SwapVenue
from .wallet import KeypairSigner, Signer

__all__ = ["JupiterClient", "Route", "SolanaRpcClient", "SwapVenue", "KeypairSigner", "Signer"]
