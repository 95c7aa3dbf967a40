"""
Wallet signing capability
"""
import base64
from typing import Protocol

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from thinscalp.errors import ConfigError


class Signer(Protocol):
    """Opaque signing capability used by the venue"""

    @property
    def public_key(self) -> str: ...

    def sign_transaction(self, unsigned_tx_b64: str) -> str: ...


class KeypairSigner:
    """Signs swap transactions with a base58-encoded secret key"""

    def __init__(self, secret_key_base58: str):
        try:
            self._keypair = Keypair.from_base58_string(secret_key_base58)
        except Exception as e:
            raise ConfigError("Failed to decode wallet private key") from e

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign_transaction(self, unsigned_tx_b64: str) -> str:
        tx = VersionedTransaction.from_bytes(base64.b64decode(unsigned_tx_b64))
        signed = VersionedTransaction(tx.message, [self._keypair])
        return base64.b64encode(bytes(signed)).decode("ascii")
