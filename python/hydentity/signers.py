"""Signer capability for Hydentity transactions."""

import hashlib
from typing import Protocol, runtime_checkable

from solders.keypair import Keypair  # type: ignore
from solders.transaction import VersionedTransaction  # type: ignore

from .constants import CLAIM_SEED_MESSAGE


@runtime_checkable
class Signer(Protocol):
    """Protocol for anything that can sign on behalf of a wallet."""

    @property
    def address(self) -> str:
        """The signer's base58 public key."""
        ...

    async def sign_message(self, message: bytes) -> bytes:
        """Sign raw bytes.

        Returns:
            The 64-byte Ed25519 signature.
        """
        ...

    async def sign_transaction(self, transaction: VersionedTransaction) -> VersionedTransaction:
        """Sign a versioned transaction and return the signed copy."""
        ...

    async def sign_transactions(
        self, transactions: list[VersionedTransaction]
    ) -> list[VersionedTransaction]:
        ...


class KeypairSigner:
    """Keypair-backed signer, for backend services and tests."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_base58(cls, secret: str) -> "KeypairSigner":
        return cls(Keypair.from_base58_string(secret))

    @classmethod
    def from_bytes(cls, secret: bytes) -> "KeypairSigner":
        return cls(Keypair.from_bytes(secret))

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    @property
    def address(self) -> str:
        return str(self._keypair.pubkey())

    async def sign_message(self, message: bytes) -> bytes:
        return bytes(self._keypair.sign_message(message))

    async def sign_transaction(self, transaction: VersionedTransaction) -> VersionedTransaction:
        return VersionedTransaction(transaction.message, [self._keypair])

    async def sign_transactions(
        self, transactions: list[VersionedTransaction]
    ) -> list[VersionedTransaction]:
        return [await self.sign_transaction(tx) for tx in transactions]


async def derive_master_seed(signer: Signer) -> bytes:
    """Derive the claimant's master seed from a deterministic signature.

    Ed25519 signatures are deterministic, so the same wallet always yields
    the same seed without the secret key ever leaving the signer.
    """
    signature = await signer.sign_message(CLAIM_SEED_MESSAGE)
    return hashlib.sha256(bytes(signature)).digest()
