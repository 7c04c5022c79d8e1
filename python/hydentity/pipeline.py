"""Transaction mode pipeline.

A transaction is built once and then carried through
``BUILT -> SIGNED -> SUBMITTED`` as far as the requested mode asks.
Each mode is its own variant holding only the capabilities it uses:
``RawMode`` has no RPC client or signer at all, ``SignedMode`` has a
signer but no forwarder, and so on. Missing capabilities are detected
while resolving the variant, before any network call.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.hash import Hash  # type: ignore
from solders.instruction import Instruction  # type: ignore
from solders.message import Message, MessageV0  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.signature import Signature  # type: ignore
from solders.transaction import VersionedTransaction  # type: ignore

from .errors import NetworkFailure, NotConfigured
from .forwarders.base import TransactionForwarder
from .forwarders.connection import ConnectionForwarder
from .signers import Signer
from .types import ProcessedTransaction, TransactionMode, TransactionOptions, TransactionStage
from .utils import to_pubkey

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TransactionDraft:
    """Instructions and fee payer, not yet bound to a blockhash."""

    payer: Pubkey
    instructions: list[Instruction] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.payer = to_pubkey(self.payer)
        if not self.instructions:
            raise ValueError("A transaction needs at least one instruction")

    def compile(self, recent_blockhash: Hash) -> VersionedTransaction:
        """Compile to an unsigned v0 transaction with empty signature slots."""
        message = MessageV0.try_compile(self.payer, self.instructions, [], recent_blockhash)
        slots = [Signature.default()] * message.header.num_required_signatures
        return VersionedTransaction.populate(message, slots)


Buildable = Union[TransactionDraft, VersionedTransaction]


async def fetch_latest_blockhash(rpc: AsyncClient) -> Hash:
    try:
        resp = await rpc.get_latest_blockhash()
    except (RPCException, httpx.HTTPError) as e:
        raise NetworkFailure(f"Failed to fetch latest blockhash: {e}") from e
    return resp.value.blockhash


def _require_unsigned(tx: VersionedTransaction) -> None:
    if any(sig != Signature.default() for sig in tx.signatures):
        raise ValueError("Transaction is already signed; its blockhash cannot be replaced")


def with_blockhash(tx: VersionedTransaction, recent_blockhash: Hash) -> VersionedTransaction:
    """Rebind an unsigned transaction to ``recent_blockhash``.

    Raises:
        ValueError: If ``tx`` already carries a signature.
    """
    _require_unsigned(tx)
    msg = tx.message
    if isinstance(msg, MessageV0):
        message = MessageV0(
            msg.header,
            msg.account_keys,
            recent_blockhash,
            msg.instructions,
            msg.address_table_lookups,
        )
    else:
        message = Message.new_with_compiled_instructions(
            msg.header.num_required_signatures,
            msg.header.num_readonly_signed_accounts,
            msg.header.num_readonly_unsigned_accounts,
            msg.account_keys,
            recent_blockhash,
            msg.instructions,
        )
    slots = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(message, slots)


async def _prepare(rpc: AsyncClient, built: Buildable) -> VersionedTransaction:
    if isinstance(built, VersionedTransaction):
        _require_unsigned(built)
        return with_blockhash(built, await fetch_latest_blockhash(rpc))
    return built.compile(await fetch_latest_blockhash(rpc))


class RawMode:
    """Build only. The blockhash is a placeholder the caller must replace."""

    mode = TransactionMode.RAW

    async def run(self, built: Buildable) -> ProcessedTransaction[None]:
        if isinstance(built, VersionedTransaction):
            tx = built
        else:
            tx = built.compile(Hash.default())
        return ProcessedTransaction(stage=TransactionStage.BUILT, transaction=tx)


@dataclass
class PreparedMode:
    """Build with a freshly fetched blockhash, unsigned."""

    rpc: AsyncClient
    mode = TransactionMode.PREPARED

    async def run(self, built: Buildable) -> ProcessedTransaction[None]:
        tx = await _prepare(self.rpc, built)
        return ProcessedTransaction(stage=TransactionStage.BUILT, transaction=tx)


@dataclass
class SignedMode:
    """Build and sign, never submit."""

    rpc: AsyncClient
    signer: Signer
    mode = TransactionMode.SIGNED

    async def run(self, built: Buildable) -> ProcessedTransaction[None]:
        tx = await _prepare(self.rpc, built)
        signed = await self.signer.sign_transaction(tx)
        return ProcessedTransaction(stage=TransactionStage.SIGNED, transaction=signed)


@dataclass
class ForwarderMode(Generic[T]):
    """Build, sign and hand off to a custom forwarder."""

    rpc: AsyncClient
    signer: Signer
    forwarder: TransactionForwarder[T]
    mode = TransactionMode.FORWARDER

    async def run(self, built: Buildable) -> ProcessedTransaction[T]:
        tx = await _prepare(self.rpc, built)
        signed = await self.signer.sign_transaction(tx)
        receipt = await self.forwarder.forward_transaction(signed)
        return ProcessedTransaction(
            stage=TransactionStage.SUBMITTED, transaction=signed, receipt=receipt
        )


@dataclass
class ConnectionMode:
    """Build, sign and send through the RPC connection."""

    rpc: AsyncClient
    signer: Signer
    forwarder: ConnectionForwarder
    mode = TransactionMode.CONNECTION

    async def run(self, built: Buildable) -> ProcessedTransaction[str]:
        tx = await _prepare(self.rpc, built)
        signed = await self.signer.sign_transaction(tx)
        signature = await self.forwarder.forward_transaction(signed)
        return ProcessedTransaction(
            stage=TransactionStage.SUBMITTED, transaction=signed, receipt=signature
        )


ModeVariant = Union[RawMode, PreparedMode, SignedMode, ForwarderMode[Any], ConnectionMode]


class TransactionModePipeline(Generic[T]):
    """Dispatches built transactions to the variant for the requested mode."""

    def __init__(
        self,
        rpc: AsyncClient,
        signer: Signer | None = None,
        forwarder: TransactionForwarder[T] | None = None,
        connection_forwarder: ConnectionForwarder | None = None,
    ):
        self._rpc = rpc
        self._signer = signer
        self._forwarder = forwarder
        self._connection_forwarder = connection_forwarder or ConnectionForwarder(rpc)

    @property
    def signer(self) -> Signer | None:
        return self._signer

    def set_signer(self, signer: Signer | None) -> None:
        self._signer = signer

    def set_forwarder(self, forwarder: TransactionForwarder[T] | None) -> None:
        self._forwarder = forwarder

    def resolve(self, options: TransactionOptions | None = None) -> ModeVariant:
        """Pick the variant for ``options.mode``.

        Raises:
            NotConfigured: If the mode needs a signer or forwarder that is not set.
        """
        mode = (options or TransactionOptions()).mode

        if mode is TransactionMode.RAW:
            return RawMode()
        if mode is TransactionMode.PREPARED:
            return PreparedMode(self._rpc)

        if self._signer is None:
            raise NotConfigured(f"No signer configured for {mode.value} mode. Call set_signer() first.")

        if mode is TransactionMode.SIGNED:
            return SignedMode(self._rpc, self._signer)
        if mode is TransactionMode.FORWARDER:
            if self._forwarder is None:
                raise NotConfigured("No transaction forwarder configured for forwarder mode")
            return ForwarderMode(self._rpc, self._signer, self._forwarder)
        if mode is TransactionMode.CONNECTION:
            forwarder = self._connection_forwarder
            if options is not None and (options.skip_preflight, options.commitment) != (
                forwarder.skip_preflight,
                forwarder.commitment,
            ):
                forwarder = ConnectionForwarder(
                    forwarder.client,
                    skip_preflight=options.skip_preflight,
                    commitment=options.commitment,
                )
            return ConnectionMode(self._rpc, self._signer, forwarder)

        raise ValueError(f"Unknown transaction mode: {mode}")

    async def process_transaction(
        self,
        built: Buildable,
        options: TransactionOptions | None = None,
    ) -> ProcessedTransaction[Any]:
        variant = self.resolve(options)
        logger.debug("Processing transaction in %s mode", variant.mode.value)
        return await variant.run(built)
