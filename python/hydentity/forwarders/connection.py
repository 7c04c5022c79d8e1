"""Forwarder that submits transactions directly over Solana RPC."""

import logging

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.transaction import VersionedTransaction  # type: ignore

from ..constants import (
    DEFAULT_COMMITMENT,
    ERR_SEND_TRANSACTION,
    ERR_TRANSACTION_FAILED,
    ERR_TRANSACTION_UNCONFIRMED,
)
from ..errors import ForwarderError, NetworkFailure
from .base import TransactionForwarder

logger = logging.getLogger(__name__)


class ConnectionForwarder(TransactionForwarder[str]):
    """Sends signed transactions through an RPC client and waits for confirmation.

    The receipt is the base58 transaction signature.
    """

    def __init__(
        self,
        client: AsyncClient,
        skip_preflight: bool = False,
        commitment: str = DEFAULT_COMMITMENT,
    ):
        self._client = client
        self._skip_preflight = skip_preflight
        self._commitment = commitment

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        skip_preflight: bool = False,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> "ConnectionForwarder":
        return cls(AsyncClient(rpc_url, Commitment(commitment)), skip_preflight, commitment)

    @property
    def client(self) -> AsyncClient:
        return self._client

    @property
    def skip_preflight(self) -> bool:
        return self._skip_preflight

    @property
    def commitment(self) -> str:
        return self._commitment

    async def forward_transaction(self, transaction: VersionedTransaction) -> str:
        opts = TxOpts(
            skip_preflight=self._skip_preflight,
            preflight_commitment=Commitment(self._commitment),
        )
        try:
            resp = await self._client.send_raw_transaction(bytes(transaction), opts=opts)
            signature = resp.value
            logger.debug("Submitted transaction %s", signature)

            status = await self._client.confirm_transaction(signature, Commitment(self._commitment))
        except RPCException as e:
            raise ForwarderError(f"Send transaction error: {e}", ERR_SEND_TRANSACTION) from e
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise ForwarderError(
                f"Transaction was not confirmed: {e}", ERR_TRANSACTION_UNCONFIRMED
            ) from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"RPC request failed: {e}") from e

        statuses = status.value or []
        if statuses and statuses[0] is not None and statuses[0].err is not None:
            raise ForwarderError(
                f"Transaction failed: {statuses[0].err}",
                ERR_TRANSACTION_FAILED,
            )

        return str(signature)
