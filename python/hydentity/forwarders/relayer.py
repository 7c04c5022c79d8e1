"""Forwarder that submits transactions through a fee-paying relayer service."""

import base64
import logging
import secrets

import httpx
from solders.transaction import VersionedTransaction  # type: ignore

from ..constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    ERR_NO_RELAYERS,
    ERR_RELAYER_ERROR,
    ERR_RELAYER_FAILED,
    ERR_RELAYER_TIMEOUT,
)
from ..errors import ForwarderError
from ..utils import validate_svm_address
from .base import TransactionForwarder

logger = logging.getLogger(__name__)


class RelayerForwarder(TransactionForwarder[str]):
    """Posts base64 transactions to ``{base_url}relay``.

    The relayer pays the network fee, so the claimant's wallet never
    appears as fee payer.
    """

    def __init__(
        self,
        relayer_address: str,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not validate_svm_address(relayer_address):
            raise ValueError(f"Invalid relayer address: {relayer_address}")
        self.relayer_address = relayer_address
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._http = http_client

    @staticmethod
    async def get_relayer_list(base_url: str, http_client: httpx.AsyncClient | None = None) -> list[str]:
        """Fetch the addresses of the relayers currently accepting work."""
        base = base_url if base_url.endswith("/") else base_url + "/"
        client = http_client or httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT_SECONDS)
        try:
            resp = await client.get(f"{base}relayers")
            resp.raise_for_status()
            relayers = resp.json().get("relayers", [])
        except httpx.HTTPError as e:
            raise ForwarderError(f"Failed to fetch relayer list: {e}", "relayer_list_error") from e
        finally:
            if http_client is None:
                await client.aclose()
        return [str(r) for r in relayers]

    @classmethod
    async def random_relayer(
        cls,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> "RelayerForwarder":
        relayers = await cls.get_relayer_list(base_url, http_client)
        if not relayers:
            raise ForwarderError("No relayers available", ERR_NO_RELAYERS)
        choice = relayers[secrets.randbelow(len(relayers))]
        return cls(choice, base_url, timeout, http_client)

    async def forward_transaction(self, transaction: VersionedTransaction) -> str:
        body = {
            "transaction": base64.b64encode(bytes(transaction)).decode(),
            "relayer": self.relayer_address,
        }
        client = self._http or httpx.AsyncClient(timeout=self._timeout)
        try:
            resp = await client.post(f"{self._base_url}relay", json=body, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise ForwarderError(
                f"Relayer request timed out after {self._timeout}s", ERR_RELAYER_TIMEOUT
            ) from e
        except httpx.HTTPError as e:
            raise ForwarderError(f"Relayer error: {e}", ERR_RELAYER_ERROR) from e
        finally:
            if self._http is None:
                await client.aclose()

        if resp.status_code >= 400:
            raise ForwarderError(f"Relayer error: {resp.text}", ERR_RELAYER_ERROR)

        data = resp.json()
        if not data.get("success") or not data.get("signature"):
            raise ForwarderError(
                f"Relayer failed: {data.get('error', 'Unknown error')}", ERR_RELAYER_FAILED
            )

        logger.debug("Relayer %s accepted transaction %s", self.relayer_address, data["signature"])
        return data["signature"]
