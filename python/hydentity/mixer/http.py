"""HTTP client for the mixer/relayer service.

Endpoints (JSON):
    POST /deposit   {walletPubkey, identity, lamports}            -> {signature, amount}
    POST /withdraw  {walletPubkey, identity, lamports, recipient} -> {signature, amountReceived, fee}
    POST /balance   {walletPubkey, identity}                      -> {lamports}
    GET  /config                                                  -> {withdraw_fee_rate, withdraw_rent_fee}
"""

import logging
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from ..errors import MixerError, NetworkFailure
from .schemas import (
    BalanceRequest,
    BalanceResponse,
    DepositRequest,
    DepositResponse,
    ErrorResponse,
    FeeConfig,
    WithdrawRequest,
    WithdrawResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class MixerTransport(Protocol):
    """What the bridge needs from the mixer service."""

    async def deposit(self, request: DepositRequest) -> DepositResponse: ...

    async def withdraw(self, request: WithdrawRequest) -> WithdrawResponse: ...

    async def balance(self, request: BalanceRequest) -> BalanceResponse: ...

    async def fee_config(self) -> FeeConfig: ...


class MixerHttpClient:
    """httpx-backed ``MixerTransport``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "MixerHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def deposit(self, request: DepositRequest) -> DepositResponse:
        return await self._post("deposit", request, DepositResponse)

    async def withdraw(self, request: WithdrawRequest) -> WithdrawResponse:
        return await self._post("withdraw", request, WithdrawResponse)

    async def balance(self, request: BalanceRequest) -> BalanceResponse:
        return await self._post("balance", request, BalanceResponse)

    async def fee_config(self) -> FeeConfig:
        try:
            resp = await self._http.get("config")
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Mixer config request failed: {e}") from e
        return self._parse(resp, FeeConfig)

    async def _post(self, path: str, request: BaseModel, model: type[ResponseT]) -> ResponseT:
        logger.debug("POST /%s", path)
        try:
            resp = await self._http.post(path, json=request.model_dump(by_alias=True, exclude_none=True))
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Mixer {path} request failed: {e}") from e
        return self._parse(resp, model)

    def _parse(self, resp: httpx.Response, model: type[ResponseT]) -> ResponseT:
        if resp.status_code >= 500:
            raise NetworkFailure(f"Mixer service unavailable ({resp.status_code}): {resp.text}")
        if resp.status_code >= 400:
            raise MixerError(_error_message(resp))
        try:
            return model.model_validate_json(resp.content)
        except ValidationError as e:
            raise MixerError(f"Malformed mixer response: {e}") from e


def _error_message(resp: httpx.Response) -> str:
    try:
        return ErrorResponse.model_validate_json(resp.content).error
    except ValidationError:
        return f"Mixer request failed with status {resp.status_code}"
