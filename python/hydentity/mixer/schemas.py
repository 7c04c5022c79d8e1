"""Wire models for the mixer/relayer HTTP service."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MixerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DepositRequest(MixerModel):
    wallet_pubkey: str
    identity: str
    lamports: int = Field(gt=0)


class DepositResponse(MixerModel):
    signature: str
    amount: int


class WithdrawRequest(MixerModel):
    wallet_pubkey: str
    identity: str
    lamports: int = Field(gt=0)
    recipient: str | None = None


class WithdrawResponse(MixerModel):
    signature: str
    amount_received: int
    fee: int


class BalanceRequest(MixerModel):
    wallet_pubkey: str
    identity: str


class BalanceResponse(MixerModel):
    lamports: int


class FeeConfig(MixerModel):
    """Fee schedule published at ``GET /config``."""

    withdraw_fee_rate: Decimal
    withdraw_rent_fee: int


class ErrorResponse(MixerModel):
    error: str
