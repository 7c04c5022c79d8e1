"""Privacy pool bridge and its HTTP transport."""

from hydentity.mixer.bridge import FeeSchedule, MixerBridge, MixerIdentity
from hydentity.mixer.cache import MixerBridgeCache
from hydentity.mixer.http import MixerHttpClient, MixerTransport
from hydentity.mixer.schemas import (
    BalanceRequest,
    BalanceResponse,
    DepositRequest,
    DepositResponse,
    FeeConfig,
    WithdrawRequest,
    WithdrawResponse,
)

__all__ = [
    "FeeSchedule",
    "MixerBridge",
    "MixerIdentity",
    "MixerBridgeCache",
    "MixerHttpClient",
    "MixerTransport",
    "DepositRequest",
    "DepositResponse",
    "WithdrawRequest",
    "WithdrawResponse",
    "BalanceRequest",
    "BalanceResponse",
    "FeeConfig",
]
