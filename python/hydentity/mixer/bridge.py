"""Bridge between claims and the external privacy pool.

Pushes value into the pool (``deposit_into_mixer``) and pulls it out,
optionally to a third-party recipient (``withdraw``). Calls for one
identity are serialized so concurrent claims from the same wallet can
not interleave balance checks with submissions.
"""

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from ..constants import (
    DEFAULT_DEPOSIT_FEE,
    DEFAULT_WITHDRAW_FEE_RATE,
    DEFAULT_WITHDRAW_FLAT_FEE,
)
from ..errors import InsufficientFunds, InsufficientPoolBalance, InvalidAmount
from ..policy.randomness import derive_pool_key
from ..types import DepositResult, WithdrawResult, validate_amount
from .http import MixerTransport
from .schemas import BalanceRequest, DepositRequest, FeeConfig, WithdrawRequest

logger = logging.getLogger(__name__)

BalanceProvider = Callable[[], Awaitable[int]]
FundingStep = Callable[[int], Awaitable[None]]


@dataclass(frozen=True)
class FeeSchedule:
    """Withdrawal fee: ``floor(amount * fee_rate) + flat_fee``."""

    fee_rate: Decimal = DEFAULT_WITHDRAW_FEE_RATE
    flat_fee: int = DEFAULT_WITHDRAW_FLAT_FEE
    deposit_fee: int = DEFAULT_DEPOSIT_FEE

    def __post_init__(self) -> None:
        if not isinstance(self.fee_rate, Decimal):
            object.__setattr__(self, "fee_rate", Decimal(str(self.fee_rate)))
        if self.fee_rate < 0 or self.fee_rate >= 1:
            raise ValueError(f"fee_rate must be in [0, 1), got {self.fee_rate}")
        if self.flat_fee < 0:
            raise ValueError(f"flat_fee must be non-negative, got {self.flat_fee}")

    @classmethod
    def from_config(cls, config: FeeConfig) -> "FeeSchedule":
        return cls(fee_rate=config.withdraw_fee_rate, flat_fee=config.withdraw_rent_fee)

    def fee(self, amount: int) -> int:
        proportional = (Decimal(amount) * self.fee_rate).to_integral_value(rounding=ROUND_FLOOR)
        return int(proportional) + self.flat_fee

    def estimate(self, amount: int) -> dict[str, int]:
        withdraw_fee = self.fee(amount)
        total = self.deposit_fee + withdraw_fee
        return {
            "deposit_fee": self.deposit_fee,
            "withdraw_fee": withdraw_fee,
            "withdraw_flat_fee": self.flat_fee,
            "total_fees": total,
            "net_amount": amount - total,
        }


@dataclass(frozen=True)
class MixerIdentity:
    """A claimant's identity inside the privacy pool."""

    owner: str
    pool_key: bytes

    @classmethod
    def derive(cls, owner: str, master_seed: bytes) -> "MixerIdentity":
        return cls(owner=owner, pool_key=derive_pool_key(master_seed))

    @property
    def identity_id(self) -> str:
        """Public handle for the pool key; the key itself never leaves the process."""
        return hashlib.sha256(self.pool_key).hexdigest()

    def __repr__(self) -> str:
        return f"MixerIdentity(owner={self.owner!r}, identity_id={self.identity_id[:12]}...)"


class MixerBridge:
    """Deposit/withdraw contract against the privacy pool for one identity.

    Args:
        identity: Pool identity of the claimant.
        transport: Mixer service client.
        source_balance: Async callable returning the balance deposits are
            drawn from, read just before each deposit.
        fee_schedule: Withdrawal fees. None means fetch from the service once.
    """

    def __init__(
        self,
        identity: MixerIdentity,
        transport: MixerTransport,
        source_balance: BalanceProvider | None = None,
        fee_schedule: FeeSchedule | None = None,
    ):
        self._identity = identity
        self._transport = transport
        self._source_balance = source_balance
        self._fee_schedule = fee_schedule
        self._lock = asyncio.Lock()

    @property
    def identity(self) -> MixerIdentity:
        return self._identity

    async def get_fee_schedule(self) -> FeeSchedule:
        if self._fee_schedule is None:
            config = await self._transport.fee_config()
            self._fee_schedule = FeeSchedule.from_config(config)
            logger.debug(
                "Fetched mixer fee schedule: rate=%s flat=%s",
                self._fee_schedule.fee_rate,
                self._fee_schedule.flat_fee,
            )
        return self._fee_schedule

    async def get_balance(self) -> int:
        """Current pool balance for this identity, in lamports."""
        resp = await self._transport.balance(self._balance_request())
        return resp.lamports

    async def deposit_into_mixer(
        self,
        amount: int,
        source_balance: BalanceProvider | None = None,
        fund: FundingStep | None = None,
    ) -> DepositResult:
        """Move ``amount`` lamports into the pool under this identity.

        ``source_balance`` overrides the provider given at construction
        for this call only. ``fund`` moves the lamports into the pool's
        deposit account before the service registers them; it runs under
        the identity lock, after the balance check.

        Raises:
            InsufficientFunds: If the source balance is below ``amount``.
            NetworkFailure: On transport errors; safe to retry this call.
        """
        _require_positive(amount)
        async with self._lock:
            provider = source_balance or self._source_balance
            if provider is not None:
                available = await provider()
                if available < amount:
                    raise InsufficientFunds(amount, available)

            if fund is not None:
                await fund(amount)

            resp = await self._transport.deposit(
                DepositRequest(
                    wallet_pubkey=self._identity.owner,
                    identity=self._identity.identity_id,
                    lamports=amount,
                )
            )

        logger.info("Deposited %s lamports into mixer: %s", amount, resp.signature)
        return DepositResult(signature=resp.signature, amount=resp.amount)

    async def withdraw(self, amount: int, recipient: str | None = None) -> WithdrawResult:
        """Withdraw ``amount`` lamports from the pool, to ``recipient`` if given.

        The recipient receives ``amount - fee``. The result carries the
        amounts the service reports; a mismatch with the local fee schedule
        is logged.

        Raises:
            InsufficientPoolBalance: If the pool holds less than ``amount``.
            ValueError: If the fee would consume the whole amount.
        """
        _require_positive(amount)
        schedule = await self.get_fee_schedule()
        fee = schedule.fee(amount)
        if fee >= amount:
            raise ValueError(f"Withdrawal of {amount} lamports does not cover the {fee} lamport fee")

        async with self._lock:
            available = await self.get_balance()
            if available < amount:
                raise InsufficientPoolBalance(amount, available)

            resp = await self._transport.withdraw(
                WithdrawRequest(
                    wallet_pubkey=self._identity.owner,
                    identity=self._identity.identity_id,
                    lamports=amount,
                    recipient=recipient,
                )
            )

        if (resp.amount_received, resp.fee) != (amount - fee, fee):
            logger.warning(
                "Mixer withdrawal %s reported %s received with fee %s; expected %s with fee %s",
                resp.signature,
                resp.amount_received,
                resp.fee,
                amount - fee,
                fee,
            )
        logger.info("Withdrew %s lamports from mixer (fee %s): %s", amount, resp.fee, resp.signature)
        return WithdrawResult(signature=resp.signature, amount_received=resp.amount_received, fee=resp.fee)

    async def estimate_fees(self, amount: int) -> dict[str, int]:
        schedule = await self.get_fee_schedule()
        return schedule.estimate(amount)

    def _balance_request(self) -> BalanceRequest:
        return BalanceRequest(wallet_pubkey=self._identity.owner, identity=self._identity.identity_id)


def _require_positive(amount: int) -> None:
    validate_amount(amount)
    if amount == 0:
        raise InvalidAmount("Amount must be greater than zero")
