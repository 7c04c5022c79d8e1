"""Core data types for Hydentity privacy claims."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from .constants import (
    DEFAULT_COMMITMENT,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_SPLITS,
    DEFAULT_MIN_DELAY_SECONDS,
    DEFAULT_MIN_SPLITS,
    LAMPORTS_PER_SOL,
    MAX_DELAY_SECONDS_CAP,
    MAX_DESTINATIONS,
    MAX_SPLITS_CAP,
    U64_MAX,
)
from .errors import InvalidPolicy

T = TypeVar("T")

# Amounts are lamports held in plain ints, never floats.
Amount = int


def validate_amount(amount: int, name: str = "amount") -> int:
    """Check that ``amount`` fits an unsigned 64-bit lamport value."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be an integer number of lamports, got {type(amount).__name__}")
    if amount < 0 or amount > U64_MAX:
        raise ValueError(f"{name} must be within u64 range, got {amount}")
    return amount


class Distribution(str, Enum):
    """Distribution strategy for splitting amounts."""

    UNIFORM = "uniform"
    WEIGHTED = "weighted"
    EXPONENTIAL_DECAY = "exponentialDecay"

    @property
    def wire_index(self) -> int:
        return _DISTRIBUTION_ORDER.index(self)

    @classmethod
    def from_wire(cls, index: int) -> "Distribution":
        try:
            return _DISTRIBUTION_ORDER[index]
        except IndexError:
            raise ValueError(f"Unknown distribution index: {index}") from None


class PrivacyMode(str, Enum):
    """Privacy mode for claims."""

    FULL_PRIVACY = "fullPrivacy"
    PARTIAL_PRIVACY = "partialPrivacy"
    DIRECT = "direct"

    @property
    def wire_index(self) -> int:
        return _PRIVACY_MODE_ORDER.index(self)

    @classmethod
    def from_wire(cls, index: int) -> "PrivacyMode":
        try:
            return _PRIVACY_MODE_ORDER[index]
        except IndexError:
            raise ValueError(f"Unknown privacy mode index: {index}") from None


class DestinationMode(str, Enum):
    """Where claimed funds end up.

    ``MULTI_DESTINATION`` rotates through the policy's destinations in
    split order; ``RANDOM_DESTINATION`` picks one per split from the
    claim seed.
    """

    SINGLE_OWNER = "singleOwner"
    MULTI_DESTINATION = "multiDestination"
    RANDOM_DESTINATION = "randomDestination"

    @property
    def wire_index(self) -> int:
        return _DESTINATION_MODE_ORDER.index(self)

    @property
    def is_multi(self) -> bool:
        return self is not DestinationMode.SINGLE_OWNER

    @classmethod
    def from_wire(cls, index: int) -> "DestinationMode":
        try:
            return _DESTINATION_MODE_ORDER[index]
        except IndexError:
            raise ValueError(f"Unknown destination mode index: {index}") from None


_DISTRIBUTION_ORDER = list(Distribution)
_PRIVACY_MODE_ORDER = list(PrivacyMode)
_DESTINATION_MODE_ORDER = list(DestinationMode)


class TransactionMode(str, Enum):
    """How far the transaction pipeline carries a built transaction."""

    RAW = "raw"
    PREPARED = "prepared"
    SIGNED = "signed"
    FORWARDER = "forwarder"
    CONNECTION = "connection"


class TransactionStage(str, Enum):
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"


@dataclass
class PrivacyPolicy:
    """Owner-configured parameters controlling how a claim is split and delayed."""

    enabled: bool = True
    min_splits: int = DEFAULT_MIN_SPLITS
    max_splits: int = DEFAULT_MAX_SPLITS
    min_delay_seconds: int = DEFAULT_MIN_DELAY_SECONDS
    max_delay_seconds: int = DEFAULT_MAX_DELAY_SECONDS
    distribution: Distribution = Distribution.UNIFORM
    privacy_mode: PrivacyMode = PrivacyMode.FULL_PRIVACY
    destination_mode: DestinationMode = DestinationMode.SINGLE_OWNER
    destinations: list[str] = field(default_factory=list)
    policy_nonce: int = 0

    def validate(self) -> None:
        if not 1 <= self.min_splits <= MAX_SPLITS_CAP:
            raise InvalidPolicy(f"min_splits must be 1-{MAX_SPLITS_CAP}, got {self.min_splits}")
        if not 1 <= self.max_splits <= MAX_SPLITS_CAP:
            raise InvalidPolicy(f"max_splits must be 1-{MAX_SPLITS_CAP}, got {self.max_splits}")
        if self.min_splits > self.max_splits:
            raise InvalidPolicy(
                f"Invalid split range: min_splits {self.min_splits} > max_splits {self.max_splits}"
            )
        for name in ("min_delay_seconds", "max_delay_seconds"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_DELAY_SECONDS_CAP:
                raise InvalidPolicy(f"{name} must fit in u32, got {value}")
        if self.min_delay_seconds > self.max_delay_seconds:
            raise InvalidPolicy(
                f"Invalid delay range: min_delay_seconds {self.min_delay_seconds} "
                f"> max_delay_seconds {self.max_delay_seconds}"
            )
        if len(self.destinations) > MAX_DESTINATIONS:
            raise InvalidPolicy(
                f"Too many destinations specified (max {MAX_DESTINATIONS}), got {len(self.destinations)}"
            )
        if self.destination_mode.is_multi and not self.destinations:
            raise InvalidPolicy("At least one destination is required for multi-destination mode")
        if not 0 <= self.policy_nonce <= U64_MAX:
            raise InvalidPolicy(f"policy_nonce must fit in u64, got {self.policy_nonce}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrivacyPolicy":
        return cls(
            enabled=bool(data.get("enabled", True)),
            min_splits=int(data.get("minSplits", DEFAULT_MIN_SPLITS)),
            max_splits=int(data.get("maxSplits", DEFAULT_MAX_SPLITS)),
            min_delay_seconds=int(data.get("minDelaySeconds", DEFAULT_MIN_DELAY_SECONDS)),
            max_delay_seconds=int(data.get("maxDelaySeconds", DEFAULT_MAX_DELAY_SECONDS)),
            distribution=Distribution(data.get("distribution", Distribution.UNIFORM.value)),
            privacy_mode=PrivacyMode(data.get("privacyMode", PrivacyMode.FULL_PRIVACY.value)),
            destination_mode=DestinationMode(
                data.get("destinationMode", DestinationMode.SINGLE_OWNER.value)
            ),
            destinations=[str(d) for d in data.get("destinations", [])],
            policy_nonce=int(data.get("policyNonce", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "minSplits": self.min_splits,
            "maxSplits": self.max_splits,
            "minDelaySeconds": self.min_delay_seconds,
            "maxDelaySeconds": self.max_delay_seconds,
            "distribution": self.distribution.value,
            "privacyMode": self.privacy_mode.value,
            "destinationMode": self.destination_mode.value,
            "destinations": list(self.destinations),
            "policyNonce": self.policy_nonce,
        }


@dataclass
class ExecutionPlan:
    """Split amounts and inter-split delays (seconds) for one claim.

    ``delays[i - 1]`` is the wait before ``splits[i]``; the first split
    fires immediately.
    """

    splits: list[int]
    delays: list[int]

    @property
    def split_count(self) -> int:
        return len(self.splits)

    @property
    def total_amount(self) -> int:
        return sum(self.splits)

    @property
    def total_delay_seconds(self) -> int:
        return sum(self.delays)

    def delay_before(self, index: int) -> int:
        if index == 0:
            return 0
        return self.delays[index - 1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "splits": [str(s) for s in self.splits],
            "delays": list(self.delays),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionPlan":
        return cls(
            splits=[int(s) for s in data.get("splits", [])],
            delays=[int(d) for d in data.get("delays", [])],
        )

    def digest(self) -> str:
        """SHA-256 over the canonical JSON encoding, for replay audits."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()

    def preview(self) -> dict[str, Any]:
        steps = [
            {
                "step": i + 1,
                "amount": f"{amount / LAMPORTS_PER_SOL} SOL",
                "delay_before_seconds": self.delay_before(i),
            }
            for i, amount in enumerate(self.splits)
        ]
        total_minutes = -(-self.total_delay_seconds // 60)
        return {
            "summary": f"{self.split_count} splits over ~{total_minutes} minutes",
            "steps": steps,
        }


@dataclass
class TransactionOptions:
    """Options for transaction operations."""

    mode: TransactionMode = TransactionMode.CONNECTION
    skip_preflight: bool = False
    commitment: str = DEFAULT_COMMITMENT


@dataclass
class DepositResult:
    signature: str
    amount: int


@dataclass
class WithdrawResult:
    signature: str
    amount_received: int
    fee: int


@dataclass
class SplitReceipt:
    """Outcome of one executed split.

    ``vault_deposit`` is the pipeline result of the ``deposit_to_umbra``
    transaction that moved the split out of the vault, when the claim
    runs one. ``deposit`` is None only on a pending receipt whose pool
    deposit never went through.
    """

    index: int
    amount: int
    deposit: DepositResult | None = None
    withdrawal: WithdrawResult | None = None
    vault_deposit: Any = None

    @property
    def signature(self) -> str | None:
        return self.deposit.signature if self.deposit is not None else None


@dataclass
class ClaimResult:
    """Aggregate outcome of a private claim, complete or partial."""

    split_count: int
    total_amount: int
    transactions: list[SplitReceipt]
    execution_plan: ExecutionPlan
    destination: str | None = None
    start_index: int = 0

    @property
    def completed_amount(self) -> int:
        return sum(r.amount for r in self.transactions)

    @property
    def is_complete(self) -> bool:
        return self.start_index + len(self.transactions) == self.split_count


@dataclass
class ProcessedTransaction(Generic[T]):
    """Result of running a transaction through the mode pipeline."""

    stage: TransactionStage
    transaction: Any
    receipt: T | None = None


@dataclass
class VaultBalance:
    sol: int
    tokens: dict[str, int] = field(default_factory=dict)
