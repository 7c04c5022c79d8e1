"""Exception types raised by the Hydentity SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import (
    ERR_CLAIM_CANCELLED,
    ERR_INSUFFICIENT_FUNDS,
    ERR_INSUFFICIENT_POOL_BALANCE,
    ERR_INSUFFICIENT_VAULT_BALANCE,
    ERR_INVALID_AMOUNT,
    ERR_INVALID_POLICY,
    ERR_MIXER_ERROR,
    ERR_NAME_NOT_FOUND,
    ERR_NETWORK_FAILURE,
    ERR_NOT_CONFIGURED,
    ERR_OWNERSHIP_MISMATCH,
    ERR_PARTIAL_CLAIM_FAILURE,
)

if TYPE_CHECKING:
    from .types import ClaimResult, SplitReceipt


class HydentityError(Exception):
    """Base class for SDK errors. ``code`` is a stable machine-readable reason."""

    code = "hydentity_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidPolicy(HydentityError):
    code = ERR_INVALID_POLICY


class InvalidAmount(HydentityError):
    code = ERR_INVALID_AMOUNT


class InsufficientVaultBalance(HydentityError):
    code = ERR_INSUFFICIENT_VAULT_BALANCE

    def __init__(self, requested: int, available: int):
        super().__init__(f"Insufficient vault balance: {available} < {requested}")
        self.requested = requested
        self.available = available


class InsufficientFunds(HydentityError):
    code = ERR_INSUFFICIENT_FUNDS

    def __init__(self, requested: int, available: int):
        super().__init__(f"Insufficient source balance: {available} < {requested}")
        self.requested = requested
        self.available = available


class InsufficientPoolBalance(HydentityError):
    code = ERR_INSUFFICIENT_POOL_BALANCE

    def __init__(self, requested: int, available: int):
        super().__init__(f"Insufficient pool balance: {available} < {requested}")
        self.requested = requested
        self.available = available


class NotConfigured(HydentityError):
    """A capability (signer, forwarder, bridge) required by the call is missing."""

    code = ERR_NOT_CONFIGURED


class NameNotFound(HydentityError):
    code = ERR_NAME_NOT_FOUND


class OwnershipMismatch(HydentityError):
    code = ERR_OWNERSHIP_MISMATCH


class NetworkFailure(HydentityError):
    """Transient transport failure. Safe to retry the same step."""

    code = ERR_NETWORK_FAILURE


class MixerError(HydentityError):
    code = ERR_MIXER_ERROR


class ForwarderError(HydentityError):
    code = "forwarder_error"


class ClaimCancelled(HydentityError):
    code = ERR_CLAIM_CANCELLED


class PartialClaimFailure(HydentityError):
    """A claim stopped at ``failed_index``.

    ``result.transactions`` holds the splits completed before the failure.
    ``pending`` is set when the failed split already left the vault: its
    ``deposit_to_umbra`` landed but the pool deposit did not, or it was
    deposited but its withdrawal did not go through. The
    originating error is chained as ``__cause__``.
    """

    code = ERR_PARTIAL_CLAIM_FAILURE

    def __init__(
        self,
        result: "ClaimResult",
        failed_index: int,
        error: BaseException,
        pending: "SplitReceipt | None" = None,
    ):
        super().__init__(
            f"Claim stopped at split {failed_index} of {result.split_count}: {error}"
        )
        self.result = result
        self.failed_index = failed_index
        self.error = error
        self.pending = pending
