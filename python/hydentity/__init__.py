"""Hydentity privacy claims for Solana Name Service vaults.

Funds received by a ``.sol`` domain accumulate in an on-chain vault and
are claimed through a privacy pool in deterministic, policy-driven
splits and delays, so the vault and the final destination are not
linked on-chain.
"""

from hydentity.claim import CancellationToken, ClaimOptions, ClaimOrchestrator
from hydentity.client import HydentityClient
from hydentity.config import HydentityConfig
from hydentity.errors import (
    ClaimCancelled,
    ForwarderError,
    HydentityError,
    InsufficientFunds,
    InsufficientPoolBalance,
    InsufficientVaultBalance,
    InvalidAmount,
    InvalidPolicy,
    MixerError,
    NameNotFound,
    NetworkFailure,
    NotConfigured,
    OwnershipMismatch,
    PartialClaimFailure,
)
from hydentity.forwarders import ConnectionForwarder, RelayerForwarder, TransactionForwarder
from hydentity.instructions import PolicyUpdate
from hydentity.mixer import FeeSchedule, MixerBridge, MixerBridgeCache, MixerHttpClient, MixerIdentity
from hydentity.pipeline import TransactionDraft, TransactionModePipeline
from hydentity.policy import PolicyEngine, generate_execution_plan
from hydentity.signers import KeypairSigner, Signer, derive_master_seed
from hydentity.sns import NameResolver, SnsResolver
from hydentity.types import (
    ClaimResult,
    DestinationMode,
    Distribution,
    ExecutionPlan,
    PrivacyMode,
    PrivacyPolicy,
    ProcessedTransaction,
    SplitReceipt,
    TransactionMode,
    TransactionOptions,
    TransactionStage,
)

__all__ = [
    # Client
    "HydentityClient",
    "HydentityConfig",
    # Claims
    "ClaimOrchestrator",
    "ClaimOptions",
    "CancellationToken",
    "ClaimResult",
    "SplitReceipt",
    # Policy
    "PolicyEngine",
    "generate_execution_plan",
    "PrivacyPolicy",
    "PolicyUpdate",
    "ExecutionPlan",
    "Distribution",
    "PrivacyMode",
    "DestinationMode",
    # Transactions
    "TransactionModePipeline",
    "TransactionDraft",
    "TransactionMode",
    "TransactionOptions",
    "TransactionStage",
    "ProcessedTransaction",
    "Signer",
    "KeypairSigner",
    "derive_master_seed",
    "TransactionForwarder",
    "ConnectionForwarder",
    "RelayerForwarder",
    # Mixer
    "MixerBridge",
    "MixerBridgeCache",
    "MixerHttpClient",
    "MixerIdentity",
    "FeeSchedule",
    # Names
    "NameResolver",
    "SnsResolver",
    # Errors
    "HydentityError",
    "InvalidPolicy",
    "InvalidAmount",
    "InsufficientVaultBalance",
    "InsufficientFunds",
    "InsufficientPoolBalance",
    "NotConfigured",
    "NameNotFound",
    "OwnershipMismatch",
    "NetworkFailure",
    "MixerError",
    "ForwarderError",
    "ClaimCancelled",
    "PartialClaimFailure",
]
