"""Private claim execution.

A claim moves ``amount`` lamports out of a domain's vault through the
privacy pool, in the splits and delays the owner's policy prescribes:

    PLANNING -> EXECUTING(i) -> COMPLETED | FAILED

Each split leaves the vault through the vault deposit step, is
registered with the pool under the claimant's identity and, when
settling, is withdrawn to its recipient.

Splits run strictly in plan order from a single coroutine. A failure at
split ``k`` stops the claim and raises ``PartialClaimFailure`` with the
``k`` completed splits. Calling again with ``start_index=k`` recomputes
the same plan from the same seed and picks up where it stopped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Protocol

from .errors import (
    ClaimCancelled,
    InsufficientVaultBalance,
    InvalidPolicy,
    NotConfigured,
    OwnershipMismatch,
    PartialClaimFailure,
)
from .mixer.bridge import FundingStep, MixerBridge, MixerIdentity
from .policy.engine import PolicyEngine
from .policy.randomness import pick_destination
from .signers import Signer, derive_master_seed
from .sns import NameResolver
from .types import (
    ClaimResult,
    DestinationMode,
    ExecutionPlan,
    PrivacyPolicy,
    SplitReceipt,
    TransactionOptions,
    VaultBalance,
)
from .utils import validate_svm_address

logger = logging.getLogger(__name__)

BridgeProvider = Callable[[MixerIdentity], Awaitable[MixerBridge]]
VaultDeposit = Callable[[str, int], Awaitable[Any]]


class CancellationToken:
    """Cooperative cancellation for a running claim.

    ``cancel()`` may be called from any task on the same event loop. A
    claim checks the token before every delay and network call, and a
    pending delay wakes immediately.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ClaimCancelled("Claim was cancelled")

    async def sleep(self, seconds: float) -> None:
        """Wait at least ``seconds``, or raise ``ClaimCancelled`` as soon as cancelled."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            try:
                await asyncio.wait_for(self._event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                continue
            self.raise_if_cancelled()


@dataclass
class ClaimOptions:
    """Per-claim options.

    Attributes:
        start_index: First split to execute. Splits before it are assumed
            done by an earlier, failed attempt.
        settle: Withdraw each split from the pool to its destination right
            after depositing it.
        cancel_token: Token the caller can use to stop the claim.
        transaction_options: How each vault deposit transaction is
            processed. None means the client defaults.
        policy_overrides: ``PrivacyPolicy`` fields to override for this
            claim only, e.g. ``{"max_delay_seconds": 60}``.
    """

    start_index: int = 0
    settle: bool = False
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    policy_overrides: dict[str, Any] = field(default_factory=dict)
    transaction_options: TransactionOptions | None = None


class VaultReader(Protocol):
    """Vault state the claim flow reads."""

    async def get_vault_balance(self, domain: str) -> VaultBalance: ...

    async def get_policy(self, domain: str) -> PrivacyPolicy | None: ...


class ClaimOrchestrator:
    """Sequences planning, deposits and optional withdrawals for one owner.

    Args:
        resolver: Name service used to check domain ownership.
        vaults: Source of the vault's policy and claimable balance.
        bridge_provider: Returns the (shared) pool bridge for an identity.
        signer: Wallet that owns the domain and seeds the plan.
        vault_deposit: Moves one split out of the vault into the pool,
            given ``(domain, lamports)``. It runs inside the bridge's
            identity lock, before the pool registers the deposit. None
            when the pool is funded some other way.
    """

    def __init__(
        self,
        resolver: NameResolver,
        vaults: VaultReader,
        bridge_provider: BridgeProvider,
        signer: Signer | None = None,
        vault_deposit: VaultDeposit | None = None,
    ):
        self._resolver = resolver
        self._vaults = vaults
        self._bridge_provider = bridge_provider
        self._signer = signer
        self._vault_deposit = vault_deposit

    async def plan_claim(
        self, domain: str, amount: int, options: ClaimOptions | None = None
    ) -> tuple[ExecutionPlan, PrivacyPolicy]:
        """Verify ownership and compute the plan, without touching funds."""
        options = options or ClaimOptions()
        signer = self._require_signer()
        await self._verify_owner(domain, signer.address)
        policy = await self._load_policy(domain, options.policy_overrides)
        engine = PolicyEngine(await derive_master_seed(signer), policy.policy_nonce)
        return engine.generate_execution_plan(amount, policy), policy

    async def execute_private_claim(
        self,
        domain: str,
        amount: int,
        destination: str | None = None,
        options: ClaimOptions | None = None,
    ) -> ClaimResult:
        """Claim ``amount`` lamports from ``domain``'s vault through the pool.

        Args:
            domain: The ``.sol`` domain owning the vault.
            amount: Lamports to claim.
            destination: Where settled splits go. None means the policy's
                destinations, or the owner for single-owner policies.
            options: Resume point, settlement and cancellation.

        Returns:
            ClaimResult with one receipt per executed split.

        Raises:
            NotConfigured: If no signer is set.
            NameNotFound, OwnershipMismatch: If the signer does not own ``domain``.
            InvalidPolicy: If the policy is disabled or malformed.
            InvalidAmount: If ``amount`` is zero.
            InsufficientVaultBalance: If the vault cannot cover the remaining splits.
            ClaimCancelled: If cancelled before any split moved funds.
            PartialClaimFailure: If any split fails or the claim is cancelled mid-way.
        """
        options = options or ClaimOptions()
        token = options.cancel_token
        signer = self._require_signer()
        owner = signer.address

        if destination is not None and not validate_svm_address(destination):
            raise ValueError(f"Invalid destination address: {destination}")

        token.raise_if_cancelled()
        await self._verify_owner(domain, owner)
        token.raise_if_cancelled()
        policy = await self._load_policy(domain, options.policy_overrides)

        token.raise_if_cancelled()
        master_seed = await derive_master_seed(signer)
        engine = PolicyEngine(master_seed, policy.policy_nonce)
        plan = engine.generate_execution_plan(amount, policy)
        if not 0 <= options.start_index <= plan.split_count:
            raise ValueError(
                f"start_index {options.start_index} outside plan of {plan.split_count} splits"
            )

        remaining = sum(plan.splits[options.start_index:])
        token.raise_if_cancelled()
        balance = await self._vaults.get_vault_balance(domain)
        if balance.sol < remaining:
            raise InsufficientVaultBalance(remaining, balance.sol)

        token.raise_if_cancelled()
        bridge = await self._bridge_provider(MixerIdentity.derive(owner, master_seed))

        async def source_balance() -> int:
            token.raise_if_cancelled()
            return (await self._vaults.get_vault_balance(domain)).sol

        result = ClaimResult(
            split_count=plan.split_count,
            total_amount=amount,
            transactions=[],
            execution_plan=plan,
            destination=destination,
            start_index=options.start_index,
        )
        logger.info(
            "Executing claim of %s lamports for %s: %d splits from index %d (plan %s)",
            amount,
            domain,
            plan.split_count,
            options.start_index,
            plan.digest()[:16],
        )

        for i in range(options.start_index, plan.split_count):
            split = plan.splits[i]
            receipt = SplitReceipt(index=i, amount=split)
            try:
                if i > options.start_index:
                    await token.sleep(plan.delay_before(i))
                token.raise_if_cancelled()
                receipt.deposit = await bridge.deposit_into_mixer(
                    split,
                    source_balance=source_balance,
                    fund=self._funding_step(domain, receipt, token),
                )

                if options.settle:
                    token.raise_if_cancelled()
                    recipient = self._recipient_for(i, destination, policy, owner, engine.derived_seed)
                    receipt.withdrawal = await bridge.withdraw(split, recipient)
            except Exception as e:
                moved = receipt.deposit is not None or receipt.vault_deposit is not None
                if isinstance(e, ClaimCancelled) and not result.transactions and not moved:
                    logger.info("Claim for %s cancelled before any split ran", domain)
                    raise
                logger.warning(
                    "Claim for %s stopped at split %d/%d after %d completed: %s",
                    domain,
                    i + 1,
                    plan.split_count,
                    len(result.transactions),
                    e,
                )
                raise PartialClaimFailure(result, i, e, pending=receipt if moved else None) from e

            result.transactions.append(receipt)
            logger.info("Split %d/%d done: %s lamports", i + 1, plan.split_count, split)

        logger.info("Claim for %s completed", domain)
        return result

    def _require_signer(self) -> Signer:
        if self._signer is None:
            raise NotConfigured("No signer configured. Call set_signer() first.")
        return self._signer

    async def _verify_owner(self, domain: str, owner: str) -> None:
        if not await self._resolver.verify_ownership(domain, owner):
            raise OwnershipMismatch(f"{owner} does not own {domain}")

    async def _load_policy(self, domain: str, overrides: dict[str, Any] | None = None) -> PrivacyPolicy:
        policy = await self._vaults.get_policy(domain)
        if policy is None:
            raise NotConfigured(f"No vault initialized for {domain}")
        if overrides:
            unknown = set(overrides) - {f.name for f in fields(PrivacyPolicy)}
            if unknown:
                raise ValueError(f"Unknown policy fields: {sorted(unknown)}")
            policy = replace(policy, **overrides)
        if not policy.enabled:
            raise InvalidPolicy(f"Privacy policy for {domain} is disabled")
        policy.validate()
        return policy

    def _funding_step(
        self, domain: str, receipt: SplitReceipt, token: CancellationToken
    ) -> FundingStep | None:
        if self._vault_deposit is None:
            return None
        vault_deposit = self._vault_deposit

        async def fund(lamports: int) -> None:
            token.raise_if_cancelled()
            receipt.vault_deposit = await vault_deposit(domain, lamports)

        return fund

    @staticmethod
    def _recipient_for(
        index: int,
        destination: str | None,
        policy: PrivacyPolicy,
        owner: str,
        seed: bytes,
    ) -> str:
        if destination is not None:
            return destination
        if not policy.destinations:
            return owner
        if policy.destination_mode is DestinationMode.MULTI_DESTINATION:
            return policy.destinations[index % len(policy.destinations)]
        if policy.destination_mode is DestinationMode.RANDOM_DESTINATION:
            return policy.destinations[pick_destination(seed, index, len(policy.destinations))]
        return owner
