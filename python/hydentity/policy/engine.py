"""Policy-driven execution plan generation.

Turns a claim amount and a ``PrivacyPolicy`` into an ``ExecutionPlan``:
a split count drawn from ``[min_splits, max_splits]``, split amounts
that sum exactly to the claim, and per-split delays drawn from
``[min_delay_seconds, max_delay_seconds]``.
"""

from ..constants import (
    DEFAULT_BASE_FEE_LAMPORTS,
    DOMAIN_CUT_SEED,
    DOMAIN_DELAY_SEED,
    DOMAIN_SPLIT_SEED,
    DUST_THRESHOLD_LAMPORTS,
)
from ..errors import InvalidAmount
from ..types import Distribution, ExecutionPlan, PrivacyPolicy, validate_amount
from .randomness import FRACTION_SCALE, DeterministicStream, derive_seed_material


def _cut_numerator(stream: DeterministicStream, distribution: Distribution, parts_left: int) -> tuple[int, int]:
    """Return ``(numerator, denominator)`` of the fraction of ``remaining`` to cut."""
    if distribution is Distribution.WEIGHTED:
        return stream.fraction(), FRACTION_SCALE
    if distribution is Distribution.EXPONENTIAL_DECAY:
        # Between 1/2 and 3/4 of what remains, so earlier splits dominate.
        return FRACTION_SCALE // 2 + stream.randbelow(FRACTION_SCALE // 4), FRACTION_SCALE
    # Equal share of what remains, jittered by +-25%.
    jitter = stream.randbelow(FRACTION_SCALE // 2)
    return FRACTION_SCALE * 3 // 4 + jitter, FRACTION_SCALE * parts_left


def generate_split_amounts(
    amount: int,
    seed: bytes,
    min_splits: int,
    max_splits: int,
    distribution: Distribution = Distribution.UNIFORM,
) -> list[int]:
    """Generate split amounts that sum exactly to ``amount``.

    Every split is at least one lamport. When ``amount`` is too small to
    give each of the chosen splits a lamport, the split count shrinks to
    ``max(1, amount)``.
    """
    count_stream = DeterministicStream(seed, DOMAIN_SPLIT_SEED)
    n = count_stream.randint(min_splits, max_splits)
    n = max(1, min(n, amount))

    cut_stream = DeterministicStream(seed, DOMAIN_CUT_SEED)
    splits: list[int] = []
    remaining = amount

    for i in range(n - 1):
        parts_left = n - i
        numerator, denominator = _cut_numerator(cut_stream, distribution, parts_left)
        cut = remaining * numerator // denominator
        # Leave at least one lamport for each later split.
        ceiling = remaining - (parts_left - 1)
        cut = min(max(cut, 1), ceiling)
        splits.append(cut)
        remaining -= cut

    # Last split absorbs all rounding.
    splits.append(remaining)
    return splits


def generate_delays(
    seed: bytes,
    split_count: int,
    min_delay_seconds: int,
    max_delay_seconds: int,
) -> list[int]:
    """Generate ``split_count - 1`` delays in seconds."""
    if split_count <= 1:
        return []
    stream = DeterministicStream(seed, DOMAIN_DELAY_SEED)
    return [stream.randint(min_delay_seconds, max_delay_seconds) for _ in range(split_count - 1)]


def generate_execution_plan(amount: int, policy: PrivacyPolicy, seed: bytes) -> ExecutionPlan:
    """Generate the execution plan for one claim.

    Args:
        amount: Claim amount in lamports (> 0).
        policy: Privacy policy to honor.
        seed: Secret seed material, see ``derive_seed_material``.

    Returns:
        ExecutionPlan whose splits sum to ``amount``.

    Raises:
        InvalidPolicy: If the policy ranges are malformed.
        InvalidAmount: If ``amount`` is zero.
    """
    policy.validate()
    validate_amount(amount)
    if amount == 0:
        raise InvalidAmount("Invalid claim amount (must be > 0)")
    if not seed:
        raise ValueError("seed cannot be empty")

    splits = generate_split_amounts(
        amount,
        seed,
        policy.min_splits,
        policy.max_splits,
        policy.distribution,
    )
    delays = generate_delays(seed, len(splits), policy.min_delay_seconds, policy.max_delay_seconds)
    return ExecutionPlan(splits=splits, delays=delays)


class PolicyEngine:
    """Plan generator bound to a claimant's master seed and a policy nonce.

    The same master seed and nonce always reproduce the same plans, which
    lets a failed claim be resumed or audited without re-deciding amounts.
    """

    def __init__(self, master_seed: bytes, nonce: int):
        self._master_seed = bytes(master_seed)
        self._nonce = nonce
        self._derived_seed = derive_seed_material(self._master_seed, nonce)

    @property
    def nonce(self) -> int:
        return self._nonce

    @property
    def derived_seed(self) -> bytes:
        return self._derived_seed

    def update_nonce(self, nonce: int) -> None:
        self._nonce = nonce
        self._derived_seed = derive_seed_material(self._master_seed, nonce)

    def generate_splits(self, amount: int, policy: PrivacyPolicy) -> list[int]:
        policy.validate()
        if amount <= 0:
            raise InvalidAmount("Invalid claim amount (must be > 0)")
        return generate_split_amounts(
            amount,
            self._derived_seed,
            policy.min_splits,
            policy.max_splits,
            policy.distribution,
        )

    def generate_delays(self, split_count: int, policy: PrivacyPolicy) -> list[int]:
        policy.validate()
        return generate_delays(
            self._derived_seed,
            split_count,
            policy.min_delay_seconds,
            policy.max_delay_seconds,
        )

    def generate_execution_plan(self, amount: int, policy: PrivacyPolicy) -> ExecutionPlan:
        return generate_execution_plan(amount, policy, self._derived_seed)

    def preview_execution_plan(self, amount: int, policy: PrivacyPolicy) -> dict:
        plan = self.generate_execution_plan(amount, policy)
        return {"plan": plan, **plan.preview()}

    @staticmethod
    def validate_amount(
        amount: int,
        min_splits: int,
        dust_threshold: int = DUST_THRESHOLD_LAMPORTS,
    ) -> tuple[bool, str | None]:
        """Check whether ``amount`` gives every split at least ``dust_threshold``."""
        min_required = dust_threshold * min_splits
        if amount < min_required:
            return False, (
                f"Amount {amount} is too small for {min_splits} splits (minimum: {min_required})"
            )
        return True, None

    @staticmethod
    def estimate_gas_cost(split_count: int, base_fee_per_tx: int = DEFAULT_BASE_FEE_LAMPORTS) -> int:
        """Estimate network fees: one vault transaction plus one per split."""
        return base_fee_per_tx * (1 + split_count)
