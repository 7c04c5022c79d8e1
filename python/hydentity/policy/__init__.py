"""Execution plan generation for private claims."""

from hydentity.policy.engine import (
    PolicyEngine,
    generate_delays,
    generate_execution_plan,
    generate_split_amounts,
)
from hydentity.policy.randomness import (
    DeterministicStream,
    derive_pool_key,
    derive_seed_material,
    pick_destination,
)

__all__ = [
    "PolicyEngine",
    "generate_execution_plan",
    "generate_split_amounts",
    "generate_delays",
    "DeterministicStream",
    "derive_seed_material",
    "derive_pool_key",
    "pick_destination",
]
