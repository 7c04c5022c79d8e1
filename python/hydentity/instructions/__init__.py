"""Instruction builders for the Hydentity vault program."""

from hydentity.instructions.common import anchor_discriminator
from hydentity.instructions.delegate import (
    build_add_delegate_instruction,
    build_revoke_delegate_instruction,
    create_permission_flags,
    has_permission,
)
from hydentity.instructions.pda import (
    PROGRAM_ID,
    VaultAddresses,
    get_delegate_session_pda,
    get_name_vault_pda,
    get_privacy_policy_pda,
    get_vault_authority_pda,
)
from hydentity.instructions.policy import PolicyUpdate, build_update_policy_instruction
from hydentity.instructions.vault import (
    build_deposit_to_umbra_instruction,
    build_initialize_vault_instruction,
    build_withdraw_direct_instruction,
)

__all__ = [
    "PROGRAM_ID",
    "VaultAddresses",
    "anchor_discriminator",
    "get_name_vault_pda",
    "get_vault_authority_pda",
    "get_privacy_policy_pda",
    "get_delegate_session_pda",
    "PolicyUpdate",
    "build_initialize_vault_instruction",
    "build_update_policy_instruction",
    "build_withdraw_direct_instruction",
    "build_deposit_to_umbra_instruction",
    "build_add_delegate_instruction",
    "build_revoke_delegate_instruction",
    "has_permission",
    "create_permission_flags",
]
