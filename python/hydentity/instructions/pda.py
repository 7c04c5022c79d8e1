"""Program-derived addresses for Hydentity vault accounts.

Every vault account is seeded by the SNS name account it belongs to,
so a domain maps to exactly one vault, vault authority and policy.
"""

from dataclasses import dataclass

from solders.pubkey import Pubkey  # type: ignore

from ..constants import (
    DELEGATE_SEED,
    HYDENTITY_PROGRAM_ID,
    POLICY_SEED,
    VAULT_AUTH_SEED,
    VAULT_SEED,
)
from ..utils import to_pubkey

PROGRAM_ID = Pubkey.from_string(HYDENTITY_PROGRAM_ID)


def get_name_vault_pda(sns_name_account: "str | Pubkey") -> tuple[Pubkey, int]:
    return Pubkey.find_program_address([VAULT_SEED, bytes(to_pubkey(sns_name_account))], PROGRAM_ID)


def get_vault_authority_pda(sns_name_account: "str | Pubkey") -> tuple[Pubkey, int]:
    """Vault authority PDA. Deposits land here, so it holds the claimable SOL."""
    return Pubkey.find_program_address(
        [VAULT_AUTH_SEED, bytes(to_pubkey(sns_name_account))], PROGRAM_ID
    )


def get_privacy_policy_pda(sns_name_account: "str | Pubkey") -> tuple[Pubkey, int]:
    return Pubkey.find_program_address([POLICY_SEED, bytes(to_pubkey(sns_name_account))], PROGRAM_ID)


def get_delegate_session_pda(
    sns_name_account: "str | Pubkey", delegate: "str | Pubkey"
) -> tuple[Pubkey, int]:
    return Pubkey.find_program_address(
        [DELEGATE_SEED, bytes(to_pubkey(sns_name_account)), bytes(to_pubkey(delegate))],
        PROGRAM_ID,
    )


@dataclass(frozen=True)
class VaultAddresses:
    vault: Pubkey
    vault_authority: Pubkey
    policy: Pubkey

    @classmethod
    def for_name(cls, sns_name_account: "str | Pubkey") -> "VaultAddresses":
        return cls(
            vault=get_name_vault_pda(sns_name_account)[0],
            vault_authority=get_vault_authority_pda(sns_name_account)[0],
            policy=get_privacy_policy_pda(sns_name_account)[0],
        )
