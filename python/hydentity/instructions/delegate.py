"""Delegate session instructions and permission flags.

A delegate is a second key allowed to act on a vault, limited by a
permission bitmap and an expiry timestamp.
"""

from solders.instruction import AccountMeta, Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.system_program import ID as SYSTEM_PROGRAM_ID  # type: ignore

from ..constants import PERMISSION_ALL
from ..utils import to_pubkey
from .common import anchor_discriminator, encode_i64, encode_u8
from .pda import PROGRAM_ID, get_delegate_session_pda, get_name_vault_pda

ADD_DELEGATE_DISCRIMINATOR = anchor_discriminator("add_delegate")
REVOKE_DELEGATE_DISCRIMINATOR = anchor_discriminator("revoke_delegate")


def has_permission(flags: int, permission: int) -> bool:
    return (flags & permission) != 0


def create_permission_flags(permissions: list[int]) -> int:
    flags = 0
    for permission in permissions:
        flags |= permission
    return flags


def _delegate_accounts(owner: Pubkey, name_key: Pubkey, delegate: Pubkey) -> list[AccountMeta]:
    vault, _ = get_name_vault_pda(name_key)
    session, _ = get_delegate_session_pda(name_key, delegate)
    return [
        AccountMeta(owner, is_signer=True, is_writable=True),
        AccountMeta(name_key, is_signer=False, is_writable=False),
        AccountMeta(vault, is_signer=False, is_writable=False),
        AccountMeta(delegate, is_signer=False, is_writable=False),
        AccountMeta(session, is_signer=False, is_writable=True),
    ]


def build_add_delegate_instruction(
    owner: "str | Pubkey",
    sns_name_account: "str | Pubkey",
    delegate: "str | Pubkey",
    expires_at: int,
    permissions: int,
) -> Instruction:
    """Grant ``delegate`` the ``permissions`` bitmap until ``expires_at`` (unix seconds).

    Raises:
        ValueError: If ``permissions`` is empty or has unknown bits.
    """
    if permissions <= 0 or permissions & ~PERMISSION_ALL:
        raise ValueError(f"Invalid permission flags: {permissions}")

    accounts = _delegate_accounts(to_pubkey(owner), to_pubkey(sns_name_account), to_pubkey(delegate))
    accounts.append(AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False))
    data = ADD_DELEGATE_DISCRIMINATOR + encode_i64(expires_at) + encode_u8(permissions)
    return Instruction(PROGRAM_ID, data, accounts)


def build_revoke_delegate_instruction(
    owner: "str | Pubkey",
    sns_name_account: "str | Pubkey",
    delegate: "str | Pubkey",
) -> Instruction:
    accounts = _delegate_accounts(to_pubkey(owner), to_pubkey(sns_name_account), to_pubkey(delegate))
    return Instruction(PROGRAM_ID, REVOKE_DELEGATE_DISCRIMINATOR, accounts)
