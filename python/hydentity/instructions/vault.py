"""Vault funds instructions: ``initialize_vault``, ``withdraw_direct`` and ``deposit_to_umbra``."""

from solders.instruction import AccountMeta, Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.system_program import ID as SYSTEM_PROGRAM_ID  # type: ignore
from spl.token.constants import TOKEN_PROGRAM_ID  # type: ignore

from ..constants import DUST_THRESHOLD_LAMPORTS
from ..types import validate_amount
from ..utils import to_pubkey
from .common import anchor_discriminator, encode_option, encode_pubkey, encode_u64
from .pda import PROGRAM_ID, VaultAddresses

INITIALIZE_VAULT_DISCRIMINATOR = anchor_discriminator("initialize_vault")
WITHDRAW_DIRECT_DISCRIMINATOR = anchor_discriminator("withdraw_direct")
DEPOSIT_TO_UMBRA_DISCRIMINATOR = anchor_discriminator("deposit_to_umbra")


def build_initialize_vault_instruction(
    owner: "str | Pubkey", sns_name_account: "str | Pubkey"
) -> Instruction:
    """Create the vault, vault authority and default policy for a domain."""
    owner_key = to_pubkey(owner)
    name_key = to_pubkey(sns_name_account)
    addrs = VaultAddresses.for_name(name_key)

    accounts = [
        AccountMeta(owner_key, is_signer=True, is_writable=True),
        AccountMeta(name_key, is_signer=False, is_writable=False),
        AccountMeta(addrs.vault, is_signer=False, is_writable=True),
        AccountMeta(addrs.vault_authority, is_signer=False, is_writable=True),
        AccountMeta(addrs.policy, is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(PROGRAM_ID, INITIALIZE_VAULT_DISCRIMINATOR, accounts)


def build_withdraw_direct_instruction(
    owner: "str | Pubkey",
    sns_name_account: "str | Pubkey",
    destination: "str | Pubkey",
    amount: int,
    mint: "str | Pubkey | None" = None,
    vault_token_account: "str | Pubkey | None" = None,
    destination_token_account: "str | Pubkey | None" = None,
) -> Instruction:
    """Owner-only withdrawal that bypasses privacy routing.

    With ``mint`` unset this moves SOL out of the vault authority. For SPL
    tokens both token accounts are required.

    Raises:
        ValueError: If ``amount`` is zero or a token withdrawal lacks its
            token accounts.
    """
    validate_amount(amount)
    if amount == 0:
        raise ValueError("Withdrawal amount must be greater than zero")
    if mint is not None and (vault_token_account is None or destination_token_account is None):
        raise ValueError("Token withdrawals need both vault and destination token accounts")

    owner_key = to_pubkey(owner)
    name_key = to_pubkey(sns_name_account)
    addrs = VaultAddresses.for_name(name_key)
    mint_key = to_pubkey(mint) if mint is not None else None

    data = (
        WITHDRAW_DIRECT_DISCRIMINATOR
        + encode_u64(amount)
        + encode_option(mint_key, encode_pubkey)
    )

    # Anchor reads the program id in an optional account slot as None.
    vault_token = to_pubkey(vault_token_account) if vault_token_account is not None else PROGRAM_ID
    dest_token = (
        to_pubkey(destination_token_account) if destination_token_account is not None else PROGRAM_ID
    )

    accounts = [
        AccountMeta(owner_key, is_signer=True, is_writable=True),
        AccountMeta(name_key, is_signer=False, is_writable=False),
        AccountMeta(addrs.vault, is_signer=False, is_writable=True),
        AccountMeta(addrs.vault_authority, is_signer=False, is_writable=True),
        AccountMeta(to_pubkey(destination), is_signer=False, is_writable=True),
        AccountMeta(vault_token, is_signer=False, is_writable=vault_token_account is not None),
        AccountMeta(dest_token, is_signer=False, is_writable=destination_token_account is not None),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(PROGRAM_ID, data, accounts)


def build_deposit_to_umbra_instruction(
    authority: "str | Pubkey",
    sns_name_account: "str | Pubkey",
    umbra_program: "str | Pubkey",
    umbra_pool: "str | Pubkey",
    amount: int,
    mint: "str | Pubkey | None" = None,
    vault_token_account: "str | Pubkey | None" = None,
    umbra_pool_token_account: "str | Pubkey | None" = None,
    delegate_session: "str | Pubkey | None" = None,
) -> Instruction:
    """Move ``amount`` out of the vault into the privacy pool.

    SOL is taken from the vault account itself, above its rent reserve.
    ``authority`` is the owner, or a delegate holding
    ``PERMISSION_DEPOSIT_UMBRA`` together with its ``delegate_session``.

    Raises:
        ValueError: If ``amount`` is below the dust threshold or a token
            deposit lacks its token accounts.
    """
    validate_amount(amount)
    if amount < DUST_THRESHOLD_LAMPORTS:
        raise ValueError(
            f"Deposit amount {amount} is below the dust threshold of {DUST_THRESHOLD_LAMPORTS} lamports"
        )
    if mint is not None and (vault_token_account is None or umbra_pool_token_account is None):
        raise ValueError("Token deposits need both vault and pool token accounts")

    authority_key = to_pubkey(authority)
    name_key = to_pubkey(sns_name_account)
    addrs = VaultAddresses.for_name(name_key)
    mint_key = to_pubkey(mint) if mint is not None else None

    data = (
        DEPOSIT_TO_UMBRA_DISCRIMINATOR
        + encode_u64(amount)
        + encode_option(mint_key, encode_pubkey)
    )

    session = to_pubkey(delegate_session) if delegate_session is not None else PROGRAM_ID
    vault_token = to_pubkey(vault_token_account) if vault_token_account is not None else PROGRAM_ID
    pool_token = (
        to_pubkey(umbra_pool_token_account) if umbra_pool_token_account is not None else PROGRAM_ID
    )

    accounts = [
        AccountMeta(authority_key, is_signer=True, is_writable=True),
        AccountMeta(name_key, is_signer=False, is_writable=False),
        AccountMeta(addrs.vault, is_signer=False, is_writable=True),
        AccountMeta(addrs.vault_authority, is_signer=False, is_writable=False),
        AccountMeta(addrs.policy, is_signer=False, is_writable=False),
        AccountMeta(session, is_signer=False, is_writable=False),
        AccountMeta(to_pubkey(umbra_program), is_signer=False, is_writable=False),
        AccountMeta(to_pubkey(umbra_pool), is_signer=False, is_writable=True),
        AccountMeta(vault_token, is_signer=False, is_writable=vault_token_account is not None),
        AccountMeta(pool_token, is_signer=False, is_writable=umbra_pool_token_account is not None),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(PROGRAM_ID, data, accounts)
