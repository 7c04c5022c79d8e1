"""Constants for the Hydentity privacy claim SDK."""

from decimal import Decimal

# Program
HYDENTITY_PROGRAM_ID = "46mwRQo4f6sLy9cigZdVJgdEpeEVc6jLRG1H241Uk9GY"

# PDA seed prefixes
VAULT_SEED = b"vault"
VAULT_AUTH_SEED = b"vault_auth"
POLICY_SEED = b"policy"
DELEGATE_SEED = b"delegate"

# SNS
SNS_NAME_PROGRAM_ID = "namesLPneVptA9Z5rqUDD9tMTWEJwofgaYwp8cawRkX"
SOL_TLD_AUTHORITY = "58PwtjSDuFHuUkYjH9BYnnQKHfwo9reZhC2zMJv9JPkx"
SNS_HASH_PREFIX = "SPL Name Service"
SNS_REGISTRY_HEADER_LEN = 96

# Networks (CAIP-2)
SOLANA_MAINNET_CAIP2 = "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"
SOLANA_DEVNET_CAIP2 = "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1"

NETWORK_ALIASES = {
    "mainnet": SOLANA_MAINNET_CAIP2,
    "mainnet-beta": SOLANA_MAINNET_CAIP2,
    "devnet": SOLANA_DEVNET_CAIP2,
}

NETWORK_CONFIGS = {
    SOLANA_MAINNET_CAIP2: {
        "name": "mainnet-beta",
        "rpc_url": "https://api.mainnet-beta.solana.com",
        "mixer_url": "https://api3.privacycash.org/",
        "relayer_url": "https://relayer.umbraprivacy.com/",
    },
    SOLANA_DEVNET_CAIP2: {
        "name": "devnet",
        "rpc_url": "https://api.devnet.solana.com",
        "mixer_url": "https://api3.privacycash.org/",
        "relayer_url": "https://relayer.umbraprivacy.com/",
    },
}

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

# Default policy values (Medium preset)
# Low:    1-3 splits, 1-10 mins
# Medium: 2-5 splits, 5-30 mins
# High:   3-6 splits, 2-8 hours
DEFAULT_MIN_SPLITS = 2
DEFAULT_MAX_SPLITS = 5
DEFAULT_MIN_DELAY_SECONDS = 300
DEFAULT_MAX_DELAY_SECONDS = 1800

MAX_SPLITS_CAP = 255  # u8 on-chain
MAX_DELAY_SECONDS_CAP = 2**32 - 1  # u32 on-chain
MAX_DESTINATIONS = 10

# NameVault account size: discriminator, owner, sns_name, totals, timestamps, bump, flag, reserved
NAME_VAULT_ACCOUNT_LEN = 8 + 32 + 32 + 8 + 8 + 8 + 8 + 1 + 1 + 31 + 32
U64_MAX = 2**64 - 1

# Delegate permission flags
PERMISSION_UPDATE_POLICY = 1 << 0
PERMISSION_DEPOSIT_UMBRA = 1 << 1
PERMISSION_ALL = PERMISSION_UPDATE_POLICY | PERMISSION_DEPOSIT_UMBRA

DUST_THRESHOLD_LAMPORTS = 10_000
LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_BASE_FEE_LAMPORTS = 5_000

# Mixer fee schedule (relayer /config defaults)
DEFAULT_WITHDRAW_FEE_RATE = Decimal("0.0035")
DEFAULT_WITHDRAW_FLAT_FEE = 6_000_000
DEFAULT_DEPOSIT_FEE = 5_000

# Domain separators for seed derivation
DOMAIN_RANDOM_SEED = b"Hydentity - Random Seed"
DOMAIN_SPLIT_SEED = b"Hydentity - Split Seed"
DOMAIN_CUT_SEED = b"Hydentity - Cut Seed"
DOMAIN_DELAY_SEED = b"Hydentity - Delay Seed"
DOMAIN_POOL_IDENTITY = b"Hydentity - Pool Identity"
DOMAIN_DESTINATION_SEED = b"Hydentity - Destination Seed"
CLAIM_SEED_MESSAGE = b"Hydentity claim seed v1"

# Error codes
ERR_INVALID_POLICY = "invalid_policy"
ERR_INVALID_AMOUNT = "invalid_amount"
ERR_INSUFFICIENT_VAULT_BALANCE = "insufficient_vault_balance"
ERR_INSUFFICIENT_FUNDS = "insufficient_funds"
ERR_INSUFFICIENT_POOL_BALANCE = "insufficient_pool_balance"
ERR_NOT_CONFIGURED = "not_configured"
ERR_NAME_NOT_FOUND = "name_not_found"
ERR_OWNERSHIP_MISMATCH = "ownership_mismatch"
ERR_NETWORK_FAILURE = "network_failure"
ERR_MIXER_ERROR = "mixer_error"
ERR_CLAIM_CANCELLED = "claim_cancelled"
ERR_PARTIAL_CLAIM_FAILURE = "partial_claim_failure"

# Forwarder error codes
ERR_INVALID_DELAY_ARRAY = "invalid_delay_array"
ERR_TRANSACTION_FAILED = "transaction_failed"
ERR_TRANSACTION_UNCONFIRMED = "transaction_unconfirmed"
ERR_SEND_TRANSACTION = "send_transaction_error"
ERR_RELAYER_ERROR = "relayer_error"
ERR_RELAYER_FAILED = "relayer_failed"
ERR_RELAYER_TIMEOUT = "relayer_timeout"
ERR_NO_RELAYERS = "no_relayers"
