"""Utility functions shared across the Hydentity SDK."""

from typing import Any

from solders.pubkey import Pubkey  # type: ignore

from .constants import NETWORK_ALIASES, NETWORK_CONFIGS


def normalize_network(network: str) -> str:
    """Normalize a network name or CAIP-2 identifier to CAIP-2.

    Raises:
        ValueError: If the network is not a known Solana network.
    """
    if network in NETWORK_CONFIGS:
        return network
    alias = NETWORK_ALIASES.get(network.lower())
    if alias:
        return alias
    raise ValueError(f"Unsupported Solana network: {network}")


def get_network_config(network: str) -> dict[str, Any]:
    """Get the RPC and service endpoints for a network."""
    return dict(NETWORK_CONFIGS[normalize_network(network)])


def validate_svm_address(address: str) -> bool:
    """Check that ``address`` is a base58 encoded 32-byte public key."""
    if not address or not 32 <= len(address) <= 44:
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def to_pubkey(address: "str | Pubkey") -> Pubkey:
    if isinstance(address, Pubkey):
        return address
    if not validate_svm_address(address):
        raise ValueError(f"Invalid Solana address: {address}")
    return Pubkey.from_string(address)


def lamports_to_sol(lamports: int) -> str:
    """Render lamports as a SOL string without going through float."""
    whole, frac = divmod(lamports, 1_000_000_000)
    frac_str = f"{frac:09d}".rstrip("0")
    return f"{whole}.{frac_str}" if frac_str else str(whole)
