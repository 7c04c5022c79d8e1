"""Solana Name Service lookups.

A ``.sol`` domain's name account is a PDA of the name service program,
seeded by ``sha256("SPL Name Service" + name)``, an all-zero class and
the ``.sol`` TLD as parent. Its registry header stores the owner at
bytes 32..64.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Protocol

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey  # type: ignore

from .constants import (
    SNS_HASH_PREFIX,
    SNS_NAME_PROGRAM_ID,
    SNS_REGISTRY_HEADER_LEN,
    SOL_TLD_AUTHORITY,
)
from .errors import NameNotFound, NetworkFailure

logger = logging.getLogger(__name__)

NAME_PROGRAM_ID = Pubkey.from_string(SNS_NAME_PROGRAM_ID)
SOL_TLD = Pubkey.from_string(SOL_TLD_AUTHORITY)

_LABEL_RE = re.compile(r"^[a-z0-9_-]+$")


def normalize_domain(domain: str) -> str:
    """Lowercase and strip surrounding whitespace and a trailing ``.sol``."""
    name = domain.strip().lower()
    if name.endswith(".sol"):
        name = name[: -len(".sol")]
    return name


def is_valid_sns_domain(domain: str) -> bool:
    """True for a single-label ``.sol`` name. Subdomains are not supported."""
    name = normalize_domain(domain)
    if not name or len(name) > 63:
        return False
    return _LABEL_RE.match(name) is not None


def get_domain_key(domain: str) -> Pubkey:
    """Name account address for a ``.sol`` domain.

    Raises:
        ValueError: If ``domain`` is not a valid domain name.
    """
    if not is_valid_sns_domain(domain):
        raise ValueError(f"Invalid SNS domain: {domain!r}")
    hashed = hashlib.sha256((SNS_HASH_PREFIX + normalize_domain(domain)).encode()).digest()
    name_class = bytes(32)
    key, _ = Pubkey.find_program_address([hashed, name_class, bytes(SOL_TLD)], NAME_PROGRAM_ID)
    return key


@dataclass(frozen=True)
class SnsNameInfo:
    domain: str
    name_account: Pubkey
    owner: str


class NameResolver(Protocol):
    """What the claim flow needs from a name service."""

    async def resolve(self, domain: str) -> str:
        """Return the base58 owner of ``domain``; raise ``NameNotFound`` if unregistered."""
        ...

    async def verify_ownership(self, domain: str, owner: str) -> bool:
        ...


class SnsResolver:
    """Reads name registry accounts over RPC."""

    def __init__(self, rpc: AsyncClient):
        self._rpc = rpc

    async def get_name_info(self, domain: str) -> SnsNameInfo:
        name = normalize_domain(domain)
        name_account = get_domain_key(name)
        try:
            resp = await self._rpc.get_account_info(name_account)
        except (RPCException, httpx.HTTPError) as e:
            raise NetworkFailure(f"Failed to fetch name account for {name}.sol: {e}") from e

        account = resp.value
        if account is None:
            raise NameNotFound(f"Domain {name}.sol is not registered")
        data = bytes(account.data)
        if len(data) < SNS_REGISTRY_HEADER_LEN:
            raise NameNotFound(f"Name account for {name}.sol has no registry header")

        owner = str(Pubkey.from_bytes(data[32:64]))
        logger.debug("Resolved %s.sol to owner %s", name, owner)
        return SnsNameInfo(domain=name, name_account=name_account, owner=owner)

    async def resolve(self, domain: str) -> str:
        return (await self.get_name_info(domain)).owner

    async def verify_ownership(self, domain: str, owner: str) -> bool:
        """Whether ``owner`` currently owns ``domain``.

        Raises:
            NameNotFound: If the domain is not registered.
        """
        return await self.resolve(domain) == str(owner)
