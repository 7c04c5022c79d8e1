"""Decoders for Hydentity program accounts.

Account data is Anchor/Borsh: an 8-byte discriminator followed by the
struct fields in declaration order. Decoding only reads the fields, it
does not check the discriminator or trailing reserved bytes.
"""

import struct
from dataclasses import dataclass

from solders.pubkey import Pubkey  # type: ignore

from .types import DestinationMode, Distribution, PrivacyMode, PrivacyPolicy

DISCRIMINATOR_LEN = 8


class _Reader:
    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = DISCRIMINATOR_LEN

    def _take(self, n: int) -> bytes:
        end = self._offset + n
        if end > len(self._data):
            raise ValueError(
                f"Account data too short: need {end} bytes, have {len(self._data)}"
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def _unpack(self, fmt: str):
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def pubkey(self) -> str:
        return str(Pubkey.from_bytes(self._take(32)))

    def u8(self) -> int:
        return self._unpack("<B")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def i64(self) -> int:
        return self._unpack("<q")

    def bool(self) -> bool:
        return self.u8() != 0


@dataclass
class NameVaultAccount:
    owner: str
    sns_name: str
    total_sol_received: int
    deposit_count: int
    created_at: int
    last_deposit_at: int
    bump: int
    domain_transferred: bool

    @classmethod
    def decode(cls, data: bytes) -> "NameVaultAccount":
        r = _Reader(data)
        return cls(
            owner=r.pubkey(),
            sns_name=r.pubkey(),
            total_sol_received=r.u64(),
            deposit_count=r.u64(),
            created_at=r.i64(),
            last_deposit_at=r.i64(),
            bump=r.u8(),
            domain_transferred=r.bool(),
        )


@dataclass
class PrivacyPolicyAccount:
    vault: str
    sns_name: str
    policy: PrivacyPolicy
    updated_at: int
    bump: int

    @classmethod
    def decode(cls, data: bytes) -> "PrivacyPolicyAccount":
        r = _Reader(data)
        vault = r.pubkey()
        sns_name = r.pubkey()
        enabled = r.bool()
        min_splits = r.u8()
        max_splits = r.u8()
        min_delay = r.u32()
        max_delay = r.u32()
        distribution = Distribution.from_wire(r.u8())
        privacy_mode = PrivacyMode.from_wire(r.u8())
        destination_mode = DestinationMode.from_wire(r.u8())
        destinations = [r.pubkey() for _ in range(r.u32())]
        policy_nonce = r.u64()
        updated_at = r.i64()
        bump = r.u8()

        policy = PrivacyPolicy(
            enabled=enabled,
            min_splits=min_splits,
            max_splits=max_splits,
            min_delay_seconds=min_delay,
            max_delay_seconds=max_delay,
            distribution=distribution,
            privacy_mode=privacy_mode,
            destination_mode=destination_mode,
            destinations=destinations,
            policy_nonce=policy_nonce,
        )
        return cls(vault=vault, sns_name=sns_name, policy=policy, updated_at=updated_at, bump=bump)


@dataclass
class DelegateSessionAccount:
    vault: str
    sns_name: str
    delegate: str
    granted_by: str
    expires_at: int
    permissions: int
    created_at: int
    bump: int

    @classmethod
    def decode(cls, data: bytes) -> "DelegateSessionAccount":
        r = _Reader(data)
        return cls(
            vault=r.pubkey(),
            sns_name=r.pubkey(),
            delegate=r.pubkey(),
            granted_by=r.pubkey(),
            expires_at=r.i64(),
            permissions=r.u8(),
            created_at=r.i64(),
            bump=r.u8(),
        )

    def is_valid(self, now: int) -> bool:
        return now < self.expires_at
