"""``update_policy`` instruction and its Borsh-encoded parameters."""

from dataclasses import dataclass, fields

from solders.instruction import AccountMeta, Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore

from ..constants import MAX_DELAY_SECONDS_CAP, MAX_DESTINATIONS, MAX_SPLITS_CAP
from ..errors import InvalidPolicy
from ..types import DestinationMode, Distribution, PrivacyMode, PrivacyPolicy
from ..utils import to_pubkey
from .common import (
    anchor_discriminator,
    encode_bool,
    encode_option,
    encode_pubkey_vec,
    encode_u8,
    encode_u32,
)
from .pda import PROGRAM_ID, get_name_vault_pda, get_privacy_policy_pda

UPDATE_POLICY_DISCRIMINATOR = anchor_discriminator("update_policy")


@dataclass
class PolicyUpdate:
    """Partial policy update. Fields left as None keep their on-chain value."""

    enabled: bool | None = None
    min_splits: int | None = None
    max_splits: int | None = None
    min_delay_seconds: int | None = None
    max_delay_seconds: int | None = None
    distribution: Distribution | None = None
    privacy_mode: PrivacyMode | None = None
    destination_mode: DestinationMode | None = None
    destinations: list[str] | None = None

    @classmethod
    def from_policy(cls, policy: PrivacyPolicy) -> "PolicyUpdate":
        """Full update replacing every field with ``policy``'s values."""
        return cls(
            enabled=policy.enabled,
            min_splits=policy.min_splits,
            max_splits=policy.max_splits,
            min_delay_seconds=policy.min_delay_seconds,
            max_delay_seconds=policy.max_delay_seconds,
            distribution=policy.distribution,
            privacy_mode=policy.privacy_mode,
            destination_mode=policy.destination_mode,
            destinations=list(policy.destinations),
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def validate(self) -> None:
        for name in ("min_splits", "max_splits"):
            value = getattr(self, name)
            if value is not None and not 1 <= value <= MAX_SPLITS_CAP:
                raise InvalidPolicy(f"{name} must be 1-{MAX_SPLITS_CAP}, got {value}")
        for name in ("min_delay_seconds", "max_delay_seconds"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= MAX_DELAY_SECONDS_CAP:
                raise InvalidPolicy(f"{name} must fit in u32, got {value}")
        if self.min_splits is not None and self.max_splits is not None and self.min_splits > self.max_splits:
            raise InvalidPolicy(
                f"Invalid split range: min_splits {self.min_splits} > max_splits {self.max_splits}"
            )
        if (
            self.min_delay_seconds is not None
            and self.max_delay_seconds is not None
            and self.min_delay_seconds > self.max_delay_seconds
        ):
            raise InvalidPolicy(
                f"Invalid delay range: min_delay_seconds {self.min_delay_seconds} "
                f"> max_delay_seconds {self.max_delay_seconds}"
            )
        if self.destinations is not None:
            if len(self.destinations) > MAX_DESTINATIONS:
                raise InvalidPolicy(
                    f"Too many destinations specified (max {MAX_DESTINATIONS}), got {len(self.destinations)}"
                )
            for dest in self.destinations:
                try:
                    to_pubkey(dest)
                except ValueError as e:
                    raise InvalidPolicy(str(e)) from e

    def serialize(self) -> bytes:
        """Borsh encoding of the on-chain ``UpdatePolicyParams`` struct."""
        destinations = (
            [to_pubkey(d) for d in self.destinations] if self.destinations is not None else None
        )
        return b"".join(
            [
                encode_option(self.enabled, encode_bool),
                encode_option(self.min_splits, encode_u8),
                encode_option(self.max_splits, encode_u8),
                encode_option(self.min_delay_seconds, encode_u32),
                encode_option(self.max_delay_seconds, encode_u32),
                encode_option(self.distribution, lambda d: encode_u8(d.wire_index)),
                encode_option(self.privacy_mode, lambda m: encode_u8(m.wire_index)),
                encode_option(self.destination_mode, lambda m: encode_u8(m.wire_index)),
                encode_option(destinations, encode_pubkey_vec),
            ]
        )


def build_update_policy_instruction(
    authority: "str | Pubkey",
    sns_name_account: "str | Pubkey",
    params: PolicyUpdate,
    delegate_session: "str | Pubkey | None" = None,
) -> Instruction:
    """Build ``update_policy``. Pass ``delegate_session`` when ``authority`` is a delegate.

    Raises:
        InvalidPolicy: If ``params`` holds out-of-range values.
    """
    params.validate()
    name_key = to_pubkey(sns_name_account)
    vault, _ = get_name_vault_pda(name_key)
    policy, _ = get_privacy_policy_pda(name_key)

    accounts = [
        AccountMeta(to_pubkey(authority), is_signer=True, is_writable=True),
        AccountMeta(name_key, is_signer=False, is_writable=False),
        AccountMeta(vault, is_signer=False, is_writable=False),
        AccountMeta(policy, is_signer=False, is_writable=True),
    ]
    if delegate_session is not None:
        accounts.append(AccountMeta(to_pubkey(delegate_session), is_signer=False, is_writable=False))

    return Instruction(PROGRAM_ID, UPDATE_POLICY_DISCRIMINATOR + params.serialize(), accounts)
