"""Client configuration."""

import os
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_COMMITMENT,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    SOLANA_DEVNET_CAIP2,
)
from .mixer.bridge import FeeSchedule
from .utils import get_network_config, normalize_network, validate_svm_address


@dataclass
class HydentityConfig:
    """Endpoints and transport settings for a Hydentity client.

    ``rpc_url`` and ``mixer_url`` fall back to the network presets in
    ``NETWORK_CONFIGS``. ``fee_schedule`` set to None means the mixer's
    ``/config`` endpoint is queried on first use. ``umbra_program`` and
    ``umbra_pool`` name the pool program and account that vault deposits
    pay into; private claims need both.
    """

    network: str = SOLANA_DEVNET_CAIP2
    rpc_url: str | None = None
    mixer_url: str | None = None
    relayer_url: str | None = None
    commitment: str = DEFAULT_COMMITMENT
    skip_preflight: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    fee_schedule: FeeSchedule | None = field(default=None)
    umbra_program: str | None = None
    umbra_pool: str | None = None

    def __post_init__(self) -> None:
        self.network = normalize_network(self.network)
        preset = get_network_config(self.network)
        self.rpc_url = self.rpc_url or preset["rpc_url"]
        self.mixer_url = self.mixer_url or preset["mixer_url"]
        self.relayer_url = self.relayer_url or preset["relayer_url"]
        for name in ("umbra_program", "umbra_pool"):
            value = getattr(self, name)
            if value is not None and not validate_svm_address(value):
                raise ValueError(f"Invalid {name} address: {value}")

    @classmethod
    def from_env(cls, environ: "dict[str, str] | None" = None) -> "HydentityConfig":
        """Build a config from ``HYDENTITY_*`` environment variables."""
        env = os.environ if environ is None else environ
        timeout = env.get("HYDENTITY_HTTP_TIMEOUT")
        return cls(
            network=env.get("HYDENTITY_NETWORK", SOLANA_DEVNET_CAIP2),
            rpc_url=env.get("HYDENTITY_RPC_URL") or None,
            mixer_url=env.get("HYDENTITY_MIXER_URL") or None,
            relayer_url=env.get("HYDENTITY_RELAYER_URL") or None,
            commitment=env.get("HYDENTITY_COMMITMENT", DEFAULT_COMMITMENT),
            skip_preflight=env.get("HYDENTITY_SKIP_PREFLIGHT", "").lower() in ("1", "true", "yes"),
            http_timeout=float(timeout) if timeout else DEFAULT_HTTP_TIMEOUT_SECONDS,
            umbra_program=env.get("HYDENTITY_UMBRA_PROGRAM") or None,
            umbra_pool=env.get("HYDENTITY_UMBRA_POOL") or None,
        )
