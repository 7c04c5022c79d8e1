"""Transaction forwarders."""

from hydentity.forwarders.base import TransactionForwarder, validate_delays
from hydentity.forwarders.connection import ConnectionForwarder
from hydentity.forwarders.relayer import RelayerForwarder

__all__ = [
    "TransactionForwarder",
    "ConnectionForwarder",
    "RelayerForwarder",
    "validate_delays",
]
