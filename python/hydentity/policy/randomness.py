"""Deterministic randomness for execution plans.

All values are drawn from an HMAC-SHA256 counter stream keyed on
secret, claim-specific seed material. Identical seeds always yield
identical streams, across processes and machines.
"""

import hashlib
import hmac

from ..constants import DOMAIN_DESTINATION_SEED, DOMAIN_POOL_IDENTITY, DOMAIN_RANDOM_SEED, U64_MAX

FRACTION_BITS = 64
FRACTION_SCALE = 1 << FRACTION_BITS


def derive_seed_material(master_seed: bytes, policy_nonce: int) -> bytes:
    """Derive the 32-byte plan seed from a master seed and policy nonce.

    Bumping ``policy_nonce`` re-randomizes every plan derived from the
    same master seed.
    """
    if not master_seed:
        raise ValueError("master_seed cannot be empty")
    if not 0 <= policy_nonce <= U64_MAX:
        raise ValueError(f"policy_nonce must fit in u64, got {policy_nonce}")
    message = DOMAIN_RANDOM_SEED + policy_nonce.to_bytes(8, "little")
    return hmac.new(master_seed, message, hashlib.sha256).digest()


def derive_pool_key(master_seed: bytes) -> bytes:
    """Derive the mixer pool key for a claimant."""
    return hmac.new(master_seed, DOMAIN_POOL_IDENTITY, hashlib.sha256).digest()


class DeterministicStream:
    """HMAC-SHA256 counter-mode byte stream.

    Block ``i`` is ``HMAC(seed, domain || u64le(i))``.
    """

    def __init__(self, seed: bytes, domain: bytes):
        if not seed:
            raise ValueError("seed cannot be empty")
        self._seed = seed
        self._domain = domain
        self._counter = 0
        self._buffer = b""

    def _next_block(self) -> bytes:
        block = hmac.new(
            self._seed,
            self._domain + self._counter.to_bytes(8, "little"),
            hashlib.sha256,
        ).digest()
        self._counter += 1
        return block

    def read(self, n: int) -> bytes:
        while len(self._buffer) < n:
            self._buffer += self._next_block()
        out, self._buffer = self._buffer[:n], self._buffer[n:]
        return out

    def next_u64(self) -> int:
        return int.from_bytes(self.read(8), "little")

    def randbelow(self, n: int) -> int:
        """Uniform integer in ``[0, n)`` via rejection sampling."""
        if n <= 0:
            raise ValueError(f"n must be positive, got {n}")
        if n == 1:
            return 0
        limit = FRACTION_SCALE - (FRACTION_SCALE % n)
        while True:
            value = self.next_u64()
            if value < limit:
                return value % n

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in ``[low, high]``."""
        if low > high:
            raise ValueError(f"low {low} > high {high}")
        return low + self.randbelow(high - low + 1)

    def fraction(self) -> int:
        """Numerator of a fraction over ``FRACTION_SCALE``, strictly inside (0, 1)."""
        while True:
            value = self.next_u64()
            if value != 0:
                return value


def pick_destination(seed: bytes, index: int, count: int) -> int:
    """Destination slot for split ``index`` under random destination mode.

    Draw ``index`` of a dedicated stream, so a resumed claim routes each
    split where the first attempt would have.
    """
    stream = DeterministicStream(seed, DOMAIN_DESTINATION_SEED)
    for _ in range(index):
        stream.randbelow(count)
    return stream.randbelow(count)
