"""Tests for the HMAC-SHA256 deterministic stream."""

import hashlib
import hmac

import pytest

from hydentity.constants import DOMAIN_RANDOM_SEED
from hydentity.policy.randomness import (
    FRACTION_SCALE,
    DeterministicStream,
    derive_pool_key,
    derive_seed_material,
)

SEED = bytes(range(32))


class TestDeterministicStream:
    """Counter-mode stream behavior."""

    def test_first_block_is_hmac_of_counter_zero(self):
        """Block 0 is HMAC(seed, domain || u64le(0))."""
        stream = DeterministicStream(SEED, b"domain")
        expected = hmac.new(SEED, b"domain" + (0).to_bytes(8, "little"), hashlib.sha256).digest()
        assert stream.read(32) == expected

    def test_reads_span_blocks(self):
        """Reading across a block boundary continues with the next counter."""
        a = DeterministicStream(SEED, b"d")
        b = DeterministicStream(SEED, b"d")
        assert a.read(20) + a.read(20) == b.read(40)

    def test_same_inputs_same_stream(self):
        a = DeterministicStream(SEED, b"d")
        b = DeterministicStream(SEED, b"d")
        assert [a.next_u64() for _ in range(10)] == [b.next_u64() for _ in range(10)]

    def test_domains_are_independent(self):
        a = DeterministicStream(SEED, b"split")
        b = DeterministicStream(SEED, b"delay")
        assert a.read(32) != b.read(32)

    def test_randint_bounds(self):
        stream = DeterministicStream(SEED, b"bounds")
        values = [stream.randint(3, 7) for _ in range(500)]
        assert min(values) == 3
        assert max(values) == 7

    def test_randint_single_value(self):
        stream = DeterministicStream(SEED, b"single")
        assert stream.randint(5, 5) == 5

    def test_randint_rejects_inverted_range(self):
        stream = DeterministicStream(SEED, b"bad")
        with pytest.raises(ValueError):
            stream.randint(2, 1)

    def test_fraction_is_strictly_inside_unit_interval(self):
        stream = DeterministicStream(SEED, b"fraction")
        for _ in range(100):
            assert 0 < stream.fraction() < FRACTION_SCALE

    def test_empty_seed_rejected(self):
        with pytest.raises(ValueError, match="seed cannot be empty"):
            DeterministicStream(b"", b"d")


class TestSeedDerivation:
    """Seed material and pool key derivation."""

    def test_seed_material_layout(self):
        expected = hmac.new(
            SEED, DOMAIN_RANDOM_SEED + (7).to_bytes(8, "little"), hashlib.sha256
        ).digest()
        assert derive_seed_material(SEED, 7) == expected

    def test_nonce_changes_seed(self):
        assert derive_seed_material(SEED, 0) != derive_seed_material(SEED, 1)

    def test_nonce_out_of_range(self):
        with pytest.raises(ValueError, match="u64"):
            derive_seed_material(SEED, 2**64)

    def test_pool_key_differs_from_plan_seed(self):
        assert derive_pool_key(SEED) != derive_seed_material(SEED, 0)
        assert len(derive_pool_key(SEED)) == 32
