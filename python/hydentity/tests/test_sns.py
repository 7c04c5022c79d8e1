"""Tests for Solana Name Service resolution."""

import asyncio
import hashlib

import pytest
from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from hydentity.errors import NameNotFound, NetworkFailure
from hydentity.sns import (
    NAME_PROGRAM_ID,
    SOL_TLD,
    SnsResolver,
    get_domain_key,
    is_valid_sns_domain,
    normalize_domain,
)
from hydentity.tests.fakes import FakeRpc, encode_name_registry

OWNER = Keypair().pubkey()


class TestDomainKey:
    """Name account derivation."""

    def test_matches_manual_derivation(self):
        hashed = hashlib.sha256(b"SPL Name Servicebonfida").digest()
        expected, _ = Pubkey.find_program_address([hashed, bytes(32), bytes(SOL_TLD)], NAME_PROGRAM_ID)
        assert get_domain_key("bonfida") == expected

    def test_normalizes(self):
        assert normalize_domain("  Alice.SOL ") == "alice"
        assert get_domain_key("Alice.sol") == get_domain_key("alice")

    @pytest.mark.parametrize(
        "domain", ["", ".sol", "has space", "a" * 64, "emoji☃", "sub.alice.sol", "sub.alice", "alice."]
    )
    def test_invalid(self, domain):
        assert not is_valid_sns_domain(domain)
        with pytest.raises(ValueError, match="Invalid SNS domain"):
            get_domain_key(domain)

    def test_valid(self):
        assert is_valid_sns_domain("my-vault_01.sol")


class TestSnsResolver:
    """Owner lookups over RPC."""

    def test_resolve(self):
        rpc = FakeRpc(accounts={str(get_domain_key("alice")): encode_name_registry(OWNER)})
        info = asyncio.run(SnsResolver(rpc).get_name_info("alice.sol"))

        assert info.owner == str(OWNER)
        assert info.domain == "alice"
        assert info.name_account == get_domain_key("alice")

    def test_verify_ownership(self):
        rpc = FakeRpc(accounts={str(get_domain_key("alice")): encode_name_registry(OWNER)})
        resolver = SnsResolver(rpc)

        assert asyncio.run(resolver.verify_ownership("alice", str(OWNER)))
        assert not asyncio.run(resolver.verify_ownership("alice", str(Keypair().pubkey())))

    def test_unregistered(self):
        with pytest.raises(NameNotFound):
            asyncio.run(SnsResolver(FakeRpc()).resolve("nobody"))

    def test_truncated_registry(self):
        rpc = FakeRpc(accounts={str(get_domain_key("alice")): bytes(40)})
        with pytest.raises(NameNotFound, match="registry header"):
            asyncio.run(SnsResolver(rpc).resolve("alice"))

    def test_rpc_error(self):
        class BrokenRpc(FakeRpc):
            async def get_account_info(self, pubkey, *args, **kwargs):
                raise RPCException("node is behind")

        with pytest.raises(NetworkFailure, match="node is behind"):
            asyncio.run(SnsResolver(BrokenRpc()).resolve("alice"))
