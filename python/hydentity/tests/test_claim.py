"""Tests for private claim orchestration."""

import asyncio
from decimal import Decimal

import pytest
from solders.keypair import Keypair

from hydentity.claim import CancellationToken, ClaimOptions, ClaimOrchestrator
from hydentity.constants import ERR_TRANSACTION_FAILED
from hydentity.errors import (
    ClaimCancelled,
    ForwarderError,
    InsufficientVaultBalance,
    InvalidPolicy,
    MixerError,
    NameNotFound,
    NotConfigured,
    OwnershipMismatch,
    PartialClaimFailure,
)
from hydentity.mixer import FeeSchedule, MixerBridge, MixerBridgeCache
from hydentity.signers import KeypairSigner
from hydentity.tests.fakes import FakeMixer, FakeResolver, FakeVaults
from hydentity.types import DestinationMode, PrivacyPolicy

AMOUNT = 3_000_000_000
DOMAIN = "alice.sol"


def _policy(**overrides) -> PrivacyPolicy:
    values = dict(min_splits=3, max_splits=3, min_delay_seconds=0, max_delay_seconds=0)
    values.update(overrides)
    return PrivacyPolicy(**values)


class Harness:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(
        self,
        policy=None,
        balance=10 * AMOUNT,
        mixer=None,
        owner=None,
        signer="default",
        fund_from_vault=False,
    ):
        self.signer = KeypairSigner(Keypair()) if signer == "default" else signer
        address = owner or (self.signer.address if self.signer else str(Keypair().pubkey()))
        self.resolver = FakeResolver({"alice": address})
        self.vaults = FakeVaults(balance, policy if policy is not None else _policy())
        self.mixer = mixer or FakeMixer()
        self.identities = []
        self.vault_deposits = []
        self.fund_from_vault = fund_from_vault

    async def bridge_provider(self, identity):
        self.identities.append(identity)
        return MixerBridge(identity, self.mixer, fee_schedule=FeeSchedule(fee_rate=Decimal("0.0035")))

    async def vault_deposit(self, domain, lamports):
        self.vault_deposits.append((domain, lamports, len(self.mixer.deposits)))
        self.vaults.balance -= lamports
        return f"vault-deposit-{len(self.vault_deposits) - 1}"

    def orchestrator(self) -> ClaimOrchestrator:
        return ClaimOrchestrator(
            self.resolver,
            self.vaults,
            self.bridge_provider,
            signer=self.signer,
            vault_deposit=self.vault_deposit if self.fund_from_vault else None,
        )

    def claim(self, amount=AMOUNT, destination=None, options=None):
        return asyncio.run(self.orchestrator().execute_private_claim(DOMAIN, amount, destination, options))


class TestSuccessfulClaim:
    """Claims that run to completion."""

    def test_deposits_every_split_in_order(self):
        h = Harness()
        result = h.claim()

        assert result.is_complete
        assert result.split_count == 3
        assert result.completed_amount == AMOUNT
        assert [r.index for r in result.transactions] == [0, 1, 2]
        assert [r.amount for r in result.transactions] == result.execution_plan.splits
        assert [d.lamports for d in h.mixer.deposits] == result.execution_plan.splits
        assert [r.signature for r in result.transactions] == ["deposit-0", "deposit-1", "deposit-2"]
        assert all(r.withdrawal is None for r in result.transactions)

    def test_plan_is_reproducible(self):
        h = Harness()
        first = h.claim()
        second = h.claim()
        assert first.execution_plan == second.execution_plan
        assert h.identities[0] == h.identities[1]

    def test_plan_claim_matches_execution(self):
        h = Harness()
        plan, policy = asyncio.run(h.orchestrator().plan_claim(DOMAIN, AMOUNT))
        assert policy == h.vaults.policy
        assert h.mixer.deposits == []
        assert h.claim().execution_plan == plan

    def test_policy_overrides(self):
        h = Harness()
        result = h.claim(options=ClaimOptions(policy_overrides={"min_splits": 1, "max_splits": 1}))
        assert result.split_count == 1
        assert result.execution_plan.splits == [AMOUNT]

    def test_unknown_override(self):
        with pytest.raises(ValueError, match="Unknown policy fields"):
            Harness().claim(options=ClaimOptions(policy_overrides={"max_split": 1}))


class TestSettlement:
    """Deposits followed by withdrawals to recipients."""

    def test_multi_destination_rotates(self):
        destinations = [str(Keypair().pubkey()), str(Keypair().pubkey())]
        h = Harness(
            policy=_policy(destination_mode=DestinationMode.MULTI_DESTINATION, destinations=destinations)
        )
        result = h.claim(options=ClaimOptions(settle=True))

        assert [w.recipient for w in h.mixer.withdrawals] == [destinations[0], destinations[1], destinations[0]]
        for receipt in result.transactions:
            assert receipt.withdrawal is not None
            assert receipt.withdrawal.fee + receipt.withdrawal.amount_received == receipt.amount

    def test_random_destination_is_reproducible(self):
        destinations = [str(Keypair().pubkey()) for _ in range(3)]
        h = Harness(
            policy=_policy(
                min_splits=5,
                max_splits=5,
                destination_mode=DestinationMode.RANDOM_DESTINATION,
                destinations=destinations,
            )
        )
        h.claim(options=ClaimOptions(settle=True))
        first = [w.recipient for w in h.mixer.withdrawals]

        h.mixer = FakeMixer()
        h.claim(options=ClaimOptions(settle=True, start_index=2))
        resumed = [w.recipient for w in h.mixer.withdrawals]

        assert len(first) == 5
        assert set(first) <= set(destinations)
        assert resumed == first[2:]

    def test_explicit_destination_wins(self):
        destination = str(Keypair().pubkey())
        h = Harness()
        h.claim(destination=destination, options=ClaimOptions(settle=True))
        assert {w.recipient for w in h.mixer.withdrawals} == {destination}

    def test_single_owner_settles_to_owner(self):
        h = Harness()
        h.claim(options=ClaimOptions(settle=True))
        assert {w.recipient for w in h.mixer.withdrawals} == {h.signer.address}

    def test_failed_withdrawal_reports_pending_deposit(self):
        h = Harness(mixer=FakeMixer(fail_withdraw_at=1))
        with pytest.raises(PartialClaimFailure) as exc:
            h.claim(options=ClaimOptions(settle=True))

        failure = exc.value
        assert failure.failed_index == 1
        assert len(failure.result.transactions) == 1
        assert failure.pending is not None
        assert failure.pending.deposit.signature == "deposit-1"
        assert failure.pending.withdrawal is None


class TestPartialFailure:
    """Stopping mid-claim and resuming."""

    def test_stops_at_failed_split(self):
        h = Harness(mixer=FakeMixer(fail_deposit_at=2))
        with pytest.raises(PartialClaimFailure) as exc:
            h.claim()

        failure = exc.value
        assert failure.failed_index == 2
        assert [r.index for r in failure.result.transactions] == [0, 1]
        assert not failure.result.is_complete
        assert failure.pending is None
        assert isinstance(failure.__cause__, MixerError)

    def test_resume_from_failed_index(self):
        h = Harness(mixer=FakeMixer(fail_deposit_at=1))
        with pytest.raises(PartialClaimFailure) as exc:
            h.claim()
        first_plan = exc.value.result.execution_plan

        h.mixer = FakeMixer()
        resumed = h.claim(options=ClaimOptions(start_index=exc.value.failed_index))

        assert resumed.execution_plan == first_plan
        assert resumed.start_index == 1
        assert resumed.is_complete
        assert [r.index for r in resumed.transactions] == [1, 2]
        assert [d.lamports for d in h.mixer.deposits] == first_plan.splits[1:]

    def test_resume_checks_only_remaining_balance(self):
        h = Harness()
        plan, _ = asyncio.run(h.orchestrator().plan_claim(DOMAIN, AMOUNT))
        h.vaults.balance = sum(plan.splits[2:])

        with pytest.raises(InsufficientVaultBalance):
            h.claim()
        result = h.claim(options=ClaimOptions(start_index=2))
        assert len(result.transactions) == 1

    def test_start_index_out_of_range(self):
        with pytest.raises(ValueError, match="start_index"):
            Harness().claim(options=ClaimOptions(start_index=4))

    def test_start_index_at_end_is_noop(self):
        h = Harness()
        result = h.claim(options=ClaimOptions(start_index=3))
        assert result.transactions == []
        assert result.is_complete
        assert h.mixer.deposits == []


class TestCancellation:
    """Cooperative cancellation."""

    def test_before_start(self):
        h = Harness()
        options = ClaimOptions()
        options.cancel_token.cancel()
        with pytest.raises(ClaimCancelled):
            h.claim(options=options)
        assert h.mixer.deposits == []

    def test_after_first_deposit(self):
        options = ClaimOptions()
        mixer = FakeMixer(on_deposit=lambda request: options.cancel_token.cancel())
        h = Harness(policy=_policy(min_splits=2, max_splits=2), mixer=mixer)

        with pytest.raises(PartialClaimFailure) as exc:
            h.claim(options=options)
        assert isinstance(exc.value.__cause__, ClaimCancelled)
        assert len(exc.value.result.transactions) == 1
        assert len(mixer.deposits) == 1

    def test_wakes_pending_delay(self):
        h = Harness(policy=_policy(min_splits=2, max_splits=2, min_delay_seconds=3600, max_delay_seconds=3600))
        options = ClaimOptions()

        async def run():
            asyncio.get_running_loop().call_later(0.05, options.cancel_token.cancel)
            claim = h.orchestrator().execute_private_claim(DOMAIN, AMOUNT, options=options)
            await asyncio.wait_for(claim, timeout=5)

        with pytest.raises(PartialClaimFailure) as exc:
            asyncio.run(run())
        assert isinstance(exc.value.__cause__, ClaimCancelled)
        assert len(h.mixer.deposits) == 1

    def test_during_ownership_check(self):
        options = ClaimOptions()
        h = Harness()

        class CancellingResolver(FakeResolver):
            async def verify_ownership(self, domain, owner):
                options.cancel_token.cancel()
                return await super().verify_ownership(domain, owner)

        h.resolver = CancellingResolver(h.resolver.owners)
        with pytest.raises(ClaimCancelled):
            h.claim(options=options)
        assert h.vaults.calls == []
        assert h.identities == []
        assert h.mixer.deposits == []

    def test_during_balance_check(self):
        options = ClaimOptions()
        h = Harness(fund_from_vault=True)
        read_balance = h.vaults.get_vault_balance

        async def cancelling_balance(domain):
            options.cancel_token.cancel()
            return await read_balance(domain)

        h.vaults.get_vault_balance = cancelling_balance
        with pytest.raises(ClaimCancelled):
            h.claim(options=options)
        assert h.identities == []
        assert h.vault_deposits == []

    def test_before_first_withdrawal(self):
        options = ClaimOptions(settle=True)
        mixer = FakeMixer(on_deposit=lambda request: options.cancel_token.cancel())
        h = Harness(mixer=mixer)

        with pytest.raises(PartialClaimFailure) as exc:
            h.claim(options=options)
        assert exc.value.failed_index == 0
        assert exc.value.pending.deposit.signature == "deposit-0"
        assert mixer.withdrawals == []


class TestVaultFunding:
    """Each split leaves the vault before the pool registers it."""

    def test_vault_deposit_precedes_each_pool_deposit(self):
        h = Harness(fund_from_vault=True)
        result = h.claim()

        splits = result.execution_plan.splits
        assert h.vault_deposits == [(DOMAIN, split, i) for i, split in enumerate(splits)]
        assert [r.vault_deposit for r in result.transactions] == [
            "vault-deposit-0",
            "vault-deposit-1",
            "vault-deposit-2",
        ]
        assert h.vaults.balance == 10 * AMOUNT - AMOUNT

    def test_exact_balance_drains_vault(self):
        h = Harness(balance=AMOUNT, fund_from_vault=True)
        assert h.claim().is_complete
        assert h.vaults.balance == 0

    def test_pool_failure_reports_funds_left_vault(self):
        h = Harness(mixer=FakeMixer(fail_deposit_at=1), fund_from_vault=True)
        with pytest.raises(PartialClaimFailure) as exc:
            h.claim()

        failure = exc.value
        assert failure.failed_index == 1
        assert failure.pending is not None
        assert failure.pending.vault_deposit == "vault-deposit-1"
        assert failure.pending.deposit is None

    def test_vault_deposit_failure_moves_nothing(self):
        h = Harness(fund_from_vault=True)

        async def failing_deposit(domain, lamports):
            raise ForwarderError("Transaction failed", ERR_TRANSACTION_FAILED)

        h.vault_deposit = failing_deposit
        with pytest.raises(PartialClaimFailure) as exc:
            h.claim()
        assert exc.value.failed_index == 0
        assert exc.value.pending is None
        assert h.mixer.deposits == []


class TestConcurrentClaims:
    def test_claims_share_one_serialized_bridge(self):
        h = Harness()
        cache = MixerBridgeCache()

        async def shared_bridge(identity):
            h.identities.append(identity)
            return await cache.get_or_create(
                identity, lambda i: MixerBridge(i, h.mixer, fee_schedule=FeeSchedule())
            )

        orchestrator = ClaimOrchestrator(h.resolver, h.vaults, shared_bridge, signer=h.signer)

        async def run():
            claims = [orchestrator.execute_private_claim(DOMAIN, AMOUNT) for _ in range(2)]
            return await asyncio.gather(*claims)

        results = asyncio.run(run())
        assert all(result.is_complete for result in results)
        assert len(h.mixer.deposits) == 6
        assert h.mixer.max_in_flight == 1
        assert len(cache) == 1


class TestCancellationToken:
    def test_sleep_waits_at_least_duration(self):
        async def run():
            loop = asyncio.get_running_loop()
            start = loop.time()
            await CancellationToken().sleep(0.05)
            return loop.time() - start

        assert asyncio.run(run()) >= 0.05

    def test_zero_sleep(self):
        asyncio.run(CancellationToken().sleep(0))

    def test_cancelled_sleep_raises(self):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(ClaimCancelled):
            asyncio.run(token.sleep(10))


class TestPreconditions:
    """Checks that run before any funds move."""

    def test_requires_signer(self):
        h = Harness(signer=None)
        with pytest.raises(NotConfigured, match="signer"):
            h.claim()

    def test_rejects_bad_destination(self):
        with pytest.raises(ValueError, match="Invalid destination"):
            Harness().claim(destination="nowhere")

    def test_ownership_mismatch(self):
        h = Harness(owner=str(Keypair().pubkey()))
        with pytest.raises(OwnershipMismatch):
            h.claim()
        assert h.mixer.deposits == []

    def test_unregistered_domain(self):
        h = Harness()
        h.resolver.owners.clear()
        with pytest.raises(NameNotFound):
            h.claim()

    def test_missing_vault(self):
        h = Harness()
        h.vaults.policy = None
        with pytest.raises(NotConfigured, match="No vault"):
            h.claim()

    def test_disabled_policy(self):
        with pytest.raises(InvalidPolicy, match="disabled"):
            Harness(policy=_policy(enabled=False)).claim()

    def test_insufficient_vault_balance(self):
        h = Harness(balance=AMOUNT - 1)
        with pytest.raises(InsufficientVaultBalance) as exc:
            h.claim()
        assert exc.value.requested == AMOUNT
        assert h.identities == []
