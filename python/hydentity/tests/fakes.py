"""In-memory stand-ins for RPC, name service, vault and mixer collaborators."""

import asyncio
import struct
from decimal import Decimal
from types import SimpleNamespace

from solana.rpc.core import RPCException
from solders.hash import Hash  # type: ignore
from solders.pubkey import Pubkey  # type: ignore
from solders.signature import Signature  # type: ignore

from hydentity.errors import MixerError, NameNotFound
from hydentity.mixer.schemas import (
    BalanceResponse,
    DepositResponse,
    FeeConfig,
    WithdrawResponse,
)
from hydentity.types import PrivacyPolicy, VaultBalance


class FakeRpc:
    """Records every call; answers with canned values."""

    def __init__(
        self, balances=None, accounts=None, rent=890_880, tx_error=None, send_error=None, confirm_error=None
    ):
        self.calls = []
        self.sent = []
        self.blockhash = Hash.new_unique()
        self.balances = dict(balances or {})
        self.accounts = dict(accounts or {})
        self.rent = rent
        self.tx_error = tx_error
        self.send_error = send_error
        self.confirm_error = confirm_error

    async def get_latest_blockhash(self, *args, **kwargs):
        self.calls.append("get_latest_blockhash")
        return SimpleNamespace(value=SimpleNamespace(blockhash=self.blockhash, last_valid_block_height=1))

    async def send_raw_transaction(self, txn, opts=None):
        self.calls.append("send_raw_transaction")
        if self.send_error is not None:
            raise RPCException(self.send_error)
        self.sent.append((txn, opts))
        return SimpleNamespace(value=Signature.new_unique())

    async def confirm_transaction(self, signature, commitment=None, *args, **kwargs):
        self.calls.append("confirm_transaction")
        if self.confirm_error is not None:
            raise self.confirm_error
        return SimpleNamespace(value=[SimpleNamespace(err=self.tx_error)])

    async def get_balance(self, pubkey, *args, **kwargs):
        self.calls.append("get_balance")
        return SimpleNamespace(value=self.balances.get(str(pubkey), 0))

    async def get_minimum_balance_for_rent_exemption(self, usize, *args, **kwargs):
        self.calls.append("get_minimum_balance_for_rent_exemption")
        return SimpleNamespace(value=self.rent)

    async def get_account_info(self, pubkey, *args, **kwargs):
        self.calls.append("get_account_info")
        data = self.accounts.get(str(pubkey))
        if data is None:
            return SimpleNamespace(value=None)
        return SimpleNamespace(value=SimpleNamespace(data=data))

    async def close(self):
        self.calls.append("close")


class FakeResolver:
    def __init__(self, owners=None):
        self.owners = dict(owners or {})
        self.calls = []

    async def resolve(self, domain):
        self.calls.append(("resolve", domain))
        name = domain.lower().removesuffix(".sol")
        if name not in self.owners:
            raise NameNotFound(f"Domain {name}.sol is not registered")
        return self.owners[name]

    async def verify_ownership(self, domain, owner):
        self.calls.append(("verify_ownership", domain))
        return await self.resolve(domain) == str(owner)


class FakeVaults:
    def __init__(self, balance, policy):
        self.balance = balance
        self.policy = policy
        self.calls = []

    async def get_vault_balance(self, domain):
        self.calls.append("get_vault_balance")
        return VaultBalance(sol=self.balance)

    async def get_policy(self, domain):
        self.calls.append("get_policy")
        return self.policy


class FakeMixer:
    """Pool ledger keyed by identity id.

    ``fail_deposit_at`` / ``fail_withdraw_at`` make the n-th call (0-based)
    raise ``MixerError``. ``on_deposit`` runs after each successful deposit.
    Withdrawals report fees from ``fee_rate`` and ``rent_fee`` unless
    ``reported_fee`` pins the fee the service claims to have charged.
    Deposits yield to the event loop once and record the peak number in
    flight.
    """

    def __init__(
        self,
        fee_rate="0.0035",
        rent_fee=6_000_000,
        fail_deposit_at=None,
        fail_withdraw_at=None,
        on_deposit=None,
        reported_fee=None,
    ):
        self.pool = {}
        self.deposits = []
        self.withdrawals = []
        self.fee_config_calls = 0
        self.fee_rate = fee_rate
        self.rent_fee = rent_fee
        self.fail_deposit_at = fail_deposit_at
        self.fail_withdraw_at = fail_withdraw_at
        self.on_deposit = on_deposit
        self.reported_fee = reported_fee
        self.in_flight = 0
        self.max_in_flight = 0
        self._deposit_calls = 0
        self._withdraw_calls = 0

    async def deposit(self, request):
        index = self._deposit_calls
        self._deposit_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if index == self.fail_deposit_at:
                raise MixerError("deposit rejected")
            self.pool[request.identity] = self.pool.get(request.identity, 0) + request.lamports
            self.deposits.append(request)
        finally:
            self.in_flight -= 1
        if self.on_deposit is not None:
            self.on_deposit(request)
        return DepositResponse(signature=f"deposit-{index}", amount=request.lamports)

    async def withdraw(self, request):
        index = self._withdraw_calls
        self._withdraw_calls += 1
        if index == self.fail_withdraw_at:
            raise MixerError("withdraw rejected")
        self.pool[request.identity] -= request.lamports
        self.withdrawals.append(request)
        fee = self.reported_fee
        if fee is None:
            fee = int(Decimal(request.lamports) * Decimal(self.fee_rate)) + self.rent_fee
        return WithdrawResponse(
            signature=f"withdraw-{index}", amount_received=request.lamports - fee, fee=fee
        )

    async def balance(self, request):
        return BalanceResponse(lamports=self.pool.get(request.identity, 0))

    async def fee_config(self):
        self.fee_config_calls += 1
        return FeeConfig(withdraw_fee_rate=self.fee_rate, withdraw_rent_fee=self.rent_fee)


def encode_policy_account(policy: PrivacyPolicy, vault: Pubkey, sns_name: Pubkey, updated_at=0, bump=255) -> bytes:
    """Borsh layout of the on-chain PrivacyPolicy account."""
    return b"".join(
        [
            bytes(8),
            bytes(vault),
            bytes(sns_name),
            struct.pack("<?BBII", policy.enabled, policy.min_splits, policy.max_splits,
                        policy.min_delay_seconds, policy.max_delay_seconds),
            struct.pack(
                "<BBB",
                policy.distribution.wire_index,
                policy.privacy_mode.wire_index,
                policy.destination_mode.wire_index,
            ),
            struct.pack("<I", len(policy.destinations)),
            b"".join(bytes(Pubkey.from_string(d)) for d in policy.destinations),
            struct.pack("<QqB", policy.policy_nonce, updated_at, bump),
            bytes(64),
        ]
    )


def encode_name_registry(owner: Pubkey, parent: Pubkey | None = None) -> bytes:
    """SNS registry header: parent, owner, class."""
    return bytes(parent or Pubkey.default()) + bytes(owner) + bytes(32)
