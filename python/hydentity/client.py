"""High-level Hydentity client.

Ties together name resolution, vault instructions, the transaction mode
pipeline and the privacy pool bridge for one session. Vault-changing
calls resolve the domain and check ownership before building anything.
"""

import logging
from typing import Any, Generic, TypeVar

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.instruction import Instruction  # type: ignore
from solders.pubkey import Pubkey  # type: ignore

from .accounts import NameVaultAccount, PrivacyPolicyAccount
from .claim import ClaimOptions, ClaimOrchestrator, VaultDeposit
from .config import HydentityConfig
from .constants import NAME_VAULT_ACCOUNT_LEN
from .errors import NetworkFailure, NotConfigured, OwnershipMismatch
from .forwarders.base import TransactionForwarder
from .forwarders.connection import ConnectionForwarder
from .instructions.delegate import (
    build_add_delegate_instruction,
    build_revoke_delegate_instruction,
)
from .instructions.pda import VaultAddresses, get_delegate_session_pda
from .instructions.policy import PolicyUpdate, build_update_policy_instruction
from .instructions.vault import (
    build_deposit_to_umbra_instruction,
    build_initialize_vault_instruction,
    build_withdraw_direct_instruction,
)
from .mixer.bridge import MixerBridge, MixerIdentity
from .mixer.cache import MixerBridgeCache
from .mixer.http import MixerHttpClient, MixerTransport
from .pipeline import TransactionDraft, TransactionModePipeline
from .signers import Signer, derive_master_seed
from .sns import NameResolver, SnsResolver, get_domain_key
from .types import (
    ClaimResult,
    PrivacyPolicy,
    ProcessedTransaction,
    TransactionMode,
    TransactionOptions,
    VaultBalance,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HydentityClient(Generic[T]):
    """Session-scoped entry point to vaults and private claims.

    Collaborators not passed in are built from ``config``; the client
    closes only what it built.

    Args:
        config: Endpoints and transport settings.
        signer: Wallet signing vault transactions and deriving claim seeds.
        rpc: Solana RPC client.
        mixer: Privacy pool transport.
        resolver: Name resolver, ``SnsResolver`` over ``rpc`` by default.
        forwarder: Custom forwarder for ``TransactionMode.FORWARDER``.
    """

    def __init__(
        self,
        config: HydentityConfig | None = None,
        signer: Signer | None = None,
        rpc: AsyncClient | None = None,
        mixer: MixerTransport | None = None,
        resolver: NameResolver | None = None,
        forwarder: TransactionForwarder[T] | None = None,
    ):
        self.config = config or HydentityConfig()
        self._owns_rpc = rpc is None
        self._rpc = rpc or AsyncClient(
            self.config.rpc_url,
            Commitment(self.config.commitment),
            timeout=self.config.http_timeout,
        )
        self._owns_mixer = mixer is None
        self._mixer = mixer or MixerHttpClient(self.config.mixer_url, self.config.http_timeout)
        self._resolver = resolver or SnsResolver(self._rpc)
        self._pipeline: TransactionModePipeline[T] = TransactionModePipeline(
            self._rpc,
            signer=signer,
            forwarder=forwarder,
            connection_forwarder=ConnectionForwarder(
                self._rpc,
                skip_preflight=self.config.skip_preflight,
                commitment=self.config.commitment,
            ),
        )
        self._bridges = MixerBridgeCache()

    async def __aenter__(self) -> "HydentityClient[T]":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._bridges.clear()
        if self._owns_mixer and isinstance(self._mixer, MixerHttpClient):
            await self._mixer.aclose()
        if self._owns_rpc:
            await self._rpc.close()

    @property
    def rpc(self) -> AsyncClient:
        return self._rpc

    @property
    def pipeline(self) -> TransactionModePipeline[T]:
        return self._pipeline

    @property
    def signer(self) -> Signer | None:
        return self._pipeline.signer

    def set_signer(self, signer: Signer | None) -> None:
        self._pipeline.set_signer(signer)

    def set_transaction_forwarder(self, forwarder: TransactionForwarder[T] | None) -> None:
        self._pipeline.set_forwarder(forwarder)

    def default_transaction_options(self) -> TransactionOptions:
        return TransactionOptions(
            skip_preflight=self.config.skip_preflight,
            commitment=self.config.commitment,
        )

    # Vault management

    async def initialize_vault(
        self, domain: str, options: TransactionOptions | None = None
    ) -> ProcessedTransaction[Any]:
        """Create the vault, vault authority and default policy for ``domain``."""
        owner, name_account = await self._owned_name(domain, options)
        ix = build_initialize_vault_instruction(owner, name_account)
        logger.info("Initializing vault for %s", domain)
        return await self._process(owner, ix, options)

    async def update_policy(
        self,
        domain: str,
        update: PolicyUpdate | PrivacyPolicy,
        options: TransactionOptions | None = None,
        as_delegate: bool = False,
    ) -> ProcessedTransaction[Any]:
        """Change the privacy policy of ``domain``'s vault.

        With ``as_delegate`` the signer acts through its delegate session
        instead of as the domain owner.
        """
        if isinstance(update, PrivacyPolicy):
            update.validate()
            update = PolicyUpdate.from_policy(update)
        if update.is_empty():
            raise ValueError("Policy update has no fields set")

        if as_delegate:
            self._pipeline.resolve(options or self.default_transaction_options())
            authority = self._require_signer().address
            await self._resolver.resolve(domain)
            name_account = get_domain_key(domain)
            session, _ = get_delegate_session_pda(name_account, authority)
        else:
            authority, name_account = await self._owned_name(domain, options)
            session = None

        ix = build_update_policy_instruction(authority, name_account, update, delegate_session=session)
        return await self._process(authority, ix, options)

    async def add_delegate(
        self,
        domain: str,
        delegate: str,
        expires_at: int,
        permissions: int,
        options: TransactionOptions | None = None,
    ) -> ProcessedTransaction[Any]:
        owner, name_account = await self._owned_name(domain, options)
        ix = build_add_delegate_instruction(owner, name_account, delegate, expires_at, permissions)
        logger.info("Adding delegate %s to %s until %s", delegate, domain, expires_at)
        return await self._process(owner, ix, options)

    async def revoke_delegate(
        self, domain: str, delegate: str, options: TransactionOptions | None = None
    ) -> ProcessedTransaction[Any]:
        owner, name_account = await self._owned_name(domain, options)
        ix = build_revoke_delegate_instruction(owner, name_account, delegate)
        logger.info("Revoking delegate %s from %s", delegate, domain)
        return await self._process(owner, ix, options)

    async def withdraw_direct(
        self,
        domain: str,
        destination: str,
        amount: int,
        options: TransactionOptions | None = None,
    ) -> ProcessedTransaction[Any]:
        """Withdraw SOL straight to ``destination``, bypassing privacy routing.

        This links the vault to the destination on-chain.
        """
        owner, name_account = await self._owned_name(domain, options)
        ix = build_withdraw_direct_instruction(owner, name_account, destination, amount)
        logger.warning("Direct withdrawal of %s lamports from %s to %s", amount, domain, destination)
        return await self._process(owner, ix, options)

    def get_vault_address(self, domain: str) -> VaultAddresses:
        return VaultAddresses.for_name(get_domain_key(domain))

    async def get_vault_balance(self, domain: str) -> VaultBalance:
        """Claimable SOL: the vault account's lamports above its rent reserve.

        ``deposit_to_umbra`` draws private claims from this account.
        """
        vault = self.get_vault_address(domain).vault
        try:
            balance = await self._rpc.get_balance(vault)
            rent = await self._rpc.get_minimum_balance_for_rent_exemption(NAME_VAULT_ACCOUNT_LEN)
        except (RPCException, httpx.HTTPError) as e:
            raise NetworkFailure(f"Failed to fetch vault balance for {domain}: {e}") from e
        return VaultBalance(sol=max(0, balance.value - rent.value))

    async def get_vault_account(self, domain: str) -> NameVaultAccount | None:
        data = await self._account_data(self.get_vault_address(domain).vault)
        return NameVaultAccount.decode(data) if data is not None else None

    async def get_policy_account(self, domain: str) -> PrivacyPolicyAccount | None:
        data = await self._account_data(self.get_vault_address(domain).policy)
        return PrivacyPolicyAccount.decode(data) if data is not None else None

    async def get_policy(self, domain: str) -> PrivacyPolicy | None:
        account = await self.get_policy_account(domain)
        return account.policy if account is not None else None

    # Private claims

    async def get_mixer_bridge(self, identity: MixerIdentity | None = None) -> MixerBridge:
        """Cached bridge for ``identity``, derived from the signer when omitted."""
        if identity is None:
            signer = self._require_signer()
            identity = MixerIdentity.derive(signer.address, await derive_master_seed(signer))
        return await self._bridges.get_or_create(identity, self._new_bridge)

    def evict_mixer_bridge(self, owner: str) -> bool:
        return self._bridges.evict(owner)

    async def execute_private_claim(
        self,
        domain: str,
        amount: int,
        destination: str | None = None,
        options: ClaimOptions | None = None,
    ) -> ClaimResult:
        """Claim ``amount`` lamports from ``domain`` through the privacy pool.

        Each split is moved out of the vault by a ``deposit_to_umbra``
        transaction sent through the pipeline, then registered with the
        pool. See ``ClaimOrchestrator.execute_private_claim``.

        Raises:
            NotConfigured: If the pool program or account is not configured.
            ValueError: If the transaction mode would not submit the
                vault deposits.
        """
        options = options or ClaimOptions()
        tx_options = options.transaction_options or self.default_transaction_options()
        if tx_options.mode not in (TransactionMode.CONNECTION, TransactionMode.FORWARDER):
            raise ValueError(f"Private claims must submit vault deposits, not {tx_options.mode.value}")
        if self.config.umbra_program is None or self.config.umbra_pool is None:
            raise NotConfigured("Private claims need umbra_program and umbra_pool configured")
        self._pipeline.resolve(tx_options)

        async def vault_deposit(domain: str, lamports: int) -> ProcessedTransaction[Any]:
            return await self._deposit_from_vault(domain, lamports, tx_options)

        orchestrator = self._orchestrator(vault_deposit)
        return await orchestrator.execute_private_claim(domain, amount, destination, options)

    async def preview_private_claim(
        self, domain: str, amount: int, options: ClaimOptions | None = None
    ) -> dict[str, Any]:
        plan, _ = await self._orchestrator().plan_claim(domain, amount, options)
        return {"plan": plan, "digest": plan.digest(), **plan.preview()}

    # SNS helpers

    async def verify_sns_ownership(self, domain: str, owner: str | None = None) -> bool:
        check = owner if owner is not None else self._require_signer().address
        return await self._resolver.verify_ownership(domain, check)

    async def resolve_domain(self, domain: str) -> str:
        return await self._resolver.resolve(domain)

    def _orchestrator(self, vault_deposit: VaultDeposit | None = None) -> ClaimOrchestrator:
        return ClaimOrchestrator(
            resolver=self._resolver,
            vaults=self,
            bridge_provider=self.get_mixer_bridge,
            signer=self.signer,
            vault_deposit=vault_deposit,
        )

    async def _deposit_from_vault(
        self, domain: str, lamports: int, options: TransactionOptions
    ) -> ProcessedTransaction[Any]:
        owner = self._require_signer().address
        ix = build_deposit_to_umbra_instruction(
            owner,
            get_domain_key(domain),
            self.config.umbra_program,
            self.config.umbra_pool,
            lamports,
        )
        logger.info("Moving %s lamports from %s vault into the pool", lamports, domain)
        return await self._process(owner, ix, options)

    def _new_bridge(self, identity: MixerIdentity) -> MixerBridge:
        return MixerBridge(identity, self._mixer, fee_schedule=self.config.fee_schedule)

    def _require_signer(self) -> Signer:
        signer = self._pipeline.signer
        if signer is None:
            raise NotConfigured("No signer configured. Call set_signer() first.")
        return signer

    async def _owned_name(
        self, domain: str, options: TransactionOptions | None
    ) -> tuple[str, Pubkey]:
        # Fail on missing capabilities before any network round trip.
        self._pipeline.resolve(options or self.default_transaction_options())
        owner = self._require_signer().address
        if not await self._resolver.verify_ownership(domain, owner):
            raise OwnershipMismatch(f"{owner} does not own {domain}")
        return owner, get_domain_key(domain)

    async def _account_data(self, address: Pubkey) -> bytes | None:
        try:
            resp = await self._rpc.get_account_info(address)
        except (RPCException, httpx.HTTPError) as e:
            raise NetworkFailure(f"Failed to fetch account {address}: {e}") from e
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def _process(
        self, payer: str, ix: Instruction, options: TransactionOptions | None
    ) -> ProcessedTransaction[Any]:
        draft = TransactionDraft(payer=payer, instructions=[ix])
        return await self._pipeline.process_transaction(draft, options or self.default_transaction_options())
