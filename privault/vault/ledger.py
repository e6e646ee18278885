"""
privault/vault/ledger.py

Tokenized vault: pooled assets in, shares out.

═══════════════════════════════════════════════════════════════════
OPERATION LIFECYCLE
═══════════════════════════════════════════════════════════════════

    Requested → Authorized → Computed → Mutated → Completed
                    │            │          │
                    └────────────┴──────────┴──→ Reverted

Every entry point runs inside one atomic unit. Checks run first; a
PrivaultError raised at any step restores the asset store, the share
store, the guard and the commitments table to their state at entry.

RATE LEGIBILITY
    The rate is only legible in the DISCLOSED domain. A counter-amount
    created or consumed in the CONFIDENTIAL domain is fixed by the
    caller up-front (standard pattern) or settled later (exact pattern):

        deposit  → confidential shares   caller passes shares ≤ computed
        withdraw ← confidential shares   caller passes shares ≥ computed
        issue    ← confidential assets   exact pattern only
        redeem   → confidential assets   exact pattern only

AUTHORIZATION
    One AuthIntent per operation, consumed by the vault's address and
    scoped to recipient, amounts and domains. Nonce 0 is the owner
    acting for itself.
═══════════════════════════════════════════════════════════════════
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from privault.auth.guard import AccessGuard, AuthIntent, AuthWitness
from privault.config import TokenConfig, VaultConfig
from privault.core.conversion import ConversionEngine
from privault.core.exceptions import (
    InsufficientAuthorizationError,
    LimitExceededError,
    PrivaultError,
    SlippageExceededError,
    ValidationError,
    ZeroAmountRejectedError,
)
from privault.core.models import (
    Commitment,
    Domain,
    OperationKind,
    OperationReceipt,
    PoolState,
    derive_address,
    new_address,
)
from privault.token.store import BalanceStore, Token, check_amount, check_domain
from privault.vault.settlement import SettlementCoordinator

logger = logging.getLogger(__name__)


class TokenizedVault:
    """
    Yield-bearing vault over one asset token.

    The share token lives at the vault's own address and only the vault
    mints or burns it. total_assets is whatever the asset store says the
    vault holds in the disclosed domain, so donations and yield raise
    the share price directly.

    Args:
        config:   VaultConfig (offset, genesis lock, limits, overflow mode)
        asset:    BalanceStore of the underlying asset
        guard:    AccessGuard shared with the asset token
        address:  vault address, random when omitted
        deployer: account constructing the vault; must be the
                  initial_depositor when the genesis lock is configured
        journal:  optional EventJournal receiving every completed operation
    """

    def __init__(
        self,
        config:   VaultConfig,
        asset:    BalanceStore,
        guard:    AccessGuard,
        address:  Optional[str] = None,
        deployer: Optional[str] = None,
        journal=None,
    ):
        self.config         = config
        self.asset          = asset
        self.guard          = guard
        self.address        = address or new_address()
        self.escrow_address = derive_address(self.address, "settlement")
        self.lock_address   = config.lock_address or self.address
        self.engine         = ConversionEngine(config.overflow_mode)
        self.journal        = journal
        self.locked_shares  = 0

        self.shares = Token(
            TokenConfig(
                name=     config.name,
                symbol=   config.symbol,
                decimals= config.decimals,
                minter=   self.address,
            ),
            guard,
            address=self.address,
        )
        self.settlement = SettlementCoordinator(self)

        if config.initial_deposit:
            self._lock_initial_deposit(deployer)

    # ─────────────────────────────────────────────────────────
    # Genesis
    # ─────────────────────────────────────────────────────────

    def _lock_initial_deposit(self, deployer: Optional[str]) -> None:
        depositor = self.config.initial_depositor
        if deployer != depositor:
            raise InsufficientAuthorizationError(
                "Only the initial depositor may fund the genesis lock",
                {"deployer": deployer, "initial_depositor": depositor},
            )

        amount = self.config.initial_deposit
        with self._atomic():
            locked = self.preview_deposit(amount)
            self.asset.move(depositor, self.address, amount, Domain.DISCLOSED, Domain.DISCLOSED)
            self.shares.mint(self.lock_address, locked, Domain.DISCLOSED)
            self.locked_shares = locked
            self._record("genesis_lock", {
                "depositor":    depositor,
                "lock_address": self.lock_address,
                "assets":       amount,
                "shares":       locked,
            })
        logger.info(
            "genesis lock vault=%s assets=%d locked_shares=%d",
            self.address, amount, locked,
        )

    # ─────────────────────────────────────────────────────────
    # Views
    # ─────────────────────────────────────────────────────────

    def total_assets(self) -> int:
        return self.asset.total_assets_of(self.address)

    def total_supply(self) -> int:
        return self.shares.total_supply()

    def pool_state(self) -> PoolState:
        """
        Authoritative pool numbers.

        Provisional movements of open commitments are taken back out:
        shares they minted are not yet owed, shares they burned are
        still outstanding and assets they paid are still pooled.
        """
        minted, burned, paid = self.settlement.outstanding()
        return PoolState(
            total_assets= self.total_assets() + paid,
            total_supply= self.total_supply() - minted + burned,
            offset=       self.config.offset,
        )

    def convert_to_shares(self, assets: int) -> int:
        pool = self.pool_state()
        return self.engine.shares_for(
            assets, pool.total_assets, pool.total_supply, pool.offset, round_up=False
        )

    def convert_to_assets(self, shares: int) -> int:
        pool = self.pool_state()
        return self.engine.assets_for(
            shares, pool.total_assets, pool.total_supply, pool.offset, round_up=False
        )

    def preview_deposit(self, assets: int) -> int:
        return self.engine.convert(OperationKind.DEPOSIT, assets, self.pool_state())

    def preview_issue(self, shares: int) -> int:
        return self.engine.convert(OperationKind.ISSUE, shares, self.pool_state())

    def preview_withdraw(self, assets: int) -> int:
        return self.engine.convert(OperationKind.WITHDRAW, assets, self.pool_state())

    def preview_redeem(self, shares: int) -> int:
        return self.engine.convert(OperationKind.REDEEM, shares, self.pool_state())

    def max_deposit(self, owner: str) -> int:
        balance = self.asset.balance_of(owner, Domain.DISCLOSED)
        return self._capped(OperationKind.DEPOSIT, balance)

    def max_issue(self, owner: str) -> int:
        balance = self.asset.balance_of(owner, Domain.DISCLOSED)
        return self._capped(OperationKind.ISSUE, self.convert_to_shares(balance))

    def max_withdraw(self, owner: str) -> int:
        if owner in (self.lock_address, self.escrow_address):
            return 0
        held = self.shares.balance_of(owner, Domain.DISCLOSED)
        return self._capped(OperationKind.WITHDRAW, self.convert_to_assets(held))

    def max_redeem(self, owner: str) -> int:
        if owner in (self.lock_address, self.escrow_address):
            return 0
        held = self.shares.balance_of(owner, Domain.DISCLOSED)
        return self._capped(OperationKind.REDEEM, held)

    def open_commitments(self):
        return self.settlement.open_commitments()

    def intent(
        self,
        action:    str,
        caller:    str,
        owner:     str,
        recipient: str,
        amount:    int,
        bound:     Optional[int] = None,
        source:    Domain = Domain.DISCLOSED,
        target:    Domain = Domain.DISCLOSED,
        nonce:     int = 0,
    ) -> AuthIntent:
        """
        The intent ``owner`` delegates so ``caller`` may run ``action``.

        bound is the operation's second amount: expected shares for
        deposit/withdraw, max_assets for issue, min_assets for redeem,
        and the slippage bound for the *_exact variants.
        """
        return AuthIntent(
            consumer= self.address,
            caller=   caller,
            action=   action,
            nonce=    nonce,
            args=     {"owner": owner, "recipient": recipient, "amount": amount,
                       "bound": bound, "source": source, "target": target},
        )

    # ─────────────────────────────────────────────────────────
    # Standard pattern
    # ─────────────────────────────────────────────────────────

    def deposit(
        self,
        caller:    str,
        sender:    str,
        recipient: str,
        assets:    int,
        *,
        source:    Domain = Domain.DISCLOSED,
        target:    Domain = Domain.DISCLOSED,
        shares:    Optional[int] = None,
        nonce:     int = 0,
        witness:   Optional[AuthWitness] = None,
    ) -> OperationReceipt:
        """
        Pull ``assets`` from sender and mint shares to recipient.

        Into the confidential domain ``shares`` is mandatory and is what
        gets minted; it may not exceed the computed amount. Elsewhere
        ``shares``, when given, is a minimum.
        """
        self._check_request(OperationKind.DEPOSIT, assets, "assets", source, target)
        self._check_optional("shares", shares)
        with self._atomic():
            self._authorize("deposit", caller, sender, recipient, assets, shares,
                            source, target, nonce, witness)
            computed = self.preview_deposit(assets)
            if target is Domain.CONFIDENTIAL and shares is None:
                raise ValidationError(
                    "A confidential deposit needs the expected share amount",
                    {"assets": assets},
                )
            if shares is not None and shares > computed:
                raise SlippageExceededError(
                    "Expected shares exceed the computed amount",
                    {"expected": shares, "computed": computed},
                )
            minted = shares if target is Domain.CONFIDENTIAL else computed

            self.asset.move(sender, self.address, assets, source, Domain.DISCLOSED)
            self.shares.mint(recipient, minted, target)
            return self._complete(OperationReceipt(
                OperationKind.DEPOSIT, caller, sender, recipient, source, target,
                assets=assets, shares=minted,
            ))

    def issue(
        self,
        caller:     str,
        sender:     str,
        recipient:  str,
        shares:     int,
        max_assets: int,
        *,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
    ) -> OperationReceipt:
        """Mint exactly ``shares`` to recipient for at most ``max_assets``."""
        self._check_request(OperationKind.ISSUE, shares, "shares", source, target)
        check_amount(max_assets, "max_assets")
        if source is Domain.CONFIDENTIAL:
            raise ValidationError(
                "Issuing against confidential assets requires issue_exact",
                {"shares": shares},
            )
        with self._atomic():
            self._authorize("issue", caller, sender, recipient, shares, max_assets,
                            source, target, nonce, witness)
            assets = self.preview_issue(shares)
            if assets > max_assets:
                raise SlippageExceededError(
                    "Issue costs more than max_assets",
                    {"assets": assets, "max_assets": max_assets},
                )

            self.asset.move(sender, self.address, assets, source, Domain.DISCLOSED)
            self.shares.mint(recipient, shares, target)
            return self._complete(OperationReceipt(
                OperationKind.ISSUE, caller, sender, recipient, source, target,
                assets=assets, shares=shares,
            ))

    def withdraw(
        self,
        caller:    str,
        owner:     str,
        recipient: str,
        assets:    int,
        *,
        source:    Domain = Domain.DISCLOSED,
        target:    Domain = Domain.DISCLOSED,
        shares:    Optional[int] = None,
        nonce:     int = 0,
        witness:   Optional[AuthWitness] = None,
    ) -> OperationReceipt:
        """
        Burn owner's shares and pay exactly ``assets`` to recipient.

        Out of the confidential domain ``shares`` is mandatory and is
        what gets burned; it may not fall below the computed amount.
        Elsewhere ``shares``, when given, is a maximum.
        """
        self._check_request(OperationKind.WITHDRAW, assets, "assets", source, target)
        self._check_optional("shares", shares)
        self._check_unlocked(owner)
        with self._atomic():
            self._authorize("withdraw", caller, owner, recipient, assets, shares,
                            source, target, nonce, witness)
            computed = self.preview_withdraw(assets)
            if source is Domain.CONFIDENTIAL and shares is None:
                raise ValidationError(
                    "A confidential withdrawal needs the share amount to burn",
                    {"assets": assets},
                )
            if shares is not None and shares < computed:
                raise SlippageExceededError(
                    "Offered shares fall short of the computed amount",
                    {"offered": shares, "computed": computed},
                )
            burned = shares if source is Domain.CONFIDENTIAL else computed

            self.shares.burn(owner, burned, source)
            self.asset.move(self.address, recipient, assets, Domain.DISCLOSED, target)
            return self._complete(OperationReceipt(
                OperationKind.WITHDRAW, caller, owner, recipient, source, target,
                assets=assets, shares=burned,
            ))

    def redeem(
        self,
        caller:     str,
        owner:      str,
        recipient:  str,
        shares:     int,
        *,
        min_assets: int = 0,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
    ) -> OperationReceipt:
        """Burn exactly ``shares`` and pay at least ``min_assets``."""
        self._check_request(OperationKind.REDEEM, shares, "shares", source, target)
        check_amount(min_assets, "min_assets")
        self._check_unlocked(owner)
        if target is Domain.CONFIDENTIAL:
            raise ValidationError(
                "Redeeming into confidential assets requires redeem_exact",
                {"shares": shares},
            )
        with self._atomic():
            self._authorize("redeem", caller, owner, recipient, shares, min_assets,
                            source, target, nonce, witness)
            assets = self.preview_redeem(shares)
            if assets < min_assets:
                raise SlippageExceededError(
                    "Redeem pays less than min_assets",
                    {"assets": assets, "min_assets": min_assets},
                )

            self.shares.burn(owner, shares, source)
            self.asset.move(self.address, recipient, assets, Domain.DISCLOSED, target)
            return self._complete(OperationReceipt(
                OperationKind.REDEEM, caller, owner, recipient, source, target,
                assets=assets, shares=shares,
            ))

    # ─────────────────────────────────────────────────────────
    # Exact pattern
    # ─────────────────────────────────────────────────────────

    def deposit_exact(
        self,
        caller:     str,
        sender:     str,
        recipient:  str,
        assets:     int,
        min_shares: int,
        *,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
        finalize:   bool = True,
    ) -> Commitment:
        self._check_request(OperationKind.DEPOSIT, assets, "assets", source, target)
        check_amount(min_shares, "min_shares")
        with self._atomic():
            self._authorize("deposit_exact", caller, sender, recipient, assets, min_shares,
                            source, target, nonce, witness)
            commitment = self.settlement.open_deposit(
                sender, recipient, assets, min_shares, source, target
            )
            return self._settle(commitment, caller, finalize)

    def issue_exact(
        self,
        caller:     str,
        sender:     str,
        recipient:  str,
        shares:     int,
        max_assets: int,
        *,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
        finalize:   bool = True,
    ) -> Commitment:
        self._check_request(OperationKind.ISSUE, shares, "shares", source, target)
        check_amount(max_assets, "max_assets")
        with self._atomic():
            self._authorize("issue_exact", caller, sender, recipient, shares, max_assets,
                            source, target, nonce, witness)
            commitment = self.settlement.open_issue(
                sender, recipient, shares, max_assets, source, target
            )
            return self._settle(commitment, caller, finalize)

    def withdraw_exact(
        self,
        caller:     str,
        owner:      str,
        recipient:  str,
        assets:     int,
        max_shares: int,
        *,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
        finalize:   bool = True,
    ) -> Commitment:
        self._check_request(OperationKind.WITHDRAW, assets, "assets", source, target)
        check_amount(max_shares, "max_shares")
        self._check_unlocked(owner)
        with self._atomic():
            self._authorize("withdraw_exact", caller, owner, recipient, assets, max_shares,
                            source, target, nonce, witness)
            commitment = self.settlement.open_withdraw(
                owner, recipient, assets, max_shares, source, target
            )
            return self._settle(commitment, caller, finalize)

    def redeem_exact(
        self,
        caller:     str,
        owner:      str,
        recipient:  str,
        shares:     int,
        min_assets: int,
        *,
        source:     Domain = Domain.DISCLOSED,
        target:     Domain = Domain.DISCLOSED,
        nonce:      int = 0,
        witness:    Optional[AuthWitness] = None,
        finalize:   bool = True,
    ) -> Commitment:
        self._check_request(OperationKind.REDEEM, shares, "shares", source, target)
        check_amount(min_assets, "min_assets")
        self._check_unlocked(owner)
        with self._atomic():
            self._authorize("redeem_exact", caller, owner, recipient, shares, min_assets,
                            source, target, nonce, witness)
            commitment = self.settlement.open_redeem(
                owner, recipient, shares, min_assets, source, target
            )
            return self._settle(commitment, caller, finalize)

    def finalize(self, commitment_id: str) -> Commitment:
        """
        Phase 2 of an exact operation. Anyone may call it; the outcome
        depends only on the commitment and the authoritative rate.
        """
        with self._atomic():
            commitment = self.settlement.finalize(commitment_id)
            self._record("commitment_finalized", commitment.to_dict())
            return commitment

    # ─────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        saved_assets     = self.asset.snapshot()
        saved_shares     = self.shares.snapshot()
        saved_guard      = self.guard.snapshot()
        saved_settlement = self.settlement.snapshot()
        try:
            yield
        except PrivaultError as exc:
            self.asset.restore(saved_assets)
            self.shares.restore(saved_shares)
            self.guard.restore(saved_guard)
            self.settlement.restore(saved_settlement)
            logger.info("vault %s reverted: %s", self.address[:10], exc)
            raise

    def _authorize(
        self,
        action:    str,
        caller:    str,
        owner:     str,
        recipient: str,
        amount:    int,
        bound:     Optional[int],
        source:    Domain,
        target:    Domain,
        nonce:     int,
        witness:   Optional[AuthWitness],
    ) -> None:
        intent = self.intent(action, caller, owner, recipient, amount, bound, source, target, nonce)
        self.guard.require(caller, owner, intent, nonce, witness)

    def _check_request(
        self,
        kind:   OperationKind,
        amount: int,
        name:   str,
        source: Domain,
        target: Domain,
    ) -> None:
        check_amount(amount, name)
        check_domain(source)
        check_domain(target)
        if amount == 0:
            raise ZeroAmountRejectedError(f"{kind.value} of zero {name}", {name: 0})
        cap = self._cap(kind)
        if cap is not None and amount > cap:
            raise LimitExceededError(
                f"{kind.value} exceeds the configured limit",
                {name: amount, "limit": cap},
            )

    @staticmethod
    def _check_optional(name: str, value: Optional[int]) -> None:
        if value is not None:
            check_amount(value, name)

    def _check_unlocked(self, owner: str) -> None:
        if owner == self.lock_address:
            raise InsufficientAuthorizationError(
                "Locked shares cannot leave the vault", {"owner": owner}
            )
        if owner == self.escrow_address:
            raise InsufficientAuthorizationError(
                "Settlement escrow is only released by finalize", {"owner": owner}
            )

    def _cap(self, kind: OperationKind) -> Optional[int]:
        return getattr(self.config.limits, f"max_{kind.value}")

    def _capped(self, kind: OperationKind, value: int) -> int:
        cap = self._cap(kind)
        return value if cap is None else min(value, cap)

    def _settle(self, commitment: Commitment, caller: str, finalize: bool) -> Commitment:
        opened = dict(commitment.to_dict(), caller=caller)
        if not finalize:
            self._record("commitment_opened", opened)
            logger.warning(
                "commitment %s left open, finalize it to settle %s",
                commitment.commitment_id, commitment.kind.value,
            )
            return commitment
        commitment = self.settlement.finalize(commitment.commitment_id)
        self._record_all([
            ("commitment_opened",    opened),
            ("commitment_finalized", commitment.to_dict()),
        ])
        return commitment

    def _complete(self, receipt: OperationReceipt) -> OperationReceipt:
        self._record(receipt.kind.value, receipt.to_dict())
        logger.info(
            "%s completed owner=%s recipient=%s assets=%d shares=%d",
            receipt.kind.value, receipt.owner, receipt.recipient,
            receipt.assets, receipt.shares,
        )
        return receipt

    def _record(self, event: str, data: dict) -> None:
        if self.journal is not None:
            self.journal.append(event, data)

    def _record_all(self, events: List[Tuple[str, dict]]) -> None:
        if self.journal is not None:
            self.journal.append_many(events)

    def __repr__(self) -> str:
        return (
            f"TokenizedVault({self.shares.symbol!r}, address={self.address[:10]}..., "
            f"assets={self.total_assets()}, supply={self.total_supply()})"
        )
