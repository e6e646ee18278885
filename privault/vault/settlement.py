"""
Two-phase settlement for operations whose counter-amount cannot be
computed where the caller transacts.

Phase 1 (open_*) never reads the rate. It debits the amount the caller
fixed, parks the provisional credit at the settlement escrow and records
a Commitment. Phase 2 (finalize) reads the rate, computes the exact
counter-amount, checks it against the bound, releases the parked credit
to the recipient and settles the difference.

    kind      phase 1 (credit parked)                 phase 2 (exact E, bound B)
    DEPOSIT   assets → escrow, mint B shares → escrow E ≥ B, escrow → pool, release B, mint E − B
    ISSUE     B assets → escrow, mint shares → escrow E ≤ B, E escrow → pool, refund B − E, release shares
    WITHDRAW  burn B shares, assets pool → escrow     E ≤ B, release assets, re-mint B − E shares
    REDEEM    burn shares, B assets pool → escrow     E ≥ B, release B, pay E − B assets

While a commitment is open its provisional movements are excluded from
the rate (see outstanding()). Whatever sits at the settlement escrow is
outside the pool's balance and cannot be spent by any owner until the
commitment is finalized.

Commitments are never timed out or cancelled. A failed finalize leaves
the commitment OPEN and every balance untouched.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Tuple

from privault.core.exceptions import (
    CommitmentAlreadyFinalizedError,
    SlippageExceededError,
    UnknownCommitmentError,
)
from privault.core.models import (
    Commitment,
    CommitmentStatus,
    Domain,
    OperationKind,
    PoolState,
)
from privault.core.time import ledger_timestamp

if TYPE_CHECKING:
    from privault.vault.ledger import TokenizedVault

logger = logging.getLogger(__name__)


class SettlementCoordinator:
    """Keyed table of commitments for one vault."""

    def __init__(self, vault: "TokenizedVault"):
        self.vault = vault
        self._commitments: Dict[str, Commitment] = {}

    # ── Lookup ────────────────────────────────────────────────

    def get(self, commitment_id: str) -> Commitment:
        commitment = self._commitments.get(commitment_id)
        if commitment is None:
            raise UnknownCommitmentError(
                "Unknown commitment", {"commitment_id": commitment_id}
            )
        return commitment

    def open_commitments(self) -> List[Commitment]:
        return [c for c in self._commitments.values() if c.is_open]

    def all_commitments(self) -> List[Commitment]:
        return list(self._commitments.values())

    def outstanding(self) -> Tuple[int, int, int]:
        """
        Provisional movements of open commitments:
        (shares minted, shares burned, assets paid out).
        """
        minted = burned = paid = 0
        for commitment in self._commitments.values():
            if not commitment.is_open:
                continue
            minted += commitment.shares_minted
            burned += commitment.shares_burned
            paid   += commitment.assets_paid
        return minted, burned, paid

    # ── Phase 1 ───────────────────────────────────────────────

    def open_deposit(
        self,
        initiator:  str,
        recipient:  str,
        assets:     int,
        min_shares: int,
        source:     Domain,
        target:     Domain,
    ) -> Commitment:
        vault = self.vault
        vault.asset.move(initiator, vault.escrow_address, assets, source, Domain.DISCLOSED)
        vault.shares.mint(vault.escrow_address, min_shares, target)
        return self._record(Commitment.create(
            OperationKind.DEPOSIT, initiator, recipient, source, target,
            input_amount=    assets,
            bound_amount=    min_shares,
            shares_minted=   min_shares,
            assets_escrowed= assets,
        ))

    def open_issue(
        self,
        initiator:  str,
        recipient:  str,
        shares:     int,
        max_assets: int,
        source:     Domain,
        target:     Domain,
    ) -> Commitment:
        vault = self.vault
        vault.asset.move(initiator, vault.escrow_address, max_assets, source, Domain.DISCLOSED)
        vault.shares.mint(vault.escrow_address, shares, target)
        return self._record(Commitment.create(
            OperationKind.ISSUE, initiator, recipient, source, target,
            input_amount=    shares,
            bound_amount=    max_assets,
            shares_minted=   shares,
            assets_escrowed= max_assets,
        ))

    def open_withdraw(
        self,
        owner:      str,
        recipient:  str,
        assets:     int,
        max_shares: int,
        source:     Domain,
        target:     Domain,
    ) -> Commitment:
        vault = self.vault
        vault.shares.burn(owner, max_shares, source)
        vault.asset.move(vault.address, vault.escrow_address, assets,
                         Domain.DISCLOSED, Domain.DISCLOSED)
        return self._record(Commitment.create(
            OperationKind.WITHDRAW, owner, recipient, source, target,
            input_amount=  assets,
            bound_amount=  max_shares,
            shares_burned= max_shares,
            assets_paid=   assets,
        ))

    def open_redeem(
        self,
        owner:      str,
        recipient:  str,
        shares:     int,
        min_assets: int,
        source:     Domain,
        target:     Domain,
    ) -> Commitment:
        vault = self.vault
        vault.shares.burn(owner, shares, source)
        vault.asset.move(vault.address, vault.escrow_address, min_assets,
                         Domain.DISCLOSED, Domain.DISCLOSED)
        return self._record(Commitment.create(
            OperationKind.REDEEM, owner, recipient, source, target,
            input_amount=  shares,
            bound_amount=  min_assets,
            shares_burned= shares,
            assets_paid=   min_assets,
        ))

    # ── Phase 2 ───────────────────────────────────────────────

    def finalize(self, commitment_id: str) -> Commitment:
        """
        Resolve an open commitment at the authoritative rate.

        Raises:
            UnknownCommitmentError:          no such id
            CommitmentAlreadyFinalizedError: finalized before
            SlippageExceededError:           exact amount violates the bound
        """
        commitment = self.get(commitment_id)
        if not commitment.is_open:
            raise CommitmentAlreadyFinalizedError(
                "Commitment already finalized", {"commitment_id": commitment_id}
            )

        vault = self.vault
        pool  = vault.pool_state()
        exact = vault.engine.convert(commitment.kind, commitment.input_amount, pool)
        self._check_bound(commitment, exact, pool)

        kind      = commitment.kind
        escrow    = vault.escrow_address
        recipient = commitment.counterparty_hint
        target    = commitment.target
        if kind is OperationKind.DEPOSIT:
            vault.asset.move(escrow, vault.address,
                             commitment.assets_escrowed, Domain.DISCLOSED, Domain.DISCLOSED)
            vault.shares.move(escrow, recipient, commitment.bound_amount, target, target)
            vault.shares.mint(recipient, exact - commitment.bound_amount, target)
            commitment.shares_minted = exact
        elif kind is OperationKind.ISSUE:
            vault.asset.move(escrow, vault.address, exact, Domain.DISCLOSED, Domain.DISCLOSED)
            vault.asset.move(escrow, commitment.initiator,
                             commitment.bound_amount - exact, Domain.DISCLOSED, commitment.source)
            vault.shares.move(escrow, recipient, commitment.input_amount, target, target)
        elif kind is OperationKind.WITHDRAW:
            vault.asset.move(escrow, recipient,
                             commitment.input_amount, Domain.DISCLOSED, target)
            vault.shares.mint(commitment.initiator,
                              commitment.bound_amount - exact, commitment.source)
            commitment.shares_burned = exact
        else:
            vault.asset.move(escrow, recipient,
                             commitment.bound_amount, Domain.DISCLOSED, target)
            vault.asset.move(vault.address, recipient,
                             exact - commitment.bound_amount, Domain.DISCLOSED, target)
            commitment.assets_paid = exact

        commitment.settled_amount = exact
        commitment.status         = CommitmentStatus.FINALIZED
        commitment.finalized_at   = ledger_timestamp()
        logger.info(
            "commitment finalized id=%s kind=%s exact=%d bound=%d",
            commitment_id, kind.value, exact, commitment.bound_amount,
        )
        return commitment

    # ── Transactions ──────────────────────────────────────────

    def snapshot(self) -> Dict[str, dict]:
        return {cid: vars(c).copy() for cid, c in self._commitments.items()}

    def restore(self, snapshot: Dict[str, dict]) -> None:
        """Roll back in place; handles returned to callers stay live."""
        for cid in list(self._commitments):
            if cid not in snapshot:
                del self._commitments[cid]
        for cid, fields in snapshot.items():
            commitment = self._commitments.get(cid)
            if commitment is None:
                self._commitments[cid] = Commitment(**fields)
            else:
                vars(commitment).update(fields)

    # ── Internals ─────────────────────────────────────────────

    def _record(self, commitment: Commitment) -> Commitment:
        self._commitments[commitment.commitment_id] = commitment
        logger.info(
            "commitment opened id=%s kind=%s input=%d bound=%d",
            commitment.commitment_id, commitment.kind.value,
            commitment.input_amount, commitment.bound_amount,
        )
        return commitment

    @staticmethod
    def _check_bound(commitment: Commitment, exact: int, pool: PoolState) -> None:
        # DEPOSIT and REDEEM bounds are minimums, ISSUE and WITHDRAW maximums
        if commitment.kind in (OperationKind.DEPOSIT, OperationKind.REDEEM):
            violated = exact < commitment.bound_amount
        else:
            violated = exact > commitment.bound_amount
        if violated:
            raise SlippageExceededError(
                f"Exact {commitment.kind.value} amount violates the bound",
                {"commitment_id": commitment.commitment_id, "exact": exact,
                 "bound": commitment.bound_amount,
                 "total_assets": pool.total_assets, "total_supply": pool.total_supply},
            )
