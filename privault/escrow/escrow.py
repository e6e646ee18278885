"""
Two-contract escrow pattern.

    Escrow          holds tokens at its own address; only its owner (a
                    logic contract) may move them out
    ClawbackEscrow  logic contract owning escrows; binds each escrow to
                    (creator, recipient): the recipient may claim, the
                    creator may claw back, and either spends the record

Funding an escrow is an ordinary token transfer to escrow.address.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from privault.core.exceptions import InsufficientAuthorizationError, ValidationError
from privault.core.models import Domain, new_address
from privault.token.store import Token

logger = logging.getLogger(__name__)


class Escrow:
    """Token holder that answers only to ``owner``."""

    def __init__(self, owner: str, address: Optional[str] = None):
        self.owner   = owner
        self.address = address or new_address()

    def balance_of(self, token: Token, domain: Domain = Domain.CONFIDENTIAL) -> int:
        return token.balance_of(self.address, domain)

    def withdraw(
        self,
        caller:    str,
        token:     Token,
        amount:    int,
        recipient: str,
        domain:    Domain = Domain.CONFIDENTIAL,
    ) -> None:
        """Pay ``amount`` of ``token`` to recipient, staying in ``domain``."""
        if caller != self.owner:
            raise InsufficientAuthorizationError(
                "Only the escrow owner may withdraw",
                {"escrow": self.address, "caller": caller},
            )
        token.transfer(self.address, self.address, recipient, amount, domain, domain)
        logger.info(
            "escrow withdraw escrow=%s token=%s amount=%d", self.address[:10], token.symbol, amount
        )


@dataclass
class ClawbackRecord:
    escrow:    Escrow
    creator:   str
    recipient: str
    spent:     bool = False


class ClawbackEscrow:
    """
    Logic contract for claimable, reclaimable escrows.

    Each record is single-use: after a claim or a clawback the escrow is
    no longer reachable through this contract.
    """

    def __init__(self, address: Optional[str] = None):
        self.address = address or new_address()
        self._records: Dict[str, ClawbackRecord] = {}

    def new_escrow(self) -> Escrow:
        """An escrow owned by this contract, ready to be funded."""
        return Escrow(owner=self.address)

    def create(self, caller: str, escrow: Escrow, recipient: str) -> ClawbackRecord:
        if escrow.owner != self.address:
            raise ValidationError(
                "Escrow is not owned by this contract",
                {"escrow": escrow.address, "owner": escrow.owner},
            )
        if escrow.address in self._records:
            raise ValidationError("Escrow already bound", {"escrow": escrow.address})
        record = ClawbackRecord(escrow=escrow, creator=caller, recipient=recipient)
        self._records[escrow.address] = record
        return record

    def claim(
        self,
        caller:  str,
        escrow:  str,
        token:   Token,
        amount:  int,
        domain:  Domain = Domain.CONFIDENTIAL,
    ) -> None:
        record = self._live_record(escrow)
        if caller != record.recipient:
            raise InsufficientAuthorizationError(
                "Only the recipient may claim", {"escrow": escrow, "caller": caller}
            )
        self._release(record, token, amount, record.recipient, domain)

    def clawback(
        self,
        caller:  str,
        escrow:  str,
        token:   Token,
        amount:  int,
        domain:  Domain = Domain.CONFIDENTIAL,
    ) -> None:
        record = self._live_record(escrow)
        if caller != record.creator:
            raise InsufficientAuthorizationError(
                "Only the creator may claw back", {"escrow": escrow, "caller": caller}
            )
        self._release(record, token, amount, record.creator, domain)

    def _live_record(self, escrow: str) -> ClawbackRecord:
        record = self._records.get(escrow)
        if record is None:
            raise ValidationError("Unknown escrow", {"escrow": escrow})
        if record.spent:
            raise InsufficientAuthorizationError("Escrow record already spent", {"escrow": escrow})
        return record

    def _release(self, record, token, amount, recipient, domain) -> None:
        record.escrow.withdraw(self.address, token, amount, recipient, domain)
        record.spent = True
