"""
Dual-domain balance store.

BalanceStore is the primitive interface ledger components (vaults,
escrows) mutate through. Token implements it and adds the guarded user
entry points: transfer, burn_from and minter-only mint_to.

ALIGNED TO: privault/core/models.py CONTRACT 1 (uint128) and CONTRACT 2
(one balance per owner per domain).
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from privault.auth.guard import AccessGuard, AuthIntent, AuthWitness
from privault.config import TokenConfig
from privault.core.exceptions import (
    ArithmeticOverflowError,
    InsufficientAuthorizationError,
    InsufficientBalanceError,
    ValidationError,
)
from privault.core.models import U128_MAX, Domain, new_address

logger = logging.getLogger(__name__)

BalanceSnapshot = Tuple[Dict[Domain, Dict[str, int]], int]


def check_amount(amount: int, name: str = "amount") -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"{name} must be an int", {name: amount})
    if not 0 <= amount <= U128_MAX:
        raise ValidationError(f"{name} out of uint128 range", {name: amount})


def check_domain(domain: Domain) -> None:
    if not isinstance(domain, Domain):
        raise ValidationError("domain must be a Domain", {"domain": domain})


class BalanceStore(ABC):
    """
    Primitive balance operations. No authorization at this layer; the
    component calling a primitive has already authorized the operation.
    """

    address: str

    @abstractmethod
    def balance_of(self, owner: str, domain: Domain) -> int:
        ...

    @abstractmethod
    def total_supply(self) -> int:
        ...

    @abstractmethod
    def move(
        self,
        sender:    str,
        recipient: str,
        amount:    int,
        source:    Domain,
        target:    Domain,
    ) -> None:
        """Debit sender in source, credit recipient in target."""

    @abstractmethod
    def mint(self, recipient: str, amount: int, domain: Domain) -> None:
        ...

    @abstractmethod
    def burn(self, owner: str, amount: int, domain: Domain) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> BalanceSnapshot:
        ...

    @abstractmethod
    def restore(self, snapshot: BalanceSnapshot) -> None:
        ...

    def total_assets_of(self, pool: str) -> int:
        """Assets a pool holds, i.e. its disclosed balance."""
        return self.balance_of(pool, Domain.DISCLOSED)


class Token(BalanceStore):
    """
    Fungible token with disclosed and confidential balances.

    Confidential balances are plain integers here; the note and
    commitment cryptography that hides them lives outside this package.
    """

    def __init__(
        self,
        config:  TokenConfig,
        guard:   AccessGuard,
        address: Optional[str] = None,
    ):
        self.config  = config
        self.guard   = guard
        self.address = address or new_address()
        self._balances: Dict[Domain, Dict[str, int]] = {d: {} for d in Domain}
        self._supply = 0

        if config.initial_supply:
            self.mint(config.initial_holder, config.initial_supply, Domain.DISCLOSED)

    # ── Metadata ──────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def symbol(self) -> str:
        return self.config.symbol

    @property
    def decimals(self) -> int:
        return self.config.decimals

    @property
    def minter(self) -> Optional[str]:
        return self.config.minter

    # ── Views ─────────────────────────────────────────────────

    def balance_of(self, owner: str, domain: Domain = Domain.DISCLOSED) -> int:
        check_domain(domain)
        return self._balances[domain].get(owner, 0)

    def balances(self, owner: str) -> Dict[Domain, int]:
        return {d: self.balance_of(owner, d) for d in Domain}

    def total_supply(self) -> int:
        return self._supply

    def sum_of_balances(self) -> int:
        return sum(sum(book.values()) for book in self._balances.values())

    # ── Primitives ────────────────────────────────────────────

    def move(self, sender, recipient, amount, source, target) -> None:
        check_amount(amount)
        check_domain(target)
        self._require_balance(sender, amount, source)
        if amount == 0:
            return
        self._debit(sender, amount, source)
        self._credit(recipient, amount, target)

    def mint(self, recipient, amount, domain) -> None:
        check_amount(amount)
        check_domain(domain)
        if self._supply + amount > U128_MAX:
            raise ArithmeticOverflowError(
                "Total supply would exceed uint128",
                {"token": self.symbol, "supply": self._supply, "amount": amount},
            )
        if amount == 0:
            return
        self._credit(recipient, amount, domain)
        self._supply += amount

    def burn(self, owner, amount, domain) -> None:
        check_amount(amount)
        self._require_balance(owner, amount, domain)
        if amount == 0:
            return
        self._debit(owner, amount, domain)
        self._supply -= amount

    def snapshot(self) -> BalanceSnapshot:
        return {d: dict(book) for d, book in self._balances.items()}, self._supply

    def restore(self, snapshot: BalanceSnapshot) -> None:
        balances, supply = snapshot
        self._balances = {d: dict(book) for d, book in balances.items()}
        self._supply   = supply

    # ── Guarded entry points ──────────────────────────────────

    def transfer(
        self,
        caller:    str,
        sender:    str,
        recipient: str,
        amount:    int,
        source:    Domain = Domain.DISCLOSED,
        target:    Domain = Domain.DISCLOSED,
        nonce:     int = 0,
        witness:   Optional[AuthWitness] = None,
    ) -> None:
        """
        Move ``amount`` from sender/source to recipient/target.

        Covers all four routes (disclosed↔confidential). Zero is allowed.
        """
        check_amount(amount)
        check_domain(target)
        self._require_balance(sender, amount, source)
        intent = self.transfer_intent(caller, sender, recipient, amount, source, target, nonce)
        self.guard.require(caller, sender, intent, nonce, witness)
        self.move(sender, recipient, amount, source, target)
        logger.debug(
            "transfer %s %s/%s -> %s/%s amount=%d",
            self.symbol, sender, source.value, recipient, target.value, amount,
        )

    def transfer_intent(
        self,
        caller:    str,
        sender:    str,
        recipient: str,
        amount:    int,
        source:    Domain = Domain.DISCLOSED,
        target:    Domain = Domain.DISCLOSED,
        nonce:     int = 0,
    ) -> AuthIntent:
        """The intent an owner delegates to let ``caller`` transfer for it."""
        return AuthIntent(
            consumer= self.address,
            caller=   caller,
            action=   "transfer",
            nonce=    nonce,
            args=     {"from": sender, "to": recipient, "amount": amount,
                       "source": source, "target": target},
        )

    def burn_from(
        self,
        caller:  str,
        owner:   str,
        amount:  int,
        domain:  Domain = Domain.DISCLOSED,
        nonce:   int = 0,
        witness: Optional[AuthWitness] = None,
    ) -> None:
        check_amount(amount)
        self._require_balance(owner, amount, domain)
        intent = self.burn_intent(caller, owner, amount, domain, nonce)
        self.guard.require(caller, owner, intent, nonce, witness)
        self.burn(owner, amount, domain)

    def burn_intent(
        self,
        caller: str,
        owner:  str,
        amount: int,
        domain: Domain = Domain.DISCLOSED,
        nonce:  int = 0,
    ) -> AuthIntent:
        return AuthIntent(
            consumer= self.address,
            caller=   caller,
            action=   "burn",
            nonce=    nonce,
            args=     {"from": owner, "amount": amount, "domain": domain},
        )

    def mint_to(
        self,
        caller:    str,
        recipient: str,
        amount:    int,
        domain:    Domain = Domain.DISCLOSED,
    ) -> None:
        """Minter-only issuance."""
        if self.minter is None or caller != self.minter:
            raise InsufficientAuthorizationError(
                "Caller is not the minter", {"token": self.symbol, "caller": caller}
            )
        self.mint(recipient, amount, domain)

    # ── Internals ─────────────────────────────────────────────

    def _require_balance(self, owner: str, amount: int, domain: Domain) -> None:
        available = self.balance_of(owner, domain)
        if available < amount:
            raise InsufficientBalanceError(
                "Balance too low",
                {"token": self.symbol, "owner": owner, "domain": domain.value,
                 "balance": available, "amount": amount},
            )

    def _credit(self, owner: str, amount: int, domain: Domain) -> None:
        book = self._balances[domain]
        book[owner] = book.get(owner, 0) + amount

    def _debit(self, owner: str, amount: int, domain: Domain) -> None:
        book = self._balances[domain]
        remaining = book[owner] - amount
        if remaining:
            book[owner] = remaining
        else:
            del book[owner]

    def __repr__(self) -> str:
        return f"Token({self.symbol!r}, address={self.address[:10]}..., supply={self._supply})"
