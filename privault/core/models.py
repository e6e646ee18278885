"""
privault/core/models.py

Privault Data Model

═══════════════════════════════════════════════════════════════════
ACCOUNTING CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Amounts
    every balance, supply and converted amount is an unsigned 128-bit int
    range = 0 .. U128_MAX, enforced by the balance store and mul_div

CONTRACT 2 — Domains
    a balance lives in exactly one Domain (DISCLOSED | CONFIDENTIAL)
    the exchange rate is only legible in DISCLOSED

CONTRACT 3 — Pool
    total_supply == sum of share balances over both domains, always
    total_assets == the pool's own DISCLOSED asset balance

CONTRACT 4 — Commitments
    OPEN      → created by phase 1, never counted by the rate
    FINALIZED → set exactly once by phase 2, never reopened
═══════════════════════════════════════════════════════════════════
"""

import hashlib
import secrets
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional

from privault.core.time import ledger_timestamp


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

U128_MAX = (1 << 128) - 1

# 10**38 < 2**128 < 10**39
MAX_OFFSET = 38

ZERO_ADDRESS = "0x" + "0" * 64


def new_address() -> str:
    """Random 32-byte address, 0x-prefixed hex."""
    return "0x" + secrets.token_hex(32)


def derive_address(base: str, label: str) -> str:
    """Deterministic sub-account of ``base`` (e.g. a vault's settlement escrow)."""
    return "0x" + hashlib.sha256(f"{base}/{label}".encode("utf-8")).hexdigest()


# ─────────────────────────────────────────────────────────────
# Enumerations
# ─────────────────────────────────────────────────────────────

class Domain(Enum):
    """Balance visibility domain."""
    DISCLOSED    = "disclosed"
    CONFIDENTIAL = "confidential"


class OperationKind(Enum):
    """The four vault operations."""
    DEPOSIT  = "deposit"
    ISSUE    = "issue"
    WITHDRAW = "withdraw"
    REDEEM   = "redeem"


class CommitmentStatus(Enum):
    OPEN      = "open"
    FINALIZED = "finalized"


class Rounding(Enum):
    """Rounding direction for a single conversion."""
    DOWN = "down"
    UP   = "up"


class OverflowMode(Enum):
    """
    How mul_div treats results outside uint128.

        WIDE     exact product, result must fit uint128 (default)
        CHECKED  the intermediate product must fit uint128
        WRAPPING intermediate reduced mod 2**128, silently corrupting the result
    """
    WIDE     = "wide"
    CHECKED  = "checked"
    WRAPPING = "wrapping"


# ─────────────────────────────────────────────────────────────
# PoolState
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PoolState:
    """Snapshot of the numbers the conversion engine reads."""

    total_assets: int
    total_supply: int
    offset:       int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# ─────────────────────────────────────────────────────────────
# Commitment
# ─────────────────────────────────────────────────────────────

@dataclass
class Commitment:
    """
    A pending cross-domain settlement opened by phase 1.

    input_amount is the amount the caller fixed (assets for DEPOSIT and
    WITHDRAW, shares for ISSUE and REDEEM). bound_amount is the slippage
    bound phase 2 checks the exact counter-amount against.

    The provisional_* fields record what phase 1 already moved, so the
    rate can be computed on the authoritative pool state while the
    commitment is open.
    """

    commitment_id:     str
    kind:              OperationKind
    initiator:         str
    counterparty_hint: str
    source:            Domain
    target:            Domain
    input_amount:      int
    bound_amount:      int
    shares_minted:     int = 0
    shares_burned:     int = 0
    assets_paid:       int = 0
    assets_escrowed:   int = 0
    status:            CommitmentStatus = CommitmentStatus.OPEN
    settled_amount:    Optional[int] = None
    created_at:        str = field(default_factory=ledger_timestamp)
    finalized_at:      Optional[str] = None

    @classmethod
    def create(
        cls,
        kind:              OperationKind,
        initiator:         str,
        counterparty_hint: str,
        source:            Domain,
        target:            Domain,
        input_amount:      int,
        bound_amount:      int,
        **provisional:     int,
    ) -> "Commitment":
        return cls(
            commitment_id=     f"cmt-{uuid.uuid4()}",
            kind=              kind,
            initiator=         initiator,
            counterparty_hint= counterparty_hint,
            source=            source,
            target=            target,
            input_amount=      input_amount,
            bound_amount=      bound_amount,
            **provisional,
        )

    @property
    def is_open(self) -> bool:
        return self.status is CommitmentStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"]   = self.kind.value
        data["source"] = self.source.value
        data["target"] = self.target.value
        data["status"] = self.status.value
        return data


# ─────────────────────────────────────────────────────────────
# OperationReceipt
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OperationReceipt:
    """What a completed vault operation moved."""

    kind:          OperationKind
    caller:        str
    owner:         str
    recipient:     str
    source:        Domain
    target:        Domain
    assets:        int
    shares:        int
    commitment_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind":          self.kind.value,
            "caller":        self.caller,
            "owner":         self.owner,
            "recipient":     self.recipient,
            "source":        self.source.value,
            "target":        self.target.value,
            "assets":        self.assets,
            "shares":        self.shares,
            "commitment_id": self.commitment_id,
        }
