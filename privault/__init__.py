"""
privault/__init__.py

Privault: dual-domain tokens, a tokenized vault and escrows.

Balances live in a DISCLOSED and a CONFIDENTIAL domain. The vault
converts between pooled assets and shares with a virtual-liquidity
offset, rounds every conversion in the pool's favor and settles
cross-domain operations in two phases when the rate cannot be read
where the caller transacts.
"""

__version__ = "0.3.0"

from privault.auth.guard import AccessGuard, AuthIntent, AuthWitness
from privault.config import TokenConfig, VaultConfig, VaultLimits
from privault.core.conversion import ConversionEngine, mul_div
from privault.core.crypto import Ed25519KeyManager
from privault.core.exceptions import PrivaultError
from privault.core.models import (
    Commitment,
    CommitmentStatus,
    Domain,
    OperationKind,
    OperationReceipt,
    OverflowMode,
    PoolState,
)
from privault.escrow.escrow import ClawbackEscrow, Escrow
from privault.journal.journal import EventJournal
from privault.token.store import Token
from privault.vault.ledger import TokenizedVault

__all__ = [
    # Ledger components
    "Token",
    "TokenizedVault",
    "Escrow",
    "ClawbackEscrow",
    "EventJournal",
    # Authorization
    "AccessGuard",
    "AuthIntent",
    "AuthWitness",
    "Ed25519KeyManager",
    # Arithmetic
    "ConversionEngine",
    "mul_div",
    # Data model
    "Commitment",
    "CommitmentStatus",
    "Domain",
    "OperationKind",
    "OperationReceipt",
    "OverflowMode",
    "PoolState",
    # Configuration
    "TokenConfig",
    "VaultConfig",
    "VaultLimits",
    # Errors
    "PrivaultError",
]
