"""
Access guard for delegated operations.

ALIGNED TO: privault/core/canonical.py (intent digests)

PROTOCOL INVARIANT: a delegation is scoped to ONE intent and used ONCE.

    nonce == 0  → self-authorization, caller must be the owner
    nonce != 0  → the owner must have delegated this exact intent, either
                  by a disclosed approval (guard.approve) or by a signed
                  AuthWitness handed to the caller

Validation order (fastest to slowest, clearest to most opaque):
    Scope → Self → Replay → Approval registry → Witness signature

The guard only renders verdicts and records nullifiers; it never looks
at balances.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple

from privault.core.canonical import canonical_hash, canonicalize
from privault.core.crypto import Ed25519KeyManager
from privault.core.exceptions import (
    AuthorizationReplayError,
    InsufficientAuthorizationError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Intent
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AuthIntent:
    """
    One call an owner may delegate.

    consumer is the address of the contract doing the check (a token or
    a vault); args carries every argument that changes what the call
    does, recipient and domains included.
    """

    consumer: str
    caller:   str
    action:   str
    nonce:    int
    args:     Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consumer": self.consumer,
            "caller":   self.caller,
            "action":   self.action,
            "nonce":    self.nonce,
            "args":     dict(self.args),
        }

    def digest(self) -> str:
        return canonical_hash(self.to_dict())


# ─────────────────────────────────────────────────────────────
# Witness
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AuthWitness:
    """An owner's Ed25519 signature over an intent digest."""

    owner:       str
    intent_hash: str
    signature:   str

    @staticmethod
    def signing_bytes(owner: str, intent_hash: str) -> bytes:
        return canonicalize({"owner": owner, "intent_hash": intent_hash})

    @classmethod
    def create(
        cls,
        owner:       str,
        intent:      AuthIntent,
        key_manager: Ed25519KeyManager,
    ) -> "AuthWitness":
        intent_hash = intent.digest()
        return cls(
            owner=       owner,
            intent_hash= intent_hash,
            signature=   key_manager.sign(cls.signing_bytes(owner, intent_hash)),
        )

    def verify(self, public_key_hex: str) -> bool:
        return Ed25519KeyManager.verify_detached(
            self.signing_bytes(self.owner, self.intent_hash),
            self.signature,
            public_key_hex,
        )


# ─────────────────────────────────────────────────────────────
# Verdict
# ─────────────────────────────────────────────────────────────

@dataclass
class AuthVerdict:
    """
    Result of AccessGuard.authorize().

    Returned, not raised, so callers can preview a delegation.
    bool(verdict) is True iff authorized.
    """
    authorized: bool
    reason:     str
    replayed:   bool = False

    def __bool__(self) -> bool:
        return self.authorized


# ─────────────────────────────────────────────────────────────
# AccessGuard
# ─────────────────────────────────────────────────────────────

class AccessGuard:
    """
    Shared authorization registry for every token and vault in a world.

    State:
        _public_keys  owner → Ed25519 public key hex (for witnesses)
        _approvals    (owner, intent digest) pairs approved in the open
        _nullifiers   spent delegations, one per (owner, intent digest)
    """

    def __init__(self):
        self._public_keys: Dict[str, str] = {}
        self._approvals:   Set[Tuple[str, str]] = set()
        self._nullifiers:  Set[str] = set()

    # ── Registration ──────────────────────────────────────────

    def register_account(self, caller: str, owner: str, public_key_hex: str) -> None:
        """Bind the key that signs ``owner``'s witnesses. Only the owner may."""
        self._require_owner(caller, owner, "register_account")
        if not isinstance(public_key_hex, str) or len(public_key_hex) != 64:
            raise ValidationError(
                "public_key_hex must be a 64-char hex string", {"owner": owner}
            )
        self._public_keys[owner] = public_key_hex

    def approve(self, caller: str, owner: str, intent: AuthIntent) -> str:
        """
        Disclosed delegation: ``owner`` approves ``intent``.

        The owner sends this itself; anyone else is refused with
        InsufficientAuthorizationError. Returns the intent digest.
        """
        self._require_owner(caller, owner, "approve")
        digest = intent.digest()
        self._approvals.add((owner, digest))
        logger.debug("approval recorded owner=%s action=%s", owner, intent.action)
        return digest

    def revoke(self, caller: str, owner: str, intent: AuthIntent) -> None:
        """Withdraw a disclosed approval before it is used."""
        self._require_owner(caller, owner, "revoke")
        self._approvals.discard((owner, intent.digest()))

    def nullifier(self, owner: str, intent: AuthIntent) -> str:
        return canonical_hash({"owner": owner, "intent_hash": intent.digest()})

    def is_consumed(self, owner: str, intent: AuthIntent) -> bool:
        return self.nullifier(owner, intent) in self._nullifiers

    # ── Verdicts ──────────────────────────────────────────────

    def authorize(
        self,
        caller:  str,
        owner:   str,
        intent:  AuthIntent,
        nonce:   int,
        witness: Optional[AuthWitness] = None,
    ) -> AuthVerdict:
        """Render a verdict without consuming anything."""
        if intent.caller != caller or intent.nonce != nonce:
            return AuthVerdict(False, "Intent is not scoped to this caller and nonce")

        if nonce == 0:
            if caller == owner:
                return AuthVerdict(True, "Self-authorized")
            return AuthVerdict(False, "Nonce 0 is only valid for the owner itself")

        digest = intent.digest()
        if self.nullifier(owner, intent) in self._nullifiers:
            return AuthVerdict(False, "Delegation already consumed", replayed=True)

        if (owner, digest) in self._approvals:
            return AuthVerdict(True, "Disclosed approval")

        if witness is None:
            return AuthVerdict(False, "No delegation for this intent")
        if witness.owner != owner or witness.intent_hash != digest:
            return AuthVerdict(False, "Witness is scoped to a different intent")
        public_key_hex = self._public_keys.get(owner)
        if public_key_hex is None:
            return AuthVerdict(False, "Owner has no registered key")
        if not witness.verify(public_key_hex):
            return AuthVerdict(False, "Invalid witness signature")
        return AuthVerdict(True, "Signed witness")

    def require(
        self,
        caller:  str,
        owner:   str,
        intent:  AuthIntent,
        nonce:   int,
        witness: Optional[AuthWitness] = None,
    ) -> None:
        """
        Authorize and consume.

        Raises:
            AuthorizationReplayError:       the delegation was already used
            InsufficientAuthorizationError: any other denial
        """
        verdict = self.authorize(caller, owner, intent, nonce, witness)
        details = {"caller": caller, "owner": owner, "action": intent.action, "nonce": nonce}
        if verdict.replayed:
            raise AuthorizationReplayError(verdict.reason, details)
        if not verdict:
            raise InsufficientAuthorizationError(verdict.reason, details)

        if nonce != 0:
            digest = intent.digest()
            self._approvals.discard((owner, digest))
            self._nullifiers.add(self.nullifier(owner, intent))
            logger.debug("delegation consumed owner=%s action=%s", owner, intent.action)

    @staticmethod
    def _require_owner(caller: str, owner: str, action: str) -> None:
        if caller != owner:
            raise InsufficientAuthorizationError(
                f"Only the owner may {action}",
                {"caller": caller, "owner": owner},
            )

    # ── Transactions ──────────────────────────────────────────

    def snapshot(self) -> Tuple[Set[Tuple[str, str]], Set[str]]:
        return set(self._approvals), set(self._nullifiers)

    def restore(self, snapshot: Tuple[Set[Tuple[str, str]], Set[str]]) -> None:
        approvals, nullifiers = snapshot
        self._approvals  = set(approvals)
        self._nullifiers = set(nullifiers)
