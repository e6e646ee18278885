"""
privault/core/crypto.py

Ed25519 keys for account owners and journal signers.

An owner signs the canonical bytes of an AuthIntent to produce an
AuthWitness, and the AccessGuard checks it against the public key the
owner registered. The guard and the journal verifier never see private
keys, so verification is the static verify_detached().

Wire forms:
    public key   64-char lowercase hex (raw 32 bytes)
    signature    base64url of the raw 64 bytes, '=' padding stripped
"""

import base64

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

SIGNATURE_BYTES = 64


def _encode_signature(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_signature(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class Ed25519KeyManager:
    """Holds one private key; hands out its public hex and detached signatures."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        raw_public = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._public_key_hex = raw_public.hex()

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        return cls(Ed25519PrivateKey.generate())

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    def sign(self, data: bytes) -> str:
        """Detached signature over ``data`` in wire form (86 chars)."""
        return _encode_signature(self._private_key.sign(data))

    @staticmethod
    def verify_detached(data: bytes, signature: str, public_key_hex: str) -> bool:
        """
        True iff ``signature`` is a valid signature over ``data`` by the
        key ``public_key_hex``.

        Malformed keys or signatures count as invalid; this never raises.
        """
        if not isinstance(public_key_hex, str) or not isinstance(signature, str):
            return False
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
            raw = _decode_signature(signature)
        except ValueError:
            return False
        if len(raw) != SIGNATURE_BYTES:
            return False
        try:
            public_key.verify(raw, data)
        except InvalidSignature:
            return False
        return True

    def __repr__(self) -> str:
        return f"Ed25519KeyManager({self._public_key_hex[:16]}...)"
