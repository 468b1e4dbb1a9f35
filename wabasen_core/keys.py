"""
Symmetric key material derived from the authenticated credentials.

Both values are plain Keccak-256 digests: the key depends only on the
signature string, the stream nonce only on the password.  Encrypting
different content with the same signature and password therefore reuses
the (key, nonce) pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from wabasen_core.hashing import keccak256

KEY_LEN = 32
STREAM_NONCE_LEN = 19   # 24-byte XChaCha nonce minus 4-byte counter and 1-byte flag


@dataclass(frozen=True)
class KeyMaterial:
    """Key / nonce pair for one encrypt or decrypt call."""
    key: bytes = field(repr=False)
    nonce: bytes = field(repr=False)


def derive_key(signature: str) -> bytes:
    """32-byte XChaCha20-Poly1305 key from the signature string as supplied."""
    return keccak256(signature.encode("utf-8"))


def derive_nonce(password: str) -> bytes:
    return keccak256(password.encode("utf-8"))[:STREAM_NONCE_LEN]


def derive_key_material(signature: str, password: str) -> KeyMaterial:
    return KeyMaterial(key=derive_key(signature), nonce=derive_nonce(password))
