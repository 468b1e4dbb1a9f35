"""
Keccak-256 helpers.

Ethereum uses the original Keccak padding, not the finalised SHA3-256,
so ``hashlib.sha3_256`` would produce different digests.  pycryptodome's
``Crypto.Hash.keccak`` provides the pre-standard variant.
"""

from __future__ import annotations

from Crypto.Hash import keccak

PERSONAL_MESSAGE_PREFIX = "\x19Ethereum Signed Message:\n"


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of *data*."""
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def personal_message_hash(message: str) -> bytes:
    """
    Digest signed by ``personal_sign`` / ``eth_sign`` wallets.

    The length field is the decimal UTF-8 byte length of *message*, not
    its character count.
    """
    payload = message.encode("utf-8")
    prefix = f"{PERSONAL_MESSAGE_PREFIX}{len(payload)}".encode("utf-8")
    return keccak256(prefix + payload)
