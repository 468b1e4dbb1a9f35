"""
Wallet signature verification for Wabasen.

A user proves possession of a wallet by signing the password with
``personal_sign``.  This module recovers the signer's secp256k1 public
key from that signature, derives the Ethereum-style address from it
and compares the result with the address the user claims.

Signature wire format (65 bytes, hex with ``0x`` prefix):
    r (32) || s (32) || v (1)       v = 27 + recovery_id
"""

from __future__ import annotations

import binascii

from ecdsa import SECP256k1, VerifyingKey
from ecdsa.ellipticcurve import INFINITY, PointJacobi
from ecdsa.numbertheory import SquareRootError, inverse_mod, square_root_mod_prime

from wabasen_core.errors import (
    InvalidRecoveryIdError,
    InvalidSignatureFormatError,
    PublicKeyRecoveryError,
    SignatureMismatchError,
)
from wabasen_core.hashing import keccak256, personal_message_hash

SIGNATURE_LEN = 65
RECOVERY_OFFSET = 27
# libsecp256k1 accepts recovery ids 0..3; 2 and 3 mean x = r + n.
VALID_RECOVERY_IDS = (0, 1, 2, 3)


def normalize_address(address: str) -> str:
    """Lowercase form used for every address comparison."""
    return address.strip().lower()


def decode_signature(signature: str) -> tuple[bytes, int]:
    """
    Split a ``0x``-prefixed hex signature into (r || s, recovery_id).

    Raises InvalidSignatureFormatError / InvalidRecoveryIdError.
    """
    if not signature.startswith("0x"):
        raise InvalidSignatureFormatError(f"Invalid signature format ({signature})")
    try:
        raw = binascii.unhexlify(signature[2:])
    except (binascii.Error, ValueError):
        raise InvalidSignatureFormatError(
            f"Invalid signature format ({signature})"
        ) from None
    if len(raw) != SIGNATURE_LEN:
        raise InvalidSignatureFormatError(
            f"Invalid signature length: expected {SIGNATURE_LEN} bytes, "
            f"got {len(raw)} ({signature})"
        )

    recovery_id = raw[64] - RECOVERY_OFFSET
    if recovery_id not in VALID_RECOVERY_IDS:
        raise InvalidRecoveryIdError(
            f"Invalid recovery id {recovery_id} (v={raw[64]}) in signature ({signature})"
        )
    return raw[:64], recovery_id


def recover_public_key(digest: bytes, compact_sig: bytes, recovery_id: int) -> bytes:
    """
    Recover the uncompressed (65-byte, ``0x04``-prefixed) public key that
    produced *compact_sig* over *digest*.

    Implements SEC 1 v2, section 4.1.6 with an explicit recovery id:
    bit 0 selects the parity of R.y, bit 1 selects x = r + n.
    """
    if len(compact_sig) != 64:
        raise PublicKeyRecoveryError(f"Invalid compact signature length ({len(compact_sig)})")
    if recovery_id not in VALID_RECOVERY_IDS:
        raise PublicKeyRecoveryError(f"Invalid recovery_id format ({recovery_id})")

    curve = SECP256k1.curve
    generator = SECP256k1.generator
    n = SECP256k1.order
    p = curve.p()

    r = int.from_bytes(compact_sig[:32], "big")
    s = int.from_bytes(compact_sig[32:], "big")
    if not (0 < r < n and 0 < s < n):
        raise PublicKeyRecoveryError(f"Invalid signature format ({compact_sig.hex()})")

    x = r + (recovery_id >> 1) * n
    if x >= p:
        raise PublicKeyRecoveryError(f"Invalid signature format ({compact_sig.hex()})")

    alpha = (pow(x, 3, p) + curve.a() * x + curve.b()) % p
    try:
        beta = square_root_mod_prime(alpha, p)
    except SquareRootError:
        raise PublicKeyRecoveryError(
            f"Failed to retrieve ecdsa public key ({compact_sig.hex()})"
        ) from None
    y = beta if beta % 2 == (recovery_id & 1) else p - beta

    big_r = PointJacobi(curve, x, y, 1, n)
    e = int.from_bytes(digest, "big") % n
    q = inverse_mod(r, n) * (s * big_r + ((-e) % n) * generator)
    if q == INFINITY:
        raise PublicKeyRecoveryError(
            f"Failed to retrieve ecdsa public key ({compact_sig.hex()})"
        )

    vk = VerifyingKey.from_public_point(q, curve=SECP256k1)
    return vk.to_string("uncompressed")


def public_key_to_address(public_key: bytes) -> str:
    """
    Ethereum address of a secp256k1 public key: last 20 bytes of the
    Keccak-256 of the 64-byte X || Y coordinates.
    """
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"Expected 64-byte raw public key, got {len(public_key)} bytes")
    return "0x" + keccak256(public_key)[12:].hex()


def recover_address(message: str, signature: str) -> str:
    """Address of the wallet that signed *message* with ``personal_sign``."""
    compact_sig, recovery_id = decode_signature(signature)
    digest = personal_message_hash(message)
    return public_key_to_address(recover_public_key(digest, compact_sig, recovery_id))


def verify_password_signature(address: str, password: str, signature: str) -> None:
    """
    Authentication gate: raise unless *signature* is a personal-message
    signature of *password* by the wallet at *address*.
    """
    claimed = normalize_address(address)
    recovered = recover_address(password, signature)
    if recovered != claimed:
        raise SignatureMismatchError(
            f"Invalid signature ({signature}) of password for wallet ({claimed})",
            claimed=claimed,
            recovered=recovered,
        )
