"""
Shared pytest fixtures for the Wabasen test suite.
"""

import hashlib

import pytest
from ecdsa import SECP256k1, SigningKey
from ecdsa.numbertheory import inverse_mod
from ecdsa.util import sigdecode_string, sigencode_string

from wabasen_core.hashing import personal_message_hash

# Well-known test key (web3 documentation); never holds funds.
TEST_PRIVATE_KEY = bytes.fromhex(
    "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
)
TEST_ADDRESS = "0x2c7536e3605d9c16a7a3d7b1898e529396a65c23"
OTHER_PRIVATE_KEY = hashlib.sha256(b"wabasen-other-wallet").digest()


def personal_sign(private_key: bytes, message: str) -> str:
    """
    ``personal_sign`` *message* with a raw secp256k1 key, returning the
    65-byte ``0x`` hex signature with v in {27, 28}.

    The recovery id is the parity of R.y, with R = s^-1 (e*G + r*Q).
    """
    sk = SigningKey.from_string(private_key, curve=SECP256k1)
    digest = personal_message_hash(message)
    rs = sk.sign_digest_deterministic(
        digest, hashfunc=hashlib.sha256, sigencode=sigencode_string,
    )
    r, s = sigdecode_string(rs, SECP256k1.order)
    n = SECP256k1.order
    e = int.from_bytes(digest, "big") % n
    q = sk.get_verifying_key().pubkey.point
    point_r = (SECP256k1.generator * e + q * r) * inverse_mod(s, n)
    recovery_id = point_r.y() & 1
    return "0x" + rs.hex() + bytes([27 + recovery_id]).hex()


@pytest.fixture
def password():
    return "password"


@pytest.fixture
def address():
    """Checksummed-style mixed case, as wallets display it."""
    return "0x2C7536E3605D9C16a7a3D7b1898e529396a65c23"


@pytest.fixture
def signature(password):
    return personal_sign(TEST_PRIVATE_KEY, password)


@pytest.fixture
def credentials(address, signature, password):
    """(address, signature, password) in pipeline argument order."""
    return address, signature, password


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Temp directory that is also the current working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
