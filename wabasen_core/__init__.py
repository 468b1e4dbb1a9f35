"""
Wabasen - file and folder encryption with wallet-based 2FA.

Key features:
- Password authenticated by an Ethereum ``personal_sign`` signature
  (secp256k1 public-key recovery)
- Keccak-256 key / nonce derivation from signature and password
- XChaCha20-Poly1305 STREAM encryption in 4 KiB chunks
- tar.gz bundling of files and directory trees
"""

from wabasen_core.errors import WabasenError
from wabasen_core.pipeline import OperationReport, Stage, decrypt, encrypt

__version__ = "0.1.1"
__all__ = [
    "encrypt",
    "decrypt",
    "OperationReport",
    "Stage",
    "WabasenError",
    "hashing",
    "signature",
    "keys",
    "stream",
    "archive",
    "pipeline",
    "config",
]
