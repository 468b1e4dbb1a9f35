"""
Exception hierarchy for Wabasen.

Every failure surfaced by the encrypt / decrypt pipeline derives from
``WabasenError`` so callers (the CLI, or any embedding application) can
catch a single type and still branch on the specific cause.

The pipeline annotates errors with the ``stage`` in which they were
raised (see ``wabasen_core.pipeline.Stage``).
"""

from __future__ import annotations

from typing import Any


class WabasenError(Exception):
    """Base class for all Wabasen failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.stage: Any = None


class InvalidPathError(WabasenError):
    """Input path has no usable file name, or is neither file nor directory."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class ConfigError(WabasenError):
    """A configuration file or environment value is malformed or out of range."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


# ===================================================================
#  Authentication
# ===================================================================

class SignatureError(WabasenError):
    """The wallet signature could not authenticate the password."""


class InvalidSignatureFormatError(SignatureError):
    pass


class InvalidRecoveryIdError(SignatureError):
    pass


class PublicKeyRecoveryError(SignatureError):
    pass


class SignatureMismatchError(SignatureError):
    """Recovered address differs from the claimed one."""

    def __init__(self, message: str, claimed: str, recovered: str):
        super().__init__(message)
        self.claimed = claimed
        self.recovered = recovered


# ===================================================================
#  Stages
# ===================================================================

class ArchiveError(WabasenError):
    """Packing or unpacking the tar.gz bundle failed."""


class FileIOError(WabasenError):
    """An open / read / write / delete failed on *path*."""

    def __init__(self, message: str, path: str, operation: str):
        super().__init__(message)
        self.path = path
        self.operation = operation


class EncryptionError(WabasenError):
    pass


class DecryptionError(WabasenError):
    """Authentication tag mismatch: tampered data or wrong key material."""


class CleanupError(WabasenError):
    """Removing a temporary or partial artifact failed."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path
