"""
Encrypt / decrypt orchestration for Wabasen.

Encrypt:  verify signature -> tar.gz input into ``<stem>_temp`` ->
          stream-encrypt into ``<stem>.waba`` -> remove temp archive ->
          remove original input.
Decrypt:  verify signature -> stream-decrypt into ``<stem>_temp`` ->
          unpack into ``<stem>/`` -> remove temp archive ->
          remove encrypted input.

Outputs and temporary archives are created next to the input path.
Every stage runs inside an ``_ArtifactScope`` which removes the
temporary archive on every exit and rolls back partial outputs on
failure; the original input is only deleted once the new artifact is
complete.
"""

from __future__ import annotations

import logging
import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from wabasen_core import archive, stream
from wabasen_core.config import WabasenConfig
from wabasen_core.errors import CleanupError, FileIOError, InvalidPathError, WabasenError
from wabasen_core.keys import derive_key_material
from wabasen_core.signature import verify_password_signature

logger = logging.getLogger("wabasen_pipeline")

ENCRYPTED_EXTENSION = ".waba"
TEMP_SUFFIX = "_temp"


class Stage(str, Enum):
    """Lifecycle of one encrypt or decrypt call."""
    IDLE = "idle"
    VERIFYING = "verifying"
    COMPRESSING = "compressing"      # encrypt, stage 1
    ENCRYPTING = "encrypting"        # encrypt, stage 2
    DECRYPTING = "decrypting"        # decrypt, stage 1
    DECOMPRESSING = "decompressing"  # decrypt, stage 2
    CLEANING_UP = "cleaning-up"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class OperationReport:
    """Outcome of a successful encrypt / decrypt call."""
    operation: str
    source: str
    destination: str
    stage: Stage = Stage.IDLE
    chunks: int = 0
    timings: dict[str, float] = field(default_factory=dict)
    elapsed: float = 0.0

    def summary(self) -> str:
        return (
            f"'{self.source}' is {self.operation}ed to '{self.destination}' "
            f"in {self.elapsed:.3f}s"
        )


# ===================================================================
#  Artifact bookkeeping
# ===================================================================

def remove_artifact(path: Path, what: str) -> bool:
    """Delete *path* (file or directory tree).  Returns False if absent."""
    if not (path.exists() or path.is_symlink()):
        return False
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as exc:
        raise CleanupError(f"Failed to delete the {what} ({path}): {exc}", str(path)) from exc
    logger.debug(f"Removed {what} {path}", extra={"stage": Stage.CLEANING_UP.value})
    return True


class _ArtifactScope:
    """
    Tracks files created by one operation.

    Temporary artifacts are removed on every exit.  Partial outputs are
    removed when the body raised or when a temporary artifact could not
    be removed.  A failed removal raises ``CleanupError`` in place of the
    original exception, which is kept as ``__cause__``.
    """

    def __init__(self, report: OperationReport):
        self._report = report
        self._temporary: list[tuple[Path, str]] = []
        self._partial: list[tuple[Path, str]] = []

    def temporary(self, path: Path, what: str = "temporary file") -> Path:
        self._temporary.append((path, what))
        return path

    def partial(self, path: Path, what: str) -> Path:
        self._partial.append((path, what))
        return path

    def __enter__(self) -> _ArtifactScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        failed_stage = self._report.stage
        self._report.stage = Stage.CLEANING_UP
        errors: list[CleanupError] = []

        for path, what in self._temporary:
            self._discard(path, what, errors)
        if exc is not None or errors:
            for path, what in self._partial:
                self._discard(path, what, errors)

        if exc is not None:
            logger.debug(
                f"{self._report.operation} failed during {failed_stage.value}: {exc}",
                extra={"stage": Stage.FAILED.value},
            )
        if errors:
            errors[0].stage = Stage.CLEANING_UP
            raise errors[0] from exc
        return False

    @staticmethod
    def _discard(path: Path, what: str, errors: list[CleanupError]) -> None:
        try:
            remove_artifact(path, what)
        except CleanupError as err:
            errors.append(err)


@contextmanager
def _stage(report: OperationReport, stage: Stage, label: str) -> Iterator[None]:
    """Run one pipeline stage: tag errors with it and record its duration."""
    report.stage = stage
    logger.info(f"{label}...", extra={"stage": stage.value})
    start = time.perf_counter()
    try:
        yield
    except WabasenError as exc:
        if exc.stage is None:
            exc.stage = stage
        raise
    elapsed = time.perf_counter() - start
    report.timings[stage.value] = elapsed
    logger.info(f"{label} completed ({elapsed:.3f}s)", extra={"stage": stage.value})


# ===================================================================
#  Path helpers
# ===================================================================

def file_stem(input_path: str) -> str:
    """File name of *input_path* without its final extension."""
    path = Path(input_path)
    if path.name in ("", ".", "..") or not path.stem:
        raise InvalidPathError(
            f"The path does not include a valid file name ({input_path})", input_path
        )
    try:
        path.stem.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidPathError(
            f"The file name is not valid UTF-8 ({input_path})", input_path
        ) from None
    return path.stem


def _sibling(input_path: str, name: str) -> Path:
    return Path(input_path).parent / name


def _remove_input(path: Path) -> None:
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
        else:
            raise InvalidPathError(f"Invalid input path ({path})", str(path))
    except OSError as exc:
        raise FileIOError(f"Failed to delete input ({path}): {exc}", str(path), "delete") from exc


def _verify(report: OperationReport, address: str, password: str, signature: str) -> None:
    with _stage(report, Stage.VERIFYING, "Verifying signature"):
        verify_password_signature(address, password, signature)


def _finish(report: OperationReport, source: Path, started: float) -> OperationReport:
    report.stage = Stage.CLEANING_UP
    try:
        _remove_input(source)
    except WabasenError as exc:
        exc.stage = Stage.CLEANING_UP
        raise
    report.stage = Stage.SUCCEEDED
    report.elapsed = time.perf_counter() - started
    logger.info(report.summary(), extra={"stage": report.stage.value})
    return report


# ===================================================================
#  Entry points
# ===================================================================

def encrypt(
    input_path: str,
    address: str,
    signature: str,
    password: str,
    config: Optional[WabasenConfig] = None,
) -> OperationReport:
    """
    Encrypt a file or directory into ``<stem>.waba`` and delete the input.

    Raises a ``WabasenError`` subclass on failure; the input is left
    untouched and no temporary archive remains.
    """
    cfg = config or WabasenConfig()
    started = time.perf_counter()
    logger.info(f"Encrypt '{input_path}'")

    report = OperationReport("encrypt", input_path, "")
    _verify(report, address, password, signature)

    stem = file_stem(input_path)
    source = Path(input_path)
    if not (source.is_file() or source.is_dir()):
        raise InvalidPathError(f"Invalid input path ({input_path})", input_path)
    final_path = _sibling(input_path, f"{stem}{ENCRYPTED_EXTENSION}")
    if final_path.resolve() == source.resolve():
        raise InvalidPathError(
            f"Input is already named like the encrypted output ({input_path})", input_path
        )
    if final_path.exists() or final_path.is_symlink():
        raise InvalidPathError(
            f"Encrypted output already exists ({final_path})", str(final_path)
        )
    report.destination = str(final_path)

    with _ArtifactScope(report) as scope:
        temp_path = scope.temporary(_sibling(input_path, f"{stem}{TEMP_SUFFIX}"))

        with _stage(report, Stage.COMPRESSING, "[1/2] Compressing"):
            archive.pack(input_path, str(temp_path), cfg.archive.compression_level)

        with _stage(report, Stage.ENCRYPTING, "[2/2] Encryption"):
            material = derive_key_material(signature, password)
            scope.partial(final_path, "encrypted file")
            report.chunks = stream.encrypt_file(
                str(temp_path), str(final_path), material.key, material.nonce
            )

    return _finish(report, source, started)


def decrypt(
    input_path: str,
    address: str,
    signature: str,
    password: str,
    config: Optional[WabasenConfig] = None,
) -> OperationReport:
    """
    Decrypt a ``.waba`` file into the directory ``<stem>`` and delete it.

    Raises a ``WabasenError`` subclass on failure; the encrypted input is
    left untouched and no temporary archive remains.
    """
    started = time.perf_counter()
    logger.info(f"Decrypt '{input_path}'")

    report = OperationReport("decrypt", input_path, "")
    _verify(report, address, password, signature)

    stem = file_stem(input_path)
    source = Path(input_path)
    if not source.is_file():
        raise InvalidPathError(f"Invalid input path ({input_path})", input_path)
    to_path = _sibling(input_path, stem)
    if to_path.resolve() == source.resolve():
        raise InvalidPathError(
            f"Output directory would replace the encrypted input ({input_path})", input_path
        )
    report.destination = str(to_path)

    with _ArtifactScope(report) as scope:
        temp_path = scope.temporary(_sibling(input_path, f"{stem}{TEMP_SUFFIX}"))

        with _stage(report, Stage.DECRYPTING, "[1/2] Decryption"):
            material = derive_key_material(signature, password)
            report.chunks = stream.decrypt_file(
                str(input_path), str(temp_path), material.key, material.nonce
            )

        with _stage(report, Stage.DECOMPRESSING, "[2/2] Decompressing"):
            if not (to_path.exists() or to_path.is_symlink()):
                scope.partial(to_path, "decrypted output")
            archive.unpack(str(temp_path), str(to_path))

    return _finish(report, source, started)
