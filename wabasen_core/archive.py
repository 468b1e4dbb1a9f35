"""
tar + gzip bundling of the encryption input.

A regular file is stored as a single member named after the file; a
directory is stored as its contents, recursively, with member names
relative to the directory itself.  Unpacking therefore recreates the
original entries inside the destination directory.

Symbolic links are followed when packing: the archive holds the bytes
of the link target, never a link member, so the bundle stays complete
after the input is deleted.

Usage:
    pack("photos", "photos_temp", compression_level=6)
    unpack("photos_temp", "photos")
"""

from __future__ import annotations

import logging
import os
import tarfile
import zlib
from pathlib import Path

from wabasen_core.errors import ArchiveError, FileIOError, InvalidPathError

logger = logging.getLogger("wabasen_archive")

DEFAULT_COMPRESSION_LEVEL = 6

# Python >= 3.12 (and recent security releases) ship extraction filters.
_EXTRACT_KWARGS: dict = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}

_READ_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)


def pack(from_path: str, to_path: str, compression_level: int = DEFAULT_COMPRESSION_LEVEL) -> int:
    """
    Write a gzip-compressed tar of *from_path* to *to_path*.

    Returns the number of members written.
    """
    if not 0 <= compression_level <= 9:
        raise ValueError(f"compression_level must be 0..9, got {compression_level}")
    source = Path(from_path)
    if not (source.is_file() or source.is_dir()):
        raise InvalidPathError(f"Invalid input path ({from_path})", from_path)

    try:
        archive_file = open(to_path, "wb")
    except OSError as exc:
        raise FileIOError(f"Failed to create output file ({to_path}): {exc}", to_path, "create") from exc

    with archive_file:
        try:
            with tarfile.open(
                fileobj=archive_file,
                mode="w:gz",
                compresslevel=compression_level,
                dereference=True,
            ) as tar:
                if source.is_file():
                    tar.add(str(source), arcname=source.name)
                else:
                    for child in sorted(source.iterdir()):
                        tar.add(str(child), arcname=child.name)
                count = len(tar.getmembers())
        except (tarfile.TarError, OSError) as exc:
            kind = "file" if source.is_file() else "folder"
            raise ArchiveError(f"Failed to archive input {kind} ({from_path}): {exc}") from exc

    logger.debug(f"Packed {count} entries from {from_path} into {to_path}")
    return count


def _check_member(member: tarfile.TarInfo, destination: Path) -> None:
    target = (destination / member.name).resolve()
    if os.path.isabs(member.name) or not target.is_relative_to(destination):
        raise ArchiveError(f"Archive member escapes destination ({member.name})")


def unpack(from_path: str, to_path: str) -> int:
    """
    Extract the tar.gz archive at *from_path* into directory *to_path*
    (created if missing).  Returns the number of members extracted.
    """
    try:
        archive_file = open(from_path, "rb")
    except OSError as exc:
        raise FileIOError(f"Failed to open input ({from_path}): {exc}", from_path, "open") from exc

    destination = Path(to_path)
    with archive_file:
        try:
            with tarfile.open(fileobj=archive_file, mode="r:gz") as tar:
                members = tar.getmembers()
                resolved = destination.resolve()
                for member in members:
                    _check_member(member, resolved)
                destination.mkdir(parents=True, exist_ok=True)
                tar.extractall(str(destination), members=members, **_EXTRACT_KWARGS)
        except _READ_ERRORS as exc:
            raise ArchiveError(f"Failed to unpack archive ({from_path}): {exc}") from exc

    logger.debug(f"Unpacked {len(members)} entries from {from_path} into {to_path}")
    return len(members)
