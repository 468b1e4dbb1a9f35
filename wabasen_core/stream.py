"""
Chunked authenticated encryption (STREAM construction, big-endian 32-bit
counter) over XChaCha20-Poly1305.

Each chunk is sealed independently with a 24-byte nonce built from the
19-byte stream nonce, a 4-byte big-endian chunk counter and a 1-byte
"last chunk" flag:

    nonce[0:19]  = stream nonce
    nonce[19:23] = counter (starts at 0, +1 after every non-final chunk)
    nonce[23]    = 0x01 for the final chunk, 0x00 otherwise

This matches RustCrypto's ``aead::stream::StreamBE32``, so ciphertext is
interchangeable with the reference implementation.

File layout: ``4112 | 4112 | ... | <=4111`` byte chunks (4096-byte
plaintext block + 16-byte Poly1305 tag).  There is no header; the short
final chunk terminates the stream.
"""

from __future__ import annotations

import logging
import struct
from typing import BinaryIO

from Crypto.Cipher import ChaCha20_Poly1305

from wabasen_core.errors import DecryptionError, EncryptionError, FileIOError
from wabasen_core.keys import KEY_LEN, STREAM_NONCE_LEN

logger = logging.getLogger("wabasen_stream")

PLAINTEXT_CHUNK_SIZE = 4096
TAG_SIZE = 16
CIPHERTEXT_CHUNK_SIZE = PLAINTEXT_CHUNK_SIZE + TAG_SIZE
COUNTER_MAX = 0xFFFFFFFF


def stream_chunk_nonce(stream_nonce: bytes, counter: int, last: bool) -> bytes:
    """24-byte XChaCha20 nonce for chunk number *counter*."""
    return stream_nonce + struct.pack(">IB", counter, 1 if last else 0)


class _StreamCipher:
    """Shared counter bookkeeping for the encryptor and decryptor."""

    _error: type = EncryptionError

    def __init__(self, key: bytes, nonce: bytes):
        if len(key) != KEY_LEN:
            raise ValueError(f"Key must be {KEY_LEN} bytes, got {len(key)}")
        if len(nonce) != STREAM_NONCE_LEN:
            raise ValueError(f"Stream nonce must be {STREAM_NONCE_LEN} bytes, got {len(nonce)}")
        self._key = key
        self._nonce = nonce
        self._counter = 0
        self._finished = False

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def finished(self) -> bool:
        return self._finished

    def _cipher(self, last: bool):
        if self._finished:
            raise self._error("Stream already finalised")
        return ChaCha20_Poly1305.new(
            key=self._key,
            nonce=stream_chunk_nonce(self._nonce, self._counter, last),
        )

    def _advance(self) -> None:
        self._counter += 1

    def _finish(self) -> None:
        self._finished = True


class StreamEncryptor(_StreamCipher):
    """Seals consecutive plaintext chunks; ``encrypt_last`` must end the stream."""

    _error = EncryptionError

    def encrypt_next(self, chunk: bytes) -> bytes:
        if self._counter >= COUNTER_MAX:
            raise EncryptionError("Stream chunk counter overflow")
        ciphertext, tag = self._cipher(last=False).encrypt_and_digest(chunk)
        self._advance()
        return ciphertext + tag

    def encrypt_last(self, chunk: bytes) -> bytes:
        ciphertext, tag = self._cipher(last=True).encrypt_and_digest(chunk)
        self._finish()
        return ciphertext + tag


class StreamDecryptor(_StreamCipher):
    """Opens consecutive ciphertext chunks, verifying each tag before returning."""

    _error = DecryptionError

    def _open(self, chunk: bytes, last: bool) -> bytes:
        if len(chunk) < TAG_SIZE:
            raise DecryptionError(
                f"Ciphertext chunk {self._counter} is shorter than the {TAG_SIZE}-byte tag"
            )
        cipher = self._cipher(last=last)
        try:
            return cipher.decrypt_and_verify(chunk[:-TAG_SIZE], chunk[-TAG_SIZE:])
        except ValueError:
            raise DecryptionError(
                f"Authentication failed for chunk {self._counter}"
            ) from None

    def decrypt_next(self, chunk: bytes) -> bytes:
        if self._counter >= COUNTER_MAX:
            raise DecryptionError("Stream chunk counter overflow")
        plaintext = self._open(chunk, last=False)
        self._advance()
        return plaintext

    def decrypt_last(self, chunk: bytes) -> bytes:
        plaintext = self._open(chunk, last=True)
        self._finish()
        return plaintext


# ===================================================================
#  Stream drivers
# ===================================================================

def _name(stream: BinaryIO) -> str:
    return str(getattr(stream, "name", "<stream>"))


def _read(source: BinaryIO, size: int) -> bytes:
    try:
        return source.read(size)
    except OSError as exc:
        raise FileIOError(
            f"Failed to read input file ({_name(source)}): {exc}", _name(source), "read"
        ) from exc


def _write(sink: BinaryIO, data: bytes) -> None:
    try:
        sink.write(data)
    except OSError as exc:
        raise FileIOError(
            f"Failed to write file ({_name(sink)}): {exc}", _name(sink), "write"
        ) from exc


def encrypt_stream(source: BinaryIO, sink: BinaryIO, key: bytes, nonce: bytes) -> int:
    """
    Encrypt *source* into *sink*.  Returns the number of chunks written.

    Exactly one final chunk is produced; when the plaintext length is a
    multiple of 4096 (including zero) that chunk is an empty plaintext
    sealed to a bare 16-byte tag.
    """
    encryptor = StreamEncryptor(key, nonce)
    chunks = 0
    while True:
        block = _read(source, PLAINTEXT_CHUNK_SIZE)
        chunks += 1
        if len(block) == PLAINTEXT_CHUNK_SIZE:
            _write(sink, encryptor.encrypt_next(block))
        else:
            _write(sink, encryptor.encrypt_last(block))
            break
    return chunks


def decrypt_stream(source: BinaryIO, sink: BinaryIO, key: bytes, nonce: bytes) -> int:
    """
    Decrypt *source* into *sink*.  Returns the number of chunks read.

    A full 4112-byte read is a non-final chunk, any shorter non-empty read
    is the final chunk.  A clean end of input on a chunk boundary stops
    without a final chunk.
    """
    decryptor = StreamDecryptor(key, nonce)
    chunks = 0
    while True:
        block = _read(source, CIPHERTEXT_CHUNK_SIZE)
        if not block:
            logger.warning(
                f"{_name(source)} ended after {chunks} chunks without a final chunk"
            )
            break
        chunks += 1
        if len(block) == CIPHERTEXT_CHUNK_SIZE:
            _write(sink, decryptor.decrypt_next(block))
        else:
            _write(sink, decryptor.decrypt_last(block))
            break
    return chunks


# ===================================================================
#  File helpers
# ===================================================================

def _open(path: str, mode: str) -> BinaryIO:
    try:
        return open(path, mode)
    except OSError as exc:
        if "r" in mode:
            raise FileIOError(f"Failed to open input file ({path}): {exc}", path, "open") from exc
        raise FileIOError(f"Failed to create output file ({path}): {exc}", path, "create") from exc


def encrypt_file(from_path: str, to_path: str, key: bytes, nonce: bytes) -> int:
    with _open(from_path, "rb") as source, _open(to_path, "wb") as sink:
        return encrypt_stream(source, sink, key, nonce)


def decrypt_file(from_path: str, to_path: str, key: bytes, nonce: bytes) -> int:
    with _open(from_path, "rb") as source, _open(to_path, "wb") as sink:
        return decrypt_stream(source, sink, key, nonce)
