"""
Whitespace-insensitive fingerprint of a signed object.

Rules:
- Exactly four bytes are ignored: space (0x20), CR (0x0D), LF (0x0A)
  and horizontal tab (0x09)
- Ignored bytes are removed, never collapsed: "a b" and "ab" are equal
- Every other byte, including form feed and UTF-8 continuation bytes,
  is hashed unchanged and in stream order
- The digest is rendered as uppercase hex, high nibble first

The fingerprint only exists for comparison. The stored container always
carries the payload exactly as read.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from .algorithms import HashAlgorithmId, resolve_hash_algorithm
from .errors import ErrorCode, PayloadIOError
from .resources import open_for_reading


LOGGER = logging.getLogger(__name__)

# Bytes dropped before hashing
WHITESPACE = b" \r\n\t"

CHUNK_SIZE = 64 * 1024

FINGERPRINT_LABEL = "Hash of signed object: "


def canonical_chunks(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """
    Yield the stream contents with the whitespace bytes deleted.

    A single linear pass; chunk boundaries do not affect the result
    because the filter works byte by byte within each chunk.
    """
    while True:
        try:
            chunk = stream.read(chunk_size)
        except OSError as exc:
            raise PayloadIOError(
                "fingerprint",
                ErrorCode.READ_FAILED,
                f"Error reading signed object: {exc}",
            ) from exc

        if not chunk:
            return
        if not isinstance(chunk, (bytes, bytearray)):
            raise PayloadIOError(
                "fingerprint",
                ErrorCode.MALFORMED_PAYLOAD,
                f"Signed object stream must yield bytes, got {type(chunk).__name__}",
            )
        yield bytes(chunk).translate(None, WHITESPACE)


def fingerprint(stream: BinaryIO, algorithm: str | HashAlgorithmId) -> str:
    """
    Compute the canonical fingerprint of a payload stream.

    Args:
        stream: Binary stream positioned at the start of the signed object
        algorithm: Hash algorithm name or identifier

    Returns:
        Uppercase hex digest, 2 characters per digest byte

    Raises:
        ConfigurationError: If the algorithm is unknown (before any read)
        PayloadIOError: If the stream cannot be read
    """
    alg = resolve_hash_algorithm(algorithm)
    digest = alg.new_hash()

    for chunk in canonical_chunks(stream):
        digest.update(chunk)

    return digest.hexdigest().upper()


def fingerprint_bytes(data: bytes, algorithm: str | HashAlgorithmId) -> str:
    """Fingerprint an in-memory payload."""
    alg = resolve_hash_algorithm(algorithm)
    digest = alg.new_hash()
    digest.update(bytes(data).translate(None, WHITESPACE))
    return digest.hexdigest().upper()


def fingerprint_file(path: Path | str, algorithm: str | HashAlgorithmId) -> str:
    """
    Fingerprint a signed object file.

    The file is opened in its own scope and closed on every exit path.
    """
    alg = resolve_hash_algorithm(algorithm)
    path = Path(path)

    with open_for_reading(path, "Signed object", "fingerprint") as stream:
        result = fingerprint(stream, alg)

    LOGGER.debug("Fingerprint of %s (%s): %s", path, alg, result)
    return result
