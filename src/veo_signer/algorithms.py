"""
Hash algorithm identifiers shared by the assembler and the fingerprint
calculator.

Names are matched case-insensitively and an optional hyphen is accepted,
so "sha256", "SHA-256" and "SHA256" all resolve to the same identifier.
"""

import hashlib
from enum import Enum

from cryptography.hazmat.primitives import hashes

from .errors import ConfigurationError, ErrorCode


DEFAULT_HASH_ALGORITHM = "SHA256"


class HashAlgorithmId(Enum):
    """Supported digest algorithms with their canonical name and size."""
    SHA1 = ("SHA1", 20)
    SHA256 = ("SHA256", 32)
    SHA384 = ("SHA384", 48)
    SHA512 = ("SHA512", 64)

    def __init__(self, canonical_name: str, digest_size: int) -> None:
        self.canonical_name = canonical_name
        self.digest_size = digest_size

    @property
    def hex_length(self) -> int:
        """Length of the uppercase hex rendering of a digest."""
        return 2 * self.digest_size

    def new_hash(self):
        return hashlib.new(self.canonical_name.lower())

    def crypto_hash(self) -> hashes.HashAlgorithm:
        """Return the matching cryptography hash instance for signing."""
        return _CRYPTO_HASHES[self]()

    def __str__(self) -> str:
        return self.canonical_name


_CRYPTO_HASHES = {
    HashAlgorithmId.SHA1: hashes.SHA1,
    HashAlgorithmId.SHA256: hashes.SHA256,
    HashAlgorithmId.SHA384: hashes.SHA384,
    HashAlgorithmId.SHA512: hashes.SHA512,
}


def supported_hash_algorithms() -> list[str]:
    return [alg.canonical_name for alg in HashAlgorithmId]


def resolve_hash_algorithm(name: str | HashAlgorithmId) -> HashAlgorithmId:
    """
    Resolve a user-supplied algorithm name.

    Args:
        name: Algorithm name or an already resolved identifier

    Returns:
        The matching HashAlgorithmId

    Raises:
        ConfigurationError: If the name is not one of the supported algorithms
    """
    if isinstance(name, HashAlgorithmId):
        return name

    key = str(name or "").strip().upper().replace("-", "")
    for alg in HashAlgorithmId:
        if alg.canonical_name == key:
            return alg

    raise ConfigurationError(
        "algorithms",
        ErrorCode.UNKNOWN_HASH_ALGORITHM,
        f"Unsupported hash algorithm '{name}'. "
        f"Supported: {', '.join(supported_hash_algorithms())}",
    )
