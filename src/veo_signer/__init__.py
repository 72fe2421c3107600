"""
veo-signer: rebuild a signed VEO from a signed object and a PFX credential.

The container is assembled with one content signature block and one lock
signature block over it. The signed object is also fingerprinted with a
whitespace-insensitive hash so it can be compared against a vendor's copy
regardless of line endings or indentation.
"""

from .algorithms import (
    DEFAULT_HASH_ALGORITHM,
    HashAlgorithmId,
    resolve_hash_algorithm,
)
from .assemble import assemble
from .container import (
    BlockKind,
    Container,
    ContainerBuilder,
    SignatureBlock,
    VEOBuilder,
    container_path,
)
from .credentials import (
    CredentialStore,
    PKCS12CredentialStore,
    SigningCredential,
    load_credential,
)
from .fingerprint import (
    FINGERPRINT_LABEL,
    fingerprint,
    fingerprint_bytes,
    fingerprint_file,
)
from .secret import (
    RawTerminalChannel,
    StreamChannel,
    read_masked_secret,
)
from .verify import (
    verify_block_order,
    verify_container,
    verify_signatures,
)
from .errors import (
    ConfigurationError,
    ContainerError,
    CryptoError,
    ErrorCode,
    PayloadIOError,
    ResourceError,
    SignerError,
    VerificationCode,
    VerificationIssue,
    VerificationResult,
)

__version__ = "2.0.0"
__all__ = [
    # Hash algorithms
    "DEFAULT_HASH_ALGORITHM",
    "HashAlgorithmId",
    "resolve_hash_algorithm",
    # Assembly
    "assemble",
    "BlockKind",
    "Container",
    "ContainerBuilder",
    "SignatureBlock",
    "VEOBuilder",
    "container_path",
    # Credentials
    "CredentialStore",
    "PKCS12CredentialStore",
    "SigningCredential",
    "load_credential",
    # Fingerprint
    "FINGERPRINT_LABEL",
    "fingerprint",
    "fingerprint_bytes",
    "fingerprint_file",
    # Secret entry
    "RawTerminalChannel",
    "StreamChannel",
    "read_masked_secret",
    # Verification
    "verify_block_order",
    "verify_container",
    "verify_signatures",
    # Errors
    "ConfigurationError",
    "ContainerError",
    "CryptoError",
    "ErrorCode",
    "PayloadIOError",
    "ResourceError",
    "SignerError",
    "VerificationCode",
    "VerificationIssue",
    "VerificationResult",
]
