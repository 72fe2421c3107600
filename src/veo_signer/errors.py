"""
Error codes and types for veo-signer.

Every fatal condition is raised as a SignerError subclass carrying the
originating component, a small numeric code and a message. Nothing below
the command-line entry point terminates the process.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any


class ErrorCode(IntEnum):
    """
    Numeric error codes, grouped by category.

    1-9 configuration, 10-19 resources, 20-29 cryptography,
    30-39 payload I/O, 40-49 container protocol.
    """
    MISSING_ARGUMENT = 1
    UNRECOGNISED_ARGUMENT = 2
    UNKNOWN_HASH_ALGORITHM = 3
    SECRET_TOO_LONG = 4
    INVALID_SETTING = 5

    NOT_FOUND = 10
    WRONG_KIND = 11
    PERMISSION_DENIED = 12
    INACCESSIBLE = 13

    CREDENTIAL_UNLOCK_FAILED = 20
    CREDENTIAL_INCOMPLETE = 21
    UNSUPPORTED_KEY = 22
    SIGNING_FAILED = 23
    CREDENTIAL_CLOSED = 24

    READ_FAILED = 30
    WRITE_FAILED = 31
    MALFORMED_PAYLOAD = 32

    PROTOCOL_VIOLATION = 40
    DANGLING_REFERENCE = 41
    NO_CONTENT_BLOCK = 42


class SignerError(Exception):
    """Base class for every fatal veo-signer error."""

    category = "error"

    def __init__(
        self,
        component: str,
        code: ErrorCode,
        message: str,
        path: Path | str | None = None,
    ) -> None:
        super().__init__(message)
        self.component = component
        self.code = code
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        text = f"{self.component}: error {int(self.code)}: {self.message}"
        if self.path is not None:
            text += f" ({self.path})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "component": self.component,
            "code": int(self.code),
            "message": self.message,
            "path": str(self.path) if self.path is not None else None,
        }


class ConfigurationError(SignerError):
    """Bad or missing argument, unknown hash algorithm, bad setting."""
    category = "configuration"


class ResourceError(SignerError):
    """File missing, wrong kind (file vs directory) or not accessible."""
    category = "resource"


class CryptoError(SignerError):
    """Credential unlock, key support or signing failure."""
    category = "crypto"


class PayloadIOError(SignerError):
    """Read or write failure while streaming a payload or container."""
    category = "io"


class ContainerError(SignerError):
    """Signature blocks appended out of order or referencing missing blocks."""
    category = "container"


class VerificationCode(str, Enum):
    """Issues reported when re-checking an assembled container."""
    NO_CONTENT_BLOCK = "NO_CONTENT_BLOCK"
    NO_LOCK_BLOCK = "NO_LOCK_BLOCK"
    SEQUENCE_GAP = "SEQUENCE_GAP"
    BLOCK_ORDER = "BLOCK_ORDER"
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    MISSING_CERTIFICATE = "MISSING_CERTIFICATE"
    CONTENT_SIGNATURE_INVALID = "CONTENT_SIGNATURE_INVALID"
    LOCK_SIGNATURE_INVALID = "LOCK_SIGNATURE_INVALID"


@dataclass
class VerificationIssue:
    """
    A single verification finding with typed code and audit details.
    """
    code: VerificationCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class VerificationResult:
    """
    Result of a verification operation.
    """
    valid: bool
    errors: list[VerificationIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
        }
