"""
VEO container model and builder.

A container is written in a fixed order:
header, content signature blocks, lock signature blocks, the signed
object exactly as read, footer.

Content blocks sign the signed object. Lock blocks sign the signature
values of the content blocks they reference, so the content signatures
must exist before any lock signature can be computed. The builder
therefore records the block requests, streams the payload into a spool
while digesting it, and computes every signature in close() before the
file is written. The container is written to "<target>.part" and renamed
into place only once complete.
"""

import base64
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Protocol, Sequence
from xml.sax.saxutils import escape, quoteattr

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .algorithms import HashAlgorithmId
from .credentials import SigningCredential
from .errors import ContainerError, ErrorCode, PayloadIOError, ResourceError


LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Payloads larger than this spill from memory to a temporary file
SPOOL_MAX_SIZE = 8 * 1024 * 1024

VEO_SUFFIX = ".veo"

VERS_NAMESPACE = "http://www.prov.vic.gov.au/gservice/standard/pros99007.htm"

VEO_FORMAT_DESCRIPTION = (
    "This is a VERS Encapsulated Object (VEO) as defined by PROS 99/007 "
    "version 2. It contains one or more signature blocks, one or more lock "
    "signature blocks and a signed object."
)

SIGNATURE_FORMAT_DESCRIPTION = (
    "The signature is calculated over the vers:SignedObject element exactly "
    "as it appears in this VEO."
)

LOCK_SIGNATURE_FORMAT_DESCRIPTION = (
    "The lock signature is calculated over the concatenated values of the "
    "signatures in the referenced signature blocks."
)


class BlockKind(str, Enum):
    CONTENT = "content"
    LOCK = "lock"


def block_id(index: int) -> str:
    return f"Revision-1-Signature-{index}"


@dataclass(frozen=True)
class SignatureBlock:
    """A 1-indexed signature block as written into the container."""
    index: int
    kind: BlockKind
    algorithm: HashAlgorithmId
    signature_algorithm_oid: str
    signature: bytes
    certificates: tuple[x509.Certificate, ...]
    signer: str
    signed_at: datetime
    references: tuple[int, ...] = ()

    @property
    def block_id(self) -> str:
        return block_id(self.index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "kind": self.kind.value,
            "algorithm": self.algorithm.canonical_name,
            "signature_algorithm_oid": self.signature_algorithm_oid,
            "signature": base64.b64encode(self.signature).decode("ascii"),
            "signer": self.signer,
            "signed_at": self.signed_at.isoformat(),
            "references": list(self.references),
            "certificate_count": len(self.certificates),
        }


@dataclass(frozen=True)
class Container:
    """An assembled, finalized VEO."""
    path: Path
    blocks: tuple[SignatureBlock, ...]
    payload_length: int

    @property
    def content_blocks(self) -> list[SignatureBlock]:
        return [b for b in self.blocks if b.kind is BlockKind.CONTENT]

    @property
    def lock_blocks(self) -> list[SignatureBlock]:
        return [b for b in self.blocks if b.kind is BlockKind.LOCK]

    def block(self, index: int) -> SignatureBlock:
        for candidate in self.blocks:
            if candidate.index == index:
                return candidate
        raise KeyError(index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "payload_length": self.payload_length,
            "blocks": [b.to_dict() for b in self.blocks],
        }


def lock_payload(blocks: Iterable[SignatureBlock], references: Sequence[int]) -> bytes:
    """Bytes a lock signature covers: referenced signature values in reference order."""
    by_index = {b.index: b for b in blocks}
    return b"".join(by_index[ref].signature for ref in references)


def container_path(payload_path: Path | str, output_dir: Path | str | None = None) -> Path:
    """Target path for a payload: its file name plus ".veo" in the output directory."""
    payload_path = Path(payload_path)
    directory = Path(output_dir) if output_dir is not None else Path.cwd()
    return directory / (payload_path.name + VEO_SUFFIX)


class ContainerBuilder(Protocol):
    """The operations the assembler drives, in the order it drives them."""

    def open(self, target: Path | str) -> None:
        ...

    def append_content_signature(self, credential: SigningCredential, algorithm: HashAlgorithmId) -> int:
        ...

    def append_lock_signature(
        self,
        credential: SigningCredential,
        algorithm: HashAlgorithmId,
        referenced: Sequence[int],
    ) -> int:
        ...

    def append_payload(self, stream: BinaryIO) -> None:
        ...

    def close(self) -> Container:
        ...

    def abort(self) -> None:
        ...


@dataclass
class _PendingBlock:
    index: int
    kind: BlockKind
    credential: SigningCredential
    algorithm: HashAlgorithmId
    references: tuple[int, ...] = ()


@dataclass
class _BuildState:
    target: Path
    part: Path
    spool: Any
    pending: list[_PendingBlock] = field(default_factory=list)
    digests: dict[HashAlgorithmId, bytes] = field(default_factory=dict)
    payload_length: int = 0
    payload_done: bool = False


class VEOBuilder:
    """
    Builds a single VEO (version 2) container.

    States: idle -> open -> (payload appended) -> closed. abort() may be
    called from any state and leaves no file behind.
    """

    component = "container"

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._chunk_size = chunk_size
        self._state: _BuildState | None = None
        self._finished = False

    def _violation(self, message: str, code: ErrorCode = ErrorCode.PROTOCOL_VIOLATION) -> ContainerError:
        return ContainerError(self.component, code, message)

    def _require_open(self, operation: str) -> _BuildState:
        if self._state is None:
            raise self._violation(f"{operation} called before open() or after close()")
        return self._state

    def open(self, target: Path | str) -> None:
        if self._state is not None or self._finished:
            raise self._violation("open() called twice on the same builder")

        target = Path(target)
        if not target.parent.is_dir():
            raise ResourceError(
                self.component,
                ErrorCode.NOT_FOUND,
                "Output directory does not exist",
                target.parent,
            )

        self._state = _BuildState(
            target=target,
            part=target.with_name(target.name + ".part"),
            spool=tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE),
        )
        LOGGER.debug("Started VEO %s", target)

    def append_content_signature(self, credential: SigningCredential, algorithm: HashAlgorithmId) -> int:
        state = self._require_open("append_content_signature()")
        if state.payload_done:
            raise self._violation("Signature blocks must precede the signed object")
        if any(p.kind is BlockKind.LOCK for p in state.pending):
            raise self._violation("Content signature blocks must precede lock signature blocks")

        index = len(state.pending) + 1
        state.pending.append(_PendingBlock(index, BlockKind.CONTENT, credential, algorithm))
        LOGGER.debug("Added signature block %d (%s, %s)", index, credential.signer, algorithm)
        return index

    def append_lock_signature(
        self,
        credential: SigningCredential,
        algorithm: HashAlgorithmId,
        referenced: Sequence[int],
    ) -> int:
        state = self._require_open("append_lock_signature()")
        if state.payload_done:
            raise self._violation("Lock signature blocks must precede the signed object")

        content_indices = {p.index for p in state.pending if p.kind is BlockKind.CONTENT}
        if not content_indices:
            raise self._violation(
                "A lock signature block needs at least one content signature block",
                ErrorCode.NO_CONTENT_BLOCK,
            )

        references = tuple(referenced)
        if not references:
            raise self._violation("A lock signature block must reference at least one block")
        for ref in references:
            if ref not in content_indices:
                raise self._violation(
                    f"Lock signature block references block {ref}, "
                    f"which is not an existing content signature block",
                    ErrorCode.DANGLING_REFERENCE,
                )

        index = len(state.pending) + 1
        state.pending.append(_PendingBlock(index, BlockKind.LOCK, credential, algorithm, references))
        LOGGER.debug("Added lock signature block %d over %s", index, list(references))
        return index

    def append_payload(self, stream: BinaryIO) -> None:
        state = self._require_open("append_payload()")
        if state.payload_done:
            raise self._violation("The signed object has already been included")
        if not any(p.kind is BlockKind.CONTENT for p in state.pending):
            raise self._violation(
                "A container needs at least one content signature block",
                ErrorCode.NO_CONTENT_BLOCK,
            )

        hashers = {
            p.algorithm: p.algorithm.new_hash()
            for p in state.pending
            if p.kind is BlockKind.CONTENT
        }

        while True:
            try:
                chunk = stream.read(self._chunk_size)
            except OSError as exc:
                raise PayloadIOError(
                    self.component, ErrorCode.READ_FAILED, f"Error reading signed object: {exc}"
                ) from exc
            if not chunk:
                break
            if not isinstance(chunk, (bytes, bytearray)):
                raise PayloadIOError(
                    self.component,
                    ErrorCode.MALFORMED_PAYLOAD,
                    f"Signed object stream must yield bytes, got {type(chunk).__name__}",
                )
            for hasher in hashers.values():
                hasher.update(chunk)
            state.spool.write(chunk)
            state.payload_length += len(chunk)

        if state.payload_length == 0:
            raise PayloadIOError(self.component, ErrorCode.MALFORMED_PAYLOAD, "Signed object is empty")

        state.digests = {alg: hasher.digest() for alg, hasher in hashers.items()}
        state.payload_done = True
        LOGGER.debug("Included signed object (%d bytes)", state.payload_length)

    def close(self) -> Container:
        """
        Compute all signatures, write the container and move it into place.

        Returns:
            The finalized Container

        Raises:
            ContainerError: If the payload was never appended
            CryptoError: If any signature cannot be computed
            PayloadIOError: If the container cannot be written
        """
        state = self._require_open("close()")
        if not state.payload_done:
            raise self._violation("close() called before the signed object was included")

        try:
            blocks = self._sign_blocks(state)
            self._write(state, blocks)
            os.replace(state.part, state.target)
        except OSError as exc:
            self.abort()
            raise PayloadIOError(
                self.component, ErrorCode.WRITE_FAILED, f"Error writing VEO: {exc}", state.target
            ) from exc
        except BaseException:
            self.abort()
            raise

        state.spool.close()
        container = Container(path=state.target, blocks=tuple(blocks), payload_length=state.payload_length)
        self._state = None
        self._finished = True
        LOGGER.info("Wrote VEO %s (%d signature blocks)", state.target, len(blocks))
        return container

    def abort(self) -> None:
        """Discard everything written so far. Safe to call more than once."""
        state = self._state
        self._state = None
        self._finished = True
        if state is None:
            return
        state.spool.close()
        try:
            state.part.unlink()
        except FileNotFoundError:
            pass
        LOGGER.debug("Aborted VEO %s", state.target)

    def _sign_blocks(self, state: _BuildState) -> list[SignatureBlock]:
        blocks: list[SignatureBlock] = []
        for pending in state.pending:
            if pending.kind is BlockKind.CONTENT:
                signature = pending.credential.sign_digest(state.digests[pending.algorithm], pending.algorithm)
            else:
                signature = pending.credential.sign(
                    lock_payload(blocks, pending.references), pending.algorithm
                )
            blocks.append(SignatureBlock(
                index=pending.index,
                kind=pending.kind,
                algorithm=pending.algorithm,
                signature_algorithm_oid=pending.credential.signature_algorithm_oid(pending.algorithm),
                signature=signature,
                certificates=pending.credential.certificate_chain,
                signer=pending.credential.signer,
                signed_at=self._clock(),
                references=pending.references,
            ))
        return blocks

    def _write(self, state: _BuildState, blocks: list[SignatureBlock]) -> None:
        with open(state.part, "wb") as fh:
            fh.write(render_header().encode("utf-8"))
            for block in blocks:
                fh.write(render_block(block).encode("utf-8"))
            state.spool.seek(0)
            shutil.copyfileobj(state.spool, fh, self._chunk_size)
            fh.write(render_footer().encode("utf-8"))
            fh.flush()
            os.fsync(fh.fileno())


def render_header() -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<!DOCTYPE vers:VERSEncapsulatedObject SYSTEM "vers.dtd">\n'
        f'<vers:VERSEncapsulatedObject xmlns:vers="{VERS_NAMESPACE}">\n'
        f" <vers:VEOFormatDescription>{escape(VEO_FORMAT_DESCRIPTION)}</vers:VEOFormatDescription>\n"
        " <vers:Version>2.0</vers:Version>\n"
    )


def render_footer() -> str:
    return "\n</vers:VERSEncapsulatedObject>\n"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _certificate_block(certificates: Sequence[x509.Certificate]) -> str:
    lines = ["  <vers:CertificateBlock>\n"]
    for cert in certificates:
        der = cert.public_bytes(serialization.Encoding.DER)
        lines.append(f"   <vers:Certificate>{_b64(der)}</vers:Certificate>\n")
    lines.append("  </vers:CertificateBlock>\n")
    return "".join(lines)


def render_block(block: SignatureBlock) -> str:
    """Serialize one signature or lock signature block."""
    if block.kind is BlockKind.CONTENT:
        opening = f" <vers:SignatureBlock vers:id={quoteattr(block.block_id)}>\n"
        closing = " </vers:SignatureBlock>\n"
        description = SIGNATURE_FORMAT_DESCRIPTION
    else:
        signs = " ".join(block_id(ref) for ref in block.references)
        opening = f" <vers:LockSignatureBlock vers:signsSignatureBlock={quoteattr(signs)}>\n"
        closing = " </vers:LockSignatureBlock>\n"
        description = LOCK_SIGNATURE_FORMAT_DESCRIPTION

    return (
        opening
        + f"  <vers:SignatureFormatDescription>{escape(description)}</vers:SignatureFormatDescription>\n"
        + "  <vers:SignatureAlgorithm>\n"
        + f"   <vers:SignatureAlgorithmIdentifier>{block.signature_algorithm_oid}</vers:SignatureAlgorithmIdentifier>\n"
        + "  </vers:SignatureAlgorithm>\n"
        + f"  <vers:SignatureDate>{block.signed_at.strftime('%Y%m%dT%H%M%S%z')}</vers:SignatureDate>\n"
        + f"  <vers:Signer>{escape(block.signer)}</vers:Signer>\n"
        + f"  <vers:Signature>{_b64(block.signature)}</vers:Signature>\n"
        + _certificate_block(block.certificates)
        + closing
    )
