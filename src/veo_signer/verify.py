"""
Offline re-check of an assembled container.

Verifies block ordering, content signatures over the signed object and
lock signatures over the referenced signature values. Each block is
checked against the public key of its own leaf certificate; certificate
chains are not evaluated for trust.
"""

from typing import BinaryIO

from .container import BlockKind, Container, SignatureBlock, lock_payload
from .credentials import verify_prehashed
from .errors import ErrorCode, PayloadIOError, VerificationCode, VerificationIssue, VerificationResult


def verify_block_order(blocks: tuple[SignatureBlock, ...] | list[SignatureBlock]) -> VerificationResult:
    """
    Check that blocks are numbered 1..n, content blocks precede lock
    blocks, and every lock references an earlier content block.
    """
    errors: list[VerificationIssue] = []

    if not any(b.kind is BlockKind.CONTENT for b in blocks):
        errors.append(VerificationIssue(
            code=VerificationCode.NO_CONTENT_BLOCK,
            message="Container has no content signature block",
        ))
    if not any(b.kind is BlockKind.LOCK for b in blocks):
        errors.append(VerificationIssue(
            code=VerificationCode.NO_LOCK_BLOCK,
            message="Container has no lock signature block",
        ))

    seen_lock = False
    content_indices: set[int] = set()
    for position, block in enumerate(blocks, start=1):
        if block.index != position:
            errors.append(VerificationIssue(
                code=VerificationCode.SEQUENCE_GAP,
                message=f"Expected block index {position}, got {block.index}",
                details={"expected": position, "actual": block.index},
            ))

        if block.kind is BlockKind.CONTENT:
            if seen_lock:
                errors.append(VerificationIssue(
                    code=VerificationCode.BLOCK_ORDER,
                    message=f"Content block {block.index} follows a lock block",
                    details={"index": block.index},
                ))
            content_indices.add(block.index)
            continue

        seen_lock = True
        if not block.references:
            errors.append(VerificationIssue(
                code=VerificationCode.DANGLING_REFERENCE,
                message=f"Lock block {block.index} references no blocks",
                details={"index": block.index},
            ))
        for ref in block.references:
            if ref not in content_indices or ref >= block.index:
                errors.append(VerificationIssue(
                    code=VerificationCode.DANGLING_REFERENCE,
                    message=f"Lock block {block.index} references block {ref}, "
                            f"which is not an earlier content block",
                    details={"index": block.index, "reference": ref},
                ))

    return VerificationResult(valid=len(errors) == 0, errors=errors)


def _payload_digests(container: Container, payload: BinaryIO) -> dict:
    hashers = {b.algorithm: b.algorithm.new_hash() for b in container.content_blocks}
    while True:
        try:
            chunk = payload.read(64 * 1024)
        except OSError as exc:
            raise PayloadIOError(
                "verify", ErrorCode.READ_FAILED, f"Error reading signed object: {exc}"
            ) from exc
        if not chunk:
            break
        for hasher in hashers.values():
            hasher.update(chunk)
    return {alg: hasher.digest() for alg, hasher in hashers.items()}


def verify_signatures(container: Container, payload: BinaryIO) -> VerificationResult:
    """
    Verify every signature in the container.

    Args:
        container: Container returned by the builder
        payload: Binary stream over the original signed object

    Returns:
        VerificationResult listing every failed block
    """
    errors: list[VerificationIssue] = []
    digests = _payload_digests(container, payload)

    for block in container.blocks:
        if not block.certificates:
            errors.append(VerificationIssue(
                code=VerificationCode.MISSING_CERTIFICATE,
                message=f"Block {block.index} carries no certificate",
                details={"index": block.index},
            ))
            continue

        public_key = block.certificates[0].public_key()

        if block.kind is BlockKind.CONTENT:
            ok = verify_prehashed(public_key, block.signature, digests[block.algorithm], block.algorithm)
            if not ok:
                errors.append(VerificationIssue(
                    code=VerificationCode.CONTENT_SIGNATURE_INVALID,
                    message=f"Signature in block {block.index} does not match the signed object",
                    details={"index": block.index, "algorithm": block.algorithm.canonical_name},
                ))
            continue

        try:
            locked = lock_payload(container.blocks, block.references)
        except KeyError:
            # Reported by verify_block_order
            continue
        digest = block.algorithm.new_hash()
        digest.update(locked)
        if not verify_prehashed(public_key, block.signature, digest.digest(), block.algorithm):
            errors.append(VerificationIssue(
                code=VerificationCode.LOCK_SIGNATURE_INVALID,
                message=f"Lock signature in block {block.index} does not match "
                        f"the signatures it references",
                details={"index": block.index, "references": list(block.references)},
            ))

    return VerificationResult(valid=len(errors) == 0, errors=errors)


def verify_container(container: Container, payload: BinaryIO) -> dict:
    """
    Full container check: block order, then signatures.

    Returns:
        Dict with valid flag and list of errors
    """
    errors: list[VerificationIssue] = []

    order_result = verify_block_order(container.blocks)
    errors.extend(order_result.errors)

    sig_result = verify_signatures(container, payload)
    errors.extend(sig_result.errors)

    return {"valid": len(errors) == 0, "errors": [e.to_dict() for e in errors]}
