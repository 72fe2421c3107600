"""
Drive a container builder through the fixed VEO block sequence.

The sequence never varies:
1. open the container at "<payload name>.veo" in the output directory
2. one content signature block (index 1)
3. one lock signature block referencing index 1
4. the signed object, byte for byte
5. close

Any failure aborts the builder, which removes the partial container, and
the original error propagates unchanged.
"""

import logging
from pathlib import Path

from .algorithms import DEFAULT_HASH_ALGORITHM, HashAlgorithmId, resolve_hash_algorithm
from .container import Container, ContainerBuilder, VEOBuilder, container_path
from .credentials import SigningCredential
from .resources import open_for_reading


LOGGER = logging.getLogger(__name__)


def assemble(
    payload_path: Path | str,
    credential: SigningCredential,
    algorithm: str | HashAlgorithmId = DEFAULT_HASH_ALGORITHM,
    output_dir: Path | str | None = None,
    builder: ContainerBuilder | None = None,
) -> Container:
    """
    Build a signed VEO from a signed object file.

    Args:
        payload_path: File holding the vers:SignedObject element
        credential: Credential used for both the content and lock signatures
        algorithm: Hash algorithm name or identifier
        output_dir: Directory for the container (default: current directory)
        builder: Container builder to drive (default: a new VEOBuilder)

    Returns:
        The finalized Container

    Raises:
        ConfigurationError: Unknown hash algorithm (before any file is opened)
        ResourceError: Payload or output location unusable
        CryptoError: Signing failure
        PayloadIOError: Read or write failure
        ContainerError: Builder rejected the block sequence
    """
    alg = resolve_hash_algorithm(algorithm)
    payload_path = Path(payload_path)
    target = container_path(payload_path, output_dir)
    builder = builder if builder is not None else VEOBuilder()

    LOGGER.debug("Assembling %s from %s using %s", target, payload_path, alg)

    with open_for_reading(payload_path, "Signed object", "assembler") as stream:
        try:
            builder.open(target)
            content_index = builder.append_content_signature(credential, alg)
            builder.append_lock_signature(credential, alg, [content_index])
            builder.append_payload(stream)
            container = builder.close()
        except BaseException:
            builder.abort()
            raise

    return container
