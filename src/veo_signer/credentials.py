"""
Signing credentials loaded from PKCS#12 (PFX) files.

A SigningCredential wraps one private key and its certificate chain for
the duration of a single run. Call close() (or use it as a context
manager) to drop the key reference once the container is built.

Supported key types:
- RSA (PKCS#1 v1.5 padding)
- ECDSA (any named curve)
- DSA
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import dsa, ec, padding, rsa, utils
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from .algorithms import HashAlgorithmId
from .errors import CryptoError, ErrorCode
from .resources import open_for_reading


LOGGER = logging.getLogger(__name__)

SigningKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey | dsa.DSAPrivateKey
PublicKey = rsa.RSAPublicKey | ec.EllipticCurvePublicKey | dsa.DSAPublicKey

# (key type, hash) -> signature algorithm OID
SIGNATURE_ALGORITHM_OIDS = {
    ("RSA", HashAlgorithmId.SHA1): "1.2.840.113549.1.1.5",
    ("RSA", HashAlgorithmId.SHA256): "1.2.840.113549.1.1.11",
    ("RSA", HashAlgorithmId.SHA384): "1.2.840.113549.1.1.12",
    ("RSA", HashAlgorithmId.SHA512): "1.2.840.113549.1.1.13",
    ("ECDSA", HashAlgorithmId.SHA1): "1.2.840.10045.4.1",
    ("ECDSA", HashAlgorithmId.SHA256): "1.2.840.10045.4.3.2",
    ("ECDSA", HashAlgorithmId.SHA384): "1.2.840.10045.4.3.3",
    ("ECDSA", HashAlgorithmId.SHA512): "1.2.840.10045.4.3.4",
    ("DSA", HashAlgorithmId.SHA1): "1.2.840.10040.4.3",
    ("DSA", HashAlgorithmId.SHA256): "2.16.840.1.101.3.4.3.2",
    ("DSA", HashAlgorithmId.SHA384): "2.16.840.1.101.3.4.3.3",
    ("DSA", HashAlgorithmId.SHA512): "2.16.840.1.101.3.4.3.4",
}


def key_type_of(key: object) -> str:
    if isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return "RSA"
    if isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        return "ECDSA"
    if isinstance(key, (dsa.DSAPrivateKey, dsa.DSAPublicKey)):
        return "DSA"
    raise CryptoError(
        "credentials",
        ErrorCode.UNSUPPORTED_KEY,
        f"Unsupported key type {type(key).__name__}; expected RSA, ECDSA or DSA",
    )


def signer_name(certificate: x509.Certificate) -> str:
    """Common name of the certificate subject, or the full RFC 4514 subject."""
    names = certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if names:
        return str(names[0].value)
    return certificate.subject.rfc4514_string()


def _sign_prehashed(key: SigningKey, digest: bytes, algorithm: HashAlgorithmId) -> bytes:
    prehashed = utils.Prehashed(algorithm.crypto_hash())
    if isinstance(key, rsa.RSAPrivateKey):
        return key.sign(digest, padding.PKCS1v15(), prehashed)
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key.sign(digest, ec.ECDSA(prehashed))
    return key.sign(digest, prehashed)


def verify_prehashed(
    public_key: PublicKey,
    signature: bytes,
    digest: bytes,
    algorithm: HashAlgorithmId,
) -> bool:
    """
    Check a signature over a precomputed digest.

    Returns False on a bad signature rather than raising.
    """
    prehashed = utils.Prehashed(algorithm.crypto_hash())
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, digest, padding.PKCS1v15(), prehashed)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, digest, ec.ECDSA(prehashed))
        elif isinstance(public_key, dsa.DSAPublicKey):
            public_key.verify(signature, digest, prehashed)
        else:
            return False
    except InvalidSignature:
        return False
    return True


@dataclass
class SigningCredential:
    """
    A private key with its certificate chain.

    The leaf certificate comes first in certificate_chain; any extra
    certificates shipped in the PFX follow in file order.
    """
    private_key: SigningKey | None = field(repr=False)
    certificate: x509.Certificate
    additional_certificates: tuple[x509.Certificate, ...] = ()

    @property
    def certificate_chain(self) -> tuple[x509.Certificate, ...]:
        return (self.certificate, *self.additional_certificates)

    @property
    def signer(self) -> str:
        return signer_name(self.certificate)

    @property
    def key_type(self) -> str:
        return key_type_of(self.certificate.public_key())

    @property
    def closed(self) -> bool:
        return self.private_key is None

    def signature_algorithm_oid(self, algorithm: HashAlgorithmId) -> str:
        return SIGNATURE_ALGORITHM_OIDS[(self.key_type, algorithm)]

    def sign_digest(self, digest: bytes, algorithm: HashAlgorithmId) -> bytes:
        """
        Sign a digest already computed with the given algorithm.

        Raises:
            CryptoError: If the credential is closed or signing fails
        """
        if self.private_key is None:
            raise CryptoError(
                "credentials", ErrorCode.CREDENTIAL_CLOSED, "Signing credential already released"
            )
        if len(digest) != algorithm.digest_size:
            raise CryptoError(
                "credentials",
                ErrorCode.SIGNING_FAILED,
                f"{algorithm} digest must be {algorithm.digest_size} bytes, got {len(digest)}",
            )
        try:
            return _sign_prehashed(self.private_key, digest, algorithm)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CryptoError(
                "credentials",
                ErrorCode.SIGNING_FAILED,
                f"{self.key_type} signing with {algorithm} failed: {exc}",
            ) from exc

    def sign(self, data: bytes, algorithm: HashAlgorithmId) -> bytes:
        digest = algorithm.new_hash()
        digest.update(data)
        return self.sign_digest(digest.digest(), algorithm)

    def close(self) -> None:
        """Drop the private key reference."""
        self.private_key = None

    def __enter__(self) -> "SigningCredential":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class CredentialStore(Protocol):
    """Anything that can turn a credential file and secret into a credential."""

    def load(self, path: Path | str, secret: str | None) -> SigningCredential:
        ...


class PKCS12CredentialStore:
    """Load signing credentials from PKCS#12 (.pfx / .p12) files."""

    component = "credentials"

    def load(self, path: Path | str, secret: str | None) -> SigningCredential:
        """
        Unlock a PFX file.

        Args:
            path: PFX file path
            secret: Unlocking secret; None or "" for an unencrypted file

        Returns:
            SigningCredential holding the key and certificate chain

        Raises:
            ResourceError: If the file cannot be read
            CryptoError: If the secret is wrong, the file is not PKCS#12,
                or it lacks a key or certificate
        """
        path = Path(path)
        with open_for_reading(path, "PFX file", self.component) as fh:
            data = fh.read()

        password = secret.encode("utf-8") if secret else None
        try:
            key, certificate, additional = pkcs12.load_key_and_certificates(data, password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CryptoError(
                self.component,
                ErrorCode.CREDENTIAL_UNLOCK_FAILED,
                "Could not unlock PFX file (wrong password or not a PKCS#12 file)",
                path,
            ) from exc
        if key is None:
            raise CryptoError(
                self.component, ErrorCode.CREDENTIAL_INCOMPLETE, "PFX file has no private key", path
            )
        if certificate is None:
            raise CryptoError(
                self.component, ErrorCode.CREDENTIAL_INCOMPLETE, "PFX file has no certificate", path
            )
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, dsa.DSAPrivateKey)):
            raise CryptoError(
                self.component,
                ErrorCode.UNSUPPORTED_KEY,
                f"Unsupported private key type {type(key).__name__}",
                path,
            )

        credential = SigningCredential(
            private_key=key,
            certificate=certificate,
            additional_certificates=tuple(additional),
        )
        LOGGER.debug(
            "Loaded %s credential for '%s' with %d certificate(s) from %s",
            credential.key_type,
            credential.signer,
            len(credential.certificate_chain),
            path,
        )
        return credential


def load_credential(path: Path | str, secret: str | None) -> SigningCredential:
    return PKCS12CredentialStore().load(path, secret)
