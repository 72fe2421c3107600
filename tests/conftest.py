"""Shared fixtures: throwaway keys, self-signed certificates and PFX files."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from veo_signer import SigningCredential


PFX_PASSWORD = "correct horse"

SIGNED_OBJECT = b"<vers:SignedObject>X</vers:SignedObject>"

REFORMATTED_SIGNED_OBJECT = b"<vers:SignedObject>\r\n\tX\n</vers:SignedObject>\n"


def _self_signed(private_key, common_name: str) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_certificate(rsa_key):
    return _self_signed(rsa_key, "Test Archivist")


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_certificate(ec_key):
    return _self_signed(ec_key, "Test EC Signer")


@pytest.fixture
def rsa_credential(rsa_key, rsa_certificate):
    return SigningCredential(private_key=rsa_key, certificate=rsa_certificate)


@pytest.fixture
def ec_credential(ec_key, ec_certificate):
    return SigningCredential(private_key=ec_key, certificate=ec_certificate)


@pytest.fixture
def pfx_file(tmp_path, rsa_key, rsa_certificate) -> Path:
    data = pkcs12.serialize_key_and_certificates(
        name=b"signer",
        key=rsa_key,
        cert=rsa_certificate,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(PFX_PASSWORD.encode("utf-8")),
    )
    path = tmp_path / "signer.pfx"
    path.write_bytes(data)
    return path


@pytest.fixture
def payload_file(tmp_path) -> Path:
    path = tmp_path / "contents.xml"
    path.write_bytes(SIGNED_OBJECT)
    return path


@pytest.fixture
def output_dir(tmp_path) -> Path:
    path = tmp_path / "out"
    path.mkdir()
    return path
