"""Hash algorithm resolution tests."""

import pytest

from veo_signer import ConfigurationError, ErrorCode, HashAlgorithmId, resolve_hash_algorithm


@pytest.mark.parametrize(
    "name,expected",
    [
        ("SHA1", HashAlgorithmId.SHA1),
        ("sha256", HashAlgorithmId.SHA256),
        ("SHA-384", HashAlgorithmId.SHA384),
        (" Sha512 ", HashAlgorithmId.SHA512),
    ],
)
def test_names_resolve(name, expected):
    assert resolve_hash_algorithm(name) is expected


def test_identifier_passes_through():
    assert resolve_hash_algorithm(HashAlgorithmId.SHA256) is HashAlgorithmId.SHA256


def test_digest_sizes():
    sizes = {alg.canonical_name: alg.digest_size for alg in HashAlgorithmId}
    assert sizes == {"SHA1": 20, "SHA256": 32, "SHA384": 48, "SHA512": 64}


def test_hashlib_and_cryptography_agree_on_size():
    for alg in HashAlgorithmId:
        assert alg.new_hash().digest_size == alg.digest_size
        assert alg.crypto_hash().digest_size == alg.digest_size


@pytest.mark.parametrize("name", ["MD5", "SHA224", "", None])
def test_unknown_names_are_configuration_errors(name):
    with pytest.raises(ConfigurationError) as excinfo:
        resolve_hash_algorithm(name)
    assert excinfo.value.code == ErrorCode.UNKNOWN_HASH_ALGORITHM
    assert excinfo.value.component == "algorithms"
