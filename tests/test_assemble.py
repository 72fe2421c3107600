"""Assembler tests: the fixed block sequence and failure handling."""

import io

import pytest

from veo_signer import (
    ConfigurationError,
    CryptoError,
    HashAlgorithmId,
    ResourceError,
    VEOBuilder,
    assemble,
    verify_container,
)

from conftest import SIGNED_OBJECT


class RecordingBuilder(VEOBuilder):
    """VEOBuilder that records the order of calls made to it."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def open(self, target):
        self.calls.append(("open", target.name))
        super().open(target)

    def append_content_signature(self, credential, algorithm):
        index = super().append_content_signature(credential, algorithm)
        self.calls.append(("content", index, algorithm))
        return index

    def append_lock_signature(self, credential, algorithm, referenced):
        index = super().append_lock_signature(credential, algorithm, referenced)
        self.calls.append(("lock", index, tuple(referenced)))
        return index

    def append_payload(self, stream):
        self.calls.append(("payload",))
        super().append_payload(stream)

    def close(self):
        self.calls.append(("close",))
        return super().close()

    def abort(self):
        self.calls.append(("abort",))
        super().abort()


def test_fixed_sequence(payload_file, output_dir, rsa_credential):
    builder = RecordingBuilder()
    assemble(payload_file, rsa_credential, "SHA256", output_dir=output_dir, builder=builder)
    assert builder.calls == [
        ("open", "contents.xml.veo"),
        ("content", 1, HashAlgorithmId.SHA256),
        ("lock", 2, (1,)),
        ("payload",),
        ("close",),
    ]


def test_container_written_to_output_dir(payload_file, output_dir, rsa_credential):
    container = assemble(payload_file, rsa_credential, "SHA384", output_dir=output_dir)
    assert container.path == output_dir / "contents.xml.veo"
    assert container.path.exists()
    assert all(b.algorithm is HashAlgorithmId.SHA384 for b in container.blocks)
    assert verify_container(container, io.BytesIO(SIGNED_OBJECT))["valid"]


def test_default_output_dir_is_cwd(payload_file, output_dir, rsa_credential, monkeypatch):
    monkeypatch.chdir(output_dir)
    container = assemble(payload_file, rsa_credential)
    assert container.path == output_dir / "contents.xml.veo"


def test_ec_credential(payload_file, output_dir, ec_credential):
    container = assemble(payload_file, ec_credential, "SHA256", output_dir=output_dir)
    assert verify_container(container, io.BytesIO(SIGNED_OBJECT))["valid"]


def test_unknown_algorithm_touches_nothing(payload_file, output_dir, rsa_credential):
    builder = RecordingBuilder()
    with pytest.raises(ConfigurationError):
        assemble(payload_file, rsa_credential, "MD5", output_dir=output_dir, builder=builder)
    assert builder.calls == []
    assert list(output_dir.iterdir()) == []


def test_missing_payload(tmp_path, output_dir, rsa_credential):
    with pytest.raises(ResourceError):
        assemble(tmp_path / "absent.xml", rsa_credential, output_dir=output_dir)
    assert list(output_dir.iterdir()) == []


def test_signing_failure_aborts(payload_file, output_dir, rsa_credential):
    rsa_credential.close()
    builder = RecordingBuilder()
    with pytest.raises(CryptoError):
        assemble(payload_file, rsa_credential, output_dir=output_dir, builder=builder)
    assert builder.calls[-1] == ("abort",)
    assert list(output_dir.iterdir()) == []


def test_existing_container_untouched_on_failure(payload_file, output_dir, rsa_credential):
    previous = output_dir / "contents.xml.veo"
    previous.write_bytes(b"vendor copy")
    rsa_credential.close()
    with pytest.raises(CryptoError):
        assemble(payload_file, rsa_credential, output_dir=output_dir)
    assert previous.read_bytes() == b"vendor copy"
