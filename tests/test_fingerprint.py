"""
Whitespace-insensitive fingerprint tests.

The fingerprint must ignore exactly space, CR, LF and tab, and nothing
else, so that differently formatted copies of one signed object compare
equal.
"""

import hashlib
import io
import re

import pytest

from veo_signer import (
    ConfigurationError,
    ErrorCode,
    HashAlgorithmId,
    PayloadIOError,
    ResourceError,
    fingerprint,
    fingerprint_bytes,
    fingerprint_file,
)
from veo_signer.fingerprint import canonical_chunks

from conftest import REFORMATTED_SIGNED_OBJECT, SIGNED_OBJECT


HEX_UPPER = re.compile(r"^[0-9A-F]+$")


class _BrokenStream:
    def read(self, size=-1):
        raise OSError("device unplugged")


class _CountingStream(io.BytesIO):
    reads = 0

    def read(self, size=-1):
        self.reads += 1
        return super().read(size)


class TestCanonicalisation:
    """Which bytes are dropped before hashing."""

    def test_four_whitespace_bytes_removed(self):
        chunks = list(canonical_chunks(io.BytesIO(b" a\tb\r\nc ")))
        assert b"".join(chunks) == b"abc"

    def test_removal_not_collapsing(self):
        assert fingerprint_bytes(b"a b", "SHA256") == fingerprint_bytes(b"ab", "SHA256")
        assert fingerprint_bytes(b"a     b", "SHA256") == fingerprint_bytes(b"ab", "SHA256")

    def test_form_feed_is_significant(self):
        """0x0C is not one of the ignored bytes."""
        assert fingerprint_bytes(b"a\x0cb", "SHA256") != fingerprint_bytes(b"ab", "SHA256")

    def test_vertical_tab_and_nbsp_are_significant(self):
        assert fingerprint_bytes(b"a\x0bb", "SHA256") != fingerprint_bytes(b"ab", "SHA256")
        assert fingerprint_bytes("a\u00a0b".encode("utf-8"), "SHA256") != fingerprint_bytes(b"ab", "SHA256")

    def test_utf8_bytes_hashed_unchanged(self):
        data = "<v>café</v>".encode("utf-8")
        expected = hashlib.sha256(data).hexdigest().upper()
        assert fingerprint_bytes(data, "SHA256") == expected

    def test_matches_plain_digest_of_stripped_bytes(self):
        data = b"<a>\n  <b>1 2</b>\n</a>\n"
        expected = hashlib.sha1(b"<a><b>12</b></a>").hexdigest().upper()
        assert fingerprint_bytes(data, "SHA1") == expected

    def test_chunk_boundaries_do_not_matter(self):
        data = b"x \t" * 1000 + b"y\r\n" * 1000
        whole = b"".join(canonical_chunks(io.BytesIO(data)))
        small = b"".join(canonical_chunks(io.BytesIO(data), chunk_size=7))
        assert whole == small


class TestFingerprint:
    """Fingerprint rendering and algorithm selection."""

    def test_deterministic(self):
        first = fingerprint(io.BytesIO(SIGNED_OBJECT), "SHA256")
        second = fingerprint(io.BytesIO(SIGNED_OBJECT), "SHA256")
        assert first == second

    def test_reformatted_copy_matches(self):
        original = fingerprint(io.BytesIO(SIGNED_OBJECT), "SHA256")
        reformatted = fingerprint(io.BytesIO(REFORMATTED_SIGNED_OBJECT), "SHA256")
        assert len(original) == 64
        assert original == reformatted

    @pytest.mark.parametrize(
        "algorithm,length",
        [("SHA1", 40), ("SHA256", 64), ("SHA384", 96), ("SHA512", 128)],
    )
    def test_output_length_and_alphabet(self, algorithm, length):
        result = fingerprint_bytes(SIGNED_OBJECT, algorithm)
        assert len(result) == length
        assert HEX_UPPER.match(result)

    def test_accepts_algorithm_identifier(self):
        assert fingerprint_bytes(b"abc", HashAlgorithmId.SHA384) == fingerprint_bytes(b"abc", "sha-384")

    def test_empty_payload(self):
        assert fingerprint_bytes(b" \r\n\t", "SHA256") == hashlib.sha256(b"").hexdigest().upper()

    def test_unknown_algorithm_rejected_before_reading(self):
        stream = _CountingStream(SIGNED_OBJECT)
        with pytest.raises(ConfigurationError) as excinfo:
            fingerprint(stream, "MD5")
        assert excinfo.value.code == ErrorCode.UNKNOWN_HASH_ALGORITHM
        assert stream.reads == 0

    def test_read_failure_is_io_error(self):
        with pytest.raises(PayloadIOError) as excinfo:
            fingerprint(_BrokenStream(), "SHA256")
        assert excinfo.value.code == ErrorCode.READ_FAILED

    def test_text_stream_rejected(self):
        with pytest.raises(PayloadIOError) as excinfo:
            fingerprint(io.StringIO("abc"), "SHA256")
        assert excinfo.value.code == ErrorCode.MALFORMED_PAYLOAD


class TestFingerprintFile:

    def test_file_matches_stream(self, payload_file):
        assert fingerprint_file(payload_file, "SHA256") == fingerprint_bytes(SIGNED_OBJECT, "SHA256")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResourceError) as excinfo:
            fingerprint_file(tmp_path / "absent.xml", "SHA256")
        assert excinfo.value.code == ErrorCode.NOT_FOUND
        assert excinfo.value.path == tmp_path / "absent.xml"
