"""Masked secret entry tests."""

import io

import pytest

from veo_signer import ConfigurationError, ErrorCode, StreamChannel, read_masked_secret


def _read(text: str, **kwargs):
    sink = io.StringIO()
    secret = read_masked_secret(StreamChannel(io.StringIO(text), sink), **kwargs)
    return secret, sink.getvalue()


def test_carriage_return_terminates():
    secret, echoed = _read("pass\r")
    assert secret == "pass"
    assert echoed.count("*") == 4
    assert "pass" not in echoed


def test_line_feed_terminates_and_rest_is_ignored():
    secret, echoed = _read("abc\nrest-of-input")
    assert secret == "abc"
    assert echoed.count("*") == 3


def test_prompt_written_first():
    _, echoed = _read("x\n", prompt="PFX password: ")
    assert echoed.startswith("PFX password: ")


def test_end_of_input_without_terminator():
    secret, _ = _read("secret")
    assert secret == "secret"


def test_empty_secret():
    secret, echoed = _read("\r\n")
    assert secret == ""
    assert "*" not in echoed


def test_custom_mask():
    secret, echoed = _read("pw\r", mask="#")
    assert secret == "pw"
    assert echoed.count("#") == 2


def test_unmasked_channel_still_stops_at_terminator():
    sink = io.StringIO()
    channel = StreamChannel(io.StringIO("pass\rmore"), sink, masked=False)
    assert read_masked_secret(channel) == "pass"
    assert "*" not in sink.getvalue()


def test_secret_length_is_bounded():
    with pytest.raises(ConfigurationError) as excinfo:
        _read("x" * 20 + "\n", max_length=8)
    assert excinfo.value.code == ErrorCode.SECRET_TOO_LONG


def test_secret_at_length_limit_is_accepted():
    secret, _ = _read("x" * 8 + "\n", max_length=8)
    assert secret == "x" * 8
