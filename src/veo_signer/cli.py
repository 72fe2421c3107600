"""Command-line entry point for veo_signer."""

import logging
import sys
from dataclasses import dataclass
from typing import Sequence, TextIO

from pydantic import ValidationError

from .assemble import assemble
from .config import SignerConfig, resolve_config
from .container import Container
from .credentials import CredentialStore, PKCS12CredentialStore
from .errors import ConfigurationError, ErrorCode, SignerError
from .fingerprint import FINGERPRINT_LABEL, fingerprint_file
from .secret import TerminalChannel, default_channel, read_masked_secret
from .settings import SignerSettings, get_settings


LOGGER = logging.getLogger("veo_signer")


@dataclass(frozen=True)
class RunResult:
    """Outcome of one successful run."""
    container: Container
    fingerprint: str


def configure_logging(verbose: bool, stream: TextIO | None = None) -> None:
    """Send veo_signer log records to stderr; DEBUG when verbose."""
    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.DEBUG if verbose else logging.WARNING)
    LOGGER.propagate = False


def acquire_secret(config: SignerConfig, channel: TerminalChannel | None = None) -> str:
    """Configured secret, or one read with masking from the terminal."""
    if config.secret is not None:
        return config.secret
    return read_masked_secret(channel or default_channel(), max_length=config.max_secret_length)


def run(
    config: SignerConfig,
    store: CredentialStore | None = None,
    channel: TerminalChannel | None = None,
) -> RunResult:
    """
    Build the VEO, then fingerprint the signed object.

    The credential is released before returning, on success or failure.
    """
    store = store or PKCS12CredentialStore()
    secret = acquire_secret(config, channel)
    credential = store.load(config.pfx_path, secret)
    del secret

    with credential:
        container = assemble(
            config.payload_path,
            credential,
            config.hash_algorithm,
            output_dir=config.output_dir,
        )

    digest = fingerprint_file(config.payload_path, config.hash_algorithm)
    return RunResult(container=container, fingerprint=digest)


def _load_settings() -> SignerSettings:
    try:
        return get_settings()
    except ValidationError as exc:
        raise ConfigurationError("settings", ErrorCode.INVALID_SETTING, f"Invalid environment setting: {exc}") from exc


def main(
    argv: Sequence[str] | None = None,
    store: CredentialStore | None = None,
    channel: TerminalChannel | None = None,
) -> int:
    """Run veo-signer; returns 0 on success and 1 on any fatal error."""
    argv = list(sys.argv[1:] if argv is None else argv)
    configure_logging("-v" in argv)

    try:
        config = resolve_config(argv, _load_settings())
        result = run(config, store=store, channel=channel)
    except SignerError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print(f"{FINGERPRINT_LABEL}{result.fingerprint}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
