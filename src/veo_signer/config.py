"""
Command-line configuration.

    veo-signer [-h <hashAlg>] -s <pfxFile> [<password>] [-p <password>]
               [-o <outputDir>] [-v] [-help] signedObject

The last argument is always the signed object. Missing or unknown
arguments raise ConfigurationError before any file is opened.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence, TextIO

from .algorithms import HashAlgorithmId, resolve_hash_algorithm, supported_hash_algorithms
from .errors import ConfigurationError, ErrorCode
from .resources import check_path
from .settings import SignerSettings


LOGGER = logging.getLogger(__name__)

USAGE = (
    "veo-signer [-h <hashAlg>] -s <pfxFile> [<password>] [-p <password>] "
    "[-o <outputDir>] [-v] [-help] signedObject"
)


@dataclass(frozen=True)
class SignerConfig:
    """Fully resolved run configuration."""
    payload_path: Path
    pfx_path: Path
    hash_algorithm: HashAlgorithmId
    output_dir: Path
    secret: str | None = field(default=None, repr=False)
    verbose: bool = False
    max_secret_length: int = 1024


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting."""

    def error(self, message: str) -> None:  # type: ignore[override]
        code = ErrorCode.MISSING_ARGUMENT if "expected" in message else ErrorCode.UNRECOGNISED_ARGUMENT
        raise ConfigurationError("config", code, f"{message}. Usage: {USAGE}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="veo-signer",
        usage=USAGE,
        description="Build a signed VEO from a signed object and print its whitespace-insensitive hash.",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument(
        "-h",
        dest="hash_algorithm",
        metavar="hashAlg",
        help=f"Hash algorithm, one of {', '.join(supported_hash_algorithms())} (default SHA256).",
    )
    parser.add_argument(
        "-s",
        dest="signer",
        nargs="+",
        metavar="pfxFile [password]",
        help="PFX file holding the signer's key and certificates, optionally followed by its password.",
    )
    parser.add_argument("-p", dest="password", help="Password for the PFX file.")
    parser.add_argument("-o", dest="output_dir", metavar="outputDir", help="Directory in which to place the VEO.")
    parser.add_argument("-v", dest="verbose", action="store_true", help="Verbose output on stderr.")
    parser.add_argument("-help", dest="show_help", action="store_true", help="Print this summary.")
    parser.add_argument("payload", nargs="?", metavar="signedObject", help="File containing the signed object.")
    return parser


def resolve_config(
    argv: Sequence[str],
    settings: SignerSettings | None = None,
    help_stream: TextIO | None = None,
) -> SignerConfig:
    """
    Turn command-line arguments and settings into a SignerConfig.

    Args:
        argv: Arguments without the program name
        settings: Environment defaults (default: empty settings)
        help_stream: Where -help writes the option summary (default: stderr)

    Returns:
        Resolved configuration with checked paths

    Raises:
        ConfigurationError: Missing -s or signed object, unknown argument,
            unknown hash algorithm, or too many -s values
        ResourceError: A named file or directory is missing or of the wrong kind
    """
    settings = settings if settings is not None else SignerSettings()
    parser = build_parser()
    args = parser.parse_args(list(argv))

    if args.show_help:
        parser.print_help(help_stream or sys.stderr)

    signer = list(args.signer or [])
    payload = args.payload
    # "-s pfx [password] signedObject" leaves the signed object inside -s
    if payload is None and len(signer) >= 2:
        payload = signer.pop()

    if not signer:
        raise ConfigurationError("config", ErrorCode.MISSING_ARGUMENT, f"No PFX file specified. Usage: {USAGE}")
    if len(signer) > 2:
        raise ConfigurationError(
            "config",
            ErrorCode.UNRECOGNISED_ARGUMENT,
            f"Unrecognised argument '{signer[2]}'. Usage: {USAGE}",
        )
    if payload is None:
        raise ConfigurationError(
            "config", ErrorCode.MISSING_ARGUMENT, f"No signed object file specified. Usage: {USAGE}"
        )

    algorithm = resolve_hash_algorithm(args.hash_algorithm or settings.hash_algorithm)

    secret = args.password
    if secret is None and len(signer) == 2:
        secret = signer[1]
    if secret is None:
        secret = settings.password

    if args.verbose:
        LOGGER.debug("Verbose output")

    pfx_path = check_path(signer[0], "PFX file", "config")
    output_arg = args.output_dir or settings.output_dir
    output_dir = check_path(output_arg, "output directory", "config", is_directory=True) if output_arg else Path.cwd()
    payload_path = check_path(payload, "Signed object", "config")

    return SignerConfig(
        payload_path=payload_path,
        pfx_path=pfx_path,
        hash_algorithm=algorithm,
        output_dir=output_dir,
        secret=secret,
        verbose=args.verbose,
        max_secret_length=settings.max_secret_length,
    )
