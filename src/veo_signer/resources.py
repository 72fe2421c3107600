"""
Filesystem checks shared by configuration, credential loading, the
assembler and the fingerprint calculator.

Every failure is raised as a ResourceError naming the offending path.
"""

import logging
from pathlib import Path
from typing import BinaryIO

from .errors import ErrorCode, ResourceError


LOGGER = logging.getLogger(__name__)


def check_path(
    path: Path | str,
    description: str,
    component: str,
    is_directory: bool = False,
) -> Path:
    """
    Check that a path exists and is of the expected kind.

    Args:
        path: Path to check
        description: Human label used in messages, e.g. "PFX file"
        component: Component name reported with any error
        is_directory: True if the path must be a directory

    Returns:
        The resolved absolute path

    Raises:
        ResourceError: If the path is missing or of the wrong kind
    """
    if path is None or str(path) == "":
        raise ResourceError(component, ErrorCode.NOT_FOUND, f"{description} argument is empty")

    try:
        resolved = Path(path).resolve()
    except OSError as exc:
        raise ResourceError(
            component,
            ErrorCode.INACCESSIBLE,
            f"Error when accessing {description}: {exc}",
            path,
        ) from exc

    if not resolved.exists():
        raise ResourceError(component, ErrorCode.NOT_FOUND, f"{description} does not exist", resolved)
    if is_directory and not resolved.is_dir():
        raise ResourceError(
            component, ErrorCode.WRONG_KIND, f"{description} is a file not a directory", resolved
        )
    if not is_directory and resolved.is_dir():
        raise ResourceError(
            component, ErrorCode.WRONG_KIND, f"{description} is a directory not a file", resolved
        )

    LOGGER.debug("%s: '%s'", description, resolved)
    return resolved


def open_for_reading(path: Path | str, description: str, component: str) -> BinaryIO:
    """Open a file in binary mode, mapping OS failures to ResourceError."""
    path = Path(path)
    try:
        return open(path, "rb")
    except FileNotFoundError as exc:
        raise ResourceError(component, ErrorCode.NOT_FOUND, f"{description} not found", path) from exc
    except IsADirectoryError as exc:
        raise ResourceError(
            component, ErrorCode.WRONG_KIND, f"{description} is a directory not a file", path
        ) from exc
    except PermissionError as exc:
        raise ResourceError(
            component, ErrorCode.PERMISSION_DENIED, f"{description} is not readable", path
        ) from exc
    except OSError as exc:
        raise ResourceError(
            component, ErrorCode.INACCESSIBLE, f"Error when accessing {description}: {exc}", path
        ) from exc
