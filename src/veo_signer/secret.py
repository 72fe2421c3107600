"""
Masked secret entry.

The secret is read one character at a time from a TerminalChannel. One
mask character is echoed per collected character, never the character
itself. Reading stops at the first CR or LF, which is not part of the
secret, or at end of input.

Two channels are provided:
- RawTerminalChannel: the controlling terminal with echo switched off
- StreamChannel: any pair of text streams, for pipes and tests
"""

import logging
import os
import sys
from typing import Protocol, TextIO

from .errors import ConfigurationError, ErrorCode


LOGGER = logging.getLogger(__name__)

DEFAULT_PROMPT = "Password: "
DEFAULT_MASK = "*"
DEFAULT_MAX_SECRET_LENGTH = 1024

TERMINATORS = ("\r", "\n")


class TerminalChannel(Protocol):
    """Character-level terminal I/O used for secret entry."""

    def read_char(self) -> str:
        """Return one character, or "" at end of input."""
        ...

    def write(self, text: str) -> None:
        ...

    def echo_mask(self, mask: str) -> None:
        ...

    def __enter__(self) -> "TerminalChannel":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


class StreamChannel:
    """
    Read from and echo to ordinary text streams.

    Masks are echoed only when masked is true; the terminator rule
    applies either way.
    """

    def __init__(self, source: TextIO, sink: TextIO, masked: bool = True) -> None:
        self.source = source
        self.sink = sink
        self.masked = masked

    def read_char(self) -> str:
        return self.source.read(1)

    def write(self, text: str) -> None:
        self.sink.write(text)
        self.sink.flush()

    def echo_mask(self, mask: str) -> None:
        if self.masked:
            self.write(mask)

    def __enter__(self) -> "StreamChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class RawTerminalChannel:
    """
    The controlling terminal in character mode with echo disabled.

    On POSIX the terminal is put in cbreak mode (no echo, no line
    buffering, signals still delivered) and restored on exit. On Windows
    msvcrt reads single characters without echo.
    """

    def __init__(self, stream: TextIO | None = None, sink: TextIO | None = None) -> None:
        self.stream = stream or sys.stdin
        self.sink = sink or sys.stderr
        self._saved_attrs = None

    def __enter__(self) -> "RawTerminalChannel":
        if os.name != "nt":
            import termios
            import tty

            fd = self.stream.fileno()
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._saved_attrs is not None:
            import termios

            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None

    def read_char(self) -> str:
        if os.name == "nt":
            import msvcrt

            return msvcrt.getwch()
        return self.stream.read(1)

    def write(self, text: str) -> None:
        self.sink.write(text)
        self.sink.flush()

    def echo_mask(self, mask: str) -> None:
        self.write(mask)


def default_channel() -> TerminalChannel:
    """Raw terminal when stdin is a TTY, otherwise a plain stream without masks."""
    if sys.stdin is not None and sys.stdin.isatty():
        return RawTerminalChannel()
    return StreamChannel(sys.stdin, sys.stderr, masked=False)


def read_masked_secret(
    channel: TerminalChannel,
    prompt: str = DEFAULT_PROMPT,
    mask: str = DEFAULT_MASK,
    max_length: int = DEFAULT_MAX_SECRET_LENGTH,
) -> str:
    """
    Read a secret through a channel, echoing a mask per character.

    Args:
        channel: Terminal capability to read from and echo to
        prompt: Written once before reading
        mask: Echoed once for every collected character
        max_length: Largest accepted secret, in characters

    Returns:
        The collected secret without its terminator

    Raises:
        ConfigurationError: If the input exceeds max_length characters
    """
    collected: list[str] = []

    with channel:
        channel.write(prompt)
        while True:
            ch = channel.read_char()
            if ch == "" or ch in TERMINATORS:
                break
            if len(collected) >= max_length:
                collected.clear()
                channel.write("\n")
                raise ConfigurationError(
                    "secret",
                    ErrorCode.SECRET_TOO_LONG,
                    f"Password longer than {max_length} characters",
                )
            collected.append(ch)
            channel.echo_mask(mask)
        channel.write("\n")

    LOGGER.debug("Read %d character password from terminal", len(collected))
    return "".join(collected)
