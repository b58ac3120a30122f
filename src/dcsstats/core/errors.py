"""
Exception taxonomy for log decoding and sortie reconstruction.

Decode, shape and filename errors are fatal for a batch run. Bad input
errors also subclass ValueError so callers that only expect ValueError
from parsers keep working.
"""

from __future__ import annotations

from collections.abc import Sequence


class DcsStatsError(Exception):
    """Base class for all dcsstats errors."""


class ParseError(DcsStatsError, ValueError):
    """A numeric field (timestamp, side id) could not be parsed."""

    def __init__(self, message: str, file_path: str | None = None):
        self.file_path = file_path
        if file_path:
            message = f"{file_path}: {message}"
        super().__init__(message)


class UnknownEventKind(DcsStatsError, ValueError):
    """The kind token of a log line is not in the recognized set."""

    def __init__(self, token: str, file_path: str | None = None):
        self.token = token
        self.file_path = file_path
        location = file_path if file_path else "<unknown file>"
        super().__init__(f"{location}: Unknown event '{token}'")


class InvalidEventShape(DcsStatsError, ValueError):
    """Argument count or type does not match the typed event."""

    def __init__(self, kind: str, args: Sequence[str], detail: str = ""):
        self.kind = kind
        self.args_received = tuple(args)
        message = f"Invalid event: {kind} (args={list(args)!r})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class FilenameFormatError(DcsStatsError, ValueError):
    """A source filename does not follow the session filename grammar."""

    def __init__(self, file_name: str, detail: str = ""):
        self.file_name = file_name
        message = f"Unexpected session file name '{file_name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnhandledEventKind(DcsStatsError):
    """An event kind reached sortie reconstruction without a handler."""

    def __init__(self, kind: str, file_path: str | None = None):
        self.kind = kind
        self.file_path = file_path
        message = f"Unhandled event {kind}"
        if file_path:
            message = f"{file_path}: {message}"
        super().__init__(message)


class ConfigError(DcsStatsError, ValueError):
    """Configuration values are missing or invalid."""
