"""
dcsstats Core - Foundation modules for log decoding.

This module contains the fundamental components:
- constants: Event kinds, end reasons and log format values
- errors: Exception taxonomy
- events: Line decoding and typed events
- session: Filename parsing and session building
- config: Application configuration management
- utils: Timing and formatting helpers
"""

from dcsstats.core.constants import (
    EVENT_TOKENS,
    GRACE_WINDOW_SECONDS,
    EndReason,
    EventKind,
)
from dcsstats.core.errors import (
    ConfigError,
    DcsStatsError,
    FilenameFormatError,
    InvalidEventShape,
    ParseError,
    UnhandledEventKind,
    UnknownEventKind,
)
from dcsstats.core.events import (
    RawEvent,
    TypedEvent,
    decode_line,
    encode_event,
    read_events,
    to_typed,
)
from dcsstats.core.session import FileNameInfo, Session, build_session, parse_filename

__all__ = [
    # Constants
    "EVENT_TOKENS",
    "GRACE_WINDOW_SECONDS",
    "EndReason",
    "EventKind",
    # Errors
    "ConfigError",
    "DcsStatsError",
    "FilenameFormatError",
    "InvalidEventShape",
    "ParseError",
    "UnhandledEventKind",
    "UnknownEventKind",
    # Events
    "RawEvent",
    "TypedEvent",
    "decode_line",
    "encode_event",
    "read_events",
    "to_typed",
    # Sessions
    "FileNameInfo",
    "Session",
    "build_session",
    "parse_filename",
]
