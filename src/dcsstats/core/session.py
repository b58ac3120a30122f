"""
Session Builder

A session is everything one player did during one connection to the server.
The server writes one log file per session and encodes the session metadata
in its name:

    <epochStart>-[<missionName>]-[<playerName>]-[<playerId>].csv
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from dcsstats.core.constants import (
    FILENAME_MIN_TOKENS,
    FILENAME_TOKEN_SEPARATOR,
    FILENAME_TOKEN_SUFFIXES,
)
from dcsstats.core.errors import FilenameFormatError
from dcsstats.core.events import RawEvent, read_events

if TYPE_CHECKING:
    from dcsstats.state_machine import Sortie

logger = logging.getLogger(__name__)

_EPOCH_PATTERN = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class FileNameInfo:
    """Session metadata encoded in a log file name."""

    session_start: int
    mission_name: str
    player_name: str
    player_id: str


@dataclass
class Session:
    """One player log file with its decoded events and reconstructed sorties."""

    file_name: str
    mission_name: str
    session_start: int
    player_id: str
    player_name: str
    source: str
    events: tuple[RawEvent, ...] = ()
    sorties: list[Sortie] = field(default_factory=list)

    @property
    def started_at(self) -> datetime:
        """Session start as an aware UTC datetime."""
        return datetime.fromtimestamp(self.session_start, tz=UTC)

    @property
    def event_count(self) -> int:
        return len(self.events)


def parse_filename(file_name: str | Path) -> FileNameInfo:
    """
    Parse the session metadata out of a log file name.

    Tokens are taken verbatim; names containing brackets are not unescaped.

    Args:
        file_name: Base name or full path of the log file

    Returns:
        FileNameInfo with start time, mission, player name and player id

    Raises:
        FilenameFormatError: If the name has too few tokens or the start
            time is not an integer
    """
    name = Path(file_name).name
    tokens = name.split(FILENAME_TOKEN_SEPARATOR)
    for i, token in enumerate(tokens):
        for suffix in FILENAME_TOKEN_SUFFIXES:
            token = token.removesuffix(suffix)
        tokens[i] = token

    if len(tokens) < FILENAME_MIN_TOKENS:
        raise FilenameFormatError(
            name, f"expected {FILENAME_MIN_TOKENS} tokens, found {len(tokens)}"
        )
    if not _EPOCH_PATTERN.fullmatch(tokens[0]):
        raise FilenameFormatError(name, f"session start '{tokens[0]}' is not an integer")

    return FileNameInfo(
        session_start=int(tokens[0]),
        mission_name=tokens[1],
        player_name=tokens[2],
        player_id=tokens[3],
    )


def build_session(
    file_path: str | Path,
    source: str,
    events: list[RawEvent] | tuple[RawEvent, ...] | None = None,
) -> Session:
    """
    Build a Session for one log file.

    Args:
        file_path: Path of the log file
        source: Name of the source directory the file came from
        events: Already decoded events; read from file_path when omitted

    Returns:
        Session without sorties; reconstruction fills them in later
    """
    path = Path(file_path)
    info = parse_filename(path.name)

    if events is None:
        events = read_events(path)

    logger.debug(
        f"Built session {path.name}: player={info.player_id} "
        f"mission={info.mission_name} events={len(events)}"
    )

    return Session(
        file_name=str(path),
        mission_name=info.mission_name,
        session_start=info.session_start,
        player_id=info.player_id,
        player_name=info.player_name,
        source=source,
        events=tuple(events),
    )
