"""
Player Aggregator

Folds sessions from any number of log files into one record per stable
player id.

Display names change over time; the stored name is the one from the session
with the greatest encoded start time, whatever order the files are read in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from dcsstats.core.errors import InvalidEventShape
from dcsstats.core.events import ConnectEvent, DisconnectEvent, to_typed_as
from dcsstats.core.session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerNameInfo:
    """A display name and the session start time it was seen at."""

    name: str
    occurred: int


@dataclass
class Player:
    """All sessions of one player id."""

    player_id: str
    name_info: PlayerNameInfo
    sessions: list[Session] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.name_info.name

    @property
    def sortie_count(self) -> int:
        return sum(len(session.sorties) for session in self.sessions)


# ============================================================================
# Play Time
# ============================================================================


def session_play_time(session: Session) -> int | None:
    """
    Seconds between the connect and disconnect bookends of a session.

    Returns:
        Play time in seconds, or None if the session does not start with a
        connect event and end with a disconnect event
    """
    if not session.events:
        logger.warning(f'Could not handle play time file "{session.file_name}": no events')
        return None

    try:
        connect = to_typed_as(session.events[0], ConnectEvent)
        disconnect = to_typed_as(session.events[-1], DisconnectEvent)
    except InvalidEventShape as e:
        logger.warning(f'Could not handle play time file "{session.file_name}": {e}')
        return None

    return disconnect.time - connect.time


def total_play_time(player: Player) -> int:
    """Sum of the play time of every session with valid bookends."""
    total = 0
    for session in player.sessions:
        play_time = session_play_time(session)
        if play_time is not None:
            total += play_time
    return total


# ============================================================================
# Registry
# ============================================================================


class PlayerRegistry:
    """
    The id -> Player mapping built by the aggregation stage.

    Merges are order independent for display names because only the encoded
    session start time decides which name wins.

    Usage:
        registry = PlayerRegistry()
        for session in sessions:
            registry.merge(session)
        names = registry.player_names()
    """

    def __init__(self) -> None:
        self._players: dict[str, Player] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __iter__(self) -> Iterator[Player]:
        return iter(self._players.values())

    def get(self, player_id: str) -> Player | None:
        return self._players.get(player_id)

    def merge(self, session: Session) -> Player:
        """
        Add a session to its player, creating the player on first sight.

        Args:
            session: Session built from one log file

        Returns:
            The player the session was added to
        """
        player = self._players.get(session.player_id)

        if player is None:
            player = Player(
                player_id=session.player_id,
                name_info=PlayerNameInfo(name=session.player_name, occurred=session.session_start),
            )
            self._players[session.player_id] = player
            logger.debug(f"New player {session.player_id} ({session.player_name})")
        elif session.session_start > player.name_info.occurred:
            if session.player_name != player.name_info.name:
                logger.debug(
                    f"Player {session.player_id} renamed "
                    f"'{player.name_info.name}' -> '{session.player_name}'"
                )
            player.name_info = PlayerNameInfo(
                name=session.player_name, occurred=session.session_start
            )

        player.sessions.append(session)
        return player

    def merge_all(self, sessions: Iterable[Session]) -> PlayerRegistry:
        for session in sessions:
            self.merge(session)
        return self

    def player_names(self) -> dict[str, str]:
        """Player id -> most recent display name."""
        return {player.player_id: player.name for player in self}

    def total_play_times(self) -> dict[str, int]:
        """Player id -> total play time in seconds."""
        return {player.player_id: total_play_time(player) for player in self}


def aggregate_sessions(sessions: Iterable[Session]) -> PlayerRegistry:
    """Fold sessions into a new PlayerRegistry."""
    return PlayerRegistry().merge_all(sessions)
