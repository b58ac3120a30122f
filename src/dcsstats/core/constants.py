"""
dcsstats - Constants

Event kinds, sortie end reasons and the fixed values of the server log format.
"""

from enum import StrEnum


class EventKind(StrEnum):
    """
    Player event kinds written by the server hook.

    The value is the token used in the second column of a log line.
    """

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    KILL = "kill"
    KILLED_BY = "killed_by"
    SELF_KILL = "self_kill"
    CHANGE_SLOT = "change_slot"
    CRASH = "crash"
    EJECT = "eject"
    TAKEOFF = "takeoff"
    LANDING = "landing"
    PILOT_DEATH = "pilot_death"
    FRIENDLY_FIRE = "friendly_fire"


class EndReason(StrEnum):
    """Classified cause of a sortie's termination."""

    SELF_KILL = "SelfKill"
    KILLED_BY = "KilledBy"
    CRASH = "Crash"
    PILOT_DEATH = "PilotDeath"
    EJECT = "Eject"
    LANDING = "Landing"
    DISCONNECT = "Disconnect"


# Lookup from log token to kind
EVENT_TOKENS: dict[str, EventKind] = {kind.value: kind for kind in EventKind}

# Log line layout
FIELD_DELIMITER = ";"
BLANK_LINE = ""

# Filename layout: <epochStart>-[<mission>]-[<playerName>]-[<playerId>].csv
FILENAME_TOKEN_SEPARATOR = "-["
FILENAME_TOKEN_SUFFIXES = ("]", "].csv")
FILENAME_MIN_TOKENS = 4
LOG_FILE_GLOB = "*.csv"

# Later terminal events within this many seconds of a sortie's end time may
# still upgrade the end reason
GRACE_WINDOW_SECONDS = 30

# What to do with a terminal event arriving after the grace window
LATE_TERMINAL_DISCARD = "discard"
LATE_TERMINAL_NEW_SORTIE = "new_sortie"
LATE_TERMINAL_POLICIES = (LATE_TERMINAL_DISCARD, LATE_TERMINAL_NEW_SORTIE)

# Output artifact names
PLAYER_NAMES_FILE = "player-names.json"
TOTAL_TIMES_FILE = "total-times.json"
SORTIES_FILE = "sorties.json"
