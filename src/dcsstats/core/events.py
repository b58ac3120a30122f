"""
Event Decoder for dedicated server player logs

Each line of a player log is one event:

    <epochSeconds>;<kind>;<arg0>;<arg1>;...

Decoding is two-staged:
- decode_line() produces a RawEvent (timestamp, kind, positional args)
- to_typed() converts a RawEvent into one of the typed event dataclasses,
  checking the argument shape through a per-kind decode table

Typed events keep a copy of the (time, kind) header next to their own
fields; they never hold on to the RawEvent they were built from.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, TypeVar, Union

from dcsstats.core.constants import BLANK_LINE, EVENT_TOKENS, FIELD_DELIMITER, EventKind
from dcsstats.core.errors import InvalidEventShape, ParseError, UnknownEventKind

logger = logging.getLogger(__name__)

_INT_PATTERN = re.compile(r"[+-]?\d+")


# ============================================================================
# Raw Events
# ============================================================================


@dataclass(frozen=True)
class RawEvent:
    """A decoded log line before shape validation."""

    time: int
    kind: EventKind
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class EventHeader:
    """Timestamp and kind shared by every typed event."""

    time: int
    kind: EventKind


class _HeaderFields:
    """Exposes the header of a typed event as plain attributes."""

    header: EventHeader

    @property
    def time(self) -> int:
        return self.header.time

    @property
    def kind(self) -> EventKind:
        return self.header.kind


# ============================================================================
# Typed Events
# ============================================================================


@dataclass(frozen=True)
class ConnectEvent(_HeaderFields):
    header: EventHeader

    def to_args(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class DisconnectEvent(_HeaderFields):
    header: EventHeader

    def to_args(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class SelfKillEvent(_HeaderFields):
    header: EventHeader

    def to_args(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class TakeoffEvent(_HeaderFields):
    """Wheels up. The airdome is missing for takeoffs outside an airfield."""

    header: EventHeader
    unit_id: str
    airdome_name: str | None = None

    def to_args(self) -> tuple[str, ...]:
        if self.airdome_name is None:
            return (self.unit_id,)
        return (self.unit_id, self.airdome_name)


@dataclass(frozen=True)
class LandingEvent(_HeaderFields):
    header: EventHeader
    unit_id: str
    airdome_name: str

    def to_args(self) -> tuple[str, ...]:
        return (self.unit_id, self.airdome_name)


@dataclass(frozen=True)
class CrashEvent(_HeaderFields):
    header: EventHeader
    unit_id: str

    def to_args(self) -> tuple[str, ...]:
        return (self.unit_id,)


@dataclass(frozen=True)
class EjectEvent(_HeaderFields):
    header: EventHeader
    unit_id: str

    def to_args(self) -> tuple[str, ...]:
        return (self.unit_id,)


@dataclass(frozen=True)
class PilotDeathEvent(_HeaderFields):
    header: EventHeader
    unit_id: str

    def to_args(self) -> tuple[str, ...]:
        return (self.unit_id,)


@dataclass(frozen=True)
class ChangeSlotEvent(_HeaderFields):
    """The player moved to another slot (side, unit and aircraft type)."""

    header: EventHeader
    side: int
    unit_id: str
    unit_type: str
    role: str
    group_name: str

    def to_args(self) -> tuple[str, ...]:
        return (str(self.side), self.unit_id, self.unit_type, self.role, self.group_name)


@dataclass(frozen=True)
class KillEvent(_HeaderFields):
    """The player destroyed a unit."""

    header: EventHeader
    killer_unit_type: str
    killer_side: int
    victim_player_id: str
    victim_unit_type: str
    victim_side: int
    weapon_name: str

    def to_args(self) -> tuple[str, ...]:
        return (
            self.killer_unit_type,
            str(self.killer_side),
            self.victim_player_id,
            self.victim_unit_type,
            str(self.victim_side),
            self.weapon_name,
        )


@dataclass(frozen=True)
class KilledByEvent(_HeaderFields):
    """The player was shot down. Example line:

    1618442167;killed_by;Su-27;1;-1;FA-18C_hornet;2;R-27ET (AA-10 Alamo D)
    """

    header: EventHeader
    killer_unit_type: str
    killer_side: int
    killer_player_id: str
    victim_unit_type: str
    victim_side: int
    weapon_name: str

    def to_args(self) -> tuple[str, ...]:
        return (
            self.killer_unit_type,
            str(self.killer_side),
            self.killer_player_id,
            self.victim_unit_type,
            str(self.victim_side),
            self.weapon_name,
        )


@dataclass(frozen=True)
class FriendlyFireEvent(_HeaderFields):
    header: EventHeader
    weapon_name: str
    victim_player_id: str

    def to_args(self) -> tuple[str, ...]:
        return (self.weapon_name, self.victim_player_id)


TypedEvent = Union[
    ConnectEvent,
    DisconnectEvent,
    SelfKillEvent,
    TakeoffEvent,
    LandingEvent,
    CrashEvent,
    EjectEvent,
    PilotDeathEvent,
    ChangeSlotEvent,
    KillEvent,
    KilledByEvent,
    FriendlyFireEvent,
]

T = TypeVar("T", bound=_HeaderFields)


# ============================================================================
# Decode Table
# ============================================================================


def _parse_side(kind: EventKind, args: Sequence[str], index: int) -> int:
    """Parse a faction side id argument."""
    value = args[index]
    if not _INT_PATTERN.fullmatch(value):
        raise InvalidEventShape(kind, args, f"side '{value}' is not numeric")
    return int(value)


class _EventShape(NamedTuple):
    """Accepted argument count range and builder for one event kind."""

    event_class: type
    min_args: int
    max_args: int
    build: Callable[[EventHeader, tuple[str, ...]], TypedEvent]


_EVENT_SHAPES: dict[EventKind, _EventShape] = {
    EventKind.CONNECT: _EventShape(ConnectEvent, 0, 0, lambda h, a: ConnectEvent(h)),
    EventKind.DISCONNECT: _EventShape(DisconnectEvent, 0, 0, lambda h, a: DisconnectEvent(h)),
    EventKind.SELF_KILL: _EventShape(SelfKillEvent, 0, 0, lambda h, a: SelfKillEvent(h)),
    EventKind.TAKEOFF: _EventShape(
        TakeoffEvent,
        1,
        2,
        lambda h, a: TakeoffEvent(h, unit_id=a[0], airdome_name=a[1] if len(a) == 2 else None),
    ),
    EventKind.LANDING: _EventShape(
        LandingEvent, 2, 2, lambda h, a: LandingEvent(h, unit_id=a[0], airdome_name=a[1])
    ),
    EventKind.CRASH: _EventShape(CrashEvent, 1, 1, lambda h, a: CrashEvent(h, unit_id=a[0])),
    EventKind.EJECT: _EventShape(EjectEvent, 1, 1, lambda h, a: EjectEvent(h, unit_id=a[0])),
    EventKind.PILOT_DEATH: _EventShape(
        PilotDeathEvent, 1, 1, lambda h, a: PilotDeathEvent(h, unit_id=a[0])
    ),
    EventKind.CHANGE_SLOT: _EventShape(
        ChangeSlotEvent,
        5,
        5,
        lambda h, a: ChangeSlotEvent(
            h,
            side=_parse_side(h.kind, a, 0),
            unit_id=a[1],
            unit_type=a[2],
            role=a[3],
            group_name=a[4],
        ),
    ),
    EventKind.KILL: _EventShape(
        KillEvent,
        6,
        6,
        lambda h, a: KillEvent(
            h,
            killer_unit_type=a[0],
            killer_side=_parse_side(h.kind, a, 1),
            victim_player_id=a[2],
            victim_unit_type=a[3],
            victim_side=_parse_side(h.kind, a, 4),
            weapon_name=a[5],
        ),
    ),
    EventKind.KILLED_BY: _EventShape(
        KilledByEvent,
        6,
        6,
        lambda h, a: KilledByEvent(
            h,
            killer_unit_type=a[0],
            killer_side=_parse_side(h.kind, a, 1),
            killer_player_id=a[2],
            victim_unit_type=a[3],
            victim_side=_parse_side(h.kind, a, 4),
            weapon_name=a[5],
        ),
    ),
    EventKind.FRIENDLY_FIRE: _EventShape(
        FriendlyFireEvent,
        2,
        2,
        lambda h, a: FriendlyFireEvent(h, weapon_name=a[0], victim_player_id=a[1]),
    ),
}

TYPED_EVENT_CLASSES: dict[EventKind, type] = {
    kind: shape.event_class for kind, shape in _EVENT_SHAPES.items()
}


# ============================================================================
# Decoding
# ============================================================================


def decode_line(line: str, file_path: str | Path | None = None) -> RawEvent:
    """
    Decode a single log line into a RawEvent.

    Args:
        line: One line of a player log, without the line terminator
        file_path: Originating file, used in error messages

    Returns:
        RawEvent with the remaining columns as positional arguments

    Raises:
        ParseError: If the timestamp column is not an integer
        UnknownEventKind: If the kind token is not recognized
    """
    path = str(file_path) if file_path is not None else None
    columns = line.split(FIELD_DELIMITER)

    if not _INT_PATTERN.fullmatch(columns[0]):
        raise ParseError(f"Invalid event time '{columns[0]}'", file_path=path)
    event_time = int(columns[0])

    token = columns[1] if len(columns) > 1 else ""
    kind = EVENT_TOKENS.get(token)
    if kind is None:
        raise UnknownEventKind(token, file_path=path)

    return RawEvent(time=event_time, kind=kind, args=tuple(columns[2:]))


def to_typed(raw: RawEvent) -> TypedEvent:
    """
    Convert a RawEvent into its typed counterpart.

    Raises:
        InvalidEventShape: If the argument count or a numeric field is wrong
    """
    shape = _EVENT_SHAPES[raw.kind]
    if not shape.min_args <= len(raw.args) <= shape.max_args:
        if shape.min_args == shape.max_args:
            expected = str(shape.min_args)
        else:
            expected = f"{shape.min_args}-{shape.max_args}"
        raise InvalidEventShape(
            raw.kind, raw.args, f"expected {expected} arguments, got {len(raw.args)}"
        )
    return shape.build(EventHeader(time=raw.time, kind=raw.kind), raw.args)


def to_typed_as(raw: RawEvent, event_class: type[T]) -> T:
    """
    Convert a RawEvent, requiring it to be of a specific typed class.

    Raises:
        InvalidEventShape: If the event is of another kind or malformed
    """
    if TYPED_EVENT_CLASSES[raw.kind] is not event_class:
        raise InvalidEventShape(raw.kind, raw.args, f"expected {event_class.__name__}")
    return to_typed(raw)  # type: ignore[return-value]


def encode_event(event: RawEvent | TypedEvent) -> str:
    """Encode a raw or typed event back into a log line."""
    if isinstance(event, RawEvent):
        args = event.args
    else:
        args = event.to_args()
    return FIELD_DELIMITER.join([str(event.time), event.kind.value, *args])


def read_events(file_path: str | Path) -> list[RawEvent]:
    """
    Read and decode every event of a player log file.

    Blank lines are skipped; events keep the order of the file.

    Raises:
        ParseError, UnknownEventKind: On the first malformed line or
            bytes that are not valid UTF-8
        OSError: If the file cannot be read
    """
    path = Path(file_path)
    events: list[RawEvent] = []

    try:
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.rstrip("\r\n")
                if line == BLANK_LINE:
                    continue
                events.append(decode_line(line, file_path=path))
    except UnicodeDecodeError as e:
        raise ParseError(
            f"Invalid UTF-8 data after {len(events)} events: {e.reason}",
            file_path=str(path),
        ) from e

    logger.debug(f"Decoded {len(events)} events from {path.name}")
    return events
