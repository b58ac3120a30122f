"""
Sortie Reconstruction Engine

Walks the events of one session in file order and cuts them into sorties:
takeoff, whatever happens in the air, and a terminal event that decides why
the sortie ended.

Terminal events rarely come alone. A shoot-down is typically logged as
killed_by, crash and pilot_death within a few seconds, followed by a slot
change or a disconnect. The engine resolves such bursts into one end reason
with a fixed precedence:

    SelfKill > KilledBy > Crash > PilotDeath > Eject > Landing | Disconnect

Per-sortie states:
- OPEN: accumulating, no terminal event seen
- CLOSING: the first terminal event set the end time; later terminal events
  within the grace window may still upgrade (never move) the end reason
- CLOSED: an event arrived after the grace window; reason and boundaries
  are final
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from dcsstats.core.constants import (
    GRACE_WINDOW_SECONDS,
    LATE_TERMINAL_DISCARD,
    LATE_TERMINAL_NEW_SORTIE,
    LATE_TERMINAL_POLICIES,
    EndReason,
    EventKind,
)
from dcsstats.core.errors import UnhandledEventKind
from dcsstats.core.events import (
    ChangeSlotEvent,
    ConnectEvent,
    CrashEvent,
    DisconnectEvent,
    EjectEvent,
    FriendlyFireEvent,
    KilledByEvent,
    KillEvent,
    LandingEvent,
    PilotDeathEvent,
    RawEvent,
    TakeoffEvent,
    to_typed_as,
)

if TYPE_CHECKING:
    from dcsstats.core.session import Session

logger = logging.getLogger(__name__)


# ============================================================================
# End Reason Precedence
# ============================================================================

# Reason proposed by each terminal-candidate kind. A slot change without any
# prior reason is recorded as SelfKill, which is how the server history has
# always labelled it.
CANDIDATE_REASONS: dict[EventKind, EndReason] = {
    EventKind.KILLED_BY: EndReason.KILLED_BY,
    EventKind.CRASH: EndReason.CRASH,
    EventKind.PILOT_DEATH: EndReason.PILOT_DEATH,
    EventKind.EJECT: EndReason.EJECT,
    EventKind.LANDING: EndReason.LANDING,
    EventKind.DISCONNECT: EndReason.DISCONNECT,
    EventKind.CHANGE_SLOT: EndReason.SELF_KILL,
}

# Kinds that only ever fill an empty reason
FILL_ONLY_KINDS = frozenset({EventKind.LANDING, EventKind.DISCONNECT, EventKind.CHANGE_SLOT})

REASON_PRECEDENCE: dict[EndReason, int] = {
    EndReason.SELF_KILL: 5,
    EndReason.KILLED_BY: 4,
    EndReason.CRASH: 3,
    EndReason.PILOT_DEATH: 2,
    EndReason.EJECT: 1,
    EndReason.LANDING: 0,
    EndReason.DISCONNECT: 0,
}


def resolve_end_reason(current: EndReason | None, kind: EventKind) -> EndReason | None:
    """
    Decide the end reason after a terminal-candidate event.

    Args:
        current: Reason already recorded on the sortie (None if unset)
        kind: Kind of the terminal-candidate event

    Returns:
        The reason the sortie should carry afterwards
    """
    candidate = CANDIDATE_REASONS[kind]
    if current is None:
        return candidate
    if kind in FILL_ONLY_KINDS or current is EndReason.SELF_KILL:
        return current
    if REASON_PRECEDENCE[candidate] > REASON_PRECEDENCE[current]:
        return candidate
    return current


# ============================================================================
# Data Structures
# ============================================================================


class SortieState(Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Sortie:
    """One flight of a player, from takeoff to its resolved terminal event."""

    start_time: int | None = None
    end_time: int | None = None
    plane: str = ""
    end_reason: EndReason | None = None

    takeoff: TakeoffEvent | None = None
    landing: LandingEvent | None = None
    eject: EjectEvent | None = None
    pilot_death: PilotDeathEvent | None = None
    killed_by: KilledByEvent | None = None
    crash: CrashEvent | None = None
    kills: list[KillEvent] = field(default_factory=list)
    friendly_fires: list[FriendlyFireEvent] = field(default_factory=list)

    events: list[RawEvent] = field(default_factory=list)

    @property
    def duration_seconds(self) -> int | None:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def has_activity(self) -> bool:
        """
        True once the accumulator saw a takeoff or air-to-air activity.

        Connect, a slot pick or a disconnect on the ground are session
        bookkeeping and do not make a sortie.
        """
        return self.start_time is not None or bool(self.kills) or bool(self.friendly_fires)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_seconds": self.duration_seconds,
            "plane": self.plane,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "takeoff_airdome": self.takeoff.airdome_name if self.takeoff else None,
            "landing_airdome": self.landing.airdome_name if self.landing else None,
            "kills": [
                {
                    "time": kill.time,
                    "victim_player_id": kill.victim_player_id,
                    "victim_unit_type": kill.victim_unit_type,
                    "victim_side": kill.victim_side,
                    "weapon": kill.weapon_name,
                }
                for kill in self.kills
            ],
            "friendly_fires": [
                {
                    "time": ff.time,
                    "victim_player_id": ff.victim_player_id,
                    "weapon": ff.weapon_name,
                }
                for ff in self.friendly_fires
            ],
            "killed_by": (
                {
                    "killer_player_id": self.killed_by.killer_player_id,
                    "killer_unit_type": self.killed_by.killer_unit_type,
                    "weapon": self.killed_by.weapon_name,
                }
                if self.killed_by
                else None
            ),
            "event_count": len(self.events),
        }


@dataclass
class _Walk:
    """Mutable state of one pass over a session."""

    file_path: str | None
    sorties: list[Sortie] = field(default_factory=list)
    current: Sortie = field(default_factory=Sortie)
    state: SortieState = SortieState.OPEN
    last_plane: str = ""
    # Set for a sortie opened by a late terminal event, which is kept
    # even without a takeoff
    keep_current: bool = False

    def finalize(self) -> None:
        if self.current.has_activity or self.keep_current:
            self.sorties.append(self.current)

    def start_new_sortie(self, keep: bool = False) -> None:
        self.finalize()
        self.current = Sortie(plane=self.last_plane)
        self.state = SortieState.OPEN
        self.keep_current = keep


# ============================================================================
# Reconstructor
# ============================================================================


class SortieReconstructor:
    """
    Cuts a session's events into sorties.

    The reconstructor holds only configuration, so one instance can be
    shared between threads.

    Usage:
        reconstructor = SortieReconstructor()
        sorties = reconstructor.reconstruct(session)
    """

    def __init__(
        self,
        grace_window_seconds: int = GRACE_WINDOW_SECONDS,
        late_terminal_policy: str = LATE_TERMINAL_DISCARD,
    ):
        """
        Args:
            grace_window_seconds: How long after a sortie's end time later
                terminal events may still upgrade its end reason
            late_terminal_policy: "discard" ignores terminal events after the
                grace window; "new_sortie" evaluates them against a new sortie
        """
        if grace_window_seconds < 0:
            raise ValueError(f"grace_window_seconds must be >= 0, got {grace_window_seconds}")
        if late_terminal_policy not in LATE_TERMINAL_POLICIES:
            raise ValueError(
                f"Unknown late_terminal_policy '{late_terminal_policy}', "
                f"expected one of {LATE_TERMINAL_POLICIES}"
            )
        self.grace_window_seconds = grace_window_seconds
        self.late_terminal_policy = late_terminal_policy

        self._handlers: dict[EventKind, Callable[[_Walk, RawEvent], None]] = {
            EventKind.CONNECT: self._on_connect,
            EventKind.TAKEOFF: self._on_takeoff,
            EventKind.KILL: self._on_kill,
            EventKind.FRIENDLY_FIRE: self._on_friendly_fire,
            EventKind.CHANGE_SLOT: self._on_change_slot,
            EventKind.DISCONNECT: self._on_disconnect,
            EventKind.LANDING: self._on_landing,
            EventKind.CRASH: self._on_crash,
            EventKind.EJECT: self._on_eject,
            EventKind.PILOT_DEATH: self._on_pilot_death,
            EventKind.KILLED_BY: self._on_killed_by,
        }

    def reconstruct(self, session: Session) -> list[Sortie]:
        """
        Reconstruct the sorties of a session.

        Args:
            session: Session whose events are walked in file order

        Returns:
            Sorties in chronological order

        Raises:
            UnhandledEventKind: If an event kind has no handler
            InvalidEventShape: If an event's arguments do not fit its kind
        """
        return self.reconstruct_events(session.events, file_path=session.file_name)

    def reconstruct_events(
        self, events: tuple[RawEvent, ...] | list[RawEvent], file_path: str | None = None
    ) -> list[Sortie]:
        """Reconstruct sorties from a bare event sequence."""
        walk = _Walk(file_path=file_path)

        for raw in events:
            handler = self._handlers.get(raw.kind)
            if handler is None:
                raise UnhandledEventKind(raw.kind, file_path=file_path)

            self._expire_grace_window(walk, raw.time)
            handler(walk, raw)
            walk.current.events.append(raw)

        walk.finalize()
        return walk.sorties

    # ------------------------------------------------------------------
    # Terminal evaluation
    # ------------------------------------------------------------------

    def _expire_grace_window(self, walk: _Walk, event_time: int) -> None:
        end_time = walk.current.end_time
        if walk.state is SortieState.CLOSING and end_time is not None:
            if event_time - end_time > self.grace_window_seconds:
                walk.state = SortieState.CLOSED

    def _evaluate_terminal(self, walk: _Walk, raw: RawEvent) -> bool:
        """Apply a terminal-candidate event; False if it was ignored."""
        if walk.state is SortieState.CLOSED:
            if self.late_terminal_policy == LATE_TERMINAL_NEW_SORTIE:
                walk.start_new_sortie(keep=True)
            else:
                logger.debug(
                    f"{walk.file_path}: ignoring {raw.kind} at {raw.time}, "
                    f"outside grace window of sortie ended at {walk.current.end_time}"
                )
                return False

        sortie = walk.current
        sortie.end_reason = resolve_end_reason(sortie.end_reason, raw.kind)
        if sortie.end_time is None:
            sortie.end_time = raw.time
            walk.state = SortieState.CLOSING
        return True

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_connect(self, walk: _Walk, raw: RawEvent) -> None:
        to_typed_as(raw, ConnectEvent)

    def _on_takeoff(self, walk: _Walk, raw: RawEvent) -> None:
        takeoff = to_typed_as(raw, TakeoffEvent)
        if walk.state is not SortieState.OPEN:
            walk.start_new_sortie()
        walk.current.start_time = raw.time
        walk.current.takeoff = takeoff

    def _on_kill(self, walk: _Walk, raw: RawEvent) -> None:
        walk.current.kills.append(to_typed_as(raw, KillEvent))

    def _on_friendly_fire(self, walk: _Walk, raw: RawEvent) -> None:
        walk.current.friendly_fires.append(to_typed_as(raw, FriendlyFireEvent))

    def _on_change_slot(self, walk: _Walk, raw: RawEvent) -> None:
        change_slot = to_typed_as(raw, ChangeSlotEvent)
        walk.last_plane = change_slot.unit_type
        # Once a terminal event was seen the sortie keeps the aircraft it flew;
        # the new slot carries over to the next sortie
        if walk.state is SortieState.OPEN:
            walk.current.plane = change_slot.unit_type
        self._evaluate_terminal(walk, raw)

    def _on_disconnect(self, walk: _Walk, raw: RawEvent) -> None:
        to_typed_as(raw, DisconnectEvent)
        self._evaluate_terminal(walk, raw)

    def _on_landing(self, walk: _Walk, raw: RawEvent) -> None:
        landing = to_typed_as(raw, LandingEvent)
        if self._evaluate_terminal(walk, raw):
            walk.current.landing = landing

    def _on_crash(self, walk: _Walk, raw: RawEvent) -> None:
        crash = to_typed_as(raw, CrashEvent)
        if self._evaluate_terminal(walk, raw):
            walk.current.crash = crash

    def _on_eject(self, walk: _Walk, raw: RawEvent) -> None:
        eject = to_typed_as(raw, EjectEvent)
        if self._evaluate_terminal(walk, raw):
            walk.current.eject = eject

    def _on_pilot_death(self, walk: _Walk, raw: RawEvent) -> None:
        pilot_death = to_typed_as(raw, PilotDeathEvent)
        if self._evaluate_terminal(walk, raw):
            walk.current.pilot_death = pilot_death

    def _on_killed_by(self, walk: _Walk, raw: RawEvent) -> None:
        killed_by = to_typed_as(raw, KilledByEvent)
        if self._evaluate_terminal(walk, raw):
            walk.current.killed_by = killed_by


# ============================================================================
# Convenience Functions
# ============================================================================


def reconstruct_sorties(
    session: Session,
    grace_window_seconds: int = GRACE_WINDOW_SECONDS,
    late_terminal_policy: str = LATE_TERMINAL_DISCARD,
) -> list[Sortie]:
    """
    Reconstruct the sorties of a session without touching the session.

    Example:
        >>> sorties = reconstruct_sorties(session)
        >>> for sortie in sorties:
        ...     print(sortie.plane, sortie.end_reason)
    """
    reconstructor = SortieReconstructor(grace_window_seconds, late_terminal_policy)
    return reconstructor.reconstruct(session)


def assign_sorties(session: Session, reconstructor: SortieReconstructor | None = None) -> Session:
    """Reconstruct a session's sorties and store them on the session."""
    reconstructor = reconstructor or SortieReconstructor()
    session.sorties = reconstructor.reconstruct(session)
    logger.debug(f"{session.file_name}: {len(session.sorties)} sorties")
    return session
