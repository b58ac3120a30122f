"""Tests for sortie reconstruction and end reason precedence."""

from itertools import combinations, permutations

import pytest

from dcsstats.core.constants import EndReason, EventKind
from dcsstats.core.errors import InvalidEventShape, UnhandledEventKind
from dcsstats.state_machine import (
    REASON_PRECEDENCE,
    Sortie,
    SortieReconstructor,
    assign_sorties,
    reconstruct_sorties,
    resolve_end_reason,
)

TERMINAL_LINES = {
    EventKind.DISCONNECT: "{t};disconnect",
    EventKind.LANDING: "{t};landing;10;Airbase",
    EventKind.EJECT: "{t};eject;10",
    EventKind.PILOT_DEATH: "{t};pilot_death;10",
    EventKind.CRASH: "{t};crash;10",
    EventKind.KILLED_BY: "{t};killed_by;Su-27;1;-1;FA-18C_hornet;2;R-27ET",
}

KIND_REASONS = {
    EventKind.DISCONNECT: EndReason.DISCONNECT,
    EventKind.LANDING: EndReason.LANDING,
    EventKind.EJECT: EndReason.EJECT,
    EventKind.PILOT_DEATH: EndReason.PILOT_DEATH,
    EventKind.CRASH: EndReason.CRASH,
    EventKind.KILLED_BY: EndReason.KILLED_BY,
}


class TestResolveEndReason:
    """Tests for the precedence rule."""

    def test_empty_reason_takes_candidate(self):
        for kind, reason in KIND_REASONS.items():
            assert resolve_end_reason(None, kind) is reason

    def test_self_kill_never_overridden(self):
        for kind in KIND_REASONS:
            assert resolve_end_reason(EndReason.SELF_KILL, kind) is EndReason.SELF_KILL

    def test_killed_by_overrides_crash(self):
        assert resolve_end_reason(EndReason.CRASH, EventKind.KILLED_BY) is EndReason.KILLED_BY

    def test_crash_does_not_override_killed_by(self):
        assert resolve_end_reason(EndReason.KILLED_BY, EventKind.CRASH) is EndReason.KILLED_BY

    def test_pilot_death_overrides_eject(self):
        assert resolve_end_reason(EndReason.EJECT, EventKind.PILOT_DEATH) is EndReason.PILOT_DEATH

    def test_eject_overrides_landing_and_disconnect(self):
        assert resolve_end_reason(EndReason.LANDING, EventKind.EJECT) is EndReason.EJECT
        assert resolve_end_reason(EndReason.DISCONNECT, EventKind.EJECT) is EndReason.EJECT

    def test_eject_does_not_override_pilot_death(self):
        assert resolve_end_reason(EndReason.PILOT_DEATH, EventKind.EJECT) is EndReason.PILOT_DEATH

    def test_landing_and_disconnect_only_fill(self):
        assert resolve_end_reason(EndReason.DISCONNECT, EventKind.LANDING) is EndReason.DISCONNECT
        assert resolve_end_reason(EndReason.LANDING, EventKind.DISCONNECT) is EndReason.LANDING

    def test_change_slot_records_self_kill_when_empty(self):
        """Test the slot change label kept from the server history."""
        assert resolve_end_reason(None, EventKind.CHANGE_SLOT) is EndReason.SELF_KILL

    def test_change_slot_only_fills(self):
        assert resolve_end_reason(EndReason.LANDING, EventKind.CHANGE_SLOT) is EndReason.LANDING


class TestScenarios:
    """End-to-end sortie reconstruction scenarios."""

    def test_takeoff_landing_session(self, make_session, scenario_lines):
        """Test a single flight with a disconnect inside the grace window."""
        sorties = reconstruct_sorties(make_session(scenario_lines))

        assert len(sorties) == 1
        sortie = sorties[0]
        assert sortie.start_time == 1010
        assert sortie.end_time == 1500
        assert sortie.end_reason is EndReason.LANDING
        assert sortie.takeoff.unit_id == "10"
        assert sortie.landing.airdome_name == "Airbase"
        assert sortie.duration_seconds == 490

    def test_killed_by_then_crash(self, make_session):
        """Test a crash after a shoot-down keeps KilledBy."""
        session = make_session(
            [
                "1000;connect",
                "1010;takeoff;10",
                "2000;killed_by;Su-27;1;-1;FA-18C_hornet;2;R-27ET",
                "2010;crash;10",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.KILLED_BY
        assert sortie.end_time == 2000
        assert sortie.crash.unit_id == "10"
        assert sortie.killed_by.killer_unit_type == "Su-27"

    def test_upgrade_keeps_end_time(self, make_session):
        """Test a later, stronger reason does not move the end time."""
        session = make_session(
            [
                "1010;takeoff;10",
                "2000;crash;10",
                "2020;killed_by;Su-27;1;-1;FA-18C_hornet;2;R-27ET",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.KILLED_BY
        assert sortie.end_time == 2000

    def test_kills_and_friendly_fire_collected(self, make_session):
        session = make_session(
            [
                "1010;takeoff;10",
                "1100;kill;FA-18C_hornet;2;P2;Su-27;1;AIM-120C",
                "1150;kill;FA-18C_hornet;2;-1;MiG-29A;1;AIM-120C",
                "1200;friendly_fire;AIM-9X;P777",
                "1500;landing;10;Airbase",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert [k.victim_unit_type for k in sortie.kills] == ["Su-27", "MiG-29A"]
        assert sortie.friendly_fires[0].victim_player_id == "P777"
        assert sortie.end_reason is EndReason.LANDING

    def test_kill_does_not_end_sortie(self, make_session):
        session = make_session(
            ["1010;takeoff;10", "1100;kill;FA-18C_hornet;2;P2;Su-27;1;AIM-120C"]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is None
        assert sortie.end_time is None

    def test_two_flights(self, make_session):
        """Test a new takeoff after a landing starts a new sortie."""
        session = make_session(
            [
                "1000;connect",
                "1010;takeoff;10;Batumi",
                "1500;landing;10;Kobuleti",
                "1600;takeoff;10;Kobuleti",
                "2000;eject;10",
                "2005;pilot_death;10",
                "2100;disconnect",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert len(sorties) == 2
        assert (sorties[0].start_time, sorties[0].end_time) == (1010, 1500)
        assert sorties[0].end_reason is EndReason.LANDING
        assert (sorties[1].start_time, sorties[1].end_time) == (1600, 2000)
        assert sorties[1].end_reason is EndReason.PILOT_DEATH
        assert sorties[1].eject is not None
        assert sorties[1].pilot_death is not None

    def test_touch_and_go_inside_grace_window(self, make_session):
        """Test a takeoff right after a landing still opens a new sortie."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1510;takeoff;10",
                "1900;crash;10",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert [s.end_reason for s in sorties] == [EndReason.LANDING, EndReason.CRASH]
        assert sorties[1].start_time == 1510

    def test_event_span(self, make_session, scenario_lines):
        """Test every event lands in the span of its sortie."""
        sortie = reconstruct_sorties(make_session(scenario_lines))[0]
        assert [e.time for e in sortie.events] == [1000, 1010, 1500, 1510]

    def test_connect_only_session_has_no_sorties(self, make_session):
        assert reconstruct_sorties(make_session(["1000;connect"])) == []

    def test_empty_session(self, make_session):
        assert reconstruct_sorties(make_session([])) == []


class TestPrecedenceMonotonicity:
    """Any order of terminal events inside the window yields the strongest reason."""

    @pytest.mark.parametrize("size", [2, 3, 4])
    def test_highest_precedence_wins(self, make_session, size):
        for kinds in combinations(TERMINAL_LINES, size):
            reasons = [KIND_REASONS[k] for k in kinds]
            best = max(reasons, key=REASON_PRECEDENCE.__getitem__)
            if [REASON_PRECEDENCE[r] for r in reasons].count(REASON_PRECEDENCE[best]) > 1:
                continue  # landing and disconnect share a level

            for order in permutations(kinds):
                lines = ["1010;takeoff;10"]
                lines += [TERMINAL_LINES[k].format(t=2000 + i * 5) for i, k in enumerate(order)]

                sortie = reconstruct_sorties(make_session(lines))[0]

                assert sortie.end_reason is best, order
                assert sortie.end_time == 2000

    def test_self_kill_not_downgraded(self, make_session):
        """Test a slot change reason survives stronger events."""
        session = make_session(
            [
                "1010;takeoff;10",
                "2000;change_slot;2;11;F-16C_50;pilot;Viper",
                "2005;killed_by;Su-27;1;-1;FA-18C_hornet;2;R-27ET",
                "2010;crash;10",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.SELF_KILL
        assert sortie.end_time == 2000


class TestGraceWindow:
    """Tests for terminal events around the grace window."""

    def test_late_event_ignored(self, make_session):
        """Test a terminal event after the window changes nothing."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1531;crash;10",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert len(sorties) == 1
        assert sorties[0].end_reason is EndReason.LANDING
        assert sorties[0].end_time == 1500
        assert sorties[0].crash is None

    def test_window_edge_is_inclusive(self, make_session):
        """Test an event exactly at the window edge may still upgrade."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1530;crash;10",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.CRASH
        assert sortie.end_time == 1500

    def test_window_measured_from_end_time(self, make_session):
        """Test chained events do not extend the window."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1520;disconnect",
                "1540;crash;10",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.LANDING

    def test_closed_sortie_stays_closed(self, make_session):
        """Test a non-terminal event does not reopen the window."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1600;kill;FA-18C_hornet;2;P2;Su-27;1;AIM-120C",
                "1601;eject;10",
            ]
        )

        sortie = reconstruct_sorties(session)[0]

        assert sortie.end_reason is EndReason.LANDING
        assert sortie.eject is None

    def test_custom_grace_window(self, make_session):
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1520;crash;10",
            ]
        )

        sortie = reconstruct_sorties(session, grace_window_seconds=10)[0]

        assert sortie.end_reason is EndReason.LANDING

    def test_new_sortie_policy(self, make_session):
        """Test late terminal events can open their own sortie."""
        session = make_session(
            [
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1600;crash;10",
            ]
        )

        sorties = reconstruct_sorties(session, late_terminal_policy="new_sortie")

        assert len(sorties) == 2
        assert sorties[0].end_reason is EndReason.LANDING
        assert sorties[1].start_time is None
        assert sorties[1].end_time == 1600
        assert sorties[1].end_reason is EndReason.CRASH
        assert sorties[1].crash is not None


class TestChangeSlot:
    """Tests for slot changes."""

    def test_plane_carried_into_next_sortie(self, make_session):
        """Test the slot picked before takeoff names the next sortie's plane."""
        session = make_session(
            [
                "1000;connect",
                "1005;change_slot;2;10;FA-18C_hornet;pilot;Hornet",
                "1100;takeoff;10",
                "1500;landing;10;Airbase",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert len(sorties) == 1
        assert sorties[0].start_time == 1100
        assert sorties[0].plane == "FA-18C_hornet"
        assert sorties[0].end_reason is EndReason.LANDING

    def test_slot_pick_before_takeoff_is_not_a_sortie(self, make_session):
        """Test a slot pick on the ground does not report a SelfKill sortie."""
        session = make_session(
            [
                "1000;connect",
                "1005;change_slot;2;10;FA-18C_hornet;pilot;Hornet",
                "1010;takeoff;10",
                "1500;landing;10;Airbase",
                "1510;disconnect",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert [(s.start_time, s.end_time, s.end_reason) for s in sorties] == [
            (1010, 1500, EndReason.LANDING)
        ]

    def test_slot_changes_without_flying(self, make_session):
        """Test a session spent in slot selection has no sorties."""
        session = make_session(
            [
                "1000;connect",
                "1005;change_slot;2;10;FA-18C_hornet;pilot;Hornet",
                "1100;change_slot;2;11;F-16C_50;pilot;Viper",
                "1200;disconnect",
            ]
        )

        assert reconstruct_sorties(session) == []

    def test_slot_change_ends_airborne_sortie(self, make_session):
        """Test a slot change in flight still ends the sortie as SelfKill."""
        session = make_session(
            [
                "1010;takeoff;10",
                "2000;change_slot;2;11;F-16C_50;pilot;Viper",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert len(sorties) == 1
        assert sorties[0].end_reason is EndReason.SELF_KILL
        assert sorties[0].end_time == 2000

    def test_crashed_sortie_keeps_its_plane(self, make_session):
        session = make_session(
            [
                "1005;change_slot;2;10;FA-18C_hornet;pilot;Hornet",
                "1100;takeoff;10",
                "2000;crash;10",
                "2010;change_slot;2;11;F-16C_50;pilot;Viper",
                "2100;takeoff;11",
            ]
        )

        sorties = reconstruct_sorties(session)

        assert len(sorties) == 2
        assert sorties[0].plane == "FA-18C_hornet"
        assert sorties[0].end_reason is EndReason.CRASH
        assert sorties[1].plane == "F-16C_50"
        assert sorties[1].start_time == 2100


class TestErrors:
    """Tests for fatal reconstruction errors."""

    def test_self_kill_event_unhandled(self, make_session):
        session = make_session(["1010;takeoff;10", "1100;self_kill"])

        with pytest.raises(UnhandledEventKind) as exc_info:
            reconstruct_sorties(session)

        assert exc_info.value.kind is EventKind.SELF_KILL
        assert session.file_name in str(exc_info.value)

    def test_missing_handler(self, make_session, monkeypatch):
        """Test any kind without a handler aborts the session."""
        reconstructor = SortieReconstructor()
        monkeypatch.delitem(reconstructor._handlers, EventKind.CRASH)

        with pytest.raises(UnhandledEventKind):
            reconstructor.reconstruct(make_session(["1010;takeoff;10", "2000;crash;10"]))

    def test_malformed_event_raises(self, make_session):
        session = make_session(["1010;takeoff;10", "2000;crash"])
        with pytest.raises(InvalidEventShape):
            reconstruct_sorties(session)

    def test_killed_by_bad_side_raises(self, make_session):
        session = make_session(["1010;takeoff;10", "2000;killed_by;Su-27;red;-1;F-18;2;R-27"])
        with pytest.raises(InvalidEventShape):
            reconstruct_sorties(session)

    @pytest.mark.parametrize("line", ["1000;connect;junk", "1510;disconnect;junk"])
    def test_session_bookends_are_shape_checked(self, make_session, line):
        session = make_session(["1010;takeoff;10", "1500;landing;10;Airbase", line])
        with pytest.raises(InvalidEventShape):
            reconstruct_sorties(session)

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            SortieReconstructor(late_terminal_policy="merge")

    def test_negative_window(self):
        with pytest.raises(ValueError):
            SortieReconstructor(grace_window_seconds=-1)


class TestAssignSorties:
    """Tests for storing sorties on the session."""

    def test_assign(self, make_session, scenario_lines):
        session = make_session(scenario_lines)
        result = assign_sorties(session)

        assert result is session
        assert len(session.sorties) == 1
        assert isinstance(session.sorties[0], Sortie)

    def test_reconstructor_is_reusable(self, make_session, scenario_lines):
        reconstructor = SortieReconstructor()
        first = reconstructor.reconstruct(make_session(scenario_lines))
        second = reconstructor.reconstruct(make_session(scenario_lines))
        assert len(first) == len(second) == 1
        assert first[0] is not second[0]

    def test_to_dict(self, make_session, scenario_lines):
        data = reconstruct_sorties(make_session(scenario_lines))[0].to_dict()
        assert data["end_reason"] == "Landing"
        assert data["start_time"] == 1010
        assert data["landing_airdome"] == "Airbase"
        assert data["event_count"] == 4
