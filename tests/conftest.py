"""Shared fixtures for dcsstats tests."""

from pathlib import Path

import pytest

from dcsstats.core.events import decode_line
from dcsstats.core.session import Session


@pytest.fixture
def write_log(tmp_path):
    """Factory writing a player log file into a source directory."""

    def _write(lines: list[str], name: str = "1000-[MissionA]-[Pilot1]-[P123].csv", source="main"):
        directory = tmp_path / source
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_session():
    """Factory building an in-memory Session from log lines."""

    def _make(
        lines: list[str],
        player_id: str = "P123",
        player_name: str = "Pilot1",
        session_start: int = 1000,
        file_name: str | None = None,
    ) -> Session:
        events = tuple(decode_line(line) for line in lines)
        return Session(
            file_name=file_name or f"{session_start}-[MissionA]-[{player_name}]-[{player_id}].csv",
            mission_name="MissionA",
            session_start=session_start,
            player_id=player_id,
            player_name=player_name,
            source="main",
            events=events,
        )

    return _make


@pytest.fixture
def scenario_lines() -> list[str]:
    """One takeoff and landing between connect and disconnect."""
    return [
        "1000;connect",
        "1010;takeoff;10",
        "1500;landing;10;Airbase",
        "1510;disconnect",
    ]


@pytest.fixture
def source_dir(tmp_path) -> Path:
    directory = tmp_path / "main"
    directory.mkdir()
    return directory
