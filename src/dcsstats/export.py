"""
Export Functionality for dcsstats

Writes the aggregated player data as flat JSON documents:
- player-names.json: player id -> most recent display name
- total-times.json: player id -> total play time in seconds
- sorties.json (optional): player id -> sessions with their sorties

All writers expect a fully built PlayerRegistry; a failed run never reaches
them, so no partial output is produced.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from dcsstats.core.config import StatsConfig
from dcsstats.players import PlayerRegistry, session_play_time

logger = logging.getLogger(__name__)


# ============================================================================
# JSON Export
# ============================================================================


def export_to_json(
    data: dict[str, Any],
    output_path: Path | None = None,
    indent: int | None = 2,
    include_metadata: bool = False,
) -> str:
    """
    Export a dictionary to JSON format.

    Args:
        data: Dictionary to export
        output_path: Optional path to write the file
        indent: JSON indentation level (None for compact output)
        include_metadata: Whether to include export metadata

    Returns:
        JSON string
    """
    export_data = data

    if include_metadata:
        export_data = {
            "_metadata": {
                "exported_at": datetime.now().isoformat(),
                "format": "dcsstats_json",
                "version": "1.0",
            },
            **data,
        }

    json_str = json.dumps(export_data, indent=indent, ensure_ascii=False)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_str, encoding="utf-8")
        logger.info(f"Exported JSON to: {output_path}")

    return json_str


def write_player_names(
    registry: PlayerRegistry, output_path: Path, indent: int | None = 2
) -> Path:
    """Write the player id -> display name mapping."""
    export_to_json(registry.player_names(), output_path, indent=indent)
    return output_path


def write_total_play_times(
    registry: PlayerRegistry, output_path: Path, indent: int | None = 2
) -> Path:
    """Write the player id -> total play time (seconds) mapping."""
    export_to_json(registry.total_play_times(), output_path, indent=indent)
    return output_path


def build_sorties_report(registry: PlayerRegistry) -> dict[str, Any]:
    """Player id -> list of sessions with reconstructed sorties."""
    report: dict[str, Any] = {}
    for player in registry:
        report[player.player_id] = {
            "name": player.name,
            "sessions": [
                {
                    "file": session.file_name,
                    "source": session.source,
                    "mission": session.mission_name,
                    "session_start": session.session_start,
                    "play_time_seconds": session_play_time(session),
                    "sorties": [sortie.to_dict() for sortie in session.sorties],
                }
                for session in player.sessions
            ],
        }
    return report


def write_sorties_report(
    registry: PlayerRegistry, output_path: Path, indent: int | None = 2
) -> Path:
    """Write the per-player sortie report."""
    export_to_json(build_sorties_report(registry), output_path, indent=indent, include_metadata=True)
    return output_path


def write_outputs(registry: PlayerRegistry, config: StatsConfig) -> list[Path]:
    """
    Write every configured artifact into the output directory.

    Returns:
        Paths of the files written
    """
    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    export = config.export

    written = [
        write_player_names(registry, output_dir / export.player_names_file, export.json_indent),
        write_total_play_times(registry, output_dir / export.total_times_file, export.json_indent),
    ]
    if export.write_sorties:
        written.append(
            write_sorties_report(registry, output_dir / export.sorties_file, export.json_indent)
        )

    return written
