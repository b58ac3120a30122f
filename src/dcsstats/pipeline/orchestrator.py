"""
Stats Orchestrator - Main pipeline for processing player log sources.

source directories -> log files -> sessions (decoded events + sorties)
-> PlayerRegistry -> output artifacts

Files are independent of each other, so decoding and sortie reconstruction
may run in a thread pool. Merging into the registry always happens on the
calling thread, in enumeration order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dcsstats.core.config import SourceConfig, StatsConfig, validate_config
from dcsstats.core.session import Session, build_session
from dcsstats.core.utils import PerformanceMonitor
from dcsstats.export import write_outputs
from dcsstats.players import PlayerRegistry
from dcsstats.state_machine import SortieReconstructor, assign_sorties

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceFile:
    """A log file together with the source it was listed from."""

    source: str
    path: Path


@dataclass
class RunSummary:
    """Result of a full stats run."""

    registry: PlayerRegistry
    files_processed: int = 0
    events_decoded: int = 0
    sorties_reconstructed: int = 0
    duration_seconds: float = 0.0
    written_files: list[Path] = field(default_factory=list)

    @property
    def player_count(self) -> int:
        return len(self.registry)

    def to_dict(self) -> dict[str, Any]:
        return {
            "players": self.player_count,
            "files_processed": self.files_processed,
            "events_decoded": self.events_decoded,
            "sorties_reconstructed": self.sorties_reconstructed,
            "duration_seconds": round(self.duration_seconds, 2),
            "written_files": [str(p) for p in self.written_files],
        }


def enumerate_source(source: SourceConfig, file_glob: str) -> list[SourceFile]:
    """
    List the log files of one source directory, sorted by file name.

    Raises:
        FileNotFoundError: If the source directory does not exist
    """
    directory = Path(source.directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Source directory not found: {directory} ({source.name})")

    files = sorted(p for p in directory.glob(file_glob) if p.is_file())
    logger.info(f"Source {source.name}: {len(files)} files in {directory}")
    return [SourceFile(source=source.name, path=p) for p in files]


def load_session_file(source_file: SourceFile, reconstructor: SortieReconstructor) -> Session:
    """Decode one log file and reconstruct its sorties."""
    session = build_session(source_file.path, source=source_file.source)
    return assign_sorties(session, reconstructor)


class StatsOrchestrator:
    """
    Orchestrates a batch run over all configured sources.

    Handles:
    - Source enumeration
    - Session building and sortie reconstruction (optionally in a thread pool)
    - Single-writer merge into a PlayerRegistry

    Any decode, shape or filename error aborts the run; nothing is written.
    """

    def __init__(self, config: StatsConfig):
        self.config = validate_config(config)
        self.reconstructor = SortieReconstructor(
            grace_window_seconds=config.reconstruction.grace_window_seconds,
            late_terminal_policy=config.reconstruction.late_terminal_policy,
        )

    def collect_files(self) -> list[SourceFile]:
        """All log files of all sources, in source then file name order."""
        files: list[SourceFile] = []
        for source in self.config.sources:
            files.extend(enumerate_source(source, self.config.pipeline.file_glob))
        return files

    def build_sessions(self, files: list[SourceFile]) -> list[Session]:
        """Build sessions for the given files, keeping their order."""
        workers = self.config.pipeline.workers

        if workers <= 1 or len(files) <= 1:
            return [load_session_file(f, self.reconstructor) for f in files]

        logger.info(f"Decoding {len(files)} files with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in submission order and re-raises the first failure
            return list(executor.map(lambda f: load_session_file(f, self.reconstructor), files))

    def run(self) -> RunSummary:
        """
        Execute the pipeline up to the aggregated registry.

        Returns:
            RunSummary with the registry and processing counters
        """
        start_time = time.perf_counter()

        with PerformanceMonitor("Reading sources"):
            files = self.collect_files()
            sessions = self.build_sessions(files)

        registry = PlayerRegistry()
        for session in sessions:
            registry.merge(session)

        summary = RunSummary(
            registry=registry,
            files_processed=len(sessions),
            events_decoded=sum(s.event_count for s in sessions),
            sorties_reconstructed=sum(len(s.sorties) for s in sessions),
            duration_seconds=time.perf_counter() - start_time,
        )
        logger.info(
            f"Processed {summary.files_processed} files: {summary.player_count} players, "
            f"{summary.sorties_reconstructed} sorties"
        )
        return summary


def run_stats(config: StatsConfig, write: bool = True) -> RunSummary:
    """
    Run the full pipeline and write the output artifacts.

    Args:
        config: Validated or raw configuration
        write: Whether to write player names, play times (and sorties)

    Returns:
        RunSummary including the paths that were written
    """
    summary = StatsOrchestrator(config).run()
    if write:
        summary.written_files = write_outputs(summary.registry, config)
    return summary
