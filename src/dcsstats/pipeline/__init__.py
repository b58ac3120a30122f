"""Batch pipeline over configured log sources."""

from dcsstats.pipeline.orchestrator import (
    RunSummary,
    SourceFile,
    StatsOrchestrator,
    enumerate_source,
    load_session_file,
    run_stats,
)

__all__ = [
    "RunSummary",
    "SourceFile",
    "StatsOrchestrator",
    "enumerate_source",
    "load_session_file",
    "run_stats",
]
