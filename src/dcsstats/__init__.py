"""
dcsstats - Player statistics from flight simulation server logs

Reads the per-player event logs written by a dedicated server hook, cuts
each session into sorties with a resolved end reason, and aggregates player
names and play time across any number of log directories.

Usage:
    from dcsstats import build_session, reconstruct_sorties, aggregate_sessions

    session = build_session("1000-[MissionA]-[Pilot1]-[P123].csv", source="main")
    session.sorties = reconstruct_sorties(session)

    registry = aggregate_sessions([session])
    print(registry.total_play_times())
"""

__version__ = "0.1.0"
__author__ = "dcsstats Contributors"


def __getattr__(name):
    """Lazy import for the public API."""
    if name in ("decode_line", "encode_event", "read_events", "to_typed"):
        from dcsstats.core import events

        return getattr(events, name)
    elif name in ("build_session", "parse_filename", "Session"):
        from dcsstats.core import session

        return getattr(session, name)
    elif name in ("Sortie", "SortieReconstructor", "reconstruct_sorties", "assign_sorties"):
        from dcsstats import state_machine

        return getattr(state_machine, name)
    elif name in ("Player", "PlayerRegistry", "aggregate_sessions", "total_play_time"):
        from dcsstats import players

        return getattr(players, name)
    elif name in ("StatsConfig", "load_config"):
        from dcsstats.core import config

        return getattr(config, name)
    elif name in ("StatsOrchestrator", "run_stats"):
        from dcsstats.pipeline import orchestrator

        return getattr(orchestrator, name)
    raise AttributeError(f"module 'dcsstats' has no attribute '{name}'")
