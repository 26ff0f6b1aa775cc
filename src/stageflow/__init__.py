"""Stage-flow reconciliation for tracked manufacturing jobs."""

from stageflow.engine import (
    compute_stage_bottlenecks,
    compute_stage_occupancy,
    compute_wip_transitions,
    detect_stuck_jobs,
)

__all__ = [
    "compute_stage_bottlenecks",
    "compute_stage_occupancy",
    "compute_wip_transitions",
    "detect_stuck_jobs",
]
