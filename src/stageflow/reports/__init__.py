"""Reports built on top of the flow engine and plain job tallies."""

from stageflow.reports.frames import to_frame
from stageflow.reports.occupancy import StageOccupancy, compute_occupancy
from stageflow.reports.performance import (
    cycle_time,
    deadlines_acceptance,
    efficiency,
    job_status_summary,
    material_usage,
    on_time_delivery,
    output_palletization,
    quality_metrics,
    stage_output,
    stage_time_analysis,
    throughput,
    workcenter_performance,
)

__all__ = [
    "StageOccupancy",
    "compute_occupancy",
    "cycle_time",
    "deadlines_acceptance",
    "efficiency",
    "job_status_summary",
    "material_usage",
    "on_time_delivery",
    "output_palletization",
    "quality_metrics",
    "stage_output",
    "stage_time_analysis",
    "throughput",
    "to_frame",
    "workcenter_performance",
]
