"""Stage-flow building blocks: resolution, classification, planning, detection."""

from stageflow.flow.bottlenecks import StageBottleneck, aggregate_bottlenecks
from stageflow.flow.progress import StageProgress, compute_stage_progress
from stageflow.flow.quantity import PlannedQuantity, QuantityNormalizer
from stageflow.flow.runs import RunPartition, StageLedger, classify_runs
from stageflow.flow.stage_order import StagePosition, resolve_stage_order
from stageflow.flow.stuck import StuckCase, StuckJob, StuckJobDetector
from stageflow.flow.threshold import ThresholdEvaluator, ThresholdResult
from stageflow.flow.transitions import TransitionJob, WIPTransition, WIPTransitionCalculator

__all__ = [
    "PlannedQuantity",
    "QuantityNormalizer",
    "RunPartition",
    "StageBottleneck",
    "StageLedger",
    "StagePosition",
    "StageProgress",
    "StuckCase",
    "StuckJob",
    "StuckJobDetector",
    "ThresholdEvaluator",
    "ThresholdResult",
    "TransitionJob",
    "WIPTransition",
    "WIPTransitionCalculator",
    "aggregate_bottlenecks",
    "classify_runs",
    "compute_stage_progress",
    "resolve_stage_order",
]
