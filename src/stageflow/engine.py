"""
Production Flow Reconciliation Engine entry points.

Each call takes a full snapshot (jobs, workflows, workcenters and the run
list of every job) and returns freshly built result records. "Now" is
captured once per call, so two calls with the same snapshot and the same
`now` give identical output.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from stageflow.config.loader import load_engine_config
from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.bottlenecks import StageBottleneck, aggregate_bottlenecks
from stageflow.flow.clock import resolve_now
from stageflow.flow.stuck import StuckJob, StuckJobDetector
from stageflow.flow.transitions import WIPTransition, WIPTransitionCalculator
from stageflow.production.core import Job, ProductionRun, Workcenter, Workflow
from stageflow.reports.occupancy import StageOccupancy, compute_occupancy


def _settings(config: dict[str, Any] | None) -> ReconciliationSettings:
    if config is None:
        config = load_engine_config()
    return ReconciliationSettings.from_config(config)


def compute_stage_occupancy(
    jobs: list[Job],
    workflows: list[Workflow],
    now: datetime | None = None,
    config: dict[str, Any] | None = None,
) -> list[StageOccupancy]:
    return compute_occupancy(jobs, workflows, _settings(config), resolve_now(now))


def detect_stuck_jobs(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workflows: list[Workflow],
    workcenters: list[Workcenter] | None = None,
    now: datetime | None = None,
    config: dict[str, Any] | None = None,
) -> list[StuckJob]:
    detector = StuckJobDetector(_settings(config))
    return detector.detect(
        jobs, runs_by_job_id, workflows, workcenters or [], resolve_now(now)
    )


def compute_wip_transitions(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workflows: list[Workflow],
    now: datetime | None = None,
    config: dict[str, Any] | None = None,
) -> list[WIPTransition]:
    calculator = WIPTransitionCalculator(_settings(config))
    return calculator.compute(jobs, runs_by_job_id, workflows, resolve_now(now))


def compute_stage_bottlenecks(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workflows: list[Workflow],
    workcenters: list[Workcenter] | None = None,
    now: datetime | None = None,
    config: dict[str, Any] | None = None,
) -> list[StageBottleneck]:
    if config is None:
        config = load_engine_config()
    now = resolve_now(now)
    stuck = detect_stuck_jobs(jobs, runs_by_job_id, workflows, workcenters, now, config)
    transitions = compute_wip_transitions(jobs, runs_by_job_id, workflows, now, config)
    return aggregate_bottlenecks(
        stuck, transitions, _settings(config).dedup_stuck_wip
    )
