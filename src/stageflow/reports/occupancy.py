"""
Stage occupancy census: which jobs sit at which stage right now.

Independent of run history; only the job's current stage, timestamps and
plan are used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.clock import as_utc, elapsed_days
from stageflow.production.core import Job, Stage, Workflow
from stageflow.production.snapshot import find_stage


@dataclass
class StageOccupancy:
    stage_id: str
    stage_name: str
    count: int = 0
    wip_limit: int | None = None
    over_limit: bool = False
    job_ids: list[str] = field(default_factory=list)
    avg_days_in_stage: float = 0.0
    priority_breakdown: dict[int, int] = field(default_factory=dict)
    workcenters: dict[str, int] = field(default_factory=dict)
    overdue_count: int = 0
    total_value: float = 0.0


def _stage_for(job: Job, stage_id: str, workflows: list[Workflow]) -> Stage | None:
    # Prefer the job's own workflow, then any workflow that knows the stage
    for wf in workflows:
        if wf.id == job.workflow_id:
            stage = wf.get_stage(stage_id)
            if stage is not None:
                return stage
    return find_stage(workflows, stage_id)


def _days_in_stage(job: Job, stage_id: str, now: datetime) -> float:
    entry = job.stage_entry(stage_id)
    if entry is not None and entry.entered_at is not None:
        return elapsed_days(entry.entered_at, now)
    return elapsed_days(job.created_at, now)


def _is_overdue(job: Job, settings: ReconciliationSettings, now: datetime) -> bool:
    if job.due_date is None or settings.is_terminal(job):
        return False
    return as_utc(job.due_date) < now


def _output_value(job: Job) -> float:
    return sum(item.qty_produced * item.unit_price for item in job.output)


def compute_occupancy(
    jobs: list[Job],
    workflows: list[Workflow],
    settings: ReconciliationSettings,
    now: datetime,
) -> list[StageOccupancy]:
    occupancy: dict[str, StageOccupancy] = {}
    days: dict[str, list[float]] = {}

    for job in jobs:
        stage_id = job.current_stage_id
        if not stage_id:
            continue

        record = occupancy.get(stage_id)
        if record is None:
            stage = _stage_for(job, stage_id, workflows)
            record = StageOccupancy(
                stage_id=stage_id,
                stage_name=stage.name if stage else stage_id,
                wip_limit=stage.wip_limit if stage else None,
            )
            occupancy[stage_id] = record
            days[stage_id] = []

        record.count += 1
        record.job_ids.append(job.id)
        record.priority_breakdown[job.priority] = (
            record.priority_breakdown.get(job.priority, 0) + 1
        )
        if job.workcenter_id:
            record.workcenters[job.workcenter_id] = (
                record.workcenters.get(job.workcenter_id, 0) + 1
            )
        if _is_overdue(job, settings, now):
            record.overdue_count += 1
        record.total_value += _output_value(job)
        days[stage_id].append(_days_in_stage(job, stage_id, now))

    for stage_id, record in occupancy.items():
        record.avg_days_in_stage = float(np.mean(days[stage_id]))
        if record.wip_limit and record.count > record.wip_limit:
            record.over_limit = True

    return sorted(occupancy.values(), key=lambda r: r.count, reverse=True)
