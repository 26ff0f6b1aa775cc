"""
Stuck-job detection.

A job is stuck when output it has produced is not moving to the next stage:

  Case A (stranded): the stage before the current one has authentic output
      but the current stage has no authentic runs yet.
  Case B (ready, not advanced): the current stage is inside its completion
      band but the next stage has no authentic runs yet.

Case A wins when both apply, so each job is reported at one boundary only.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from stageflow.config.settings import SHEETS, ReconciliationSettings
from stageflow.flow.clock import elapsed_days
from stageflow.flow.jobflow import JobFlow, iter_job_flows
from stageflow.flow.quantity import QuantityNormalizer, stage_uom
from stageflow.flow.threshold import ThresholdEvaluator
from stageflow.production.core import Job, ProductionRun, Stage, Workcenter, Workflow

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Regular production"


class StuckCase(enum.Enum):
    STRANDED_BEFORE_CURRENT = "stranded_before_current"
    READY_NOT_ADVANCED = "ready_not_advanced"


@dataclass
class StuckJob:
    job_id: str
    job_code: str
    case: StuckCase

    # Boundary the output is stuck at
    from_stage_id: str
    from_stage_name: str
    to_stage_id: str
    to_stage_name: str

    stranded_quantity: float
    uom: str
    days_stuck: float

    priority: int
    due_date: datetime | None
    workcenter_id: str | None = None
    workcenter_name: str | None = None

    job_name: str | None = None
    customer_name: str = DEFAULT_CUSTOMER_NAME
    board_sheet_name: str | None = None


@dataclass(frozen=True)
class _Boundary:
    case: StuckCase
    from_stage: Stage
    to_stage: Stage
    quantity: float
    last_output_at: datetime


class StuckJobDetector:
    def __init__(self, settings: ReconciliationSettings) -> None:
        self.settings = settings
        self.normalizer = QuantityNormalizer(settings)
        self.evaluator = ThresholdEvaluator(settings)

    def detect(
        self,
        jobs: list[Job],
        runs_by_job_id: Mapping[str, list[ProductionRun]],
        workflows: list[Workflow],
        workcenters: list[Workcenter],
        now: datetime,
    ) -> list[StuckJob]:
        workcenter_names = {wc.id: wc.name for wc in workcenters}
        stuck: list[StuckJob] = []

        for flow in iter_job_flows(jobs, runs_by_job_id, workflows, self.settings):
            boundary = self._stranded_before_current(flow, now)
            if boundary is None:
                boundary = self._ready_not_advanced(flow, now)
            if boundary is None:
                continue
            stuck.append(self._record(flow.job, boundary, workcenter_names, now))

        logger.debug("Detected %d stuck jobs out of %d", len(stuck), len(jobs))
        # Stable sorts: secondary key first
        stuck.sort(key=lambda s: s.days_stuck, reverse=True)
        stuck.sort(key=lambda s: s.priority, reverse=True)
        return stuck

    def _stranded_before_current(self, flow: JobFlow, now: datetime) -> _Boundary | None:
        previous = flow.position.previous
        current = flow.position.current
        if previous is None or flow.ledger.has_runs(current.id):
            return None

        output = flow.ledger.total(previous.id)
        if output <= 0:
            return None
        return _Boundary(
            case=StuckCase.STRANDED_BEFORE_CURRENT,
            from_stage=previous,
            to_stage=current,
            quantity=output,
            last_output_at=flow.ledger.last_output_at(previous.id, now),
        )

    def _ready_not_advanced(self, flow: JobFlow, now: datetime) -> _Boundary | None:
        current = flow.position.current
        nxt = flow.position.next
        if nxt is None or not flow.ledger.has_runs(current.id):
            return None
        if flow.ledger.has_runs(nxt.id):
            return None

        produced = flow.ledger.total(current.id)
        plan = self.normalizer.planned_quantity(
            flow.job, flow.position, current, flow.ledger
        )
        if not self.evaluator.evaluate(plan, produced).is_threshold_met:
            return None
        return _Boundary(
            case=StuckCase.READY_NOT_ADVANCED,
            from_stage=current,
            to_stage=nxt,
            quantity=produced,
            last_output_at=flow.ledger.last_output_at(current.id, now),
        )

    def _record(
        self,
        job: Job,
        boundary: _Boundary,
        workcenter_names: dict[str, str],
        now: datetime,
    ) -> StuckJob:
        return StuckJob(
            job_id=job.id,
            job_code=job.code,
            case=boundary.case,
            from_stage_id=boundary.from_stage.id,
            from_stage_name=boundary.from_stage.name,
            to_stage_id=boundary.to_stage.id,
            to_stage_name=boundary.to_stage.name,
            stranded_quantity=boundary.quantity,
            uom=stage_uom(boundary.from_stage, self.settings),
            days_stuck=elapsed_days(boundary.last_output_at, now),
            priority=job.priority,
            due_date=job.due_date,
            workcenter_id=job.workcenter_id,
            workcenter_name=(
                workcenter_names.get(job.workcenter_id) if job.workcenter_id else None
            ),
            job_name=job.product_name,
            customer_name=job.customer_name or DEFAULT_CUSTOMER_NAME,
            board_sheet_name=self._board_sheet_name(job),
        )

    def _board_sheet_name(self, job: Job) -> str | None:
        for item in job.bom:
            if self.settings.uom_domain(item.uom) == SHEETS and item.name:
                return item.name
        return None
