"""
WIP between adjacent stages (stock perspective).

For each active job past its first stage, the quantity produced by the
previous stage and not yet taken in by the current stage is sitting on
the floor between them. Jobs that consumed everything (or more) add
nothing, so no bucket is ever zero or negative.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.clock import elapsed_days
from stageflow.flow.jobflow import iter_job_flows
from stageflow.flow.quantity import stage_uom
from stageflow.production.core import Job, ProductionRun, Workflow

logger = logging.getLogger(__name__)


@dataclass
class TransitionJob:
    job_id: str
    job_code: str
    quantity: float
    days_in_transition: float


@dataclass
class WIPTransition:
    from_stage_id: str
    from_stage_name: str
    to_stage_id: str
    to_stage_name: str
    quantity: float
    uom: str
    job_count: int = 0
    jobs: list[TransitionJob] = field(default_factory=list)


class WIPTransitionCalculator:
    def __init__(self, settings: ReconciliationSettings) -> None:
        self.settings = settings

    def compute(
        self,
        jobs: list[Job],
        runs_by_job_id: Mapping[str, list[ProductionRun]],
        workflows: list[Workflow],
        now: datetime,
    ) -> list[WIPTransition]:
        buckets: dict[tuple[str, str], WIPTransition] = {}

        for flow in iter_job_flows(jobs, runs_by_job_id, workflows, self.settings):
            previous = flow.position.previous
            current = flow.position.current
            if previous is None:
                continue

            previous_output = flow.ledger.total(previous.id)
            current_input = flow.ledger.total(current.id)
            wip = previous_output - current_input
            if not math.isfinite(wip) or wip <= 0:
                continue

            key = (previous.id, current.id)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = WIPTransition(
                    from_stage_id=previous.id,
                    from_stage_name=previous.name,
                    to_stage_id=current.id,
                    to_stage_name=current.name,
                    quantity=0.0,
                    uom=stage_uom(previous, self.settings),
                )
                buckets[key] = bucket

            bucket.quantity += wip
            bucket.job_count += 1
            bucket.jobs.append(
                TransitionJob(
                    job_id=flow.job.id,
                    job_code=flow.job.code,
                    quantity=wip,
                    days_in_transition=elapsed_days(
                        flow.ledger.last_output_at(previous.id, now), now
                    ),
                )
            )

        logger.debug("WIP found across %d stage transitions", len(buckets))
        return sorted(buckets.values(), key=lambda b: b.quantity, reverse=True)
