"""Merge stuck jobs and WIP transitions into one bottleneck record per stage."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from stageflow.flow.stuck import StuckJob
from stageflow.flow.transitions import WIPTransition


@dataclass
class StageBottleneck:
    """
    Everything piling up in front of one stage.

    `total_wip_quantity` is the stranded output of every stuck job plus the
    quantity of every WIP transition into the stage. A job that is both
    stuck and in transition at the same boundary contributes twice unless
    the bottleneck aggregation is run with `dedup_stuck_wip`.
    """

    stage_id: str
    stage_name: str
    jobs_stuck: int = 0
    total_wip_quantity: float = 0.0
    uom: str = ""
    avg_days_stuck: float = 0.0
    stuck_jobs: list[StuckJob] = field(default_factory=list)
    wip_transitions: list[WIPTransition] = field(default_factory=list)


def aggregate_bottlenecks(
    stuck_jobs: list[StuckJob],
    transitions: list[WIPTransition],
    dedup_stuck_wip: bool = False,
) -> list[StageBottleneck]:
    bottlenecks: dict[str, StageBottleneck] = {}

    def _bucket(stage_id: str, stage_name: str, uom: str) -> StageBottleneck:
        if stage_id not in bottlenecks:
            bottlenecks[stage_id] = StageBottleneck(
                stage_id=stage_id, stage_name=stage_name, uom=uom
            )
        return bottlenecks[stage_id]

    # (job, from, to) boundaries already carried by a WIP transition
    covered: set[tuple[str, str, str]] = set()
    if dedup_stuck_wip:
        for wip in transitions:
            for job in wip.jobs:
                covered.add((job.job_id, wip.from_stage_id, wip.to_stage_id))

    for stuck in stuck_jobs:
        bucket = _bucket(stuck.to_stage_id, stuck.to_stage_name, stuck.uom)
        bucket.jobs_stuck += 1
        bucket.stuck_jobs.append(stuck)
        if (stuck.job_id, stuck.from_stage_id, stuck.to_stage_id) not in covered:
            bucket.total_wip_quantity += stuck.stranded_quantity

    for wip in transitions:
        bucket = _bucket(wip.to_stage_id, wip.to_stage_name, wip.uom)
        bucket.wip_transitions.append(wip)
        bucket.total_wip_quantity += wip.quantity

    for bucket in bottlenecks.values():
        if bucket.stuck_jobs:
            bucket.avg_days_stuck = float(
                np.mean([s.days_stuck for s in bucket.stuck_jobs])
            )

    return sorted(
        bottlenecks.values(), key=lambda b: b.total_wip_quantity, reverse=True
    )
