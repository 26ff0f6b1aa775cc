"""Resolve the ordered chain of stages a job actually traverses."""

from __future__ import annotations

from dataclasses import dataclass

from stageflow.production.core import Job, Stage, Workflow


def resolve_stage_order(job: Job, workflow: Workflow) -> list[Stage]:
    """
    Workflow stages sorted by `order`, restricted to the job's planned
    stages when that restriction leaves at least one stage.
    """
    ordered = workflow.ordered_stages()
    if not job.planned_stage_ids:
        return ordered

    planned = set(job.planned_stage_ids)
    filtered = [s for s in ordered if s.id in planned]
    return filtered if filtered else ordered


@dataclass(frozen=True)
class StagePosition:
    """Where a job's current stage sits inside its resolved chain."""

    chain: tuple[Stage, ...]
    index: int

    @property
    def current(self) -> Stage:
        return self.chain[self.index]

    @property
    def previous(self) -> Stage | None:
        return self.chain[self.index - 1] if self.index > 0 else None

    @property
    def next(self) -> Stage | None:
        if self.index + 1 < len(self.chain):
            return self.chain[self.index + 1]
        return None

    def predecessor_of(self, stage: Stage) -> Stage | None:
        for i, s in enumerate(self.chain):
            if s.id == stage.id:
                return self.chain[i - 1] if i > 0 else None
        return None


def locate_current_stage(job: Job, workflow: Workflow) -> StagePosition | None:
    """None when the job has no current stage or it is outside the chain."""
    if not job.current_stage_id:
        return None

    chain = resolve_stage_order(job, workflow)
    for i, stage in enumerate(chain):
        if stage.id == job.current_stage_id:
            return StagePosition(chain=tuple(chain), index=i)
    return None
