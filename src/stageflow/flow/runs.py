"""
Run classification: authentic production events versus transfers.

A transfer run re-emits quantity already produced elsewhere, so every
per-stage total in the engine is computed from authentic runs only. This
keeps each unit counted exactly once, at its stage of origin.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from stageflow.flow.clock import as_utc
from stageflow.production.core import ProductionRun


@dataclass
class RunPartition:
    authentic_runs: list[ProductionRun] = field(default_factory=list)
    transfer_runs: list[ProductionRun] = field(default_factory=list)


def classify_runs(runs: Iterable[ProductionRun]) -> RunPartition:
    partition = RunPartition()
    for run in runs:
        if run.is_transfer:
            partition.transfer_runs.append(run)
        else:
            partition.authentic_runs.append(run)
    return partition


def authentic_output(runs: Iterable[ProductionRun], stage_id: str) -> float:
    """Sum of qty_good over authentic runs recorded at `stage_id`."""
    return sum(
        run.qty_good
        for run in runs
        if run.stage_id == stage_id and not run.is_transfer
    )


class StageLedger:
    """
    Authentic runs of one job, indexed by stage.

    Built once per job per computation; all queries are read-only.
    """

    def __init__(self, runs: Iterable[ProductionRun]) -> None:
        self.partition = classify_runs(runs)
        self._by_stage: dict[str, list[ProductionRun]] = defaultdict(list)
        for run in self.partition.authentic_runs:
            self._by_stage[run.stage_id].append(run)

    def runs(self, stage_id: str) -> tuple[ProductionRun, ...]:
        return tuple(self._by_stage.get(stage_id, ()))

    def has_runs(self, stage_id: str) -> bool:
        return len(self.runs(stage_id)) > 0

    def total(self, stage_id: str) -> float:
        return float(sum(run.qty_good for run in self.runs(stage_id)))

    def last_output_at(self, stage_id: str, now: datetime) -> datetime:
        """
        Timestamp of the most recent authentic run at `stage_id`.

        Runs without a timestamp count as happening "now".
        """
        stage_runs = self.runs(stage_id)
        if not stage_runs:
            return now
        return max(
            as_utc(run.at) if run.at is not None else now for run in stage_runs
        )
