from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stageflow.config.loader import load_engine_config
from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.quantity import QuantityNormalizer
from stageflow.flow.runs import StageLedger
from stageflow.flow.stage_order import StagePosition, resolve_stage_order
from stageflow.flow.threshold import ThresholdEvaluator
from stageflow.production.core import Job, ProductionRun, Workflow


@dataclass
class StageProgress:
    stage_id: str
    stage_name: str
    produced: float
    planned: float
    percentage: float
    uom: str
    is_current: bool
    is_threshold_met: bool
    plan_source: str


def compute_stage_progress(
    job: Job,
    workflow: Workflow,
    runs: list[ProductionRun],
    config: dict[str, Any] | None = None,
) -> list[StageProgress]:
    """
    Produced versus planned for every stage in the job's resolved chain.

    Produced counts authentic runs only; the plan for each stage follows
    the same resolution policy the stuck-job detector uses.
    """
    if config is None:
        config = load_engine_config()
    settings = ReconciliationSettings.from_config(config)
    normalizer = QuantityNormalizer(settings)
    evaluator = ThresholdEvaluator(settings)
    ledger = StageLedger(runs)

    chain = tuple(resolve_stage_order(job, workflow))
    if not chain:
        return []

    progress: list[StageProgress] = []
    for i, stage in enumerate(chain):
        position = StagePosition(chain=chain, index=i)
        produced = ledger.total(stage.id)
        plan = normalizer.planned_quantity(job, position, stage, ledger)
        result = evaluator.evaluate(plan, produced)
        percentage = (
            min(100.0, produced / plan.quantity * 100) if plan.quantity > 0 else 0.0
        )
        progress.append(
            StageProgress(
                stage_id=stage.id,
                stage_name=stage.name,
                produced=produced,
                planned=plan.quantity,
                percentage=percentage,
                uom=plan.uom,
                is_current=stage.id == job.current_stage_id,
                is_threshold_met=result.is_threshold_met,
                plan_source=plan.source,
            )
        )
    return progress
