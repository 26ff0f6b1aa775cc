"""
SnapshotGenerator - seeded synthetic shop-floor snapshots.

Builds a carton-converting workflow (Print -> Cut -> Fold -> Pack) and a
population of jobs spread across its stages, with authentic runs for every
stage a job has passed and partial runs at its current stage. A share of
jobs carries transfer runs, so reports can be exercised end to end without
a live data source.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import numpy as np
from faker import Faker

from stageflow.config.settings import BOXES, CARTONS, SHEETS
from stageflow.flow.clock import resolve_now
from stageflow.production.core import (
    BOMItem,
    Job,
    JobStatus,
    OutputItem,
    Packaging,
    ProductionRun,
    Stage,
    StageEntry,
    Workcenter,
    Workflow,
)
from stageflow.production.snapshot import FlowSnapshot

if TYPE_CHECKING:
    from numpy.random import Generator

WORKFLOW_ID = "wf-carton"

# (key, name, input uom, output uom, wip limit)
STAGE_BLUEPRINT: list[tuple[str, str, str, str, int | None]] = [
    ("print", "Print", SHEETS, SHEETS, 12),
    ("cut", "Cut", SHEETS, SHEETS, 10),
    ("fold", "Fold", SHEETS, CARTONS, 8),
    ("pack", "Pack", CARTONS, CARTONS, None),
]

DEFAULT_GENERATOR_PARAMS: dict[str, Any] = {
    "n_workcenters": 4,
    "sheet_lot_range": [2, 20],
    "sheet_lot_step": 500,
    "number_up_choices": [2, 4, 6, 8],
    "pcs_per_box_choices": [50, 100, 200],
    "stage_yield_range": [0.9, 1.0],
    "done_share": 0.1,
    "blocked_share": 0.05,
    "transfer_share": 0.15,
    "max_age_days": 30.0,
}


class SnapshotGenerator:
    """
    Reproducible synthetic snapshot builder.

    The same seed and `now` always give the same snapshot: quantities come
    from a NumPy generator and names from a seeded Faker instance.
    """

    def __init__(self, seed: int = 42, config: dict[str, Any] | None = None) -> None:
        self.seed = seed
        self._rng: Generator = np.random.default_rng(seed)
        self._faker = Faker()
        self._faker.seed_instance(seed)

        gen_cfg = (config or {}).get("generator", {})
        self.params = {**DEFAULT_GENERATOR_PARAMS, **gen_cfg}

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def build_workflow(self) -> Workflow:
        stages = [
            Stage(
                id=f"{WORKFLOW_ID}-{key}",
                name=name,
                order=i + 1,
                wip_limit=limit,
                input_uom=in_uom,
                output_uom=out_uom,
            )
            for i, (key, name, in_uom, out_uom, limit) in enumerate(STAGE_BLUEPRINT)
        ]
        return Workflow(id=WORKFLOW_ID, name="Folding carton", stages=stages)

    def build_workcenters(self) -> list[Workcenter]:
        count = int(self.params["n_workcenters"])
        return [
            Workcenter(id=f"wc-{i + 1}", name=f"{self._faker.last_name()} Line")
            for i in range(count)
        ]

    # ------------------------------------------------------------------
    # Jobs and runs
    # ------------------------------------------------------------------

    def _pick_status(self) -> JobStatus:
        roll = self._rng.random()
        if roll < self.params["done_share"]:
            return JobStatus.DONE
        if roll < self.params["done_share"] + self.params["blocked_share"]:
            return JobStatus.BLOCKED
        return JobStatus.IN_PROGRESS

    def _split_runs(
        self,
        job_id: str,
        stage: Stage,
        total: float,
        start: datetime,
        workcenter_id: str,
        counter: list[int],
    ) -> list[ProductionRun]:
        """Split a stage output into 1-3 runs spaced a few hours apart."""
        total = float(math.floor(total))
        if total <= 0:
            return []
        n_runs = int(self._rng.integers(1, 4))
        weights = self._rng.dirichlet(np.ones(n_runs))
        parts = np.floor(weights * total)
        parts[-1] += total - parts.sum()

        runs = []
        for k, qty in enumerate(parts):
            counter[0] += 1
            runs.append(
                ProductionRun(
                    id=f"{job_id}-r{counter[0]}",
                    job_id=job_id,
                    stage_id=stage.id,
                    qty_good=float(qty),
                    qty_scrap=float(self._rng.integers(0, max(2, int(qty * 0.03) + 1))),
                    lot=f"L{self._rng.integers(1000, 9999)}",
                    workcenter_id=workcenter_id,
                    operator_id=self._faker.user_name(),
                    at=start + timedelta(hours=4 * k),
                )
            )
        return runs

    def _stage_output(
        self,
        previous: float,
        prev_stage: Stage | None,
        stage: Stage,
        number_up: float,
    ) -> float:
        yield_lo, yield_hi = self.params["stage_yield_range"]
        qty = previous * self._rng.uniform(yield_lo, yield_hi)
        if prev_stage is not None and prev_stage.uom == SHEETS and stage.uom == CARTONS:
            qty *= number_up
        return qty

    def build_job(
        self,
        index: int,
        workflow: Workflow,
        workcenters: list[Workcenter],
        now: datetime,
    ) -> tuple[Job, list[ProductionRun]]:
        p = self.params
        job_id = f"job-{index + 1:04d}"
        stages = workflow.ordered_stages()

        lo, hi = p["sheet_lot_range"]
        sheets = float(self._rng.integers(lo, hi + 1) * p["sheet_lot_step"])
        number_up = float(self._rng.choice(p["number_up_choices"]))
        pcs_per_box = float(self._rng.choice(p["pcs_per_box_choices"]))
        cartons = sheets * number_up
        planned_boxes = float(math.ceil(cartons / pcs_per_box))

        status = self._pick_status()
        current_idx = (
            len(stages) - 1
            if status == JobStatus.DONE
            else int(self._rng.integers(0, len(stages)))
        )
        workcenter = workcenters[int(self._rng.integers(0, len(workcenters)))]

        created_at = now - timedelta(days=float(self._rng.uniform(1.0, p["max_age_days"])))
        due_date = created_at + timedelta(days=float(self._rng.uniform(3.0, 25.0)))
        age = now - created_at
        step = age / (current_idx + 2)

        runs: list[ProductionRun] = []
        entries: list[StageEntry] = []
        counter = [0]
        previous_output = sheets
        prev_stage: Stage | None = None
        for idx, stage in enumerate(stages[: current_idx + 1]):
            entered = created_at + step * idx
            output = self._stage_output(previous_output, prev_stage, stage, number_up)
            if idx == current_idx and status != JobStatus.DONE:
                output *= float(self._rng.uniform(0.0, 1.0))
            entries.append(
                StageEntry(
                    stage_id=stage.id,
                    entered_at=entered,
                    completed_at=entered + step if idx < current_idx else None,
                )
            )
            runs.extend(
                self._split_runs(job_id, stage, output, entered, workcenter.id, counter)
            )
            previous_output = output
            prev_stage = stage

        has_next = current_idx + 1 < len(stages)
        if has_next and runs and self._rng.random() < p["transfer_share"]:
            source = runs[-1]
            counter[0] += 1
            runs.append(
                ProductionRun(
                    id=f"{job_id}-r{counter[0]}",
                    job_id=job_id,
                    stage_id=stages[current_idx + 1].id,
                    qty_good=source.qty_good,
                    workcenter_id=workcenter.id,
                    at=source.at,
                    transfer_source_run_ids=(source.id,),
                )
            )

        last_stage_id = stages[-1].id
        produced = sum(
            r.qty_good for r in runs if r.stage_id == last_stage_id and not r.is_transfer
        )
        customer = self._faker.company()
        job = Job(
            id=job_id,
            code=f"JC-{index + 1:05d}",
            workflow_id=workflow.id,
            current_stage_id=stages[current_idx].id,
            status=status,
            priority=int(self._rng.integers(1, 6)),
            due_date=due_date,
            quantity=cartons,
            unit=CARTONS,
            number_up=number_up,
            bom=[
                BOMItem(
                    sku=f"BRD-{self._rng.integers(100, 999)}",
                    name=f"{self._faker.color_name()} board",
                    qty_required=sheets,
                    uom="sht",
                ),
                BOMItem(
                    sku=f"BOX-{int(pcs_per_box)}",
                    name=f"Shipper box x{int(pcs_per_box)}",
                    qty_required=planned_boxes,
                    uom=BOXES,
                ),
            ],
            output=[
                OutputItem(
                    sku=f"CTN-{index + 1:04d}",
                    name=f"{self._faker.word().title()} carton",
                    qty_planned=cartons,
                    qty_produced=produced,
                    uom=CARTONS,
                    unit_price=round(float(self._rng.uniform(0.05, 0.9)), 2),
                )
            ],
            packaging=Packaging(pcs_per_box=pcs_per_box, planned_boxes=planned_boxes),
            stage_progress=entries,
            workcenter_id=workcenter.id,
            product_name=f"{customer} carton",
            customer_name=customer,
            created_at=created_at,
            updated_at=now - step,
        )
        return job, runs

    def generate(self, n_jobs: int = 50, now: datetime | None = None) -> FlowSnapshot:
        """Build a full snapshot of `n_jobs` jobs."""
        now = resolve_now(now)
        snapshot = FlowSnapshot()
        workflow = self.build_workflow()
        snapshot.add_workflow(workflow)
        workcenters = self.build_workcenters()
        for wc in workcenters:
            snapshot.add_workcenter(wc)

        for i in range(n_jobs):
            job, runs = self.build_job(i, workflow, workcenters, now)
            snapshot.add_job(job)
            snapshot.add_runs(job.id, runs)
        return snapshot
