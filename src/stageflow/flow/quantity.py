"""
Planned-quantity resolution and UOM conversion.

Jobs carry their plan inconsistently: sometimes in the BOM, sometimes in
packaging, sometimes only as a raw quantity. The planned quantity for a
stage is therefore resolved by walking an ordered policy table of named
strategies; the first one that yields a positive quantity wins. When none
does, the plan is zero, which keeps the completion band closed.

Policy for stages whose UOM is in the cartons domain:
    previous_stage_output -> packaging_planned_boxes -> bom_box_line
    -> job_quantity_in_boxes
Policy for every other stage:
    previous_stage_output -> bom_sheet_line -> planned_output -> job_quantity
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from stageflow.config.settings import BOXES, CARTONS, SHEETS, ReconciliationSettings
from stageflow.flow.runs import StageLedger
from stageflow.flow.stage_order import StagePosition
from stageflow.production.core import BOMItem, Job, Stage

UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class PlanningContext:
    job: Job
    stage: Stage
    previous_stage: Stage | None
    previous_output: float
    settings: ReconciliationSettings


@dataclass(frozen=True)
class PlannedQuantity:
    quantity: float
    uom: str
    source: str  # Name of the strategy that resolved the plan


Strategy = Callable[[PlanningContext], float | None]


def stage_uom(stage: Stage, settings: ReconciliationSettings) -> str:
    return stage.uom or settings.default_uom


def convert_quantity(
    quantity: float,
    from_uom: str,
    to_uom: str,
    number_up: float,
    settings: ReconciliationSettings,
) -> float:
    """
    Convert between the sheets and cartons domains using `number_up`.

    Sheets -> cartons multiplies, cartons -> sheets divides. Any other pair,
    or a non-positive number_up, leaves the quantity unchanged.
    """
    src = settings.uom_domain(from_uom)
    dst = settings.uom_domain(to_uom)
    if src == dst or number_up <= 0:
        return quantity
    if src == SHEETS and dst == CARTONS:
        return quantity * number_up
    if src == CARTONS and dst == SHEETS:
        return quantity / number_up
    return quantity


def _find_bom_line(
    job: Job, domain: str, settings: ReconciliationSettings
) -> BOMItem | None:
    for item in job.bom:
        if settings.uom_domain(item.uom) == domain:
            return item
    return None


def _pcs_per_box(job: Job) -> float:
    if job.packaging is None or job.packaging.pcs_per_box <= 0:
        return 1.0
    return job.packaging.pcs_per_box


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def from_previous_stage(ctx: PlanningContext) -> float | None:
    """Whatever the preceding stage actually produced, in this stage's UOM."""
    if ctx.previous_stage is None or ctx.previous_output <= 0:
        return None
    return convert_quantity(
        ctx.previous_output,
        stage_uom(ctx.previous_stage, ctx.settings),
        stage_uom(ctx.stage, ctx.settings),
        ctx.job.number_up,
        ctx.settings,
    )


def from_packaging_planned_boxes(ctx: PlanningContext) -> float | None:
    packaging = ctx.job.packaging
    if packaging is None or packaging.planned_boxes <= 0:
        return None
    return packaging.planned_boxes * _pcs_per_box(ctx.job)


def from_bom_box_line(ctx: PlanningContext) -> float | None:
    item = _find_bom_line(ctx.job, BOXES, ctx.settings)
    if item is None or item.qty_required <= 0:
        return None
    return item.qty_required * _pcs_per_box(ctx.job)


def from_job_quantity_in_boxes(ctx: PlanningContext) -> float | None:
    if ctx.settings.uom_domain(ctx.job.unit) != BOXES or ctx.job.quantity <= 0:
        return None
    return ctx.job.quantity * _pcs_per_box(ctx.job)


def from_bom_sheet_line(ctx: PlanningContext) -> float | None:
    item = _find_bom_line(ctx.job, SHEETS, ctx.settings)
    if item is None or item.qty_required <= 0:
        return None
    return item.qty_required


def from_planned_output(ctx: PlanningContext) -> float | None:
    if not ctx.job.output or ctx.job.output[0].qty_planned <= 0:
        return None
    return ctx.job.output[0].qty_planned


def from_job_quantity(ctx: PlanningContext) -> float | None:
    return ctx.job.quantity if ctx.job.quantity > 0 else None


CARTON_POLICY: tuple[tuple[str, Strategy], ...] = (
    ("previous_stage_output", from_previous_stage),
    ("packaging_planned_boxes", from_packaging_planned_boxes),
    ("bom_box_line", from_bom_box_line),
    ("job_quantity_in_boxes", from_job_quantity_in_boxes),
)

SHEET_POLICY: tuple[tuple[str, Strategy], ...] = (
    ("previous_stage_output", from_previous_stage),
    ("bom_sheet_line", from_bom_sheet_line),
    ("planned_output", from_planned_output),
    ("job_quantity", from_job_quantity),
)


def resolve_planned_quantity(ctx: PlanningContext) -> PlannedQuantity:
    uom = stage_uom(ctx.stage, ctx.settings)
    if ctx.settings.uom_domain(uom) == CARTONS:
        policy = CARTON_POLICY
    else:
        policy = SHEET_POLICY

    for name, strategy in policy:
        quantity = strategy(ctx)
        if quantity is not None and quantity > 0:
            return PlannedQuantity(quantity=float(quantity), uom=uom, source=name)
    return PlannedQuantity(quantity=0.0, uom=uom, source=UNRESOLVED)


class QuantityNormalizer:
    """Computes the planned quantity of a stage for one job."""

    def __init__(self, settings: ReconciliationSettings) -> None:
        self.settings = settings

    def planned_quantity(
        self,
        job: Job,
        position: StagePosition,
        stage: Stage,
        ledger: StageLedger,
    ) -> PlannedQuantity:
        previous = position.predecessor_of(stage)
        ctx = PlanningContext(
            job=job,
            stage=stage,
            previous_stage=previous,
            previous_output=ledger.total(previous.id) if previous else 0.0,
            settings=self.settings,
        )
        return resolve_planned_quantity(ctx)
