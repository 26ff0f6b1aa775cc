import enum
from dataclasses import dataclass, field
from datetime import datetime


class JobStatus(enum.Enum):
    DRAFT = "draft"
    RELEASED = "released"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass
class Stage:
    """
    A single production step inside a workflow.

    Stages are traversed in ascending `order`; the value is unique within
    its workflow.
    """

    id: str
    name: str
    order: int
    wip_limit: int | None = None

    # Unit-of-measure domains, e.g. "sheets" in, "cartoon" out
    input_uom: str = ""
    output_uom: str = ""

    expected_sla_hours: float | None = None
    default_workcenter_id: str | None = None

    @property
    def uom(self) -> str:
        """Output UOM, falling back to the input UOM."""
        return self.output_uom or self.input_uom

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Stage ID cannot be empty")


@dataclass
class Workflow:
    """
    Ordered chain of stages a job moves through.
    """

    id: str
    name: str
    stages: list[Stage] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Workflow ID cannot be empty")

    def ordered_stages(self) -> list[Stage]:
        return sorted(self.stages, key=lambda s: s.order)

    def get_stage(self, stage_id: str) -> Stage | None:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        return None


@dataclass
class BOMItem:
    sku: str
    name: str
    qty_required: float = 0.0
    uom: str = ""
    consumed: float = 0.0


@dataclass
class OutputItem:
    sku: str
    name: str
    qty_planned: float = 0.0
    qty_produced: float = 0.0
    uom: str = ""
    unit_price: float = 0.0


@dataclass
class Packaging:
    # Absent counts are 0; pieces per box defaults to 1 (one piece, one box)
    pcs_per_box: float = 1.0
    boxes_per_pallet: float = 0.0
    planned_boxes: float = 0.0
    actual_boxes: float = 0.0
    planned_pallets: float = 0.0
    actual_pallets: float = 0.0


@dataclass
class StageEntry:
    """Explicit stage-entry record kept on a job."""

    stage_id: str
    entered_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class Job:
    """
    A manufacturing job tracked through one workflow.

    `planned_stage_ids`, when non-empty, restricts the workflow to the
    subset of stages this job actually visits.
    """

    id: str
    code: str
    workflow_id: str
    current_stage_id: str | None
    status: JobStatus = JobStatus.RELEASED
    priority: int = 0
    due_date: datetime | None = None

    # Raw planning fields
    quantity: float = 0.0
    unit: str = ""
    number_up: float = 1.0  # Pieces printed per sheet
    bom: list[BOMItem] = field(default_factory=list)
    output: list[OutputItem] = field(default_factory=list)
    packaging: Packaging | None = None

    planned_stage_ids: list[str] = field(default_factory=list)
    stage_progress: list[StageEntry] = field(default_factory=list)

    workcenter_id: str | None = None
    product_name: str | None = None
    customer_name: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    qa_accepted_at: datetime | None = None
    customer_accepted_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Job ID cannot be empty")

    def stage_entry(self, stage_id: str) -> StageEntry | None:
        for entry in self.stage_progress:
            if entry.stage_id == stage_id:
                return entry
        return None


@dataclass(frozen=True)
class ProductionRun:
    """
    Immutable production event recorded against one job and one stage.

    A run with `transfer_source_run_ids` re-attributes quantity that was
    already produced by the listed runs; it is not new output.
    """

    id: str
    job_id: str
    stage_id: str
    qty_good: float = 0.0
    qty_scrap: float = 0.0
    lot: str | None = None
    workcenter_id: str | None = None
    operator_id: str = ""
    at: datetime | None = None
    transfer_source_run_ids: tuple[str, ...] = ()

    @property
    def is_transfer(self) -> bool:
        return len(self.transfer_source_run_ids) > 0

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ProductionRun ID cannot be empty")


@dataclass
class Workcenter:
    id: str
    name: str

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Workcenter ID cannot be empty")
