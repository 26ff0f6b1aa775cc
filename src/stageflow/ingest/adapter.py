"""
Source document adapter.

The listing services return loosely-typed camelCase documents: numbers may
be strings or missing, timestamps may be `{"seconds": ...}` objects, epoch
numbers or date strings. Everything is normalized here, once, into the
records of `stageflow.production.core`; the engine never sees raw
documents.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import numpy as np
import pandas as pd

from stageflow.flow.clock import as_utc
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

logger = logging.getLogger(__name__)

T = TypeVar("T")

Document = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def parse_timestamp(value: Any) -> datetime | None:
    """Normalize any supported timestamp shape to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        value = to_number(seconds, math.nan) + to_number(nanos, math.nan) / 1e9
        if math.isnan(value):
            return None

    if isinstance(value, (int, float, np.number)) and not isinstance(value, bool):
        ts = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
    elif isinstance(value, str):
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    else:
        return None

    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce to float; missing, unparseable or infinite values give `default`."""
    if value is None or isinstance(value, bool):
        return default
    if not isinstance(value, (int, float, str, np.number)):
        return default
    num = pd.to_numeric(value, errors="coerce")
    if pd.isna(num) or not math.isfinite(num):
        return default
    return float(num)


def _positive_or(value: Any, default: float) -> float:
    num = to_number(value, default)
    return num if num > 0 else default


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None and str(v)]


# ---------------------------------------------------------------------------
# Record parsers
# ---------------------------------------------------------------------------

def parse_stage(doc: Document) -> Stage:
    wip_limit = to_number(doc.get("wipLimit"), 0.0)
    sla = doc.get("expectedSLAHours")
    return Stage(
        id=str(doc.get("id", "")),
        name=str(doc.get("name") or doc.get("id", "")),
        order=int(to_number(doc.get("order"), 0.0)),
        wip_limit=int(wip_limit) if wip_limit > 0 else None,
        input_uom=str(doc.get("inputUOM") or ""),
        output_uom=str(doc.get("outputUOM") or ""),
        expected_sla_hours=to_number(sla) if sla is not None else None,
        default_workcenter_id=_text(doc.get("defaultWorkcenterId")),
    )


def parse_workflow(doc: Document) -> Workflow:
    stages = doc.get("stages") or []
    return Workflow(
        id=str(doc.get("id", "")),
        name=str(doc.get("name") or doc.get("id", "")),
        stages=[parse_stage(s) for s in stages if isinstance(s, Mapping)],
    )


def parse_status(value: Any) -> JobStatus:
    try:
        return JobStatus(str(value))
    except ValueError:
        logger.warning("Unknown job status %r, treating as draft", value)
        return JobStatus.DRAFT


def _parse_bom(items: Any) -> list[BOMItem]:
    if not isinstance(items, list):
        return []
    return [
        BOMItem(
            sku=str(item.get("sku", "")),
            name=str(item.get("name", "")),
            qty_required=to_number(item.get("qtyRequired")),
            uom=str(item.get("uom") or ""),
            consumed=to_number(item.get("consumed")),
        )
        for item in items
        if isinstance(item, Mapping)
    ]


def _parse_output(items: Any) -> list[OutputItem]:
    if not isinstance(items, list):
        return []
    return [
        OutputItem(
            sku=str(item.get("sku", "")),
            name=str(item.get("name", "")),
            qty_planned=to_number(item.get("qtyPlanned")),
            qty_produced=to_number(item.get("qtyProduced")),
            uom=str(item.get("uom") or ""),
            unit_price=to_number(item.get("unitPrice")),
        )
        for item in items
        if isinstance(item, Mapping)
    ]


def _parse_packaging(doc: Any) -> Packaging | None:
    if not isinstance(doc, Mapping):
        return None
    return Packaging(
        pcs_per_box=_positive_or(doc.get("pcsPerBox"), 1.0),
        boxes_per_pallet=to_number(doc.get("boxesPerPallet")),
        planned_boxes=to_number(doc.get("plannedBoxes")),
        actual_boxes=to_number(doc.get("actualBoxes")),
        planned_pallets=to_number(doc.get("plannedPallets")),
        actual_pallets=to_number(doc.get("actualPallets")),
    )


def _parse_stage_progress(items: Any) -> list[StageEntry]:
    if not isinstance(items, list):
        return []
    entries = []
    for item in items:
        if not isinstance(item, Mapping) or not item.get("stageId"):
            continue
        entries.append(
            StageEntry(
                stage_id=str(item["stageId"]),
                entered_at=parse_timestamp(item.get("enteredAt") or item.get("date")),
                completed_at=parse_timestamp(item.get("completedAt")),
            )
        )
    return entries


def parse_job(doc: Document) -> Job:
    specs = doc.get("productionSpecs") or {}
    customer = doc.get("customer") or {}
    number_up = specs.get("numberUp") if isinstance(specs, Mapping) else None
    if number_up is None:
        number_up = doc.get("numberUp")

    return Job(
        id=str(doc.get("id", "")),
        code=str(doc.get("code") or doc.get("id", "")),
        workflow_id=str(doc.get("workflowId", "")),
        current_stage_id=_text(doc.get("currentStageId")),
        status=parse_status(doc.get("status", JobStatus.DRAFT.value)),
        priority=int(to_number(doc.get("priority"), 0.0)),
        due_date=parse_timestamp(doc.get("dueDate")),
        quantity=to_number(doc.get("quantity")),
        unit=str(doc.get("unit") or ""),
        number_up=_positive_or(number_up, 1.0),
        bom=_parse_bom(doc.get("bom")),
        output=_parse_output(doc.get("output")),
        packaging=_parse_packaging(doc.get("packaging")),
        planned_stage_ids=_str_list(doc.get("plannedStageIds")),
        stage_progress=_parse_stage_progress(doc.get("stageProgress")),
        workcenter_id=_text(doc.get("workcenterId")),
        product_name=_text(doc.get("productName")),
        customer_name=(
            _text(customer.get("name")) if isinstance(customer, Mapping) else None
        ),
        created_at=parse_timestamp(doc.get("createdAt")),
        updated_at=parse_timestamp(doc.get("updatedAt")),
        qa_accepted_at=parse_timestamp(doc.get("qaAcceptedAt")),
        customer_accepted_at=parse_timestamp(doc.get("customerAcceptedAt")),
    )


def parse_run(doc: Document, job_id: str | None = None) -> ProductionRun:
    return ProductionRun(
        id=str(doc.get("id", "")),
        job_id=str(job_id or doc.get("jobId", "")),
        stage_id=str(doc.get("stageId", "")),
        qty_good=to_number(doc.get("qtyGood")),
        qty_scrap=to_number(doc.get("qtyScrap")),
        lot=_text(doc.get("lot")),
        workcenter_id=_text(doc.get("workcenterId")),
        operator_id=str(doc.get("operatorId") or ""),
        at=parse_timestamp(doc.get("at")),
        transfer_source_run_ids=tuple(_str_list(doc.get("transferSourceRunIds"))),
    )


def parse_workcenter(doc: Document) -> Workcenter:
    return Workcenter(
        id=str(doc.get("id", "")), name=str(doc.get("name") or doc.get("id", ""))
    )


# ---------------------------------------------------------------------------
# Snapshot assembly
# ---------------------------------------------------------------------------

def parse_many(
    docs: Iterable[Any], parser: Callable[[Document], T], kind: str
) -> list[T]:
    """Parse a batch of documents, skipping (and logging) the invalid ones."""
    parsed: list[T] = []
    for doc in docs:
        if not isinstance(doc, Mapping):
            logger.warning("Skipping %s: not a document (%r)", kind, type(doc))
            continue
        try:
            parsed.append(parser(doc))
        except (ValueError, TypeError, OverflowError) as exc:
            logger.warning("Skipping %s %r: %s", kind, doc.get("id"), exc)
    return parsed


def _group_run_docs(runs: Any) -> dict[str, list[Any]]:
    if isinstance(runs, Mapping):
        return {str(k): list(v or []) for k, v in runs.items()}
    grouped: dict[str, list[Any]] = {}
    if isinstance(runs, list):
        for doc in runs:
            if isinstance(doc, Mapping) and doc.get("jobId"):
                grouped.setdefault(str(doc["jobId"]), []).append(doc)
    return grouped


def load_snapshot(documents: Document) -> FlowSnapshot:
    """
    Build a snapshot from raw listings.

    `documents` has keys `jobs`, `workflows`, `workcenters` (lists) and
    `runs`, either a mapping of job id to run list or a flat list of runs
    carrying `jobId`.
    """
    snapshot = FlowSnapshot()

    adders: list[tuple[str, Callable[[Document], Any], Callable[[Any], None]]] = [
        ("workflows", parse_workflow, snapshot.add_workflow),
        ("workcenters", parse_workcenter, snapshot.add_workcenter),
        ("jobs", parse_job, snapshot.add_job),
    ]
    for key, parser, add in adders:
        for record in parse_many(documents.get(key) or [], parser, key[:-1]):
            try:
                add(record)
            except ValueError as exc:
                logger.warning("Skipping duplicate %s: %s", key[:-1], exc)

    for job_id, run_docs in _group_run_docs(documents.get("runs")).items():
        runs = parse_many(run_docs, lambda d, j=job_id: parse_run(d, j), "run")
        snapshot.add_runs(job_id, runs)

    logger.info(
        "Loaded snapshot: %d jobs, %d workflows, %d workcenters, %d runs",
        len(snapshot.jobs),
        len(snapshot.workflows),
        len(snapshot.workcenters),
        sum(len(r) for r in snapshot.runs_by_job_id.values()),
    )
    return snapshot


def load_snapshot_file(path: str | Path) -> FlowSnapshot:
    final_path = Path(path)
    with open(final_path, encoding="utf-8") as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
    return load_snapshot(data)
