"""
Production performance reports.

Job-level tallies that sit next to the stage-flow views: status mix,
scrap, workcenter yield, stage dwell time, throughput, on-time delivery,
cycle time, material usage, packaging, per-run stage output, deadlines
and an overall efficiency score. Quantities come from authentic runs
only, for the same reason the flow engine uses them: transfers would
count output twice. The per-run stage output listing is the exception;
it shows every recorded run and flags the transfers.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np

from stageflow.flow.clock import SECONDS_PER_DAY, as_utc, resolve_now
from stageflow.flow.runs import classify_runs
from stageflow.production.core import Job, JobStatus, ProductionRun, Workcenter, Workflow
from stageflow.production.snapshot import find_stage

UNASSIGNED = "unassigned"
CLOSED_STATUSES = frozenset({JobStatus.DONE, JobStatus.CANCELLED})


@dataclass
class JobStatusCount:
    status: str
    count: int
    percentage: float


@dataclass
class JobQuality:
    job_code: str
    good: float
    scrap: float
    scrap_rate: float


@dataclass
class QualityMetrics:
    scrap_rate: float = 0.0
    total_good: float = 0.0
    total_scrap: float = 0.0
    jobs: list[JobQuality] = field(default_factory=list)


@dataclass
class WorkcenterPerformance:
    workcenter_id: str
    workcenter_name: str
    jobs: int
    total_good: float
    total_scrap: float
    efficiency: float


@dataclass
class StageTime:
    stage_id: str
    stage_name: str
    total_hours: float
    job_count: int
    avg_hours: float
    expected_sla_hours: float | None = None
    over_sla: bool = False


@dataclass
class DailyThroughput:
    date: str
    count: int


@dataclass
class OnTimeDelivery:
    total: int
    on_time: int
    percentage: float


@dataclass
class CycleTime:
    average_days: float
    cycle_times: list[float]


@dataclass
class MaterialUsage:
    sku: str
    required: float
    consumed: float
    variance: float
    variance_percentage: float


@dataclass
class OutputPalletization:
    job_code: str
    total_planned: float
    total_produced: float
    production_percentage: float
    planned_boxes: float
    actual_boxes: float
    box_variance: float
    planned_pallets: float
    actual_pallets: float
    pallet_variance: float


@dataclass
class StageOutputRow:
    job_code: str
    product_name: str
    stage_id: str
    stage_name: str
    workcenter_id: str | None
    workcenter_name: str
    qty_good: float
    qty_scrap: float
    lot: str | None
    date: str
    operator_id: str
    is_transfer: bool


@dataclass
class UpcomingDeadline:
    job_code: str
    product_name: str | None
    due_date: datetime | None
    status: str
    days_until_due: int | None
    qa_accepted: bool
    customer_accepted: bool


@dataclass
class AcceptanceStats:
    total_jobs: int = 0
    qa_accepted: int = 0
    customer_accepted: int = 0
    qa_acceptance_rate: float = 0.0
    customer_acceptance_rate: float = 0.0


@dataclass
class DeadlinesAcceptance:
    upcoming_deadlines: list[UpcomingDeadline]
    acceptance: AcceptanceStats


@dataclass
class Efficiency:
    efficiency: float
    total_planned: float
    total_produced: float
    avg_cycle_time: float
    on_time_rate: float
    overall_score: float


def _rate(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def _done(jobs: list[Job]) -> list[Job]:
    return [job for job in jobs if job.status == JobStatus.DONE]


def job_status_summary(jobs: list[Job]) -> list[JobStatusCount]:
    counts: dict[str, int] = {}
    for job in jobs:
        counts[job.status.value] = counts.get(job.status.value, 0) + 1
    summary = [
        JobStatusCount(status=s, count=c, percentage=_rate(c, len(jobs)))
        for s, c in counts.items()
    ]
    return sorted(summary, key=lambda s: s.count, reverse=True)


def quality_metrics(
    jobs: list[Job], runs_by_job_id: Mapping[str, list[ProductionRun]]
) -> QualityMetrics:
    metrics = QualityMetrics()
    for job in jobs:
        runs = classify_runs(runs_by_job_id.get(job.id, [])).authentic_runs
        good = float(sum(r.qty_good for r in runs))
        scrap = float(sum(r.qty_scrap for r in runs))
        metrics.total_good += good
        metrics.total_scrap += scrap
        metrics.jobs.append(
            JobQuality(
                job_code=job.code,
                good=good,
                scrap=scrap,
                scrap_rate=_rate(scrap, good + scrap),
            )
        )

    metrics.scrap_rate = _rate(
        metrics.total_scrap, metrics.total_good + metrics.total_scrap
    )
    metrics.jobs.sort(key=lambda j: j.scrap_rate, reverse=True)
    return metrics


def workcenter_performance(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workcenters: list[Workcenter],
) -> list[WorkcenterPerformance]:
    names = {wc.id: wc.name for wc in workcenters}
    good: dict[str, float] = {}
    scrap: dict[str, float] = {}
    job_ids: dict[str, set[str]] = {}

    for job in jobs:
        for run in classify_runs(runs_by_job_id.get(job.id, [])).authentic_runs:
            wc_id = run.workcenter_id or UNASSIGNED
            good[wc_id] = good.get(wc_id, 0.0) + run.qty_good
            scrap[wc_id] = scrap.get(wc_id, 0.0) + run.qty_scrap
            job_ids.setdefault(wc_id, set()).add(job.id)

    performance = [
        WorkcenterPerformance(
            workcenter_id=wc_id,
            workcenter_name=names.get(wc_id, "Unassigned"),
            jobs=len(job_ids[wc_id]),
            total_good=good[wc_id],
            total_scrap=scrap[wc_id],
            efficiency=_rate(good[wc_id], good[wc_id] + scrap[wc_id]),
        )
        for wc_id in good
    ]
    return sorted(performance, key=lambda p: p.efficiency, reverse=True)


def stage_time_analysis(jobs: list[Job], workflows: list[Workflow]) -> list[StageTime]:
    """
    Average hours between stage entry and completion, done jobs only.

    Stages that declare an expected SLA are flagged when their average
    exceeds it.
    """
    hours: dict[str, list[float]] = {}
    for job in _done(jobs):
        for entry in job.stage_progress:
            samples = hours.setdefault(entry.stage_id, [])
            if entry.entered_at is None or entry.completed_at is None:
                continue
            delta = as_utc(entry.completed_at) - as_utc(entry.entered_at)
            samples.append(delta.total_seconds() / 3600.0)

    analysis: list[StageTime] = []
    for stage_id, samples in hours.items():
        stage = find_stage(workflows, stage_id)
        avg_hours = float(np.mean(samples)) if samples else 0.0
        sla = stage.expected_sla_hours if stage else None
        analysis.append(
            StageTime(
                stage_id=stage_id,
                stage_name=stage.name if stage else stage_id,
                total_hours=float(np.sum(samples)) if samples else 0.0,
                job_count=len(samples),
                avg_hours=avg_hours,
                expected_sla_hours=sla,
                over_sla=sla is not None and avg_hours > sla,
            )
        )
    return sorted(analysis, key=lambda s: s.avg_hours, reverse=True)


def throughput(jobs: list[Job]) -> list[DailyThroughput]:
    daily: dict[str, int] = {}
    for job in _done(jobs):
        if job.updated_at is None:
            continue
        day = as_utc(job.updated_at).date().isoformat()
        daily[day] = daily.get(day, 0) + 1
    return [DailyThroughput(date=d, count=daily[d]) for d in sorted(daily)]


def on_time_delivery(jobs: list[Job]) -> OnTimeDelivery:
    done = _done(jobs)
    on_time = 0
    for job in done:
        if job.updated_at is None or job.due_date is None:
            continue
        if as_utc(job.updated_at) <= as_utc(job.due_date):
            on_time += 1
    return OnTimeDelivery(
        total=len(done), on_time=on_time, percentage=_rate(on_time, len(done))
    )


def cycle_time(jobs: list[Job]) -> CycleTime:
    cycle_times: list[float] = []
    for job in _done(jobs):
        if job.created_at is None or job.updated_at is None:
            continue
        delta = as_utc(job.updated_at) - as_utc(job.created_at)
        cycle_times.append(delta.total_seconds() / SECONDS_PER_DAY)

    average = float(np.mean(cycle_times)) if cycle_times else 0.0
    return CycleTime(average_days=average, cycle_times=cycle_times)


def material_usage(jobs: list[Job]) -> list[MaterialUsage]:
    """BOM required versus consumed, summed per SKU across jobs."""
    required: dict[str, float] = {}
    consumed: dict[str, float] = {}
    for job in jobs:
        for item in job.bom:
            required[item.sku] = required.get(item.sku, 0.0) + item.qty_required
            consumed[item.sku] = consumed.get(item.sku, 0.0) + item.consumed

    usage = []
    for sku in required:
        variance = consumed[sku] - required[sku]
        usage.append(
            MaterialUsage(
                sku=sku,
                required=required[sku],
                consumed=consumed[sku],
                variance=variance,
                variance_percentage=_rate(variance, required[sku]),
            )
        )
    return usage


def _planned_pallets(job: Job) -> float:
    packaging = job.packaging
    if packaging is None:
        return 0.0
    if packaging.planned_pallets > 0:
        return packaging.planned_pallets
    # A part pallet still takes a pallet
    if packaging.boxes_per_pallet > 0:
        return float(math.ceil(packaging.planned_boxes / packaging.boxes_per_pallet))
    return 0.0


def output_palletization(jobs: list[Job]) -> list[OutputPalletization]:
    rows = []
    for job in jobs:
        total_planned = float(sum(item.qty_planned for item in job.output))
        total_produced = float(sum(item.qty_produced for item in job.output))
        packaging = job.packaging
        planned_boxes = packaging.planned_boxes if packaging else 0.0
        actual_boxes = packaging.actual_boxes if packaging else 0.0
        planned_pallets = _planned_pallets(job)
        actual_pallets = packaging.actual_pallets if packaging else 0.0
        rows.append(
            OutputPalletization(
                job_code=job.code,
                total_planned=total_planned,
                total_produced=total_produced,
                production_percentage=_rate(total_produced, total_planned),
                planned_boxes=planned_boxes,
                actual_boxes=actual_boxes,
                box_variance=actual_boxes - planned_boxes,
                planned_pallets=planned_pallets,
                actual_pallets=actual_pallets,
                pallet_variance=actual_pallets - planned_pallets,
            )
        )
    return rows


def stage_output(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workflows: list[Workflow],
    workcenters: list[Workcenter],
    now: datetime | None = None,
) -> list[StageOutputRow]:
    """
    One row per recorded run, sorted by job code, then stage id, newest
    first within a stage.

    A run without a workcenter is attributed to its stage's default
    workcenter, if the stage declares one. A run without a timestamp is
    dated `now`.
    """
    now = resolve_now(now)
    names = {wc.id: wc.name for wc in workcenters}
    rows: list[StageOutputRow] = []

    for job in jobs:
        for run in runs_by_job_id.get(job.id, []):
            stage = find_stage(workflows, run.stage_id)
            wc_id = run.workcenter_id
            if wc_id is None and stage is not None:
                wc_id = stage.default_workcenter_id
            at = as_utc(run.at) if run.at is not None else now
            rows.append(
                StageOutputRow(
                    job_code=job.code or job.id,
                    product_name=job.product_name or "",
                    stage_id=run.stage_id,
                    stage_name=stage.name if stage else run.stage_id,
                    workcenter_id=wc_id,
                    workcenter_name=names.get(wc_id, wc_id) if wc_id else "-",
                    qty_good=run.qty_good,
                    qty_scrap=run.qty_scrap,
                    lot=run.lot,
                    date=at.date().isoformat(),
                    operator_id=run.operator_id,
                    is_transfer=run.is_transfer,
                )
            )

    rows.sort(key=lambda r: r.date, reverse=True)
    rows.sort(key=lambda r: (r.job_code, r.stage_id))
    return rows


def deadlines_acceptance(
    jobs: list[Job], now: datetime | None = None
) -> DeadlinesAcceptance:
    """
    Open jobs ordered by days until due, plus QA and customer acceptance
    rates over all jobs. Jobs without a due date sort last.
    """
    now = resolve_now(now)
    upcoming = []
    for job in jobs:
        if job.status in CLOSED_STATUSES:
            continue
        days = None
        if job.due_date is not None:
            delta = (as_utc(job.due_date) - now).total_seconds() / SECONDS_PER_DAY
            days = math.ceil(delta)
        upcoming.append(
            UpcomingDeadline(
                job_code=job.code,
                product_name=job.product_name,
                due_date=job.due_date,
                status=job.status.value,
                days_until_due=days,
                qa_accepted=job.qa_accepted_at is not None,
                customer_accepted=job.customer_accepted_at is not None,
            )
        )
    upcoming.sort(key=lambda d: (d.days_until_due is None, d.days_until_due or 0))

    qa = sum(1 for job in jobs if job.qa_accepted_at is not None)
    customer = sum(1 for job in jobs if job.customer_accepted_at is not None)
    acceptance = AcceptanceStats(
        total_jobs=len(jobs),
        qa_accepted=qa,
        customer_accepted=customer,
        qa_acceptance_rate=_rate(qa, len(jobs)),
        customer_acceptance_rate=_rate(customer, len(jobs)),
    )
    return DeadlinesAcceptance(upcoming_deadlines=upcoming, acceptance=acceptance)


def efficiency(
    jobs: list[Job], cycle: CycleTime, on_time: OnTimeDelivery
) -> Efficiency:
    """
    Planned versus produced output over done jobs, folded with the on-time
    rate and cycle time into one score.

    Output efficiency is weighted 0.4 and the on-time rate is worth up to
    40 points. Cycle time is worth up to 100 points, minus 20 per 10 days.
    """
    done = _done(jobs)
    total_planned = float(sum(i.qty_planned for job in done for i in job.output))
    total_produced = float(sum(i.qty_produced for job in done for i in job.output))
    output_efficiency = _rate(total_produced, total_planned)

    cycle_score = 0.0
    if cycle.average_days > 0:
        cycle_score = max(0.0, 100 - cycle.average_days / 10 * 20)

    return Efficiency(
        efficiency=output_efficiency,
        total_planned=total_planned,
        total_produced=total_produced,
        avg_cycle_time=cycle.average_days,
        on_time_rate=on_time.percentage,
        overall_score=(
            output_efficiency * 0.4 + on_time.percentage / 100 * 40 + cycle_score
        ),
    )
