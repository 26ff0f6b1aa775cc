from datetime import UTC, datetime, timedelta

import pytest

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.clock import elapsed_days, resolve_now
from stageflow.flow.jobflow import iter_job_flows
from stageflow.flow.runs import StageLedger, authentic_output, classify_runs
from stageflow.flow.stage_order import locate_current_stage, resolve_stage_order
from stageflow.production.core import Job, JobStatus, ProductionRun, Stage, Workflow

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def workflow():
    return Workflow(
        id="wf-1",
        name="Line",
        stages=[
            Stage(id="c", name="C", order=30),
            Stage(id="a", name="A", order=10),
            Stage(id="b", name="B", order=20),
        ],
    )


def make_job(stage="b", **kwargs):
    return Job(id="j1", code="J1", workflow_id="wf-1", current_stage_id=stage, **kwargs)


def run(run_id, stage, qty, transfer_from=(), at=None):
    return ProductionRun(
        id=run_id,
        job_id="j1",
        stage_id=stage,
        qty_good=qty,
        at=at,
        transfer_source_run_ids=tuple(transfer_from),
    )


class TestStageOrder:
    def test_sorted_by_order(self, workflow):
        chain = resolve_stage_order(make_job(), workflow)
        assert [s.id for s in chain] == ["a", "b", "c"]

    def test_planned_subset(self, workflow):
        chain = resolve_stage_order(make_job(planned_stage_ids=["c", "a"]), workflow)
        assert [s.id for s in chain] == ["a", "c"]

    def test_empty_filter_falls_back(self, workflow):
        chain = resolve_stage_order(make_job(planned_stage_ids=["zz"]), workflow)
        assert [s.id for s in chain] == ["a", "b", "c"]

    def test_position_neighbours(self, workflow):
        position = locate_current_stage(make_job("b"), workflow)

        assert position.current.id == "b"
        assert position.previous.id == "a"
        assert position.next.id == "c"

    def test_position_at_edges(self, workflow):
        first = locate_current_stage(make_job("a"), workflow)
        last = locate_current_stage(make_job("c"), workflow)

        assert first.previous is None
        assert last.next is None

    def test_no_position_for_unknown_or_missing_stage(self, workflow):
        assert locate_current_stage(make_job("zz"), workflow) is None
        assert locate_current_stage(make_job(None), workflow) is None


class TestRunClassification:
    def test_partition(self):
        runs = [run("r1", "a", 100), run("t1", "b", 100, ["r1"]), run("r2", "b", 40)]

        partition = classify_runs(runs)

        assert [r.id for r in partition.authentic_runs] == ["r1", "r2"]
        assert [r.id for r in partition.transfer_runs] == ["t1"]
        assert len(partition.authentic_runs) + len(partition.transfer_runs) == len(runs)

    def test_authentic_output_ignores_transfers(self):
        runs = [run("r1", "b", 100), run("t1", "b", 900, ["x"])]

        assert authentic_output(runs, "b") == 100
        assert authentic_output(runs, "a") == 0

    def test_ledger_totals(self):
        ledger = StageLedger([run("r1", "a", 60), run("r2", "a", 40), run("t", "b", 5, ["r1"])])

        assert ledger.total("a") == 100
        assert ledger.total("b") == 0
        assert ledger.has_runs("a")
        assert not ledger.has_runs("b")

    def test_ledger_runs_cannot_change_totals(self):
        ledger = StageLedger([run("r1", "a", 60)])

        stage_runs = ledger.runs("a")
        with pytest.raises(AttributeError):
            stage_runs.append(run("r2", "a", 1000))

        assert ledger.total("a") == 60
        assert ledger.runs("missing") == ()

    def test_ledger_last_output_at(self):
        ledger = StageLedger([
            run("r1", "a", 1, at=NOW - timedelta(days=3)),
            run("r2", "a", 1, at=NOW - timedelta(days=1)),
        ])

        assert ledger.last_output_at("a", NOW) == NOW - timedelta(days=1)
        assert ledger.last_output_at("b", NOW) == NOW


class TestClock:
    def test_resolve_now_keeps_explicit_value(self):
        assert resolve_now(NOW) == NOW

    def test_resolve_now_makes_naive_utc(self):
        assert resolve_now(datetime(2024, 1, 1)).tzinfo is not None

    def test_elapsed_days(self):
        assert elapsed_days(NOW - timedelta(hours=36), NOW) == pytest.approx(1.5)
        assert elapsed_days(None, NOW) == 0.0
        assert elapsed_days(NOW + timedelta(days=2), NOW) == 0.0


class TestJobFlows:
    def test_skips_excluded_jobs(self, workflow):
        jobs = [
            Job(id="ok", code="OK", workflow_id="wf-1", current_stage_id="b"),
            Job(id="done", code="D", workflow_id="wf-1", current_stage_id="b",
                status=JobStatus.DONE),
            Job(id="orphan", code="O", workflow_id="missing", current_stage_id="b"),
            Job(id="lost", code="L", workflow_id="wf-1", current_stage_id="zz"),
        ]

        flows = list(iter_job_flows(jobs, {}, [workflow], ReconciliationSettings()))

        assert [f.job.id for f in flows] == ["ok"]
        assert flows[0].position.current.id == "b"

    def test_custom_terminal_statuses(self, workflow):
        settings = ReconciliationSettings.from_config(
            {"reconciliation": {"terminal_statuses": ["done", "cancelled", "blocked"]}}
        )
        job = Job(id="j", code="J", workflow_id="wf-1", current_stage_id="b",
                  status=JobStatus.BLOCKED)

        assert list(iter_job_flows([job], {}, [workflow], settings)) == []
