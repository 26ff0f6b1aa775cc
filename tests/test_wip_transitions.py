from datetime import UTC, datetime, timedelta

import pytest

from stageflow.engine import compute_wip_transitions
from stageflow.ingest.adapter import parse_run
from stageflow.production.core import Job, JobStatus, ProductionRun, Stage, Workflow

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def workflow():
    return Workflow(
        id="wf-1",
        name="Carton line",
        stages=[
            Stage(id="print", name="Print", order=1, output_uom="sheets"),
            Stage(id="cut", name="Cut", order=2, output_uom="sheets"),
            Stage(id="fold", name="Fold", order=3, input_uom="sheets", output_uom="cartoon"),
            Stage(id="pack", name="Pack", order=4, output_uom="cartoon"),
        ],
    )


def make_job(job_id, stage, status=JobStatus.IN_PROGRESS):
    return Job(
        id=job_id,
        code=job_id.upper(),
        workflow_id="wf-1",
        current_stage_id=stage,
        status=status,
        number_up=10,
    )


def run(run_id, job_id, stage, qty, at=None, transfer_from=()):
    return ProductionRun(
        id=run_id,
        job_id=job_id,
        stage_id=stage,
        qty_good=qty,
        at=at,
        transfer_source_run_ids=tuple(transfer_from),
    )


def compute(jobs, runs_by_job_id, workflows):
    return compute_wip_transitions(jobs, runs_by_job_id, workflows, now=NOW, config={})


class TestWIPTransitions:
    def test_unconsumed_previous_output(self, workflow):
        """Print 1000, Cut 300: 700 sheets are waiting between them."""
        job = make_job("j1", "cut")
        runs = {"j1": [run("r1", "j1", "print", 1000), run("r2", "j1", "cut", 300)]}

        transitions = compute([job], runs, [workflow])

        assert len(transitions) == 1
        t = transitions[0]
        assert (t.from_stage_id, t.to_stage_id) == ("print", "cut")
        assert (t.from_stage_name, t.to_stage_name) == ("Print", "Cut")
        assert t.quantity == 700
        assert t.uom == "sheets"
        assert t.job_count == 1
        assert t.jobs[0].job_code == "J1"
        assert t.jobs[0].quantity == 700

    def test_transfer_runs_do_not_reduce_wip(self, workflow):
        job = make_job("j1", "cut")
        runs = {
            "j1": [
                run("r1", "j1", "print", 1000),
                run("r2", "j1", "cut", 300),
                run("t1", "j1", "cut", 1000, transfer_from=["r1"]),
            ]
        }

        transitions = compute([job], runs, [workflow])

        assert transitions[0].quantity == 700

    @pytest.mark.parametrize("consumed", [1000, 1200])
    def test_fully_consumed_adds_nothing(self, workflow, consumed):
        job = make_job("j1", "cut")
        runs = {
            "j1": [run("r1", "j1", "print", 1000), run("r2", "j1", "cut", consumed)]
        }

        assert compute([job], runs, [workflow]) == []

    def test_first_stage_jobs_have_no_transition(self, workflow):
        job = make_job("j1", "print")
        runs = {"j1": [run("r1", "j1", "print", 1000)]}

        assert compute([job], runs, [workflow]) == []

    def test_buckets_aggregate_and_sort_by_quantity(self, workflow):
        jobs = [
            make_job("j1", "cut"),
            make_job("j2", "cut"),
            make_job("j3", "pack"),
        ]
        runs = {
            "j1": [run("a", "j1", "print", 100)],
            "j2": [run("b", "j2", "print", 200)],
            "j3": [run("c", "j3", "fold", 5000), run("d", "j3", "pack", 1000)],
        }

        transitions = compute(jobs, runs, [workflow])

        assert [(t.from_stage_id, t.to_stage_id) for t in transitions] == [
            ("fold", "pack"),
            ("print", "cut"),
        ]
        assert transitions[0].quantity == 4000
        assert transitions[0].uom == "cartoon"
        assert transitions[1].quantity == 300
        assert transitions[1].job_count == 2
        assert {j.job_id for j in transitions[1].jobs} == {"j1", "j2"}

    def test_terminal_jobs_are_skipped(self, workflow):
        job = make_job("j1", "cut", status=JobStatus.DONE)
        runs = {"j1": [run("r1", "j1", "print", 1000)]}

        assert compute([job], runs, [workflow]) == []

    def test_days_in_transition(self, workflow):
        job = make_job("j1", "cut")
        runs = {
            "j1": [run("r1", "j1", "print", 1000, at=NOW - timedelta(days=3))]
        }

        transitions = compute([job], runs, [workflow])

        assert transitions[0].jobs[0].days_in_transition == pytest.approx(3.0)

    def test_quantities_are_positive(self, workflow):
        jobs = [make_job(f"j{i}", "cut") for i in range(4)]
        runs = {
            f"j{i}": [
                run(f"p{i}", f"j{i}", "print", 100 * i),
                run(f"c{i}", f"j{i}", "cut", 150),
            ]
            for i in range(4)
        }

        transitions = compute(jobs, runs, [workflow])

        for t in transitions:
            assert t.quantity > 0
            assert all(j.quantity > 0 for j in t.jobs)
            assert t.job_count == len(t.jobs)

    def test_infinite_source_quantities_add_nothing(self, workflow):
        job = make_job("j1", "cut")
        docs = [
            {"id": "r1", "stageId": "print", "qtyGood": "inf"},
            {"id": "r2", "stageId": "cut", "qtyGood": "inf"},
        ]
        runs = {"j1": [parse_run(d, "j1") for d in docs]}

        assert compute([job], runs, [workflow]) == []

    def test_non_finite_runs_never_yield_nan_buckets(self, workflow):
        jobs = [make_job("j1", "cut"), make_job("j2", "cut")]
        runs = {
            "j1": [run("r1", "j1", "print", float("inf")),
                   run("r2", "j1", "cut", float("inf"))],
            "j2": [run("r3", "j2", "print", 500)],
        }

        transitions = compute(jobs, runs, [workflow])

        assert len(transitions) == 1
        assert transitions[0].quantity == 500
        assert [j.job_id for j in transitions[0].jobs] == ["j2"]

    def test_same_inputs_same_output(self, workflow):
        jobs = [make_job("j1", "cut"), make_job("j2", "fold")]
        runs = {
            "j1": [run("r1", "j1", "print", 1000, at=NOW - timedelta(days=2))],
            "j2": [run("r2", "j2", "cut", 400), run("r3", "j2", "fold", 100)],
        }

        first = compute(jobs, runs, [workflow])
        second = compute(jobs, runs, [workflow])

        assert first == second
