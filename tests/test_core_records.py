import pytest

from stageflow.production.core import (
    Job,
    ProductionRun,
    Stage,
    StageEntry,
    Workcenter,
    Workflow,
)
from stageflow.production.snapshot import FlowSnapshot


def test_stage_uom_prefers_output():
    stage = Stage(id="fold", name="Fold", order=1, input_uom="sheets", output_uom="cartoon")
    assert stage.uom == "cartoon"
    assert Stage(id="cut", name="Cut", order=2, input_uom="sheets").uom == "sheets"
    assert Stage(id="x", name="X", order=3).uom == ""


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Stage(id="", name="X", order=1),
        lambda: Workflow(id="", name="X"),
        lambda: Job(id="", code="X", workflow_id="wf", current_stage_id=None),
        lambda: ProductionRun(id="", job_id="j", stage_id="s"),
        lambda: Workcenter(id="", name="X"),
    ],
)
def test_empty_ids_rejected(factory):
    with pytest.raises(ValueError):
        factory()


def test_run_transfer_flag():
    assert not ProductionRun(id="r", job_id="j", stage_id="s").is_transfer
    assert ProductionRun(
        id="t", job_id="j", stage_id="s", transfer_source_run_ids=("r",)
    ).is_transfer


def test_job_stage_entry_lookup():
    job = Job(
        id="j", code="J", workflow_id="wf", current_stage_id="b",
        stage_progress=[StageEntry(stage_id="a"), StageEntry(stage_id="b")],
    )
    assert job.stage_entry("b").stage_id == "b"
    assert job.stage_entry("c") is None


def test_workflow_ordering_and_lookup():
    wf = Workflow(
        id="wf",
        name="Line",
        stages=[Stage(id="b", name="B", order=2), Stage(id="a", name="A", order=1)],
    )
    assert [s.id for s in wf.ordered_stages()] == ["a", "b"]
    assert wf.get_stage("b").name == "B"
    assert wf.get_stage("z") is None


class TestFlowSnapshot:
    def test_duplicates_rejected(self):
        snapshot = FlowSnapshot()
        snapshot.add_workflow(Workflow(id="wf", name="Line"))
        with pytest.raises(ValueError, match="already exists"):
            snapshot.add_workflow(Workflow(id="wf", name="Other"))

        snapshot.add_job(Job(id="j", code="J", workflow_id="wf", current_stage_id=None))
        with pytest.raises(ValueError):
            snapshot.add_job(Job(id="j", code="J2", workflow_id="wf", current_stage_id=None))

    def test_stage_lookup_across_workflows(self):
        snapshot = FlowSnapshot()
        snapshot.add_workflow(Workflow(id="w1", name="1", stages=[Stage(id="a", name="A", order=1)]))
        snapshot.add_workflow(Workflow(id="w2", name="2", stages=[Stage(id="b", name="B", order=1)]))

        assert snapshot.find_stage("b").name == "B"
        assert snapshot.stage_name("a") == "A"
        assert snapshot.stage_name("zz") == "zz"

    def test_runs_accumulate(self):
        snapshot = FlowSnapshot()
        snapshot.add_runs("j", [ProductionRun(id="r1", job_id="j", stage_id="s")])
        snapshot.add_runs("j", [ProductionRun(id="r2", job_id="j", stage_id="s")])

        assert [r.id for r in snapshot.runs_for("j")] == ["r1", "r2"]
        assert snapshot.runs_for("other") == []
        assert snapshot.get_workcenter(None) is None
