from stageflow.production.core import Job, ProductionRun, Stage, Workcenter, Workflow


class FlowSnapshot:
    """
    The container for one consistent read of the production-tracking store.

    Every reconciliation call works on a snapshot; nothing in here is
    mutated once the computation starts.
    """

    def __init__(self) -> None:
        self.jobs: dict[str, Job] = {}
        self.workflows: dict[str, Workflow] = {}
        self.workcenters: dict[str, Workcenter] = {}
        self.runs_by_job_id: dict[str, list[ProductionRun]] = {}

    def add_job(self, job: Job) -> None:
        if job.id in self.jobs:
            raise ValueError(f"Job {job.id} already exists")
        self.jobs[job.id] = job

    def add_workflow(self, workflow: Workflow) -> None:
        if workflow.id in self.workflows:
            raise ValueError(f"Workflow {workflow.id} already exists")
        self.workflows[workflow.id] = workflow

    def add_workcenter(self, workcenter: Workcenter) -> None:
        if workcenter.id in self.workcenters:
            raise ValueError(f"Workcenter {workcenter.id} already exists")
        self.workcenters[workcenter.id] = workcenter

    def add_runs(self, job_id: str, runs: list[ProductionRun]) -> None:
        self.runs_by_job_id.setdefault(job_id, []).extend(runs)

    def runs_for(self, job_id: str) -> list[ProductionRun]:
        return self.runs_by_job_id.get(job_id, [])

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self.workflows.get(workflow_id)

    def get_workcenter(self, workcenter_id: str | None) -> Workcenter | None:
        if workcenter_id is None:
            return None
        return self.workcenters.get(workcenter_id)

    def find_stage(self, stage_id: str) -> Stage | None:
        return find_stage(list(self.workflows.values()), stage_id)

    def stage_name(self, stage_id: str) -> str:
        stage = self.find_stage(stage_id)
        return stage.name if stage else stage_id

    # List views in the shape the engine entry points take
    @property
    def job_list(self) -> list[Job]:
        return list(self.jobs.values())

    @property
    def workflow_list(self) -> list[Workflow]:
        return list(self.workflows.values())

    @property
    def workcenter_list(self) -> list[Workcenter]:
        return list(self.workcenters.values())


def find_stage(workflows: list[Workflow], stage_id: str) -> Stage | None:
    """Look a stage up across every workflow (first match wins)."""
    for workflow in workflows:
        stage = workflow.get_stage(stage_id)
        if stage is not None:
            return stage
    return None
