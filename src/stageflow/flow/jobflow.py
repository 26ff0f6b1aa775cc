import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from stageflow.config.settings import ReconciliationSettings
from stageflow.flow.runs import StageLedger
from stageflow.flow.stage_order import StagePosition, locate_current_stage
from stageflow.production.core import Job, ProductionRun, Workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobFlow:
    """A non-terminal job resolved against its workflow and run history."""

    job: Job
    workflow: Workflow
    position: StagePosition
    ledger: StageLedger


def iter_job_flows(
    jobs: list[Job],
    runs_by_job_id: Mapping[str, list[ProductionRun]],
    workflows: list[Workflow],
    settings: ReconciliationSettings,
) -> Iterator[JobFlow]:
    """
    Yield every job that can take part in stage-flow analysis.

    Terminal jobs, jobs whose workflow is missing from the snapshot, and
    jobs whose current stage is outside their resolved chain are skipped.
    """
    workflow_index = {wf.id: wf for wf in workflows}

    for job in jobs:
        if settings.is_terminal(job):
            continue

        workflow = workflow_index.get(job.workflow_id)
        if workflow is None:
            logger.debug(
                "Job %s excluded: workflow %s not in snapshot", job.id, job.workflow_id
            )
            continue

        position = locate_current_stage(job, workflow)
        if position is None:
            logger.debug(
                "Job %s excluded: stage %s not in resolved chain of %s",
                job.id,
                job.current_stage_id,
                workflow.id,
            )
            continue

        yield JobFlow(
            job=job,
            workflow=workflow,
            position=position,
            ledger=StageLedger(runs_by_job_id.get(job.id, [])),
        )
