"""Normalization of raw listing documents into engine records."""

from stageflow.ingest.adapter import (
    load_snapshot,
    load_snapshot_file,
    parse_job,
    parse_run,
    parse_timestamp,
    parse_workcenter,
    parse_workflow,
)
from stageflow.ingest.fetch import fetch_runs_by_job

__all__ = [
    "fetch_runs_by_job",
    "load_snapshot",
    "load_snapshot_file",
    "parse_job",
    "parse_run",
    "parse_timestamp",
    "parse_workcenter",
    "parse_workflow",
]
