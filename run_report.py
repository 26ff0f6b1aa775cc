"""
Stage-flow report runner.

Usage:
    poetry run python run_report.py --synthetic 200              # Seeded demo data
    poetry run python run_report.py --snapshot data/snapshot.json
    poetry run python run_report.py --synthetic 50 --report stuck --now 2024-05-01T08:00:00Z
"""

import argparse
import sys

import pandas as pd

from stageflow.config.loader import configure_logging, load_engine_config
from stageflow.engine import (
    compute_stage_bottlenecks,
    compute_stage_occupancy,
    compute_wip_transitions,
    detect_stuck_jobs,
)
from stageflow.flow.clock import resolve_now
from stageflow.generators.synthetic import SnapshotGenerator
from stageflow.ingest.adapter import load_snapshot_file, parse_timestamp
from stageflow.reports.frames import to_frame

REPORTS = ["bottlenecks", "stuck", "wip", "occupancy"]


def print_section(title: str, frame: pd.DataFrame) -> None:
    print(f"\n=== {title} ({len(frame)} rows) ===")
    if frame.empty:
        print("(none)")
    else:
        print(frame.to_string(index=False))


def main() -> None:
    """Run the stage-flow reports over a snapshot."""
    parser = argparse.ArgumentParser(
        description="Stage-flow reconciliation reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poetry run python run_report.py --synthetic 100 --seed 7
  poetry run python run_report.py --snapshot snapshot.json --report bottlenecks
        """,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--snapshot",
        type=str,
        help="JSON file with jobs, workflows, workcenters and runs listings",
    )
    source.add_argument(
        "--synthetic",
        type=int,
        metavar="N",
        help="Generate a synthetic snapshot of N jobs",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Seed for the synthetic generator (default: 42)",
    )
    parser.add_argument(
        "--report",
        type=str,
        choices=[*REPORTS, "all"],
        default="all",
        help="Which report to print (default: all)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to an engine config JSON (default: bundled engine_config.json)",
    )
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Evaluation time as ISO-8601 (default: current UTC time)",
    )

    args = parser.parse_args()

    config = load_engine_config(args.config)
    configure_logging(config)

    requested_now = parse_timestamp(args.now) if args.now else None
    if args.now and requested_now is None:
        parser.error(f"--now is not a valid timestamp: {args.now}")
    now = resolve_now(requested_now)

    if args.snapshot:
        snapshot = load_snapshot_file(args.snapshot)
    else:
        snapshot = SnapshotGenerator(seed=args.seed, config=config).generate(
            args.synthetic, now
        )

    jobs = snapshot.job_list
    workflows = snapshot.workflow_list
    workcenters = snapshot.workcenter_list
    runs = snapshot.runs_by_job_id
    selected = REPORTS if args.report == "all" else [args.report]

    print(f"Snapshot: {len(jobs)} jobs, {len(workflows)} workflows, now={now.isoformat()}")

    if "bottlenecks" in selected:
        bottlenecks = compute_stage_bottlenecks(
            jobs, runs, workflows, workcenters, now, config
        )
        print_section("Stage bottlenecks", to_frame(bottlenecks))
    if "stuck" in selected:
        stuck = detect_stuck_jobs(jobs, runs, workflows, workcenters, now, config)
        print_section("Stuck jobs", to_frame(stuck))
    if "wip" in selected:
        transitions = compute_wip_transitions(jobs, runs, workflows, now, config)
        print_section("WIP transitions", to_frame(transitions))
    if "occupancy" in selected:
        occupancy = compute_stage_occupancy(jobs, workflows, now, config)
        print_section("Stage occupancy", to_frame(occupancy))


if __name__ == "__main__":
    sys.exit(main())
