"""
Concurrent per-job run fetching.

The run listing is per job, so a snapshot needs one fetch per job. Fetches
run on a thread pool; a failed fetch degrades to an empty run list for that
job instead of failing the whole snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from stageflow.ingest.adapter import parse_many, parse_run
from stageflow.production.core import ProductionRun

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

RunFetcher = Callable[[str], Iterable[Any]]


def _normalize(job_id: str, raw: Iterable[Any]) -> list[ProductionRun]:
    runs: list[ProductionRun] = []
    docs: list[Any] = []
    for item in raw:
        if isinstance(item, ProductionRun):
            runs.append(item)
        else:
            docs.append(item)
    runs.extend(parse_many(docs, lambda d: parse_run(d, job_id), "run"))
    return runs


def fetch_runs_by_job(
    job_ids: Iterable[str],
    fetch_runs: RunFetcher,
    max_workers: int | None = None,
    config: Mapping[str, Any] | None = None,
) -> dict[str, list[ProductionRun]]:
    """
    Fetch the runs of every job concurrently.

    `fetch_runs(job_id)` may return run documents or `ProductionRun`
    records. The result maps every requested job id, in input order, to its
    runs; a job whose fetch raised maps to an empty list.
    """
    ordered = list(dict.fromkeys(job_ids))
    if max_workers is None:
        fetch_cfg = (config or {}).get("fetch", {})
        max_workers = int(fetch_cfg.get("max_workers", DEFAULT_MAX_WORKERS))
    max_workers = max(1, max_workers)

    results: dict[str, list[ProductionRun]] = {}
    if not ordered:
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(fetch_runs, job_id): job_id for job_id in ordered}
        for future in as_completed(futures):
            job_id = futures[future]
            try:
                results[job_id] = _normalize(job_id, future.result() or [])
            except Exception as exc:
                logger.warning("Run fetch failed for job %s: %s", job_id, exc)
                results[job_id] = []

    logger.debug(
        "Fetched runs for %d jobs (%d runs)",
        len(results),
        sum(len(r) for r in results.values()),
    )
    return {job_id: results[job_id] for job_id in ordered}
