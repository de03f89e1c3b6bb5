# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Executor - Run a job list against the configured instances.

Resolves every entry before the first trigger, so a config error stops the
run with nothing dispatched. After that each entry is independent: a failed
job is recorded and the next one still runs.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional

from jobrelay.client import JenkinsClient
from jobrelay.poller import BuildTracker
from jobrelay.report import RunReport
from jobrelay.resolver import resolve_all
from jobrelay.schemas import BuildOutcome, BuildResult, JobEntry, RelayConfig, ResolvedJobSpec

logger = logging.getLogger(__name__)

ResultCallback = Callable[[BuildResult], None]
ClientFactory = Callable[..., JenkinsClient]


def build_clients(specs: Iterable[ResolvedJobSpec], client_factory: ClientFactory = JenkinsClient) -> Dict[str, JenkinsClient]:
    """One client per instance referenced by the resolved jobs."""
    clients: Dict[str, JenkinsClient] = {}
    for spec in specs:
        if spec.instance.name not in clients:
            clients[spec.instance.name] = client_factory(spec.instance)
    return clients


def _run_entry(tracker: BuildTracker, spec: ResolvedJobSpec, position: int) -> BuildResult:
    """Track one entry; unexpected errors are contained to its result."""
    try:
        return tracker.track(spec, position)
    except Exception as e:
        logger.exception(f"{spec.instance.name}/{spec.job_name}: unexpected error")
        return BuildResult(
            position=position,
            instance_name=spec.instance.name,
            job_name=spec.job_name,
            outcome=BuildOutcome.DISPATCH_ERROR,
            detail=f"unexpected error: {e}",
        )


def execute(
    config: RelayConfig,
    entries: List[JobEntry],
    workers: int = 1,
    on_result: Optional[ResultCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
    client_factory: ClientFactory = JenkinsClient,
) -> RunReport:
    """
    Trigger every entry and wait for each to finish.

    Args:
        config: Loaded configuration
        entries: Parsed job list, in order
        workers: Jobs processed at once (1 = sequential)
        on_result: Called once per finished job, from the calling thread
        sleep: Wait function between polls
        client_factory: Builds a JenkinsClient for an InstanceConfig

    Returns:
        RunReport with one result per entry, in job-list order

    Raises:
        ConfigError: If any entry cannot be resolved (nothing is triggered)
    """
    specs = resolve_all(config, entries)
    report = RunReport(len(specs))
    if not specs:
        return report

    clients = build_clients(specs, client_factory)
    trackers = {name: BuildTracker(client, sleep=sleep) for name, client in clients.items()}

    def finish(result: BuildResult) -> None:
        report.record(result)
        if on_result is not None:
            on_result(result)

    workers = max(1, workers)
    logger.info(f"Dispatching {len(specs)} job(s) with {workers} worker(s)")

    if workers == 1:
        for position, spec in enumerate(specs):
            finish(_run_entry(trackers[spec.instance.name], spec, position))
        return report

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_run_entry, trackers[spec.instance.name], spec, position)
            for position, spec in enumerate(specs)
        ]
        for fut in as_completed(futures):
            finish(fut.result())

    return report
