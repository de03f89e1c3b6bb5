# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Poller - Trigger one job and follow it to a terminal outcome.

States:
    QUEUED ──(queue item gets a build number)──► EXECUTING ──► SUCCESS | FAILURE | UNSTABLE | ABORTED
      │                                              │
      └──────────── TIMED_OUT / DISPATCH_ERROR ◄─────┘

Attempt accounting (N = poll_build_result_counts):
- QUEUED: each "still queued" answer uses one of N queue attempts. Resolving
  to a build uses none.
- EXECUTING: the build counter starts at N; each "in progress" answer uses one.
- Running out of either counter is TIMED_OUT.

The engine waits poll_build_result_interval_second before every query.
NetworkError is retried NETWORK_RETRIES times per query without using
poll attempts.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional, TypeVar

from jobrelay.client import JenkinsClient, NetworkError, RemoteError
from jobrelay.schemas import (
    BuildHandle,
    BuildOutcome,
    BuildResult,
    BuildStatus,
    QueueHandle,
    ResolvedJobSpec,
)

logger = logging.getLogger(__name__)

NETWORK_RETRIES = 3

T = TypeVar("T")
H = TypeVar("H")


class TrackState(Enum):
    """Non-terminal poll states."""

    QUEUED = "queued"
    EXECUTING = "executing"


class BuildTracker:
    """Runs the trigger → queue → build state machine for one instance."""

    def __init__(
        self,
        client: JenkinsClient,
        sleep: Callable[[float], None] = time.sleep,
        network_retries: int = NETWORK_RETRIES,
    ):
        """
        Initialize the tracker.

        Args:
            client: Client for the instance the jobs run on
            sleep: Wait function between polls (tests pass a recorder)
            network_retries: NetworkError retries allowed per query
        """
        self.client = client
        self.sleep = sleep
        self.network_retries = network_retries

    def track(self, spec: ResolvedJobSpec, position: int = 0) -> BuildResult:
        """
        Trigger spec's job and poll it to a terminal outcome.

        Never raises for remote failures: they become a DISPATCH_ERROR result.
        """
        name = f"{spec.instance.name}/{spec.job_name}"

        def result(outcome: BuildOutcome, build: Optional[BuildHandle] = None, detail: Optional[str] = None) -> BuildResult:
            return BuildResult(
                position=position,
                instance_name=spec.instance.name,
                job_name=spec.job_name,
                outcome=outcome,
                build_number=build.number if build else None,
                build_url=build.url if build else None,
                detail=detail,
            )

        # A repeated POST may start a second build, so the trigger is not retried
        try:
            queue = self.client.trigger(spec.job_name, spec.trigger, spec.parameters)
        except RemoteError as e:
            logger.error(f"{name}: trigger failed: {e}")
            return result(BuildOutcome.DISPATCH_ERROR, detail=str(e))

        state = TrackState.QUEUED
        logger.debug(f"{name}: {state.value} at {queue.url}")

        build: Optional[BuildHandle] = None
        try:
            build = self._wait_for_build(spec, queue)
            if build is None:
                detail = f"still queued after {spec.poll_attempts} polls"
                logger.warning(f"{name}: timed out, {detail}")
                return result(BuildOutcome.TIMED_OUT, detail=detail)

            state = TrackState.EXECUTING
            logger.debug(f"{name}: {state.value} as build #{build.number} at {build.url}")

            status = self._wait_for_result(spec, build)
            if status is None:
                detail = f"build #{build.number} still running after {spec.poll_attempts} polls"
                logger.warning(f"{name}: timed out, {detail}")
                return result(BuildOutcome.TIMED_OUT, build, detail)
        except RemoteError as e:
            logger.error(f"{name}: {state.value} poll failed: {e}")
            return result(BuildOutcome.DISPATCH_ERROR, build, str(e))

        logger.info(f"{name}: build #{build.number} finished {status.value}")
        return result(status.outcome, build)

    def _wait_for_build(self, spec: ResolvedJobSpec, queue: QueueHandle) -> Optional[BuildHandle]:
        """Poll the queue item; None when the attempt budget runs out."""
        attempts = 0
        while attempts < spec.poll_attempts:
            resolution = self._query(spec, self.client.query_queue, queue)
            if resolution.resolved:
                return resolution.build
            attempts += 1
            logger.debug(f"{spec.job_name}: still queued ({attempts}/{spec.poll_attempts})")
        return None

    def _wait_for_result(self, spec: ResolvedJobSpec, build: BuildHandle) -> Optional[BuildStatus]:
        """Poll the build; None when the attempt budget runs out."""
        attempts = 0
        while attempts < spec.poll_attempts:
            status = self._query(spec, self.client.query_build, build)
            if status.terminal:
                return status
            attempts += 1
            logger.debug(f"{spec.job_name}: build #{build.number} in progress ({attempts}/{spec.poll_attempts})")
        return None

    def _query(self, spec: ResolvedJobSpec, query: Callable[[H], T], handle: H) -> T:
        """Wait one interval, then query; retry NetworkError up to the retry budget."""
        failures = 0
        while True:
            self.sleep(spec.poll_interval)
            try:
                return query(handle)
            except NetworkError as e:
                failures += 1
                if failures > self.network_retries:
                    raise
                logger.warning(
                    f"{spec.job_name}: network error, retry {failures}/{self.network_retries}: {e}"
                )
