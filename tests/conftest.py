# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for jobrelay tests."""

import itertools
from typing import Dict, List, Optional

import pytest

from jobrelay.schemas import (
    STILL_QUEUED,
    BuildHandle,
    BuildStatus,
    GlobalDefaults,
    InstanceConfig,
    JobOverride,
    QueueHandle,
    QueueResolution,
    RelayConfig,
    ResolvedJobSpec,
    TriggerMode,
)


class FakeJenkins:
    """Scripted stand-in for JenkinsClient.

    Queue script items: None (still queued), int (resolved to that build
    number) or an exception to raise. Build script items: BuildStatus or an
    exception. The last item of a script repeats once the script runs out.
    """

    def __init__(self, instance: InstanceConfig):
        self.instance = instance
        self.scripts: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self.triggered: List[tuple] = []
        self._jobs_by_url: Dict[str, str] = {}
        self._queue_ids = itertools.count(1)

    def script(self, job, queue=(1,), builds=(BuildStatus.SUCCESS,), trigger_error: Optional[Exception] = None):
        self.scripts[job] = {
            "queue": list(queue),
            "builds": list(builds),
            "trigger_error": trigger_error,
        }
        return self

    @staticmethod
    def _next(items):
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return item

    def trigger(self, job_name, mode, parameters=None):
        self.calls.append(("trigger", job_name))
        script = self.scripts[job_name]
        if script["trigger_error"] is not None:
            raise script["trigger_error"]
        self.triggered.append((job_name, mode, dict(parameters or {})))
        handle = QueueHandle(url=f"{self.instance.url}/queue/item/{next(self._queue_ids)}/")
        self._jobs_by_url[handle.url] = job_name
        return handle

    def query_queue(self, handle):
        job = self._jobs_by_url[handle.url]
        self.calls.append(("queue", job))
        number = self._next(self.scripts[job]["queue"])
        if number is None:
            return STILL_QUEUED
        build = BuildHandle(
            instance_name=self.instance.name,
            number=number,
            url=f"{self.instance.url}/job/{job}/{number}/",
        )
        self._jobs_by_url[build.url] = job
        return QueueResolution(build=build)

    def query_build(self, handle):
        job = self._jobs_by_url[handle.url]
        self.calls.append(("build", job))
        return self._next(self.scripts[job]["builds"])

    def call_kinds(self, job):
        return [kind for kind, name in self.calls if name == job]


@pytest.fixture
def prod_instance():
    return InstanceConfig(
        name="prod",
        url="https://jenkins.example.com",
        user="release-bot",
        password="secret",
        jobs={
            "job1": JobOverride(
                trigger=TriggerMode.PARAMETERIZED,
                parameters={"app": "abc"},
            ),
        },
    )


@pytest.fixture
def uat_instance():
    return InstanceConfig(
        name="uat",
        url="https://uat-jenkins.example.com",
        user="release-bot",
        password="secret",
    )


@pytest.fixture
def relay_config(prod_instance, uat_instance):
    return RelayConfig(
        defaults=GlobalDefaults(
            trigger=TriggerMode.PLAIN,
            poll_interval=10,
            poll_attempts=60,
        ),
        instances=(prod_instance, uat_instance),
    )


@pytest.fixture
def make_spec(prod_instance):
    """Build a ResolvedJobSpec with small defaults."""

    def _make(job_name="job1", poll_attempts=3, poll_interval=10, instance=None):
        return ResolvedJobSpec(
            instance=instance or prod_instance,
            job_name=job_name,
            trigger=TriggerMode.PLAIN,
            poll_interval=poll_interval,
            poll_attempts=poll_attempts,
        )

    return _make


@pytest.fixture
def sleeps():
    """Records every wait instead of sleeping."""
    return []


@pytest.fixture
def make_fake():
    """Factory for scripted fake clients, one per instance."""
    return FakeJenkins
