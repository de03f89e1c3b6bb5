# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""End-to-end tests for executing a job list."""

import pytest

from jobrelay.client import DispatchError
from jobrelay.executor import build_clients, execute
from jobrelay.poller import BuildTracker
from jobrelay.report import RunOutcome
from jobrelay.resolver import ConfigConflict, UnknownInstance, resolve_all
from jobrelay.schemas import (
    BuildOutcome,
    BuildStatus,
    GlobalDefaults,
    InstanceConfig,
    JobEntry,
    JobOverride,
    RelayConfig,
    TriggerMode,
)


@pytest.fixture
def fakes(relay_config, make_fake):
    return {i.name: make_fake(i) for i in relay_config.instances}


def _run(config, entries, fakes, sleeps, **kwargs):
    return execute(
        config,
        entries,
        sleep=sleeps.append,
        client_factory=lambda instance: fakes[instance.name],
        **kwargs,
    )


class TestScenarios:
    """The release scenarios the tool is built for."""

    def test_single_parameterized_job_succeeds(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1", queue=[1], builds=[BuildStatus.SUCCESS])

        report = _run(relay_config, [JobEntry(None, "job1")], fakes, sleeps)

        assert report.outcome is RunOutcome.OK
        assert report.exit_code == 0
        assert [(r.job_name, r.outcome) for r in report.results] == [("job1", BuildOutcome.SUCCESS)]
        assert fakes["prod"].triggered == [("job1", TriggerMode.PARAMETERIZED, {"app": "abc"})]
        assert sleeps == [10, 10]

    def test_second_instance_times_out(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1", queue=[1], builds=[BuildStatus.SUCCESS])
        fakes["uat"].script("job3", queue=[8], builds=[BuildStatus.IN_PROGRESS])

        report = _run(relay_config, [JobEntry(None, "job1"), JobEntry("uat", "job3")], fakes, sleeps)

        assert [(r.instance_name, r.job_name, r.outcome) for r in report.results] == [
            ("prod", "job1", BuildOutcome.SUCCESS),
            ("uat", "job3", BuildOutcome.TIMED_OUT),
        ]
        assert report.outcome is RunOutcome.FAILED
        assert fakes["uat"].call_kinds("job3").count("build") == 60

    def test_unknown_instance_aborts_before_any_trigger(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1")
        entries = [JobEntry(None, "job1"), JobEntry("qa", "job2")]

        with pytest.raises(UnknownInstance, match="qa"):
            _run(relay_config, entries, fakes, sleeps)

        assert fakes["prod"].calls == []
        assert sleeps == []


class TestExecute:
    """Tests for run orchestration."""

    def test_failure_does_not_stop_later_jobs(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1", trigger_error=DispatchError("HTTP 404"))
        fakes["prod"].script("job2", builds=[BuildStatus.FAILURE])
        fakes["prod"].script("job4", builds=[BuildStatus.SUCCESS])
        entries = [JobEntry(None, "job1"), JobEntry(None, "job2"), JobEntry(None, "job4")]

        report = _run(relay_config, entries, fakes, sleeps)

        assert [r.outcome for r in report.results] == [
            BuildOutcome.DISPATCH_ERROR,
            BuildOutcome.FAILURE,
            BuildOutcome.SUCCESS,
        ]
        assert report.outcome is RunOutcome.FAILED

    def test_on_result_called_once_per_job(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1").script("job2")
        seen = []

        _run(relay_config, [JobEntry(None, "job1"), JobEntry(None, "job2")], fakes, sleeps, on_result=seen.append)

        assert [(r.position, r.job_name) for r in seen] == [(0, "job1"), (1, "job2")]

    def test_same_job_twice_gets_two_slots(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job2")

        report = _run(relay_config, [JobEntry(None, "job2"), JobEntry(None, "job2")], fakes, sleeps)

        assert [r.position for r in report.results] == [0, 1]
        assert len(fakes["prod"].triggered) == 2

    def test_worker_pool_preserves_order(self, relay_config, fakes, sleeps):
        fakes["prod"].script("job1", builds=[BuildStatus.IN_PROGRESS, BuildStatus.SUCCESS])
        fakes["prod"].script("job2", builds=[BuildStatus.UNSTABLE])
        fakes["uat"].script("job3", builds=[BuildStatus.SUCCESS])
        entries = [JobEntry(None, "job1"), JobEntry(None, "job2"), JobEntry("uat", "job3")]

        report = _run(relay_config, entries, fakes, sleeps, workers=3)

        assert [(r.position, r.job_name, r.outcome) for r in report.results] == [
            (0, "job1", BuildOutcome.SUCCESS),
            (1, "job2", BuildOutcome.UNSTABLE),
            (2, "job3", BuildOutcome.SUCCESS),
        ]
        assert report.complete
        assert report.outcome is RunOutcome.FAILED

    def test_config_conflict_aborts(self, prod_instance, fakes, sleeps):
        config = RelayConfig(
            defaults=GlobalDefaults(trigger=TriggerMode.PLAIN, poll_interval=1, poll_attempts=1),
            instances=(InstanceConfig(
                name="prod",
                url=prod_instance.url,
                jobs={"job1": JobOverride(trigger=TriggerMode.PLAIN, parameters={"app": "abc"})},
            ),),
        )
        with pytest.raises(ConfigConflict):
            _run(config, [JobEntry(None, "job1")], fakes, sleeps)
        assert fakes["prod"].calls == []

    def test_empty_job_list(self, relay_config, fakes, sleeps):
        report = _run(relay_config, [], fakes, sleeps)
        assert len(report) == 0
        assert report.outcome is RunOutcome.OK

    def test_unexpected_error_contained(self, relay_config, fakes, sleeps, monkeypatch):
        fakes["prod"].script("job2")

        def boom(self, spec, position=0):
            if spec.job_name == "job1":
                raise RuntimeError("bug")
            return original(self, spec, position)

        original = BuildTracker.track
        monkeypatch.setattr(BuildTracker, "track", boom)

        report = _run(relay_config, [JobEntry(None, "job1"), JobEntry(None, "job2")], fakes, sleeps)

        assert report.results[0].outcome is BuildOutcome.DISPATCH_ERROR
        assert "bug" in report.results[0].detail
        assert report.results[1].outcome is BuildOutcome.SUCCESS


class TestBuildClients:
    """Tests for per-instance client construction."""

    def test_one_client_per_used_instance(self, relay_config):
        specs = resolve_all(relay_config, [JobEntry(None, "job1"), JobEntry(None, "job2")])
        created = []

        clients = build_clients(specs, client_factory=lambda i: created.append(i.name) or i.name)

        assert created == ["prod"]
        assert clients == {"prod": "prod"}
