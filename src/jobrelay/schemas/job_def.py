# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Configuration, dispatch and result schemas for jobrelay.

Flow:
- RelayConfig (YAML) + JobEntry (job list) → resolve → ResolvedJobSpec
- ResolvedJobSpec → trigger → QueueHandle → queue poll → BuildHandle
- BuildHandle → build poll → BuildResult → RunReport
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class TriggerMode(Enum):
    """How a job is started on the remote instance."""

    PLAIN = "plain"
    PARAMETERIZED = "parameterized"

    @property
    def endpoint(self) -> str:
        """Jenkins job endpoint used to trigger this mode."""
        if self is TriggerMode.PARAMETERIZED:
            return "buildWithParameters"
        return "build"

    @classmethod
    def parse(cls, value: str) -> "TriggerMode":
        """Parse a mode name, accepting Jenkins endpoint names as aliases."""
        aliases = {
            "plain": cls.PLAIN,
            "build": cls.PLAIN,
            "parameterized": cls.PARAMETERIZED,
            "buildwithparameters": cls.PARAMETERIZED,
        }
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise ValueError(f"unknown trigger mode: {value!r}") from None


@dataclass(frozen=True)
class GlobalDefaults:
    """Settings applied to any job lacking a more specific value."""
    trigger: Optional[TriggerMode] = None
    poll_interval: Optional[float] = None  # seconds
    poll_attempts: Optional[int] = None


@dataclass(frozen=True)
class JobOverride:
    """Per-job settings declared under an instance."""
    trigger: Optional[TriggerMode] = None
    poll_interval: Optional[float] = None
    poll_attempts: Optional[int] = None
    parameters: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class InstanceConfig:
    """A remote Jenkins instance and its job overrides.

    The password may be an API token; it is never inspected.
    """
    name: str
    url: str
    user: str = ""
    password: str = field(default="", repr=False)
    jobs: Dict[str, JobOverride] = field(default_factory=dict)


@dataclass(frozen=True)
class RelayConfig:
    """Decoded configuration document."""
    defaults: GlobalDefaults
    instances: Tuple[InstanceConfig, ...]
    job_file: Optional[str] = None


@dataclass(frozen=True)
class JobEntry:
    """One line of the job list. instance is None for the default instance."""
    instance: Optional[str]
    job: str


@dataclass(frozen=True)
class ResolvedJobSpec:
    """A fully resolved job ready for dispatch.

    Every field is concrete: no layer of the config is consulted after this.
    """
    instance: InstanceConfig
    job_name: str
    trigger: TriggerMode
    poll_interval: float
    poll_attempts: int
    parameters: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class QueueHandle:
    """Queue item locator returned by a trigger call."""
    url: str


@dataclass(frozen=True)
class BuildHandle:
    """A numbered build on an instance."""
    instance_name: str
    number: int
    url: str


@dataclass(frozen=True)
class QueueResolution:
    """Result of querying a queue item. build is None while still queued."""
    build: Optional[BuildHandle] = None

    @property
    def resolved(self) -> bool:
        return self.build is not None


STILL_QUEUED = QueueResolution()


class BuildOutcome(Enum):
    """Terminal outcome of one job-list entry."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"
    TIMED_OUT = "TIMED_OUT"
    DISPATCH_ERROR = "DISPATCH_ERROR"


class BuildStatus(Enum):
    """Status of a build as reported by the remote instance."""

    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNSTABLE = "UNSTABLE"
    ABORTED = "ABORTED"

    @property
    def terminal(self) -> bool:
        return self is not BuildStatus.IN_PROGRESS

    @property
    def outcome(self) -> BuildOutcome:
        if self is BuildStatus.IN_PROGRESS:
            raise ValueError("build is still in progress")
        return BuildOutcome(self.value)


@dataclass(frozen=True)
class BuildResult:
    """Terminal record for one job-list position."""
    position: int
    instance_name: str
    job_name: str
    outcome: BuildOutcome
    build_number: Optional[int] = None
    build_url: Optional[str] = None
    detail: Optional[str] = None  # error message or timeout reason

    @property
    def success(self) -> bool:
        return self.outcome is BuildOutcome.SUCCESS
