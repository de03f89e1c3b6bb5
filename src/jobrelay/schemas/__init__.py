# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""jobrelay schemas."""

from jobrelay.schemas.job_def import (
    STILL_QUEUED,
    BuildHandle,
    BuildOutcome,
    BuildResult,
    BuildStatus,
    GlobalDefaults,
    InstanceConfig,
    JobEntry,
    JobOverride,
    QueueHandle,
    QueueResolution,
    RelayConfig,
    ResolvedJobSpec,
    TriggerMode,
)

__all__ = [
    "STILL_QUEUED",
    "BuildHandle",
    "BuildOutcome",
    "BuildResult",
    "BuildStatus",
    "GlobalDefaults",
    "InstanceConfig",
    "JobEntry",
    "JobOverride",
    "QueueHandle",
    "QueueResolution",
    "RelayConfig",
    "ResolvedJobSpec",
    "TriggerMode",
]
