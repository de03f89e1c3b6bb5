# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Resolver - Turn config layers + a job-list entry into a ResolvedJobSpec.

Layers, least specific first:
- GlobalDefaults (jenkins.*)
- InstanceConfig (identity and credentials only)
- JobOverride (jenkins.instances[].jobs.<name>)

Each setting is taken from the most specific layer that defines it.
Resolution fails instead of inventing a value.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional

from jobrelay.schemas import (
    InstanceConfig,
    JobEntry,
    JobOverride,
    RelayConfig,
    ResolvedJobSpec,
    TriggerMode,
)

logger = logging.getLogger(__name__)

# Settings merged across layers; parameters are job-level only.
MERGED_FIELDS = ("trigger", "poll_interval", "poll_attempts")

# Config document keys, used in error messages.
FIELD_KEYS = {
    "trigger": "trigger",
    "poll_interval": "poll_build_result_interval_second",
    "poll_attempts": "poll_build_result_counts",
}


class ConfigError(Exception):
    """Base class for errors that stop a run before any job is dispatched."""
    pass


class ConfigIncomplete(ConfigError):
    """Raised when no layer defines a required setting."""
    pass


class ConfigInvalid(ConfigError):
    """Raised when the configuration is missing, malformed or out of range."""
    pass


class ConfigConflict(ConfigError):
    """Raised when settings contradict each other."""
    pass


class UnknownInstance(ConfigError):
    """Raised when a job-list entry names an instance that is not configured."""
    pass


def merge_layers(*layers: Dict[str, Any]) -> Dict[str, Any]:
    """Merge setting layers left to right; the last non-None value wins.

    Example:
        >>> merge_layers({"a": 1, "b": 2}, {"b": None}, {"b": 3})
        {'a': 1, 'b': 3}
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        merged.update({k: v for k, v in layer.items() if v is not None})
    return merged


def find_instance(config: RelayConfig, name: Optional[str]) -> InstanceConfig:
    """Look up an instance by name; None means the first declared instance."""
    if not config.instances:
        raise UnknownInstance("No jenkins instances configured")
    if name is None:
        return config.instances[0]
    for instance in config.instances:
        if instance.name == name:
            return instance
    known = ", ".join(i.name for i in config.instances)
    raise UnknownInstance(f"No jenkins instance named '{name}' (configured: {known})")


def _layer(obj: Any) -> Dict[str, Any]:
    """Project a defaults/override object onto the merged fields."""
    values = asdict(obj)
    return {k: values.get(k) for k in MERGED_FIELDS}


def resolve_job(config: RelayConfig, instance_name: Optional[str], job_name: str) -> ResolvedJobSpec:
    """
    Resolve one (instance, job) pair into a ResolvedJobSpec.

    Raises:
        UnknownInstance: If the instance is not configured.
        ConfigIncomplete: If a setting is undefined in every layer.
        ConfigInvalid: If a resolved setting is out of range.
        ConfigConflict: If parameters are given for a plain trigger.
    """
    instance = find_instance(config, instance_name)
    override = instance.jobs.get(job_name, JobOverride())

    # Instances carry no setting defaults of their own, so the middle layer is empty
    merged = merge_layers(_layer(config.defaults), {}, _layer(override))

    for name in MERGED_FIELDS:
        if name not in merged:
            raise ConfigIncomplete(
                f"Missing job or global `{FIELD_KEYS[name]}` configuration "
                f"for job '{job_name}' on instance '{instance.name}'"
            )

    trigger: TriggerMode = merged["trigger"]
    poll_interval = merged["poll_interval"]
    poll_attempts = merged["poll_attempts"]

    if poll_interval < 0:
        raise ConfigInvalid(
            f"`{FIELD_KEYS['poll_interval']}` must not be negative for job '{job_name}', got: {poll_interval}"
        )
    if poll_attempts < 1:
        raise ConfigInvalid(
            f"`{FIELD_KEYS['poll_attempts']}` must be at least 1 for job '{job_name}', got: {poll_attempts}"
        )

    parameters = dict(override.parameters)
    if parameters and trigger is not TriggerMode.PARAMETERIZED:
        raise ConfigConflict(
            f"Job '{job_name}' on instance '{instance.name}' declares parameters "
            f"but its trigger mode is '{trigger.value}'"
        )

    spec = ResolvedJobSpec(
        instance=instance,
        job_name=job_name,
        trigger=trigger,
        poll_interval=poll_interval,
        poll_attempts=poll_attempts,
        parameters=parameters,
    )
    logger.debug(
        f"Resolved {instance.name}/{job_name}: trigger={trigger.value} "
        f"interval={poll_interval}s attempts={poll_attempts} params={sorted(parameters)}"
    )
    return spec


def resolve_all(config: RelayConfig, entries: Iterable[JobEntry]) -> List[ResolvedJobSpec]:
    """Resolve every entry up front; the first config error aborts the run."""
    return [resolve_job(config, entry.instance, entry.job) for entry in entries]
