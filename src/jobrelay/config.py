# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for jobrelay.

Reads the YAML document into a RelayConfig:

    jenkins:
      trigger: parameterized
      poll_build_result_interval_second: 10
      poll_build_result_counts: 60
      instances:
        - name: prod
          url: https://jenkins.example.com
          user: release-bot
          password: api-token
          jobs:
            job1:
              parameters: {app: abc}
    file:
      path: jobs.txt
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from jobrelay.resolver import ConfigInvalid
from jobrelay.schemas import GlobalDefaults, InstanceConfig, JobOverride, RelayConfig, TriggerMode

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "JOBRELAY_CONFIG"
DEFAULT_CONFIG_NAME = "jobrelay.yaml"


def get_config_path(config_path: Optional[str] = None) -> Path:
    """Pick the config file path.

    Order:
    1. Explicit path (--config)
    2. $JOBRELAY_CONFIG (if set)
    3. ./jobrelay.yaml
    """
    if config_path:
        return Path(config_path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path(DEFAULT_CONFIG_NAME)


def load_config(config_path: Optional[str] = None) -> RelayConfig:
    """Load and validate the configuration document.

    Raises:
        ConfigInvalid: If the file is missing or unreadable, or the document is invalid.
    """
    path = get_config_path(config_path)
    if not path.exists():
        raise ConfigInvalid(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigInvalid(f"invalid YAML in {path}: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigInvalid(f"Cannot read config file {path}: {e}")

    logger.debug(f"Loaded config from {path}")
    return parse_config(data)


def parse_config(data: Any) -> RelayConfig:
    """Build a RelayConfig from an already decoded document."""
    if not isinstance(data, dict):
        raise ConfigInvalid("config must contain a YAML mapping")

    jenkins = data.get("jenkins")
    if not isinstance(jenkins, dict):
        raise ConfigInvalid("`jenkins` section is required")

    defaults = GlobalDefaults(
        trigger=_parse_trigger(jenkins, "jenkins"),
        poll_interval=_parse_number(jenkins, "poll_build_result_interval_second", "jenkins", minimum=0),
        poll_attempts=_parse_int(jenkins, "poll_build_result_counts", "jenkins", minimum=1),
    )

    raw_instances = jenkins.get("instances")
    if not isinstance(raw_instances, list) or not raw_instances:
        raise ConfigInvalid("`jenkins.instances` must be a non-empty list")

    instances: List[InstanceConfig] = []
    seen = set()
    for idx, raw in enumerate(raw_instances):
        instance = _parse_instance(raw, idx)
        if instance.name in seen:
            raise ConfigInvalid(f"duplicate jenkins instance name: {instance.name}")
        seen.add(instance.name)
        instances.append(instance)

    job_file = None
    file_section = data.get("file")
    if file_section is not None:
        if not isinstance(file_section, dict):
            raise ConfigInvalid("`file` must be a mapping")
        if file_section.get("path"):
            job_file = str(file_section["path"])

    return RelayConfig(defaults=defaults, instances=tuple(instances), job_file=job_file)


def _parse_instance(raw: Any, idx: int) -> InstanceConfig:
    where = f"jenkins.instances[{idx}]"
    if not isinstance(raw, dict):
        raise ConfigInvalid(f"{where} must be a mapping")

    name = str(raw.get("name") or "").strip()
    if not name:
        raise ConfigInvalid(f"{where}.name is required and cannot be empty")
    where = f"jenkins.instances.{name}"

    url = str(raw.get("url") or "").strip()
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigInvalid(f"{where}.url must be an absolute URL, got: {url!r}")

    raw_jobs = raw.get("jobs") or {}
    if not isinstance(raw_jobs, dict):
        raise ConfigInvalid(f"{where}.jobs must be a mapping of job name to settings")

    jobs: Dict[str, JobOverride] = {}
    for job_name, job_raw in raw_jobs.items():
        jobs[str(job_name)] = _parse_override(job_raw, f"{where}.jobs.{job_name}")

    return InstanceConfig(
        name=name,
        url=url,
        user=str(raw.get("user") or ""),
        password=str(raw.get("password") or ""),
        jobs=jobs,
    )


def _parse_override(raw: Any, where: str) -> JobOverride:
    if raw is None:
        return JobOverride()
    if not isinstance(raw, dict):
        raise ConfigInvalid(f"{where} must be a mapping")

    params = raw.get("parameters") or {}
    if not isinstance(params, dict):
        raise ConfigInvalid(f"{where}.parameters must be a mapping")

    return JobOverride(
        trigger=_parse_trigger(raw, where),
        poll_interval=_parse_number(raw, "poll_build_result_interval_second", where, minimum=0),
        poll_attempts=_parse_int(raw, "poll_build_result_counts", where, minimum=1),
        parameters={str(k): _param_str(v) for k, v in params.items()},
    )


def _param_str(value: Any) -> str:
    """Form values are strings; YAML booleans become Jenkins' true/false."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_trigger(section: Dict[str, Any], where: str) -> Optional[TriggerMode]:
    # `build` is accepted as an older spelling of `trigger`
    raw = section.get("trigger", section.get("build"))
    if raw is None:
        return None
    try:
        return TriggerMode.parse(raw)
    except ValueError as e:
        raise ConfigInvalid(f"{where}.trigger: {e}")


def _parse_int(section: Dict[str, Any], key: str, where: str, minimum: int) -> Optional[int]:
    raw = section.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigInvalid(f"{where}.{key} must be an integer, got: {raw!r}")
    if raw < minimum:
        raise ConfigInvalid(f"{where}.{key} must be at least {minimum}, got: {raw}")
    return raw


def _parse_number(section: Dict[str, Any], key: str, where: str, minimum: float) -> Optional[float]:
    raw = section.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigInvalid(f"{where}.{key} must be a number, got: {raw!r}")
    if raw < minimum:
        raise ConfigInvalid(f"{where}.{key} must be at least {minimum}, got: {raw}")
    return raw
