"""TOML schedule definitions for recurring gym automation.

A schedule file looks like::

    [jobs.membership_expiration_sweep]
    id = "membership-expiration-sweep"
    task = "gymdesk_api.jobs.expiration_sweep.run_membership_expiration_sweep"
    cron = "0 8 * * *"
    misfire_grace_seconds = 3600

Cron expressions are evaluated in the gym's timezone. A top-level ``timezone``
key pins a different zone for the whole file; without it the caller's default
applies, so cron firing times and calendar-day arithmetic share one zone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import tomllib
from loguru import logger


@dataclass(slots=True)
class JobDefinition:
    id: str
    task: str
    cron: str
    kwargs: dict[str, Any] = field(default_factory=dict)
    max_attempts: int = 1
    base_backoff_seconds: float = 5.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 60.0
    jitter_seconds: float = 1.0
    enabled: bool = True
    misfire_grace_seconds: int = 300


@dataclass(slots=True)
class ScheduleConfig:
    timezone: str
    jobs: list[JobDefinition]


def _bounded(payload: Mapping[str, Any], key: str, default: float, minimum: float) -> float:
    raw = payload.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = default
    return max(value, minimum)


def _parse_job(key: str, payload: Mapping[str, Any]) -> JobDefinition | None:
    task = payload.get("task")
    cron = payload.get("cron")
    if not isinstance(task, str) or not isinstance(cron, str):
        logger.warning("Ignoring schedule entry without task or cron", entry=key)
        return None

    kwargs = payload.get("kwargs")
    return JobDefinition(
        id=str(payload.get("id") or key),
        task=task,
        cron=cron,
        kwargs=dict(kwargs) if isinstance(kwargs, dict) else {},
        max_attempts=int(_bounded(payload, "max_attempts", 1, 1)),
        base_backoff_seconds=_bounded(payload, "base_backoff_seconds", 5.0, 0.0),
        backoff_multiplier=_bounded(payload, "backoff_multiplier", 2.0, 1.0),
        max_backoff_seconds=_bounded(payload, "max_backoff_seconds", 60.0, 0.0),
        jitter_seconds=_bounded(payload, "jitter_seconds", 1.0, 0.0),
        enabled=bool(payload.get("enabled", True)),
        misfire_grace_seconds=int(_bounded(payload, "misfire_grace_seconds", 300, 1)),
    )


def load_job_definitions(config_path: Path, *, default_timezone: str = "UTC") -> ScheduleConfig:
    if not config_path.exists():
        raise FileNotFoundError(f"Schedule config not found: {config_path}")

    data = tomllib.loads(config_path.read_text())
    entries = data.get("jobs", {})
    jobs = [
        job
        for key, payload in entries.items()
        if isinstance(payload, dict) and (job := _parse_job(key, payload)) is not None
    ]
    return ScheduleConfig(timezone=str(data.get("timezone") or default_timezone), jobs=jobs)


__all__ = ["JobDefinition", "ScheduleConfig", "load_job_definitions"]
