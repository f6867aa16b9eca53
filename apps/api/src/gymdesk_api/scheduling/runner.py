"""Scheduler runtime for recurring gym automation jobs."""

from __future__ import annotations

import asyncio
import inspect
import random
import time
from importlib import import_module
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import Any, Awaitable, Callable, Mapping

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger
from zoneinfo import ZoneInfo

from gymdesk_api.observability.scheduler import get_job_scheduler_store

from .config import JobDefinition, ScheduleConfig, load_job_definitions

SessionFactory = Callable[[], Awaitable[Any]] | Callable[[], Any]


class JobScheduler:
    """Register and run recurring jobs described in a TOML schedule.

    Task callables receive ``session_factory`` plus whichever entries of
    ``context`` their signature names, followed by the job's ``kwargs``.
    Cron expressions use ``timezone`` unless the schedule file pins its own.
    """

    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        config_path: Path,
        context: Mapping[str, Any] | None = None,
        timezone: str = "UTC",
    ) -> None:
        self._session_factory = session_factory
        self._config_path = config_path
        self._default_timezone = timezone
        self._context = MappingProxyType(dict(context or {}))
        self._config: ScheduleConfig | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._runners: dict[str, Callable[[], Awaitable[Any]]] = {}
        self._is_running: bool = False
        self._observability = get_job_scheduler_store()

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start the scheduler with configured jobs."""

        config = load_job_definitions(self._config_path, default_timezone=self._default_timezone)
        timezone = ZoneInfo(config.timezone)
        scheduler = AsyncIOScheduler(timezone=timezone)

        for job in config.jobs:
            if not job.enabled:
                logger.info("Scheduled job disabled", job_id=job.id, task=job.task)
                continue
            runner = self._wrap_callable(self._resolve_callable(job), job)
            self._runners[job.id] = runner
            trigger = CronTrigger.from_crontab(job.cron, timezone=timezone)
            scheduler.add_job(
                runner,
                trigger=trigger,
                id=job.id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=job.misfire_grace_seconds,
            )
            logger.info(
                "Registered scheduled job",
                job_id=job.id,
                task=job.task,
                cron=job.cron,
            )

        scheduler.start()
        self._config = config
        self._scheduler = scheduler
        self._is_running = True
        logger.info("Job scheduler started", jobs=len(self._runners), timezone=config.timezone)

    async def stop(self) -> None:
        """Stop the scheduler and release resources."""

        if not self._scheduler:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        self._is_running = False
        logger.info("Job scheduler stopped")

    async def run_job(self, job_id: str) -> Any:
        """Run a registered job immediately, outside its cron schedule."""

        runner = self._runners.get(job_id)
        if runner is None:
            raise KeyError(f"Unknown job: {job_id}")
        return await runner()

    def _resolve_callable(self, job: JobDefinition) -> Callable[..., Awaitable[Any]]:
        module_name, _, attr = job.task.rpartition(".")
        if not module_name:
            raise ValueError(f"Invalid task path: {job.task}")
        module: ModuleType = import_module(module_name)
        func = getattr(module, attr, None)
        if func is None:
            raise AttributeError(f"Task {job.task} not found")
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"Task {job.task} must be an async function")
        return func

    def _call_kwargs(self, func: Callable[..., Awaitable[Any]], job: JobDefinition) -> dict[str, Any]:
        parameters = inspect.signature(func).parameters
        accepts_any = any(param.kind is inspect.Parameter.VAR_KEYWORD for param in parameters.values())
        kwargs: dict[str, Any] = {"session_factory": self._session_factory}
        for name, value in self._context.items():
            if accepts_any or name in parameters:
                kwargs[name] = value
        kwargs.update(job.kwargs)
        return kwargs

    def _wrap_callable(self, func: Callable[..., Awaitable[Any]], job: JobDefinition) -> Callable[[], Awaitable[Any]]:
        call_kwargs = self._call_kwargs(func, job)

        async def _runner() -> Any:
            max_attempts = max(job.max_attempts, 1)
            base_backoff = max(job.base_backoff_seconds, 0.0)
            backoff_multiplier = max(job.backoff_multiplier, 1.0)
            max_backoff_seconds = max(job.max_backoff_seconds, 0.0)
            jitter_seconds = max(job.jitter_seconds, 0.0)

            self._observability.record_dispatch(job.id, job.task)
            started_at = time.perf_counter()

            for attempt in range(1, max_attempts + 1):
                try:
                    result = await func(**call_kwargs)
                except Exception as exc:
                    error_message = str(exc)
                    self._observability.record_attempt_failure(job.id, job.task, attempts=attempt, error=error_message)
                    if attempt >= max_attempts:
                        runtime_seconds = time.perf_counter() - started_at
                        self._observability.record_run_failure(
                            job.id,
                            job.task,
                            runtime_seconds=runtime_seconds,
                            attempts=attempt,
                            error=error_message,
                        )
                        logger.exception(
                            "Scheduled job failed after retries",
                            job_id=job.id,
                            task=job.task,
                            attempts=attempt,
                            error=error_message,
                        )
                        return None

                    delay = base_backoff * (backoff_multiplier ** (attempt - 1))
                    if max_backoff_seconds:
                        delay = min(delay, max_backoff_seconds)
                    if jitter_seconds:
                        delay += random.uniform(0, jitter_seconds)
                    delay = max(delay, 0.0)
                    self._observability.record_retry(job.id, job.task, delay_seconds=delay, attempts=attempt + 1)
                    logger.warning(
                        "Scheduled job retrying",
                        job_id=job.id,
                        task=job.task,
                        attempt=attempt + 1,
                        delay_seconds=delay,
                    )
                    if delay:
                        await asyncio.sleep(delay)
                    continue

                runtime_seconds = time.perf_counter() - started_at
                if isinstance(result, dict) and result.get("skipped"):
                    reason = str(result.get("reason") or "skipped")
                    self._observability.record_skip(job.id, job.task, reason=reason)
                    logger.info("Scheduled job skipped", job_id=job.id, task=job.task, reason=reason)
                    return result

                self._observability.record_success(
                    job.id,
                    job.task,
                    runtime_seconds=runtime_seconds,
                    attempts=attempt,
                    result=result if isinstance(result, dict) else None,
                )
                logger.info(
                    "Scheduled job completed",
                    job_id=job.id,
                    task=job.task,
                    attempts=attempt,
                    runtime_seconds=runtime_seconds,
                )
                return result
            return None

        return _runner

    def health(self) -> dict[str, object]:
        """Return scheduler health metadata suitable for diagnostics."""

        snapshot = self._observability.snapshot()
        config_jobs = self._config.jobs if self._config else []
        job_snapshots = snapshot.jobs
        jobs: list[dict[str, object]] = []

        for job in config_jobs:
            job_metrics = job_snapshots.get(job.id)
            next_run_at = None
            if self._scheduler is not None:
                scheduled = self._scheduler.get_job(job.id)
                if scheduled is not None and scheduled.next_run_time is not None:
                    next_run_at = scheduled.next_run_time.isoformat()
            jobs.append(
                {
                    "id": job.id,
                    "task": job.task,
                    "cron": job.cron,
                    "enabled": job.enabled,
                    "next_run_at": next_run_at,
                    "max_attempts": job.max_attempts,
                    "metrics": job_metrics.as_dict() if job_metrics else None,
                }
            )

        return {
            "running": self._is_running,
            "configured_jobs": len(config_jobs),
            "totals": snapshot.totals,
            "jobs": jobs,
        }


__all__ = ["JobScheduler"]
