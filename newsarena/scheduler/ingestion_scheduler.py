"""
NewsArena Ingestion Scheduler
=============================

Recurring ingestion of all active sources on an asyncio event loop.

Features:
- Immediate run on start, then one run every interval
- Whole-run retry after a delay when any source failed
- Run guard: overlapping scheduled/manual runs are skipped
- Host-owned scheduler lifecycle through SchedulerManager
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..config.settings import NewsArenaSettings, get_settings
from ..database.models import IngestionResult
from ..ingestion.orchestrator import IngestionService
from ..utils.exceptions import get_error_message
from ..utils.logging import get_scheduler_logger

SuccessCallback = Callable[[List[IngestionResult]], Any]
ErrorCallback = Callable[[BaseException], Any]


class SchedulerConfig(BaseModel):
    """Timing configuration for the ingestion scheduler."""
    interval_minutes: float = Field(default=15, gt=0, description="Minutes between scheduled runs")
    max_retries: int = Field(default=3, ge=0, description="Whole-run retries after a failed run")
    retry_delay_minutes: float = Field(default=5, ge=0, description="Minutes before a retry")

    model_config = {"extra": "forbid"}

    @classmethod
    def from_settings(cls, settings: NewsArenaSettings) -> "SchedulerConfig":
        return cls(**settings.scheduler.model_dump())


class IngestionScheduler:
    """Periodic driver for IngestionService.ingest_from_all_sources.

    ``start`` must be called from inside a running event loop.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        config: Optional[SchedulerConfig] = None,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.ingestion_service = ingestion_service
        self.config = config or SchedulerConfig()
        self.on_success = on_success or self._log_success
        self.on_error = on_error or self._log_error
        self.logger = get_scheduler_logger()

        self._is_running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._retry_tasks: Set[asyncio.Task] = set()
        self._run_tasks: Set[asyncio.Task] = set()
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Run once now, then every ``interval_minutes``."""
        if self._is_running:
            self.logger.warning("Scheduler is already running")
            return

        loop = asyncio.get_running_loop()
        self._is_running = True
        self.logger.info(
            f"Starting ingestion scheduler (interval: {self.config.interval_minutes} minutes)"
        )
        self._timer_task = loop.create_task(self._timer_loop())

    def stop(self) -> None:
        """Cancel the timer and pending retries; in-flight runs finish normally."""
        if not self._is_running:
            self.logger.warning("Scheduler is not running")
            return

        self.logger.info("Stopping ingestion scheduler")
        self._is_running = False

        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        for task in list(self._retry_tasks):
            task.cancel()
        self._retry_tasks.clear()

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self._is_running,
            "interval_minutes": self.config.interval_minutes,
        }

    def update_config(self, **changes: Any) -> None:
        """Apply new timing values and/or callbacks, restarting if running.

        Raises:
            pydantic.ValidationError: If a timing value is invalid; the
                scheduler is left untouched in that case
        """
        on_success = changes.pop("on_success", None)
        on_error = changes.pop("on_error", None)
        new_config = SchedulerConfig(**{**self.config.model_dump(), **changes})

        was_running = self._is_running
        if was_running:
            self.stop()

        self.config = new_config
        if on_success is not None:
            self.on_success = on_success
        if on_error is not None:
            self.on_error = on_error

        if was_running:
            self.start()

    async def trigger_manual(self) -> Optional[List[IngestionResult]]:
        """Run ingestion now, outside the schedule.

        Returns:
            The run's results, or None if the run was skipped or raised
        """
        self.logger.info("Triggering manual ingestion")
        return await self._run_ingestion(retry_count=0)

    async def wait_idle(self) -> None:
        """Wait until no ingestion run is in flight."""
        while self._run_tasks:
            await asyncio.gather(*list(self._run_tasks), return_exceptions=True)

    async def _timer_loop(self) -> None:
        interval = self.config.interval_minutes * 60
        while True:
            self._spawn_run(retry_count=0)
            await asyncio.sleep(interval)

    def _spawn_run(self, retry_count: int) -> None:
        task = asyncio.get_running_loop().create_task(self._run_ingestion(retry_count))
        self._run_tasks.add(task)
        task.add_done_callback(self._run_tasks.discard)

    async def _run_ingestion(self, retry_count: int) -> Optional[List[IngestionResult]]:
        if self._run_lock.locked():
            self.logger.warning("Ingestion run already in progress; skipping this run")
            return None

        async with self._run_lock:
            self.logger.info(
                "Running scheduled ingestion"
                + (f" (retry {retry_count}/{self.config.max_retries})" if retry_count else "")
            )
            try:
                results = await self.ingestion_service.ingest_from_all_sources()
            except Exception as e:
                self.logger.error(f"Error during scheduled ingestion: {get_error_message(e)}")
                await self._invoke(self.on_error, e)
                self._schedule_retry(retry_count)
                return None

        failed = sum(1 for r in results if not r.success)
        if failed and self._schedule_retry(retry_count):
            self.logger.warning(
                f"{failed} sources failed. Retrying in {self.config.retry_delay_minutes} minutes"
            )
        else:
            await self._invoke(self.on_success, results)

        return results

    def _schedule_retry(self, retry_count: int) -> bool:
        """Queue a whole-run retry; False when the limit is reached or the scheduler is stopped."""
        if retry_count >= self.config.max_retries:
            self.logger.error(f"Giving up after {retry_count} retries")
            return False
        if not self._is_running:
            self.logger.info("Scheduler stopped; not scheduling a retry")
            return False

        delay = self.config.retry_delay_minutes * 60
        task = asyncio.get_running_loop().create_task(self._retry_after(delay, retry_count + 1))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)
        return True

    async def _retry_after(self, delay: float, retry_count: int) -> None:
        await asyncio.sleep(delay)
        # The run is detached so stop() cannot cancel it mid-flight
        self._spawn_run(retry_count)

    async def _invoke(self, callback: Callable[[Any], Any], argument: Any) -> None:
        try:
            outcome = callback(argument)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self.logger.exception("Scheduler callback failed")

    def _log_success(self, results: List[IngestionResult]) -> None:
        successful = sum(1 for r in results if r.success)
        self.logger.info(
            "Ingestion completed",
            extra={
                "total": len(results),
                "successful": successful,
                "failed": len(results) - successful,
            },
        )

    def _log_error(self, error: BaseException) -> None:
        self.logger.error(f"Ingestion scheduler error: {get_error_message(error)}")


def create_default_scheduler(
    ingestion_service: IngestionService,
    settings: Optional[NewsArenaSettings] = None,
) -> IngestionScheduler:
    """Scheduler configured from settings, logging a per-run summary."""
    settings = settings or get_settings()
    logger = get_scheduler_logger()

    def log_summary(results: List[IngestionResult]) -> None:
        successful = sum(1 for r in results if r.success)
        logger.info(
            f"Ingestion completed: {len(results)} total, {successful} successful, "
            f"{len(results) - successful} failed"
        )

    return IngestionScheduler(
        ingestion_service,
        config=SchedulerConfig.from_settings(settings),
        on_success=log_summary,
    )


class SchedulerManager:
    """Owns at most one scheduler, created on first use.

    The host application constructs one manager and calls ``start``/``stop``
    from its lifecycle hooks.
    """

    def __init__(self, factory: Callable[[], IngestionScheduler]):
        self._factory = factory
        self._scheduler: Optional[IngestionScheduler] = None

    def get_scheduler(self) -> IngestionScheduler:
        if self._scheduler is None:
            self._scheduler = self._factory()
        return self._scheduler

    def start(self) -> None:
        self.get_scheduler().start()

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()

    async def shutdown(self) -> None:
        """Stop scheduling and wait for in-flight runs."""
        if self._scheduler is None:
            return
        if self._scheduler.is_running:
            self._scheduler.stop()
        await self._scheduler.wait_idle()
