"""
Background and on-demand triggering of the retention sweep.

The scheduled sweep is an APScheduler job: daily at a time of day (cron
trigger) or on a fixed period (interval trigger). ``max_instances=1`` makes
a tick that arrives while the previous sweep is still running a skip, and
``coalesce`` folds missed ticks into one. Scheduled runs never raise; they
log the outcome instead.
"""
import logging
import threading
from datetime import time
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.events import EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import Settings
from ..errors import ListFailure
from .retention import RetentionPolicy, SweepResult, sweep
from .storage import ObjectStore

logger = logging.getLogger(__name__)

JOB_ID = "retention-sweep"


class SweepScheduler:
    def __init__(
        self,
        store_factory: Callable[[], ObjectStore],
        policy: RetentionPolicy,
        *,
        run_at: time = time(3, 0),
        tz: ZoneInfo = ZoneInfo("UTC"),
        interval_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
    ):
        self._store_factory = store_factory
        self.policy = policy
        self.run_at = run_at
        self.tz = tz
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self._cancel = threading.Event()
        self._scheduler: Optional[BackgroundScheduler] = None
        self.last_result: Optional[SweepResult] = None
        self.skipped = 0

    @classmethod
    def from_settings(cls, settings: Settings, store_factory: Callable[[], ObjectStore]):
        policy = RetentionPolicy.from_days(settings.generated_prefix, settings.keep_days)
        return cls(
            store_factory,
            policy,
            run_at=settings.sweep_at,
            tz=settings.tz,
            interval_s=settings.sweep_interval_s,
            timeout_s=settings.sweep_timeout_s,
        )

    @property
    def is_alive(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def trigger(self):
        if self.interval_s is not None:
            return IntervalTrigger(seconds=self.interval_s, timezone=self.tz)
        return CronTrigger(hour=self.run_at.hour, minute=self.run_at.minute, timezone=self.tz)

    def build(self) -> BackgroundScheduler:
        scheduler = BackgroundScheduler(timezone=self.tz)
        scheduler.add_job(
            self.run_scheduled,
            self.trigger(),
            id=JOB_ID,
            name="retention sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        return scheduler

    def start(self) -> None:
        if self.is_alive:
            return
        self._cancel.clear()
        # a shut down BackgroundScheduler has closed its executor, so every
        # start gets a fresh one
        self._scheduler = self.build()
        self._scheduler.start()
        logger.info(
            "Cleanup scheduler started: prefix=%s keep=%s next=%s",
            self.policy.namespace_prefix,
            self.policy.keep_duration,
            self._scheduler.get_job(JOB_ID).next_run_time,
        )

    def stop(self, wait: bool = False) -> None:
        """Stop scheduling and cancel a sweep in progress. Does not block unless ``wait``."""
        if not self.is_alive:
            return
        self._cancel.set()
        self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Cleanup scheduler stopped")

    def _on_max_instances(self, event) -> None:
        self.skipped += 1
        logger.warning("[cleanup] previous sweep still running, skipped run due at %s", event.scheduled_run_times)

    def run_scheduled(self) -> Optional[SweepResult]:
        """Body of the scheduled job."""
        try:
            result = sweep(
                self._store_factory(),
                self.policy,
                timeout_s=self.timeout_s,
                cancel_event=self._cancel,
            )
        except ListFailure as e:
            logger.error("[cleanup] scheduled sweep failed: %s", e)
            return None
        except Exception:
            logger.exception("[cleanup] unexpected error in scheduled sweep")
            return None
        self.last_result = result
        logger.info(
            "[cleanup] Done - deleted %d of %d files (%d failures)",
            result.deleted,
            result.scanned,
            len(result.failures),
        )
        return result

    def run_now(self, policy: Optional[RetentionPolicy] = None) -> SweepResult:
        """Run a sweep in the caller's thread. ``ListFailure`` propagates."""
        return sweep(
            self._store_factory(),
            policy or self.policy,
            timeout_s=self.timeout_s,
        )
