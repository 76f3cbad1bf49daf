"""APScheduler jobs — periodic reconciliation of an actor's snapshot with the shared store.

The admin process polls `responses` every 3 seconds; the user process polls
`messages` and `responses` every 5 seconds. Each poll replaces the snapshots
wholesale; there is no diffing and no push.
"""

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

import pytz
import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from learnchat.config import get_settings
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.infrastructure.store import MESSAGES, RESPONSES

settings = get_settings()
logger = structlog.get_logger(__name__)
tz = pytz.timezone(settings.TIMEZONE)


class ActorRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


ROLE_PARTITIONS = {
    ActorRole.ADMIN: (RESPONSES,),
    ActorRole.USER: (MESSAGES, RESPONSES),
}


def interval_for(role: ActorRole) -> float:
    if role == ActorRole.ADMIN:
        return settings.ADMIN_SYNC_INTERVAL_SECONDS
    return settings.USER_SYNC_INTERVAL_SECONDS


class SyncReconciler:
    """Pulls fresh snapshots of some partitions on a fixed interval."""

    def __init__(
        self,
        repo: EntityRepository,
        partitions: Sequence[str],
        interval_seconds: float,
        scheduler: Optional[BackgroundScheduler] = None,
        job_id: str = "sync_reconciler",
    ):
        self.repo = repo
        self.partitions = tuple(partitions)
        self.interval_seconds = interval_seconds
        self.job_id = job_id
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(timezone=tz)
        self._poll_lock = threading.Lock()
        self.last_synced_at: Optional[datetime] = None
        self.polls = 0
        self.failures = 0

    @classmethod
    def for_role(cls, repo: EntityRepository, role: ActorRole | str, **kwargs) -> "SyncReconciler":
        role = ActorRole(role)
        return cls(repo, ROLE_PARTITIONS[role], interval_for(role), job_id=f"sync_{role.value}", **kwargs)

    @property
    def running(self) -> bool:
        return self.scheduler.running and self.scheduler.get_job(self.job_id) is not None

    def poll(self) -> bool:
        """One reconciliation cycle. Cycles never overlap."""
        with self._poll_lock:
            ok = self.repo.reload(self.partitions)
            self.polls += 1
            if ok:
                self.last_synced_at = datetime.now(timezone.utc)
            else:
                self.failures += 1
                logger.warning("Reconciliation failed, keeping previous snapshot", partitions=self.partitions)
            return ok

    def _trigger(self) -> IntervalTrigger:
        return IntervalTrigger(seconds=self.interval_seconds, timezone=tz)

    def start(self) -> None:
        self.scheduler.add_job(
            self.poll,
            trigger=self._trigger(),
            id=self.job_id,
            name=f"Reconcile {', '.join(self.partitions)}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("Reconciler started", partitions=self.partitions, interval_seconds=self.interval_seconds)

    def refresh_now(self) -> bool:
        """Poll immediately and restart the interval from now."""
        ok = self.poll()
        if self.running:
            self.scheduler.reschedule_job(self.job_id, trigger=self._trigger())
        return ok

    def stop(self) -> None:
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass
        if self._owns_scheduler and self.scheduler.running:
            # Waits for an in-flight poll to finish
            self.scheduler.shutdown(wait=True)
        logger.info("Reconciler stopped", partitions=self.partitions)
