"""Evaluation job lifecycle: status phases and the polling loop."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from konsole.errors import KonsoleError
from konsole.models.job import (
    FAILURE_STATUSES,
    IN_FLIGHT_STATUSES,
    SUCCESS_STATUSES,
    EvaluationJob,
)

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


class JobPhase(str, Enum):
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"


def classify_status(status: str) -> JobPhase:
    """Map a backend status string to a phase (case-insensitive)."""
    normalized = (status or "").strip().lower()
    if normalized in IN_FLIGHT_STATUSES:
        return JobPhase.IN_FLIGHT
    if normalized in SUCCESS_STATUSES:
        return JobPhase.SUCCEEDED
    if normalized in FAILURE_STATUSES:
        return JobPhase.FAILED
    return JobPhase.UNKNOWN


def is_in_flight(job: EvaluationJob) -> bool:
    return classify_status(job.status) == JobPhase.IN_FLIGHT


def is_terminal(job: EvaluationJob) -> bool:
    return classify_status(job.status) in (JobPhase.SUCCEEDED, JobPhase.FAILED)


def any_in_flight(jobs: list[EvaluationJob]) -> bool:
    return any(is_in_flight(job) for job in jobs)


@dataclass
class JobSnapshot:
    """Latest observed job list plus the outcome of the most recent fetch."""

    jobs: list[EvaluationJob] = field(default_factory=list)
    error: Optional[str] = None
    fetch_count: int = 0


JobFetcher = Callable[[], Awaitable[list[EvaluationJob]]]
SnapshotListener = Callable[[JobSnapshot], None]


class JobPoller:
    """Re-reads the job collection while any job is in flight.

    ``start()`` issues one fetch. After every fetch completes, timer-driven
    or manual, successful or not, the latest snapshot decides whether the
    interval timer stays armed: it is (re)armed while any job is in flight
    and cancelled as soon as none is. Overlapping fetches are allowed to race
    and the last one to finish wins. A failed fetch keeps the previous job
    list and records the error. ``stop()`` cancels the timer; requests
    already sent are left to finish but no new ones are issued. A listener
    that raises is logged and does not affect scheduling.
    """

    def __init__(
        self,
        fetch: JobFetcher,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Optional[SnapshotListener] = None,
    ):
        self._fetch = fetch
        self.interval = interval
        self._on_update = on_update
        self.snapshot = JobSnapshot()
        self._active = False
        self._timer: Optional[asyncio.Task] = None
        self._fetches: set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def is_scheduled(self) -> bool:
        """Whether a timer-driven re-fetch is pending."""
        return self._timer is not None and not self._timer.done()

    async def start(self) -> JobSnapshot:
        """Activate polling and perform the initial fetch."""
        self._active = True
        logger.info("poller_started", interval=self.interval)
        return await self.refresh()

    async def stop(self) -> None:
        """Deactivate polling and cancel the pending timer."""
        self._active = False
        self._cancel_timer()
        logger.info("poller_stopped", fetch_count=self.snapshot.fetch_count)

    async def refresh(self) -> JobSnapshot:
        """Fetch now (manual refresh) and re-evaluate scheduling."""
        task = self._spawn_fetch()
        await task
        return self.snapshot

    async def wait_until_settled(self) -> JobSnapshot:
        """Block until no timer is armed and no fetch is outstanding."""
        while self.is_scheduled or self._fetches:
            pending = [t for t in (self._timer, *self._fetches) if t is not None]
            await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        return self.snapshot

    def _spawn_fetch(self) -> asyncio.Task:
        task = asyncio.create_task(self._fetch_once())
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)
        return task

    async def _fetch_once(self) -> None:
        try:
            jobs = await self._fetch()
        except KonsoleError as e:
            self.snapshot.error = e.message
            logger.warning("poll_fetch_failed", error=e.message)
        except Exception as e:
            self.snapshot.error = str(e) or "Failed to fetch evaluation jobs"
            logger.error("poll_fetch_error", error=str(e), error_type=type(e).__name__)
        else:
            self.snapshot.jobs = jobs
            self.snapshot.error = None
            for job in jobs:
                if is_terminal(job) and not job.outcome_is_consistent:
                    logger.warning("job_outcome_inconsistent", job_id=job.id, status=job.status)
        finally:
            self.snapshot.fetch_count += 1

        self._reschedule()
        if self._on_update is not None:
            try:
                self._on_update(self.snapshot)
            except Exception as e:
                # Timer-spawned fetches have no awaiter to receive the error
                logger.error("poll_listener_failed", error=str(e), error_type=type(e).__name__)

    def _reschedule(self) -> None:
        in_flight = any_in_flight(self.snapshot.jobs)
        self._cancel_timer()
        if self._active and in_flight:
            self._timer = asyncio.create_task(self._tick())
        logger.debug("poll_rescheduled", in_flight=in_flight, scheduled=self.is_scheduled)

    async def _tick(self) -> None:
        """Fire a fetch every interval until cancelled."""
        while True:
            await asyncio.sleep(self.interval)
            self._spawn_fetch()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
