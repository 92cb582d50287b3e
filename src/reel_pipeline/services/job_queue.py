"""
Job scheduler for reel generation.

A single worker processes one job at a time. Pending jobs are dispatched
highest priority first (5 before 1) and in submission order within a
priority. Failed attempts are retried with exponential backoff until the
job's attempt budget is spent.

All job state lives here and is mutated only under the scheduler's
condition lock; callers receive copies.
"""

import copy
import itertools
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..config import get_settings
from ..errors import JobCancelledError, NotFoundError
from ..logging_config import LoggerMixin
from ..models import (
    GenerationRequest,
    Job,
    JobProgress,
    JobStatusEnum,
    QueueMetrics,
    QueueStatus,
    ReelArtifact,
    StageName,
)
from ..utils.retry import compute_backoff
from .pipeline import CancellationToken, PipelineOrchestrator
from .record_store import JobRecordStore


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class QueueListener:
    """Receives job lifecycle notifications. Override the hooks you need."""

    def on_submitted(self, job: Job) -> None:
        pass

    def on_started(self, job: Job) -> None:
        pass

    def on_progress(self, job: Job) -> None:
        pass

    def on_retry(self, job: Job, delay: float) -> None:
        pass

    def on_completed(self, job: Job) -> None:
        pass

    def on_failed(self, job: Job) -> None:
        pass

    def on_cancelled(self, job: Job) -> None:
        pass


@dataclass
class _PendingEntry:
    sequence: int
    ready_at: float


class JobScheduler(LoggerMixin):
    """
    Priority queue with a single dispatch loop.

    ``dispatch_next()`` performs one synchronous dispatch step; ``start()``
    runs it repeatedly on a daemon thread.
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        settings=None,
        record_store: Optional[JobRecordStore] = None,
        listeners: Optional[List[QueueListener]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or get_settings()
        self.orchestrator = orchestrator
        self.record_store = record_store
        self.listeners: List[QueueListener] = list(listeners or [])
        self._clock = clock or time.monotonic

        self._cond = threading.Condition()
        self._jobs: Dict[str, Job] = {}
        self._pending: Dict[str, _PendingEntry] = {}
        self._sequence = itertools.count()
        self._active_id: Optional[str] = None
        self._active_token: Optional[CancellationToken] = None
        self._paused = False
        self._running = False
        self._thread: Optional[threading.Thread] = None

        self.logger.info(
            "Job scheduler initialized",
            max_attempts=self.settings.max_attempts,
            retry_base_delay=self.settings.retry_base_delay,
            retry_max_delay=self.settings.retry_max_delay,
        )

    def add_listener(self, listener: QueueListener) -> None:
        self.listeners.append(listener)

    # ---------------------------
    # Submission and queries
    # ---------------------------

    def submit(self, request: GenerationRequest) -> str:
        """
        Enqueue a generation request.

        Returns immediately; stage work happens on the dispatch loop.

        Args:
            request: Generation request

        Returns:
            Id of the new Pending job

        Raises:
            ValidationError: If the request is out of bounds
        """
        request.validate()

        job = Job(id=_new_id("job"), request=request, max_attempts=self.settings.max_attempts)
        with self._cond:
            self._jobs[job.id] = job
            self._pending[job.id] = _PendingEntry(next(self._sequence), self._clock())
            snapshot = copy.deepcopy(job)
            self._cond.notify_all()

        self.logger.info(
            "Job submitted",
            job_id=job.id,
            celebrity_id=request.celebrity_id,
            duration=request.duration,
            priority=request.priority,
        )
        self._mirror(snapshot)
        self._notify("on_submitted", snapshot)
        return job.id

    def get_job(self, job_id: str) -> Job:
        """Snapshot of one job.

        Raises:
            NotFoundError: If the id is unknown
        """
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"Job not found: {job_id}")
            return copy.deepcopy(job)

    def get_jobs(
        self,
        status: Optional[JobStatusEnum] = None,
        priority: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Job]:
        """Snapshots of jobs, pending ones in dispatch order first, the rest by creation."""
        with self._cond:
            pending_ids = sorted(self._pending, key=self._dispatch_key_locked)
            others = [job for job in self._jobs.values() if job.id not in self._pending]
            others.sort(key=lambda job: job.created_at)
            ordered = [self._jobs[job_id] for job_id in pending_ids] + others

            selected = [
                job for job in ordered
                if (status is None or job.status == status)
                and (priority is None or job.priority == priority)
            ]
            if limit is not None:
                selected = selected[:limit]
            return [copy.deepcopy(job) for job in selected]

    def get_status(self) -> QueueStatus:
        with self._cond:
            return QueueStatus(
                processing=self._running and not self._paused,
                paused=self._paused,
                pending_count=len(self._pending),
                active_jobs=1 if self._active_id else 0,
            )

    def get_metrics(self) -> QueueMetrics:
        """Aggregate counts and timings over every job seen so far."""
        with self._cond:
            counts = {status: 0 for status in JobStatusEnum}
            waits = []
            processing = []
            for job in self._jobs.values():
                counts[job.status] += 1
                if job.wait_time is not None:
                    waits.append(job.wait_time)
                if job.processing_time is not None and job.status in (JobStatusEnum.COMPLETED, JobStatusEnum.FAILED):
                    processing.append(job.processing_time)
            total = len(self._jobs)

        return QueueMetrics(
            pending=counts[JobStatusEnum.PENDING],
            active=counts[JobStatusEnum.ACTIVE],
            completed=counts[JobStatusEnum.COMPLETED],
            failed=counts[JobStatusEnum.FAILED],
            cancelled=counts[JobStatusEnum.CANCELLED],
            total=total,
            average_wait_seconds=sum(waits) / len(waits) if waits else 0.0,
            average_processing_seconds=sum(processing) / len(processing) if processing else 0.0,
        )

    # ---------------------------
    # Control
    # ---------------------------

    def pause(self) -> None:
        """Stop dispatching new jobs. The active job, if any, keeps running."""
        with self._cond:
            self._paused = True
        self.logger.info("Queue paused")

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._cond.notify_all()
        self.logger.info("Queue resumed")

    def clear(self) -> int:
        """Cancel every Pending job. The active job is left alone.

        Returns:
            Number of jobs cancelled
        """
        with self._cond:
            cancelled = [self._cancel_pending_locked(job_id) for job_id in list(self._pending)]
            self._cond.notify_all()

        self.logger.info("Queue cleared", cancelled=len(cancelled))
        for snapshot in cancelled:
            self._mirror(snapshot)
            self._notify("on_cancelled", snapshot)
        return len(cancelled)

    def remove_job(self, job_id: str) -> bool:
        """
        Cancel a job.

        A Pending job is cancelled at once. An Active job is asked to stop at
        its next stage boundary, unless it is already publishing. Terminal and
        unknown jobs are left untouched.

        Returns:
            True if cancellation was applied or requested
        """
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return False

            if job_id in self._pending:
                snapshot = self._cancel_pending_locked(job_id)
                self._cond.notify_all()
            else:
                requested = self._active_token is not None and self._active_token.cancel()
                if requested:
                    self.logger.info("Cancellation requested for active job", job_id=job_id)
                else:
                    self.logger.info("Active job is publishing, cancellation refused", job_id=job_id)
                return requested

        self.logger.info("Pending job cancelled", job_id=job_id)
        self._mirror(snapshot)
        self._notify("on_cancelled", snapshot)
        return True

    # ---------------------------
    # Dispatch
    # ---------------------------

    def dispatch_next(self) -> Optional[Job]:
        """
        Run one attempt of the next ready job, if dispatch is allowed.

        Returns:
            Snapshot of the dispatched job after the attempt, or None if the
            queue is paused, busy, or has no ready job
        """
        with self._cond:
            if self._paused or self._active_id is not None:
                return None
            job_id = self._next_ready_locked()
            if job_id is None:
                return None

            del self._pending[job_id]
            job = self._jobs[job_id]
            job.status = JobStatusEnum.ACTIVE
            job.started_at = datetime.now()
            job.progress = JobProgress()
            token = CancellationToken()
            self._active_id = job_id
            self._active_token = token
            snapshot = copy.deepcopy(job)

        self.logger.info(
            "Job started",
            job_id=job_id,
            attempt=snapshot.attempts + 1,
            max_attempts=snapshot.max_attempts,
            priority=snapshot.priority,
        )
        self._mirror(snapshot)
        self._notify("on_started", snapshot)

        def on_progress(stage: StageName, percent: int) -> None:
            self._record_progress(job_id, stage, percent)

        try:
            artifact = self.orchestrator.run(snapshot, token, on_progress)
        except JobCancelledError as e:
            self._finish_cancelled(job_id, str(e))
        except Exception as e:
            if token.is_cancelled:
                self._finish_cancelled(job_id, f"Job {job_id} cancelled")
            else:
                self._finish_failed(job_id, e)
        else:
            self._finish_completed(job_id, artifact)

        return self.get_job(job_id)

    def start(self) -> None:
        """Run the dispatch loop on a daemon thread."""
        with self._cond:
            if self._thread is not None and self._thread.is_alive():
                return
            self._running = True
            self._thread = threading.Thread(target=self._loop, name="reel-dispatch", daemon=True)
            self._thread.start()
        self.logger.info("Dispatch loop started")

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the dispatch loop once the current attempt, if any, finishes."""
        with self._cond:
            self._running = False
            self._cond.notify_all()
            thread = self._thread
        if wait and thread is not None:
            thread.join(timeout)
        self.logger.info("Dispatch loop stopped")

    def wait_for(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """Block until ``job_id`` is terminal or ``timeout`` expires; return its snapshot."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            if job_id not in self._jobs:
                raise NotFoundError(f"Job not found: {job_id}")
            while not self._jobs[job_id].is_terminal:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break
                self._cond.wait(remaining)
            return copy.deepcopy(self._jobs[job_id])

    def _loop(self) -> None:
        while True:
            with self._cond:
                while self._running and not self._can_dispatch_locked():
                    self._cond.wait(self._wait_timeout_locked())
                if not self._running:
                    return
            self.dispatch_next()

    # ---------------------------
    # Outcomes
    # ---------------------------

    def _record_progress(self, job_id: str, stage: StageName, percent: int) -> None:
        with self._cond:
            job = self._jobs[job_id]
            if job.status != JobStatusEnum.ACTIVE:
                return
            job.progress = JobProgress(stage=stage.value, percent=percent)
            snapshot = copy.deepcopy(job)
            self._cond.notify_all()

        self.logger.info("Job progress", job_id=job_id, stage=stage.value, percent=percent)
        self._mirror(snapshot)
        self._notify("on_progress", snapshot)

    def _finish_completed(self, job_id: str, artifact: ReelArtifact) -> None:
        with self._cond:
            job = self._jobs[job_id]
            job.status = JobStatusEnum.COMPLETED
            job.result = artifact
            job.completed_at = datetime.now()
            snapshot = self._release_locked(job)

        self.logger.info(
            "Job completed",
            job_id=job_id,
            url=artifact.url,
            processing_time=snapshot.processing_time,
        )
        self._mirror(snapshot)
        self._notify("on_completed", snapshot)

    def _finish_cancelled(self, job_id: str, reason: str) -> None:
        with self._cond:
            job = self._jobs[job_id]
            job.status = JobStatusEnum.CANCELLED
            job.completed_at = datetime.now()
            snapshot = self._release_locked(job)

        self.logger.info("Active job cancelled", job_id=job_id, stage=snapshot.progress.stage, reason=reason)
        self._mirror(snapshot)
        self._notify("on_cancelled", snapshot)

    def _finish_failed(self, job_id: str, error: Exception) -> None:
        delay = None
        with self._cond:
            job = self._jobs[job_id]
            job.attempts += 1
            job.error = f"{type(error).__name__}: {error}"
            if job.attempts < job.max_attempts:
                delay = compute_backoff(job.attempts, self.settings.retry_base_delay, self.settings.retry_max_delay)
                job.status = JobStatusEnum.PENDING
                self._pending[job_id] = _PendingEntry(next(self._sequence), self._clock() + delay)
            else:
                job.status = JobStatusEnum.FAILED
                job.completed_at = datetime.now()
            snapshot = self._release_locked(job)

        if delay is not None:
            self.logger.warning(
                "Job attempt failed, retrying",
                job_id=job_id,
                attempts=snapshot.attempts,
                max_attempts=snapshot.max_attempts,
                delay_seconds=delay,
                error=snapshot.error,
            )
            self._mirror(snapshot)
            self._notify("on_retry", snapshot, delay)
        else:
            self.logger.error(
                "Job failed",
                job_id=job_id,
                attempts=snapshot.attempts,
                error=snapshot.error,
            )
            self._mirror(snapshot)
            self._notify("on_failed", snapshot)

    # ---------------------------
    # Internals (callers hold the lock)
    # ---------------------------

    def _release_locked(self, job: Job) -> Job:
        self._active_id = None
        self._active_token = None
        self._cond.notify_all()
        return copy.deepcopy(job)

    def _cancel_pending_locked(self, job_id: str) -> Job:
        del self._pending[job_id]
        job = self._jobs[job_id]
        job.status = JobStatusEnum.CANCELLED
        job.completed_at = datetime.now()
        return copy.deepcopy(job)

    def _dispatch_key_locked(self, job_id: str):
        return (-self._jobs[job_id].priority, self._pending[job_id].sequence)

    def _next_ready_locked(self) -> Optional[str]:
        now = self._clock()
        ready = [job_id for job_id, entry in self._pending.items() if entry.ready_at <= now]
        if not ready:
            return None
        return min(ready, key=self._dispatch_key_locked)

    def _can_dispatch_locked(self) -> bool:
        return (
            not self._paused
            and self._active_id is None
            and self._next_ready_locked() is not None
        )

    def _wait_timeout_locked(self) -> Optional[float]:
        """Seconds until the next backoff expires, or None to wait for a notification."""
        if self._paused or self._active_id is not None or not self._pending:
            return None
        earliest = min(entry.ready_at for entry in self._pending.values())
        return max(0.0, earliest - self._clock())

    # ---------------------------
    # Side channels
    # ---------------------------

    def _mirror(self, job: Job) -> None:
        if self.record_store is None:
            return
        try:
            self.record_store.save_job(job.to_dict())
        except Exception:
            self.logger.exception("Failed to mirror job to record store", job_id=job.id)

    def _notify(self, hook: str, *args) -> None:
        for listener in self.listeners:
            try:
                getattr(listener, hook)(*args)
            except Exception:
                self.logger.exception("Queue listener failed", hook=hook)
