import logging
import threading
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol
from streamrec.config.models import SchedulerConfig
from streamrec.domain.errors import LaunchError, TranscodeError
from streamrec.domain.events import (
    CaptureStarted, JobCancelled, JobCompleted, JobFailed, JobScheduled, JobsRecovered, TranscodeStarted
)
from streamrec.domain.models import JobStatus, RecordingJob, check_output_name
from streamrec.domain.state import can_transition
from streamrec.infrastructure.clock import SystemClock
from streamrec.infrastructure.event_bus import EventBus

MISSED_SCHEDULE_DETAIL = "missed scheduled time due to restart"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
    """Default timer factory: a daemon one-shot threading.Timer, already started."""
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


class RecordingScheduler:
    """Owns the job table and drives every job through its lifecycle.

    One timer exists per pending job. When it fires the capture is launched,
    a second timer waits out duration + safety margin, then the transcode runs
    on that timer's thread. The table lock is held only for the atomic
    check-and-transition steps, never across a launch or a transcode, so
    submit/cancel/list stay responsive while other jobs are in flight.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        store,
        capture,
        transcoder,
        event_bus: EventBus,
        catalog=None,
        clock=None,
        timer_factory: Optional[TimerFactory] = None,
    ):
        self.config = config
        self.store = store
        self.capture = capture
        self.transcoder = transcoder
        self.event_bus = event_bus
        self.catalog = catalog
        self.clock = clock or SystemClock()
        self._timer_factory = timer_factory or thread_timer
        self.logger = logging.getLogger(__name__)

        self._jobs: Dict[str, RecordingJob] = {}
        self._timers: Dict[str, TimerHandle] = {}
        self._capture_waits: Dict[str, TimerHandle] = {}
        self._lock = threading.RLock()
        self._transcode_slots = threading.BoundedSemaphore(config.max_concurrent_transcodes)
        self._stopped = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Loads the persisted table and reconciles it against the clock.

        PersistenceReadError propagates: a corrupt snapshot must stop startup.
        """
        jobs = self.store.load()
        with self._lock:
            self._stopped = False
            self._jobs = {job.id: job for job in jobs}
        self.reconcile()

    def shutdown(self):
        """Disarms every timer. Pending jobs stay pending in the snapshot."""
        with self._lock:
            self._stopped = True
            handles = list(self._timers.values()) + list(self._capture_waits.values())
            self._timers.clear()
            self._capture_waits.clear()
        for handle in handles:
            handle.cancel()
        self.logger.info(f"Scheduler stopped, {len(handles)} timers disarmed")

    def reconcile(self):
        """Rebuilds timers for future pending jobs and fails the ones whose start time passed.

        Jobs in any other state are left untouched. Running it twice gives the
        same table as running it once.
        """
        now = self.clock.now()
        rearmed: List[str] = []
        missed: List[RecordingJob] = []
        with self._lock:
            for job in self._jobs.values():
                if job.status is not JobStatus.PENDING:
                    continue
                if job.start_time > now:
                    if job.id not in self._timers:
                        self._arm(job)
                    rearmed.append(job.id)
                    self.logger.info(f"Restored scheduled recording {job.id} for {job.start_time.isoformat()}")
                else:
                    handle = self._timers.pop(job.id, None)
                    if handle is not None:
                        handle.cancel()
                    job.status = JobStatus.FAILED
                    job.error_detail = MISSED_SCHEDULE_DETAIL
                    missed.append(job.model_copy())
                    self.logger.warning(f"Recording {job.id} ({job.name}) missed its start time {job.start_time.isoformat()}")
            self._persist()

        self.event_bus.publish(JobsRecovered(rearmed=rearmed, missed=[job.id for job in missed]))
        for job in missed:
            self.event_bus.publish(JobFailed(job=job, error_message=MISSED_SCHEDULE_DETAIL))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def submit(self, source: str, name: str, duration_seconds: int, start_time: datetime) -> RecordingJob:
        """Creates a pending job and arms its timer.

        Does not check that start_time lies in the future; a past start time
        fires immediately. Raises pydantic.ValidationError on structurally
        invalid input, and ValueError for names containing path separators.
        """
        job = RecordingJob(
            source=source,
            name=name,
            duration_seconds=duration_seconds,
            start_time=start_time,
            created_at=self.clock.now(),
        )
        check_output_name(job.name)
        with self._lock:
            if self._stopped:
                raise RuntimeError("scheduler has been shut down")
            self._jobs[job.id] = job
            self._arm(job)
            self._persist()
            snapshot = job.model_copy()

        self.logger.info(f"Scheduled recording {job.id} ({job.name}) for {job.start_time.isoformat()}")
        self.event_bus.publish(JobScheduled(job=snapshot))
        return snapshot

    def cancel(self, job_id: str) -> bool:
        """Removes a pending job and disarms its timer. False for unknown or non-pending jobs."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.PENDING:
                return False
            handle = self._timers.pop(job_id, None)
            if handle is not None:
                handle.cancel()
            del self._jobs[job_id]
            self._persist()

        self.logger.info(f"Cancelled recording {job_id}")
        self.event_bus.publish(JobCancelled(job=job))
        return True

    def get(self, job_id: str) -> Optional[RecordingJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def list(self) -> List[RecordingJob]:
        with self._lock:
            return [job.model_copy() for job in self._jobs.values()]

    def armed_job_ids(self) -> List[str]:
        """Ids of pending jobs that currently own a start timer."""
        with self._lock:
            return list(self._timers)

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _on_timer_fire(self, job_id: str):
        with self._lock:
            if self._stopped:
                return
            self._timers.pop(job_id, None)
            current = self._jobs.get(job_id)
            if current is None or current.status is not JobStatus.PENDING:
                # Cancelled (or already handled) before the timer got the lock
                self.logger.debug(f"Timer for {job_id} fired with no pending job, ignoring")
                return
            job = self._transition(job_id, JobStatus.CAPTURING)

        self.logger.info(f"Executing recording {job_id}: {job.name}")
        try:
            output_path = self.capture.launch(job.source, job.name, job.duration_seconds)
        except LaunchError as e:
            self._fail(job_id, str(e))
            return
        except Exception as e:
            self.logger.exception(f"Unexpected error launching capture for {job_id}")
            self._fail(job_id, f"unexpected error: {e}")
            return

        self.event_bus.publish(CaptureStarted(job=job, output_path=output_path))

        # Completion is inferred from elapsed time; the capture tool gives no exit signal
        delay = job.duration_seconds + self.config.safety_margin_seconds
        with self._lock:
            if self._stopped:
                return
            self._capture_waits[job_id] = self._timer_factory(
                delay, partial(self._on_capture_window_elapsed, job_id, Path(output_path))
            )
        self.logger.info(f"Transcoding for {job_id} scheduled in {delay:.0f}s")

    def _on_capture_window_elapsed(self, job_id: str, output_path: Path):
        with self._lock:
            if self._stopped:
                return
            self._capture_waits.pop(job_id, None)
            job = self._transition(job_id, JobStatus.TRANSCODING)
        if job is None:
            return

        self.event_bus.publish(TranscodeStarted(job=job, input_path=output_path))
        try:
            with self._transcode_slots:
                self.transcoder.transcode(output_path)
        except TranscodeError as e:
            self._fail(job_id, str(e))
            return
        except Exception as e:
            self.logger.exception(f"Unexpected error transcoding {job_id}")
            self._fail(job_id, f"unexpected error: {e}")
            return

        self._notify_catalog(job, output_path)

        with self._lock:
            job = self._transition(job_id, JobStatus.COMPLETED)
        if job is not None:
            self.logger.info(f"Recording {job_id} completed successfully")
            self.event_bus.publish(JobCompleted(job=job))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _arm(self, job: RecordingJob):
        delay = max(0.0, (job.start_time - self.clock.now()).total_seconds())
        self._timers[job.id] = self._timer_factory(delay, partial(self._on_timer_fire, job.id))

    def _transition(
        self, job_id: str, target: JobStatus, error_detail: Optional[str] = None
    ) -> Optional[RecordingJob]:
        """Moves a job to target and persists the table. Returns a copy, or None if refused."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if not can_transition(job.status, target):
                self.logger.warning(f"Refusing transition of {job_id}: {job.status.value} -> {target.value}")
                return None
            job.status = target
            if error_detail is not None:
                job.error_detail = error_detail
            self._persist()
            return job.model_copy()

    def _fail(self, job_id: str, detail: str):
        job = self._transition(job_id, JobStatus.FAILED, error_detail=detail or "unknown error")
        if job is not None:
            self.logger.error(f"Recording {job_id} failed: {job.error_detail}")
            self.event_bus.publish(JobFailed(job=job, error_message=job.error_detail))

    def _persist(self):
        # Called with the lock held so snapshots reach the store in transition order
        self.store.save(list(self._jobs.values()))

    def _notify_catalog(self, job: RecordingJob, output_path: Path):
        if self.catalog is None:
            return
        folder_path = output_path.with_suffix("")
        try:
            entry = self.catalog.ensure_exists(job.name, folder_path)
            self.logger.info(f"Ensured recording in catalog: id={entry.id}, folder={job.name}")
        except Exception:
            self.logger.warning(f"Failed to register {job.name} in the catalog", exc_info=True)
