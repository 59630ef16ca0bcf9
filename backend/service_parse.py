"""
Service / facade layer.

This module implements the rules around running a parse: where exports
may be read from, which mode applies, how many jobs may exist, and how
a background parse reports back. It is intentionally free of scanning
logic — it calls `stream_driver` for that — and keeps job storage in
`JobRepo`.

Background parses follow a strict message-passing discipline: one
`ParseWorker` thread writes to one bounded queue and one `ParseJob`
reads it. Progress messages are best-effort and dropped when the queue
is full; the single terminal message (complete or error) always fits,
and no partial result is ever sent alongside an error.
"""

import logging
import os
import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from export_source import check_export_path
from models import (
    CompleteMessage,
    ErrorMessage,
    ParseMode,
    ParseProgress,
    ProgressMessage,
)
from repo_jobs import JobRepo
from settings import settings
from stream_driver import ParseCancelled, parse_file

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETE = "complete"
ERROR = "error"
CANCELLED = "cancelled"


class JobLimitError(RuntimeError):
    """Every job slot is taken by a job that is still running."""


class ParseWorker(threading.Thread):
    """Runs one parse and posts its messages on `outbox`."""

    def __init__(self, path: str, mode: ParseMode, outbox: queue.Queue, cancel_event: threading.Event):
        super().__init__(name=f"parse-{os.path.basename(path)}", daemon=True)
        self.path = path
        self.mode = mode
        self.outbox = outbox
        self.cancel_event = cancel_event

    def run(self) -> None:
        try:
            workouts = parse_file(
                self.path,
                self.mode,
                on_progress=self._post_progress,
                cancel_event=self.cancel_event,
            )
            message = CompleteMessage(workouts=[w.to_output() for w in workouts])
        except ParseCancelled as e:
            message = ErrorMessage(message=str(e))
        except Exception as e:
            logger.exception("Parse of %s failed", self.path)
            message = ErrorMessage(message=str(e) or e.__class__.__name__)
        self.outbox.put(message)

    def _post_progress(self, progress: ParseProgress) -> None:
        # one slot stays free for the terminal message
        if self.outbox.qsize() >= self.outbox.maxsize - 1:
            return
        try:
            self.outbox.put_nowait(ProgressMessage(**progress.model_dump()))
        except queue.Full:
            pass


@dataclass
class ParseJob:
    """Reader side of one background parse."""

    job_id: str
    path: str
    mode: ParseMode
    outbox: queue.Queue
    cancel_event: threading.Event = field(default_factory=threading.Event)
    state: str = RUNNING
    progress: Optional[ParseProgress] = None
    workouts: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    _read_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def finished(self) -> bool:
        return self.state != RUNNING

    def drain(self) -> None:
        """Apply every queued message to the job's status."""

        with self._read_lock:
            while True:
                try:
                    message = self.outbox.get_nowait()
                except queue.Empty:
                    return
                if isinstance(message, ProgressMessage):
                    self.progress = ParseProgress(
                        fraction_complete=message.fraction_complete, counts=message.counts
                    )
                elif isinstance(message, CompleteMessage):
                    self.state = COMPLETE
                    self.workouts = message.workouts
                elif isinstance(message, ErrorMessage):
                    self.state = CANCELLED if self.cancel_event.is_set() else ERROR
                    self.error = message.message

    def status(self) -> Dict[str, Any]:
        self.drain()
        out: Dict[str, Any] = {
            "job_id": self.job_id,
            "path": self.path,
            "mode": self.mode.value,
            "state": self.state,
            "progress": self.progress.model_dump() if self.progress else None,
        }
        if self.state == COMPLETE:
            out["workouts"] = self.workouts
        elif self.finished:
            out["error"] = self.error
        return out


class ParseService:
    """Path rules + mode selection + job lifecycle.

    Example usage:
        repo = JobRepo()
        svc = ParseService(repo)
        job_id = svc.start_job('export.zip', mode='detailed')
        svc.job_status(job_id)
    """

    def __init__(self, repo: JobRepo):
        self.repo = repo

    def resolve_path(self, path: str) -> str:
        """Absolute path of `path` under EXPORTS_DIR.

        Raises `PermissionError` for paths that escape EXPORTS_DIR.
        """

        base = os.path.realpath(settings.exports_dir)
        full = os.path.realpath(os.path.join(base, path))
        if os.path.commonpath([base, full]) != base:
            raise PermissionError(f"Export path must be inside {settings.exports_dir}")
        return full

    def resolve_mode(self, mode: Optional[str]) -> ParseMode:
        try:
            return ParseMode(mode or settings.default_parse_mode)
        except ValueError:
            raise ValueError(f"Unsupported parse mode: {mode}")

    def parse(self, path: str, mode: Optional[str] = None) -> List[Dict[str, Any]]:
        """Parse an export synchronously and return JSON-ready workouts."""

        full = self.resolve_path(path)
        workouts = parse_file(full, self.resolve_mode(mode))
        return [w.to_output() for w in workouts]

    def start_job(self, path: str, mode: Optional[str] = None) -> str:
        """Start a background parse and return its job id.

        Raises:
        - `PermissionError` / `FileNotFoundError` / `ValueError` for bad input
        - `JobLimitError` when MAX_JOBS jobs are still running
        """

        full = self.resolve_path(path)
        check_export_path(full)
        parse_mode = self.resolve_mode(mode)
        self._make_room()

        job_id = uuid.uuid4().hex
        outbox: queue.Queue = queue.Queue(maxsize=max(2, settings.progress_queue_size))
        job = ParseJob(job_id=job_id, path=path, mode=parse_mode, outbox=outbox)
        worker = ParseWorker(full, parse_mode, outbox, job.cancel_event)
        self.repo.add(job_id, job)
        worker.start()
        logger.info("Started parse job %s for %s (%s mode)", job_id, path, parse_mode.value)
        return job_id

    def get_job(self, job_id: str) -> ParseJob:
        job = self.repo.get(job_id)
        if job is None:
            raise KeyError(job_id)
        return job

    def job_status(self, job_id: str) -> Dict[str, Any]:
        return self.get_job(job_id).status()

    def cancel_job(self, job_id: str) -> None:
        """Ask a job to stop; it halts before reading its next chunk."""

        self.get_job(job_id).cancel_event.set()

    def _make_room(self) -> None:
        """Evict the oldest finished jobs once MAX_JOBS is reached."""

        if self.repo.count() < settings.max_jobs:
            return
        for job in self.repo.all():
            job.drain()
            if job.finished:
                self.repo.remove(job.job_id)
                if self.repo.count() < settings.max_jobs:
                    return
        raise JobLimitError(f"Too many running parse jobs (max {settings.max_jobs})")
