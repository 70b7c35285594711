"""
File-backed job store ("spooler") for the print spooler.

Features:
- One JSON record per job at <spool>/<job_id>.json, written atomically
- In-memory index guarded by a reentrant lock; readers only ever get deep copies
- Startup recovery that skips (and logs) any record that fails to parse
- Operator transitions (cancel / retry / confirm_print) as compare-and-set on status
- Spooling of client source files under <spool>/<job_id>/
"""

from __future__ import annotations

import logging
import shutil
import threading
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Dict, List, Optional

from werkzeug.utils import secure_filename

from print_spooler.core.config import write_json_atomic
from print_spooler.core.models import JobStatus, PrintJob

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class SpoolerStore:
    """
    Authoritative registry of print jobs and sole writer of job records.

    Every method that hands a job out returns a deep copy; every mutation goes
    through submit/update/transition and replaces the whole record under the lock.
    """

    def __init__(self, spool_directory: str | Path):
        self._spool_dir = Path(spool_directory)
        self._jobs: Dict[str, PrintJob] = {}
        self._lock = threading.RLock()

        self._ensure_spool_directory()
        self._load_jobs_from_disk()

    @property
    def spool_directory(self) -> Path:
        return self._spool_dir

    # ----- persistence -------------------------------------------------------

    def _record_path(self, job_id: str) -> Path:
        return self._spool_dir / f"{job_id}{RECORD_SUFFIX}"

    def _ensure_spool_directory(self) -> None:
        try:
            if not self._spool_dir.exists():
                self._spool_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Created spool directory at %s", self._spool_dir.resolve())
        except OSError as e:
            logger.error("Could not create spool directory %s: %s", self._spool_dir, e)
            raise RuntimeError("Failed to create spool directory.") from e

    def _load_jobs_from_disk(self) -> None:
        logger.info("Loading existing jobs from %s", self._spool_dir)
        try:
            record_files = sorted(p for p in self._spool_dir.glob(f"*{RECORD_SUFFIX}") if p.is_file())
        except OSError as e:
            logger.error("Could not read spool directory %s: %s", self._spool_dir, e)
            raise RuntimeError("Failed to read spool directory.") from e

        loaded = 0
        for record in record_files:
            try:
                job = PrintJob.from_json(record.read_bytes())
            except Exception:
                logger.exception("Failed to load job from file: %s", record)
                continue
            self._jobs[job.id] = job
            loaded += 1
            logger.debug("Loaded job %s from %s", job.id, record.name)
        logger.info("Loaded %d job(s) from spool", loaded)

    def _persist(self, job: PrintJob) -> None:
        write_json_atomic(self._record_path(job.id), job.to_json())

    # ----- queries -----------------------------------------------------------

    def get(self, job_id: str) -> Optional[PrintJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def list_jobs(self) -> List[PrintJob]:
        """
        Return a snapshot of all jobs sorted by submission time (oldest first).
        """
        with self._lock:
            items = [j.model_copy(deep=True) for j in self._jobs.values()]
        items.sort(key=lambda j: j.submitted_at)
        return items

    def first_with_status(self, status: JobStatus) -> Optional[PrintJob]:
        for job in self.list_jobs():
            if job.status == status:
                return job
        return None

    def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for job in self.list_jobs():
            counts[job.status.value] = counts.get(job.status.value, 0) + 1
        return counts

    # ----- mutations ---------------------------------------------------------

    def submit(self, job: PrintJob) -> None:
        """
        Add a new job to the index and persist it.

        Raises ValueError for a missing job/id and OSError if the record cannot be written.
        """
        if job is None or not job.id:
            raise ValueError("Job and job id cannot be empty.")
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job id already exists: {job.id}")
            stored = job.model_copy(deep=True)
            self._persist(stored)
            self._jobs[stored.id] = stored
        logger.info("Submitted and persisted job %s (%s)", job.id, job.document_name)

    def update(self, job: PrintJob) -> None:
        """
        Replace an existing job record and re-persist it. Unknown ids are ignored with a warning.
        """
        with self._lock:
            if job is None or job.id not in self._jobs:
                logger.warning("Attempted to update a job that is not in the spool: %s", getattr(job, "id", None))
                return
            stored = job.model_copy(deep=True)
            self._jobs[stored.id] = stored
            try:
                self._persist(stored)
            except OSError:
                logger.exception("Failed to persist job %s", stored.id)
                return
        logger.debug("Updated and persisted job %s status=%s", job.id, job.status.value)

    def transition(
        self,
        job_id: str,
        expected: JobStatus | Iterable[JobStatus],
        new_status: JobStatus,
        *,
        clear_errors: bool = False,
        error: Optional[str] = None,
    ) -> Optional[PrintJob]:
        """
        Atomically move a job from one of the expected statuses to new_status,
        optionally appending a timestamped error entry in the same write.

        Returns the updated job (copy), or None when the job is unknown or not in an
        expected status. Never raises for a disallowed transition.
        """
        allowed = {expected} if isinstance(expected, JobStatus) else set(expected)
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None or current.status not in allowed:
                return None
            job = current.model_copy(deep=True)
            job.status = new_status
            if clear_errors:
                job.error_log = []
            if error is not None:
                job.append_error(error)
            self.update(job)
            return job.model_copy(deep=True)

    def cancel(self, job_id: str) -> bool:
        """Cancel a QUEUED or PRINTING job; no-op otherwise."""
        job = self.transition(job_id, (JobStatus.QUEUED, JobStatus.PRINTING), JobStatus.CANCELLED)
        if job:
            logger.info("Cancelled job %s", job_id)
        return job is not None

    def retry(self, job_id: str) -> bool:
        """Re-queue a FAILED job and clear its error log; no-op otherwise."""
        job = self.transition(job_id, JobStatus.FAILED, JobStatus.QUEUED, clear_errors=True)
        if job:
            logger.info("Retrying job %s", job_id)
        return job is not None

    def confirm_print(self, job_id: str) -> bool:
        """Commit a PREVIEWING job to final output (PRINTING); no-op otherwise."""
        job = self.transition(job_id, JobStatus.PREVIEWING, JobStatus.PRINTING)
        if job:
            logger.info("User confirmed printing for job %s", job_id)
        return job is not None

    def mark_failed(self, job_id: str, message: str) -> bool:
        """
        Record message and move a PREVIEWING or PRINTING job to FAILED.

        A job that was cancelled or removed meanwhile is left alone.
        """
        job = self.transition(
            job_id,
            (JobStatus.PREVIEWING, JobStatus.PRINTING),
            JobStatus.FAILED,
            error=message,
        )
        if job:
            logger.info("Marked job %s failed", job_id)
        return job is not None

    def remove(self, job_id: str) -> bool:
        """
        Delete a job record, its file and its spooled sources.

        Not restricted to terminal states here; callers decide.
        """
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            return False

        record = self._record_path(job_id)
        try:
            record.unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to delete job record %s", record)
        job_dir = self._spool_dir / job_id
        if job_dir.is_dir():
            shutil.rmtree(job_dir, ignore_errors=True)
        logger.info("Removed job %s and its spool files", job_id)
        return True

    def spool_source(self, source_file: str | Path, job_id: Optional[str] = None) -> str:
        """
        Copy a client file into the spool so the job does not depend on the original.

        Returns the absolute path of the spooled copy. Raises OSError if the source
        cannot be read or the copy cannot be written.
        """
        src = Path(source_file)
        target_dir = self._spool_dir / (job_id or uuid.uuid4().hex)
        target_dir.mkdir(parents=True, exist_ok=True)
        name = secure_filename(src.name) or "source.txt"
        target = target_dir / name
        shutil.copyfile(src, target)
        logger.debug("Spooled %s to %s", src, target)
        return str(target.resolve())


__all__ = ["SpoolerStore"]
