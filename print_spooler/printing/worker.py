"""
Background worker and job pipeline for the print spooler.

This module owns:
- SpoolerWorker: advances one job by one stage per process_one_step() call
  (finalize PRINTING jobs first, then render QUEUED jobs for preview)
- A single background thread that drives the worker with an interruptible
  poll backoff, plus helpers to start/stop it and report its status

Failures are contained per job: any exception raised while rendering or
finalizing becomes an error_log entry and a FAILED status on that job only.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from print_spooler.core.config import DEFAULT_POLL_INTERVAL
from print_spooler.core.logging import job_log_context
from print_spooler.core.models import JobStatus, PrintJob
from print_spooler.core.store import SpoolerStore
from print_spooler.printing.assembler import VirtualPrinter
from print_spooler.printing.render import PageRenderer
from print_spooler.printing.source import open_source

logger = logging.getLogger(__name__)

WORKER_THREAD: Optional[threading.Thread] = None
WORKER_STARTED = False
STOP_EVENT = threading.Event()
POLL_INTERVAL = DEFAULT_POLL_INTERVAL
_WORKER_LOCK = threading.Lock()


class SpoolerWorker:
    """
    Orchestrates the store, renderer and virtual printer for one job at a time.
    """

    def __init__(self, store: SpoolerStore, renderer: PageRenderer, printer: VirtualPrinter):
        self.store = store
        self.renderer = renderer
        self.printer = printer

    def process_one_step(self) -> bool:
        """
        Process one stage of the next eligible job. Returns True if any work was done.
        """
        # Confirmed jobs first: assembly is fast and a user is waiting on it.
        if self._process_next_printing_job():
            return True
        return self._process_next_queued_job()

    def run_until_idle(self, max_steps: Optional[int] = None) -> int:
        """
        Step until no job is eligible (or max_steps is reached). Returns steps taken.
        """
        steps = 0
        while max_steps is None or steps < max_steps:
            if not self.process_one_step():
                break
            steps += 1
        return steps

    def _process_next_printing_job(self) -> bool:
        job = self.store.first_with_status(JobStatus.PRINTING)
        if job is None:
            return False
        with job_log_context(job.id):
            self._finalize(job)
        return True

    def _finalize(self, job: PrintJob) -> None:
        logger.info("Stage 2: finalizing PDF for job %s", job.id)
        try:
            self.printer.finish_job(job)
        except Exception as e:
            self._handle_failure(job, e)
            return

        if self.store.transition(job.id, JobStatus.PRINTING, JobStatus.COMPLETED) is None:
            logger.info("Job %s left PRINTING during finalization; not marking completed", job.id)
            return
        logger.info("Completed job %s", job.id)

    def _process_next_queued_job(self) -> bool:
        queued = self.store.first_with_status(JobStatus.QUEUED)
        if queued is None:
            return False

        job = self.store.transition(queued.id, JobStatus.QUEUED, JobStatus.PREVIEWING)
        if job is None:
            # cancelled or removed between the lookup and the claim
            logger.debug("Job %s was no longer queued when claimed", queued.id)
            return True
        with job_log_context(job.id):
            self._render_preview(job)
        return True

    def _render_preview(self, job: PrintJob) -> None:
        logger.info("Stage 1: rendering job %s for preview", job.id)
        try:
            if not job.source_paths:
                raise ValueError("Job has no source files")
            source = open_source(job.source_paths[0])
            total_pages = self.renderer.get_total_pages(source, job.settings)

            for index in range(total_pages):
                if not self._still_previewing(job.id):
                    logger.info("Job %s is no longer previewing; stopping render at page %d", job.id, index + 1)
                    return
                logger.info("Rendering page %d of %d for job %s", index + 1, total_pages, job.id)
                image = self.renderer.render(source, index, job.settings)
                self.printer.accept_page(job, image, index + 1)
            logger.info("Finished rendering job %s for preview (%d page(s))", job.id, total_pages)
        except Exception as e:
            self._handle_failure(job, e)

    def _still_previewing(self, job_id: str) -> bool:
        current = self.store.get(job_id)
        return current is not None and current.status == JobStatus.PREVIEWING

    def _handle_failure(self, job: PrintJob, error: Exception) -> None:
        logger.exception("Failed to process job %s: %s", job.id, error)
        if not self.store.mark_failed(job.id, f"{type(error).__name__}: {error}"):
            logger.warning("Not marking job %s failed; it was cancelled or removed meanwhile", job.id)


def _worker_loop(worker: SpoolerWorker, stop_event: threading.Event) -> None:
    """
    Drive the pipeline until stop_event is set. Never raises; logs unexpected errors.
    """
    while not stop_event.is_set():
        try:
            did_work = worker.process_one_step()
        except Exception:
            logger.exception("Unexpected error in spooler worker step")
            did_work = False
        if not did_work:
            stop_event.wait(POLL_INTERVAL)
    logger.info("Spooler worker stopped")


def ensure_worker(worker: SpoolerWorker, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
    """
    Ensure the background worker thread is started (idempotent).
    """
    global WORKER_THREAD, WORKER_STARTED, POLL_INTERVAL
    with _WORKER_LOCK:
        POLL_INTERVAL = poll_interval
        if WORKER_STARTED and WORKER_THREAD and WORKER_THREAD.is_alive():
            return
        STOP_EVENT.clear()
        t = threading.Thread(
            target=_worker_loop,
            args=(worker, STOP_EVENT),
            daemon=True,
            name="print-spooler-worker",
        )
        t.start()
        WORKER_THREAD = t
        WORKER_STARTED = True
    logger.info("Background spooler worker started (poll interval %.2fs)", poll_interval)


def stop_worker(timeout: Optional[float] = 5.0) -> bool:
    """
    Ask the background worker to stop and wait for it. Returns True if it exited.
    """
    global WORKER_STARTED
    with _WORKER_LOCK:
        t = WORKER_THREAD
        STOP_EVENT.set()
    if t is None:
        return True
    t.join(timeout)
    stopped = not t.is_alive()
    if stopped:
        WORKER_STARTED = False
    return stopped


def worker_status() -> Dict[str, Any]:
    """
    Return basic worker status.
    """
    alive = bool(WORKER_THREAD) and WORKER_THREAD.is_alive()  # type: ignore[union-attr]
    return {
        "worker_started": WORKER_STARTED,
        "worker_alive": alive,
        "poll_interval_seconds": POLL_INTERVAL,
    }


__all__ = [
    "STOP_EVENT",
    "SpoolerWorker",
    "ensure_worker",
    "stop_worker",
    "worker_status",
]
