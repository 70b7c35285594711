"""
Virtual printer: stages rendered pages on disk and assembles them into a PDF.

Layout under the output root:
    <output>/<job_id>/rendered_pages/page_0001.png ...
    <output>/<job_id>/output.pdf

Page files use a 4-digit zero-padded number so lexicographic order is page order.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
from PIL import Image

from print_spooler.core.models import PrintJob

logger = logging.getLogger(__name__)

RENDERED_PAGES_DIR_NAME = "rendered_pages"
OUTPUT_FILE_NAME = "output.pdf"
PAGE_FILE_PATTERN = "page_{:04d}.png"

# Called as listener(job, image, page_number) on the worker thread; consumers that
# own a UI/event loop must hand the page off to their own thread.
PageListener = Callable[[PrintJob, Image.Image, int], None]


class VirtualPrinter:
    """
    Simulated printer hardware: accepts page images and produces the finished document.
    """

    def __init__(self, output_directory: str | Path, listener: Optional[PageListener] = None):
        self.output_directory = Path(output_directory)
        self._listener = listener
        self._ensure_output_directory()

    def _ensure_output_directory(self) -> None:
        try:
            if not self.output_directory.exists():
                self.output_directory.mkdir(parents=True, exist_ok=True)
                logger.info("Created output directory at %s", self.output_directory.resolve())
        except OSError as e:
            logger.error("Could not create output directory %s: %s", self.output_directory, e)
            raise RuntimeError("Failed to create output directory.") from e

    def set_page_listener(self, listener: Optional[PageListener]) -> None:
        self._listener = listener

    def job_directory(self, job_id: str) -> Path:
        return self.output_directory / job_id

    def pages_directory(self, job_id: str) -> Path:
        return self.job_directory(job_id) / RENDERED_PAGES_DIR_NAME

    def output_path(self, job_id: str) -> Path:
        return self.job_directory(job_id) / OUTPUT_FILE_NAME

    def rendered_pages(self, job_id: str) -> List[Path]:
        pages_dir = self.pages_directory(job_id)
        if not pages_dir.is_dir():
            return []
        return sorted(p for p in pages_dir.glob("*.png") if p.is_file())

    def accept_page(self, job: PrintJob, image: Image.Image, page_number: int) -> None:
        """
        Persist one rendered page (1-based page_number) and notify the listener.

        A write failure is logged and swallowed so pages already on disk still
        reach the finished document.
        """
        pages_dir = self.pages_directory(job.id)
        page_file = pages_dir / PAGE_FILE_PATTERN.format(page_number)
        try:
            pages_dir.mkdir(parents=True, exist_ok=True)
            image.save(page_file, format="PNG")
        except OSError:
            logger.exception("Failed to save rendered page %d for job %s", page_number, job.id)
            return
        logger.debug("Saved rendered page %d for job %s to %s", page_number, job.id, page_file)

        if self._listener is not None:
            self._listener(job, image, page_number)

    def finish_job(self, job: PrintJob) -> Optional[Path]:
        """
        Assemble the job's rendered pages, in page order, into output.pdf.

        Each PDF page is sized pixels * 72 / dpi points so the physical size
        matches the paper the page was rendered for.

        Returns the PDF path, or None when the job has no rendered pages (nothing
        is created in that case).
        """
        pages_dir = self.pages_directory(job.id)
        if not pages_dir.is_dir():
            logger.warning("No rendered pages found for job %s; nothing to assemble", job.id)
            return None

        page_files = self.rendered_pages(job.id)
        if not page_files:
            logger.warning("Rendered pages directory is empty for job %s", job.id)
            return None

        pdf_path = self.output_path(job.id)
        points_per_pixel = 72.0 / job.settings.dpi
        logger.info("Finishing job %s: assembling %d page(s) into %s", job.id, len(page_files), pdf_path)

        doc = fitz.open()
        try:
            for page_file in page_files:
                with Image.open(page_file) as img:
                    width_px, height_px = img.size
                page = doc.new_page(width=width_px * points_per_pixel, height=height_px * points_per_pixel)
                page.insert_image(page.rect, filename=str(page_file))
            doc.save(str(pdf_path))
        finally:
            doc.close()

        logger.info("Created PDF for job %s", job.id)
        return pdf_path

    def discard(self, job_id: str) -> None:
        """Delete every artifact produced for a job."""
        job_dir = self.job_directory(job_id)
        if job_dir.is_dir():
            shutil.rmtree(job_dir)
            logger.info("Removed output artifacts for job %s", job_id)


__all__ = [
    "OUTPUT_FILE_NAME",
    "PAGE_FILE_PATTERN",
    "PageListener",
    "RENDERED_PAGES_DIR_NAME",
    "VirtualPrinter",
]
