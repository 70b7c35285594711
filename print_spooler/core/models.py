from __future__ import annotations

"""
Pydantic models for print jobs.

A job record is persisted as one JSON document per job using camelCase keys
(documentName, sourcePaths, submittedAt, errorLog, ...). Models accept both the
camelCase aliases and the Python field names, and always dump by alias so a
record written by the store reads back identically.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

INCH_TO_MM = 25.4


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PaperSize(str, Enum):
    """Named paper presets; persisted by name."""

    A4 = "A4"
    A5 = "A5"
    LETTER = "LETTER"
    LEGAL = "LEGAL"

    @property
    def width_mm(self) -> float:
        return _PAPER_DIMENSIONS_MM[self][0]

    @property
    def height_mm(self) -> float:
        return _PAPER_DIMENSIONS_MM[self][1]


_PAPER_DIMENSIONS_MM = {
    PaperSize.A4: (210.0, 297.0),
    PaperSize.A5: (148.0, 210.0),
    PaperSize.LETTER: (215.9, 279.4),
    PaperSize.LEGAL: (215.9, 355.6),
}


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    PREVIEWING = "PREVIEWING"
    PRINTING = "PRINTING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    # Reserved: nothing moves a job into or out of PAUSED yet.
    PAUSED = "PAUSED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED)


class PrintSettings(BaseModel):
    """Immutable print settings attached to a job at submission."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    paper: PaperSize = Field(default=PaperSize.A4, description="Paper preset")
    dpi: int = Field(default=300, gt=0, description="Resolution in dots per inch")
    is_color: bool = Field(default=True, alias="isColor")
    is_duplex: bool = Field(default=False, alias="isDuplex")
    scale: float = Field(default=1.0, gt=0)
    copies: int = Field(default=1, ge=1)

    @classmethod
    def a4_default(cls) -> "PrintSettings":
        return cls(paper=PaperSize.A4, dpi=300, is_color=True, is_duplex=False, scale=1.0, copies=1)

    def page_size_px(self) -> tuple[int, int]:
        """Pixel (width, height) of one page at this resolution."""
        width = int(round(self.paper.width_mm / INCH_TO_MM * self.dpi))
        height = int(round(self.paper.height_mm / INCH_TO_MM * self.dpi))
        return width, height


class PrintJob(BaseModel):
    """
    One submitted print request and its lifecycle state.

    Use PrintJob.create() for new submissions; the plain constructor is what the
    store uses when reading records back from disk.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str
    document_name: str = Field(default="", alias="documentName")
    user: str = ""
    settings: PrintSettings = Field(default_factory=PrintSettings.a4_default)
    status: JobStatus = JobStatus.QUEUED
    source_paths: List[str] = Field(default_factory=list, alias="sourcePaths")
    submitted_at: datetime = Field(default_factory=_utc_now, alias="submittedAt")
    error_log: List[str] = Field(default_factory=list, alias="errorLog")

    @field_validator("error_log", mode="before")
    @classmethod
    def _error_log_never_null(cls, v):
        return [] if v is None else v

    @field_validator("submitted_at")
    @classmethod
    def _submitted_at_is_utc(cls, v: datetime) -> datetime:
        # offset-less timestamps are read as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        document_name: str,
        user: str,
        settings: PrintSettings,
        source_paths: List[str],
        job_id: Optional[str] = None,
    ) -> "PrintJob":
        return cls(
            id=job_id or str(uuid.uuid4()),
            document_name=document_name,
            user=user,
            settings=settings,
            status=JobStatus.QUEUED,
            source_paths=list(source_paths),
            submitted_at=_utc_now(),
            error_log=[],
        )

    def append_error(self, message: str) -> None:
        self.error_log = [*self.error_log, f"{_utc_now().isoformat()}: {message}"]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, data: str | bytes) -> "PrintJob":
        return cls.model_validate_json(data)


__all__ = ["INCH_TO_MM", "JobStatus", "PaperSize", "PrintJob", "PrintSettings"]
