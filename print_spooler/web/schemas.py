from __future__ import annotations

"""
Pydantic schemas for the print spooler API (v1).

These models validate incoming job submissions before anything touches the
spool. Settings are optional; omitted fields fall back to the configured
defaults.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from print_spooler.core.models import PaperSize, PrintSettings

MAX_NAME_LEN = 200


def _has_control_chars(s: str) -> bool:
    return any((ord(c) < 32 and c not in "\n\r\t") or ord(c) == 127 for c in s)


class SettingsInput(BaseModel):
    """Per-job print settings; every field is optional."""

    paper: Optional[PaperSize] = Field(default=None, examples=["A4", "LETTER"])
    dpi: Optional[int] = Field(default=None, gt=0, le=1200, examples=[150, 300])
    is_color: Optional[bool] = None
    is_duplex: Optional[bool] = None
    scale: Optional[float] = Field(default=None, gt=0, le=10)
    copies: Optional[int] = Field(default=None, ge=1, le=999)

    @field_validator("paper", mode="before")
    @classmethod
    def _paper_upper(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    def merged_with(self, defaults: PrintSettings) -> PrintSettings:
        overrides = self.model_dump(exclude_none=True)
        return defaults.model_copy(update=overrides)


class JobSubmitRequest(BaseModel):
    """A request to spool a local document for printing."""

    source_path: str = Field(
        description="Path of the document to print; it is copied into the spool on submission",
        examples=["/home/me/notes.txt"],
    )
    document_name: Optional[str] = Field(default=None, max_length=MAX_NAME_LEN)
    user: Optional[str] = Field(default=None, max_length=MAX_NAME_LEN)
    settings: Optional[SettingsInput] = None

    @field_validator("source_path")
    @classmethod
    def _source_path_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("source_path is required")
        if _has_control_chars(v):
            raise ValueError("source_path cannot contain control characters")
        return v

    @field_validator("document_name", "user")
    @classmethod
    def _no_control_chars(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if _has_control_chars(v):
            raise ValueError("names cannot contain control characters")
        return v


__all__ = ["JobSubmitRequest", "SettingsInput"]
