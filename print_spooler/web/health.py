from __future__ import annotations

"""
Health endpoint for the print spooler.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Background worker status (via print_spooler.printing.worker.worker_status)
- Job counts by status
- Whether the spool and output roots are writable
- Whether a scalable (TrueType) font resolves for page rendering
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Blueprint, current_app
from PIL import ImageFont

from print_spooler.printing.render import resolve_font
from print_spooler.printing.worker import worker_status

health_bp = Blueprint("health", __name__)


def _check_writable(path: Path) -> tuple[bool, Optional[str]]:
    """
    Returns:
        (ok, reason)
        ok: True if the directory exists and is writable.
        reason: A short code string describing the failure, or None on success.
    """
    if not path.is_dir():
        return False, "missing"
    if not os.access(path, os.W_OK):
        return False, "not_writable"
    return True, None


@health_bp.get("/healthz")
def healthz():
    services = current_app.extensions["print_spooler"]
    status: Dict[str, Any] = {"status": "ok"}
    status.update(worker_status())
    status["jobs"] = services["store"].count_by_status()

    for key, path in (("spool", services["store"].spool_directory), ("output", services["printer"].output_directory)):
        ok, reason = _check_writable(Path(path))
        status[f"{key}_ok"] = ok
        if not ok and status["status"] == "ok":
            status["status"] = "degraded"
            status["reason"] = f"{key}_{reason}"

    try:
        font = resolve_font(services.get("config"), 12)
        status["font_ok"] = isinstance(font, ImageFont.FreeTypeFont)
    except Exception:
        status["font_ok"] = False
    if not status["font_ok"] and status["status"] == "ok":
        status["status"] = "degraded"
        status["reason"] = "font_unavailable"

    return status, 200
