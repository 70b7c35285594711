from __future__ import annotations

"""
JSON API (v1) for the print spooler.

This is a local, single-operator adapter over the job store's mutation surface.

Endpoints:
- GET    /api/v1/jobs                : List jobs (submission order)
- POST   /api/v1/jobs                : Spool a local document. Returns 202 + Location
- GET    /api/v1/jobs/<job_id>       : Job detail including rendered page count
- POST   /api/v1/jobs/<job_id>/cancel  : QUEUED/PRINTING -> CANCELLED
- POST   /api/v1/jobs/<job_id>/retry   : FAILED -> QUEUED (clears error log)
- POST   /api/v1/jobs/<job_id>/confirm : PREVIEWING -> PRINTING
- DELETE /api/v1/jobs/<job_id>       : Remove a finished job and its files (?force=true for any state)
"""

import getpass
import uuid
from pathlib import Path
from typing import Any, Callable, Dict

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import ValidationError

from print_spooler.core.config import default_settings
from print_spooler.core.models import PrintJob
from print_spooler.core.store import SpoolerStore
from print_spooler.printing.assembler import VirtualPrinter
from print_spooler.printing.source import SOURCE_TYPES

from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _services() -> Dict[str, Any]:
    return current_app.extensions["print_spooler"]


def _store() -> SpoolerStore:
    return _services()["store"]


def _printer() -> VirtualPrinter:
    return _services()["printer"]


def _job_payload(job: PrintJob, *, detail: bool = False) -> Dict[str, Any]:
    body = job.to_dict()
    body["links"] = {"self": url_for("api.get_job", job_id=job.id)}
    if detail:
        printer = _printer()
        body["pages_rendered"] = len(printer.rendered_pages(job.id))
        pdf = printer.output_path(job.id)
        body["output_path"] = str(pdf) if pdf.exists() else None
    return body


@api_bp.get("/jobs")
def list_jobs():
    jobs = _store().list_jobs()
    current_app.logger.info("GET /api/v1/jobs count=%d", len(jobs))
    return jsonify({"jobs": [_job_payload(j) for j in jobs]})


@api_bp.post("/jobs")
def submit_job():
    """
    Validate a submission, copy the source into the spool and queue the job.
    Returns 202 Accepted with a Location header to the job resource.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)

    data = request.get_json(silent=True) or {}
    try:
        req = schemas.JobSubmitRequest.model_validate(data)
    except ValidationError as e:
        try:
            msg = e.errors()[0].get("msg") or str(e)
        except Exception:
            msg = str(e)
        return _json_error(msg, 400)

    src = Path(req.source_path).expanduser()
    if not src.is_file():
        return _json_error(f"source file not found: {req.source_path}", 400)
    if src.suffix.lower() not in SOURCE_TYPES:
        return _json_error(f"unsupported document type: {src.suffix or '(none)'}", 400)

    defaults = default_settings(_services().get("config"))
    settings = req.settings.merged_with(defaults) if req.settings else defaults

    store = _store()
    job_id = str(uuid.uuid4())
    try:
        spooled = store.spool_source(src, job_id)
    except OSError as e:
        current_app.logger.exception("Failed to spool %s", src)
        return _json_error(f"could not spool source: {e}", 500)

    job = PrintJob.create(
        document_name=req.document_name or src.name,
        user=req.user or _current_user(),
        settings=settings,
        source_paths=[spooled],
        job_id=job_id,
    )
    try:
        store.submit(job)
    except OSError as e:
        current_app.logger.exception("Failed to persist job %s", job.id)
        return _json_error(f"could not persist job: {e}", 500)

    current_app.logger.info("POST /api/v1/jobs queued id=%s document=%s", job.id, job.document_name)
    resp = jsonify(_job_payload(job))
    resp.status_code = 202
    resp.headers["Location"] = url_for("api.get_job", job_id=job.id)
    return resp


@api_bp.get("/jobs/<job_id>")
def get_job(job_id: str):
    job = _store().get(job_id)
    if job is None:
        return _json_error("not_found", 404)
    return jsonify(_job_payload(job, detail=True))


def _apply(job_id: str, action: Callable[[str], bool], name: str):
    store = _store()
    job = store.get(job_id)
    if job is None:
        return _json_error("not_found", 404)
    if not action(job_id):
        current_app.logger.info("%s ignored for job %s in status %s", name, job_id, job.status.value)
        return _json_error(f"cannot {name} a job in status {job.status.value}", 409)
    return jsonify(_job_payload(store.get(job_id) or job, detail=True))


@api_bp.post("/jobs/<job_id>/cancel")
def cancel_job(job_id: str):
    return _apply(job_id, _store().cancel, "cancel")


@api_bp.post("/jobs/<job_id>/retry")
def retry_job(job_id: str):
    return _apply(job_id, _store().retry, "retry")


@api_bp.post("/jobs/<job_id>/confirm")
def confirm_job(job_id: str):
    return _apply(job_id, _store().confirm_print, "confirm")


@api_bp.delete("/jobs/<job_id>")
def remove_job(job_id: str):
    store = _store()
    job = store.get(job_id)
    if job is None:
        return _json_error("not_found", 404)
    force = request.args.get("force", "false").lower() in ("1", "true", "yes")
    if not job.status.is_terminal and not force:
        return _json_error(f"job is {job.status.value}; pass force=true to remove it anyway", 409)

    store.remove(job_id)
    try:
        _printer().discard(job_id)
    except OSError:
        current_app.logger.exception("Failed to remove output artifacts for job %s", job_id)
    current_app.logger.info("DELETE /api/v1/jobs/%s removed (status was %s)", job_id, job.status.value)
    return "", 204


def _current_user() -> str:
    try:
        return getpass.getuser()
    except Exception:
        return "unknown"


__all__ = ["api_bp"]
