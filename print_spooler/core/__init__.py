"""
Core utilities for the print spooler.

This package groups the non-Flask pieces used across the app:
- models: pydantic PrintJob / PrintSettings / PaperSize / JobStatus
- store: the file-backed job store (spooler)
- config: paths, JSON load/save, default settings and poll interval
- logging: request/job aware log filter, JSON formatter and root logger config

"""

from .config import (
    default_config_path,
    default_output_path,
    default_settings,
    default_spool_path,
    ensure_dir,
    get_config_path,
    get_output_path,
    get_poll_interval,
    get_spool_path,
    load_config,
    save_config,
    write_json_atomic,
)
from .logging import (
    JsonFormatter,
    SpoolerContextFilter,
    configure_logging,
    job_log_context,
)
from .models import JobStatus, PaperSize, PrintJob, PrintSettings
from .store import SpoolerStore

__all__ = [
    # config
    "default_config_path",
    "default_output_path",
    "default_settings",
    "default_spool_path",
    "ensure_dir",
    "get_config_path",
    "get_output_path",
    "get_poll_interval",
    "get_spool_path",
    "load_config",
    "save_config",
    "write_json_atomic",
    # logging
    "configure_logging",
    "SpoolerContextFilter",
    "job_log_context",
    "JsonFormatter",
    # models
    "JobStatus",
    "PaperSize",
    "PrintJob",
    "PrintSettings",
    # store
    "SpoolerStore",
]
