"""
Config utilities for the print spooler.

Responsibilities:
- Resolve config/spool/output paths with environment and XDG support
- Provide atomic JSON load/save helpers (also used for job records)
- Derive default print settings and the worker poll interval from config
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from print_spooler.core.models import PaperSize, PrintSettings

DEFAULT_POLL_INTERVAL = 1.0


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except Exception:
        return default


def _xdg_data_home() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".local" / "share"


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/printspooler/config.json
    2) ~/.config/printspooler/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "printspooler" / "config.json")
    return str(Path.home() / ".config" / "printspooler" / "config.json")


def default_spool_path() -> str:
    return str(_xdg_data_home() / "printspooler" / "spool")


def default_output_path() -> str:
    return str(_xdg_data_home() / "printspooler" / "output")


def get_config_path() -> str:
    """
    Return the config path honoring PRINTSPOOLER_CONFIG_PATH override.
    """
    return os.environ.get("PRINTSPOOLER_CONFIG_PATH", default_config_path())


def get_spool_path() -> str:
    """
    Return the spool root honoring PRINTSPOOLER_SPOOL_PATH override.
    """
    return os.environ.get("PRINTSPOOLER_SPOOL_PATH", default_spool_path())


def get_output_path() -> str:
    """
    Return the output root honoring PRINTSPOOLER_OUTPUT_PATH override.
    """
    return os.environ.get("PRINTSPOOLER_OUTPUT_PATH", default_output_path())


def ensure_dir(path: str | Path) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return str(path)


def write_json_atomic(path: str | Path, data: Any) -> None:
    """
    Write JSON (or a pre-serialized JSON string) atomically.

    The payload goes to a sibling .tmp file which is fsynced and then moved over
    the target with os.replace(), so readers see either the old or the new file.
    Raises OSError on I/O failures.
    """
    target = Path(path)
    ensure_dir(target.parent)

    tmp_path = target.with_suffix(target.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        if isinstance(data, str):
            f.write(data)
        else:
            json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, target)


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.
    """
    write_json_atomic(path or get_config_path(), data)


def get_poll_interval(config: Optional[Mapping[str, Any]] = None) -> float:
    """
    Seconds the background worker waits after a step that found no work.

    Config key `poll_interval_seconds` wins over PRINTSPOOLER_POLL_INTERVAL.
    """
    interval = _env_float("PRINTSPOOLER_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)
    if config:
        try:
            interval = float(config.get("poll_interval_seconds", interval))
        except Exception:
            pass
    return interval if interval > 0 else DEFAULT_POLL_INTERVAL


def default_settings(config: Optional[Mapping[str, Any]] = None) -> PrintSettings:
    """
    Build the PrintSettings used when a submission does not carry its own.

    Config keys used (with defaults):
      - default_paper: str (default "A4")
      - default_dpi: int (default 300)
      - default_color: bool (default True)
      - default_duplex: bool (default False)
    """
    base = PrintSettings.a4_default()
    if not config:
        return base
    try:
        paper = PaperSize(str(config.get("default_paper", base.paper.value)).upper())
    except ValueError:
        paper = base.paper
    try:
        dpi = int(config.get("default_dpi", base.dpi))
    except Exception:
        dpi = base.dpi
    return PrintSettings(
        paper=paper,
        dpi=dpi if dpi > 0 else base.dpi,
        is_color=bool(config.get("default_color", base.is_color)),
        is_duplex=bool(config.get("default_duplex", base.is_duplex)),
        scale=base.scale,
        copies=base.copies,
    )


__all__ = [
    "DEFAULT_POLL_INTERVAL",
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
]
