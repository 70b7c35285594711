"""
Print spooler package

This module provides an application factory with minimal wiring:
- Configures logging (print_spooler.core.logging)
- Builds the job store, page renderer, virtual printer and worker from config
- Creates a Flask app exposing the local operator JSON API and health endpoint
- Optionally starts the background worker thread
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any, Optional

from flask import Flask, g

from print_spooler.core.config import (
    get_output_path,
    get_poll_interval,
    get_spool_path,
    load_config,
)
from print_spooler.core.logging import configure_logging
from print_spooler.core.store import SpoolerStore
from print_spooler.printing.assembler import PageListener, VirtualPrinter
from print_spooler.printing.render import SimpleTextRenderer
from print_spooler.printing.worker import SpoolerWorker, ensure_worker


def _set_request_id() -> None:
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def build_services(
    config: Optional[dict[str, Any]] = None,
    spool_path: Optional[str] = None,
    output_path: Optional[str] = None,
    page_listener: Optional[PageListener] = None,
) -> dict[str, Any]:
    """
    Wire store -> renderer -> printer -> worker. Used by create_app() and scripts.

    Path precedence: explicit argument, then config["spool_path"/"output_path"],
    then PRINTSPOOLER_SPOOL_PATH / PRINTSPOOLER_OUTPUT_PATH, then XDG defaults.
    """
    cfg = dict(config or {})
    store = SpoolerStore(spool_path or cfg.get("spool_path") or get_spool_path())
    printer = VirtualPrinter(output_path or cfg.get("output_path") or get_output_path(), listener=page_listener)
    renderer = SimpleTextRenderer(cfg)
    worker = SpoolerWorker(store, renderer, printer)
    return {
        "config": cfg,
        "store": store,
        "renderer": renderer,
        "printer": printer,
        "worker": worker,
        "poll_interval": get_poll_interval(cfg),
    }


def create_app(
    config_overrides: Optional[dict] = None,
    spool_path: Optional[str] = None,
    output_path: Optional[str] = None,
    register_worker: bool = True,
    blueprints: Optional[Sequence[Any]] = None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values merged over the saved JSON config (also applied to app.config)
    - spool_path / output_path: override the spool and output roots
    - register_worker: if True, starts the background worker thread
    - blueprints: optional list of blueprints to register instead of the defaults

    Returns:
    - Flask app instance, with the wired services on app.extensions["print_spooler"]
    """
    configure_logging()

    cfg: dict[str, Any] = dict(load_config() or {})
    if config_overrides:
        cfg.update(config_overrides)

    app = Flask("print_spooler")
    app.url_map.strict_slashes = False
    app.json.sort_keys = False

    services = build_services(cfg, spool_path=spool_path, output_path=output_path)
    app.extensions["print_spooler"] = services
    app.logger.info(
        "Print spooler app created (spool=%s, output=%s)",
        services["store"].spool_directory,
        services["printer"].output_directory,
    )

    @app.before_request
    def _before_request():
        _set_request_id()

    from print_spooler.web import api_bp, health_bp

    for bp in blueprints or (api_bp, health_bp):
        app.register_blueprint(bp)

    if register_worker:
        ensure_worker(services["worker"], services["poll_interval"])
        app.logger.info("Background worker ensured")

    if config_overrides:
        app.config.update(config_overrides)

    return app


__all__ = ["build_services", "create_app"]
