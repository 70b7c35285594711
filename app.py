"""
Run the print spooler locally: job store + background worker + operator JSON API.

    PRINTSPOOLER_HOST (default 127.0.0.1)
    PRINTSPOOLER_PORT (default 5000)
"""

import logging
import os

from print_spooler import create_app
from print_spooler.printing.worker import stop_worker

logger = logging.getLogger("print_spooler.app")


def log_job_summary(store) -> None:
    jobs = store.list_jobs()
    if not jobs:
        logger.info("Job queue is empty.")
        return
    logger.info("Current jobs (%d total):", len(jobs))
    for job in jobs:
        logger.info(
            "  - %s  %-10s  %s  errors=%d",
            job.id[:8],
            job.status.value,
            job.document_name,
            len(job.error_log),
        )


if __name__ == "__main__":
    app = create_app()
    log_job_summary(app.extensions["print_spooler"]["store"])

    host = os.environ.get("PRINTSPOOLER_HOST", "127.0.0.1")
    port = int(os.environ.get("PRINTSPOOLER_PORT", "5000"))
    app.logger.info("Starting print spooler on http://%s:%d", host, port)
    app.logger.info("Press Ctrl+C to stop the server")
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        stop_worker()
