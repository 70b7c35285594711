#!/usr/bin/env python3
"""
Drive the spooler end to end without the web API.

Submits one job that should print and one whose source is missing, renders
everything queued, confirms the previews, finalizes, and prints a summary.

    python scripts/simulate_spool.py [--workdir ./sim]
"""

import argparse
import logging
from pathlib import Path

from print_spooler import build_services
from print_spooler.core.logging import configure_logging
from print_spooler.core.models import JobStatus, PaperSize, PrintJob, PrintSettings

logger = logging.getLogger("print_spooler.simulate")


def _summary(store) -> None:
    for job in store.list_jobs():
        print(f"  - {job.id[:8]}  {job.status.value:<10}  {job.document_name}  errors={len(job.error_log)}")
        for entry in job.error_log:
            print(f"      {entry}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--workdir", default="./spool-sim", help="Directory for spool/ and output/")
    parser.add_argument("--dpi", type=int, default=150)
    args = parser.parse_args()

    configure_logging()
    workdir = Path(args.workdir)
    services = build_services(spool_path=str(workdir / "spool"), output_path=str(workdir / "output"))
    store, worker = services["store"], services["worker"]
    services["printer"].set_page_listener(
        lambda job, image, page: print(f"    page {page} of {job.document_name} ready ({image.width}x{image.height})")
    )

    if not any(j.status == JobStatus.QUEUED for j in store.list_jobs()):
        sample = workdir / "successful_job.txt"
        sample.parent.mkdir(parents=True, exist_ok=True)
        sample.write_text("This is a test document that should print successfully.\n", encoding="utf-8")
        settings = PrintSettings(paper=PaperSize.A4, dpi=args.dpi)
        store.submit(PrintJob.create("Successful Doc", "system", settings, [str(sample.resolve())]))
        missing = (workdir / "non_existent_file.txt").resolve()
        store.submit(PrintJob.create("Failing Doc", "system", settings, [str(missing)]))

    print("Rendering queued jobs...")
    worker.run_until_idle()
    for job in store.list_jobs():
        store.confirm_print(job.id)
    print("Finalizing confirmed jobs...")
    worker.run_until_idle()

    print("Final state:")
    _summary(store)
    print(f"Outputs are under {services['printer'].output_directory.resolve()}")


if __name__ == "__main__":
    main()
