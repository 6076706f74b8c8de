"""
Run the pipeline once a day at DAILY_RUN_HOUR (local time of JOBOPS_TZ).

Usage:
  - Cron (recommended): install with: python setup_cron.py
      Then: 0 6 * * * TZ=Europe/London cd /path/to/project && .venv/bin/python jobops/run_daily.py --once
  - Or run this script in background: python jobops/run_daily.py
"""
from __future__ import annotations

import os
import sys
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

_script_dir = os.path.dirname(os.path.abspath(__file__))
_project_root = os.path.dirname(_script_dir)
sys.path.insert(0, _project_root)

from dotenv import load_dotenv

load_dotenv(os.path.join(_project_root, ".env"))

from jobops.errors import AlreadyRunningError
from jobops.log import get_logger
from jobops.pipeline import PipelineResult, build_orchestrator

log = get_logger(__name__)

TZ = ZoneInfo(os.environ.get("JOBOPS_TZ", "Europe/London"))
TARGET_HOUR = int(os.environ.get("DAILY_RUN_HOUR", "6"))
TARGET_MINUTE = 0


def run_once() -> PipelineResult | None:
    orchestrator = build_orchestrator()
    try:
        result = orchestrator.run_pipeline()
    except AlreadyRunningError as exc:
        log.warning("Skipping scheduled run: %s", exc)
        return None
    if result.success:
        log.info(
            "Summary: discovered %d | processed %d (run %s)",
            result.jobs_discovered, result.jobs_processed, result.run_id,
        )
    else:
        log.error("Run %s failed: %s", result.run_id, result.error)
    return result


def next_run() -> datetime:
    now = datetime.now(TZ)
    target = now.replace(hour=TARGET_HOUR, minute=TARGET_MINUTE, second=0, microsecond=0)
    if now >= target:
        target = target + timedelta(days=1)
    return target


def main() -> None:
    log.info("Scheduler: run daily at %d:%02d %s", TARGET_HOUR, TARGET_MINUTE, TZ.key)
    while True:
        target = next_run()
        wait_secs = (target - datetime.now(TZ)).total_seconds()
        if wait_secs < 0:
            wait_secs = 86400 + wait_secs
        log.info("Next run at %s (in %.1f hours)", target, wait_secs / 3600)
        time.sleep(min(wait_secs, 86400))
        now = datetime.now(TZ)
        if now.hour == TARGET_HOUR and now.minute < 30:
            log.info("Running pipeline...")
            run_once()
            log.info("Done. Next run tomorrow.")


if __name__ == "__main__":
    if "--once" in sys.argv:
        result = run_once()
        sys.exit(0 if result is None or result.success else 1)
    main()
