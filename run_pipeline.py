#!/usr/bin/env python3
"""
Command-line entry point for the job pipeline.

    python run_pipeline.py run [--top-n 5] [--min-score 60] [--source mock]
    python run_pipeline.py process JOB_ID [--force]
    python run_pipeline.py status
    python run_pipeline.py check-rxresume
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobops.config import PROFILE_PATH, ensure_dirs, load_pipeline_config
from jobops.errors import AlreadyRunningError
from jobops.log import get_logger
from jobops.pipeline import build_orchestrator
from jobops.rxresume import RxResumeStore

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if first-run setup is needed."""
    if not PROFILE_PATH.exists():
        print()
        print(f"  No profile found at {PROFILE_PATH}.")
        print("  Copy config/profile.example.yaml and fill it in first.")
        print()
        return True
    return False


def cmd_run(args: argparse.Namespace) -> int:
    overrides = {
        "top_n": args.top_n,
        "min_suitability_score": args.min_score,
        "sources": args.source or None,
    }
    orchestrator = build_orchestrator()
    config = load_pipeline_config(overrides)
    try:
        result = orchestrator.run_pipeline(config)
    except AlreadyRunningError as exc:
        log.error("%s", exc)
        return 2
    log.info("Run %s: %s", result.run_id, "completed" if result.success else "failed")
    log.info("  Jobs discovered: %d", result.jobs_discovered)
    log.info("  Jobs processed:  %d", result.jobs_processed)
    if result.error:
        log.error("  Error: %s", result.error)
    return 0 if result.success else 1


def cmd_process(args: argparse.Namespace) -> int:
    result = build_orchestrator().process_job(args.job_id, force=args.force)
    if result.success:
        log.info("PDF ready → %s", result.pdf_path)
        return 0
    log.error("Processing failed: %s", result.error)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    orchestrator = build_orchestrator()
    status = orchestrator.status()
    last = status["last_run"]
    print(f"Running: {'yes' if status['is_running'] else 'no'}")
    if last:
        print(f"Last run: {last['id']} ({last['status']}) started {last['started_at']}")
        print(f"  discovered={last['jobs_discovered']} processed={last['jobs_processed']}")
        if last.get("error_message"):
            print(f"  error: {last['error_message']}")
    else:
        print("Last run: none")
    for name, count in orchestrator.jobs.stats().items():
        print(f"  {name:<11} {count}")
    return 0


def cmd_check_rxresume(args: argparse.Namespace) -> int:
    check = RxResumeStore().validate_credentials()
    if check.ok:
        print(f"Reactive Resume ({check.mode}): credentials OK")
        return 0
    print(f"Reactive Resume ({check.mode}): {check.message} [status {check.status}]")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover, score and tailor resumes for jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the full pipeline once")
    run.add_argument("--top-n", type=int, default=None, help="Jobs to tailor per run")
    run.add_argument("--min-score", type=float, default=None, help="Minimum suitability score (0-100)")
    run.add_argument("--source", action="append", help="Restrict the crawl to this source (repeatable)")
    run.set_defaults(func=cmd_run)

    process = sub.add_parser("process", help="Tailor and export a single job")
    process.add_argument("job_id")
    process.add_argument("--force", action="store_true", help="Regenerate the tailored summary")
    process.set_defaults(func=cmd_process)

    status = sub.add_parser("status", help="Show the last run and job counts")
    status.set_defaults(func=cmd_status)

    check = sub.add_parser("check-rxresume", help="Verify Reactive Resume credentials")
    check.set_defaults(func=cmd_check_rxresume)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command in ("run", "process") and _check_setup():
        return 1
    ensure_dirs()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
