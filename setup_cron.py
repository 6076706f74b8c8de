#!/usr/bin/env python3
"""
Install a cron entry that runs the pipeline daily at DAILY_RUN_HOUR (from .env).
Uses TZ=$JOBOPS_TZ so the run happens at the local hour the user expects.
Run once: python setup_cron.py
"""
from __future__ import annotations

import os
import subprocess
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT / ".env")
hour = int(os.environ.get("DAILY_RUN_HOUR", "6"))
tz = os.environ.get("JOBOPS_TZ", "Europe/London")
venv_python = ROOT / ".venv" / "bin" / "python"
run_script = ROOT / "jobops" / "run_daily.py"
entry = f"0 {hour} * * * TZ={tz} cd {ROOT} && {venv_python} {run_script} --once"


def _write_crontab_file(content: str) -> None:
    path = ROOT / "crontab.txt"
    path.write_text(content + "\n", encoding="utf-8")
    print(f"Wrote {path}")


def _current_crontab() -> str:
    out = subprocess.run(["crontab", "-l"], capture_output=True, text=True, timeout=5)
    return (out.stdout or "").strip() if out.returncode == 0 else ""


def main() -> int:
    if not venv_python.exists():
        print("Error: .venv not found. Run: python -m venv .venv && pip install -e .")
        return 1
    try:
        existing = _current_crontab()
        if entry in existing:
            print("Cron entry already present. No change.")
            return 0
        new_crontab = f"{existing}\n{entry}".strip()
        proc = subprocess.run(
            ["crontab", "-"], input=new_crontab, capture_output=True, text=True, timeout=5,
        )
        if proc.returncode != 0:
            _write_crontab_file(new_crontab)
            print("Could not install crontab automatically. Run manually:")
            print(f"  crontab {ROOT / 'crontab.txt'}")
            return 1
        print(f"Cron installed: daily at {hour}:00 {tz}")
        print(f"  Entry: {entry}")
        return 0
    except subprocess.TimeoutExpired:
        _write_crontab_file(entry)
        print(f"Crontab timed out. To install manually, run:\n  crontab {ROOT / 'crontab.txt'}")
        return 1
    except FileNotFoundError:
        print("crontab not found; add the entry below to your scheduler of choice.")
        _write_crontab_file(entry)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
