#!/usr/bin/env python3
"""
Run one nudge sweep outside the web process and print the summary as JSON.

For schedulers that run commands rather than hit URLs, e.g. an hourly crontab:
  0 * * * * cd /srv/trialrescue && python scripts/run_sweep.py

Never schedule it so that two runs can overlap: the sweep has no lock.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

from app.db.session import session_scope
from app.services import nudge_email
from app.services.nudge_sweep import run_sweep


def main() -> int:
    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL not set. Add it to .env or export it.", file=sys.stderr)
        return 1
    if not nudge_email.email_configured():
        print("ERROR: RESEND_API_KEY not set; nothing would be sent.", file=sys.stderr)
        return 1

    with session_scope() as db:
        summary = run_sweep(db)

    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
