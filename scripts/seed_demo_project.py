#!/usr/bin/env python3
"""
Seed a demo project whose users sit at different points of inactivity, so a
sweep against it exercises every nudge tier.

Creates a billing-active project with default trial settings and five users:
active today, 2, 5 and 9 days idle, and one already upgraded. Prints the
project id and API key.

Run from project root with DATABASE_URL set:
  python scripts/seed_demo_project.py --owner-email you@example.com
  python scripts/seed_demo_project.py --remove <project_id>
"""

from __future__ import annotations

import argparse
import os
import sys
from datetime import timedelta
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

from app.core.trial_defaults import BILLING_ACTIVE, EARLY_BIRD_PLAN
from app.db.session import session_scope
from app.models import Project, ProjectUser
from app.services.projects import create_project
from app.utils.dates import utcnow

DEMO_USERS = [
    # (external id, days idle, upgraded)
    ("demo_active", 0, False),
    ("demo_idle_2", 2, False),
    ("demo_idle_5", 5, False),
    ("demo_idle_9", 9, False),
    ("demo_upgraded", 9, True),
]


def seed(owner_email: str) -> None:
    with session_scope() as db:
        project, _ = create_project(db, name="Demo SaaS", owner_email=owner_email)
        project.billing_status = BILLING_ACTIVE
        project.billing_plan = EARLY_BIRD_PLAN
        project.billing_updated_at = utcnow()

        now = utcnow()
        for external_id, idle_days, upgraded in DEMO_USERS:
            last_seen = now - timedelta(days=idle_days)
            db.add(ProjectUser(
                project_id=project.id,
                external_user_id=external_id,
                email=f"{external_id}@example.com",
                trial_started_at=last_seen,
                last_activity_at=last_seen,
                upgraded_at=now if upgraded else None,
                unsubscribed=False,
            ))
        db.commit()
        print(f"project_id={project.id}")
        print(f"api_key={project.api_key}")


def remove(project_id: str) -> None:
    with session_scope() as db:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            print(f"No project {project_id}")
            return
        db.delete(project)
        db.commit()
        print(f"Removed project {project_id}")


def main() -> None:
    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL not set. Add it to .env or export it.")
        sys.exit(1)

    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--owner-email", default="demo@example.com")
    parser.add_argument("--remove", metavar="PROJECT_ID")
    args = parser.parse_args()

    if args.remove:
        remove(args.remove)
    else:
        seed(args.owner_email)


if __name__ == "__main__":
    main()
