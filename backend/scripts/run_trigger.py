#!/usr/bin/env python3
"""
Run one trigger driver now and print its report (what the scheduler and POST /triggers/{name} do).
Run: cd backend && python scripts/run_trigger.py news
     cd backend && python scripts/run_trigger.py tasks --dry-run
"""
import argparse
import json
import logging
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from familynotify.db.session import SessionLocal
from familynotify.services.dispatch import LoggingDispatchClient
from familynotify.services.push_tokens import PushTokenRepository
from familynotify.services.triggers.registry import list_triggers
from familynotify.services.triggers.runner import run_trigger


def main():
    parser = argparse.ArgumentParser(description="Run one notification trigger driver once")
    parser.add_argument("name", choices=list_triggers())
    parser.add_argument("--dry-run", action="store_true", help="Log notifications instead of sending pushes")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    db = SessionLocal()
    try:
        overrides = {"dispatcher": LoggingDispatchClient(PushTokenRepository(db))} if args.dry_run else {}
        report = run_trigger(args.name, db, **overrides)
        print(json.dumps(report.to_dict(), indent=2))
    finally:
        db.close()
    sys.exit(1 if report.aborted else 0)


if __name__ == "__main__":
    main()
