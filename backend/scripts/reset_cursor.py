#!/usr/bin/env python3
"""
Reset a user's notification cursor so the next run re-evaluates that feed from scratch.
Without --feed-key every cursor and reminder mark of the user is cleared.
Run: cd backend && python scripts/reset_cursor.py alice --feed-key motorsport:news
"""
import argparse
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from familynotify.db.session import SessionLocal
from familynotify.services.admin_service import reset_cursor


def main():
    parser = argparse.ArgumentParser(description="Reset a user's notification cursor(s)")
    parser.add_argument("user_id")
    parser.add_argument("--feed-key", default=None, help="e.g. motorsport:news, motorsport:leader")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        result = reset_cursor(db, args.user_id, args.feed_key)
        print(f"Done. Deleted {result['deleted']} cursor row(s) for {args.user_id} ({args.feed_key or 'all feeds'}).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
