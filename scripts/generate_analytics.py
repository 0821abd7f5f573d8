from __future__ import annotations

import argparse
from datetime import date

from rapport.core.config import get_settings
from rapport.core.errors import AnalyticsStoreError
from rapport.core.logging import configure_logging
from rapport.db.pg.base import Base
from rapport.db.pg.queries import count_snapshots, list_user_ids_with_contacts
from rapport.db.pg.session import SessionLocal, engine
from rapport.services.analytics.daily import backfill_user_analytics


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Backfill daily analytics snapshots for every user with contacts.")
    parser.add_argument("--days", type=int, default=settings.analytics_backfill_days, help="Number of days to generate.")
    parser.add_argument("--end-day", type=date.fromisoformat, default=None, help="Last day to generate (YYYY-MM-DD).")
    parser.add_argument("--user-id", action="append", default=None, help="Limit to a user. Repeatable.")
    args = parser.parse_args()

    configure_logging()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user_ids = args.user_id or list_user_ids_with_contacts(db)
        if not user_ids:
            print("No users with contacts found")
            return

        for user_id in user_ids:
            try:
                backfill_user_analytics(db, user_id, days=args.days, end_day=args.end_day)
            except AnalyticsStoreError as exc:
                print({"user_id": user_id, "error": str(exc)})
                continue
            print({"user_id": user_id, "snapshots": count_snapshots(db, user_id)})
    finally:
        db.close()


if __name__ == "__main__":
    main()
