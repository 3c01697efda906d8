#!/usr/bin/env python3
"""
Repair derived state that the request path maintains incrementally.

Recomputes every conversation's unread count from its message ledger and
persists the expired status of lapsed medical history requests.

Usage:
    # Report drift without changing anything
    python reconcile.py --dry-run

    # Repair unread counts only
    python reconcile.py --skip-expiry
"""
import sys
import argparse
import logging

from healthydialogue.core.database_utils import get_db_session
from healthydialogue.services.access_requests import expire_stale_requests
from healthydialogue.services.reconciliation import reconcile_unread_counts

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Reconcile unread counts and expire stale history requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report unread drift without repairing it (expiry is skipped)",
    )
    parser.add_argument(
        "--skip-expiry",
        action="store_true",
        help="Do not persist expired history requests",
    )
    args = parser.parse_args()

    with get_db_session() as db:
        drifts = reconcile_unread_counts(db, fix=not args.dry_run)
        if drifts:
            action = "Found" if args.dry_run else "Repaired"
            logger.info(f"{action} unread drift on {len(drifts)} conversations")
        else:
            logger.info("✅ Unread counts match the message ledger")

        if not args.dry_run and not args.skip_expiry:
            expired = expire_stale_requests(db)
            logger.info(f"Expired {expired} history requests")

    # Non-zero exit lets cron/monitoring notice drift
    sys.exit(1 if drifts and args.dry_run else 0)


if __name__ == "__main__":
    main()
