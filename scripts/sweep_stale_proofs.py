"""Delete unlinked proofs that are too old to ever be claimed.

Usage:
    DATABASE_URL=... uv run python scripts/sweep_stale_proofs.py [days]

Receipts nobody reported a sale for pile up as unlinked rows; once they are
weeks old they are noise (resent screenshots, stray documents).
Default: 30 days. Run periodically (cron / Cloud Scheduler).
"""

from __future__ import annotations

import os
import sys
from datetime import timedelta

DEFAULT_DAYS = 30


def main() -> None:
    days = DEFAULT_DAYS
    if len(sys.argv) > 1:
        try:
            days = int(sys.argv[1])
        except ValueError:
            print("Usage: uv run python scripts/sweep_stale_proofs.py [days]")
            sys.exit(2)
        if days < 1:
            print("ERROR: days must be >= 1")
            sys.exit(2)

    if not os.environ.get("DATABASE_URL"):
        print("ERROR: DATABASE_URL not set")
        sys.exit(1)

    # Import after env validation so missing DB doesn't blow up on import
    from salestracker.infra.db import txn
    from salestracker.infra.repositories.proofs_repository import (
        delete_stale_unlinked_proofs,
    )
    from salestracker.infra.time import utc_now

    cutoff = utc_now() - timedelta(days=days)
    with txn() as cur:
        deleted = delete_stale_unlinked_proofs(cur, older_than=cutoff)

    print(f"Deleted {deleted} unlinked proofs received before {cutoff.isoformat()}")


if __name__ == "__main__":
    main()
