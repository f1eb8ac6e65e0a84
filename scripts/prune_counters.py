"""Delete rate-limit counters whose window ended long ago.

The notify service never removes counters; run this periodically to bound the
`rate_limit_counters` table.
"""

import argparse
import time

from avahanaa.common.config import settings
from avahanaa.common.db import create_session_factory
from avahanaa.services.notify.rate_limit import SqlCounterStore


def main() -> None:
    """CLI entrypoint for counter pruning."""

    parser = argparse.ArgumentParser(description="Prune expired rate-limit counters.")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--window-seconds", type=int, default=settings.rate_limit_window_seconds)
    args = parser.parse_args()

    store = SqlCounterStore(create_session_factory(args.database_url))
    deleted = store.prune(args.window_seconds * 1000, int(time.time() * 1000))
    print(f"deleted_counters={deleted}")


if __name__ == "__main__":
    main()
