"""
Outbox flush script.

Pushes due status updates to the status webhook. Meant for cron or a
one-off catch-up after the webhook receiver was down:

    python scripts/flush_outbox.py --limit 500
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from courier.app.core.config import settings
from courier.app.core.observability import configure_logging
from courier.app.db.session import AsyncSessionLocal
from courier.app.services.status_outbox import OutboxDispatcher


async def flush(limit: int) -> int:
    async with AsyncSessionLocal() as db:
        report = await OutboxDispatcher().flush(db, limit=limit)

    if report.skipped:
        print("ℹ️  STATUS_WEBHOOK_URL is not set, nothing sent")
        return 0

    print(f"✅ Sent: {report.sent}  🔁 Retrying: {report.retried}  ❌ Failed: {report.failed}")
    for error in report.errors:
        print(f"   - {error}")
    return 1 if report.failed else 0


def main():
    parser = argparse.ArgumentParser(description="Deliver pending status updates")
    parser.add_argument("--limit", type=int, default=settings.outbox_batch_size)
    args = parser.parse_args()

    configure_logging(settings.log_level)
    sys.exit(asyncio.run(flush(args.limit)))


if __name__ == "__main__":
    main()
