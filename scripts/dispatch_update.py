"""
Notify subscribers of a status report update or maintenance

Usage:
    python scripts/dispatch_update.py --update-id 42
    python scripts/dispatch_update.py --maintenance-id 7
"""

import argparse
import asyncio
import sys
from pathlib import Path

# add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from statuspulse.channels import build_default_registry
from statuspulse.config import settings
from statuspulse.database import init_db
from statuspulse.dispatcher import NotificationDispatcher
from statuspulse.main import setup_logging


async def run(update_id: int = None, maintenance_id: int = None):
    dispatcher = NotificationDispatcher(build_default_registry())

    if update_id is not None:
        await dispatcher.dispatch_status_report_update(update_id)
    if maintenance_id is not None:
        await dispatcher.dispatch_maintenance_update(maintenance_id)


def main():
    parser = argparse.ArgumentParser(description="StatusPulse notification dispatch")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--update-id", type=int, help="Status report update id")
    group.add_argument("--maintenance-id", type=int, help="Maintenance id")

    args = parser.parse_args()

    setup_logging()
    init_db(settings.database_url)

    print("\n" + "=" * 50)
    print("StatusPulse notification dispatch")
    print("=" * 50 + "\n")

    asyncio.run(run(args.update_id, args.maintenance_id))

    print("\nDispatch finished (see logs/statuspulse.log for delivery results)")


if __name__ == "__main__":
    main()
