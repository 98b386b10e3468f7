"""
StatusPulse entry point

    python -m statuspulse.main serve
    python -m statuspulse.main dispatch-update 42
    python -m statuspulse.main dispatch-maintenance 7
"""

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from .channels.registry import build_default_registry
from .config import settings
from .database import init_db
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def setup_logging(level: str = None) -> None:
    """Configure root logging once for the process"""
    log_dir = settings.BASE_DIR / "logs"
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_dir / "statuspulse.log", encoding="utf-8"),
        ],
    )


async def _dispatch(kind: str, event_id: int) -> None:
    dispatcher = NotificationDispatcher(build_default_registry())
    if kind == "dispatch-update":
        await dispatcher.dispatch_status_report_update(event_id)
    else:
        await dispatcher.dispatch_maintenance_update(event_id)


def main():
    parser = argparse.ArgumentParser(description="StatusPulse - status page subscriptions")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web application")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    update = subparsers.add_parser("dispatch-update", help="Notify subscribers of a status report update")
    update.add_argument("event_id", type=int)

    maintenance = subparsers.add_parser("dispatch-maintenance", help="Notify subscribers of a maintenance")
    maintenance.add_argument("event_id", type=int)

    args = parser.parse_args()

    load_dotenv()
    setup_logging()

    if args.command == "serve":
        from .web.app import run_server
        run_server(args.host, args.port)
        return

    init_db(settings.database_url)
    logger.info(f"{args.command} {args.event_id}")
    asyncio.run(_dispatch(args.command, args.event_id))


if __name__ == "__main__":
    main()
