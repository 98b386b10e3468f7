"""
Verify or unsubscribe a subscription by token

Usage:
    python scripts/verify_subscription.py --token <token>
    python scripts/verify_subscription.py --token <token> --unsubscribe
"""

import argparse
import sys
from pathlib import Path

# add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

import logging
logging.basicConfig(level=logging.INFO, format="%(message)s")

from statuspulse.config import settings
from statuspulse.database import init_db
from statuspulse.subscription import SubscriptionError, SubscriptionManager


def main():
    parser = argparse.ArgumentParser(description="StatusPulse verify subscription")
    parser.add_argument("--token", help="Subscription token")
    parser.add_argument("--domain", help="Page slug or custom domain the link was opened on")
    parser.add_argument("--unsubscribe", action="store_true", help="Unsubscribe instead of verifying")

    args = parser.parse_args()

    token = args.token or input("\nSubscription token: ").strip()
    if not token:
        print("\nError: a token is required.")
        return

    init_db(settings.database_url)
    manager = SubscriptionManager()

    try:
        if args.unsubscribe:
            manager.unsubscribe(token, args.domain)
            print("\n  ✓ Unsubscribed.")
            return

        subscription = manager.verify(token, args.domain)
    except SubscriptionError as e:
        print(f"\n  ✗ {e}")
        sys.exit(1)

    if subscription is None:
        print("\n  ✗ Subscription not found or token invalid.")
        sys.exit(1)

    scope = ", ".join(str(c) for c in subscription.component_ids) or "entire page"
    print(f"\n  ✓ Subscription to {subscription.page_name} verified ({scope}).")


if __name__ == "__main__":
    main()
