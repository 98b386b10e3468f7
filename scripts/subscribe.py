"""
Subscribe an email address to a status page

Usage:
    python scripts/subscribe.py --email user@example.com --page-id 1
    python scripts/subscribe.py --email user@example.com --page-id 1 --components "3,4"
"""

import argparse
import asyncio
import sys
from pathlib import Path

# add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

import logging
logging.basicConfig(level=logging.INFO, format="%(message)s")

from statuspulse.channels import build_default_registry
from statuspulse.config import settings
from statuspulse.database import init_db
from statuspulse.subscription import (
    SubscriptionError,
    SubscriptionManager,
    send_subscription_verification,
)


def main():
    parser = argparse.ArgumentParser(description="StatusPulse subscribe")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--page-id", type=int, required=True, help="Status page id")
    parser.add_argument("--components", help="Component ids, comma separated (default: entire page)")
    parser.add_argument("--no-email", action="store_true", help="Do not send the verification email")

    args = parser.parse_args()

    component_ids = []
    if args.components:
        component_ids = [int(c) for c in args.components.split(",") if c.strip()]

    init_db(settings.database_url)
    manager = SubscriptionManager()

    print("\n" + "=" * 50)
    print("StatusPulse subscribe")
    print("=" * 50)

    if manager.has_pending_unexpired_subscription(args.email, args.page_id):
        print("\nA confirmation link was already sent and is still valid.")
        return

    try:
        subscription = manager.upsert_email_subscription(args.email, args.page_id, component_ids)
    except SubscriptionError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    if subscription.accepted_at is not None:
        print(f"\n{subscription.email} is already subscribed to {subscription.page_name}.")
        return

    scope = ", ".join(str(c) for c in subscription.component_ids) or "entire page"
    print(f"\n  - email: {subscription.email}")
    print(f"  - page: {subscription.page_name}")
    print(f"  - scope: {scope}")
    print(f"  - token: {subscription.token}")

    if args.no_email:
        return

    try:
        link = asyncio.run(send_subscription_verification(
            subscription.id, subscription.token, build_default_registry()
        ))
        print(f"\n  Verification email sent ({link})")
    except SubscriptionError as e:
        print(f"\n  Verification email not sent: {e}")
        print("  Verify manually with: python scripts/verify_subscription.py --token " + subscription.token)

    print("\n" + "=" * 50)


if __name__ == "__main__":
    main()
