"""
Dev bootstrap script: an account, an account key and a DRAFT project.

Usage (from backend/):
    python -m scripts.bootstrap_dev [email]

Runs the same path as a completed checkout, so the project starts with
the configured initial token grant. The raw key is printed once and is
never stored.
"""

import asyncio
import sys
import uuid
from decimal import Decimal

from pagesmith.core.database import engine, session_scope
from pagesmith.services.subscriptions import complete_checkout


async def main(email: str) -> None:
    async with session_scope() as session:
        result = await complete_checkout(
            session,
            email=email,
            customer_name="Dev",
            plan_name="Dev",
            subscription_id=f"dev_{uuid.uuid4().hex[:12]}",
            project_name="Dev Project",
            amount=Decimal("0.00"),
            external_reference=f"dev_{uuid.uuid4().hex}",
        )

    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  Account ID: {result.account_id}")
    print(f"  Project ID: {result.project_id}")
    print(f"  Tokens:     {result.token_balance}")
    print()
    if result.api_key:
        print(f"  API Key:    {result.api_key}")
        print()
        print("  ⚠  Copy this key now — it will NEVER be shown again.")
    else:
        print(f"  {email} already had an account; its existing key still applies.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "dev@pagesmith.local"))
