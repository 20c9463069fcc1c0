#!/usr/bin/env python3
"""
Admin utilities for managing the DollarPrompt app.

Commands:
    python scripts/admin.py stats              - Show database stats
    python scripts/admin.py users              - List recent users
    python scripts/admin.py prompts            - List latest prompts
    python scripts/admin.py set-cost N         - Change the credits needed to unlock a prompt
    python scripts/admin.py make-admin USER_ID - Give a user the admin role
    python scripts/admin.py analytics          - Ad views and estimated earnings
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from dollarprompt.core import GatewayError, configure_logging, get_settings
from dollarprompt.db import execute, first_row, get_admin_client
from dollarprompt.lib import AdminService


async def count(client, table: str) -> int:
    result = await execute(client.table(table).select("id", count="exact").limit(1))
    return result.count or 0


async def cmd_stats(client, args):
    """Show database statistics."""
    print("\n📊 Database Statistics")
    print("=" * 40)

    print(f"Users: {await count(client, 'profiles')}")
    print(f"Prompts: {await count(client, 'prompts')}")
    print(f"Unlocks: {await count(client, 'unlocked_prompts')}")
    print(f"Ad claims: {await count(client, 'daily_ad_claims')}")
    print(f"Link claims: {await count(client, 'daily_link_claims')}")
    print(f"Coupon claims: {await count(client, 'user_coupon_claims')}")

    cost = await first_row(
        client.table("app_config").select("config_value").eq("config_key", "prompt_cost")
    )
    print(f"Prompt cost: {cost['config_value'] if cost else '(default)'}")


async def cmd_users(client, args):
    """List recent users."""
    print("\n👤 Recent Users")
    print("=" * 60)

    result = await execute(
        client.table("profiles")
        .select("id, email, credits, role, created_at")
        .order("created_at", desc=True)
        .limit(20)
    )

    for user in result.data or []:
        role = user.get("role") or "user"
        email = (user.get("email") or "")[:30]
        created = (user.get("created_at") or "")[:10]
        print(f"  [{role:5}] {email:30} {user.get('credits', 0):5} credits ({created})")


async def cmd_prompts(client, args):
    """List the latest prompts."""
    print("\n📝 Latest Prompts")
    print("=" * 60)

    prompts = await AdminService(client).list_prompts()
    for prompt in prompts[: args.limit]:
        category = (prompt.categories or {}).get("name", "-")
        print(f"  {prompt.display_number or '-----'}  {prompt.title[:35]:35} {category:12} ♥{prompt.like_count}")


async def cmd_set_cost(client, args):
    """Change the unlock price for every prompt."""
    if args.cost <= 0:
        print("✗ Cost must be a positive number")
        return

    await execute(
        client.table("app_config").upsert(
            {"config_key": "prompt_cost", "config_value": str(args.cost)},
            on_conflict="config_key",
        )
    )
    print(f"✓ Prompt cost set to {args.cost}")


async def cmd_make_admin(client, args):
    result = await execute(
        client.table("profiles").update({"role": "admin"}).eq("id", args.user_id)
    )

    if result.data:
        print(f"✓ User {args.user_id} is now an admin")
    else:
        print(f"✗ User {args.user_id} not found")


async def cmd_analytics(client, args):
    """Ad views and estimated earnings."""
    analytics = await AdminService(client).ad_analytics()
    print("\n💰 Ad Analytics")
    print("=" * 40)
    print(f"Completed views: {analytics.total_views}")
    print(f"Estimated earnings: ${analytics.estimated_earnings:.2f}")


async def run(command, args):
    client = await get_admin_client()
    await command(client, args)


def main():
    parser = argparse.ArgumentParser(description="Admin utilities")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Stats command
    subparsers.add_parser("stats", help="Show database statistics")

    # Users command
    subparsers.add_parser("users", help="List recent users")

    # Prompts command
    prompts_parser = subparsers.add_parser("prompts", help="List latest prompts")
    prompts_parser.add_argument("--limit", type=int, default=20, help="How many to show")

    # Cost command
    cost_parser = subparsers.add_parser("set-cost", help="Set the prompt unlock cost")
    cost_parser.add_argument("cost", type=int, help="Credits per unlock")

    # Admin role command
    admin_parser = subparsers.add_parser("make-admin", help="Give a user the admin role")
    admin_parser.add_argument("user_id", help="Profile ID")

    # Analytics command
    subparsers.add_parser("analytics", help="Ad views and estimated earnings")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    configure_logging(get_settings().log_level)

    commands = {
        "stats": cmd_stats,
        "users": cmd_users,
        "prompts": cmd_prompts,
        "set-cost": cmd_set_cost,
        "make-admin": cmd_make_admin,
        "analytics": cmd_analytics,
    }

    try:
        asyncio.run(run(commands[args.command], args))
    except GatewayError as e:
        print(f"✗ {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
