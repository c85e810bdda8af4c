#!/usr/bin/env python3
"""
Token and account maintenance utility.

This script runs one-off maintenance against the configured storage backend:
- Remove expired session tokens
- Seed the default user accounts into an empty user store
- Show record counts
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.auth import AuthService, initialize_default_users
from api.config import config as api_config
from storage import create_stores
from utilities.config import config
from utilities.logger import setup_logging


async def cleanup_expired_tokens():
    """Remove every expired token once."""
    print("\n🧹 CLEANING UP EXPIRED TOKENS")
    print("=" * 60)

    stores = create_stores(config)
    try:
        await stores.connect()
        auth_service = AuthService(
            users=stores.users,
            tokens=stores.tokens,
            token_ttl=timedelta(hours=api_config.token_expire_hours),
        )
        removed = await auth_service.cleanup_expired_tokens()
        print(f"✅ Removed {removed} expired tokens")
    except Exception as e:
        print(f"❌ Error cleaning up tokens: {e}")
        sys.exit(1)
    finally:
        await stores.close()


async def seed_users():
    """Create the configured accounts if no users exist yet."""
    print("\n👥 SEEDING USERS")
    print("=" * 60)

    stores = create_stores(config)
    try:
        await stores.connect()
        created = await initialize_default_users(stores.users, api_config.seed_users)
        if created:
            print(f"✅ Created {created} users")
        else:
            print("ℹ️  Users already exist, nothing to do")
    except Exception as e:
        print(f"❌ Error seeding users: {e}")
        sys.exit(1)
    finally:
        await stores.close()


async def show_statistics():
    """Show record counts for the configured backend."""
    print("\n📊 STORAGE STATISTICS")
    print("=" * 60)

    stores = create_stores(config)
    try:
        await stores.connect()
        print(f"🗄️  Backend: {stores.backend}")
        print(f"📚 Active Books: {await stores.books.count_books()}")
        print(f"👥 Users: {await stores.users.count_users()}")
    except Exception as e:
        print(f"❌ Error getting statistics: {e}")
        sys.exit(1)
    finally:
        await stores.close()


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print("Usage: python manage_tokens.py [cleanup|seed|stats]")
        print()
        print("Commands:")
        print("  cleanup  - Remove expired session tokens")
        print("  seed     - Seed default users into an empty user store")
        print("  stats    - Show record counts")
        sys.exit(1)

    command = sys.argv[1].lower()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command == "cleanup":
        await cleanup_expired_tokens()
    elif command == "seed":
        await seed_users()
    elif command == "stats":
        await show_statistics()
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: cleanup, seed, stats")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
