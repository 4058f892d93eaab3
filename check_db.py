"""
Database connection check for the Examination System API
Connects with the configured settings, prints the server version and exits 0/1
"""

import asyncio
import sys
import os
import argparse

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy.engine import make_url

from exam_api.core.config import settings
from exam_api.core.exceptions import AppError
from exam_api.db.gateway import ProcedureGateway


def print_configuration(show_url: bool = False):
    """Print the connection target (never the password)."""
    print("Configuration:")
    print(f"- Host: {settings.postgres_host}")
    print(f"- Port: {settings.postgres_port}")
    print(f"- Database: {settings.postgres_db}")
    print(f"- User: {settings.postgres_user}")
    print(f"- SSL: {settings.postgres_ssl}")
    if show_url:
        print(f"- URL: {make_url(settings.database_url_computed).render_as_string(hide_password=True)}")
    print()


async def check_connection() -> bool:
    gateway = ProcedureGateway()
    try:
        await gateway.get_engine()
        print("✓ Database connection successful!")
        print()

        version = await gateway.server_version()
        print("Server Version:")
        print(version)
        print()
    except AppError as e:
        print("✗ Database connection failed!")
        print()
        print(f"Error: {e.detail or e.message}")
        print()
        print("Troubleshooting tips:")
        print("1. Check if PostgreSQL is running")
        print("2. Verify credentials in .env file")
        print("3. Check firewall settings")
        print(f"4. Verify PostgreSQL is listening on port {settings.postgres_port}")
        print("5. Check pg_hba.conf allows this host and user")
        return False
    finally:
        await gateway.close()

    print("✓ Connection closed successfully")
    return True


async def main(show_url: bool = False):
    print("=" * 60)
    print("  Examination System API - Database Connection Check")
    print("=" * 60)
    print()

    print_configuration(show_url)
    success = await check_connection()
    if not success:
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Check the database connection')
    parser.add_argument('--show-url', action='store_true', help='Also print the SQLAlchemy URL (password hidden)')
    args = parser.parse_args()

    asyncio.run(main(show_url=args.show_url))
