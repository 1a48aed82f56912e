#!/usr/bin/env python3
"""Script to reset the project chat database.

Usage:
  python scripts/reset_db.py [--force]
"""

import argparse
import os
import sys
from pathlib import Path

# Add project root to sys.path so we can import project_chat
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

from project_chat.core.database import DEFAULT_DATABASE_URL, ProjectStore


def reset_database(database_url: str, force: bool) -> bool:
    """Drop and recreate all tables. Returns False if the user backed out."""
    print(f"Resetting database at {database_url.split('///')[0]}///***")
    if not force:
        confirm = input("  This will delete all projects, chats and messages. Continue? [y/N]: ")
        if confirm.lower() != "y":
            print("  Skipping database reset.")
            return False

    ProjectStore(database_url).reset()
    print("  Tables dropped and recreated.")
    return True


def main():
    parser = argparse.ArgumentParser(description="Reset the project chat database.")
    parser.add_argument("--force", "-f", action="store_true", help="Skip confirmation prompt")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    args = parser.parse_args()

    load_dotenv(project_root / ".env")
    url = args.database_url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)

    if reset_database(url, args.force):
        print("Done!")


if __name__ == "__main__":
    main()
