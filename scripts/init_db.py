#!/usr/bin/env python3
"""
Initialize Database

Creates all Custody Ledger tables on the database named by DATABASE_URL.

Usage:
    python scripts/init_db.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import engine
from database.models import Base


def main():
    print(f"Creating tables on {engine.url.render_as_string(hide_password=True)} ...")
    Base.metadata.create_all(bind=engine)
    for table in Base.metadata.sorted_tables:
        print(f"  ✓ {table.name}")
    print("\n✅ Database initialized")


if __name__ == "__main__":
    main()
