#!/usr/bin/env python3
"""
Migration: Create circuitstateentry table for shared breaker state.

Needed once per database before running with CIRCUIT_STATE_BACKEND=database.
Rows expire via their expires_at column; `circuitguard purge` removes them.

Usage:
    python scripts/migrate_circuit_state.py
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import text, Session
from circuitguard.db import engine


def migrate():
    """Create circuitstateentry table."""
    with Session(engine) as session:
        print("Creating circuitstateentry table...")

        session.exec(
            text(
                """
                CREATE TABLE IF NOT EXISTS circuitstateentry (
                    key VARCHAR NOT NULL PRIMARY KEY,
                    value VARCHAR NOT NULL,
                    expires_at FLOAT NOT NULL,
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
        )
        session.exec(
            text("CREATE INDEX IF NOT EXISTS ix_circuitstateentry_expires_at ON circuitstateentry (expires_at)")
        )
        session.commit()
        print("  Created table: circuitstateentry")

        print("\nMigration complete!")


if __name__ == "__main__":
    migrate()
