"""Script to run database migrations.

Usage:
    python scripts/migrate.py                     upgrade to head
    python scripts/migrate.py downgrade <rev>     downgrade to a revision
    python scripts/migrate.py create <message>    autogenerate a revision
"""

import sys

from alembic import command
from alembic.config import Config

ALEMBIC_INI = "alembic.ini"


def run_migrations(revision: str = "head") -> None:
    """Upgrade the schema of the configured database."""
    alembic_cfg = Config(ALEMBIC_INI)

    try:
        print(f"Upgrading dental PMS schema to {revision}...")
        command.upgrade(alembic_cfg, revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback_migrations(revision: str) -> None:
    """Downgrade the schema to an earlier revision."""
    alembic_cfg = Config(ALEMBIC_INI)

    try:
        print(f"Downgrading dental PMS schema to {revision}...")
        command.downgrade(alembic_cfg, revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a revision from the table definitions in ``app.models``."""
    alembic_cfg = Config(ALEMBIC_INI)

    try:
        print(f"Creating migration: {message}")
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    elif args[0] == "downgrade" and len(args) == 2:
        rollback_migrations(args[1])
    else:
        print(__doc__)
        sys.exit(2)
