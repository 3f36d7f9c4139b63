#!/usr/bin/env python
"""
TutorTime - Database Management CLI

Usage:
    python -m scripts.db_manage check       # Test database connection
    python -m scripts.db_manage migrate     # Run pending migrations
    python -m scripts.db_manage rollback    # Rollback last migration
    python -m scripts.db_manage current     # Show current migration version
    python -m scripts.db_manage history     # Show migration history
    python -m scripts.db_manage reset       # Drop all and recreate (dev only)
    python -m scripts.db_manage settings    # Create/update franchise payroll settings
"""

import sys

from sqlalchemy import select

from tutortime.config import get_settings
from tutortime.database import check_connection, get_db_context
from tutortime.models import FranchisePayrollSettings
from tutortime.services.pay_period import PAY_PERIOD_TYPES
from tutortime.services.schedule_snapshot import load_zone


settings = get_settings()


def _alembic_config():
    from alembic.config import Config

    return Config("alembic.ini")


def cmd_check():
    """Test database connection."""
    print(f"Connecting to: {settings.db_server}/{settings.db_name}")
    try:
        check_connection()
        print("Connection successful!")
        return True
    except Exception as e:
        print(f"Connection failed: {e}")
        return False


def cmd_migrate():
    """Run pending Alembic migrations."""
    from alembic import command

    print("Running migrations...")
    command.upgrade(_alembic_config(), "head")
    print("Migrations complete!")
    return True


def cmd_rollback():
    """Rollback the last migration."""
    if not settings.debug:
        print("ERROR: rollback is only available in debug mode")
        return False

    from alembic import command

    print("Rolling back last migration...")
    command.downgrade(_alembic_config(), "-1")
    print("Rollback complete!")
    return True


def cmd_current():
    """Show current migration version."""
    from alembic import command

    command.current(_alembic_config())
    return True


def cmd_history():
    """Show migration history."""
    from alembic import command

    command.history(_alembic_config())
    return True


def cmd_reset():
    """Drop all tables and recreate with migrations."""
    if not settings.debug:
        print("ERROR: reset is only available in debug mode")
        return False

    confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
    if confirm.lower() != "yes":
        print("Aborted")
        return False

    from alembic import command

    alembic_cfg = _alembic_config()

    print("Rolling back all migrations...")
    try:
        command.downgrade(alembic_cfg, "base")
    except Exception as e:
        print(f"Rollback failed (maybe no tables exist): {e}")

    print("Running all migrations...")
    command.upgrade(alembic_cfg, "head")

    print("Reset complete!")
    return True


def cmd_settings():
    """Create or update payroll settings for one franchise."""
    raw_id = input("Franchise id: ").strip()
    if not raw_id.isdigit() or int(raw_id) <= 0:
        print("Franchise id must be a positive integer")
        return False
    franchise_id = int(raw_id)

    tz_name = input(f"Time zone [{settings.default_timezone}]: ").strip() or settings.default_timezone
    if load_zone(tz_name) is None:
        print(f"Unknown time zone: {tz_name}")
        return False

    period_type = (
        input(f"Pay period type {PAY_PERIOD_TYPES} [{settings.default_pay_period_type}]: ").strip().lower()
        or settings.default_pay_period_type
    )
    if period_type not in PAY_PERIOD_TYPES:
        print(f"Pay period type must be one of: {', '.join(PAY_PERIOD_TYPES)}")
        return False

    with get_db_context() as db:
        row = db.execute(
            select(FranchisePayrollSettings).where(FranchisePayrollSettings.franchise_id == franchise_id)
        ).scalar_one_or_none()

        if row is None:
            row = FranchisePayrollSettings(franchise_id=franchise_id, policy_type=settings.default_policy_type)
            db.add(row)

        row.timezone = tz_name
        row.pay_period_type = period_type
        db.commit()

        print(f"Franchise {franchise_id}: {period_type} pay periods in {tz_name}")

    return True


def cmd_help():
    """Show help."""
    print(__doc__)
    return True


COMMANDS = {
    "check": cmd_check,
    "migrate": cmd_migrate,
    "rollback": cmd_rollback,
    "current": cmd_current,
    "history": cmd_history,
    "reset": cmd_reset,
    "settings": cmd_settings,
    "help": cmd_help,
}


def main():
    if len(sys.argv) < 2:
        cmd_help()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        cmd_help()
        sys.exit(1)

    success = COMMANDS[command]()
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
