"""
CLI commands for archival management.

Usage:
    python -m app.cli.archival status
    python -m app.cli.archival rules
    python -m app.cli.archival run --dry-run
    python -m app.cli.archival archive datasets
    python -m app.cli.archival promote
    python -m app.cli.archival retrieve <id> --table datasets
    python -m app.cli.archival presign <id> --ttl 600
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()


def get_engine():
    """Build an engine on a fresh DB session."""
    from app.config import get_settings
    from app.database import SessionLocal
    from app.logging_config import configure_logging
    from app.services.archival import LifecycleEngine
    from app.storage import get_storage_provider

    settings = get_settings()
    configure_logging(json_format=False, level=settings.LOG_LEVEL)
    return LifecycleEngine(storage=get_storage_provider(), db=SessionLocal(), initiated_by="cli")


def cmd_status(args):
    """Show storage configuration and per-tier counts."""
    engine = get_engine()
    try:
        print("\n=== Archival Status ===\n")
        print(f"Storage provider: {engine.storage.name}")
        print(f"  Enabled: {engine.is_enabled()}")

        print("\nRecords by tier:")
        for table, counts in engine.stats().items():
            print(f"  {table}:")
            for tier, count in counts.items():
                print(f"    {tier}: {count}")
        print()
    finally:
        engine.db.close()


def cmd_rules(args):
    """List the archival rule catalog."""
    from app.services.archival import ARCHIVAL_RULES

    print(f"\n{'Table':<20} {'Days':>5}  {'Tier':<9} {'Action':<8} Conditions")
    print("-" * 70)
    for rule in ARCHIVAL_RULES:
        conditions = ", ".join(f"{k}={v!r}" for k, v in rule.conditions.items()) or "-"
        print(
            f"{rule.table:<20} {rule.age_threshold_days:>5}  "
            f"{rule.target_tier.value:<9} {rule.retention_action.value:<8} {conditions}"
        )
    print()


def cmd_run(args):
    """Run every rule, as the scheduler does."""
    engine = get_engine()
    try:
        if not engine.is_enabled():
            print("Archive storage not configured, nothing to do")
            return

        report = engine.run(dry_run=args.dry_run)

        print(f"\n=== Archival Run {'(DRY RUN) ' if report.dry_run else ''}===\n")
        for table, result in report.warm.items():
            print(f"  {table}: {result.archived} archived, {result.errors} errors")
        print(f"  glacier: {report.cold.moved} moved, {report.cold.errors} errors")
        print(f"\nTotal archived: {report.total_archived}")
        print(f"Total errors: {report.total_errors}")
        print()

        if report.total_errors:
            sys.exit(1)
    finally:
        engine.db.close()


def cmd_archive(args):
    """Archive one table to the warm tier."""
    engine = get_engine()
    try:
        result = engine.archive_to_warm_tier(args.table, dry_run=args.dry_run)
        print(f"{args.table}: {result.archived} archived, {result.errors} errors")
        if result.errors:
            sys.exit(1)
    finally:
        engine.db.close()


def cmd_promote(args):
    """Promote old STANDARD archives to GLACIER."""
    engine = get_engine()
    try:
        result = engine.promote_to_cold_tier(dry_run=args.dry_run)
        print(f"glacier: {result.moved} moved, {result.errors} errors")
        if result.errors:
            sys.exit(1)
    finally:
        engine.db.close()


def cmd_retrieve(args):
    """Print an archived record as JSON."""
    from app.services.archival import ArchivalError
    from app.storage import StorageError, StorageNotConfigured

    engine = get_engine()
    try:
        result = engine.retrieve(args.id, table=args.table)
    except (ArchivalError, StorageError, StorageNotConfigured) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        engine.db.close()

    print(json.dumps(
        {
            "id": result.id,
            "tier": result.tier.value,
            "archived_at": result.archived_at,
            "retrieved_at": result.retrieved_at,
            "data": result.data,
        },
        indent=2,
        default=str,
    ))


def cmd_presign(args):
    """Print a presigned URL for an archived record."""
    from app.services.archival import ArchivalError
    from app.storage import StorageError, StorageNotConfigured

    engine = get_engine()
    try:
        print(engine.presign(args.id, table=args.table, ttl_seconds=args.ttl))
    except (ArchivalError, StorageError, StorageNotConfigured) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        engine.db.close()


def main():
    from app.services.archival import FAMILIES

    parser = argparse.ArgumentParser(
        description="Archival Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview a full run
  python -m app.cli.archival run --dry-run

  # Archive audit logs only
  python -m app.cli.archival archive audit_logs

  # Read back an archived dataset
  python -m app.cli.archival retrieve 2f6c... --table datasets
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show archival status")
    status_parser.set_defaults(func=cmd_status)

    rules_parser = subparsers.add_parser("rules", help="List archival rules")
    rules_parser.set_defaults(func=cmd_rules)

    run_parser = subparsers.add_parser("run", help="Run every archival rule")
    run_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't archive")
    run_parser.set_defaults(func=cmd_run)

    archive_parser = subparsers.add_parser("archive", help="Archive one table to the warm tier")
    archive_parser.add_argument("table", choices=sorted(FAMILIES), help="Table to archive")
    archive_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't archive")
    archive_parser.set_defaults(func=cmd_archive)

    promote_parser = subparsers.add_parser("promote", help="Promote old archives to GLACIER")
    promote_parser.add_argument("--dry-run", action="store_true", help="Preview only, don't move")
    promote_parser.set_defaults(func=cmd_promote)

    retrieve_parser = subparsers.add_parser("retrieve", help="Print an archived record")
    retrieve_parser.add_argument("id", help="Record id")
    retrieve_parser.add_argument("--table", default="datasets", choices=sorted(FAMILIES))
    retrieve_parser.set_defaults(func=cmd_retrieve)

    presign_parser = subparsers.add_parser("presign", help="Presigned URL for an archived record")
    presign_parser.add_argument("id", help="Record id")
    presign_parser.add_argument("--table", default="datasets", choices=sorted(FAMILIES))
    presign_parser.add_argument("--ttl", type=int, default=3600, help="URL lifetime in seconds (default: 3600)")
    presign_parser.set_defaults(func=cmd_presign)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
