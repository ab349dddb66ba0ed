#!/usr/bin/env python3
"""
Operator command-line utility for the campus directory.

Runs the migration, looks up campuses, refreshes the cache, validates or
recovers the recipients sheet and prints status reports.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from campus_directory.core.config import validate_config
from campus_directory.core.migration import MigrationFailure
from campus_directory.core.service import get_service
from campus_directory.core.table import TableAccessError, read_recipients


def cmd_migrate(service, args):
    if args.reset:
        service.migration.reset()
        print("Migration flag cleared")
    run = service.migration.perform()
    if args.json:
        print(json.dumps(run.to_dict(), indent=2))
    elif run.performed:
        print(f"✅ Migration complete: {run.campus_count} campuses, {run.total_recipients} recipients")
        if run.mirror_created:
            print(f"   Created sheet '{service.table.name}'")
    else:
        print("📋 Migration already complete - nothing to do")
    return 0


def cmd_lookup(service, args):
    info = service.lookup.resolve(args.campus)
    if args.json:
        print(json.dumps(info.to_dict(), indent=2))
        return 0
    if not info.recipients and not info.folder_reference:
        print(f"❌ No directory entry for '{args.campus}'")
        return 1
    print(f"Campus: {args.campus.strip().lower()}")
    print(f"Folder: {info.folder_reference or '(unknown)'}")
    for recipient in info.recipients:
        print(f"  - {recipient}")
    return 0


def cmd_refresh(service, args):
    directory = service.lookup.refresh_cache()
    print(f"✅ Cache refreshed: {directory.campus_count} campuses, {directory.total_recipients} recipients")
    return 0


def cmd_validate(service, args):
    if not service.table.exists():
        print(f"❌ Sheet '{service.table.name}' does not exist")
        return 1
    result = read_recipients(service.table, service.lookup.expected_keys, service.telemetry)
    warnings = result.validation.warnings + result.campus_check.warnings + result.duplicates.duplicate_warnings

    if args.json:
        report = result.validation.to_dict()
        report["warnings"] = warnings
        print(json.dumps(report, indent=2))
        return 0 if result.validation.is_valid else 1

    summary = result.validation.summary
    print(f"Rows: {summary['total_rows']}  valid: {summary['valid_emails']}  "
          f"invalid: {summary['invalid_emails']}  empty: {summary['empty_rows']}  "
          f"duplicates: {summary['duplicate_emails']}")
    for error in result.validation.errors:
        print(f"  ❌ {error}")
    for warning in warnings:
        print(f"  ⚠️  {warning}")
    return 0 if result.validation.is_valid else 1


def cmd_recover(service, args):
    if args.force:
        outcome = service.recovery.recover(reason="manual", force=True)
    else:
        outcome = service.recovery.validate_and_recover()

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2, default=str))
    elif outcome.success:
        print(f"✅ {outcome.action}")
        for key, value in outcome.details.items():
            print(f"  {key}: {value}")
    else:
        print("❌ Recovery failed - no valid data source available")
        for attempt in outcome.attempts:
            print(f"  {attempt.strategy}: {attempt.reason}")
    return 0 if outcome.success else 2


def cmd_status(service, args):
    reports = {
        "cache": service.cache_status(),
        "migration": service.migration_report(),
        "runtime": service.runtime_report(),
    }
    if args.json:
        print(json.dumps(reports, indent=2, default=str))
        return 0

    cache = reports["cache"]
    runtime = reports["runtime"]
    print(f"Cache exists:        {cache['cache_exists']}")
    print(f"Migration complete:  {cache['migration_complete']}")
    print(f"Recipients sheet:    {'present' if cache['recipients_sheet_exists'] else 'missing'}")
    if cache["metadata"]:
        for key, value in cache["metadata"].items():
            print(f"  {key}: {value}")
    print(f"Cache hit ratio:     {runtime['cache_hit_ratio']}%")
    print(f"Runtime log entries: {runtime['total_log_entries']}")
    if cache["recent_events"]:
        print("Recent invalidations:")
        for event in cache["recent_events"]:
            print(f"  {event['timestamp']} {event['key']}: {event['message']}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Campus directory operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s migrate                 # Run the one-time migration
  %(prog)s migrate --reset         # Clear the flag and migrate again
  %(prog)s lookup bernal           # Resolve a campus
  %(prog)s refresh                 # Rebuild the cache from the sheet
  %(prog)s recover --force         # Rebuild the sheet from cache or seed data
  %(prog)s status --json           # Cache, migration and runtime reports

Environment variables:
- DB_PATH=./data/campus_directory.db
- TABLE_BACKEND=sheets|memory
- SPREADSHEET_ID, GOOGLE_SA_FILE (sheets backend)
        """
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", parents=[common], help="Run the one-time migration")
    migrate.add_argument("--reset", action="store_true", help="Clear the completion flag first")
    migrate.set_defaults(func=cmd_migrate)

    lookup = subparsers.add_parser("lookup", parents=[common], help="Resolve a campus")
    lookup.add_argument("campus")
    lookup.set_defaults(func=cmd_lookup)

    subparsers.add_parser("refresh", parents=[common], help="Refresh the cache from the sheet").set_defaults(func=cmd_refresh)
    subparsers.add_parser("validate", parents=[common], help="Validate the recipients sheet").set_defaults(func=cmd_validate)

    recover = subparsers.add_parser("recover", parents=[common], help="Validate and recover the recipients sheet")
    recover.add_argument("--force", action="store_true", help="Rebuild even if the sheet looks healthy")
    recover.set_defaults(func=cmd_recover)

    subparsers.add_parser("status", parents=[common], help="Show status reports").set_defaults(func=cmd_status)

    args = parser.parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"❌ Config: {issue}", file=sys.stderr)
        return 1

    try:
        return args.func(get_service(), args)
    except MigrationFailure as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except TableAccessError as e:
        print(f"❌ Sheet access failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
