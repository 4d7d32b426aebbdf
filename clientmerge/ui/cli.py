"""Command-line interface for ClientMerge."""

import argparse
import logging
import sqlite3
import sys
from pathlib import Path
from typing import List, Optional

from .. import __version__
from ..config import EngineConfig
from ..errors import ClientMergeError
from ..matching import ClientMatcher, DuplicateGroup, suggest_survivor
from ..merge import ClientMerger
from ..storage import ClientDatabase
from ..utils.audit_trail import AuditTrail


def print_statistics(db: ClientDatabase) -> None:
    """Print record counts for the database.

    Args:
        db: Open client database
    """
    stats = db.get_stats()

    print("\n" + "=" * 60)
    print("CLIENT DATABASE STATISTICS")
    print("=" * 60)
    print(f"Total Clients:          {stats['clients']:,}")
    print(f"Total Interactions:     {stats['interactions']:,}")
    print(f"Active Clients:         {stats['active_clients']:,}")
    print(f"Orphaned Interactions:  {stats['orphaned_interactions']:,}")
    print("=" * 60 + "\n")


def print_group(index: int, group: DuplicateGroup) -> None:
    """Print one duplicate group with its members.

    Args:
        index: 1-based position in the result list
        group: Group to display
    """
    suggested = group.suggested_survivor().client_id

    print(f"{index}. {group} • {group.total_contacts} total interactions")
    for client in group.clients:
        marker = "*" if client.client_id == suggested else " "
        aka = f" (AKA: {client.aka})" if client.aka else ""
        details = ' • '.join(value for _, value in client.demographics()[:3])
        print(
            f"   {marker} {client.client_id}  {client.full_name()}{aka}  "
            f"[{details}]  contacts={client.contacts}  "
            f"last={client.last_contact or 'Never'}"
        )


def _resolve_database(args: argparse.Namespace, config: EngineConfig) -> Optional[Path]:
    if args.file:
        return Path(args.file)
    return config.database_path


def stats_command(args: argparse.Namespace, config: EngineConfig) -> int:
    """Execute the stats command."""
    db_path = _resolve_database(args, config)
    if db_path is None or not db_path.exists():
        print(f"Error: Database not found: {db_path}", file=sys.stderr)
        return 1

    try:
        with ClientDatabase(db_path) as db:
            print_statistics(db)
    except sqlite3.Error as e:
        print(f"Error: Could not read {db_path}: {e}", file=sys.stderr)
        return 1
    return 0


def find_duplicates_command(args: argparse.Namespace, config: EngineConfig) -> int:
    """Execute the find-duplicates command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    db_path = _resolve_database(args, config)
    if db_path is None or not db_path.exists():
        print(f"Error: Database not found: {db_path}", file=sys.stderr)
        return 1

    with ClientDatabase(db_path) as db:
        matcher = ClientMatcher(config)
        try:
            groups = matcher.find_duplicates(db, min_score=args.min_score, limit=args.limit)
        except ClientMergeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if not groups:
        print("No Duplicates Found - all clients appear to be unique.")
        return 0

    print(f"\nFound {len(groups)} potential duplicate groups:\n")
    print("=" * 80)
    for i, group in enumerate(groups, 1):
        print_group(i, group)
        print("-" * 80)
    print("* suggested client to keep")

    return 0


def merge_command(args: argparse.Namespace, config: EngineConfig) -> int:
    """Execute the merge command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    db_path = _resolve_database(args, config)
    if db_path is None or not db_path.exists():
        print(f"Error: Database not found: {db_path}", file=sys.stderr)
        return 1

    member_ids = [m.strip() for m in args.members.split(',') if m.strip()]

    audit = None
    if config.audit_enabled and not args.no_audit and not args.dry_run:
        audit = AuditTrail(db_path)

    try:
        with ClientDatabase(db_path) as db:
            merger = ClientMerger(db, audit=audit)

            survivor_id = args.survivor
            if survivor_id is None:
                present = [c for c in (db.get_client(m) for m in member_ids) if c is not None]
                if not present:
                    print("Error: None of the given clients exist", file=sys.stderr)
                    return 1
                survivor_id = suggest_survivor(present).client_id

            plan = merger.plan(member_ids, survivor_id)
            print(plan)

            if args.dry_run:
                print("\nDry run: no changes made.")
                return 0

            outcome = merger.merge(member_ids, survivor_id)
            print(f"\n{outcome}")
            return 0

    except ClientMergeError as e:
        print(f"Error: Failed to merge clients: {e}", file=sys.stderr)
        return 1
    finally:
        if audit:
            audit.close()


def history_command(args: argparse.Namespace, config: EngineConfig) -> int:
    """Execute the history command."""
    db_path = _resolve_database(args, config)
    if db_path is None or not db_path.exists():
        print(f"Error: Database not found: {db_path}", file=sys.stderr)
        return 1

    if not db_path.with_name(f"{db_path.stem}.audit.db").exists():
        print("No merges recorded.")
        return 0

    with AuditTrail(db_path) as audit:
        sessions = audit.get_sessions(limit=args.limit)

    if not sessions:
        print("No merges recorded.")
        return 0

    for session in sessions:
        metadata = session.metadata or {}
        members = ', '.join(metadata.get('member_ids', []))
        print(
            f"#{session.session_id}  {session.started_at}  {session.status:<9}  "
            f"keep {metadata.get('survivor_id', '?')} of [{members}]  "
            f"{session.change_count} changes"
        )
        if session.status == 'failed':
            print(f"    failed at {metadata.get('step')} for {metadata.get('client_id')}: "
                  f"{metadata.get('error')}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='clientmerge',
        description='Find and merge duplicate client records.',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        help='Available commands'
    )

    stats_parser = subparsers.add_parser(
        'stats',
        help='Display client and interaction counts'
    )
    stats_parser.add_argument(
        'file',
        nargs='?',
        help='Path to the client database (default: $CLIENTMERGE_DB)'
    )

    find_parser = subparsers.add_parser(
        'find-duplicates',
        help='List groups of clients that look like the same person'
    )
    find_parser.add_argument(
        'file',
        nargs='?',
        help='Path to the client database (default: $CLIENTMERGE_DB)'
    )
    find_parser.add_argument(
        '--min-score',
        type=int,
        default=None,
        help='Only show groups scoring at least this much'
    )
    find_parser.add_argument(
        '-n', '--limit',
        type=int,
        default=None,
        help='Maximum number of groups to display'
    )

    merge_parser = subparsers.add_parser(
        'merge',
        help='Merge a group of clients into one'
    )
    merge_parser.add_argument(
        'file',
        nargs='?',
        help='Path to the client database (default: $CLIENTMERGE_DB)'
    )
    merge_parser.add_argument(
        '-m', '--members',
        required=True,
        help='Comma-separated client ids in the group'
    )
    merge_parser.add_argument(
        '-s', '--survivor',
        help='Client id to keep (default: the one with the most contacts)'
    )
    merge_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the merge summary without changing anything'
    )
    merge_parser.add_argument(
        '--no-audit',
        action='store_true',
        help='Do not write to the audit trail'
    )

    history_parser = subparsers.add_parser(
        'history',
        help='List recent merges from the audit trail'
    )
    history_parser.add_argument(
        'file',
        nargs='?',
        help='Path to the client database (default: $CLIENTMERGE_DB)'
    )
    history_parser.add_argument(
        '-n', '--limit',
        type=int,
        default=20,
        help='Number of merges to show (default: 20)'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = EngineConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format='%(levelname)s %(name)s: %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.command == 'stats':
        return stats_command(args, config)
    elif args.command == 'find-duplicates':
        return find_duplicates_command(args, config)
    elif args.command == 'merge':
        return merge_command(args, config)
    elif args.command == 'history':
        return history_command(args, config)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
