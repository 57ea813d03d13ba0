#!/usr/bin/env python3
"""viewcraft command line.

Usage:
    viewcraft [--config PATH] converge NAME [--master M] [--action A] [--job J] [--dry-run]
    viewcraft [--config PATH] apply [--master M] [--dry-run]
    viewcraft [--config PATH] show NAME [--master M] [--raw]
    viewcraft [--config PATH] masters
    viewcraft history [--master M] [--view V] [--limit N]

Environment variables:
    VIEWCRAFT_CONFIG         Path to masters.yaml
    VIEWCRAFT_LOG_LEVEL      Console log level (default: INFO)
    JENKINS_API_TOKEN        Default secret for masters without a password
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .config.inventory import MasterInventory
from .config_engine import Action, ViewParser
from .errors import ViewcraftError
from .runner import ViewRunner
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="viewcraft",
        description="Converge Jenkins views through the Jenkins CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Make sure the view exists with the standard list view config
    viewcraft converge release-1.0 --master ci-main

    # Preview removing a view
    viewcraft converge release-0.9 --action delete --dry-run

    # Converge everything declared in masters.yaml
    viewcraft apply
""",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="masters.yaml to use (default: search ./configs, ~/.config/viewcraft, /etc/viewcraft)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    converge = sub.add_parser("converge", help="Converge a single view")
    converge.add_argument("name", help="View name")
    converge.add_argument("--master", help="Master id (optional with a single master)")
    converge.add_argument(
        "--action",
        choices=[a.value for a in Action],
        default=Action.CREATE.value,
        help="Action to converge (default: create)",
    )
    converge.add_argument("--job", help="Job to add (append only)")
    converge.add_argument("--dry-run", action="store_true", help="Report changes without making them")

    apply = sub.add_parser("apply", help="Converge every declared view")
    apply.add_argument("--master", help="Only views of this master")
    apply.add_argument("--dry-run", action="store_true", help="Report changes without making them")

    show = sub.add_parser("show", help="Show the current config of a view")
    show.add_argument("name", help="View name")
    show.add_argument("--master", help="Master id (optional with a single master)")
    show.add_argument("--raw", action="store_true", help="Print the document as returned")

    sub.add_parser("masters", help="List configured masters")

    history = sub.add_parser("history", help="Show recent audited changes")
    history.add_argument("--master", help="Filter by master")
    history.add_argument("--view", help="Filter by view name")
    history.add_argument("--limit", type=int, default=20, help="Number of records (default: 20)")

    return parser


def _inventory(path: Optional[Path]) -> MasterInventory:
    return MasterInventory(str(path) if path else None)


def cmd_converge(args: argparse.Namespace) -> int:
    inv = _inventory(args.config)
    resource = ViewParser().build(
        name=args.name,
        action=Action(args.action),
        job=args.job,
        master=args.master or inv.default_master(),
    )
    result = ViewRunner(inv, dry_run=args.dry_run).converge(resource)
    _print_results([result], args.json)
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    inv = _inventory(args.config)
    results = ViewRunner(inv, dry_run=args.dry_run).apply_all(args.master)
    _print_results(results, args.json)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    inv = _inventory(args.config)
    observed = ViewRunner(inv).observe(args.master, args.name)
    if args.json:
        print(json.dumps({
            "view": args.name,
            "exists": observed.exists,
            "document": observed.raw if args.raw else observed.normalized,
        }, indent=2))
    elif not observed.exists:
        print(f"View '{args.name}' is absent")
    else:
        print(observed.raw if args.raw else observed.normalized)
    return 0


def cmd_masters(args: argparse.Namespace) -> int:
    inv = _inventory(args.config)
    masters = []
    for master_id in inv.get_master_ids():
        config = inv.get_master_config(master_id)
        masters.append({
            "id": master_id,
            "name": config.get("name", master_id),
            "type": config.get("type"),
            "url": config.get("url"),
            "host": config.get("host"),
            "port": config.get("port"),
        })
    if args.json:
        print(json.dumps({"masters": masters}, indent=2))
    else:
        for m in masters:
            where = m["url"] or f"{m['host']}:{m['port']}"
            print(f"{m['id']:20s} {m['type']:5s} {where}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    records = get_recent_changes(master_id=args.master, view=args.view, limit=args.limit)
    if args.json:
        print(json.dumps([asdict(r) for r in records], indent=2))
        return 0
    for r in records:
        flag = "DRY" if r.dry_run else ("OK " if r.success else "ERR")
        print(f"{r.timestamp} {flag} {r.master_id} {r.view} {r.action}: {r.detail}")
    return 0


def _print_results(results: list, as_json: bool) -> None:
    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return
    for result in results:
        prefix = "[DRY-RUN] " if result.dry_run else ""
        if not result.changes_made:
            print(f"{prefix}{result.resource}: up to date ({result.action.value})")
            continue
        for change in result.changes_made:
            print(f"{result.resource}: {change}")


COMMANDS = {
    "converge": cmd_converge,
    "apply": cmd_apply,
    "show": cmd_show,
    "masters": cmd_masters,
    "history": cmd_history,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the viewcraft CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else None)
    setup_audit_logging()

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except (ViewcraftError, FileNotFoundError, KeyError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
