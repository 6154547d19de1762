"""
Policy Store Command Line Interface.

Provides commands for inspecting and editing stored policy:
- list: Show stored rules, optionally filtered
- add / remove: Add or delete a single rule
- remove-filtered: Delete rules matching field values
- update: Replace one rule with another
- import / export: Replace the store from a policy file, or dump it
- stats: Show rule counts
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from policystore import __version__
from policystore.config import load_config, validate_config
from policystore.errors import PolicyStoreError
from policystore.policy import PolicyModel, load_policy_line
from policystore.rules.codec import encode_line
from policystore.rules.filter import Filter
from policystore.rules.record import RuleRecord
from policystore.storage.store import PolicyStore


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="policy-store",
        description="Relational storage for authorization policy rules",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--url",
        help="Database URL (overrides configuration)",
    )
    parser.add_argument(
        "--table",
        help="Rules table name (overrides configuration)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list command
    list_parser = subparsers.add_parser("list", help="List stored rules")
    list_parser.add_argument(
        "-t", "--ptype",
        choices=["p", "g"],
        help="Only load rules of this type",
    )
    list_parser.add_argument(
        "-f", "--filter",
        nargs="*",
        metavar="VALUE",
        help="Field values to match from the first field, '' matches anything",
    )
    list_parser.set_defaults(func=cmd_list)

    # add command
    add_parser = subparsers.add_parser("add", help="Add a rule")
    add_parser.add_argument("ptype", help="Rule type (p, g, ...)")
    add_parser.add_argument("values", nargs="*", help="Rule field values")
    add_parser.set_defaults(func=cmd_add)

    # remove command
    remove_parser = subparsers.add_parser("remove", help="Remove a rule")
    remove_parser.add_argument("ptype", help="Rule type (p, g, ...)")
    remove_parser.add_argument("values", nargs="*", help="Rule field values")
    remove_parser.set_defaults(func=cmd_remove)

    # remove-filtered command
    rmf_parser = subparsers.add_parser(
        "remove-filtered", help="Remove rules matching field values"
    )
    rmf_parser.add_argument("ptype", help="Rule type (p, g, ...)")
    rmf_parser.add_argument(
        "-s", "--start",
        type=int,
        default=0,
        help="Field slot the first value applies to",
    )
    rmf_parser.add_argument("values", nargs="*", help="Field values, '' matches anything")
    rmf_parser.set_defaults(func=cmd_remove_filtered)

    # update command
    update_parser = subparsers.add_parser("update", help="Replace a rule")
    update_parser.add_argument("ptype", help="Rule type (p, g, ...)")
    update_parser.add_argument("--old", nargs="*", required=True, help="Current rule values")
    update_parser.add_argument("--new", nargs="*", required=True, help="New rule values")
    update_parser.set_defaults(func=cmd_update)

    # import command
    import_parser = subparsers.add_parser(
        "import", help="Replace stored policy with a policy file"
    )
    import_parser.add_argument("file", help="Policy file with one rule per line")
    import_parser.set_defaults(func=cmd_import)

    # export command
    export_parser = subparsers.add_parser("export", help="Write stored policy lines")
    export_parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)",
    )
    export_parser.set_defaults(func=cmd_export)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show rule counts")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (PolicyStoreError, SQLAlchemyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging for command line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        filename=log_file,
    )


def get_store(args: argparse.Namespace) -> PolicyStore:
    """Get policy store from config and command line overrides."""
    config = load_config(args.config)
    if args.url:
        config.database.url = args.url
    if args.table:
        config.database.table_name = args.table

    errors = validate_config(config)
    if errors:
        raise PolicyStoreError("; ".join(errors))

    setup_logging(config.logging.level, config.logging.file)
    return PolicyStore.from_config(config)


def section_of(ptype: str) -> str:
    """Policy section a rule type belongs to."""
    return ptype[:1]


def model_lines(model: PolicyModel) -> list[str]:
    """Policy lines for every rule in a model."""
    return [
        encode_line(RuleRecord.from_rule(ptype, rule))
        for ptype, rule in model.iter_rules()
    ]


def output(data: Any, args: argparse.Namespace) -> None:
    """Output data in requested format."""
    if getattr(args, "json", False):
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, dict):
        for key, value in data.items():
            print(f"{key}: {value}")
    elif isinstance(data, list):
        for item in data:
            print(item)
    else:
        print(data)


def cmd_list(args: argparse.Namespace) -> int:
    """List stored rules."""
    store = get_store(args)

    try:
        model = PolicyModel()
        if args.ptype is None and args.filter is None:
            store.load_policy(model)
        else:
            ptype = args.ptype or "p"
            values = args.filter or []
            store.load_filtered_policy(model, Filter(**{ptype: values}))

        if getattr(args, "json", False):
            output(
                [{"ptype": ptype, "rule": rule} for ptype, rule in model.iter_rules()],
                args,
            )
        else:
            output(model_lines(model), args)
        return 0

    finally:
        store.close()


def cmd_add(args: argparse.Namespace) -> int:
    """Add a rule."""
    store = get_store(args)

    try:
        store.add_policy(section_of(args.ptype), args.ptype, args.values)
        print(f"Added: {RuleRecord.from_rule(args.ptype, args.values)}")
        return 0

    finally:
        store.close()


def cmd_remove(args: argparse.Namespace) -> int:
    """Remove a rule."""
    store = get_store(args)

    try:
        store.remove_policy(section_of(args.ptype), args.ptype, args.values)
        print(f"Removed: {RuleRecord.from_rule(args.ptype, args.values)}")
        return 0

    finally:
        store.close()


def cmd_remove_filtered(args: argparse.Namespace) -> int:
    """Remove rules matching field values."""
    store = get_store(args)

    try:
        removed = store.remove_filtered_policy(
            section_of(args.ptype), args.ptype, args.start, *args.values
        )
        print(f"Removed {removed} {args.ptype} rules")
        return 0

    finally:
        store.close()


def cmd_update(args: argparse.Namespace) -> int:
    """Replace a rule."""
    store = get_store(args)

    try:
        store.update_policy(section_of(args.ptype), args.ptype, args.old, args.new)
        print(
            f"Updated: {RuleRecord.from_rule(args.ptype, args.old)} -> "
            f"{RuleRecord.from_rule(args.ptype, args.new)}"
        )
        return 0

    finally:
        store.close()


def cmd_import(args: argparse.Namespace) -> int:
    """Replace stored policy with the rules of a policy file."""
    path = Path(args.file)
    if not path.exists():
        print(f"Policy file not found: {path}", file=sys.stderr)
        return 1

    model = PolicyModel()
    with open(path) as f:
        for line in f:
            load_policy_line(line.rstrip("\r\n"), model)

    store = get_store(args)

    try:
        store.save_policy(model)
        print(f"Imported {len(list(model.iter_rules()))} rules from {path}")
        return 0

    finally:
        store.close()


def cmd_export(args: argparse.Namespace) -> int:
    """Write stored policy as policy lines."""
    store = get_store(args)

    try:
        model = PolicyModel()
        store.load_policy(model)
        lines = model_lines(model)

        if args.output:
            Path(args.output).write_text("".join(f"{line}\n" for line in lines))
            print(f"Exported {len(lines)} rules to: {args.output}")
        else:
            for line in lines:
                print(line)
        return 0

    finally:
        store.close()


def cmd_stats(args: argparse.Namespace) -> int:
    """Show rule counts."""
    store = get_store(args)

    try:
        data = {
            "table": store.table_name,
            "total_rules": store.count_rules(),
            "p_rules": store.count_rules("p"),
            "g_rules": store.count_rules("g"),
        }
        output(data, args)
        return 0

    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
