"""
Blueprint Engine — CLI

Inspect persisted rows and generated artifacts from the shell.

Usage:
    # Where would this blueprint resume?
    python -m lifecycle.cli route fixtures/row.json

    # Reconcile raw generation output (exit 1 when it cannot be used)
    python -m lifecycle.cli reconcile generated.json

    # Which questionnaire generation answered these static answers?
    python -m lifecycle.cli static answers.json

Every command prints one JSON document on stdout.
"""

import argparse
import json
import sys
from pathlib import Path

from artifacts.reconcile import SchemaReconciler
from lifecycle.config import DEFAULT_CONFIG_PATH, load_engine_config
from lifecycle.exceptions import ConfigError
from lifecycle.logging import configure_logging
from lifecycle.migrator import detect_generation, field_report
from lifecycle.router import route_for


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"file not found: {path}")
    return p.read_text(encoding="utf-8")


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_route(args, config) -> int:
    """Route a persisted row. Unreadable rows resume at the static wizard."""
    try:
        row = json.loads(_read_text(args.row))
    except ValueError:
        row = None
    decision = route_for(row, config=config)
    _emit(decision.to_dict(config))
    return 0


def cmd_reconcile(args, config) -> int:
    result = SchemaReconciler(config).reconcile(_read_text(args.artifact))
    _emit(result.to_dict())
    return 0 if result.ok else 1


def cmd_static(args, config) -> int:
    answers = json.loads(_read_text(args.answers))
    generation = detect_generation(answers)
    payload = {
        "complete": generation is not None,
        "generation": generation.value if generation else None,
    }
    if args.verbose:
        payload["fields"] = field_report(answers)
    _emit(payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m lifecycle.cli",
        description="Blueprint Engine — resume routing and artifact reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH,
        help=f"Base config YAML (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--env", default="", help="Config overlay profile (overrides BP_ENV)")
    parser.add_argument("--log-level", default=None, help="Override logging.level")

    subs = parser.add_subparsers(dest="command", help="Command")

    route_p = subs.add_parser("route", help="Resume route for a persisted row")
    route_p.add_argument("row", help="Row JSON file")

    reconcile_p = subs.add_parser("reconcile", help="Reconcile a generated artifact")
    reconcile_p.add_argument("artifact", help="Raw artifact text file")

    static_p = subs.add_parser("static", help="Static answer completeness")
    static_p.add_argument("answers", help="Static answers JSON file")
    static_p.add_argument("--verbose", "-v", action="store_true",
                          help="Include the per-field report")
    return parser


COMMANDS = {
    "route": cmd_route,
    "reconcile": cmd_reconcile,
    "static": cmd_static,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_engine_config(args.config, env=args.env)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    configure_logging(level=args.log_level or config.log_level)

    try:
        return COMMANDS[args.command](args, config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
