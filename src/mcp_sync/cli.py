"""Command line interface for mcp-sync.

Subcommands:

- ``plan``    -- analyze both stores and print the sync plan.
- ``apply``   -- apply selected names and write the stores back.
- ``enable`` / ``disable`` / ``delete`` -- edit one entry of one store.
- ``init``    -- write a starter config file.

Files are only written by ``apply``, ``enable``, ``disable`` and
``delete``; each save leaves a ``.bak`` copy of the previous file.  The
baseline is committed only after both stores were saved.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from mcp_sync import __version__
from mcp_sync.config import Config, load_config
from mcp_sync.config_loader import ensure_config, load_hierarchical_config
from mcp_sync.config_schema import UnifiedConfig, build_config
from mcp_sync.logger import setup_logging
from mcp_sync.stores import ConfigDocument
from mcp_sync.sync.baseline import JsonBaselineStore, MemoryBaselineStore
from mcp_sync.sync.engine import SyncEngine, schema_for
from mcp_sync.sync.errors import SyncEngineError
from mcp_sync.sync.models import (
    ComparisonMode,
    DiffTag,
    StoreId,
    SyncMode,
    SyncPlan,
    SyncStatus,
)
from mcp_sync.sync.reporter import (
    format_apply_report,
    format_conflict_diff,
    format_sync_plan,
    plan_to_json,
    report_to_json,
)

logger = logging.getLogger(__name__)

_DIFF_PREFIX = {
    DiffTag.EQUAL: " ",
    DiffTag.INSERT: "+",
    DiffTag.DELETE: "-",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store_id(value: str) -> StoreId:
    try:
        return StoreId(value.lower())
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid store '{value}': expected 'a' or 'b'"
        ) from None


def _resolution(value: str) -> tuple[str, StoreId]:
    name, sep, side = value.rpartition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(
            f"invalid resolution '{value}': expected NAME=a or NAME=b"
        )
    return name, _store_id(side)


def _load_settings(
    args: argparse.Namespace,
) -> tuple[Config, UnifiedConfig]:
    """Resolve settings from CLI, environment, .env and YAML files."""
    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()
    config_path = Path(args.config).expanduser() if args.config else None
    unified = build_config(load_hierarchical_config(config_path))

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )

    config = load_config(
        claude_path=args.claude,
        opencode_path=args.opencode,
        pair_id=args.pair_id,
        state_dir=args.state_dir,
        platform=args.platform,
        debug=args.debug,
        yaml_pair=unified.pair,
    )
    if config.debug and not args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    logger.debug(
        "Stores: A=%s (%s), B=%s (%s), pair '%s'",
        config.store_a.path,
        config.store_a.format,
        config.store_b.path,
        config.store_b.format,
        config.pair_id,
    )
    return config, unified


def _load_documents(config: Config) -> dict[StoreId, ConfigDocument]:
    documents = {}
    for store_id in StoreId:
        store = config.store(store_id)
        documents[store_id] = ConfigDocument.load(
            Path(store.path or ""), store.format
        )
    return documents


def _staging_baseline(
    pair_id: str, persistent: JsonBaselineStore
) -> MemoryBaselineStore:
    """In-memory copy of the persistent baseline of *pair_id*."""
    staging = MemoryBaselineStore()
    for name in persistent.names(pair_id):
        entry = persistent.get(pair_id, name)
        if entry is not None:
            staging.put(pair_id, name, entry)
    return staging


def _labels(engine: SyncEngine) -> tuple[str, str]:
    normalizer = engine.normalizer
    return normalizer.schema_a.label, normalizer.schema_b.label


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_plan(args: argparse.Namespace, config: Config) -> int:
    documents = _load_documents(config)
    engine = SyncEngine.from_pair(config.pair())
    plan = engine.analyze(
        documents[StoreId.A].records, documents[StoreId.B].records
    )

    if args.json:
        _print_json(plan_to_json(plan))
        return 0

    label_a, label_b = _labels(engine)
    print(format_sync_plan(plan, label_a, label_b))

    if args.show_diffs:
        for item in plan.conflicts:
            print()
            if args.compare == ComparisonMode.RAW.value:
                print(format_conflict_diff(item, label_a, label_b))
                continue
            lines = engine.compare(item, ComparisonMode(args.compare))
            print(f"Conflict: {item.name} ({args.compare})")
            if lines is None:
                print("  (comparison unavailable)")
                continue
            for line in lines:
                print(f"{_DIFF_PREFIX[line.tag]}{line.content}")
    return 0


def _selected_names(args: argparse.Namespace, plan: SyncPlan) -> list[str]:
    if args.all:
        return [
            item.name
            for item in plan.items
            if item.status != SyncStatus.SYNCED
        ]
    return list(args.names)


def cmd_apply(args: argparse.Namespace, config: Config) -> int:
    documents = _load_documents(config)
    pair = config.pair()
    persistent = JsonBaselineStore(pair.state_path)
    staging = _staging_baseline(pair.pair_id, persistent)
    engine = SyncEngine.from_pair(pair, staging)

    plan = engine.analyze(
        documents[StoreId.A].records, documents[StoreId.B].records
    )
    selected = _selected_names(args, plan)
    if not selected:
        print("Nothing selected. Pass server names or --all.")
        return 0

    mode = SyncMode(args.mode)
    report = engine.apply(
        plan,
        selected,
        mode=mode,
        source=args.source,
        destination=args.destination,
        resolutions=dict(args.keep or []),
    )

    if not args.dry_run:
        for store_id, document in documents.items():
            writes = report.writes_for(store_id)
            if writes:
                document.apply_writes(writes)
                document.save(backup=not args.no_backup)

        # Commit the baseline only once both stores are on disk
        for name in staging.names(pair.pair_id):
            entry = staging.get(pair.pair_id, name)
            if entry is not None and entry != persistent.get(
                pair.pair_id, name
            ):
                persistent.put(pair.pair_id, name, entry)

    if args.json:
        data = report_to_json(report)
        data["dry_run"] = args.dry_run
        _print_json(data)
    else:
        label_a, label_b = _labels(engine)
        if args.dry_run:
            print("DRY RUN -- No changes will be made")
        print(format_apply_report(report, label_a, label_b))
    return 1 if report.failed else 0


def cmd_set_enabled(
    args: argparse.Namespace, config: Config, enabled: bool
) -> int:
    store = config.store(args.store)
    document = ConfigDocument.load(Path(store.path or ""), store.format)
    schema = schema_for(store)
    if document.set_enabled(schema, args.name, enabled):
        document.save(backup=not args.no_backup)
        state = "Enabled" if enabled else "Disabled"
        print(f"{state} '{args.name}' in {schema.label} ({store.path})")
    else:
        state = "enabled" if enabled else "disabled"
        print(f"'{args.name}' is already {state} in {schema.label}")
    return 0


def cmd_delete(args: argparse.Namespace, config: Config) -> int:
    store = config.store(args.store)
    document = ConfigDocument.load(Path(store.path or ""), store.format)
    schema = schema_for(store)
    if not document.delete(schema, args.name):
        print(
            f"'{args.name}' not found in {schema.label}", file=sys.stderr
        )
        return 1
    document.save(backup=not args.no_backup)
    print(f"Deleted '{args.name}' from {schema.label} ({store.path})")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.path).expanduser() if args.path else None
    path, created = ensure_config(target)
    if created:
        print(f"Created starter config: {path}")
    else:
        print(f"Config file already exists: {path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-sync",
        description="Synchronize MCP server entries between Claude and "
        "OpenCode configuration files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what differs between the two stores
  mcp-sync plan

  # Copy a server created in Claude over to OpenCode
  mcp-sync apply web-search

  # Resolve a conflict by keeping store A's value
  mcp-sync apply db --keep db=a

  # Make store A authoritative for every differing server
  mcp-sync apply --all --mode one-way --from a --to b

  # Disable a server in store A
  mcp-sync disable a web-search

Store A is the Claude config and store B the OpenCode config unless the
config file says otherwise.
        """,
    )
    parser.add_argument(
        "--config", help="Config file (takes precedence over discovered files)"
    )
    parser.add_argument(
        "--claude",
        help="Claude config file (overrides MCP_SYNC_CLAUDE_PATH)",
    )
    parser.add_argument(
        "--opencode",
        help="OpenCode config file (overrides MCP_SYNC_OPENCODE_PATH)",
    )
    parser.add_argument(
        "--pair-id",
        help="Store-pair identity keying the baseline "
        "(overrides MCP_SYNC_PAIR_ID)",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory for baseline files (overrides MCP_SYNC_STATE_DIR)",
    )
    parser.add_argument(
        "--platform",
        choices=["linux", "macos", "windows"],
        help="Host platform of both stores (overrides MCP_SYNC_PLATFORM)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mcp-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Show the sync plan")
    plan.add_argument("--json", action="store_true", help="JSON output")
    plan.add_argument(
        "--show-diffs",
        action="store_true",
        help="Print a diff for every conflict",
    )
    plan.add_argument(
        "--compare",
        choices=[m.value for m in ComparisonMode],
        default=ComparisonMode.RAW.value,
        help="Conflict comparison mode for --show-diffs (default: raw)",
    )

    apply = sub.add_parser("apply", help="Apply selected servers")
    apply.add_argument("names", nargs="*", help="Server names to apply")
    apply.add_argument(
        "--all",
        action="store_true",
        help="Select every server that is not in sync",
    )
    apply.add_argument(
        "--mode",
        choices=[m.value for m in SyncMode],
        default=SyncMode.BIDIRECTIONAL.value,
        help="Sync direction policy (default: bidirectional)",
    )
    apply.add_argument(
        "--from",
        dest="source",
        type=_store_id,
        help="Authoritative store in one-way mode (a or b)",
    )
    apply.add_argument(
        "--to",
        dest="destination",
        type=_store_id,
        help="Overwritten store in one-way mode (a or b)",
    )
    apply.add_argument(
        "--keep",
        action="append",
        type=_resolution,
        metavar="NAME=a|b",
        help="Resolve a conflict by keeping one store's value",
    )
    apply.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the result without writing anything",
    )
    apply.add_argument("--json", action="store_true", help="JSON output")

    editors = []
    for command, help_text in (
        ("enable", "Enable one server"),
        ("disable", "Disable one server"),
        ("delete", "Delete one server"),
    ):
        cmd = sub.add_parser(command, help=help_text)
        cmd.add_argument("store", type=_store_id, help="Store (a or b)")
        cmd.add_argument("name", help="Server name")
        editors.append(cmd)

    for cmd in (apply, *editors):
        cmd.add_argument(
            "--no-backup",
            action="store_true",
            help="Do not keep a .bak copy of overwritten files",
        )

    init = sub.add_parser("init", help="Write a starter config file")
    init.add_argument(
        "path",
        nargs="?",
        help="Where to write it (default: .mcp_sync/config.yml)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "init":
            setup_logging(mode="cli", debug=args.debug)
            return cmd_init(args)

        config, _ = _load_settings(args)
        if args.command == "plan":
            return cmd_plan(args, config)
        if args.command == "apply":
            return cmd_apply(args, config)
        if args.command in ("enable", "disable"):
            return cmd_set_enabled(args, config, args.command == "enable")
        return cmd_delete(args, config)
    except (ValueError, OSError, SyncEngineError, yaml.YAMLError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    """Entry point that handles errors gracefully."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
