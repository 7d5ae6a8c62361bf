"""
PAYFLOW MAIN - Command Line Tools for Workflow Files

Commands:
    layout   - Auto-layout an exported workflow file
    inspect  - Show the nodes and edges of a workflow file as tables
    check    - Check whether a connection between two nodes is legal

Usage:
    # Re-arrange a workflow and write it back (or to another file)
    python main.py layout workflow.json
    python main.py layout workflow.json -o arranged.json

    # Tabular view of a workflow
    python main.py inspect workflow.json

    # Would payment-initialize -> Stripe-4 be accepted?
    python main.py check workflow.json payment-initialize Stripe-4
"""
import logging
import sys
from pathlib import Path
from typing import List, Optional

import polars as pl

from api.editor import DEFAULT_PLACEHOLDERS
from core.graph_store import GraphStore
from core.layout import layout
from core.serializer import MalformedDataError, export_to_file, import_from_file
from core.validator import is_legal_connection
from infrastructure.config import load_config

logger = logging.getLogger(__name__)


def _read_workflow(path: str):
    """Load a workflow file or exit with a message."""
    try:
        return import_from_file(path, DEFAULT_PLACEHOLDERS)
    except FileNotFoundError:
        print(f"Error: File not found: {path}")
    except (OSError, MalformedDataError) as e:
        print(f"Error: Could not read workflow: {e}")
    sys.exit(1)


def cmd_layout(args):
    """Auto-layout a workflow file."""
    graph = _read_workflow(args.file)
    config = load_config(args.config)

    arranged = layout(graph, config.layout.to_options())
    output = Path(args.output or args.file)
    export_to_file(arranged, output)

    print(f"Laid out {len(arranged.nodes)} nodes, {len(arranged.edges)} edges")
    print(f"  Written: {output}")


def cmd_inspect(args):
    """Print node and edge tables."""
    store = GraphStore(_read_workflow(args.file))

    with pl.Config(tbl_rows=-1, tbl_hide_dataframe_shape=True):
        print(f"{'='*60}")
        print(f"NODES ({store.node_count})")
        print(f"{'='*60}")
        print(store.to_polars_nodes())

        print(f"\n{'='*60}")
        print(f"EDGES ({store.edge_count})")
        print(f"{'='*60}")
        print(store.to_polars_edges())

        kinds = store.to_polars_nodes().group_by("kind").len().sort("kind")
        print("\nBy kind:")
        for kind, count in kinds.iter_rows():
            print(f"  {kind:<12} {count:>4}")


def cmd_check(args):
    """Report whether source -> target would be accepted."""
    graph = _read_workflow(args.file)

    for node_id in (args.source, args.target):
        if not graph.has_node(node_id):
            print(f"Unknown node: {node_id}")

    if is_legal_connection(graph, args.source, args.target):
        print(f"OK: {args.source} -> {args.target}")
        return
    print(f"Rejected: {args.source} -> {args.target}")
    sys.exit(1)


def main(argv: Optional[List[str]] = None):
    """Main entry point with subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Payflow - Payment Workflow Graph Tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", help="Path to payflow.toml (defaults to config/payflow.toml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # layout command
    layout_parser = subparsers.add_parser("layout", help="Auto-layout a workflow file")
    layout_parser.add_argument("file", help="Exported workflow JSON")
    layout_parser.add_argument("--output", "-o", help="Output file (defaults to overwriting FILE)")
    layout_parser.set_defaults(func=cmd_layout)

    # inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Show nodes and edges as tables")
    inspect_parser.add_argument("file", help="Exported workflow JSON")
    inspect_parser.set_defaults(func=cmd_inspect)

    # check command
    check_parser = subparsers.add_parser("check", help="Check a connection against the rules")
    check_parser.add_argument("file", help="Exported workflow JSON")
    check_parser.add_argument("source", help="Source node id")
    check_parser.add_argument("target", help="Target node id")
    check_parser.set_defaults(func=cmd_check)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    args.func(args)


if __name__ == "__main__":
    main()
