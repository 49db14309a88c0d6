#!/usr/bin/env python3
"""
World Document Markdown Exporter - Main CLI Entry Point

Exports a folder, collection or single document from a world snapshot into
a zip archive of cross-linked Markdown notes with bundled assets.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from config_loader import ConfigLoader, ExportOptions, get_nested
from exporters import TemplateRenderError, export_hierarchy
from logger import LOGGER_NAME, log_config, log_section, setup_logging
from models import SourceFormatError, load_source

__version__ = "1.0.0"

DEFAULT_CONFIG = 'config.yaml'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export world documents to a zip archive of Markdown notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export a whole snapshot
  python export_markdown.py --source world.json

  # Export one folder, naming files after documents instead of identities
  python export_markdown.py --source world.json --root Folder.abc123 --names

  # JSON data dumps into a custom directory
  python export_markdown.py --source world.yaml --dump-format JSON --output-dir out

  # Verbose logging
  python export_markdown.py --source world.json -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=DEFAULT_CONFIG,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG}, optional)'
    )

    parser.add_argument(
        '--source',
        type=str,
        required=True,
        help='World snapshot to export (JSON or YAML)'
    )

    parser.add_argument(
        '--root',
        type=str,
        help='Identity of the node to export (default: the snapshot root)'
    )

    parser.add_argument(
        '--name',
        type=str,
        help='Archive name without extension (default: the root node name)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory the archive is written to'
    )

    parser.add_argument(
        '--dump-format',
        choices=['YAML', 'JSON'],
        help='Format of structured data dumps'
    )

    parser.add_argument(
        '--asset-base-url',
        type=str,
        help='Base URL relative asset paths are fetched from'
    )

    parser.add_argument(
        '--asset-root',
        type=str,
        help='Directory relative asset paths are read from'
    )

    naming = parser.add_mutually_exclusive_group()
    naming.add_argument(
        '--uuids',
        dest='use_uuid',
        action='store_const',
        const=True,
        default=None,
        help='Name files and folders after document identities'
    )
    naming.add_argument(
        '--names',
        dest='use_uuid',
        action='store_const',
        const=False,
        help='Name files and folders after document names'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_snapshot(source_path: str) -> Dict[str, Any]:
    """Read a world snapshot; `.json` files are parsed as JSON, anything else as YAML."""
    path = Path(source_path)
    if not path.exists():
        raise FileNotFoundError(f"Source snapshot not found: {source_path}")

    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() == '.json':
            return json.load(f)
        return yaml.safe_load(f)


def run_export(config: Dict[str, Any], args: argparse.Namespace, logger: logging.Logger) -> int:
    """Load the snapshot, pick the export root and write the archive."""
    snapshot = load_snapshot(args.source)
    root, index = load_source(snapshot)

    if args.root:
        node = index.documents.get(args.root)
        if node is None:
            logger.error(f"No node with identity '{args.root}' in {args.source}")
            return 1
        root = node

    options = ExportOptions.from_config(config)
    archive_name = args.name or root.name

    try:
        target = export_hierarchy(root, archive_name, options, index=index)
    except TemplateRenderError as e:
        logger.error(f"Export aborted: {e}")
        return 2

    logger.info(f"Archive written to {target}")
    print(target)
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger(LOGGER_NAME)

        log_section("World Document Markdown Exporter")
        logger.info(f"Version: {__version__}")

        config: Dict[str, Any] = {}
        if os.path.exists(args.config):
            logger.info(f"Loading configuration from {args.config}")
            config = ConfigLoader.load(args.config)
        elif args.config != DEFAULT_CONFIG:
            raise FileNotFoundError(f"Configuration file not found: {args.config}")

        # CLI arguments take precedence over the config file
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level')
        )
        log_config(config)

        return run_export(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 1
    except (ValueError, SourceFormatError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
