#!/usr/bin/env python3
"""fc-archive - archive a Farcaster user's casts and threads as markdown.

Usage:
  fcarchive ingest 6546                         # Fetch, traverse, archive, write
  fcarchive ingest 6546 --no-write              # Archive only
  fcarchive write                               # Render the archive to ./out
  fcarchive traverse 6546 0xabc...              # List every reply below a cast
  fcarchive cast 0xabc... 0xdef...              # Look up casts (archive first)
  fcarchive config --init                       # Create a config file
"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .errors import ConfigError


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fcarchive",
        description="Archive Farcaster casts and threads as linked markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  Ingest:
    fcarchive ingest 6546
    fcarchive ingest 6546 --out ./archive --verbose

  Threads:
    fcarchive traverse 6546 0x1234abcd --json
    fcarchive traverse 6546 0x1234abcd --hydrate

  Lookups:
    fcarchive cast 0x1234abcd 0x5678ef01

Run 'fcarchive <command> --help' for detailed command help.
"""
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Config file (default: ~/.config/fc-archive/config.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest
    ingest_parser = subparsers.add_parser(
        "ingest", help="Archive a user's casts, replies and their threads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  fcarchive ingest 6546
  fcarchive ingest 6546 --no-write

NOTES:
  Feeds and conversations are cached forever in the archive DB; re-running
  only fetches what was never fetched before.
"""
    )
    ingest_parser.add_argument("fid", type=int, help="Farcaster user id")
    ingest_parser.add_argument("--no-write", action="store_true", help="Skip markdown output")
    ingest_parser.add_argument("--out", type=Path, default=None, help="Output directory (default: from config)")

    # write
    write_parser = subparsers.add_parser("write", help="Render the archive as markdown")
    write_parser.add_argument("--out", type=Path, default=None, help="Output directory (default: from config)")

    # traverse
    traverse_parser = subparsers.add_parser("traverse", help="Walk the reply graph below a cast (Snapchain)")
    traverse_parser.add_argument("fid", type=int, help="Author fid of the starting cast")
    traverse_parser.add_argument("hash", help="Starting cast hash (0x...)")
    traverse_parser.add_argument("--hydrate", action="store_true", help="Archive every discovered cast")
    traverse_parser.add_argument("--json", action="store_true", help="Output JSON")

    # cast
    cast_parser = subparsers.add_parser("cast", help="Look up casts by hash")
    cast_parser.add_argument("hashes", nargs="+", help="Cast hashes (0x...)")
    cast_parser.add_argument("--json", action="store_true", help="Output raw JSON")

    # config
    config_parser = subparsers.add_parser(
        "config", help="Manage configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  fcarchive config                # Show current config
  fcarchive config --init         # Create config file with defaults
  fcarchive config --path         # Show config file path

CONFIG LOCATION:
  ~/.config/fc-archive/config.yaml
"""
    )
    config_parser.add_argument("--init", action="store_true", help="Create config file with example settings")
    config_parser.add_argument("--path", action="store_true", help="Show config file path")
    config_parser.add_argument("--force", action="store_true", help="Overwrite existing config (with --init)")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "config":
        from .config import find_config_file, init_config, load_config, show_config
        if args.path:
            config_file = args.config or find_config_file()
            if config_file:
                print(config_file)
            else:
                print("(no config file - using defaults)")
            return 0
        elif args.init:
            try:
                path = init_config(force=args.force)
                print(f"✓ Created config file: {path}")
                print("  Edit it to customize settings.")
                return 0
            except FileExistsError as e:
                print(f"✗ {e}")
                print("  Use --force to overwrite.")
                return 1
        else:
            try:
                show_config(load_config(args.config))
            except ConfigError as e:
                print(f"✗ {e}")
                return 1
            return 0

    from .config import Settings
    try:
        settings = Settings.load(args.config)
    except ConfigError as e:
        print(f"✗ {e}")
        return 2

    # Import and run the appropriate command
    if args.command == "ingest":
        from .commands import run_ingest as run
    elif args.command == "write":
        from .commands import run_write as run
    elif args.command == "traverse":
        from .commands import run_traverse as run
    elif args.command == "cast":
        from .commands import run_cast as run
    else:
        parser.print_help()
        return 2

    return run(args, settings)


if __name__ == "__main__":
    sys.exit(main())
