# CLI argument parsing for archpeek

import argparse

from archpeek.modules.keepers.previewer import ArchiveFormat


def build_parser():
    p = argparse.ArgumentParser(
        description="List the contents of zip, tar, gzip, bzip2 and rar archives without extracting them."
    )
    p.add_argument(
        "path",
        nargs="?",
        help="Archive file or folder to preview",
    )
    p.add_argument(
        "--format",
        dest="format",
        choices=[fmt.value for fmt in ArchiveFormat],
        default=None,
        help="Force an archive format instead of detecting it",
    )
    p.add_argument(
        "--flat",
        action="store_true",
        help="Print one line per entry instead of a tree",
    )
    p.add_argument(
        "--simple-output",
        action="store_true",
        help="Hide size and date columns",
    )
    p.add_argument(
        "--json",
        action="store_true",
        help="Print the preview result as JSON",
    )
    p.add_argument(
        "--chunk-size",
        dest="chunk_size",
        type=int,
        default=64,
        help="Read/inflate chunk size in KB for gzip streams (default: 64)",
    )
    p.add_argument(
        "--legacy-long-names",
        action="store_true",
        help="Do not capture GNU long names inside .tar.gz streams",
    )
    p.add_argument(
        "--log-file", "-l",
        dest="log_file",
        help="Path to save a complete log of output",
    )
    p.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress detailed progress output",
    )
    p.add_argument(
        "--tui", "-i",
        action="store_true",
        help="Browse the archive in the terminal UI",
    )
    p.add_argument(
        "--api", "-A",
        action="store_true",
        help="Start the API server (uvicorn on 127.0.0.1:8000)",
    )
    return p


def parse_args(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if args.chunk_size <= 0:
        p.error("--chunk-size must be positive")
    # Show help if no mode selected
    if not args.path and not args.api:
        p.print_help()
        p.exit(0)
    return args
