#  archpeek main CLI: preview, JSON, TUI and API modes with optional logging
#  Lists archive contents by reading headers only
import json
import sys

from archpeek.modules.cli import parse_args
from archpeek.modules.keepers.display import Tee, display_preview_result
from archpeek.modules.keepers.previewer import ArchiveFormat, ParseOptions, preview_path
from archpeek.modules.keepers.tree_builder import use_system_collation


def main(argv=None):
    args = parse_args(argv)
    use_system_collation()

    # --- API server mode ---
    if args.api:
        import uvicorn
        print("[*] Starting API server on http://127.0.0.1:8000/docs")
        uvicorn.run("archpeek.modules.api.api:app", host="127.0.0.1", port=8000, reload=True)
        return 0

    options = ParseOptions(
        chunk_size=args.chunk_size * 1024,
        capture_long_names=not args.legacy_long_names,
    )
    fmt = ArchiveFormat(args.format) if args.format else None

    # --- TUI mode ---
    if args.tui:
        from archpeek.tui import ArchivePreviewApp
        ArchivePreviewApp(args.path, options=options, fmt=fmt).run()
        return 0

    # set up logging/tee if requested
    log_f = None
    if args.log_file:
        log_f = open(args.log_file, "w", encoding="utf-8")
        sys.stdout = Tee(sys.stdout, log_f)
        sys.stderr = Tee(sys.stderr, log_f)

    try:
        verbose = not args.quiet and not args.json

        result = preview_path(args.path, fmt=fmt, options=options, verbose=verbose)

        # --- json mode ---
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            display_preview_result(
                result,
                flat=args.flat,
                simple=args.simple_output,
                verbose=verbose,
            )
        return 1 if result.error else 0
    finally:
        if log_f is not None:
            sys.stdout = sys.stdout.files[0]
            sys.stderr = sys.stderr.files[0]
            log_f.close()


if __name__ == "__main__":
    sys.exit(main())
