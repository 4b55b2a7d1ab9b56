"""tagsmith CLI - write audio metadata from the command line."""
import os
import sys
import argparse
import json
import logging
from pathlib import Path
from collections import defaultdict
from typing import Dict, List

from .core import SUPPORTED_EXT
from .tags import Tag, CommonTags, parse_assignment
from .utils import (
    Config,
    setup_logging,
    normalize_extension,
    join_for_printing,
    EXIT_CODE_SUCCESS,
    EXIT_CODE_ERROR,
    EXIT_CODE_USAGE,
    EXIT_CODE_PERMISSION,
    EXIT_CODE_INTERRUPTED,
    EXIT_CODE_NO_FILES,
    EXIT_CODE_DISK_FULL
)
from .processor import (
    ProcessResultType,
    process_files,
    collect_files_generator,
    register_signal_handlers,
    unregister_signal_handlers
)

logger = logging.getLogger(__name__)

# ---------- CLI & Main ----------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="tagsmith - write MP3 and FLAC metadata")

    parser.add_argument("path", nargs='?', default='.', help="Directory or file to process")

    # Tags
    parser.add_argument("--set", dest="set_tags", action='append', default=[], metavar="KEY=VALUE",
                        help="Text tag to write (repeatable)")
    parser.add_argument("--number", dest="number_tags", action='append', default=[], metavar="KEY=N",
                        help="Numeric tag to write (repeatable)")
    parser.add_argument("--art", help="Image file to embed as front cover")
    parser.add_argument("--clear", action='store_true', help="Remove metadata instead of writing tags")

    # File selection
    parser.add_argument("--recursive", action='store_true', help="Recurse into subdirectories")
    parser.add_argument("--ext", default=None, help="Comma-separated extensions to include")

    # Threading and performance
    parser.add_argument("--threads", type=int, default=None,
                        help="Number of threads for parallel processing (default: auto)")

    # Safety and output
    parser.add_argument("--dry-run", action='store_true', help="Do not write files")
    parser.add_argument("--no-verify", action='store_true', help="Skip reading tags back after writing")
    parser.add_argument("--json-report", help="Write JSON report to file")
    parser.add_argument("--list-formats", action='store_true', help="Print supported extensions and exit")

    # Logging
    parser.add_argument("--verbose", action='store_true', default=None,
                        help="Enable verbose logging (overrides TAGSMITH_VERBOSE env var)")
    return parser

def validate_args(args: argparse.Namespace) -> None:
    """Validate command line arguments comprehensively."""
    errors = []

    has_tags = bool(args.set_tags or args.number_tags or args.art)
    if args.clear and has_tags:
        errors.append("--clear cannot be combined with --set/--number/--art")
    if not args.clear and not has_tags:
        errors.append("nothing to do: give --set, --number, --art or --clear")

    # Validate path
    if not os.path.exists(args.path):
        errors.append(f"Path does not exist: {args.path}")
    elif not os.access(args.path, os.R_OK):
        errors.append(f"No read permission for path: {args.path}")

    if args.art:
        if not os.path.isfile(args.art):
            errors.append(f"Album art file does not exist: {args.art}")
        elif not os.access(args.art, os.R_OK):
            errors.append(f"No read permission for album art file: {args.art}")

    # Validate thread count
    if args.threads is not None and args.threads < 1:
        errors.append("--threads must be at least 1")

    if errors:
        raise ValueError("; ".join(errors))

def build_tags_from_args(args: argparse.Namespace) -> List[Tag]:
    """Build the tag list from --set, --number and --art, in that order."""
    tags = []
    for expr in args.set_tags:
        key, value = parse_assignment(expr)
        tags.append(Tag.text(key, value))

    for expr in args.number_tags:
        key, value = parse_assignment(expr)
        try:
            number = int(value)
        except ValueError:
            try:
                number = float(value)
            except ValueError:
                raise ValueError(f"not a number: {expr!r}") from None
        tags.append(Tag.number(key, number))

    if args.art:
        try:
            image = Path(args.art).read_bytes()
        except OSError as e:
            raise ValueError(f"cannot read album art file {args.art}: {e}") from e
        tags.append(Tag.binary(CommonTags.ALBUMART, image))

    return tags

def main() -> None:
    """Main CLI entry point."""
    register_signal_handlers()
    try:
        parser = build_parser()
        args = parser.parse_args()

        # Configuration precedence: CLI flag > environment variable > default
        try:
            Config.load_from_env()
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(EXIT_CODE_USAGE)

        if args.verbose is None:
            args.verbose = Config.DEFAULT_VERBOSE

        setup_logging(args.verbose)

        if args.list_formats:
            for ext in sorted(SUPPORTED_EXT):
                print(ext)
            sys.exit(EXIT_CODE_SUCCESS)

        # Validate arguments
        try:
            validate_args(args)
            tags = build_tags_from_args(args)
        except ValueError as e:
            logger.error(f"Argument validation failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            if "permission" in str(e).lower():
                sys.exit(EXIT_CODE_PERMISSION)
            sys.exit(EXIT_CODE_USAGE)

        # Process files
        try:
            exit_code = run_processing_session(args, tags)
            sys.exit(exit_code)
        except KeyboardInterrupt:
            sys.exit(EXIT_CODE_INTERRUPTED)
        except PermissionError as e:
            print(f"Permission denied: {e}", file=sys.stderr)
            sys.exit(EXIT_CODE_PERMISSION)
        except OSError as e:
            if e.errno == 28: # ENOSPC: No space left on device
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(EXIT_CODE_DISK_FULL)
            logger.error(f"Unexpected error: {e}", exc_info=True)
            print(f"Unexpected error: {e}", file=sys.stderr)
            sys.exit(EXIT_CODE_ERROR)
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            print(f"Unexpected error: {e}", file=sys.stderr)
            sys.exit(EXIT_CODE_ERROR)

    finally:
        # Ensure signal handlers are unregistered on exit
        unregister_signal_handlers()

def run_processing_session(args: argparse.Namespace, tags: List[Tag]) -> int:
    """Process files and print results. Returns exit code."""
    ext_set = None
    if args.ext:
        ext_set = {normalize_extension(e) for e in args.ext.split(',') if e.strip()}

    # Collect all matching audio files from the path (may be a single file or directory)
    files = list(collect_files_generator(Path(args.path), recursive=args.recursive, ext_set=ext_set))

    if not files:
        print("No files found matching criteria.")
        if args.json_report:
            save_json_report([], args.json_report)
        return EXIT_CODE_NO_FILES

    print(f"Processing {len(files)} file(s)...", flush=True)

    results = process_files(
        files,
        tags,
        max_workers=args.threads,
        verbose=args.verbose,
        clear=args.clear,
        dry_run=args.dry_run,
        verify=not args.no_verify
    )

    per_ext = defaultdict(list)
    for rec in results:
        per_ext[rec.get('ext', '')].append(rec.get('passed', False))

        # Show details for small batches or verbose mode
        if len(files) <= 10 or args.verbose:
            print_file_result(rec, args)

    return generate_summary(results, per_ext, args)

def print_file_result(rec: ProcessResultType, args: argparse.Namespace) -> None:
    """Print detailed result for a single file."""
    print(f"\nFile: {rec['path']}")

    if rec.get('error'):
        print(f"  ERROR: {rec.get('error')}")
        return

    for tag in rec.get('tags', []):
        print(f"    {tag}")

    if args.dry_run:
        print(f"  Dry-run: {rec.get('size_before')} -> {rec.get('size_after')} bytes")
        return

    if rec.get('wrote'):
        verified = rec.get('verified', {})
        failed = [k for k, v in verified.items() if not v]
        if failed:
            print(f"  Modification: FAILED verification for: {join_for_printing(failed)}")
        elif verified:
            print("  Modification: SUCCESS (verified)")
        else:
            print("  Modification: SUCCESS")

def generate_summary(results: List[ProcessResultType], per_ext: Dict[str, List[bool]], args: argparse.Namespace) -> int:
    """Generate and print processing summary. Returns exit code."""
    total_files = len(results)
    successful = sum(1 for r in results if r.get('passed', False))
    failed = total_files - successful

    print(f"\n--- SUMMARY ---")
    print(f"Total files processed: {total_files}")
    print(f"Successful: {successful}")
    print(f"Failed: {failed}")

    # Per-extension summary
    if per_ext:
        print("\nPer extension results:")
        for ext, results_list in sorted(per_ext.items()):
            passed_count = sum(1 for r in results_list if r)
            total_count = len(results_list)
            status = "ALL PASSED" if passed_count == total_count else f"{passed_count}/{total_count} passed"
            print(f"  {ext or 'no ext'}: {status}")

    if args.json_report:
        save_json_report(results, args.json_report)

    # Check for critical errors in results
    for r in results:
        exc = r.get('exception')
        if exc and isinstance(exc, OSError) and exc.errno == 28: # ENOSPC
            return EXIT_CODE_DISK_FULL
        if exc and isinstance(exc.__cause__, OSError) and exc.__cause__.errno == 28:
            return EXIT_CODE_DISK_FULL

    return EXIT_CODE_ERROR if failed else EXIT_CODE_SUCCESS

def save_json_report(results: List[ProcessResultType], report_path: str) -> None:
    """Save processing results as a JSON report."""
    from datetime import datetime

    report_data = {
        "version": "1.0",
        "timestamp": datetime.now().isoformat(),
        "summary": {
            "total": len(results),
            "success": sum(1 for r in results if r.get('passed', False)),
            "failed": sum(1 for r in results if not r.get('passed', False)),
        },
        "files": []
    }

    for r in results:
        file_record = {
            "path": r.get('path', ''),
            "status": "error" if r.get('error') else ("success" if r.get('passed') else "failed"),
        }
        if r.get('tags'):
            file_record["tags"] = r['tags']
        if r.get('verified'):
            file_record["verified"] = r['verified']
        if r.get('error'):
            file_record["error"] = r['error']
        report_data["files"].append(file_record)

    try:
        with open(report_path, 'w', encoding='utf-8') as f:
            json.dump(report_data, f, ensure_ascii=False, indent=2, default=str)
        print(f"JSON report written to {report_path}")
    except OSError as e:
        print(f"Failed to write JSON report: {e}", file=sys.stderr)


if __name__ == '__main__':
    main()
