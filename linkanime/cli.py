#!/usr/bin/env python3
"""
linkanime - hardlink downloads into an anime library

Command-line front end for the link engine.
"""
import argparse
import logging
import sys
from pathlib import Path

from .classifier import VideoClassifier
from .config import load_config, resolve_paths
from .history import HistoryError, LinkHistory, NoHistoryError
from .linker import LinkEngine, LinkError, SeasonLinkError
from .models import LinkRequest, LinkResult
from .parser import parse_release_name
from .progress import CallbackSink
from .settings import SettingsManager

log = logging.getLogger(__name__)


def format_size(size: int) -> str:
    """Human-readable byte count."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def print_progress(message: dict) -> None:
    """Print one progress message."""
    if message.get("type") != "progress":
        return
    status = message["status"].upper()
    print(f"  [{message['current']}/{message['total']}] [{status}] {message['file']}")


def print_summary(result: LinkResult, verb: str = "Linked") -> None:
    print("-" * 50)
    print(
        f"{verb}: {result.linked_count} | Skipped: {result.skipped_count} | "
        f"Failed: {result.failed_count} | Size: {format_size(result.total_bytes)}"
    )
    if result.dest_dir:
        print(f"Destination: {result.dest_dir}")
    if result.history_error:
        print(f"[WARN] History not saved: {result.history_error}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_parse(args, engine, paths) -> int:
    for raw in args.names:
        parsed = parse_release_name(raw)
        season = parsed.season if parsed.season is not None else "-"
        print(f"{raw}")
        print(f"  -> name: {parsed.name!r}  season: {season}")
    return 0


def cmd_link(args, engine, paths) -> int:
    request = LinkRequest(
        source=args.source,
        media_type=args.type,
        name=args.name,
        season=args.season,
        dry_run=args.dry_run,
    )
    if args.dry_run:
        print("[DRY RUN - no links will be created]\n")
    result = engine.link(request, paths, CallbackSink(print_progress))
    print_summary(result, "Would link" if args.dry_run else "Linked")
    return 0 if result.failed_count == 0 else 1


def cmd_undo(args, engine, paths) -> int:
    result, entry = engine.undo(paths, dry_run=args.dry_run)
    season = f" Season {entry.season}" if entry.season is not None else ""
    print(f"{'Would undo' if args.dry_run else 'Undid'}: {entry.show_name}{season} "
          f"({entry.file_count} file(s), {entry.timestamp})")
    for path in result.files:
        print(f"  {path}")
    print_summary(result, "Would remove" if args.dry_run else "Removed")
    return 0 if result.failed_count == 0 else 1


def cmd_history(args, engine, paths) -> int:
    entries = engine.get_history(args.limit)
    if not entries:
        print("No history.")
        return 0
    for entry in entries:
        season = f"S{entry.season:02d}" if entry.season is not None else "movie"
        print(
            f"#{entry.id}  {entry.timestamp}  {entry.show_name} [{season}]  "
            f"{entry.file_count} file(s), {format_size(entry.total_bytes)}  <- {entry.source_label}"
        )
    return 0


def cmd_unlink(args, engine, paths) -> int:
    result = engine.unlink(args.path, paths, dry_run=args.dry_run)
    for path in result.files:
        print(f"  {path}")
    print_summary(result, "Would remove" if args.dry_run else "Removed")
    return 0 if result.failed_count == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkanime",
        description="Hardlink downloaded anime into a media library."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed debug information"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for the history database and settings (default: LA_DATA_DIR)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Show the name and season parsed from release names")
    p.add_argument("names", nargs="+", help="Release folder or file names")
    p.set_defaults(func=cmd_parse)

    p = sub.add_parser("link", help="Hardlink a download into the library")
    p.add_argument("source", help="Folder or file name inside the download directory")
    p.add_argument("--type", choices=["series", "movie"], default="series",
                   help="Media type (default: series)")
    p.add_argument("--name", help="Library name (default: parsed from source)")
    p.add_argument("--season", type=int, default=None,
                   help="Season number (default: parsed from source, else 1)")
    p.add_argument("--dry-run", action="store_true",
                   help="Show what would be linked without creating links")
    p.set_defaults(func=cmd_link)

    p = sub.add_parser("undo", help="Remove the links of the most recent operation")
    p.add_argument("--dry-run", action="store_true",
                   help="Show what would be removed")
    p.set_defaults(func=cmd_undo)

    p = sub.add_parser("history", help="List recent link operations")
    p.add_argument("--limit", type=int, default=50, metavar="N",
                   help="Number of entries to show (default: 50)")
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("unlink", help="Remove every video file under a library folder")
    p.add_argument("path", type=Path, help="Library folder")
    p.add_argument("--dry-run", action="store_true",
                   help="Show what would be removed")
    p.set_defaults(func=cmd_unlink)

    return parser


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parsed_args = build_parser().parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s: %(message)s",
    )

    if parsed_args.command == "parse":
        return cmd_parse(parsed_args, None, None)

    config = load_config()
    if parsed_args.data_dir is not None:
        config.data_dir = parsed_args.data_dir
    paths = resolve_paths(config, SettingsManager(config.settings_path))

    if parsed_args.command == "link":
        # Fill in name/season from the release name when not given
        parsed = parse_release_name(parsed_args.source)
        if not parsed_args.name:
            parsed_args.name = parsed.name
        if parsed_args.season is None:
            parsed_args.season = parsed.season if parsed.season is not None else 1

    history = None
    try:
        history = LinkHistory(config.db_path)
        engine = LinkEngine(history, VideoClassifier(config.video_extensions))
        return parsed_args.func(parsed_args, engine, paths)
    except NoHistoryError as e:
        print(f"Nothing to undo: {e}")
        return 1
    except SeasonLinkError as e:
        print(f"Error: {e}")
        print_summary(e.partial, "Linked before failure")
        return 1
    except (LinkError, HistoryError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        if history is not None:
            history.close()


if __name__ == "__main__":
    sys.exit(main())
