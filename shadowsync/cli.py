"""
Command Line Interface

Entry point for the shadowsync console script. Resolves settings (YAML
file, SHADOWSYNC_* environment variables, then command-line options),
runs one sync and exits with 0 on success, 1 if any action failed and 2 on
configuration or scan errors.

Author: shadowsync Project
License: MIT
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from .config.config_loader import ConfigLoader
from .core.errors import ConfigurationError, ScanError
from .core.sync_engine import SyncEngine
from .utils.logger import setup_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED_ACTIONS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowsync",
        description="Mirror a source folder onto a backup target. Nothing on the target is "
                    "deleted: removed and overwritten content is moved to a lost-and-found "
                    "folder inside the target.",
    )
    parser.add_argument("source", nargs="?", help="Folder to copy from (never modified).")
    parser.add_argument("target", nargs="?", help="Backup folder to update.")
    parser.add_argument("-c", "--config", metavar="FILE", help="YAML file with settings.")
    parser.add_argument("-v", "--verbose", action="store_const", const=True, help="Print every run log record.")
    parser.add_argument("-n", "--dry-run", action="store_const", const=True, help="Plan and log, but do not change anything.")
    parser.add_argument("--checksum", action="store_const", const=True, help="Compare same-size files by content hash.")
    parser.add_argument("--no-move-folders", dest="move_folders", action="store_const", const=False, help="Do not detect moved folders.")
    parser.add_argument("--no-sync-files", dest="sync_files", action="store_const", const=False, help="Do not copy or overwrite files.")
    parser.add_argument("--no-delete", dest="delete", action="store_const", const=False, help="Report target entries missing from the source instead of relocating them.")
    parser.add_argument("--no-keep-versions", dest="keep_versions", action="store_const", const=False, help="Overwrite outdated files without keeping the old version.")
    parser.add_argument("--workers", type=int, help="Threads used for file copies.")
    parser.add_argument("--log-dir", help="Directory for the run log.")
    parser.add_argument("--log-level", help="Application log level.")
    return parser


def parse_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Turn parsed options into settings overrides (unset options are None)."""
    return {
        "source": args.source,
        "target": args.target,
        "verbose": args.verbose,
        "dry_run": args.dry_run,
        "checksum": args.checksum,
        "move_folders": args.move_folders,
        "sync_files": args.sync_files,
        "delete": args.delete,
        "keep_versions": args.keep_versions,
        "workers": args.workers,
        "log_dir": args.log_dir,
        "log_level": args.log_level.upper() if args.log_level else None,
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = ConfigLoader(args.config).load(parse_overrides(args))
    except ConfigurationError as e:
        setup_logging()
        logger.error(str(e))
        return EXIT_ERROR

    setup_logging(log_level=settings.log_level, json_format=settings.json_logs)

    try:
        report = SyncEngine(settings).run()
    except ScanError as e:
        logger.error(str(e))
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"Could not write run log: {e}")
        return EXIT_ERROR

    return EXIT_OK if report.success else EXIT_FAILED_ACTIONS


if __name__ == "__main__":
    sys.exit(main())
