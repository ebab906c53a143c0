#!/usr/bin/env python3
"""
syno-hdd-db

Adds the drives installed in a Synology NAS to DSM's drive compatibility
database, so they are no longer reported as unverified or incompatible.

Run as root, manually or as a scheduled task:

    syno-hdd-db
    syno-hdd-db --showedits
    syno-hdd-db --force --showedits

A reboot may be needed before DSM picks up the changes.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from syno_hdd_db.config import get_settings
from syno_hdd_db.errors import HddDbError, RootRequiredError
from syno_hdd_db.models.database import EditCounter
from syno_hdd_db.models.drive import DriveRecord
from syno_hdd_db.services import inventory, locator, reconciler, reporter, synoinfo

__version__ = "1.1.8"

logger = logging.getLogger("syno_hdd_db")


def setup_logging(debug: bool = False) -> None:
    if logger.handlers:
        logger.setLevel(logging.DEBUG if debug else logging.INFO)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def _is_root() -> bool:
    return os.geteuid() == 0


def _log_drives(title: str, records: List[DriveRecord]) -> None:
    logger.info("%s: %d", title, len(records))
    for record in records:
        logger.info("%s", record.key)


def run(show_edits: bool = False, force: bool = False) -> EditCounter:
    """
    One complete pass: inventory, databases, system settings, report.

    Raises an HddDbError subclass for every fatal condition; nothing in here
    terminates the process.
    """
    if not _is_root():
        raise RootRequiredError("This script must be run as root or sudo!")

    drives = inventory.collect_inventory()
    _log_drives("HDD/SSD models found", drives.hdds)
    if drives.nvmes:
        _log_drives("NVMe drive models found", drives.nvmes)
    else:
        logger.info("No NVMe drives found")

    paths = locator.locate_databases()
    logger.debug("Active database: %s, pending database: %s", paths.active, paths.pending)

    locator.ensure_databases_exist(paths)
    locator.backup_databases(paths)

    counter = EditCounter()
    reconciler.reconcile_inventory(drives.hdds, paths, counter)
    reconciler.reconcile_inventory(drives.nvmes, paths, counter)

    synoinfo.apply_system_settings(force)

    if show_edits:
        for path in paths.files():
            reporter.show_edits(path, counter.get(path))

    logger.info("You may need to reboot the Synology to see the changes.")
    return counter


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="syno-hdd-db",
        description=(
            "Add installed HDD, SSD and NVMe drives to the Synology drive "
            "compatibility database."
        ),
    )
    parser.add_argument(
        "-s",
        "--showedits",
        action="store_true",
        help="Show the tail of each changed database after the run.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help=(
            "Disable support_disk_compatibility in synoinfo.conf. "
            "Without it a previously disabled check is re-enabled."
        ),
    )
    parser.add_argument(
        "-n",
        "--nodbupdate",
        action="store_true",
        help="Reserved. Drive database auto updates are always disabled.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging of device queries.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.debug)
    logger.debug("syno-hdd-db v%s, settings: %s", __version__, get_settings())

    try:
        run(show_edits=args.showedits, force=args.force)
    except HddDbError as exc:
        logger.error("%s", exc)
        return exc.exit_code

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
