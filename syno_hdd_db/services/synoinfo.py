"""
Edits of /etc.defaults/synoinfo.conf.

support_disk_compatibility switches DSM's drive compatibility check on or off.
drive_db_test_url is pointed at 127.0.0.1 so DSM cannot download a fresh
database over the patched one.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from syno_hdd_db.config import get_settings
from syno_hdd_db.errors import ConfigBackupError
from syno_hdd_db.services.locator import backup_once, read_key_values

logger = logging.getLogger(__name__)

SUPPORT_DISK_COMPATIBILITY = "support_disk_compatibility"
DRIVE_DB_TEST_URL = "drive_db_test_url"
BLACKHOLE_URL = "127.0.0.1"


def get_key_value(path: Path, key: str) -> Optional[str]:
    return read_key_values(path).get(key)


def set_key_value(path: Path, key: str, value: str) -> None:
    """
    Set key to value, keeping the quoting style of an existing line.

    Only the first line for key is rewritten. A missing key is appended as
    key=value.
    """
    text = path.read_text(encoding="utf-8", errors="replace")
    pattern = re.compile(
        r'^(?P<prefix>\s*' + re.escape(key) + r'\s*=\s*)(?P<quote>"?)[^"\n]*"?',
        re.MULTILINE,
    )

    def _replace(match: "re.Match[str]") -> str:
        quote = match.group("quote")
        return f"{match.group('prefix')}{quote}{value}{quote}"

    updated, count = pattern.subn(_replace, text, count=1)
    if not count:
        if updated and not updated.endswith("\n"):
            updated += "\n"
        updated += f"{key}={value}\n"

    if updated != text:
        path.write_text(updated, encoding="utf-8")


def _backup_config(path: Path) -> None:
    try:
        created = backup_once(path)
    except OSError as exc:
        raise ConfigBackupError(f"Failed to backup {path.name}!") from exc
    if created:
        logger.info("Backed up %s to %s.bak", path.name, path.name)


def apply_disk_compatibility(path: Path, force: bool) -> Optional[str]:
    """
    --force turns the compatibility check off, a normal run turns it back on.

    Returns the new value if the file was changed, None otherwise.
    """
    setting = get_key_value(path, SUPPORT_DISK_COMPATIBILITY)
    if force and setting == "yes":
        wanted = "no"
    elif not force and setting == "no":
        wanted = "yes"
    else:
        return None

    _backup_config(path)
    set_key_value(path, SUPPORT_DISK_COMPATIBILITY, wanted)
    if get_key_value(path, SUPPORT_DISK_COMPATIBILITY) != wanted:
        logger.error("Failed to set %s=%s", SUPPORT_DISK_COMPATIBILITY, wanted)
        return None

    if wanted == "no":
        logger.info("Disabled support disk compatibility.")
    else:
        logger.info("Re-enabled support disk compatibility.")
    return wanted


def disable_db_updates(path: Path) -> bool:
    """
    Point drive_db_test_url at 127.0.0.1.

    Returns True if the file was changed. Running it again is a no-op.
    """
    url = get_key_value(path, DRIVE_DB_TEST_URL)
    if url == BLACKHOLE_URL:
        return False

    _backup_config(path)
    set_key_value(path, DRIVE_DB_TEST_URL, BLACKHOLE_URL)
    if get_key_value(path, DRIVE_DB_TEST_URL) != BLACKHOLE_URL:
        logger.error("Failed to disable drive db auto updates!")
        return False

    logger.info("Disabled drive db auto updates.")
    return True


def apply_system_settings(force: bool) -> None:
    path = get_settings().synoinfo_path
    if not path.is_file():
        logger.warning("%s not found, leaving system settings alone", path)
        return

    apply_disk_compatibility(path, force)
    disable_db_updates(path)
