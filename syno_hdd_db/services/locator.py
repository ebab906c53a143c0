import logging
import shutil
from pathlib import Path
from typing import Dict, Optional

from syno_hdd_db.config import Settings, get_settings
from syno_hdd_db.errors import (
    ActiveDatabaseMissingError,
    BackupError,
    PendingDatabaseMissingError,
)
from syno_hdd_db.models.database import DatabasePaths, backup_path

logger = logging.getLogger(__name__)


def read_key_values(path: Path) -> Dict[str, str]:
    """
    Parse a DSM style key="value" file (VERSION, synoinfo.conf).

    Blank lines and comments are skipped, surrounding quotes are removed. The
    first occurrence of a key wins.
    """
    values: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values.setdefault(key.strip(), value.strip().strip('"'))
    return values


def normalize_platform_model(raw: str) -> str:
    """Lower-case the hardware model and drop the "-j" variant suffix."""
    model = raw.strip().lower()
    if model.endswith("-j"):
        model = model[:-2]
    return model


def read_platform_model(settings: Settings) -> str:
    return normalize_platform_model(
        settings.hw_version_path.read_text(encoding="utf-8")
    )


def read_dsm_major_version(settings: Settings) -> Optional[int]:
    try:
        raw = read_key_values(settings.version_path).get("majorversion", "")
    except OSError:
        raw = ""
    try:
        return int(raw)
    except ValueError:
        logger.warning("No usable majorversion in %s", settings.version_path)
        return None


def database_paths(db_dir: Path, platform_model: str, major: Optional[int]) -> DatabasePaths:
    """
    Build the active/pending database paths.

    DSM 6 and older use <model>_host.db, DSM 7+ appends the major version:
    <model>_host_v7.db.
    """
    suffix = f"_v{major}" if major is not None and major > 6 else ""
    active = db_dir / f"{platform_model}_host{suffix}.db"
    return DatabasePaths(active=active, pending=active.with_name(active.name + ".new"))


def locate_databases() -> DatabasePaths:
    """Resolve the databases of the running platform without checking them."""
    settings = get_settings()
    try:
        platform_model = read_platform_model(settings)
    except OSError as exc:
        raise ActiveDatabaseMissingError(
            f"Cannot read platform model from {settings.hw_version_path}"
        ) from exc

    return database_paths(
        settings.db_dir,
        platform_model,
        read_dsm_major_version(settings),
    )


def ensure_databases_exist(paths: DatabasePaths) -> None:
    if not paths.active.is_file():
        raise ActiveDatabaseMissingError(f"{paths.active} not found!")
    if not paths.pending.is_file():
        raise PendingDatabaseMissingError(f"{paths.pending} not found!")


def backup_once(path: Path) -> bool:
    """
    Copy path to path.bak unless that backup already exists.

    Returns True if a backup was written by this call. An existing backup is
    never overwritten, so it always holds the file as it was before the first
    edit. Raises OSError if the copy fails.
    """
    target = backup_path(path)
    if target.exists():
        return False
    shutil.copy2(path, target)
    return True


def backup_databases(paths: DatabasePaths) -> None:
    for path in paths.files():
        try:
            created = backup_once(path)
        except OSError as exc:
            raise BackupError(f"Failed to backup {path.name}!") from exc
        if created:
            logger.info("Backed up database to %s", backup_path(path).name)
