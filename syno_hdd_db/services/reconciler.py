"""
Insert-if-absent merging of drive models into a compatibility database.

Vendor databases are one JSON object keyed by drive model:

    {"WD40EFRX-68N32N0":{"82.00A82":{...},"default":{...}}, ...}

A model is added by parsing the document, checking the top-level keys and
splicing the serialized member right before the closing brace of the root
object. Everything that was already in the file stays byte-identical.
"""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

from syno_hdd_db.errors import DatabaseReadError, DatabaseWriteError
from syno_hdd_db.models.database import DatabasePaths, EditCounter, ReconcileOutcome
from syno_hdd_db.models.drive import DriveRecord

logger = logging.getLogger(__name__)


def _support_interval() -> Dict[str, Any]:
    return {
        "compatibility_interval": [
            {
                "compatibility": "support",
                "not_yet_rolling_status": "support",
                "fw_dsm_update_status_notify": False,
                "barebone_installable": True,
            }
        ]
    }


def build_entry(record: DriveRecord, with_firmware: bool = False) -> Dict[str, Any]:
    """
    Entry value that marks record.model as supported.

    By default only the "default" case is emitted, which covers every
    firmware revision. with_firmware adds a case keyed by record.firmware in
    front of it; run() never asks for it.
    """
    entry: Dict[str, Any] = {}
    if with_firmware:
        entry[record.firmware] = _support_interval()
    entry["default"] = _support_interval()
    return entry


def _dumps(value: Any) -> str:
    # Same compact layout as the vendor files
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def insert_entry(text: str, key: str, value: Any) -> Optional[str]:
    """
    Return text with key: value added to the root object.

    Returns None if key is already a top-level key. Raises ValueError if text
    is not a JSON object.
    """
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError("root of the database is not a JSON object")
    if key in document:
        return None

    body = text.rstrip()
    trailing = text[len(body):]
    # A valid JSON object always ends with its own closing brace
    head = body[:-1]
    separator = "," if document else ""
    updated = f"{head}{separator}{_dumps(key)}:{_dumps(value)}}}{trailing}"

    json.loads(updated)
    return updated


def _write_text(path: Path, text: str) -> None:
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def reconcile(record: DriveRecord, path: Path) -> ReconcileOutcome:
    """
    Make sure record.model has an entry in the database at path.

    Raises DatabaseReadError if the file cannot be read or parsed and
    DatabaseWriteError if the update cannot be written; both exit with 6.
    There is no rollback; the .bak copy is the way back.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatabaseReadError(f"Failed to read {path.name}: {exc}") from exc

    try:
        updated = insert_entry(text, record.model, build_entry(record))
    except ValueError as exc:
        raise DatabaseReadError(f"Failed to parse {path.name}: {exc}") from exc

    if updated is None:
        logger.info("%s already exists in %s", record.model, path.name)
        return ReconcileOutcome.ALREADY_EXISTS

    try:
        _write_text(path, updated)
    except OSError as exc:
        raise DatabaseWriteError(f"Failed to update {path.name}: {exc}") from exc

    logger.info("Added %s to %s", record.model, path.name)
    return ReconcileOutcome.ADDED


def reconcile_inventory(
    records: Iterable[DriveRecord],
    paths: DatabasePaths,
    counter: Optional[EditCounter] = None,
) -> EditCounter:
    """Reconcile every record against the active, then the pending database."""
    if counter is None:
        counter = EditCounter()

    for record in records:
        for path in paths.files():
            if reconcile(record, path) is ReconcileOutcome.ADDED:
                counter.increment(path)

    return counter


def existing_models(path: Path) -> Set[str]:
    """Top-level keys of a database, without changing it."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise DatabaseReadError(f"Failed to read {path.name}: {exc}") from exc
    if not isinstance(document, dict):
        raise DatabaseReadError(f"Root of {path.name} is not a JSON object")
    return set(document)
