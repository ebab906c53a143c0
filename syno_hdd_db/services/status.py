from typing import List

from syno_hdd_db.models.database import DatabaseStatus, backup_path
from syno_hdd_db.services import inventory, locator, reconciler


def get_database_status() -> List[DatabaseStatus]:
    """
    Compare the current inventory with both databases, read-only.

    Missing database files are reported with exists=False instead of raising,
    so the status can be checked on a box where DSM replaced them.
    """
    drives = inventory.collect_inventory()
    paths = locator.locate_databases()
    models = sorted({record.model for record in drives.hdds + drives.nvmes})

    statuses: List[DatabaseStatus] = []
    for path in paths.files():
        if not path.is_file():
            statuses.append(
                DatabaseStatus(
                    path=str(path),
                    exists=False,
                    backup_exists=backup_path(path).is_file(),
                    missing=models,
                )
            )
            continue

        known = reconciler.existing_models(path)
        statuses.append(
            DatabaseStatus(
                path=str(path),
                exists=True,
                backup_exists=backup_path(path).is_file(),
                present=[m for m in models if m in known],
                missing=[m for m in models if m not in known],
            )
        )

    return statuses
