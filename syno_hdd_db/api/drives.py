from fastapi import APIRouter, HTTPException

from syno_hdd_db.errors import HddDbError
from syno_hdd_db.models.drive import DriveInventory
from syno_hdd_db.services import inventory

router = APIRouter()


@router.get(
    "/inventory",
    response_model=DriveInventory,
    summary="Installed drives",
)
async def drive_inventory() -> DriveInventory:
    """
    Return the deduplicated (model, firmware) pairs of all installed HDDs,
    SSDs and NVMe drives.

    If no HDD/SSD can be identified at all, a HTTP 503 Service Unavailable is
    returned.
    """
    try:
        return inventory.collect_inventory()
    except HddDbError as exc:
        raise HTTPException(
            status_code=503,
            detail=str(exc),
        ) from exc
