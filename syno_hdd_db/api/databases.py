from typing import List

from fastapi import APIRouter, HTTPException

from syno_hdd_db.errors import HddDbError
from syno_hdd_db.models.database import DatabaseStatus
from syno_hdd_db.services import status

router = APIRouter()


@router.get(
    "/status",
    response_model=List[DatabaseStatus],
    summary="Database status",
)
async def database_status() -> List[DatabaseStatus]:
    """
    Return, for the active and the pending compatibility database, which of
    the installed drive models already have an entry and which are missing.

    Nothing is written. Detection and read errors map to HTTP 503.
    """
    try:
        return status.get_database_status()
    except HddDbError as exc:
        raise HTTPException(
            status_code=503,
            detail=str(exc),
        ) from exc
