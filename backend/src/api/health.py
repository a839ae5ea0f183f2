import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_database
from config import settings
from core.database import Database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/status")
async def status(database: Database = Depends(get_database)):
    try:
        now = await database.ping()
    except Exception:
        logger.exception("Status check failed")
        return JSONResponse(
            status_code=500,
            content={"status": "Error", "message": "Cannot reach the database"},
        )
    return {
        "status": "OK",
        "message": "Server is running and connected to the database",
        "currentTime": now,
        "schema": settings.DB_SCHEMA,
    }
