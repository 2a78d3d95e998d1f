"""
Liveness check with a MongoDB ping.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from barangay import __version__
from barangay.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        db.command("ping")
        database = "ok"
    except PyMongoError as e:
        logger.warning("Health check: MongoDB ping failed: %s", e)
        database = "unreachable"

    healthy = database == "ok"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "ok": healthy,
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "database": database,
        },
    )
