"""Health check endpoint with database connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mylibrary import __version__
from mylibrary.core.config import get_settings
from mylibrary.core.database import check_db_connected, get_db
from mylibrary.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Return service health and database connectivity. Reports "degraded"
    rather than failing when the database is unreachable.
    """
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        version=__version__,
        environment=get_settings().APP_ENV,
        database="connected" if connected else "disconnected",
    )
