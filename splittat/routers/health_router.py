"""
Health check router.

Reports whether the service is up and the database answers.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import check_database, get_db
from ..schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns service status and database connectivity",
)
def health_check(db: Session = Depends(get_db)):
    """
    Basic health check.

    Always returns 200 while the process is serving; ``status`` degrades
    when the database cannot be reached.
    """
    database_ok = check_database(db)
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        database="connected" if database_ok else "unavailable",
    )
