from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from db.database import get_db
from models.models import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/health",
    tags=["health"]
)

@router.get("", summary="Service Status")
async def health_check():
    """Basic status payload for load balancers and the frontend's status badge."""
    return {
        "status": "OK",
        "message": "Media Gallery API is running",
        "timestamp": utcnow().isoformat() + "Z",
    }

@router.get(
    "/live",
    summary="Liveness Probe",
    description="Checks if the application instance is running. Returns HTTP 200 if alive.",
    status_code=status.HTTP_200_OK,
)
async def liveness_check():
    """
    Liveness probe endpoint.
    Returns `{"status": "alive"}` while the process is serving requests.
    """
    return {"status": "alive"}

@router.get(
    "/ready",
    summary="Readiness Probe",
    description="Checks if the application is ready to serve requests, including database connectivity.",
    status_code=status.HTTP_200_OK,
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {
            "content": {"application/json": {"example": {"message": "Cannot connect to database."}}},
            "description": "Service unavailable, typically due to a database connection issue."
        }
    }
)
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness probe endpoint.
    - Returns HTTP 200 if the database answers.
    - Returns HTTP 503 otherwise.
    """
    try:
        db.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Readiness check: database connection failed. Error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cannot connect to database."
        )
    return {"status": "ready", "detail": "Database connection successful."}
