"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from timereport.db.dependencies import get_db_session

router = APIRouter()


@router.get("/health")
def health(db: Session = Depends(get_db_session)) -> dict[str, str]:
    """Liveness endpoint including a trivial database round trip."""

    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}
