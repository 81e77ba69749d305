# app/api/v1/endpoints/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db

router = APIRouter()


def check_ai_gateway():
    """
    Only checks configuration; the gateway itself is not called so health
    probes never spend AI credits.
    """
    if not settings.AI_API_KEY:
        return {"status": "misconfigured", "message": "AI_API_KEY not set"}
    return {"status": "ready", "model": settings.AI_MODEL}


@router.get("/health", summary="Service health")
def check_health(db: Session = Depends(get_db)):
    """
    Consolidated health check: database connectivity and AI gateway configuration.
    An unreachable database answers 503.
    """
    health_status = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": {"status": "unknown"},
            "ai_gateway": {"status": "unknown"},
        }
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"
        raise HTTPException(status_code=503, detail=health_status)

    ai_status = check_ai_gateway()
    health_status["services"]["ai_gateway"] = ai_status
    if ai_status["status"] != "ready":
        health_status["status"] = "degraded"

    return health_status
