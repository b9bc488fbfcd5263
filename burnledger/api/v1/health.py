from fastapi import APIRouter
from burnledger.core.config import settings
from burnledger.core.db import engine

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "timezone": settings.LOCAL_TIMEZONE,
        "db": engine is not None,
    }
