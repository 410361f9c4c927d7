from datetime import datetime, timezone

from fastapi import APIRouter

from user_management.config import ENVIRONMENT

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": ENVIRONMENT,
    }


@router.get("/")
async def root():
    return {
        "message": "User Management API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/api/health",
            "auth": "/api/auth/*",
            "users": "/api/users/*",
        },
    }
