from fastapi import APIRouter

from database import db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    try:
        await db.command("ping")
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "degraded", "database": "unreachable", "error": str(e)}
