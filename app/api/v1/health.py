from datetime import datetime, timezone

from fastapi import APIRouter

from app.schemas.applications import HealthResponse

router = APIRouter()

@router.get("/health", summary="Health Check", description="Check the health status of the application.", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))
