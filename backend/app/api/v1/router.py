from fastapi import APIRouter

from app.api.v1 import analytics, events, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(events.router, prefix="/analytics", tags=["events"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
