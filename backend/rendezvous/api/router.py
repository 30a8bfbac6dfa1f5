from fastapi import APIRouter

from rendezvous.api.v1 import health, notifications, schedules, websocket


api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
