"""API route aggregation.

All routers registered here get mounted in main.py.
"""

from fastapi import APIRouter

from userpulse.api.health import router as health_router
from userpulse.api.logs import router as logs_router
from userpulse.api.users import router as users_router
from userpulse.realtime.sse import router as sse_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(logs_router, tags=["logs"])
api_router.include_router(sse_router, tags=["notifications"])
