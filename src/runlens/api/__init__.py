"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Learn: The service binds to loopback by default and has no auth layer;
every router is mounted open.
"""

from fastapi import APIRouter

from runlens.api.budget import router as budget_router
from runlens.api.health import router as health_router
from runlens.api.metrics import router as metrics_router
from runlens.api.sessions import router as sessions_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(sessions_router, tags=["sessions", "events"])
api_router.include_router(metrics_router, tags=["latency", "compare", "export"])
api_router.include_router(budget_router, tags=["budget"])
