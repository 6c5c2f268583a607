from fastapi import APIRouter

from textquiz.api.deliveries import router as deliveries_router
from textquiz.api.jobs import router as jobs_router
from textquiz.api.users import router as users_router
from textquiz.api.webhook import router as webhook_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(webhook_router, prefix="/api", tags=["webhook"])
api_router.include_router(users_router, prefix="/api", tags=["users"])
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
api_router.include_router(deliveries_router, prefix="/api", tags=["deliveries"])
