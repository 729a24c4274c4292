"""Aggregate all API routers."""

from fastapi import APIRouter
from contract_analyzer.api.submissions import router as submissions_router
from contract_analyzer.api.webhooks import router as webhooks_router

api_router = APIRouter(prefix="/api")
api_router.include_router(submissions_router, tags=["submissions"])
api_router.include_router(webhooks_router, tags=["updates"])
