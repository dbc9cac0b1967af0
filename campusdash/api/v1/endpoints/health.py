"""
Health endpoint — database connectivity.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campusdash.api.v1.deps import get_db
from campusdash.core.config import settings

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    db: bool
    version: str


async def database_status(db: AsyncSession) -> str:
    try:
        await db.execute(select(1))
        return "healthy"
    except SQLAlchemyError as e:
        logger.error("Health check DB failure: %s", e)
        return "unavailable"


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check — DB connectivity."""
    return HealthResponse(db=await database_status(db) == "healthy", version=settings.VERSION)
