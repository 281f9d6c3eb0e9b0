"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from workforce.common.clock import TimeProvider, load_time_provider
from workforce.database import get_db


async def get_time_provider(db: AsyncSession = Depends(get_db)) -> TimeProvider:
    """The clock for this request: the virtual clock when enabled, else the wall clock."""
    return await load_time_provider(db)
