"""
life span events
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from gymbook.db.session import AsyncSessionLocal
from gymbook.services.registration_events import registration_events

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """life span events"""
    logger.info(f"Environment: {os.getenv('ENV', 'not set')}")

    # Simple database connectivity check
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        # Don't fail startup for database issues in development
        if os.getenv("ENV") == "production":
            raise

    try:
        yield
    finally:
        registration_events.clear()
        logger.info("lifespan shutdown")
