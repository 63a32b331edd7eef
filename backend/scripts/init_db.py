#!/usr/bin/env python3
"""
Create database tables without alembic (local development)
"""

import asyncio
import logging
import sys

from reise.db.session import db_manager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database():
    """Initialize database tables"""
    try:
        logger.info("Connecting to database...")
        await db_manager.initialize()
        await db_manager.init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
    finally:
        await db_manager.close()


if __name__ == "__main__":
    asyncio.run(init_database())
