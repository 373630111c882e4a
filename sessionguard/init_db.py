"""Startup script: create the audit tables."""

import asyncio
import logging

from sessionguard.database import Base, engine

# Import all models so Base.metadata knows about them
from sessionguard.audit.models import AuditLog  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tabelas de auditoria verificadas")


async def startup():
    await init_db()


if __name__ == "__main__":
    asyncio.run(startup())
