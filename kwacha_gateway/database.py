"""
Persistence dependency as the gateway sees it: a connectivity probe and a
release hook. Schema and queries belong to the route collaborators.
"""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger("kwacha_gateway.db")


class Database:
    def __init__(self, url: str, engine: Optional[AsyncEngine] = None):
        self.url = url
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.url, pool_pre_ping=True)
        return self._engine

    @property
    def connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine; the first real connection is opened lazily by the pool."""
        _ = self.engine
        logger.info("database engine ready (%s)", self.engine.url.render_as_string(hide_password=True))

    async def ping(self) -> None:
        """Round-trip ``SELECT 1``. Raises whatever the driver raises."""
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.info("database engine disposed")
