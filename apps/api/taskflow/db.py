from __future__ import annotations

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from taskflow.models import ORDERED_TABLES, Base, InsertCounter


def make_engine(database_url: str) -> AsyncEngine:
  if database_url.startswith("sqlite"):
    return create_async_engine(database_url, connect_args={"check_same_thread": False})
  return create_async_engine(database_url, pool_pre_ping=True)


async def create_schema(engine: AsyncEngine) -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
    existing = set((await conn.execute(select(InsertCounter.name))).scalars())
    missing = [{"name": name, "value": 0} for name in ORDERED_TABLES if name not in existing]
    if missing:
      await conn.execute(insert(InsertCounter), missing)
