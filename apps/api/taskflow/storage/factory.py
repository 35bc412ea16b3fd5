from __future__ import annotations

from taskflow.config import Settings
from taskflow.db import make_engine
from taskflow.sessions import DatabaseSessionStore, MemorySessionStore, SessionStore
from taskflow.storage.base import Storage
from taskflow.storage.database import DatabaseStorage
from taskflow.storage.memory import MemoryStorage


def build_backends(settings: Settings) -> tuple[Storage, SessionStore]:
  backend = (settings.storage_backend or "database").strip().lower()
  if backend == "memory":
    return MemoryStorage(), MemorySessionStore()
  if backend != "database":
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.storage_backend}")
  engine = make_engine(settings.database_url)
  return DatabaseStorage(engine), DatabaseSessionStore(engine)
