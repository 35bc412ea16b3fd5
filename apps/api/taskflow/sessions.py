from __future__ import annotations

import secrets
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from taskflow.models import Session as DbSession
from taskflow.records import SessionRecord, as_utc


def new_session_id() -> str:
  return secrets.token_urlsafe(32)


class SessionStore(Protocol):
  async def create(self, user_id: str, expires_at: datetime) -> SessionRecord: ...
  async def get(self, session_id: str) -> SessionRecord | None: ...
  async def delete(self, session_id: str) -> None: ...
  async def delete_for_user(self, user_id: str) -> None: ...
  async def delete_expired(self, now: datetime) -> int: ...


class MemorySessionStore:
  def __init__(self) -> None:
    self._sessions: dict[str, SessionRecord] = {}

  async def create(self, user_id: str, expires_at: datetime) -> SessionRecord:
    s = SessionRecord(id=new_session_id(), user_id=user_id, expires_at=expires_at)
    self._sessions[s.id] = s
    return SessionRecord(id=s.id, user_id=s.user_id, expires_at=s.expires_at, created_at=s.created_at)

  async def get(self, session_id: str) -> SessionRecord | None:
    s = self._sessions.get(session_id)
    if not s:
      return None
    return SessionRecord(id=s.id, user_id=s.user_id, expires_at=s.expires_at, created_at=s.created_at)

  async def delete(self, session_id: str) -> None:
    self._sessions.pop(session_id, None)

  async def delete_for_user(self, user_id: str) -> None:
    for sid in [s.id for s in self._sessions.values() if s.user_id == user_id]:
      del self._sessions[sid]

  async def delete_expired(self, now: datetime) -> int:
    expired = [s.id for s in self._sessions.values() if s.expires_at <= now]
    for sid in expired:
      del self._sessions[sid]
    return len(expired)


class DatabaseSessionStore:
  def __init__(self, engine: AsyncEngine) -> None:
    self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

  async def create(self, user_id: str, expires_at: datetime) -> SessionRecord:
    async with self._sessionmaker() as db:
      s = DbSession(id=new_session_id(), user_id=user_id, expires_at=expires_at)
      db.add(s)
      await db.commit()
      return SessionRecord(id=s.id, user_id=s.user_id, expires_at=as_utc(s.expires_at), created_at=as_utc(s.created_at))

  async def get(self, session_id: str) -> SessionRecord | None:
    async with self._sessionmaker() as db:
      res = await db.execute(select(DbSession).where(DbSession.id == session_id))
      s = res.scalar_one_or_none()
      if not s:
        return None
      return SessionRecord(id=s.id, user_id=s.user_id, expires_at=as_utc(s.expires_at), created_at=as_utc(s.created_at))

  async def delete(self, session_id: str) -> None:
    async with self._sessionmaker() as db:
      await db.execute(delete(DbSession).where(DbSession.id == session_id))
      await db.commit()

  async def delete_for_user(self, user_id: str) -> None:
    async with self._sessionmaker() as db:
      await db.execute(delete(DbSession).where(DbSession.user_id == user_id))
      await db.commit()

  async def delete_expired(self, now: datetime) -> int:
    async with self._sessionmaker() as db:
      res = await db.execute(delete(DbSession).where(DbSession.expires_at <= now))
      await db.commit()
      return int(res.rowcount or 0)
