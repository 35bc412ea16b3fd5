from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from taskflow.config import Settings
from taskflow.errors import AuthError, ConflictError, NotFoundError
from taskflow.records import SessionRecord, UserRecord, utcnow
from taskflow.security import hash_password, password_context, session_expires_at, verify_password
from taskflow.sessions import SessionStore
from taskflow.storage.base import Storage

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AuthService:
  """
  Registration, login and session resolution.

  Sessions move Active -> Expired (by clock) -> Deleted (logout or lazy
  eviction on lookup) and never come back.
  """

  def __init__(
    self,
    storage: Storage,
    sessions: SessionStore,
    *,
    settings: Settings,
    clock: Callable[[], datetime] = utcnow,
  ) -> None:
    self.storage = storage
    self.sessions = sessions
    self.settings = settings
    self.clock = clock
    self._pwd = password_context(settings.bcrypt_rounds)

  async def register(self, email: str, password: str, first_name: str, last_name: str) -> UserRecord:
    if await self.storage.get_user_by_email(email):
      raise ConflictError("User already exists")
    user = await self.storage.provision_account(
      email=email,
      password_hash=hash_password(self._pwd, password),
      first_name=first_name,
      last_name=last_name,
    )
    logger.info("registered user %s", user.id)
    return user

  async def issue_session(self, user_id: str) -> SessionRecord:
    expires_at = session_expires_at(self.clock(), self.settings.session_ttl_hours)
    return await self.sessions.create(user_id, expires_at)

  async def register_and_login(self, email: str, password: str, first_name: str, last_name: str) -> tuple[UserRecord, SessionRecord]:
    user = await self.register(email, password, first_name, last_name)
    try:
      session = await self.issue_session(user.id)
    except Exception:
      logger.exception("session issue failed for new user %s; rolling back account", user.id)
      await self.sessions.delete_for_user(user.id)
      await self.storage.delete_account(user.id)
      raise
    return user, session

  async def login(self, email: str, password: str) -> tuple[UserRecord, SessionRecord]:
    user = await self.storage.get_user_by_email(email)
    if not user or not verify_password(self._pwd, password, user.password_hash):
      logger.info("login failed")
      raise AuthError(INVALID_CREDENTIALS)
    session = await self.issue_session(user.id)
    logger.info("user %s logged in", user.id)
    return user, session

  async def get_user_by_session(self, session_id: str | None) -> UserRecord | None:
    if not session_id:
      return None
    session = await self.sessions.get(session_id)
    if not session:
      return None
    if self.clock() >= session.expires_at:
      await self.sessions.delete(session_id)
      logger.info("evicted expired session for user %s", session.user_id)
      return None
    return await self.storage.get_user(session.user_id)

  async def logout(self, session_id: str | None) -> None:
    if not session_id:
      return
    session = await self.sessions.get(session_id)
    if not session:
      return
    await self.sessions.delete(session_id)
    logger.info("user %s logged out", session.user_id)

  async def update_profile(self, user_id: str, fields: dict[str, Any]) -> UserRecord:
    if not await self.storage.get_user(user_id):
      raise NotFoundError("User not found")
    return await self.storage.update_user(user_id, fields)

  async def purge_expired_sessions(self) -> int:
    count = await self.sessions.delete_expired(self.clock())
    if count:
      logger.info("purged %d expired sessions", count)
    return count
