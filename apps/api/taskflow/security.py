from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta

from passlib.context import CryptContext


def password_context(rounds: int) -> CryptContext:
  return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(ctx: CryptContext, password: str) -> str:
  return ctx.hash(password)


def verify_password(ctx: CryptContext, password: str, password_hash: str) -> bool:
  return ctx.verify(password, password_hash)


def session_expires_at(now: datetime, ttl_hours: int) -> datetime:
  return now + timedelta(hours=ttl_hours)


def _signature(secret: str, session_id: str) -> str:
  key = (secret or "").encode("utf-8")
  return hmac.new(key, session_id.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_session_id(secret: str, session_id: str) -> str:
  return f"{session_id}.{_signature(secret, session_id)}"


def unsign_session_id(secret: str, value: str | None) -> str | None:
  # Cookie format: "<session id>.<hex hmac>"; session ids never contain a dot.
  if not value or "." not in value:
    return None
  session_id, sig = value.rsplit(".", 1)
  if not session_id or not hmac.compare_digest(sig, _signature(secret, session_id)):
    return None
  return session_id
