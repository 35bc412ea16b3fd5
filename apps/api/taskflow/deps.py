from __future__ import annotations

from fastapi import Request

from taskflow.auth import AuthService
from taskflow.config import Settings
from taskflow.errors import AuthError
from taskflow.rate_limit import RateLimiter
from taskflow.records import UserRecord
from taskflow.security import unsign_session_id
from taskflow.storage.base import Storage


def get_settings(request: Request) -> Settings:
  return request.app.state.settings


def get_storage(request: Request) -> Storage:
  return request.app.state.storage


def get_auth_service(request: Request) -> AuthService:
  return request.app.state.auth


def get_limiter(request: Request) -> RateLimiter:
  return request.app.state.limiter


def session_id_from_request(request: Request) -> str | None:
  settings: Settings = request.app.state.settings
  return unsign_session_id(settings.app_secret, request.cookies.get(settings.session_cookie_name))


async def get_current_user(request: Request) -> UserRecord:
  session_id = session_id_from_request(request)
  if not session_id:
    raise AuthError("Not authenticated")
  user = await get_auth_service(request).get_user_by_session(session_id)
  if not user:
    raise AuthError("Not authenticated")
  return user


def client_ip(request: Request) -> str:
  return request.client.host if request.client else "unknown"
