from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from taskflow.auth import AuthService
from taskflow.config import Settings
from taskflow.deps import client_ip, get_auth_service, get_current_user, get_limiter, get_settings, session_id_from_request
from taskflow.rate_limit import RateLimiter
from taskflow.records import SessionRecord, UserRecord
from taskflow.schemas import AuthOut, LoginIn, ProfileUpdateIn, RegisterIn, UserOut, changes
from taskflow.security import sign_session_id

router = APIRouter(prefix="/api/auth", tags=["auth"])


def user_out(u: UserRecord) -> UserOut:
  return UserOut(
    id=u.id,
    email=u.email,
    firstName=u.first_name,
    lastName=u.last_name,
    profileImageUrl=u.profile_image_url,
    createdAt=u.created_at,
  )


def _set_session_cookie(response: Response, settings: Settings, s: SessionRecord) -> None:
  response.set_cookie(
    key=settings.session_cookie_name,
    value=sign_session_id(settings.app_secret, s.id),
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(settings.session_ttl_hours * 3600),
    expires=s.expires_at,
    path="/",
  )


def _rate_limit_or_429(limiter: RateLimiter, *, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(retry_after)},
  )


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
async def register(
  payload: RegisterIn,
  response: Response,
  auth: AuthService = Depends(get_auth_service),
  settings: Settings = Depends(get_settings),
) -> AuthOut:
  user, s = await auth.register_and_login(payload.email, payload.password, payload.firstName, payload.lastName)
  _set_session_cookie(response, settings, s)
  return AuthOut(user=user_out(user))


@router.post("/login", response_model=AuthOut)
async def login(
  payload: LoginIn,
  request: Request,
  response: Response,
  auth: AuthService = Depends(get_auth_service),
  settings: Settings = Depends(get_settings),
  limiter: RateLimiter = Depends(get_limiter),
) -> AuthOut:
  _rate_limit_or_429(limiter, key=f"auth:login:ip:{client_ip(request)}", limit=settings.rate_limit_login_ip_per_minute, window_seconds=60)
  if payload.email:
    _rate_limit_or_429(limiter, key=f"auth:login:email:{payload.email}", limit=settings.rate_limit_login_email_per_minute, window_seconds=60)

  user, s = await auth.login(payload.email, payload.password)
  _set_session_cookie(response, settings, s)
  return AuthOut(user=user_out(user))


@router.get("/me", response_model=AuthOut)
async def me(user: UserRecord = Depends(get_current_user)) -> AuthOut:
  return AuthOut(user=user_out(user))


@router.post("/logout")
async def logout(
  request: Request,
  response: Response,
  auth: AuthService = Depends(get_auth_service),
  settings: Settings = Depends(get_settings),
) -> dict:
  await auth.logout(session_id_from_request(request))
  response.delete_cookie(key=settings.session_cookie_name, path="/")
  return {"ok": True}


@router.put("/profile", response_model=AuthOut)
async def update_profile(
  payload: ProfileUpdateIn,
  user: UserRecord = Depends(get_current_user),
  auth: AuthService = Depends(get_auth_service),
) -> AuthOut:
  fields = changes(
    payload,
    {"firstName": "first_name", "lastName": "last_name", "profileImageUrl": "profile_image_url"},
    nullable=("profileImageUrl",),
  )
  updated = await auth.update_profile(user.id, fields)
  return AuthOut(user=user_out(updated))
