from __future__ import annotations

import pytest
from httpx import AsyncClient

from taskflow.rate_limit import RateLimiter


@pytest.mark.anyio
async def test_login_rate_limited(client: AsyncClient, settings) -> None:
  settings.rate_limit_login_ip_per_minute = 3
  settings.rate_limit_login_email_per_minute = 3
  for _ in range(3):
    r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "bad"})
    assert r.status_code == 401, r.text
  r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "bad"})
  assert r.status_code == 429, r.text
  assert r.headers.get("retry-after")
  assert r.json() == {"message": "Too many requests"}


def test_limiter_windows_are_per_key() -> None:
  limiter = RateLimiter()
  assert limiter.hit("a", limit=1, window_seconds=60) == (True, 0)
  allowed, retry = limiter.hit("a", limit=1, window_seconds=60)
  assert allowed is False
  assert 1 <= retry <= 60
  assert limiter.hit("b", limit=1, window_seconds=60) == (True, 0)
