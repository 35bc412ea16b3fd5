from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

from taskflow.config import Settings
from taskflow.db import create_schema, make_engine
from taskflow.main import create_app
from taskflow.records import utcnow
from taskflow.sessions import DatabaseSessionStore, MemorySessionStore
from taskflow.storage.database import DatabaseStorage
from taskflow.storage.memory import MemoryStorage

PASSWORD = "secret123"


def make_settings(**overrides) -> Settings:
  base = {
    "storage_backend": "memory",
    "app_secret": "test-secret",
    "bcrypt_rounds": 4,
    "openai_api_key": None,
    "session_sweep_interval_seconds": 0,
  }
  base.update(overrides)
  return Settings(_env_file=None, **base)


class Clock:
  """Settable clock handed to AuthService so tests can move past session expiry."""

  def __init__(self) -> None:
    self.now = utcnow()

  def __call__(self) -> datetime:
    return self.now

  def advance(self, **kwargs) -> None:
    self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return make_settings()


@pytest.fixture
def clock() -> Clock:
  return Clock()


@pytest.fixture(params=["memory", "database"])
async def backends(request, tmp_path):
  if request.param == "memory":
    yield MemoryStorage(), MemorySessionStore()
    return
  engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskflow.db'}")
  await create_schema(engine)
  yield DatabaseStorage(engine), DatabaseSessionStore(engine)
  await engine.dispose()


@pytest.fixture
def storage(backends):
  return backends[0]


@pytest.fixture
def sessions(backends):
  return backends[1]


@pytest.fixture
def app(settings, backends, clock):
  storage, sessions = backends
  application = create_app(settings, storage=storage, sessions=sessions)
  application.state.auth.clock = clock
  return application


@pytest.fixture
async def client(app) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def register(
  client: AsyncClient,
  email: str = "ada@example.com",
  password: str = PASSWORD,
  *,
  first_name: str = "Ada",
  last_name: str = "Lovelace",
) -> dict:
  res = await client.post(
    "/api/auth/register",
    json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
  )
  assert res.status_code == 201, res.text
  assert "taskflow.sid=" in (res.headers.get("set-cookie") or "")
  return res.json()["user"]


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
  res = await client.post("/api/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  assert "taskflow.sid=" in (res.headers.get("set-cookie") or "")
  return res.json()["user"]


async def default_board(client: AsyncClient) -> tuple[dict, list[dict]]:
  boards = (await client.get("/api/boards")).json()
  assert len(boards) == 1
  columns = (await client.get(f"/api/boards/{boards[0]['id']}/columns")).json()
  return boards[0], columns
