from __future__ import annotations

import pytest

from taskflow.auth import AuthService
from taskflow.errors import AuthError, ConflictError, NotFoundError
from taskflow.security import sign_session_id, unsign_session_id

from conftest import PASSWORD


@pytest.fixture
def auth(storage, sessions, settings, clock) -> AuthService:
  return AuthService(storage, sessions, settings=settings, clock=clock)


@pytest.mark.anyio
async def test_register_provisions_default_board(auth: AuthService, storage) -> None:
  user = await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  assert user.password_hash != PASSWORD

  boards = await storage.list_boards(user.id)
  assert [b.name for b in boards] == ["My Kanban Board"]
  assert boards[0].description == "Personal task board"

  columns = await storage.list_columns(boards[0].id, user.id)
  assert [c.title for c in columns] == ["Backlog", "In Progress", "Review", "Done"]
  assert [c.position for c in columns] == [0, 1, 2, 3]
  assert [c.color for c in columns] == ["#3b82f6", "#eab308", "#f97316", "#10b981"]

  tasks = await storage.list_tasks(columns[0].id, user.id)
  assert len(tasks) == 1
  welcome = tasks[0]
  assert welcome.title == "Welcome!"
  assert (welcome.priority, welcome.status, welcome.progress, welcome.position) == ("medium", "backlog", 0, 0)
  assert welcome.tags == ["welcome"]
  for c in columns[1:]:
    assert await storage.list_tasks(c.id, user.id) == []


@pytest.mark.anyio
async def test_register_duplicate_email_is_rejected(auth: AuthService, storage) -> None:
  await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  with pytest.raises(ConflictError):
    await auth.register("ada@example.com", "other-password", "Ada", "Again")
  # Exact match only.
  other = await auth.register("Ada@example.com", PASSWORD, "Ada", "Upper")
  assert other.email == "Ada@example.com"


@pytest.mark.anyio
async def test_login_errors_do_not_reveal_which_part_was_wrong(auth: AuthService) -> None:
  await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  with pytest.raises(AuthError) as unknown:
    await auth.login("nobody@example.com", PASSWORD)
  with pytest.raises(AuthError) as wrong:
    await auth.login("ada@example.com", "not-the-password")
  assert unknown.value.message == wrong.value.message == "Invalid credentials"


@pytest.mark.anyio
async def test_session_expires_after_ttl_and_is_evicted(auth: AuthService, sessions, clock, settings) -> None:
  await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  user, session = await auth.login("ada@example.com", PASSWORD)
  assert (session.expires_at - clock.now).total_seconds() == settings.session_ttl_hours * 3600

  clock.advance(hours=23, minutes=59)
  found = await auth.get_user_by_session(session.id)
  assert found is not None and found.id == user.id

  clock.advance(minutes=1)
  assert await auth.get_user_by_session(session.id) is None
  assert await sessions.get(session.id) is None

  # Deleted sessions stay deleted even if the clock goes backwards.
  clock.advance(hours=-1)
  assert await auth.get_user_by_session(session.id) is None


@pytest.mark.anyio
async def test_logout_is_idempotent(auth: AuthService) -> None:
  await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  _, session = await auth.login("ada@example.com", PASSWORD)
  await auth.logout(session.id)
  await auth.logout(session.id)
  await auth.logout(None)
  assert await auth.get_user_by_session(session.id) is None


@pytest.mark.anyio
async def test_register_and_login_rolls_back_account_when_session_fails(auth: AuthService, storage, monkeypatch) -> None:
  async def _boom(user_id, expires_at):
    raise RuntimeError("session store down")

  monkeypatch.setattr(auth.sessions, "create", _boom)
  with pytest.raises(RuntimeError):
    await auth.register_and_login("ada@example.com", PASSWORD, "Ada", "Lovelace")

  assert await storage.get_user_by_email("ada@example.com") is None
  # The email is free again.
  monkeypatch.undo()
  user, session = await auth.register_and_login("ada@example.com", PASSWORD, "Ada", "Lovelace")
  assert session.user_id == user.id


@pytest.mark.anyio
async def test_update_profile(auth: AuthService) -> None:
  user = await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  updated = await auth.update_profile(user.id, {"first_name": "Augusta", "profile_image_url": "https://img.example/a.png"})
  assert (updated.first_name, updated.last_name) == ("Augusta", "Lovelace")
  assert updated.profile_image_url == "https://img.example/a.png"
  with pytest.raises(NotFoundError):
    await auth.update_profile("missing", {"first_name": "X"})


@pytest.mark.anyio
async def test_purge_expired_sessions(auth: AuthService, clock) -> None:
  await auth.register("ada@example.com", PASSWORD, "Ada", "Lovelace")
  _, old = await auth.login("ada@example.com", PASSWORD)
  clock.advance(hours=12)
  _, fresh = await auth.login("ada@example.com", PASSWORD)
  clock.advance(hours=13)
  assert await auth.purge_expired_sessions() == 1
  assert await auth.sessions.get(old.id) is None
  assert await auth.sessions.get(fresh.id) is not None


def test_session_cookie_signature() -> None:
  signed = sign_session_id("k1", "abc_DEF-123")
  assert unsign_session_id("k1", signed) == "abc_DEF-123"
  assert unsign_session_id("k2", signed) is None
  assert unsign_session_id("k1", "abc_DEF-123") is None
  assert unsign_session_id("k1", signed[:-1] + ("0" if signed[-1] != "0" else "1")) is None
  assert unsign_session_id("k1", None) is None
