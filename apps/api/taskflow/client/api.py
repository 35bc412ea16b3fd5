from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from taskflow.records import ColumnRecord, TaskRecord


class ClientError(RuntimeError):
  def __init__(self, *, status_code: int, message: str) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message


def _parse_dt(value: Any) -> datetime | None:
  if not value:
    return None
  return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def task_from_json(data: dict[str, Any]) -> TaskRecord:
  return TaskRecord(
    id=data["id"],
    column_id=data["columnId"],
    user_id=data["userId"],
    title=data["title"],
    position=int(data["position"]),
    description=data.get("description"),
    priority=data.get("priority") or "medium",
    status=data.get("status") or "backlog",
    progress=int(data.get("progress") or 0),
    due_date=_parse_dt(data.get("dueDate")),
    tags=list(data.get("tags") or []),
    created_at=_parse_dt(data["createdAt"]),
    updated_at=_parse_dt(data["updatedAt"]),
  )


def column_from_json(data: dict[str, Any]) -> ColumnRecord:
  return ColumnRecord(
    id=data["id"],
    board_id=data["boardId"],
    user_id=data["userId"],
    title=data["title"],
    position=int(data["position"]),
    color=data.get("color") or "#3b82f6",
    status_key=data.get("statusKey"),
    created_at=_parse_dt(data["createdAt"]),
  )


async def _request_json(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
  r = await client.request(method, path, **kwargs)
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = {}
    message = payload.get("message") if isinstance(payload, dict) else None
    raise ClientError(status_code=r.status_code, message=str(message or r.reason_phrase or "Request failed"))
  if r.status_code == 204:
    return None
  return r.json()


class TaskFlowClient:
  """Thin async wrapper over the REST API; the session cookie lives in the httpx client's jar."""

  def __init__(self, http: httpx.AsyncClient) -> None:
    self.http = http

  @classmethod
  def connect(cls, base_url: str, **kwargs: Any) -> TaskFlowClient:
    return cls(httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=30, **kwargs))

  async def aclose(self) -> None:
    await self.http.aclose()

  async def register(self, email: str, password: str, first_name: str, last_name: str) -> dict[str, Any]:
    data = await _request_json(
      self.http,
      "POST",
      "/api/auth/register",
      json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
    )
    return data["user"]

  async def login(self, email: str, password: str) -> dict[str, Any]:
    data = await _request_json(self.http, "POST", "/api/auth/login", json={"email": email, "password": password})
    return data["user"]

  async def logout(self) -> None:
    await _request_json(self.http, "POST", "/api/auth/logout")

  async def me(self) -> dict[str, Any]:
    data = await _request_json(self.http, "GET", "/api/auth/me")
    return data["user"]

  async def list_boards(self) -> list[dict[str, Any]]:
    return await _request_json(self.http, "GET", "/api/boards")

  async def list_columns(self, board_id: str) -> list[ColumnRecord]:
    return [column_from_json(c) for c in await _request_json(self.http, "GET", f"/api/boards/{board_id}/columns")]

  async def list_tasks(self, column_id: str, search: str | None = None) -> list[TaskRecord]:
    params = {"search": search} if search else None
    data = await _request_json(self.http, "GET", f"/api/columns/{column_id}/tasks", params=params)
    return [task_from_json(t) for t in data]

  async def create_task(self, column_id: str, title: str, position: int, **fields: Any) -> TaskRecord:
    body = {"columnId": column_id, "title": title, "position": position, **fields}
    return task_from_json(await _request_json(self.http, "POST", "/api/tasks", json=body))

  async def move_task(self, task_id: str, column_id: str, position: int) -> TaskRecord:
    body = {"columnId": column_id, "position": position}
    return task_from_json(await _request_json(self.http, "POST", f"/api/tasks/{task_id}/move", json=body))
