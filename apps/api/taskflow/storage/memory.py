from __future__ import annotations

import copy
from typing import Any

from taskflow.errors import NotFoundError
from taskflow.models import new_id
from taskflow.records import (
  BoardRecord,
  ColumnRecord,
  CommentRecord,
  DependencyRecord,
  TaskRecord,
  UserRecord,
  utcnow,
)
from taskflow.storage.base import BOARD_FIELDS, COLUMN_FIELDS, TASK_FIELDS, USER_FIELDS, pick
from taskflow.workflow import DEFAULT_BOARD_DESCRIPTION, DEFAULT_BOARD_NAME, default_columns, welcome_task


def _by_position(items: list) -> list:
  # sorted() is stable, dict iteration is insertion order.
  return sorted(items, key=lambda x: x.position)


class MemoryStorage:
  """Dict-backed store for development and tests; state lives for the process lifetime."""

  def __init__(self) -> None:
    self._users: dict[str, UserRecord] = {}
    self._boards: dict[str, BoardRecord] = {}
    self._columns: dict[str, ColumnRecord] = {}
    self._tasks: dict[str, TaskRecord] = {}
    self._comments: dict[str, CommentRecord] = {}
    self._dependencies: dict[str, DependencyRecord] = {}

  async def close(self) -> None:
    return None

  # users

  async def get_user(self, user_id: str) -> UserRecord | None:
    u = self._users.get(user_id)
    return copy.deepcopy(u) if u else None

  async def get_user_by_email(self, email: str) -> UserRecord | None:
    for u in self._users.values():
      if u.email == email:
        return copy.deepcopy(u)
    return None

  async def update_user(self, user_id: str, fields: dict[str, Any]) -> UserRecord:
    u = self._users.get(user_id)
    if not u:
      raise NotFoundError("User not found")
    for k, v in pick(fields, USER_FIELDS).items():
      setattr(u, k, v)
    u.updated_at = utcnow()
    return copy.deepcopy(u)

  async def provision_account(self, *, email: str, password_hash: str, first_name: str, last_name: str) -> UserRecord:
    # Build everything first so a failure leaves no partial account behind.
    user = UserRecord(id=new_id(), email=email, password_hash=password_hash, first_name=first_name, last_name=last_name)
    board = BoardRecord(id=new_id(), user_id=user.id, name=DEFAULT_BOARD_NAME, description=DEFAULT_BOARD_DESCRIPTION)
    columns = [ColumnRecord(id=new_id(), board_id=board.id, user_id=user.id, **c) for c in default_columns()]
    task = TaskRecord(id=new_id(), column_id=columns[0].id, user_id=user.id, **welcome_task())

    self._users[user.id] = user
    self._boards[board.id] = board
    for c in columns:
      self._columns[c.id] = c
    self._tasks[task.id] = task
    return copy.deepcopy(user)

  async def delete_account(self, user_id: str) -> None:
    for board_id in [b.id for b in self._boards.values() if b.user_id == user_id]:
      await self.delete_board(board_id, user_id)
    self._users.pop(user_id, None)

  # boards

  def _board(self, board_id: str, user_id: str) -> BoardRecord:
    b = self._boards.get(board_id)
    if not b or b.user_id != user_id:
      raise NotFoundError("Board not found")
    return b

  async def list_boards(self, user_id: str) -> list[BoardRecord]:
    return [copy.deepcopy(b) for b in self._boards.values() if b.user_id == user_id]

  async def get_board(self, board_id: str, user_id: str) -> BoardRecord:
    return copy.deepcopy(self._board(board_id, user_id))

  async def create_board(self, fields: dict[str, Any], user_id: str) -> BoardRecord:
    b = BoardRecord(id=new_id(), user_id=user_id, **pick(fields, BOARD_FIELDS))
    self._boards[b.id] = b
    return copy.deepcopy(b)

  async def update_board(self, board_id: str, fields: dict[str, Any], user_id: str) -> BoardRecord:
    b = self._board(board_id, user_id)
    for k, v in pick(fields, BOARD_FIELDS).items():
      setattr(b, k, v)
    b.updated_at = utcnow()
    return copy.deepcopy(b)

  async def delete_board(self, board_id: str, user_id: str) -> None:
    self._board(board_id, user_id)
    for column_id in [c.id for c in self._columns.values() if c.board_id == board_id]:
      await self.delete_column(column_id, user_id)
    del self._boards[board_id]

  # columns

  def _column(self, column_id: str, user_id: str) -> ColumnRecord:
    c = self._columns.get(column_id)
    if not c or c.user_id != user_id:
      raise NotFoundError("Column not found")
    return c

  async def list_columns(self, board_id: str, user_id: str) -> list[ColumnRecord]:
    self._board(board_id, user_id)
    cols = [c for c in self._columns.values() if c.board_id == board_id and c.user_id == user_id]
    return [copy.deepcopy(c) for c in _by_position(cols)]

  async def get_column(self, column_id: str, user_id: str) -> ColumnRecord:
    return copy.deepcopy(self._column(column_id, user_id))

  async def create_column(self, board_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord:
    self._board(board_id, user_id)
    c = ColumnRecord(id=new_id(), board_id=board_id, user_id=user_id, **pick(fields, COLUMN_FIELDS))
    self._columns[c.id] = c
    return copy.deepcopy(c)

  async def update_column(self, column_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord:
    c = self._column(column_id, user_id)
    for k, v in pick(fields, COLUMN_FIELDS).items():
      setattr(c, k, v)
    return copy.deepcopy(c)

  async def delete_column(self, column_id: str, user_id: str) -> None:
    self._column(column_id, user_id)
    for task_id in [t.id for t in self._tasks.values() if t.column_id == column_id and t.user_id == user_id]:
      await self.delete_task(task_id, user_id)
    del self._columns[column_id]

  # tasks

  def _task(self, task_id: str, user_id: str) -> TaskRecord:
    t = self._tasks.get(task_id)
    if not t or t.user_id != user_id:
      raise NotFoundError("Task not found")
    return t

  async def list_tasks(self, column_id: str, user_id: str) -> list[TaskRecord]:
    self._column(column_id, user_id)
    tasks = [t for t in self._tasks.values() if t.column_id == column_id and t.user_id == user_id]
    return [copy.deepcopy(t) for t in _by_position(tasks)]

  async def list_board_tasks(self, board_id: str, user_id: str) -> list[TaskRecord]:
    out: list[TaskRecord] = []
    for c in await self.list_columns(board_id, user_id):
      out.extend(await self.list_tasks(c.id, user_id))
    return out

  async def get_task(self, task_id: str, user_id: str) -> TaskRecord:
    return copy.deepcopy(self._task(task_id, user_id))

  async def create_task(self, fields: dict[str, Any], user_id: str) -> TaskRecord:
    data = pick(fields, TASK_FIELDS)
    self._column(data.get("column_id") or "", user_id)
    data["tags"] = list(data.get("tags") or [])
    t = TaskRecord(id=new_id(), user_id=user_id, **data)
    self._tasks[t.id] = t
    return copy.deepcopy(t)

  async def update_task(self, task_id: str, fields: dict[str, Any], user_id: str) -> TaskRecord:
    t = self._task(task_id, user_id)
    data = pick(fields, TASK_FIELDS)
    if "column_id" in data:
      self._column(data["column_id"], user_id)
    if "tags" in data:
      data["tags"] = list(data["tags"] or [])
    for k, v in data.items():
      setattr(t, k, v)
    t.updated_at = utcnow()
    return copy.deepcopy(t)

  async def move_task(self, task_id: str, column_id: str, position: int, user_id: str) -> TaskRecord:
    t = self._task(task_id, user_id)
    self._column(column_id, user_id)
    t.column_id = column_id
    t.position = position
    t.updated_at = utcnow()
    return copy.deepcopy(t)

  async def delete_task(self, task_id: str, user_id: str) -> None:
    self._task(task_id, user_id)
    for dep_id in [d.id for d in self._dependencies.values() if task_id in (d.from_task_id, d.to_task_id)]:
      del self._dependencies[dep_id]
    for comment_id in [c.id for c in self._comments.values() if c.task_id == task_id]:
      del self._comments[comment_id]
    del self._tasks[task_id]

  # comments

  async def list_comments(self, task_id: str, user_id: str) -> list[CommentRecord]:
    self._task(task_id, user_id)
    comments = [c for c in self._comments.values() if c.task_id == task_id and c.user_id == user_id]
    return [copy.deepcopy(c) for c in sorted(comments, key=lambda c: c.created_at)]

  async def create_comment(self, task_id: str, content: str, author: str, user_id: str) -> CommentRecord:
    self._task(task_id, user_id)
    c = CommentRecord(id=new_id(), task_id=task_id, user_id=user_id, content=content, author=author)
    self._comments[c.id] = c
    return copy.deepcopy(c)

  async def delete_comment(self, comment_id: str, user_id: str) -> None:
    c = self._comments.get(comment_id)
    if not c or c.user_id != user_id:
      raise NotFoundError("Comment not found")
    del self._comments[comment_id]

  # dependencies

  async def list_dependencies(self, task_id: str, user_id: str) -> list[DependencyRecord]:
    self._task(task_id, user_id)
    return [copy.deepcopy(d) for d in self._dependencies.values() if task_id in (d.from_task_id, d.to_task_id)]

  async def create_dependency(self, from_task_id: str, to_task_id: str, user_id: str) -> DependencyRecord:
    self._task(from_task_id, user_id)
    self._task(to_task_id, user_id)
    d = DependencyRecord(id=new_id(), from_task_id=from_task_id, to_task_id=to_task_id)
    self._dependencies[d.id] = d
    return copy.deepcopy(d)

  async def delete_dependency(self, dependency_id: str, user_id: str) -> None:
    d = self._dependencies.get(dependency_id)
    if not d:
      raise NotFoundError("Dependency not found")
    t = self._tasks.get(d.from_task_id)
    if not t or t.user_id != user_id:
      raise NotFoundError("Dependency not found")
    del self._dependencies[dependency_id]
