from __future__ import annotations

from typing import Any, Protocol

from taskflow.records import (
  BoardRecord,
  ColumnRecord,
  CommentRecord,
  DependencyRecord,
  TaskRecord,
  UserRecord,
)

BOARD_FIELDS = ("name", "description")
COLUMN_FIELDS = ("title", "position", "color")
TASK_FIELDS = ("column_id", "title", "description", "priority", "status", "progress", "due_date", "tags", "position")
USER_FIELDS = ("first_name", "last_name", "profile_image_url")


def pick(fields: dict[str, Any], allowed: tuple[str, ...]) -> dict[str, Any]:
  return {k: v for k, v in fields.items() if k in allowed}


class Storage(Protocol):
  """
  Board/column/task repository.

  Every user-scoped call filters on both the entity id and the owner id; an
  entity owned by someone else is reported as missing (NotFoundError).
  Columns and tasks come back sorted by position with ties kept in insertion
  order. Positions are stored as given and never renumbered.
  """

  # users
  async def get_user(self, user_id: str) -> UserRecord | None: ...
  async def get_user_by_email(self, email: str) -> UserRecord | None: ...
  async def update_user(self, user_id: str, fields: dict[str, Any]) -> UserRecord: ...
  async def provision_account(self, *, email: str, password_hash: str, first_name: str, last_name: str) -> UserRecord: ...
  async def delete_account(self, user_id: str) -> None: ...

  # boards
  async def list_boards(self, user_id: str) -> list[BoardRecord]: ...
  async def get_board(self, board_id: str, user_id: str) -> BoardRecord: ...
  async def create_board(self, fields: dict[str, Any], user_id: str) -> BoardRecord: ...
  async def update_board(self, board_id: str, fields: dict[str, Any], user_id: str) -> BoardRecord: ...
  async def delete_board(self, board_id: str, user_id: str) -> None: ...

  # columns
  async def list_columns(self, board_id: str, user_id: str) -> list[ColumnRecord]: ...
  async def get_column(self, column_id: str, user_id: str) -> ColumnRecord: ...
  async def create_column(self, board_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord: ...
  async def update_column(self, column_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord: ...
  async def delete_column(self, column_id: str, user_id: str) -> None: ...

  # tasks
  async def list_tasks(self, column_id: str, user_id: str) -> list[TaskRecord]: ...
  async def list_board_tasks(self, board_id: str, user_id: str) -> list[TaskRecord]: ...
  async def get_task(self, task_id: str, user_id: str) -> TaskRecord: ...
  async def create_task(self, fields: dict[str, Any], user_id: str) -> TaskRecord: ...
  async def update_task(self, task_id: str, fields: dict[str, Any], user_id: str) -> TaskRecord: ...
  async def move_task(self, task_id: str, column_id: str, position: int, user_id: str) -> TaskRecord: ...
  async def delete_task(self, task_id: str, user_id: str) -> None: ...

  # comments
  async def list_comments(self, task_id: str, user_id: str) -> list[CommentRecord]: ...
  async def create_comment(self, task_id: str, content: str, author: str, user_id: str) -> CommentRecord: ...
  async def delete_comment(self, comment_id: str, user_id: str) -> None: ...

  # dependencies
  async def list_dependencies(self, task_id: str, user_id: str) -> list[DependencyRecord]: ...
  async def create_dependency(self, from_task_id: str, to_task_id: str, user_id: str) -> DependencyRecord: ...
  async def delete_dependency(self, dependency_id: str, user_id: str) -> None: ...

  async def close(self) -> None: ...
