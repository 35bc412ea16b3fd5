from __future__ import annotations

TASK_PRIORITIES = ("low", "medium", "high")
TASK_STATUSES = ("backlog", "in-progress", "review", "done")

DEFAULT_BOARD_NAME = "My Kanban Board"
DEFAULT_BOARD_DESCRIPTION = "Personal task board"


def default_columns() -> list[dict]:
  return [
    {"title": "Backlog", "color": "#3b82f6", "position": 0, "status_key": "backlog"},
    {"title": "In Progress", "color": "#eab308", "position": 1, "status_key": "in-progress"},
    {"title": "Review", "color": "#f97316", "position": 2, "status_key": "review"},
    {"title": "Done", "color": "#10b981", "position": 3, "status_key": "done"},
  ]


def welcome_task() -> dict:
  return {
    "title": "Welcome!",
    "description": "This is your first task. Edit it or create new ones.",
    "priority": "medium",
    "status": "backlog",
    "progress": 0,
    "position": 0,
    "tags": ["welcome"],
  }


def status_for_column(column_id: str, status_key: str | None = None) -> str | None:
  """
  Status mirrored onto a task moved into the given column.

  Only the four canonical ids carry a status; user-created columns return None
  and leave the task's status untouched.
  """
  if column_id in TASK_STATUSES:
    return column_id
  if status_key in TASK_STATUSES:
    return status_key
  return None
