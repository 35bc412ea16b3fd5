from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if value is None:
    return None
  if value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  return value.astimezone(timezone.utc)


@dataclass
class UserRecord:
  id: str
  email: str
  password_hash: str
  first_name: str
  last_name: str
  profile_image_url: str | None = None
  created_at: datetime = field(default_factory=utcnow)
  updated_at: datetime = field(default_factory=utcnow)

  @property
  def display_name(self) -> str:
    return f"{self.first_name} {self.last_name}".strip()


@dataclass
class SessionRecord:
  id: str
  user_id: str
  expires_at: datetime
  created_at: datetime = field(default_factory=utcnow)


@dataclass
class BoardRecord:
  id: str
  user_id: str
  name: str
  description: str | None = None
  created_at: datetime = field(default_factory=utcnow)
  updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ColumnRecord:
  id: str
  board_id: str
  user_id: str
  title: str
  position: int
  color: str = "#3b82f6"
  status_key: str | None = None
  created_at: datetime = field(default_factory=utcnow)


@dataclass
class TaskRecord:
  id: str
  column_id: str
  user_id: str
  title: str
  position: int
  description: str | None = None
  priority: str = "medium"
  status: str = "backlog"
  progress: int = 0
  due_date: datetime | None = None
  tags: list[str] = field(default_factory=list)
  created_at: datetime = field(default_factory=utcnow)
  updated_at: datetime = field(default_factory=utcnow)


@dataclass
class CommentRecord:
  id: str
  task_id: str
  user_id: str
  content: str
  author: str
  created_at: datetime = field(default_factory=utcnow)


@dataclass
class DependencyRecord:
  id: str
  from_task_id: str
  to_task_id: str
  created_at: datetime = field(default_factory=utcnow)
