from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import field_validator


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Priority = Literal["low", "medium", "high"]
Status = Literal["backlog", "in-progress", "review", "done"]


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


def changes(payload: BaseModel, names: dict[str, str], *, nullable: tuple[str, ...] = ()) -> dict[str, Any]:
  """Fields the client actually sent, renamed to storage keys; null only where the column allows it."""
  out: dict[str, Any] = {}
  for key, value in payload.model_dump(exclude_unset=True).items():
    if key not in names:
      continue
    if value is None and key not in nullable:
      continue
    out[names[key]] = value
  return out


class UserOut(BaseModel):
  id: str
  email: str
  firstName: str
  lastName: str
  profileImageUrl: str | None = None
  createdAt: datetime | None = None


class AuthOut(BaseModel):
  user: UserOut


class RegisterIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  password: str = Field(min_length=6, max_length=200)
  firstName: str = Field(min_length=1, max_length=120)
  lastName: str = Field(min_length=1, max_length=120)

  @field_validator("email")
  @classmethod
  def _email_shape(cls, v: str) -> str:
    v = v.strip()
    if "@" not in v:
      raise ValueError("email must be a valid address")
    return v


class LoginIn(BaseModel):
  email: str
  password: str

  @field_validator("email")
  @classmethod
  def _strip_email(cls, v: str) -> str:
    return v.strip()


class ProfileUpdateIn(BaseModel):
  firstName: str | None = Field(default=None, min_length=1, max_length=120)
  lastName: str | None = Field(default=None, min_length=1, max_length=120)
  profileImageUrl: str | None = Field(default=None, max_length=2000)


class BoardOut(BaseModel):
  id: str
  userId: str
  name: str
  description: str | None = None
  createdAt: datetime
  updatedAt: datetime


class BoardCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  description: str | None = None


class BoardUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = None


class ColumnOut(BaseModel):
  id: str
  boardId: str
  userId: str
  title: str
  position: int
  color: str
  statusKey: str | None = None
  createdAt: datetime


class ColumnCreateIn(BaseModel):
  boardId: str
  title: str = Field(min_length=1, max_length=200)
  position: int
  color: str = "#3b82f6"


class ColumnUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=200)
  position: int | None = None
  color: str | None = None


class TaskOut(BaseModel):
  id: str
  columnId: str
  userId: str
  title: str
  description: str | None = None
  priority: str
  status: str
  progress: int
  dueDate: datetime | None = None
  tags: list[str] = Field(default_factory=list)
  position: int
  createdAt: datetime
  updatedAt: datetime


class TaskCreateIn(BaseModel):
  columnId: str
  title: str = Field(min_length=1, max_length=500)
  description: str | None = None
  priority: Priority = "medium"
  status: Status = "backlog"
  progress: int = Field(default=0, ge=0, le=100)
  dueDate: datetime | None = None
  tags: list[str] = Field(default_factory=list)
  position: int

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  columnId: str | None = None
  title: str | None = Field(default=None, min_length=1, max_length=500)
  description: str | None = None
  priority: Priority | None = None
  status: Status | None = None
  progress: int | None = Field(default=None, ge=0, le=100)
  dueDate: datetime | None = None
  tags: list[str] | None = None
  position: int | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskMoveIn(BaseModel):
  columnId: str
  position: int


class CommentOut(BaseModel):
  id: str
  taskId: str
  userId: str
  content: str
  author: str
  createdAt: datetime


class CommentCreateIn(BaseModel):
  taskId: str
  content: str = Field(min_length=1, max_length=10000)
  author: str | None = Field(default=None, max_length=200)


class DependencyOut(BaseModel):
  id: str
  fromTaskId: str
  toTaskId: str
  createdAt: datetime


class DependencyCreateIn(BaseModel):
  fromTaskId: str
  toTaskId: str


class AIBoardIn(BaseModel):
  boardId: str
