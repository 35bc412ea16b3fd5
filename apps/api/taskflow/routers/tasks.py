from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from taskflow.deps import get_current_user, get_storage
from taskflow.filtering import filter_tasks
from taskflow.records import CommentRecord, DependencyRecord, TaskRecord, UserRecord
from taskflow.schemas import (
  CommentCreateIn,
  CommentOut,
  DependencyCreateIn,
  DependencyOut,
  TaskCreateIn,
  TaskMoveIn,
  TaskOut,
  TaskUpdateIn,
  changes,
)
from taskflow.storage.base import Storage
from taskflow.workflow import status_for_column

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tasks"])

_TASK_KEYS = {
  "columnId": "column_id",
  "title": "title",
  "description": "description",
  "priority": "priority",
  "status": "status",
  "progress": "progress",
  "dueDate": "due_date",
  "tags": "tags",
  "position": "position",
}


def task_out(t: TaskRecord) -> TaskOut:
  return TaskOut(
    id=t.id,
    columnId=t.column_id,
    userId=t.user_id,
    title=t.title,
    description=t.description,
    priority=t.priority,
    status=t.status,
    progress=t.progress,
    dueDate=t.due_date,
    tags=list(t.tags or []),
    position=t.position,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def _comment_out(c: CommentRecord) -> CommentOut:
  return CommentOut(id=c.id, taskId=c.task_id, userId=c.user_id, content=c.content, author=c.author, createdAt=c.created_at)


def _dependency_out(d: DependencyRecord) -> DependencyOut:
  return DependencyOut(id=d.id, fromTaskId=d.from_task_id, toTaskId=d.to_task_id, createdAt=d.created_at)


@router.get("/columns/{column_id}/tasks", response_model=list[TaskOut])
async def list_tasks(
  column_id: str,
  search: str | None = None,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> list[TaskOut]:
  tasks = await storage.list_tasks(column_id, user.id)
  return [task_out(t) for t in filter_tasks(tasks, search)]


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> TaskOut:
  return task_out(await storage.get_task(task_id, user.id))


@router.post("/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
  payload: TaskCreateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> TaskOut:
  fields = changes(payload, _TASK_KEYS, nullable=("description", "dueDate"))
  # Defaults are not "set" by the client but still belong on the row.
  fields.setdefault("priority", payload.priority)
  fields.setdefault("status", payload.status)
  fields.setdefault("progress", payload.progress)
  fields.setdefault("tags", payload.tags)
  return task_out(await storage.create_task(fields, user.id))


@router.put("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> TaskOut:
  fields = changes(payload, _TASK_KEYS, nullable=("description", "dueDate"))
  return task_out(await storage.update_task(task_id, fields, user.id))


@router.post("/tasks/{task_id}/move", response_model=TaskOut)
async def move_task(
  task_id: str,
  payload: TaskMoveIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> TaskOut:
  t = await storage.move_task(task_id, payload.columnId, payload.position, user.id)
  column = await storage.get_column(payload.columnId, user.id)
  mirrored = status_for_column(column.id, column.status_key)
  if mirrored and mirrored != t.status:
    t = await storage.update_task(task_id, {"status": mirrored}, user.id)
  logger.debug("task %s moved to column %s at %d", task_id, payload.columnId, payload.position)
  return task_out(t)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> Response:
  await storage.delete_task(task_id, user.id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/tasks/{task_id}/comments", response_model=list[CommentOut])
async def list_comments(task_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> list[CommentOut]:
  return [_comment_out(c) for c in await storage.list_comments(task_id, user.id)]


@router.post("/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def create_comment(
  payload: CommentCreateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> CommentOut:
  author = (payload.author or "").strip() or user.display_name or "You"
  return _comment_out(await storage.create_comment(payload.taskId, payload.content, author, user.id))


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(comment_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> Response:
  await storage.delete_comment(comment_id, user.id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/tasks/{task_id}/dependencies", response_model=list[DependencyOut])
async def list_dependencies(
  task_id: str,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> list[DependencyOut]:
  return [_dependency_out(d) for d in await storage.list_dependencies(task_id, user.id)]


@router.post("/dependencies", response_model=DependencyOut, status_code=status.HTTP_201_CREATED)
async def create_dependency(
  payload: DependencyCreateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> DependencyOut:
  return _dependency_out(await storage.create_dependency(payload.fromTaskId, payload.toTaskId, user.id))


@router.delete("/dependencies/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dependency(
  dependency_id: str,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> Response:
  await storage.delete_dependency(dependency_id, user.id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
