from __future__ import annotations

from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from taskflow.errors import ConflictError, NotFoundError
from taskflow.models import Board, BoardColumn, Comment, Dependency, InsertCounter, Task, User
from taskflow.records import (
  BoardRecord,
  ColumnRecord,
  CommentRecord,
  DependencyRecord,
  TaskRecord,
  UserRecord,
  as_utc,
)
from taskflow.storage.base import BOARD_FIELDS, COLUMN_FIELDS, TASK_FIELDS, USER_FIELDS, pick
from taskflow.workflow import DEFAULT_BOARD_DESCRIPTION, DEFAULT_BOARD_NAME, default_columns, welcome_task


def _user_out(u: User) -> UserRecord:
  return UserRecord(
    id=u.id,
    email=u.email,
    password_hash=u.password_hash,
    first_name=u.first_name,
    last_name=u.last_name,
    profile_image_url=u.profile_image_url,
    created_at=as_utc(u.created_at),
    updated_at=as_utc(u.updated_at),
  )


def _board_out(b: Board) -> BoardRecord:
  return BoardRecord(
    id=b.id,
    user_id=b.user_id,
    name=b.name,
    description=b.description,
    created_at=as_utc(b.created_at),
    updated_at=as_utc(b.updated_at),
  )


def _column_out(c: BoardColumn) -> ColumnRecord:
  return ColumnRecord(
    id=c.id,
    board_id=c.board_id,
    user_id=c.user_id,
    title=c.title,
    position=c.position,
    color=c.color,
    status_key=c.status_key,
    created_at=as_utc(c.created_at),
  )


def _task_out(t: Task) -> TaskRecord:
  return TaskRecord(
    id=t.id,
    column_id=t.column_id,
    user_id=t.user_id,
    title=t.title,
    position=t.position,
    description=t.description,
    priority=t.priority,
    status=t.status,
    progress=t.progress,
    due_date=as_utc(t.due_date),
    tags=list(t.tags or []),
    created_at=as_utc(t.created_at),
    updated_at=as_utc(t.updated_at),
  )


def _comment_out(c: Comment) -> CommentRecord:
  return CommentRecord(
    id=c.id,
    task_id=c.task_id,
    user_id=c.user_id,
    content=c.content,
    author=c.author,
    created_at=as_utc(c.created_at),
  )


def _dependency_out(d: Dependency) -> DependencyRecord:
  return DependencyRecord(id=d.id, from_task_id=d.from_task_id, to_task_id=d.to_task_id, created_at=as_utc(d.created_at))


async def _next_insert_order(db: AsyncSession, model: Any, count: int = 1) -> int:
  # Writers serialize on the counter row until commit, so values never repeat.
  bump = (
    update(InsertCounter)
    .where(InsertCounter.name == model.__tablename__)
    .values(value=InsertCounter.value + count)
    .returning(InsertCounter.value)
    .execution_options(synchronize_session=False)
  )
  return (await db.execute(bump)).scalar_one() - count


class DatabaseStorage:
  """Relational store; every public call runs in its own session and commits on success."""

  def __init__(self, engine: AsyncEngine) -> None:
    self.engine = engine
    self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

  async def close(self) -> None:
    await self.engine.dispose()

  # lookups shared by the public calls

  async def _board(self, db: AsyncSession, board_id: str, user_id: str) -> Board:
    res = await db.execute(select(Board).where(Board.id == board_id, Board.user_id == user_id))
    b = res.scalar_one_or_none()
    if not b:
      raise NotFoundError("Board not found")
    return b

  async def _column(self, db: AsyncSession, column_id: str, user_id: str) -> BoardColumn:
    res = await db.execute(select(BoardColumn).where(BoardColumn.id == column_id, BoardColumn.user_id == user_id))
    c = res.scalar_one_or_none()
    if not c:
      raise NotFoundError("Column not found")
    return c

  async def _task(self, db: AsyncSession, task_id: str, user_id: str) -> Task:
    res = await db.execute(select(Task).where(Task.id == task_id, Task.user_id == user_id))
    t = res.scalar_one_or_none()
    if not t:
      raise NotFoundError("Task not found")
    return t

  async def _delete_tasks(self, db: AsyncSession, task_ids: Any) -> None:
    await db.execute(delete(Dependency).where(or_(Dependency.from_task_id.in_(task_ids), Dependency.to_task_id.in_(task_ids))))
    await db.execute(delete(Comment).where(Comment.task_id.in_(task_ids)))
    await db.execute(delete(Task).where(Task.id.in_(task_ids)))

  # users

  async def get_user(self, user_id: str) -> UserRecord | None:
    async with self._sessionmaker() as db:
      res = await db.execute(select(User).where(User.id == user_id))
      u = res.scalar_one_or_none()
      return _user_out(u) if u else None

  async def get_user_by_email(self, email: str) -> UserRecord | None:
    async with self._sessionmaker() as db:
      res = await db.execute(select(User).where(User.email == email))
      u = res.scalar_one_or_none()
      return _user_out(u) if u else None

  async def update_user(self, user_id: str, fields: dict[str, Any]) -> UserRecord:
    async with self._sessionmaker() as db:
      res = await db.execute(select(User).where(User.id == user_id))
      u = res.scalar_one_or_none()
      if not u:
        raise NotFoundError("User not found")
      for k, v in pick(fields, USER_FIELDS).items():
        setattr(u, k, v)
      await db.commit()
      return _user_out(u)

  async def provision_account(self, *, email: str, password_hash: str, first_name: str, last_name: str) -> UserRecord:
    # One transaction: a failure anywhere leaves no user without a board.
    async with self._sessionmaker() as db:
      try:
        u = User(email=email, password_hash=password_hash, first_name=first_name, last_name=last_name)
        db.add(u)
        await db.flush()

        b = Board(
          user_id=u.id,
          name=DEFAULT_BOARD_NAME,
          description=DEFAULT_BOARD_DESCRIPTION,
          insert_order=await _next_insert_order(db, Board),
        )
        db.add(b)
        await db.flush()

        order = await _next_insert_order(db, BoardColumn, len(default_columns()))
        columns: list[BoardColumn] = []
        for idx, column in enumerate(default_columns()):
          c = BoardColumn(board_id=b.id, user_id=u.id, insert_order=order + idx, **column)
          db.add(c)
          columns.append(c)
        await db.flush()

        db.add(Task(column_id=columns[0].id, user_id=u.id, insert_order=await _next_insert_order(db, Task), **welcome_task()))
        await db.commit()
      except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("User already exists") from exc
      return _user_out(u)

  async def delete_account(self, user_id: str) -> None:
    async with self._sessionmaker() as db:
      owned_tasks = select(Task.id).where(Task.user_id == user_id)
      await self._delete_tasks(db, owned_tasks)
      await db.execute(delete(BoardColumn).where(BoardColumn.user_id == user_id))
      await db.execute(delete(Board).where(Board.user_id == user_id))
      await db.execute(delete(User).where(User.id == user_id))
      await db.commit()

  # boards

  async def list_boards(self, user_id: str) -> list[BoardRecord]:
    async with self._sessionmaker() as db:
      res = await db.execute(select(Board).where(Board.user_id == user_id).order_by(Board.insert_order.asc()))
      return [_board_out(b) for b in res.scalars().all()]

  async def get_board(self, board_id: str, user_id: str) -> BoardRecord:
    async with self._sessionmaker() as db:
      return _board_out(await self._board(db, board_id, user_id))

  async def create_board(self, fields: dict[str, Any], user_id: str) -> BoardRecord:
    async with self._sessionmaker() as db:
      b = Board(user_id=user_id, insert_order=await _next_insert_order(db, Board), **pick(fields, BOARD_FIELDS))
      db.add(b)
      await db.commit()
      return _board_out(b)

  async def update_board(self, board_id: str, fields: dict[str, Any], user_id: str) -> BoardRecord:
    async with self._sessionmaker() as db:
      b = await self._board(db, board_id, user_id)
      for k, v in pick(fields, BOARD_FIELDS).items():
        setattr(b, k, v)
      await db.commit()
      return _board_out(b)

  async def delete_board(self, board_id: str, user_id: str) -> None:
    async with self._sessionmaker() as db:
      await self._board(db, board_id, user_id)
      column_ids = select(BoardColumn.id).where(BoardColumn.board_id == board_id, BoardColumn.user_id == user_id)
      await self._delete_tasks(db, select(Task.id).where(Task.column_id.in_(column_ids), Task.user_id == user_id))
      await db.execute(delete(BoardColumn).where(BoardColumn.board_id == board_id, BoardColumn.user_id == user_id))
      await db.execute(delete(Board).where(Board.id == board_id, Board.user_id == user_id))
      await db.commit()

  # columns

  async def list_columns(self, board_id: str, user_id: str) -> list[ColumnRecord]:
    async with self._sessionmaker() as db:
      await self._board(db, board_id, user_id)
      res = await db.execute(
        select(BoardColumn)
        .where(BoardColumn.board_id == board_id, BoardColumn.user_id == user_id)
        .order_by(BoardColumn.position.asc(), BoardColumn.insert_order.asc())
      )
      return [_column_out(c) for c in res.scalars().all()]

  async def get_column(self, column_id: str, user_id: str) -> ColumnRecord:
    async with self._sessionmaker() as db:
      return _column_out(await self._column(db, column_id, user_id))

  async def create_column(self, board_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord:
    async with self._sessionmaker() as db:
      await self._board(db, board_id, user_id)
      c = BoardColumn(
        board_id=board_id,
        user_id=user_id,
        insert_order=await _next_insert_order(db, BoardColumn),
        **pick(fields, COLUMN_FIELDS),
      )
      db.add(c)
      await db.commit()
      return _column_out(c)

  async def update_column(self, column_id: str, fields: dict[str, Any], user_id: str) -> ColumnRecord:
    async with self._sessionmaker() as db:
      c = await self._column(db, column_id, user_id)
      for k, v in pick(fields, COLUMN_FIELDS).items():
        setattr(c, k, v)
      await db.commit()
      return _column_out(c)

  async def delete_column(self, column_id: str, user_id: str) -> None:
    async with self._sessionmaker() as db:
      await self._column(db, column_id, user_id)
      await self._delete_tasks(db, select(Task.id).where(Task.column_id == column_id, Task.user_id == user_id))
      await db.execute(delete(BoardColumn).where(BoardColumn.id == column_id, BoardColumn.user_id == user_id))
      await db.commit()

  # tasks

  async def list_tasks(self, column_id: str, user_id: str) -> list[TaskRecord]:
    async with self._sessionmaker() as db:
      await self._column(db, column_id, user_id)
      res = await db.execute(
        select(Task)
        .where(Task.column_id == column_id, Task.user_id == user_id)
        .order_by(Task.position.asc(), Task.insert_order.asc())
      )
      return [_task_out(t) for t in res.scalars().all()]

  async def list_board_tasks(self, board_id: str, user_id: str) -> list[TaskRecord]:
    async with self._sessionmaker() as db:
      await self._board(db, board_id, user_id)
      res = await db.execute(
        select(Task)
        .join(BoardColumn, BoardColumn.id == Task.column_id)
        .where(BoardColumn.board_id == board_id, Task.user_id == user_id)
        .order_by(
          BoardColumn.position.asc(),
          BoardColumn.insert_order.asc(),
          Task.position.asc(),
          Task.insert_order.asc(),
        )
      )
      return [_task_out(t) for t in res.scalars().all()]

  async def get_task(self, task_id: str, user_id: str) -> TaskRecord:
    async with self._sessionmaker() as db:
      return _task_out(await self._task(db, task_id, user_id))

  async def create_task(self, fields: dict[str, Any], user_id: str) -> TaskRecord:
    data = pick(fields, TASK_FIELDS)
    async with self._sessionmaker() as db:
      await self._column(db, data.get("column_id") or "", user_id)
      data["tags"] = list(data.get("tags") or [])
      t = Task(user_id=user_id, insert_order=await _next_insert_order(db, Task), **data)
      db.add(t)
      await db.commit()
      return _task_out(t)

  async def update_task(self, task_id: str, fields: dict[str, Any], user_id: str) -> TaskRecord:
    data = pick(fields, TASK_FIELDS)
    async with self._sessionmaker() as db:
      t = await self._task(db, task_id, user_id)
      if "column_id" in data:
        await self._column(db, data["column_id"], user_id)
      if "tags" in data:
        data["tags"] = list(data["tags"] or [])
      for k, v in data.items():
        setattr(t, k, v)
      await db.commit()
      return _task_out(t)

  async def move_task(self, task_id: str, column_id: str, position: int, user_id: str) -> TaskRecord:
    async with self._sessionmaker() as db:
      t = await self._task(db, task_id, user_id)
      await self._column(db, column_id, user_id)
      t.column_id = column_id
      t.position = position
      await db.commit()
      return _task_out(t)

  async def delete_task(self, task_id: str, user_id: str) -> None:
    async with self._sessionmaker() as db:
      await self._task(db, task_id, user_id)
      await db.execute(delete(Dependency).where(or_(Dependency.from_task_id == task_id, Dependency.to_task_id == task_id)))
      await db.execute(delete(Comment).where(Comment.task_id == task_id))
      await db.execute(delete(Task).where(Task.id == task_id, Task.user_id == user_id))
      await db.commit()

  # comments

  async def list_comments(self, task_id: str, user_id: str) -> list[CommentRecord]:
    async with self._sessionmaker() as db:
      await self._task(db, task_id, user_id)
      res = await db.execute(
        select(Comment)
        .where(Comment.task_id == task_id, Comment.user_id == user_id)
        .order_by(Comment.created_at.asc(), Comment.insert_order.asc())
      )
      return [_comment_out(c) for c in res.scalars().all()]

  async def create_comment(self, task_id: str, content: str, author: str, user_id: str) -> CommentRecord:
    async with self._sessionmaker() as db:
      await self._task(db, task_id, user_id)
      c = Comment(task_id=task_id, user_id=user_id, content=content, author=author, insert_order=await _next_insert_order(db, Comment))
      db.add(c)
      await db.commit()
      return _comment_out(c)

  async def delete_comment(self, comment_id: str, user_id: str) -> None:
    async with self._sessionmaker() as db:
      res = await db.execute(delete(Comment).where(Comment.id == comment_id, Comment.user_id == user_id))
      if not res.rowcount:
        raise NotFoundError("Comment not found")
      await db.commit()

  # dependencies

  async def list_dependencies(self, task_id: str, user_id: str) -> list[DependencyRecord]:
    async with self._sessionmaker() as db:
      await self._task(db, task_id, user_id)
      res = await db.execute(
        select(Dependency)
        .where(or_(Dependency.from_task_id == task_id, Dependency.to_task_id == task_id))
        .order_by(Dependency.insert_order.asc())
      )
      return [_dependency_out(d) for d in res.scalars().all()]

  async def create_dependency(self, from_task_id: str, to_task_id: str, user_id: str) -> DependencyRecord:
    async with self._sessionmaker() as db:
      await self._task(db, from_task_id, user_id)
      await self._task(db, to_task_id, user_id)
      d = Dependency(from_task_id=from_task_id, to_task_id=to_task_id, insert_order=await _next_insert_order(db, Dependency))
      db.add(d)
      await db.commit()
      return _dependency_out(d)

  async def delete_dependency(self, dependency_id: str, user_id: str) -> None:
    async with self._sessionmaker() as db:
      owned = select(Task.id).where(Task.user_id == user_id)
      res = await db.execute(delete(Dependency).where(Dependency.id == dependency_id, Dependency.from_task_id.in_(owned)))
      if not res.rowcount:
        raise NotFoundError("Dependency not found")
      await db.commit()
