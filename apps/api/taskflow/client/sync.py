from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from taskflow.client.api import TaskFlowClient
from taskflow.records import TaskRecord
from taskflow.workflow import status_for_column

logger = logging.getLogger(__name__)


@dataclass
class BoardCache:
  """Client-side copy of one board: tasks per column in display order."""

  columns: dict[str, list[TaskRecord]] = field(default_factory=dict)
  status_keys: dict[str, str | None] = field(default_factory=dict)

  @classmethod
  async def load(cls, client: TaskFlowClient, board_id: str) -> BoardCache:
    cache = cls()
    for column in await client.list_columns(board_id):
      cache.status_keys[column.id] = column.status_key
      cache.columns[column.id] = await client.list_tasks(column.id)
    return cache

  def find(self, task_id: str) -> TaskRecord | None:
    for tasks in self.columns.values():
      for t in tasks:
        if t.id == task_id:
          return t
    return None

  def replace_column(self, column_id: str, tasks: list[TaskRecord]) -> None:
    self.columns[column_id] = list(tasks)


@dataclass
class MoveTaskCommand:
  task_id: str
  column_id: str
  position: int
  source_column_id: str | None = None
  _snapshot: dict[str, list[TaskRecord]] | None = None

  def apply(self, cache: BoardCache) -> None:
    task = cache.find(self.task_id)
    if task is None:
      raise KeyError(self.task_id)
    self.source_column_id = task.column_id
    affected = {task.column_id, self.column_id}
    self._snapshot = {cid: copy.deepcopy(cache.columns[cid]) for cid in affected if cid in cache.columns}

    cache.columns[task.column_id] = [t for t in cache.columns[task.column_id] if t.id != self.task_id]
    moved = copy.deepcopy(task)
    moved.column_id = self.column_id
    moved.position = self.position
    mirrored = status_for_column(self.column_id, cache.status_keys.get(self.column_id))
    if mirrored:
      moved.status = mirrored
    target = cache.columns.setdefault(self.column_id, [])
    target.append(moved)
    target.sort(key=lambda t: t.position)

  async def dispatch(self, client: TaskFlowClient) -> TaskRecord:
    return await client.move_task(self.task_id, self.column_id, self.position)

  def discard(self) -> None:
    self._snapshot = None

  @property
  def touched_columns(self) -> set[str]:
    return {cid for cid in (self.source_column_id, self.column_id) if cid}

  def revert(self, cache: BoardCache) -> bool:
    """Restore the snapshot; False when it was discarded."""
    if self._snapshot is None:
      return False
    for cid in self.touched_columns:
      if cid in self._snapshot:
        cache.columns[cid] = self._snapshot[cid]
      else:
        cache.columns.pop(cid, None)
    self._snapshot = None
    return True


class BoardSynchronizer:
  """
  Optimistic moves against a BoardCache.

  The cache changes before the server answers. Success refetches the touched
  columns and adopts the server's copy. Only the most recent in-flight move
  holds a snapshot: starting a move discards the snapshots of older ones, since
  their columns may now carry the newer optimistic change. A rejected move
  restores its snapshot if it still has one, otherwise it reloads its columns
  from the server. Either way the error is re-raised.
  """

  def __init__(self, client: TaskFlowClient, cache: BoardCache) -> None:
    self.client = client
    self.cache = cache
    self.pending: MoveTaskCommand | None = None
    self._in_flight: list[MoveTaskCommand] = []

  async def add_task(self, column_id: str, title: str, **fields) -> TaskRecord:
    # New tasks append: position is the column's current task count.
    position = len(self.cache.columns.get(column_id, []))
    created = await self.client.create_task(column_id, title, position, **fields)
    self.cache.columns.setdefault(column_id, []).append(created)
    return created

  async def move_task(self, task_id: str, column_id: str, position: int) -> TaskRecord:
    cmd = MoveTaskCommand(task_id=task_id, column_id=column_id, position=position)
    cmd.apply(self.cache)
    for older in self._in_flight:
      older.discard()
    self._in_flight.append(cmd)
    self.pending = cmd
    try:
      moved = await cmd.dispatch(self.client)
    except Exception:
      if cmd.revert(self.cache):
        logger.info("move of task %s rejected; restoring local board", task_id)
      else:
        logger.info("superseded move of task %s rejected; reloading columns", task_id)
        # Newer snapshots were taken on top of this move's optimistic change.
        for other in self._in_flight:
          other.discard()
        try:
          await self._reload(cmd.touched_columns)
        except Exception:
          logger.warning("could not reload columns after rejected move of task %s", task_id, exc_info=True)
      raise
    finally:
      self._in_flight.remove(cmd)
      if self.pending is cmd:
        self.pending = None

    await self._reload(cmd.touched_columns)
    return moved

  async def _reload(self, column_ids: set[str]) -> None:
    for cid in column_ids:
      self.cache.replace_column(cid, await self.client.list_tasks(cid))
