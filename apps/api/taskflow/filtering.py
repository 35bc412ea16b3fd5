from __future__ import annotations

from collections.abc import Iterable

from taskflow.records import TaskRecord


def task_matches(task: TaskRecord, query: str | None) -> bool:
  # Only a missing or empty query matches everything; whitespace is searched as typed.
  if not query:
    return True
  q = query.lower()
  if q in (task.title or "").lower():
    return True
  if task.description and q in task.description.lower():
    return True
  return any(q in (tag or "").lower() for tag in task.tags or [])


def filter_tasks(tasks: Iterable[TaskRecord], query: str | None) -> list[TaskRecord]:
  return [t for t in tasks if task_matches(t, query)]
