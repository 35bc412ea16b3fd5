from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from taskflow.ai.providers import AIProvider, get_ai_provider
from taskflow.deps import get_current_user, get_storage
from taskflow.errors import UpstreamError
from taskflow.records import ColumnRecord, TaskRecord, UserRecord
from taskflow.schemas import AIBoardIn
from taskflow.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

SUGGESTIONS_SYSTEM = (
  "You are an expert project management AI assistant that analyzes Kanban boards "
  "and provides actionable optimization suggestions."
)
OPTIMIZE_SYSTEM = "You are a workflow optimization AI that helps organize Kanban boards for maximum efficiency."


async def _snapshot(storage: Storage, board_id: str, user_id: str) -> tuple[list[ColumnRecord], list[tuple[TaskRecord, str]]]:
  await storage.get_board(board_id, user_id)
  columns = await storage.list_columns(board_id, user_id)
  titles = {c.id: c.title for c in columns}
  tasks = await storage.list_board_tasks(board_id, user_id)
  return columns, [(t, titles.get(t.column_id, "")) for t in tasks]


def _due(t: TaskRecord) -> str:
  return t.due_date.date().isoformat() if t.due_date else "No deadline"


def suggestions_prompt(columns: list[ColumnRecord], tasks: list[tuple[TaskRecord, str]]) -> str:
  lines = [
    f"- {t.title} ({column}, Priority: {t.priority}, Progress: {t.progress}%, Due: {_due(t)})"
    for t, column in tasks
  ]
  return (
    "Analyze the following Kanban board data and provide optimization suggestions:\n\n"
    f"Columns: {', '.join(c.title for c in columns)}\n\n"
    "Tasks:\n"
    + "\n".join(lines)
    + "\n\nPlease provide suggestions in JSON format with the following structure:\n"
    '{"suggestions": [{"type": "priority" | "workflow" | "deadline" | "dependency", '
    '"title": "Brief suggestion title", "description": "Detailed explanation", '
    '"taskId": "task-id-if-applicable", "action": "specific action to take"}]}'
  )


def optimize_prompt(tasks: list[tuple[TaskRecord, str]]) -> str:
  lines = [f"- {t.title} [{t.id}]: {column} (Priority: {t.priority}, Progress: {t.progress}%)" for t, column in tasks]
  return (
    "Analyze this Kanban board and suggest optimal task organization:\n\n"
    "Current state:\n"
    + "\n".join(lines)
    + "\n\nProvide optimization recommendations in JSON format:\n"
    '{"optimizations": [{"taskId": "task-id", "currentColumn": "current-column-title", '
    '"suggestedColumn": "suggested-column-title", "reason": "explanation for the move"}]}'
  )


@router.post("/suggestions")
async def suggestions(
  payload: AIBoardIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
  provider: AIProvider = Depends(get_ai_provider),
) -> dict[str, Any]:
  columns, tasks = await _snapshot(storage, payload.boardId, user.id)
  try:
    return await provider.complete_json(system=SUGGESTIONS_SYSTEM, prompt=suggestions_prompt(columns, tasks))
  except Exception as exc:
    logger.warning("AI suggestions failed for board %s: %s", payload.boardId, exc)
    raise UpstreamError("Failed to generate AI suggestions") from exc


@router.post("/optimize-board")
async def optimize_board(
  payload: AIBoardIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
  provider: AIProvider = Depends(get_ai_provider),
) -> dict[str, Any]:
  _, tasks = await _snapshot(storage, payload.boardId, user.id)
  try:
    return await provider.complete_json(system=OPTIMIZE_SYSTEM, prompt=optimize_prompt(tasks))
  except Exception as exc:
    logger.warning("AI board optimization failed for board %s: %s", payload.boardId, exc)
    raise UpstreamError("Failed to optimize board") from exc
