from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from taskflow.deps import get_current_user, get_storage
from taskflow.records import ColumnRecord, UserRecord
from taskflow.schemas import ColumnCreateIn, ColumnOut, ColumnUpdateIn, changes
from taskflow.storage.base import Storage

router = APIRouter(prefix="/api", tags=["columns"])


def column_out(c: ColumnRecord) -> ColumnOut:
  return ColumnOut(
    id=c.id,
    boardId=c.board_id,
    userId=c.user_id,
    title=c.title,
    position=c.position,
    color=c.color,
    statusKey=c.status_key,
    createdAt=c.created_at,
  )


@router.get("/boards/{board_id}/columns", response_model=list[ColumnOut])
async def list_columns(board_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> list[ColumnOut]:
  return [column_out(c) for c in await storage.list_columns(board_id, user.id)]


@router.post("/columns", response_model=ColumnOut, status_code=status.HTTP_201_CREATED)
async def create_column(
  payload: ColumnCreateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> ColumnOut:
  c = await storage.create_column(
    payload.boardId,
    {"title": payload.title, "position": payload.position, "color": payload.color},
    user.id,
  )
  return column_out(c)


@router.put("/columns/{column_id}", response_model=ColumnOut)
async def update_column(
  column_id: str,
  payload: ColumnUpdateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> ColumnOut:
  fields = changes(payload, {"title": "title", "position": "position", "color": "color"})
  return column_out(await storage.update_column(column_id, fields, user.id))


@router.delete("/columns/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_column(column_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> Response:
  await storage.delete_column(column_id, user.id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
