from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from taskflow.deps import get_current_user, get_storage
from taskflow.records import BoardRecord, UserRecord
from taskflow.schemas import BoardCreateIn, BoardOut, BoardUpdateIn, changes
from taskflow.storage.base import Storage

router = APIRouter(prefix="/api/boards", tags=["boards"])


def board_out(b: BoardRecord) -> BoardOut:
  return BoardOut(
    id=b.id,
    userId=b.user_id,
    name=b.name,
    description=b.description,
    createdAt=b.created_at,
    updatedAt=b.updated_at,
  )


@router.get("", response_model=list[BoardOut])
async def list_boards(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> list[BoardOut]:
  return [board_out(b) for b in await storage.list_boards(user.id)]


@router.post("", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_board(
  payload: BoardCreateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> BoardOut:
  b = await storage.create_board({"name": payload.name.strip(), "description": payload.description}, user.id)
  return board_out(b)


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(board_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> BoardOut:
  return board_out(await storage.get_board(board_id, user.id))


@router.put("/{board_id}", response_model=BoardOut)
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  user: UserRecord = Depends(get_current_user),
  storage: Storage = Depends(get_storage),
) -> BoardOut:
  fields = changes(payload, {"name": "name", "description": "description"}, nullable=("description",))
  return board_out(await storage.update_board(board_id, fields, user.id))


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(board_id: str, user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)) -> Response:
  await storage.delete_board(board_id, user.id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
