from __future__ import annotations

import copy

import anyio
import httpx
import pytest
from httpx import ASGITransport

from taskflow.client.api import ClientError, TaskFlowClient, task_from_json
from taskflow.client.sync import BoardCache, BoardSynchronizer, MoveTaskCommand
from taskflow.records import TaskRecord


@pytest.fixture
async def api(app):
  http = httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost")
  client = TaskFlowClient(http)
  yield client
  await client.aclose()


async def _board(api: TaskFlowClient) -> tuple[str, BoardCache]:
  await api.register("ada@example.com", "secret123", "Ada", "Lovelace")
  board_id = (await api.list_boards())[0]["id"]
  return board_id, await BoardCache.load(api, board_id)


@pytest.mark.anyio
async def test_cache_loads_board(api: TaskFlowClient) -> None:
  _, cache = await _board(api)
  assert len(cache.columns) == 4
  assert sorted(k for k in cache.status_keys.values()) == ["backlog", "done", "in-progress", "review"]
  welcome = next(t for tasks in cache.columns.values() for t in tasks)
  assert welcome.title == "Welcome!"


@pytest.mark.anyio
async def test_optimistic_move_adopts_server_state(api: TaskFlowClient) -> None:
  board_id, cache = await _board(api)
  columns = await api.list_columns(board_id)
  backlog, done = columns[0].id, columns[3].id
  welcome = cache.columns[backlog][0]

  sync = BoardSynchronizer(api, cache)
  moved = await sync.move_task(welcome.id, done, 0)

  assert moved.status == "done"
  assert cache.columns[backlog] == []
  assert [t.id for t in cache.columns[done]] == [welcome.id]
  assert cache.columns[done][0].status == "done"
  assert sync.pending is None


@pytest.mark.anyio
async def test_add_task_appends_to_column(api: TaskFlowClient) -> None:
  board_id, cache = await _board(api)
  backlog = (await api.list_columns(board_id))[0].id
  sync = BoardSynchronizer(api, cache)

  first = await sync.add_task(backlog, "Second", priority="high")
  second = await sync.add_task(backlog, "Third")
  assert (first.position, second.position) == (1, 2)
  assert first.priority == "high"
  server = await api.list_tasks(backlog)
  assert [t.title for t in server] == ["Welcome!", "Second", "Third"]
  assert [t.id for t in cache.columns[backlog]] == [t.id for t in server]


def test_apply_then_revert_restores_exactly() -> None:
  a = TaskRecord(id="a", column_id="c1", user_id="u", title="a", position=0)
  b = TaskRecord(id="b", column_id="c1", user_id="u", title="b", position=1)
  c = TaskRecord(id="c", column_id="c2", user_id="u", title="c", position=0, status="review")
  cache = BoardCache(columns={"c1": [a, b], "c2": [c]}, status_keys={"c1": "backlog", "c2": "review"})
  before = copy.deepcopy(cache.columns)

  cmd = MoveTaskCommand(task_id="a", column_id="c2", position=1)
  cmd.apply(cache)
  assert [t.id for t in cache.columns["c1"]] == ["b"]
  assert [(t.id, t.status) for t in cache.columns["c2"]] == [("c", "review"), ("a", "review")]

  cmd.revert(cache)
  assert cache.columns == before


def test_apply_into_column_without_status_keeps_status() -> None:
  a = TaskRecord(id="a", column_id="c1", user_id="u", title="a", position=0, status="in-progress")
  cache = BoardCache(columns={"c1": [a], "custom": []}, status_keys={"c1": "in-progress", "custom": None})
  MoveTaskCommand(task_id="a", column_id="custom", position=0).apply(cache)
  assert cache.columns["custom"][0].status == "in-progress"


@pytest.mark.anyio
async def test_rejected_move_rolls_back_and_reraises(api: TaskFlowClient) -> None:
  board_id, cache = await _board(api)
  columns = await api.list_columns(board_id)
  backlog = columns[0].id
  welcome = cache.columns[backlog][0]
  # The server does not know this column; the local cache is told it does.
  cache.columns["ghost"] = []
  cache.status_keys["ghost"] = "done"
  before = copy.deepcopy(cache.columns)

  sync = BoardSynchronizer(api, cache)
  with pytest.raises(ClientError) as err:
    await sync.move_task(welcome.id, "ghost", 0)

  assert err.value.status_code == 404
  assert err.value.message == "Column not found"
  assert cache.columns == before
  assert sync.pending is None


@pytest.mark.anyio
async def test_network_failure_rolls_back() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("offline", request=request)

  api = TaskFlowClient(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://localhost"))
  t = TaskRecord(id="t", column_id="c1", user_id="u", title="t", position=0)
  cache = BoardCache(columns={"c1": [t], "c2": []}, status_keys={"c1": "backlog", "c2": "done"})
  before = copy.deepcopy(cache.columns)

  with pytest.raises(httpx.ConnectError):
    await BoardSynchronizer(api, cache).move_task("t", "c2", 0)
  assert cache.columns == before
  await api.aclose()


def _task_json(task_id: str, column_id: str, position: int) -> dict:
  stamp = "2026-01-01T00:00:00Z"
  return {
    "id": task_id,
    "columnId": column_id,
    "userId": "u",
    "title": task_id,
    "position": position,
    "status": "backlog",
    "tags": [],
    "createdAt": stamp,
    "updatedAt": stamp,
  }


def _ids(cache: BoardCache) -> dict[str, list[str]]:
  return {cid: [t.id for t in tasks] for cid, tasks in cache.columns.items()}


@pytest.mark.anyio
@pytest.mark.parametrize("first_to_fail", ["x", "y"])
async def test_overlapping_rejected_moves_match_server(first_to_fail: str) -> None:
  server = {"c1": [_task_json("x", "c1", 0), _task_json("y", "c1", 1)], "c2": [], "c3": []}
  gates = {"x": anyio.Event(), "y": anyio.Event()}

  async def handler(request: httpx.Request) -> httpx.Response:
    parts = request.url.path.split("/")
    if parts[-1] == "move":
      await gates[parts[3]].wait()
      return httpx.Response(409, json={"message": "rejected"})
    return httpx.Response(200, json=server[parts[3]])

  api = TaskFlowClient(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://localhost"))
  cache = BoardCache(
    columns={cid: [task_from_json(t) for t in tasks] for cid, tasks in server.items()},
    status_keys={"c1": "backlog", "c2": "review", "c3": "done"},
  )
  sync = BoardSynchronizer(api, cache)
  errors: dict[str, int] = {}

  async def move(task_id: str, column_id: str) -> None:
    try:
      await sync.move_task(task_id, column_id, 0)
    except ClientError as exc:
      errors[task_id] = exc.status_code

  async with anyio.create_task_group() as tg:
    tg.start_soon(move, "x", "c2")
    await anyio.wait_all_tasks_blocked()
    tg.start_soon(move, "y", "c3")
    await anyio.wait_all_tasks_blocked()
    assert _ids(cache) == {"c1": [], "c2": ["x"], "c3": ["y"]}

    gates[first_to_fail].set()
    await anyio.wait_all_tasks_blocked()
    gates["y" if first_to_fail == "x" else "x"].set()

  assert errors == {"x": 409, "y": 409}
  assert _ids(cache) == {"c1": ["x", "y"], "c2": [], "c3": []}
  assert sync.pending is None
  await api.aclose()
