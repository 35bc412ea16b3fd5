from __future__ import annotations

import json

import httpx
import pytest
from httpx import AsyncClient

from taskflow.ai.providers import OpenAICompatibleProvider, get_ai_provider

from conftest import default_board, register


class FakeProvider:
  def __init__(self, result: dict | None = None, error: Exception | None = None) -> None:
    self.result = result or {}
    self.error = error
    self.calls: list[dict] = []

  async def complete_json(self, *, system: str, prompt: str) -> dict:
    self.calls.append({"system": system, "prompt": prompt})
    if self.error:
      raise self.error
    return self.result


@pytest.mark.anyio
async def test_ai_requires_api_key(client: AsyncClient) -> None:
  await register(client)
  board, _ = await default_board(client)
  for path in ("/api/ai/suggestions", "/api/ai/optimize-board"):
    res = await client.post(path, json={"boardId": board["id"]})
    assert res.status_code == 400, res.text
    assert res.json() == {"message": "OpenAI API key not configured"}


@pytest.mark.anyio
async def test_suggestions_return_provider_json_verbatim(app, client: AsyncClient) -> None:
  result = {"suggestions": [{"type": "workflow", "title": "Start", "description": "d", "taskId": None, "action": "go"}]}
  provider = FakeProvider(result)
  app.dependency_overrides[get_ai_provider] = lambda: provider
  await register(client)
  board, _ = await default_board(client)

  res = await client.post("/api/ai/suggestions", json={"boardId": board["id"]})
  assert res.status_code == 200, res.text
  assert res.json() == result
  prompt = provider.calls[0]["prompt"]
  assert "Columns: Backlog, In Progress, Review, Done" in prompt
  assert "- Welcome! (Backlog, Priority: medium, Progress: 0%, Due: No deadline)" in prompt


@pytest.mark.anyio
async def test_optimize_board_failure_is_generic_500(app, client: AsyncClient) -> None:
  app.dependency_overrides[get_ai_provider] = lambda: FakeProvider(error=RuntimeError("upstream exploded: key sk-123"))
  await register(client)
  board, _ = await default_board(client)

  res = await client.post("/api/ai/optimize-board", json={"boardId": board["id"]})
  assert res.status_code == 500
  assert res.json() == {"message": "Failed to optimize board"}

  res = await client.post("/api/ai/suggestions", json={"boardId": board["id"]})
  assert res.status_code == 500
  assert res.json() == {"message": "Failed to generate AI suggestions"}


@pytest.mark.anyio
async def test_ai_on_foreign_board_is_not_found(app, client: AsyncClient) -> None:
  provider = FakeProvider({"optimizations": []})
  app.dependency_overrides[get_ai_provider] = lambda: provider
  await register(client)
  res = await client.post("/api/ai/optimize-board", json={"boardId": "nope"})
  assert res.status_code == 404
  assert provider.calls == []


@pytest.mark.anyio
async def test_openai_provider_posts_json_mode_request(monkeypatch) -> None:
  seen: dict = {}

  def handler(request: httpx.Request) -> httpx.Response:
    seen["url"] = str(request.url)
    seen["auth"] = request.headers["authorization"]
    seen["body"] = json.loads(request.content)
    content = json.dumps({"optimizations": [{"taskId": "t1"}]})
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

  real_client = httpx.AsyncClient

  def client_factory(**kwargs):
    return real_client(transport=httpx.MockTransport(handler), **kwargs)

  monkeypatch.setattr(httpx, "AsyncClient", client_factory)
  provider = OpenAICompatibleProvider(api_key="sk-test", base_url="https://llm.example/v1", model="gpt-4o", max_tokens=1000)
  out = await provider.complete_json(system="sys", prompt="hello")

  assert out == {"optimizations": [{"taskId": "t1"}]}
  assert seen["url"] == "https://llm.example/v1/chat/completions"
  assert seen["auth"] == "Bearer sk-test"
  assert seen["body"]["response_format"] == {"type": "json_object"}
  assert seen["body"]["max_tokens"] == 1000
  assert seen["body"]["messages"][0] == {"role": "system", "content": "sys"}
