from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from fastapi import Request

from taskflow.config import Settings
from taskflow.errors import ValidationError


class AIProvider(Protocol):
  async def complete_json(self, *, system: str, prompt: str) -> dict[str, Any]: ...


@dataclass
class OpenAICompatibleProvider:
  api_key: str
  base_url: str
  model: str = "gpt-4o"
  max_tokens: int = 1000
  timeout: float = 60.0

  async def complete_json(self, *, system: str, prompt: str) -> dict[str, Any]:
    headers = {"Authorization": f"Bearer {self.api_key}"}
    async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout) as client:
      r = await client.post(
        "/chat/completions",
        json={
          "model": self.model,
          "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
          ],
          "response_format": {"type": "json_object"},
          "max_tokens": self.max_tokens,
        },
      )
      r.raise_for_status()
      data = r.json()
      return json.loads(data["choices"][0]["message"]["content"] or "{}")


def get_ai_provider(request: Request) -> AIProvider:
  settings: Settings = request.app.state.settings
  if not settings.openai_api_key:
    raise ValidationError("OpenAI API key not configured")
  return OpenAICompatibleProvider(
    api_key=settings.openai_api_key,
    base_url=settings.openai_base_url,
    model=settings.openai_model,
    max_tokens=settings.ai_max_tokens,
  )
