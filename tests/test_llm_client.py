from __future__ import annotations

import json

import httpx
import pytest
from pydantic import BaseModel

from prlens.llm.client import OpenAICompatLLMClient
from prlens.llm.client import StubChatModel


class Verdict(BaseModel):
    ok: bool
    reason: str


def _completion(content: str | None, total_tokens: int = 42) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "m",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 30, "completion_tokens": total_tokens - 30, "total_tokens": total_tokens},
    }


def _client(content: str | None, seen: list[httpx.Request]) -> OpenAICompatLLMClient:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion(content))

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatLLMClient(api_key="k", base_url="https://llm.example.com", http_client=http_client, model="m")


@pytest.mark.anyio
async def test_invoke_validates_schema_and_counts_tokens() -> None:
    seen: list[httpx.Request] = []
    client = _client(json.dumps({"ok": True, "reason": "fine"}), seen)
    result = await client.invoke("review this", Verdict)
    assert result == Verdict(ok=True, reason="fine")
    assert client.tokens_used == 42
    assert client.model_name == "m"

    assert str(seen[0].url) == "https://llm.example.com/v1/chat/completions"
    body = json.loads(seen[0].content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][-1] == {"role": "user", "content": "review this"}


@pytest.mark.anyio
async def test_invoke_rejects_invalid_json() -> None:
    client = _client("```json\n{}\n```", [])
    with pytest.raises(ValueError):
        await client.invoke("x", Verdict)


@pytest.mark.anyio
async def test_invoke_rejects_schema_mismatch() -> None:
    client = _client(json.dumps({"ok": "maybe"}), [])
    with pytest.raises(ValueError):
        await client.invoke("x", Verdict)


@pytest.mark.anyio
async def test_stub_model_always_raises() -> None:
    stub = StubChatModel()
    assert stub.tokens_used == 0
    with pytest.raises(RuntimeError):
        await stub.invoke("x", Verdict)
