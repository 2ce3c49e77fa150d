"""
LLM Client（基于 OpenAI SDK，对接任意 OpenAI-compatible 端点）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **统一接口**：orchestrator 只依赖 `ChatModel.invoke(prompt, schema)`
- **严格 JSON**：每个阶段的输出都必须通过 pydantic schema 校验
- **可降级**：没有配置模型时使用 `StubChatModel`（永远抛错，由上游走静态兜底）
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Protocol, TypeVar

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

JSON_ONLY_SYSTEM_PROMPT = (
    "You are a senior code reviewer. Respond with a single JSON object that matches the requested schema. "
    "Do not wrap it in markdown."
)


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


class ChatModel(Protocol):
    """orchestrator 依赖的模型能力（不关心具体厂商）。"""

    @property
    def model_name(self) -> str: ...

    @property
    def tokens_used(self) -> int: ...

    async def invoke(self, prompt: str, schema: type[SchemaT]) -> SchemaT: ...


class StubChatModel:
    """
    没有可用模型时的占位实现。

    每次 invoke 都抛 RuntimeError，让每个阶段都走确定性兜底；
    这样 EXECUTE 模式在没有配置 LLM 时也不会整体失败。
    """

    @property
    def model_name(self) -> str:
        return "stub"

    @property
    def tokens_used(self) -> int:
        return 0

    async def invoke(self, prompt: str, schema: type[SchemaT]) -> SchemaT:
        raise RuntimeError(f"No chat model configured (requested {schema.__name__})")


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatLLMClient:
    """通过 OpenAI-compatible API 调用 LLM，并累计 token 用量。"""

    def __init__(self, api_key: str, base_url: str, http_client: httpx.AsyncClient, model: str) -> None:
        """
        - api_key: LLM API key
        - base_url: OpenAI-compatible base URL（会自动补 `/v1`）
        - http_client: 复用 httpx.AsyncClient 连接池
        - model: 模型名
        """
        self._base_url = _normalize_base_url(base_url=base_url)
        self._model = model
        self._tokens_used = 0
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def tokens_used(self) -> int:
        return self._tokens_used

    async def invoke(self, prompt: str, schema: type[SchemaT]) -> SchemaT:
        messages = [
            ChatMessage(role="system", content=JSON_ONLY_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]
        return await self.complete_json(messages=messages, schema=schema)

    async def complete_json(self, messages: Sequence[ChatMessage], schema: type[SchemaT]) -> SchemaT:
        """
        约定：让模型输出"纯 JSON"，然后做严格 schema 校验。

        - **JSON mode**：使用 response_format 确保返回纯 JSON（不包含 markdown 代码块）
        - **失败策略**：解析失败/校验失败抛 ValueError，由 orchestrator 走一次静态兜底（不重试）
        """
        try:
            logger.info(f"LLM JSON request: model={self._model}, schema={schema.__name__}")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        if response.usage is not None:
            self._tokens_used += response.usage.total_tokens

        content = response.choices[0].message.content
        if content is None:
            logger.error("LLM returned None content")
            raise RuntimeError("LLM returned None content")

        logger.info(f"LLM JSON response: {len(content)} chars, tokens_used={self._tokens_used}")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.error(f"Invalid JSON from LLM. Raw content: {content}")
            raise ValueError(f"LLM did not return valid JSON. Raw: {content}") from exc

        try:
            validated = schema.model_validate(parsed)
        except ValidationError as exc:
            logger.error(f"Schema validation failed: {exc}")
            raise ValueError(f"LLM JSON does not match schema {schema.__name__}: {exc}") from exc

        return validated
