"""
Issue tracker 抽象。

- `TicketProvider` Protocol：只要求 `fetch_ticket(key)`，便于替换 Jira / Linear / 内存实现
- `fetch_tickets`：按批（默认 5 个）并发拉取，每批全部结束后再发下一批
  - 批与批之间保持输入顺序；批内完成顺序不保证（结果按输入位置回填）
  - 单个 ticket 拉取失败只记日志并跳过，不影响其它 ticket
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

import anyio

from prlens.tracker.schemas import Ticket

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 5


class TicketProviderError(RuntimeError):
    """issue tracker 调用失败（网络错误、鉴权失败、非预期响应）。"""

    pass


class TicketProvider(Protocol):
    name: str

    async def fetch_ticket(self, key: str) -> Ticket | None: ...


@dataclass
class InMemoryTicketProvider:
    """内存实现：只用于开发/测试。"""

    tickets: Mapping[str, Ticket] = field(default_factory=dict)
    name: str = "memory"

    async def fetch_ticket(self, key: str) -> Ticket | None:
        return self.tickets.get(key)


async def fetch_ticket_safely(provider: TicketProvider, key: str) -> Ticket | None:
    """调用边界：任何异常都转成 None（ticket 不可用），并记录日志。"""
    try:
        return await provider.fetch_ticket(key)
    except Exception as exc:
        logger.warning(f"ticket fetch failed: provider={provider.name} key={key} err={exc}")
        return None


async def fetch_tickets(
    provider: TicketProvider,
    keys: Sequence[str],
    batch_size: int = FETCH_BATCH_SIZE,
) -> list[Ticket]:
    """按批拉取多个 ticket，返回成功拿到的那些（保持 keys 的顺序）。"""
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    results: list[Ticket | None] = [None] * len(keys)

    async def _fetch_into(index: int, key: str) -> None:
        results[index] = await fetch_ticket_safely(provider=provider, key=key)

    for start in range(0, len(keys), batch_size):
        async with anyio.create_task_group() as tg:
            for offset, key in enumerate(keys[start : start + batch_size]):
                tg.start_soon(_fetch_into, start + offset, key)

    return [t for t in results if t is not None]
