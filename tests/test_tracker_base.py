from __future__ import annotations

from dataclasses import dataclass, field

import anyio
import pytest

from prlens.tracker.base import InMemoryTicketProvider
from prlens.tracker.base import fetch_ticket_safely
from prlens.tracker.base import fetch_tickets
from prlens.tracker.schemas import Ticket


@dataclass
class SlowProvider:
    """后面的 key 先返回，并记录最大并发数。"""

    name: str = "slow"
    in_flight: int = 0
    max_in_flight: int = 0
    started: list[str] = field(default_factory=list)

    async def fetch_ticket(self, key: str) -> Ticket | None:
        self.started.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await anyio.sleep(0.01 * (10 - int(key.split("-")[1])))
        self.in_flight -= 1
        if key == "ABC-3":
            raise RuntimeError("boom")
        return Ticket(key=key, title=f"title {key}")


@pytest.mark.anyio
async def test_fetch_tickets_keeps_input_order_and_skips_failures() -> None:
    provider = SlowProvider()
    keys = [f"ABC-{i}" for i in range(1, 8)]
    tickets = await fetch_tickets(provider=provider, keys=keys)
    assert [t.key for t in tickets] == ["ABC-1", "ABC-2", "ABC-4", "ABC-5", "ABC-6", "ABC-7"]
    assert provider.max_in_flight == 5
    # 第二批在第一批全部结束后才开始
    assert set(provider.started[:5]) == set(keys[:5])


@pytest.mark.anyio
async def test_fetch_tickets_rejects_bad_batch_size() -> None:
    with pytest.raises(ValueError):
        await fetch_tickets(provider=InMemoryTicketProvider(), keys=["A-1"], batch_size=0)


@pytest.mark.anyio
async def test_fetch_ticket_safely_converts_errors_to_none() -> None:
    assert await fetch_ticket_safely(provider=SlowProvider(), key="ABC-3") is None
    memory = InMemoryTicketProvider(tickets={"ABC-1": Ticket(key="ABC-1", title="t")})
    assert (await fetch_ticket_safely(provider=memory, key="ABC-1")).title == "t"
    assert await fetch_ticket_safely(provider=memory, key="ABC-2") is None
