"""
Ticket Reference Extractor（纯函数，非 AI）。

从 PR 元数据（标题 / 分支名 / 描述 / commit message）里找出 issue key（例如 `ABC-123`），
按来源给出可信度，去重后按可信度降序返回。

规则：
- 默认 pattern 区分大小写（`abc-123` 不会匹配），提取出的 key 统一转大写
- 同一个 key 出现多次：保留可信度更高的；可信度相同保留先出现的
- 设置了 default project 前缀时，不匹配前缀的 key 直接丢弃
- 排序稳定：可信度相同的按发现顺序
"""

from __future__ import annotations

import re
from functools import reduce

from pydantic import BaseModel, Field

from prlens.tracker.schemas import TicketReference
from prlens.tracker.schemas import TicketSource

DEFAULT_TICKET_PATTERN = r"([A-Z][A-Z0-9]+-\d+)"


class TicketConfidence(BaseModel):
    """各来源的可信度（可通过配置覆盖）。"""

    title: int = Field(default=95, ge=0, le=100)
    branch: int = Field(default=90, ge=0, le=100)
    description: int = Field(default=80, ge=0, le=100)
    commit: int = Field(default=70, ge=0, le=100)

    def for_source(self, source: TicketSource) -> int:
        return int(getattr(self, source))


def extract_ticket_references(
    title: str | None,
    branch_name: str,
    commit_messages: list[str],
    ticket_pattern: str | None = None,
    default_project_prefix: str | None = None,
    description: str | None = None,
    confidence: TicketConfidence | None = None,
) -> list[TicketReference]:
    """
    提取并合并所有来源的 ticket 引用。

    - **输入**：标题（可选）、分支名、commit message 列表、pattern、默认项目前缀、描述（可选）
    - **输出**：key 唯一、按 confidence 降序的 `TicketReference` 列表
    - 空输入返回 []
    """
    weights = confidence or TicketConfidence()
    # 每次调用都编译新的 pattern，不复用任何扫描状态
    pattern = re.compile(ticket_pattern or DEFAULT_TICKET_PATTERN)

    sources: list[tuple[TicketSource, str]] = []
    if title:
        sources.append(("title", title))
    if branch_name:
        sources.append(("branch", branch_name))
    if description:
        sources.append(("description", description))
    for message in commit_messages:
        if message:
            sources.append(("commit", message))

    found: list[TicketReference] = []
    for source, text in sources:
        found.extend(
            _scan_text(
                pattern=pattern,
                text=text,
                source=source,
                confidence=weights.for_source(source),
                default_project_prefix=default_project_prefix,
            )
        )

    merged = reduce(merge_reference, found, {})
    return sorted(merged.values(), key=lambda r: r.confidence, reverse=True)


def merge_reference(acc: dict[str, TicketReference], ref: TicketReference) -> dict[str, TicketReference]:
    """
    reduce 用的合并函数：同 key 保留可信度更高者，相同则保留先到的。

    返回新的 dict，不修改 acc。已存在的 key 被替换时保留其原来的位置。
    """
    existing = acc.get(ref.key)
    if existing is not None and existing.confidence >= ref.confidence:
        return acc
    return {**acc, ref.key: ref}


def primary_reference(references: list[TicketReference]) -> TicketReference | None:
    """可信度最高的引用（输入已排序时就是第一个）。"""
    return references[0] if references else None


def _scan_text(
    pattern: re.Pattern[str],
    text: str,
    source: TicketSource,
    confidence: int,
    default_project_prefix: str | None,
) -> list[TicketReference]:
    refs: list[TicketReference] = []
    prefix = default_project_prefix.upper() if default_project_prefix else None
    for match in pattern.finditer(text):
        raw = match.group(1) if pattern.groups else match.group(0)
        if not raw:
            continue
        key = raw.upper()
        if prefix and not key.startswith(prefix):
            continue
        refs.append(TicketReference(key=key, source=source, confidence=confidence))
    return refs
