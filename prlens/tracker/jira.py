"""
Jira Cloud 客户端（外部系统连接器）。

约定：
- 这里只做“HTTP 调用 + 错误处理 + schema 校验 + 归一化”，不做业务决策
- 404 视为 ticket 不存在（返回 None）；其它错误抛 `TicketProviderError`，由调用边界决定是否降级
- 验收标准（AC）优先读配置的自定义字段，否则从描述里按常见标题/列表格式抽取
"""

from __future__ import annotations

import logging
import re

import httpx
from pydantic import ValidationError

from prlens.tracker.base import TicketProviderError
from prlens.tracker.jira_schemas import JiraAdfNode
from prlens.tracker.jira_schemas import JiraIssue
from prlens.tracker.jira_schemas import JiraIssueFields
from prlens.tracker.schemas import IssuePriority
from prlens.tracker.schemas import IssueType
from prlens.tracker.schemas import Ticket

logger = logging.getLogger(__name__)

_BLOCK_NODES = {"paragraph", "heading", "bulletList", "orderedList", "listItem", "codeBlock", "blockquote"}

_AC_SECTION_PATTERNS = (
    r"acceptance\s*criteria[:\s]*\n([\s\S]*?)(?=\n\n|\n#|$)",
    r"definition\s*of\s*done[:\s]*\n([\s\S]*?)(?=\n\n|\n#|$)",
    r"requirements[:\s]*\n([\s\S]*?)(?=\n\n|\n#|$)",
)
_GHERKIN_PATTERN = r"given[\s\S]*?when[\s\S]*?then[^\n]*"

_STORY_POINT_FIELDS = ("customfield_10016", "customfield_10004", "storyPoints")


class JiraTicketProvider:
    """最小 Jira REST v3 client。"""

    name = "jira"

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        http_client: httpx.AsyncClient,
        acceptance_criteria_field: str | None = None,
    ) -> None:
        """
        - base_url: Jira 实例地址（例如 https://acme.atlassian.net）
        - email/api_token: Basic auth 凭据
        - http_client: 复用的 httpx.AsyncClient
        - acceptance_criteria_field: 存放 AC 的自定义字段 id（可选）
        """
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(email, api_token)
        self._http_client = http_client
        self._ac_field = acceptance_criteria_field

    async def fetch_ticket(self, key: str) -> Ticket | None:
        url = f"{self._base_url}/rest/api/3/issue/{key}"
        try:
            response = await self._http_client.get(url, auth=self._auth, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise TicketProviderError(f"Jira request failed for {key}: {exc}") from exc

        if response.status_code == 404:
            logger.info(f"Jira ticket not found: {key}")
            return None
        if response.status_code >= 400:
            raise TicketProviderError(f"Jira API error {response.status_code}: {response.text}")

        try:
            issue = JiraIssue.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TicketProviderError(f"Unexpected Jira payload for {key}: {exc}") from exc
        return self.normalize(issue=issue)

    def normalize(self, issue: JiraIssue) -> Ticket:
        fields = issue.fields
        description = description_text(fields=fields)
        attachments = fields.attachment
        return Ticket(
            key=issue.key,
            id=issue.id,
            url=f"{self._base_url}/browse/{issue.key}",
            title=fields.summary,
            description=description,
            type=normalize_issue_type(name=fields.issuetype.name if fields.issuetype else None),
            status=fields.status.name if fields.status else "Unknown",
            priority=normalize_priority(name=fields.priority.name if fields.priority else None),
            assignee=fields.assignee.displayName if fields.assignee else None,
            reporter=fields.reporter.displayName if fields.reporter else None,
            labels=fields.labels,
            components=[c.name for c in fields.components],
            story_points=_story_points(fields=fields),
            acceptance_criteria=self._acceptance_criteria(fields=fields, description=description),
            has_screenshots=any(a.mimeType.startswith("image/") for a in attachments),
            has_diagrams=any("diagram" in a.filename or "flow" in a.filename or "svg" in a.mimeType for a in attachments),
            attachment_count=len(attachments),
        )

    def _acceptance_criteria(self, fields: JiraIssueFields, description: str) -> list[str]:
        if self._ac_field:
            raw = fields.custom(self._ac_field)
            if isinstance(raw, str) and raw.strip():
                return parse_criteria_list(text=raw)
            if isinstance(raw, dict):
                return parse_criteria_list(text=adf_to_text(node=JiraAdfNode.model_validate(raw)))
        return extract_acceptance_criteria(description=description)


def adf_to_text(node: JiraAdfNode) -> str:
    """ADF 文档压平成纯文本；块级节点后换行。"""

    def _walk(n: JiraAdfNode) -> str:
        if n.type == "text":
            return n.text or ""
        if n.type == "hardBreak":
            return "\n"
        inner = "".join(_walk(child) for child in n.content)
        if n.type == "listItem":
            return f"- {inner.strip()}\n"
        if n.type in _BLOCK_NODES:
            return inner if inner.endswith("\n") else inner + "\n"
        return inner

    return _walk(node).strip()


def description_text(fields: JiraIssueFields) -> str:
    if fields.description is None:
        return ""
    if isinstance(fields.description, str):
        return fields.description
    return adf_to_text(node=fields.description)


def extract_acceptance_criteria(description: str) -> list[str]:
    for pattern in _AC_SECTION_PATTERNS:
        match = re.search(pattern, description, flags=re.IGNORECASE)
        if match:
            return parse_criteria_list(text=match.group(1))
    gherkin = re.findall(_GHERKIN_PATTERN, description, flags=re.IGNORECASE)
    return [" ".join(g.split()) for g in gherkin]


def parse_criteria_list(text: str) -> list[str]:
    """解析列表项（`-`/`*`/`•`、编号、checkbox）；没有列表时退回到按行（>10 字符）。"""
    items: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        match = re.match(r"^(?:[-*•]\s*)?(?:\[[ xX]\]\s*)?(?:\d+[.)]\s*)?(.+)$", stripped)
        if not match or match.group(1) == stripped:
            continue
        item = match.group(1).strip()
        if item and item not in items:
            items.append(item)
    if items:
        return items
    return [line.strip() for line in text.splitlines() if len(line.strip()) > 10]


def normalize_issue_type(name: str | None) -> IssueType:
    if not name:
        return "other"
    lowered = name.lower()
    if "bug" in lowered:
        return "bug"
    if "feature" in lowered:
        return "feature"
    if "story" in lowered:
        return "story"
    if "epic" in lowered:
        return "epic"
    if "subtask" in lowered or "sub-task" in lowered:
        return "subtask"
    if "task" in lowered:
        return "task"
    if "improvement" in lowered:
        return "improvement"
    if "spike" in lowered:
        return "spike"
    return "other"


def normalize_priority(name: str | None) -> IssuePriority:
    if not name:
        return "none"
    lowered = name.lower()
    if lowered in ("highest", "blocker", "critical"):
        return "critical"
    if lowered in ("high", "major"):
        return "high"
    if lowered == "medium":
        return "medium"
    if lowered in ("low", "lowest", "minor", "trivial"):
        return "low"
    return "none"


def _story_points(fields: JiraIssueFields) -> float | None:
    for name in _STORY_POINT_FIELDS:
        value = fields.custom(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                continue
    return None
