"""
Jira REST API v3 response schemas（Pydantic）。

只覆盖归一化 `Ticket` 需要的字段子集；未知字段忽略（Jira 的自定义字段很多）。
description 可能是纯文本，也可能是 ADF（Atlassian Document Format）文档。
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JiraAdfNode(BaseModel):
    type: str
    text: str | None = None
    content: list[JiraAdfNode] = Field(default_factory=list)


class JiraNamed(BaseModel):
    name: str = ""


class JiraUser(BaseModel):
    displayName: str = ""


class JiraAttachment(BaseModel):
    filename: str = ""
    mimeType: str = ""


class JiraIssueFields(BaseModel):
    # 自定义字段（customfield_xxx）保留在 model_extra 里
    model_config = ConfigDict(extra="allow")

    summary: str = ""
    description: str | JiraAdfNode | None = None
    issuetype: JiraNamed | None = None
    status: JiraNamed | None = None
    priority: JiraNamed | None = None
    assignee: JiraUser | None = None
    reporter: JiraUser | None = None
    labels: list[str] = Field(default_factory=list)
    components: list[JiraNamed] = Field(default_factory=list)
    attachment: list[JiraAttachment] = Field(default_factory=list)

    def custom(self, name: str) -> Any:
        return (self.model_extra or {}).get(name)


class JiraIssue(BaseModel):
    id: str
    key: str
    fields: JiraIssueFields = Field(default_factory=JiraIssueFields)
