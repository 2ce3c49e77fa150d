from __future__ import annotations

import httpx
import pytest

from prlens.tracker.base import TicketProviderError
from prlens.tracker.jira import JiraTicketProvider
from prlens.tracker.jira import extract_acceptance_criteria
from prlens.tracker.jira import normalize_issue_type
from prlens.tracker.jira import normalize_priority
from prlens.tracker.jira import parse_criteria_list

ISSUE = {
    "id": "10001",
    "key": "ABC-123",
    "fields": {
        "summary": "Add SSO login",
        "description": {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "As a user I want SSO."}]},
                {"type": "heading", "content": [{"type": "text", "text": "Acceptance Criteria"}]},
                {
                    "type": "bulletList",
                    "content": [
                        {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Users can log in with SSO"}]}]},
                        {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Sessions expire after 30 minutes"}]}]},
                    ],
                },
            ],
        },
        "issuetype": {"name": "Story"},
        "status": {"name": "In Progress"},
        "priority": {"name": "Highest"},
        "assignee": {"displayName": "Dana"},
        "labels": ["auth"],
        "components": [{"name": "web"}],
        "attachment": [{"filename": "login-flow.png", "mimeType": "image/png"}],
        "customfield_10016": 5,
    },
}


def _provider(handler, **kwargs) -> JiraTicketProvider:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return JiraTicketProvider(
        base_url="https://acme.atlassian.net/",
        email="bot@acme.io",
        api_token="t",
        http_client=http_client,
        **kwargs,
    )


@pytest.mark.anyio
async def test_fetch_ticket_normalizes_issue() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ISSUE)

    ticket = await _provider(handler).fetch_ticket("ABC-123")
    assert ticket is not None
    assert seen[0].url.path == "/rest/api/3/issue/ABC-123"
    assert seen[0].headers["authorization"].startswith("Basic ")
    assert ticket.url == "https://acme.atlassian.net/browse/ABC-123"
    assert ticket.title == "Add SSO login"
    assert ticket.type == "story"
    assert ticket.priority == "critical"
    assert ticket.assignee == "Dana"
    assert ticket.components == ["web"]
    assert ticket.story_points == 5.0
    assert ticket.has_screenshots
    assert ticket.has_diagrams
    assert ticket.attachment_count == 1
    assert ticket.acceptance_criteria == ["Users can log in with SSO", "Sessions expire after 30 minutes"]


@pytest.mark.anyio
async def test_fetch_ticket_404_is_none() -> None:
    ticket = await _provider(lambda request: httpx.Response(404, json={})).fetch_ticket("ABC-9")
    assert ticket is None


@pytest.mark.anyio
async def test_fetch_ticket_error_status_raises() -> None:
    with pytest.raises(TicketProviderError):
        await _provider(lambda request: httpx.Response(401, text="unauthorized")).fetch_ticket("ABC-9")


@pytest.mark.anyio
async def test_fetch_ticket_reads_custom_acceptance_field() -> None:
    issue = {"id": "1", "key": "ABC-1", "fields": {"summary": "s", "customfield_10100": "- First item\n- Second item"}}
    provider = _provider(lambda request: httpx.Response(200, json=issue), acceptance_criteria_field="customfield_10100")
    ticket = await provider.fetch_ticket("ABC-1")
    assert ticket.acceptance_criteria == ["First item", "Second item"]
    assert ticket.description == ""


def test_extract_acceptance_criteria_gherkin_fallback() -> None:
    description = "Given a logged out user\nwhen they open /login\nthen the SSO button is shown"
    assert extract_acceptance_criteria(description=description) == [
        "Given a logged out user when they open /login then the SSO button is shown"
    ]


def test_parse_criteria_list_formats() -> None:
    text = "1. numbered item\n* [x] checked item\n• bullet item\n- numbered item"
    assert parse_criteria_list(text=text) == ["numbered item", "checked item", "bullet item"]
    assert parse_criteria_list(text="plain sentence that is long\nshort") == ["plain sentence that is long"]


def test_normalizers() -> None:
    assert normalize_issue_type(name="Sub-task") == "subtask"
    assert normalize_issue_type(name="Bug") == "bug"
    assert normalize_issue_type(name=None) == "other"
    assert normalize_priority(name="Minor") == "low"
    assert normalize_priority(name="Urgent") == "none"
