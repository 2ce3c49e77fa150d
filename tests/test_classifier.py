from __future__ import annotations

from prlens.review.classifier import classify_project
from prlens.review.models import FileChange


def _change(path: str, *added: str) -> FileChange:
    diff = "\n".join([f"+++ b/{path}", *[f"+{a}" for a in added]])
    return FileChange(path=path, diff=diff, language="python", additions=len(added), deletions=0, status="modified")


SERVICE = _change("src/services/billing.py", "class Billing:", "    def charge(self):")
TEST = _change("tests/test_billing.py", "def test_charge():", "    assert charge() == 1")


def test_business_logic_change() -> None:
    result = classify_project([SERVICE])
    assert result.project_type == "business_logic"
    assert result.confidence == 100
    assert "Business logic file: src/services/billing.py" in result.signals


def test_qa_change() -> None:
    assert classify_project([TEST]).project_type == "qa_testing"


def test_mixed_change() -> None:
    result = classify_project([SERVICE, TEST])
    assert result.project_type == "mixed"
    assert result.business_logic_score == result.qa_testing_score


def test_no_signals_is_unknown() -> None:
    result = classify_project([])
    assert result.project_type == "unknown"
    assert result.confidence == 0
