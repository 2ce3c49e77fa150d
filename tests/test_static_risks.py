from __future__ import annotations

from prlens.review.models import FileChange
from prlens.review.models import Fix
from prlens.review.static_risks import scan_changes
from prlens.review.static_risks import scan_file_change
from prlens.review.static_risks import summarize_risks


def _change(path: str, language: str, *added: str, status: str = "modified") -> FileChange:
    diff = "\n".join([f"--- a/{path}", f"+++ b/{path}", f"@@ -1 +1,{len(added)} @@", *[f"+{a}" for a in added]])
    return FileChange(path=path, diff=diff, language=language, additions=len(added), deletions=0, status=status)


def test_hardcoded_secret_is_critical_with_line_number() -> None:
    change = _change("settings.py", "python", "DEBUG = True", 'api_key = "sk-live-123456"')
    fixes = scan_file_change(change=change)
    assert len(fixes) == 1
    assert fixes[0].severity == "critical"
    assert fixes[0].source == "static"
    assert fixes[0].line == 2
    assert fixes[0].comment.startswith("[hardcoded-secret]")


def test_language_scoped_rule_skips_other_languages() -> None:
    assert scan_file_change(change=_change("a.py", "python", "eval(x)"))
    assert scan_file_change(change=_change("a.go", "go", "eval(x)")) == []


def test_deleted_files_are_not_scanned() -> None:
    change = _change("old.py", "python", "requests.get(url, verify=False)", status="deleted")
    assert scan_changes([change]) == []


def test_clean_code_has_no_findings() -> None:
    assert scan_changes([_change("a.py", "python", "def add(a, b):", "    return a + b")]) == []


def test_summarize_risks_orders_and_drops_suggestions() -> None:
    fixes = [
        Fix(file="a.py", comment="debug", severity="suggestion"),
        Fix(file="a.py", comment="sql", severity="warning"),
        Fix(file="b.py", comment="secret", severity="critical"),
        Fix(file="b.py", comment="secret", severity="critical"),
    ]
    assert summarize_risks(fixes) == ["secret (b.py)", "sql (a.py)"]
