from __future__ import annotations

from pathlib import Path

from prlens.review.models import FileChange
from prlens.review.suggest_tests import detect_test_framework
from prlens.review.suggest_tests import is_code_file
from prlens.review.suggest_tests import suggest_tests


def _change(path: str, additions: int = 10, status: str = "modified") -> FileChange:
    return FileChange(path=path, diff="", language="unknown", additions=additions, deletions=0, status=status)


def test_suggests_pytest_for_untested_python_file() -> None:
    suggestions = suggest_tests([_change("src/billing.py")])
    assert len(suggestions) == 1
    assert suggestions[0].for_file == "src/billing.py"
    assert suggestions[0].test_framework == "pytest"
    assert suggestions[0].test_file_path == "tests/test_billing.py"


def test_skips_files_with_matching_test_change() -> None:
    assert suggest_tests([_change("src/billing.py"), _change("tests/test_billing.py")]) == []


def test_skips_small_deleted_and_entry_files() -> None:
    changes = [
        _change("src/small.py", additions=5),
        _change("src/gone.py", status="deleted"),
        _change("src/index.ts"),
        _change("pkg/__init__.py"),
        _change("README.md"),
    ]
    assert suggest_tests(changes) == []


def test_typescript_defaults_to_jest() -> None:
    suggestion = suggest_tests([_change("src/api/client.ts")])[0]
    assert suggestion.test_framework == "jest"
    assert suggestion.test_file_path == "tests/api/client.test.ts"


def test_framework_detected_from_package_json(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text('{"devDependencies": {"vitest": "^1.0.0"}}', encoding="utf-8")
    assert detect_test_framework(repo_path=str(tmp_path)) == "vitest"
    suggestion = suggest_tests([_change("lib/util.js")], repo_path=str(tmp_path))[0]
    assert suggestion.test_framework == "vitest"
    assert suggestion.test_file_path == "lib/util.test.js"


def test_detect_test_framework_without_repo() -> None:
    assert detect_test_framework(repo_path=None) is None


def test_is_code_file() -> None:
    assert is_code_file("a/b.go")
    assert not is_code_file("types/index.d.ts")
    assert not is_code_file("vite.config.ts")
