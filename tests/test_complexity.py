from __future__ import annotations

import pytest

from prlens.review.complexity import calc_python_complexity
from prlens.review.complexity import overall_complexity
from prlens.review.complexity import score_file_complexity
from prlens.review.models import FileChange


def _change(path: str, language: str, diff: str, additions: int = 1) -> FileChange:
    return FileChange(path=path, diff=diff, language=language, additions=additions, deletions=0, status="modified")


def test_calc_python_complexity_empty_diff_is_zero() -> None:
    assert calc_python_complexity(diff="") == 0


def test_calc_python_complexity_counts_branches() -> None:
    diff = "\n".join(
        [
            "+++ b/a.py",
            "@@",
            "+def f(x):",
            "+    if x:",
            "+        return 1",
            "+    for i in range(3):",
            "+        pass",
        ]
    )
    assert calc_python_complexity(diff=diff) == 3


def test_calc_python_complexity_invalid_python_raises() -> None:
    diff = "\n".join(["+++ b/a.py", "+def f(:", "+    pass"])
    with pytest.raises(SyntaxError):
        calc_python_complexity(diff=diff)


def test_score_file_complexity_falls_back_to_size_on_syntax_error() -> None:
    change = _change("a.py", "python", "+def f(:\n+    pass", additions=300)
    assert score_file_complexity(change=change) == 4


def test_score_file_complexity_non_python_uses_size() -> None:
    assert score_file_complexity(change=_change("a.go", "go", "+x", additions=10)) == 1
    assert score_file_complexity(change=_change("a.go", "go", "+x", additions=1000)) == 5


def test_overall_complexity() -> None:
    assert overall_complexity([]) == 1
    small = [_change(f"f{i}.go", "go", "+x") for i in range(21)]
    assert overall_complexity(small) == 4
