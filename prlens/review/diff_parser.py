"""
Diff Parser（纯函数，非 AI）。

职责：
- 把整段 unified diff（`git diff` 输出）切成按文件的片段
- 统计每个文件的新增/删除行数与状态（added/modified/deleted）
- 计算 hunk 内新增行的行号（给静态风险扫描定位用；hunk 头损坏时不抛错）

注意：
- 每次调用都用 `re.finditer` 重新扫描，不共享任何 matcher 状态
- 没有匹配到文件头就返回空列表（“没有变更”不是错误）
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator

from prlens.review.models import DiffFileRecord
from prlens.review.models import FileChange
from prlens.review.models import FileStatus

logger = logging.getLogger(__name__)

FILE_DIFF_HEADER = r"^diff --git a/(.+?) b/(.+?)$"

_NULL_PATHS = ("/dev/null", "dev/null")


def parse_diff_files(diff: str) -> list[DiffFileRecord]:
    """
    解析 diff，返回每个文件头对应的一条记录（顺序与 diff 中出现顺序一致）。

    - 以单个 `+` 开头（不是 `++`）的行计为新增
    - 以单个 `-` 开头（不是 `--`）的行计为删除
    因此 `+++`/`---` 路径行不会被计入。
    """
    records: list[DiffFileRecord] = []
    for old_path, new_path, span in _iter_file_spans(diff=diff):
        additions, deletions = _count_changes(span=span)
        records.append(
            DiffFileRecord(
                path=_pick_path(old_path=old_path, new_path=new_path),
                additions=additions,
                deletions=deletions,
                status=_detect_status(old_path=old_path, new_path=new_path, span=span),
            )
        )
    return records


def split_diff_by_file(diff: str) -> list[tuple[str, str]]:
    """按文件切分 diff，返回 `(path, 该文件的 diff 片段)` 列表。"""
    return [
        (_pick_path(old_path=old_path, new_path=new_path), span)
        for old_path, new_path, span in _iter_file_spans(diff=diff)
    ]


def total_additions(files: Iterable[DiffFileRecord | FileChange]) -> int:
    return sum(f.additions for f in files)


def total_deletions(files: Iterable[DiffFileRecord | FileChange]) -> int:
    return sum(f.deletions for f in files)


def iter_added_lines(diff: str) -> Iterator[tuple[int, str]]:
    """
    逐行产出 `(新文件行号, 新增行内容)`；hunk 之外的行号为 0。

    diff 可能是粘贴或截断的：hunk 头解析失败时只记日志，行号归零后继续扫描。
    """
    new_line = 0
    for line in diff.splitlines():
        if line.startswith("@@"):
            try:
                _, new_line = _parse_hunk_header(header=line)
            except ValueError:
                logger.warning(f"skip malformed hunk header: {line!r}")
                new_line = 0
            continue
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            yield new_line, line[1:]
            new_line += 1
            continue
        if line.startswith(" "):
            new_line += 1


def _iter_file_spans(diff: str) -> Iterator[tuple[str, str, str]]:
    """每个文件头到下一个文件头（或文本末尾）为一个 span。"""
    matches = list(re.finditer(FILE_DIFF_HEADER, diff, flags=re.MULTILINE))
    for index, match in enumerate(matches):
        start = match.start()
        end = matches[index + 1].start() if index + 1 < len(matches) else len(diff)
        yield match.group(1), match.group(2), diff[start:end]


def _pick_path(old_path: str, new_path: str) -> str:
    if new_path in _NULL_PATHS:
        return old_path
    return new_path


def _detect_status(old_path: str, new_path: str, span: str) -> FileStatus:
    lines = span.splitlines()
    if old_path in _NULL_PATHS or "--- /dev/null" in lines or any(line.startswith("new file mode") for line in lines):
        return "added"
    if new_path in _NULL_PATHS or "+++ /dev/null" in lines or any(line.startswith("deleted file mode") for line in lines):
        return "deleted"
    return "modified"


def _count_changes(span: str) -> tuple[int, int]:
    additions = 0
    deletions = 0
    for line in span.splitlines():
        if line.startswith("+") and not line.startswith("++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("--"):
            deletions += 1
    return additions, deletions


def _parse_hunk_header(header: str) -> tuple[int, int]:
    # @@ -a,b +c,d @@
    try:
        parts = header.split(" ")
        old_part = parts[1]
        new_part = parts[2]
        old_start = int(old_part.split(",")[0].lstrip("-"))
        new_start = int(new_part.split(",")[0].lstrip("+"))
        return old_start, new_start
    except Exception as exc:
        raise ValueError(f"Invalid diff hunk header: {header}") from exc
