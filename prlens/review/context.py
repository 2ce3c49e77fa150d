"""
Context Builder（非 AI）。

职责：
- 把整段 diff 转换为内部的 `FileChange` 列表（路径 + 片段 + 行数 + 语言）
- 做最少量的工程推断（例如通过扩展名推断语言）
- 给 prompt 用的截断工具（控制上下文长度）
"""

from __future__ import annotations

from prlens.review.diff_parser import parse_diff_files
from prlens.review.diff_parser import split_diff_by_file
from prlens.review.models import FileChange

_LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".php": "php",
    ".rs": "rust",
    ".sql": "sql",
    ".tf": "terraform",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
}


def infer_language_from_path(path: str) -> str:
    """
    通过文件扩展名推断语言。

    这是一个非常“工程”的步骤：不需要 LLM，且必须确定性。
    """
    lowered = path.lower()
    if lowered.rsplit("/", 1)[-1].startswith("dockerfile"):
        return "dockerfile"
    for suffix, language in _LANGUAGE_BY_SUFFIX.items():
        if lowered.endswith(suffix):
            return language
    return "unknown"


def build_file_changes(diff: str) -> list[FileChange]:
    """
    将整段 diff 转为按文件的 `FileChange` 列表。

    记录与片段都来自同一次文件头扫描，顺序一致，所以可以直接 zip。
    """
    records = parse_diff_files(diff=diff)
    fragments = split_diff_by_file(diff=diff)
    changes: list[FileChange] = []
    for record, (_, fragment) in zip(records, fragments):
        changes.append(
            FileChange(
                path=record.path,
                diff=fragment,
                language=infer_language_from_path(path=record.path),
                additions=record.additions,
                deletions=record.deletions,
                status=record.status,
            )
        )
    return changes


def truncate_text(text: str, max_chars: int, marker: str = "\n... (truncated)") -> str:
    """超过 max_chars 时截断并追加 marker；max_chars 非法抛 ValueError。"""
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker
