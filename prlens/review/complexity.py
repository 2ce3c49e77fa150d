"""
复杂度分析（基于 diff 的近似值）。

说明：
- 真正的圈复杂度需要完整函数/文件，这里我们只有 diff，所以这是“提示风险用”的近似指标。
- Python 文件：取新增行，用 AST 解析并统计分支节点。
- 其它语言或解析失败：退回到变更规模启发式。
- 最终映射到 1..5，与 LLM 输出的 complexity 同一量纲。
"""

from __future__ import annotations

import ast
import logging
import textwrap

from prlens.review.models import FileChange

logger = logging.getLogger(__name__)

_BRANCH_NODES = (
    ast.If,
    ast.For,
    ast.AsyncFor,
    ast.While,
    ast.Try,
    ast.With,
    ast.AsyncWith,
    ast.Match,
    ast.BoolOp,
    ast.IfExp,
    ast.comprehension,
)

# (上限, 分数)：不超过上限即取该分数
_BRANCH_SCALE = ((2, 1), (5, 2), (10, 3), (20, 4))
_SIZE_SCALE = ((20, 1), (80, 2), (200, 3), (500, 4))


def calc_python_complexity(diff: str) -> int:
    """
    统计常见分支节点数量 + 1；没有新增代码返回 0。
    解析失败直接抛 SyntaxError（上游决定如何处理）。
    """
    code = _extract_added_lines(diff=diff)
    if not code.strip():
        return 0
    tree = ast.parse(textwrap.dedent(code))
    count = 1
    for node in ast.walk(tree):
        if isinstance(node, _BRANCH_NODES):
            count += 1
    return count


def score_file_complexity(change: FileChange) -> int:
    """单文件 1..5 分：分支数与变更规模两者取较大。"""
    size_score = _scale(value=change.additions + change.deletions, table=_SIZE_SCALE)
    if change.language != "python":
        return size_score
    try:
        branches = calc_python_complexity(diff=change.diff)
    except SyntaxError:
        # diff 片段常常不是完整语法单元
        logger.debug(f"python complexity fallback to size heuristic: path={change.path}")
        return size_score
    return max(size_score, _scale(value=branches, table=_BRANCH_SCALE))


def overall_complexity(changes: list[FileChange]) -> int:
    """整个变更的 1..5 分：最高的单文件分数；大范围改动（>20 个文件）至少 4。"""
    if not changes:
        return 1
    score = max(score_file_complexity(change=c) for c in changes)
    if len(changes) > 20:
        score = max(score, 4)
    return score


def _scale(value: int, table: tuple[tuple[int, int], ...]) -> int:
    for upper, score in table:
        if value <= upper:
            return score
    return 5


def _extract_added_lines(diff: str) -> str:
    """从 unified diff 里提取新增代码行（去掉 diff 元信息）。"""
    lines: list[str] = []
    for line in diff.splitlines():
        if line.startswith("+++ ") or line.startswith("--- ") or line.startswith("@@"):
            continue
        if line.startswith("+") and not line.startswith("++"):
            lines.append(line[1:])
    return "\n".join(lines)
