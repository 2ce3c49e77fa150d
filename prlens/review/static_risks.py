"""
静态风险扫描（确定性，非 AI）。

只扫描新增行（diff 中 `+` 开头），按正则规则命中后产出 `Fix`（带行号，source=static）。
LLM 阶段失败时，这里的结果就是风险检测的兜底。

规则覆盖：
- 硬编码密钥 / token
- eval/exec 与 shell 注入
- 拼接 SQL
- 关闭 TLS 校验
- 调试残留（print / console.log / debugger / breakpoint）
- 吞掉异常
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from prlens.review.diff_parser import iter_added_lines
from prlens.review.models import FileChange
from prlens.review.models import Fix
from prlens.review.models import Severity


@dataclass(frozen=True)
class RiskRule:
    name: str
    pattern: str
    severity: Severity
    message: str
    languages: tuple[str, ...] = ()


RISK_RULES: tuple[RiskRule, ...] = (
    RiskRule(
        name="hardcoded-secret",
        pattern=r"(?i)\b(password|passwd|secret|api[_-]?key|access[_-]?token|private[_-]?key)\b\s*[:=]\s*['\"][^'\"]{4,}['\"]",
        severity="critical",
        message="Possible hardcoded credential; load it from configuration or a secret store",
    ),
    RiskRule(
        name="aws-access-key",
        pattern=r"\bAKIA[0-9A-Z]{16}\b",
        severity="critical",
        message="AWS access key id committed to source",
    ),
    RiskRule(
        name="eval-exec",
        pattern=r"(?<![\w.])(eval|exec)\s*\(",
        severity="critical",
        message="Dynamic code execution via eval/exec",
        languages=("python", "javascript", "typescript", "php", "ruby"),
    ),
    RiskRule(
        name="shell-injection",
        pattern=r"shell\s*=\s*True|os\.system\s*\(|child_process\.exec\s*\(",
        severity="critical",
        message="Shell command execution; make sure no user input reaches the command string",
    ),
    RiskRule(
        name="sql-string-building",
        pattern=r"(?i)\b(select|insert|update|delete)\b[^'\"]*['\"]\s*(\+|%)|f['\"]\s*(select|insert|update|delete)\b.*\{",
        severity="warning",
        message="SQL built by string concatenation/formatting; use parameterized queries",
    ),
    RiskRule(
        name="tls-verification-disabled",
        pattern=r"verify\s*=\s*False|rejectUnauthorized\s*:\s*false|InsecureSkipVerify\s*:\s*true",
        severity="critical",
        message="TLS certificate verification disabled",
    ),
    RiskRule(
        name="debug-leftover",
        pattern=r"^\s*(print\(|console\.log\(|debugger;?\s*$|breakpoint\(\)|pdb\.set_trace\(\))",
        severity="suggestion",
        message="Debug statement left in code",
    ),
    RiskRule(
        name="swallowed-exception",
        pattern=r"^\s*except(\s+Exception)?\s*:\s*(pass)?\s*$|catch\s*\([^)]*\)\s*\{\s*\}",
        severity="warning",
        message="Exception caught and silently ignored",
    ),
    RiskRule(
        name="todo-marker",
        pattern=r"\b(TODO|FIXME|XXX)\b",
        severity="suggestion",
        message="Unresolved TODO/FIXME marker added",
    ),
)


def scan_file_change(change: FileChange) -> list[Fix]:
    """对单个文件的新增行跑全部规则；同一行同一规则只报一次。"""
    compiled = [(rule, re.compile(rule.pattern)) for rule in RISK_RULES if _applies(rule=rule, language=change.language)]
    fixes: list[Fix] = []
    for line_no, content in iter_added_lines(diff=change.diff):
        for rule, pattern in compiled:
            if pattern.search(content):
                fixes.append(
                    Fix(
                        file=change.path,
                        line=line_no or None,
                        comment=f"[{rule.name}] {rule.message}",
                        severity=rule.severity,
                        source="static",
                    )
                )
    return fixes


def scan_changes(changes: list[FileChange]) -> list[Fix]:
    fixes: list[Fix] = []
    for change in changes:
        if change.status == "deleted":
            continue
        fixes.extend(scan_file_change(change=change))
    return fixes


def summarize_risks(fixes: list[Fix]) -> list[str]:
    """把 findings 聚合成人类可读的风险描述（按严重度排序，去重）。"""
    order = {"critical": 0, "warning": 1, "suggestion": 2}
    seen: list[str] = []
    for fix in sorted(fixes, key=lambda f: order[f.severity]):
        if fix.severity == "suggestion":
            continue
        text = f"{fix.comment} ({fix.file})"
        if text not in seen:
            seen.append(text)
    return seen


def _applies(rule: RiskRule, language: str) -> bool:
    return not rule.languages or language in rule.languages
