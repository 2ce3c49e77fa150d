"""
Project Classifier（确定性，非 AI）。

根据变更文件路径和新增内容，判断这次改动偏业务逻辑还是偏测试/QA：
- 路径命中：每个文件最多 +1 分
- 内容关键词：哪边关键词多，哪边加 0.1 * 命中数
- 占比 >= 0.8 判为该类型；否则为 mixed；没有任何信号为 unknown
"""

from __future__ import annotations

import re

from prlens.review.models import FileChange
from prlens.review.models import ProjectClassification

BUSINESS_PATH_PATTERNS = (
    r"(^|/)(models?|entities|domain|schemas?)/",
    r"(^|/)(services?|business|logic|usecases?)/",
    r"(^|/)(controllers?|handlers?|routes?|views?|api|graphql|rest)/",
    r"(^|/)(repositories?|dao|database|db|storage)/",
    r"(^|/)(components?|pages?)/",
)
QA_PATH_PATTERNS = (
    r"(^|/)tests?/",
    r"(^|/)__tests__/",
    r"(^|/)spec/",
    r"(^|/)e2e/",
    r"(^|/)integration/",
    r"(^|/)(cypress|playwright|selenium)/",
    r"(^|/)test_[^/]+\.py$",
    r"_test\.(py|go)$",
    r"\.(test|spec|e2e)\.[jt]sx?$",
    r"(^|/)conftest\.py$",
)

BUSINESS_KEYWORDS = (
    "class ",
    "interface ",
    "enum ",
    "async ",
    "await ",
    "def ",
    "function",
    "router.",
    "@app.",
    "schema",
    "model",
    "entity",
    "query",
    "mutation",
    "middleware",
    "validation",
    "authentication",
    "authorization",
)
QA_KEYWORDS = (
    "describe(",
    "it(",
    "test(",
    "def test_",
    "expect(",
    "assert",
    "pytest",
    "beforeEach",
    "afterEach",
    "fixture",
    "mock",
    "stub",
    "spy",
    "snapshot",
    "toEqual",
    "toBe",
)


def classify_project(changes: list[FileChange]) -> ProjectClassification:
    business_score = 0.0
    qa_score = 0.0
    signals: list[str] = []

    for change in changes:
        path = change.path
        if any(re.search(p, path, flags=re.IGNORECASE) for p in BUSINESS_PATH_PATTERNS):
            business_score += 1
            signals.append(f"Business logic file: {path}")
        if any(re.search(p, path, flags=re.IGNORECASE) for p in QA_PATH_PATTERNS):
            qa_score += 1
            signals.append(f"Test file: {path}")

        added = "\n".join(line[1:] for line in change.diff.splitlines() if line.startswith("+") and not line.startswith("+++"))
        if not added:
            continue
        business_hits = sum(1 for k in BUSINESS_KEYWORDS if k in added)
        qa_hits = sum(1 for k in QA_KEYWORDS if k in added)
        if business_hits > qa_hits:
            business_score += business_hits * 0.1
            if business_hits > 3:
                signals.append(f"Business logic code patterns in {path}")
        elif qa_hits > business_hits:
            qa_score += qa_hits * 0.1
            if qa_hits > 3:
                signals.append(f"Test code patterns in {path}")

    total = business_score + qa_score
    if total == 0:
        return ProjectClassification(project_type="unknown", confidence=0, signals=signals)

    business_ratio = business_score / total
    qa_ratio = qa_score / total
    if business_ratio >= 0.8:
        project_type = "business_logic"
        ratio = business_ratio
    elif qa_ratio >= 0.8:
        project_type = "qa_testing"
        ratio = qa_ratio
    else:
        project_type = "mixed"
        ratio = 1 - abs(business_ratio - qa_ratio)

    return ProjectClassification(
        project_type=project_type,
        confidence=round(ratio * 100),
        business_logic_score=round(business_score, 2),
        qa_testing_score=round(qa_score, 2),
        signals=signals,
    )
