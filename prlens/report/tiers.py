"""
Verbosity 分级表。

所有“某个级别显示什么、截断到多少”的判断都集中在 `TIERS`，渲染代码只查表，
不直接比较 verbosity 字符串。级别严格嵌套：低级别可见的 section 在高级别一定可见。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import get_args

from prlens.config import Verbosity

VERBOSITY_LEVELS: tuple[Verbosity, ...] = get_args(Verbosity)


@dataclass(frozen=True)
class Tier:
    name: Verbosity
    # minimal：整份报告折叠成一行
    single_line: bool = False

    show_ticket_details: bool = False
    show_ticket_quality: bool = False
    show_dimension_weaknesses: bool = False
    show_derived_requirements: bool = False
    unmet_requirements_only: bool = True
    max_requirements: int | None = 5
    show_requirement_explanations: bool = False
    max_gaps: int | None = 3
    show_gap_impact: bool = False
    show_missing_behaviors: bool = False

    max_warnings: int | None = 3
    show_warning_reasons: bool = False
    show_regression_risks: bool = False
    max_regression_risks: int | None = 3
    show_regression_details: bool = False
    show_uncovered_scenarios: bool = False
    show_related_criteria: bool = False
    show_scope_creep: bool = False
    show_out_of_scope: bool = False
    max_out_of_scope: int | None = 3
    max_recommendations: int | None = 3
    max_risks: int | None = 3

    show_fixes: bool = False
    show_insights: bool = False
    show_test_suggestions: bool = False
    show_coverage: bool = False
    show_file_analyses: bool = False
    show_classification: bool = False
    show_run_details: bool = False

    # 截断宽度；None 表示不截断
    text_width: int | None = 80
    criteria_width: int | None = 60
    explanation_width: int | None = 70


TIERS: dict[Verbosity, Tier] = {
    "minimal": Tier(
        name="minimal",
        single_line=True,
        max_requirements=0,
        max_gaps=0,
        max_recommendations=0,
        max_risks=0,
        max_warnings=0,
    ),
    "compact": Tier(name="compact"),
    "standard": Tier(
        name="standard",
        show_ticket_details=True,
        show_ticket_quality=True,
        unmet_requirements_only=False,
        max_requirements=None,
        show_requirement_explanations=True,
        max_gaps=None,
        show_gap_impact=True,
        max_warnings=5,
        show_warning_reasons=True,
        show_regression_risks=True,
        show_scope_creep=True,
        max_recommendations=5,
        max_risks=5,
        show_fixes=True,
        show_insights=True,
        show_test_suggestions=True,
        show_coverage=True,
        text_width=120,
    ),
    "detailed": Tier(
        name="detailed",
        show_ticket_details=True,
        show_ticket_quality=True,
        show_derived_requirements=True,
        unmet_requirements_only=False,
        max_requirements=None,
        show_requirement_explanations=True,
        max_gaps=None,
        show_gap_impact=True,
        show_missing_behaviors=True,
        max_warnings=None,
        show_warning_reasons=True,
        show_regression_risks=True,
        max_regression_risks=None,
        show_regression_details=True,
        show_uncovered_scenarios=True,
        show_scope_creep=True,
        show_out_of_scope=True,
        max_recommendations=None,
        max_risks=None,
        show_fixes=True,
        show_insights=True,
        show_test_suggestions=True,
        show_coverage=True,
        show_file_analyses=True,
        show_classification=True,
        text_width=200,
    ),
    "verbose": Tier(
        name="verbose",
        show_ticket_details=True,
        show_ticket_quality=True,
        show_dimension_weaknesses=True,
        show_derived_requirements=True,
        unmet_requirements_only=False,
        max_requirements=None,
        show_requirement_explanations=True,
        max_gaps=None,
        show_gap_impact=True,
        show_missing_behaviors=True,
        max_warnings=None,
        show_warning_reasons=True,
        show_regression_risks=True,
        max_regression_risks=None,
        show_regression_details=True,
        show_uncovered_scenarios=True,
        show_related_criteria=True,
        show_scope_creep=True,
        show_out_of_scope=True,
        max_out_of_scope=None,
        max_recommendations=None,
        max_risks=None,
        show_fixes=True,
        show_insights=True,
        show_test_suggestions=True,
        show_coverage=True,
        show_file_analyses=True,
        show_classification=True,
        show_run_details=True,
        text_width=None,
        criteria_width=None,
        explanation_width=None,
    ),
}


def get_tier(verbosity: str) -> Tier:
    """未知级别属于调用方错误，直接抛 ValueError。"""
    tier = TIERS.get(verbosity)  # type: ignore[call-overload]
    if tier is None:
        raise ValueError(f"Invalid verbosity: {verbosity!r} (expected one of {', '.join(VERBOSITY_LEVELS)})")
    return tier


def cap(items: list, limit: int | None) -> list:
    return list(items) if limit is None else list(items[:limit])


def clip(text: str, width: int | None) -> str:
    if width is None or len(text) <= width:
        return text
    return f"{text[:width]}..."
