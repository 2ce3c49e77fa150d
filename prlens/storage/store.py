"""
分析结果存储（最小版本）。

当前提供：
- `AnalysisRecord`：一次分析落库的字段（由 `build_analysis_record` 从结果推导）
- `AnalysisStore` Protocol：定义 save/query 接口
- `InMemoryAnalysisStore`：便于本地运行/单元测试
- `stats`：dashboard 用的聚合统计
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import MutableSequence, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from pydantic import BaseModel, Field

from prlens.review.models import AgentResult
from prlens.tracker.peer_review import status_counts

logger = logging.getLogger(__name__)


class AnalysisRecord(BaseModel):
    pr_number: int | None = None
    repo_owner: str = "local"
    repo_name: str = "unknown"
    author: str = "unknown"
    title: str
    complexity: int = Field(ge=1, le=5)
    risks_count: int = Field(default=0, ge=0)
    risks: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    project_classification: str | None = None
    devops_cost_monthly: float | None = None
    devops_resources: list[str] = Field(default_factory=list)
    test_suggestions_count: int = 0
    coverage_percentage: float | None = None

    peer_review_enabled: bool = False
    ticket_key: str | None = None
    ticket_quality_score: int | None = None
    ticket_quality_tier: str | None = None
    ac_compliance_percentage: int | None = None
    ac_requirements_met: int | None = None
    ac_requirements_total: int | None = None
    peer_review_verdict: str | None = None
    peer_review_blockers: list[str] = Field(default_factory=list)
    peer_review_warnings: list[str] = Field(default_factory=list)
    implementation_completeness: int | None = None
    quality_score: int | None = None

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalysisStats(BaseModel):
    total_analyses: int = 0
    success_rate: float = 0.0
    average_complexity: float = 0.0
    complexity_distribution: dict[int, int] = Field(default_factory=dict)
    per_author: dict[str, int] = Field(default_factory=dict)
    common_recommendations: list[str] = Field(default_factory=list)
    total_devops_cost: float = 0.0
    devops_resource_types: dict[str, int] = Field(default_factory=dict)
    average_coverage: float | None = None
    verdicts: dict[str, int] = Field(default_factory=dict)


class AnalysisStore(Protocol):
    """存储接口协议（用于依赖倒置，方便替换数据库/内存实现）。"""

    def save(self, record: AnalysisRecord) -> None: ...

    def query(self, limit: int | None = None) -> list[AnalysisRecord]: ...


@dataclass
class InMemoryAnalysisStore:
    """内存存储：只用于开发/测试，进程退出即丢失。"""

    records: MutableSequence[AnalysisRecord] = field(default_factory=list)

    def save(self, record: AnalysisRecord) -> None:
        self.records.append(record)
        logger.info(f"analysis saved: title={record.title!r} ticket={record.ticket_key}")

    def query(self, limit: int | None = None) -> list[AnalysisRecord]:
        """最新的在前；limit 为 None 时返回全部。"""
        if limit is not None and limit <= 0:
            raise ValueError("limit must be positive")
        ordered = sorted(self.records, key=lambda r: r.timestamp, reverse=True)
        return ordered if limit is None else ordered[:limit]


def build_analysis_record(
    result: AgentResult,
    title: str,
    repo_owner: str = "local",
    repo_name: str = "unknown",
    author: str = "unknown",
    pr_number: int | None = None,
) -> AnalysisRecord:
    """从 EXECUTE 结果推导落库字段。"""
    static = result.static_analysis
    risks = [f.comment for f in result.fixes if f.severity in ("critical", "warning")] or list(result.overall_risks)
    record = AnalysisRecord(
        pr_number=pr_number,
        repo_owner=repo_owner,
        repo_name=repo_name,
        author=author,
        title=title,
        complexity=result.overall_complexity,
        risks_count=len(risks),
        risks=risks,
        recommendations=list(result.recommendations),
        project_classification=(
            static.project_classification.project_type if static.project_classification is not None else None
        ),
        devops_cost_monthly=static.total_devops_cost if static.devops_cost_estimates else None,
        devops_resources=[e.resource_type for e in static.devops_cost_estimates],
        test_suggestions_count=len(static.test_suggestions),
        coverage_percentage=(
            static.coverage_report.overall_percentage
            if static.coverage_report is not None and static.coverage_report.available
            else None
        ),
    )

    peer_review = result.peer_review
    if peer_review is None:
        return record

    update: dict[str, object] = {"peer_review_enabled": peer_review.enabled}
    if peer_review.primary_ticket is not None:
        update["ticket_key"] = peer_review.primary_ticket.key
    if peer_review.ticket_quality is not None:
        update["ticket_quality_score"] = peer_review.ticket_quality.overallScore
        update["ticket_quality_tier"] = peer_review.ticket_quality.tier
    if peer_review.ac_validation is not None:
        counts = status_counts(peer_review.ac_validation)
        update["ac_compliance_percentage"] = peer_review.ac_validation.compliancePercentage
        update["ac_requirements_met"] = counts["met"]
        update["ac_requirements_total"] = len(peer_review.ac_validation.criteriaAnalysis)
    if peer_review.analysis is not None:
        analysis = peer_review.analysis
        update["peer_review_verdict"] = analysis.verdict.recommendation
        update["peer_review_blockers"] = [b.issue for b in analysis.blockers]
        update["peer_review_warnings"] = [w.issue for w in analysis.warnings]
        update["implementation_completeness"] = analysis.implementationCompleteness
        update["quality_score"] = analysis.qualityScore
    return record.model_copy(update=update)


def stats(records: Sequence[AnalysisRecord], top_recommendations: int = 5) -> AnalysisStats:
    """
    聚合统计。

    “成功”的定义沿用 dashboard：complexity < 3 且没有风险。
    """
    total = len(records)
    if total == 0:
        return AnalysisStats()

    successful = sum(1 for r in records if r.complexity < 3 and r.risks_count == 0)
    recommendations = Counter(rec for r in records for rec in r.recommendations)
    resource_types = Counter(res for r in records for res in r.devops_resources)
    coverages = [r.coverage_percentage for r in records if r.coverage_percentage is not None]
    return AnalysisStats(
        total_analyses=total,
        success_rate=successful / total * 100,
        average_complexity=sum(r.complexity for r in records) / total,
        complexity_distribution=dict(sorted(Counter(r.complexity for r in records).items())),
        per_author=dict(Counter(r.author for r in records).most_common()),
        common_recommendations=[rec for rec, _ in recommendations.most_common(top_recommendations)],
        total_devops_cost=sum(r.devops_cost_monthly or 0.0 for r in records),
        devops_resource_types=dict(resource_types),
        average_coverage=sum(coverages) / len(coverages) if coverages else None,
        verdicts=dict(Counter(r.peer_review_verdict for r in records if r.peer_review_verdict is not None)),
    )
