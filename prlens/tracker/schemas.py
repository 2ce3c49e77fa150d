"""
Issue tracker / Peer Review 领域模型（Pydantic）。

分两类：
- **Tracker 侧**：`Ticket`、`TicketReference`（从外部系统或 PR 元数据归一化而来）
- **LLM 输出 schema**：`TicketQualityRating` / `AcceptanceCriteriaValidation` / `PeerReviewAnalysis`
  （字段用 camelCase，和 prompt 里给模型看的 JSON 保持一致）

注意：这里的 schema 同时给 EXECUTE 模式做校验、给 PROMPT_ONLY 模式导出 JSON schema。
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

TicketSource = Literal["title", "branch", "description", "commit"]
IssueType = Literal["bug", "feature", "story", "task", "epic", "subtask", "improvement", "spike", "other"]
IssuePriority = Literal["critical", "high", "medium", "low", "none"]
CriteriaStatus = Literal["met", "partial", "unmet", "unclear"]
VerdictRecommendation = Literal["approve", "request_changes", "needs_discussion"]


class TicketReference(BaseModel):
    """PR 元数据里找到的一个候选 ticket key（confidence 反映来源可信度）。"""

    key: str
    source: TicketSource
    confidence: int = Field(ge=0, le=100)


class Ticket(BaseModel):
    """归一化后的 ticket（与具体 issue tracker 无关）。"""

    key: str
    id: str = ""
    url: str = ""
    title: str
    description: str = ""
    type: IssueType = "other"
    status: str = ""
    priority: IssuePriority = "none"
    assignee: str | None = None
    reporter: str | None = None
    labels: list[str] = Field(default_factory=list)
    components: list[str] = Field(default_factory=list)
    story_points: float | None = None
    acceptance_criteria: list[str] = Field(default_factory=list)
    has_screenshots: bool = False
    has_diagrams: bool = False
    attachment_count: int = 0


class TicketQualityDimensions(BaseModel):
    descriptionClarity: int = Field(ge=0, le=100)
    acceptanceCriteriaQuality: int = Field(ge=0, le=100)
    testabilityScore: int = Field(ge=0, le=100)
    scopeDefinition: int = Field(ge=0, le=100)
    technicalContext: int = Field(ge=0, le=100)
    visualDocumentation: int = Field(ge=0, le=100)
    estimationQuality: int = Field(ge=0, le=100)
    completeness: int = Field(ge=0, le=100)


class TicketFeedback(BaseModel):
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class TicketQualityRating(BaseModel):
    """ticketQuality 阶段输出：总分 + 8 个维度分。"""

    overallScore: int = Field(ge=0, le=100)
    dimensions: TicketQualityDimensions
    feedback: TicketFeedback = Field(default_factory=TicketFeedback)
    tier: Literal["excellent", "good", "adequate", "poor", "insufficient"]
    reviewable: bool
    reviewabilityReason: str = ""


class DerivedRequirement(BaseModel):
    id: str
    requirement: str
    source: Literal["description", "explicit_ac", "implied", "ticket_type", "technical_context"]
    importance: Literal["essential", "expected", "nice_to_have"]


class CriteriaAnalysisItem(BaseModel):
    criteriaId: str | None = None
    criteriaText: str
    status: CriteriaStatus
    confidence: int = Field(default=50, ge=0, le=100)
    evidence: list[str] = Field(default_factory=list)
    explanation: str = ""
    relatedFiles: list[str] = Field(default_factory=list)


class CoverageGap(BaseModel):
    criteriaText: str
    gapDescription: str
    severity: Literal["critical", "major", "minor"]
    impact: str = ""


class AcceptanceCriteriaValidation(BaseModel):
    """
    acValidation 阶段输出。

    `compliancePercentage` 不信任模型给的值，统一由 `tracker.peer_review.normalize_validation` 重算；
    没有任何 criteria 时为 None。
    """

    derivedRequirements: list[DerivedRequirement] = Field(default_factory=list)
    criteriaAnalysis: list[CriteriaAnalysisItem] = Field(default_factory=list)
    compliancePercentage: int | None = Field(default=None, ge=0, le=100)
    gaps: list[CoverageGap] = Field(default_factory=list)
    missingBehaviors: list[str] = Field(default_factory=list)
    partialImplementations: list[str] = Field(default_factory=list)


class ReviewFinding(BaseModel):
    issue: str
    reason: str = ""
    location: str | None = None


class ScopeAnalysis(BaseModel):
    inScope: list[str] = Field(default_factory=list)
    outOfScope: list[str] = Field(default_factory=list)
    scopeCreepRisk: bool = False
    scopeCreepDetails: str | None = None


class RegressionRisk(BaseModel):
    risk: str
    affectedArea: str
    likelihood: Literal["high", "medium", "low"]
    reasoning: str = ""


class UncoveredScenario(BaseModel):
    scenario: str
    impact: Literal["critical", "major", "minor"]
    relatedCriteria: str | None = None


class Verdict(BaseModel):
    summary: str
    recommendation: VerdictRecommendation
    confidenceLevel: int = Field(ge=0, le=100)


class PeerReviewAnalysis(BaseModel):
    """peerReview 阶段输出：资深 reviewer 的最终结论。"""

    implementationCompleteness: int = Field(ge=0, le=100)
    qualityScore: int = Field(ge=0, le=100)
    readyForReview: bool
    blockers: list[ReviewFinding] = Field(default_factory=list)
    warnings: list[ReviewFinding] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    scopeAnalysis: ScopeAnalysis = Field(default_factory=ScopeAnalysis)
    regressionRisks: list[RegressionRisk] = Field(default_factory=list)
    uncoveredScenarios: list[UncoveredScenario] = Field(default_factory=list)
    verdict: Verdict


class PeerReviewResult(BaseModel):
    """
    Peer review 汇总：ticket 查找结果 + 三个阶段的结构化输出。

    PROMPT_ONLY 模式下只会有 ticket 相关字段（三个分析字段保持 None）。
    """

    enabled: bool
    ticket_references: list[TicketReference] = Field(default_factory=list)
    linked_tickets: list[Ticket] = Field(default_factory=list)
    primary_ticket: Ticket | None = None
    ticket_quality: TicketQualityRating | None = None
    ac_validation: AcceptanceCriteriaValidation | None = None
    analysis: PeerReviewAnalysis | None = None
    error: str | None = None

    @property
    def verdict(self) -> VerdictRecommendation | None:
        if self.analysis is None:
            return None
        return self.analysis.verdict.recommendation
