"""
Review 领域模型（Pydantic）。

用途：
- 明确 pipeline 各阶段输入/输出的数据结构（diff 解析、静态分析、阶段 prompt、最终结果）
- 作为 LLM JSON 输出的 schema 校验（fileAnalysis / riskDetection / summary / selfRefinement）

约定：
- 内部结构用 snake_case
- 直接给模型看的 schema 沿用 prompt 中的 camelCase 字段
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import PeerReviewAnalysis
from prlens.tracker.schemas import PeerReviewResult
from prlens.tracker.schemas import Ticket
from prlens.tracker.schemas import TicketQualityRating
from prlens.tracker.schemas import TicketReference

FileStatus = Literal["added", "modified", "deleted"]
Severity = Literal["critical", "warning", "suggestion"]
StepName = Literal[
    "fileAnalysis",
    "riskDetection",
    "summaryGeneration",
    "selfRefinement",
    "ticketQuality",
    "acValidation",
    "peerReview",
]


class DiffFileRecord(BaseModel):
    """unified diff 中单个文件头对应的一条记录。"""

    path: str
    additions: int
    deletions: int
    status: FileStatus


class FileChange(BaseModel):
    """单个文件的变更（DiffFileRecord + 该文件的 diff 片段 + 推断语言）。"""

    path: str
    diff: str
    language: str
    additions: int
    deletions: int
    status: FileStatus


class CostEstimate(BaseModel):
    resource_type: str
    estimated_new_cost: float
    confidence: Literal["high", "medium", "low"]
    details: str | None = None


class DevOpsAnalysis(BaseModel):
    has_devops_changes: bool = False
    file_types: list[str] = Field(default_factory=list)
    estimates: list[CostEstimate] = Field(default_factory=list)
    total_estimated_cost: float = 0.0


class SuggestedTest(BaseModel):
    """缺少测试的代码文件 -> 建议的测试文件位置。"""

    for_file: str
    test_framework: Literal["pytest", "unittest", "jest", "vitest", "mocha", "go", "other"]
    test_file_path: str
    description: str


class CoverageReport(BaseModel):
    available: bool
    overall_percentage: float | None = None
    line_coverage: float | None = None
    branch_coverage: float | None = None
    coverage_tool: str | None = None


class ProjectClassification(BaseModel):
    project_type: Literal["business_logic", "qa_testing", "mixed", "unknown"]
    confidence: int = Field(ge=0, le=100)
    business_logic_score: float = 0.0
    qa_testing_score: float = 0.0
    signals: list[str] = Field(default_factory=list)


class Fix(BaseModel):
    file: str
    line: int | None = None
    comment: str
    severity: Severity = "warning"
    source: Literal["static", "ai"] = "ai"


class StaticAnalysis(BaseModel):
    """
    确定性分析的 side-channel（不依赖 LLM，两种模式都会产出）。
    """

    files: list[DiffFileRecord] = Field(default_factory=list)
    ticket_references: list[TicketReference] = Field(default_factory=list)
    findings: list[Fix] = Field(default_factory=list)
    devops_cost_estimates: list[CostEstimate] = Field(default_factory=list)
    total_devops_cost: float = 0.0
    devops_file_types: list[str] = Field(default_factory=list)
    test_suggestions: list[SuggestedTest] = Field(default_factory=list)
    coverage_report: CoverageReport | None = None
    project_classification: ProjectClassification | None = None


class ExecutionMode(str, Enum):
    EXECUTE = "execute"
    PROMPT_ONLY = "prompt_only"


class AnalysisModes(BaseModel):
    """请求的分析维度开关。"""

    summary: bool = True
    risks: bool = True
    complexity: bool = True


class AnalysisOptions(BaseModel):
    """一次 analyze 调用的可选参数（由 pipeline/调用方填充）。"""

    branch_name: str = "unknown"
    commit_messages: list[str] = Field(default_factory=list)
    description: str | None = None
    ticket_pattern: str | None = None
    default_project: str | None = None
    peer_review_enabled: bool = False
    self_refinement: bool | None = None
    repo_path: str | None = None
    language: str | None = None
    framework: str | None = None


class AnalysisPrompt(BaseModel):
    """PROMPT_ONLY 模式下每个阶段产出的 prompt 描述。"""

    model_config = ConfigDict(populate_by_name=True)

    step: StepName
    prompt: str
    instructions: str
    context: dict[str, Any] | None = None
    output_schema: dict[str, Any] | None = Field(default=None, alias="schema")


# ---- LLM 输出 schema（必须 JSON-only） ----


class FileAnalysis(BaseModel):
    path: str
    summary: str
    risks: list[str] = Field(default_factory=list)
    complexity: int = Field(ge=1, le=5)
    additions: int = 0
    deletions: int = 0
    recommendations: list[str] = Field(default_factory=list)


class FileAnalysisBatch(BaseModel):
    files: list[FileAnalysis] = Field(default_factory=list)


class RiskDetection(BaseModel):
    risks: list[str] = Field(default_factory=list)
    fixes: list[Fix] = Field(default_factory=list)


class SummaryResult(BaseModel):
    summary: str
    overallComplexity: int = Field(ge=1, le=5)
    recommendations: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


class RefinementResult(BaseModel):
    clarityScore: int = Field(ge=0, le=100)
    summary: str
    recommendations: list[str] = Field(default_factory=list)
    missingInformation: list[str] = Field(default_factory=list)


# ---- 最终结果（tagged variant） ----


class AgentResult(BaseModel):
    """EXECUTE 模式的聚合结果。"""

    kind: Literal["executed"] = "executed"
    summary: str
    file_analyses: dict[str, FileAnalysis] = Field(default_factory=dict)
    fixes: list[Fix] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    overall_complexity: int = Field(ge=1, le=5)
    overall_risks: list[str] = Field(default_factory=list)
    modes: AnalysisModes = Field(default_factory=AnalysisModes)
    model: str = ""
    total_tokens_used: int = 0
    execution_time: float = 0.0
    completed_stages: list[StepName] = Field(default_factory=list)
    fallback_stages: list[StepName] = Field(default_factory=list)
    static_analysis: StaticAnalysis = Field(default_factory=StaticAnalysis)
    peer_review: PeerReviewResult | None = None


class PromptOnlyResult(BaseModel):
    """PROMPT_ONLY 模式结果：有序 prompt 列表 + 静态分析。"""

    kind: Literal["prompt_only"] = "prompt_only"
    prompts: list[AnalysisPrompt] = Field(default_factory=list)
    instructions: str
    modes: AnalysisModes = Field(default_factory=AnalysisModes)
    static_analysis: StaticAnalysis = Field(default_factory=StaticAnalysis)
    peer_review: PeerReviewResult | None = None


AnalysisResult = Annotated[Union[AgentResult, PromptOnlyResult], Field(discriminator="kind")]


# ---- 阶段之间传递的上下文（每个阶段返回新值，不原地修改） ----


class StageContext(BaseModel):
    """
    一次 analyze 调用内，阶段与阶段之间传递的累积状态。

    - 输入部分（diff/files/static_analysis/primary_ticket）在解析后只读
    - 每个阶段通过 `model_copy(update=...)` 产出新的上下文
    """

    diff: str
    title: str | None = None
    files: list[FileChange] = Field(default_factory=list)
    modes: AnalysisModes = Field(default_factory=AnalysisModes)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)
    static_analysis: StaticAnalysis = Field(default_factory=StaticAnalysis)
    primary_ticket: Ticket | None = None
    compliance_threshold: int = 70

    file_analyses: dict[str, FileAnalysis] = Field(default_factory=dict)
    risks: list[str] = Field(default_factory=list)
    fixes: list[Fix] = Field(default_factory=list)
    summary: str | None = None
    overall_complexity: int | None = None
    recommendations: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    clarity_score: int | None = None
    missing_information: list[str] = Field(default_factory=list)
    ticket_quality: TicketQualityRating | None = None
    ac_validation: AcceptanceCriteriaValidation | None = None
    peer_review: PeerReviewAnalysis | None = None

    completed_stages: list[StepName] = Field(default_factory=list)
    fallback_stages: list[StepName] = Field(default_factory=list)
    skipped_stages: list[StepName] = Field(default_factory=list)
    tokens_used: int = 0
