"""
阶段描述符（stage descriptor）与阶段计划。

每个阶段 = prompt 构建 + 输出 schema + 合并函数 + 兜底函数：
- `PromptCollector` 只用 `build_prompt`
- `ModelRunner` 用全部四个（调用模型 -> 校验 -> 合并；失败走兜底再合并）

阶段顺序固定：
fileAnalysis -> riskDetection -> summaryGeneration -> selfRefinement -> ticketQuality -> acValidation -> peerReview
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from prlens.review import fallbacks
from prlens.review import prompts
from prlens.review.models import AnalysisModes
from prlens.review.models import AnalysisOptions
from prlens.review.models import AnalysisPrompt
from prlens.review.models import FileAnalysisBatch
from prlens.review.models import Fix
from prlens.review.models import RefinementResult
from prlens.review.models import RiskDetection
from prlens.review.models import StageContext
from prlens.review.models import StepName
from prlens.review.models import SummaryResult
from prlens.tracker.peer_review import normalize_validation
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import PeerReviewAnalysis
from prlens.tracker.schemas import TicketQualityRating

SELF_REFINEMENT_MIN_FILES = 5
SELF_REFINEMENT_MIN_DIFF_CHARS = 10_000

STAGE_ORDER: tuple[StepName, ...] = (
    "fileAnalysis",
    "riskDetection",
    "summaryGeneration",
    "selfRefinement",
    "ticketQuality",
    "acValidation",
    "peerReview",
)

PEER_REVIEW_STEPS: tuple[StepName, ...] = ("ticketQuality", "acValidation", "peerReview")


def _always(context: StageContext) -> bool:
    return True


@dataclass(frozen=True)
class Stage:
    name: StepName
    schema: type[BaseModel]
    build_prompt: Callable[[StageContext], AnalysisPrompt]
    merge: Callable[[StageContext, Any], StageContext]
    fallback: Callable[[StageContext], BaseModel]
    # 只在 EXECUTE 时生效（PROMPT_ONLY 拿不到前序结果，所有 prompt 都输出）
    should_run: Callable[[StageContext], bool] = _always


def should_self_refine(options: AnalysisOptions, file_count: int, diff_length: int) -> bool:
    """显式开关优先；否则小变更（文件 < 5 或 diff < 10000 字符）跳过。"""
    if options.self_refinement is not None:
        return options.self_refinement
    return file_count >= SELF_REFINEMENT_MIN_FILES and diff_length >= SELF_REFINEMENT_MIN_DIFF_CHARS


def plan_steps(
    modes: AnalysisModes,
    options: AnalysisOptions,
    file_count: int,
    diff_length: int,
    has_primary_ticket: bool,
) -> list[StepName]:
    steps: list[StepName] = ["fileAnalysis"]
    if modes.risks:
        steps.append("riskDetection")
    if modes.summary or modes.complexity:
        steps.append("summaryGeneration")
    if modes.summary and should_self_refine(options=options, file_count=file_count, diff_length=diff_length):
        steps.append("selfRefinement")
    if options.peer_review_enabled and has_primary_ticket:
        steps.extend(PEER_REVIEW_STEPS)
    return steps


def build_stage_plan(context: StageContext) -> list[Stage]:
    steps = plan_steps(
        modes=context.modes,
        options=context.options,
        file_count=len(context.files),
        diff_length=len(context.diff),
        has_primary_ticket=context.primary_ticket is not None,
    )
    return [STAGES[step] for step in steps]


# ---- 合并函数：输入旧上下文 + 阶段输出，返回新上下文 ----


def merge_file_analysis(context: StageContext, result: FileAnalysisBatch) -> StageContext:
    # 只接受本次变更里真实存在的路径（模型可能编造路径）
    changed = {f.path for f in context.files}
    analyses = {fa.path: fa for fa in result.files if fa.path in changed}
    return context.model_copy(update={"file_analyses": analyses})


def merge_risk_detection(context: StageContext, result: RiskDetection) -> StageContext:
    fixes: list[Fix] = []
    seen: set[tuple[str, int | None, str]] = set()
    for fix in [*context.static_analysis.findings, *result.fixes]:
        key = (fix.file, fix.line, fix.comment)
        if key in seen:
            continue
        seen.add(key)
        fixes.append(fix)
    return context.model_copy(update={"risks": list(result.risks), "fixes": fixes})


def merge_summary(context: StageContext, result: SummaryResult) -> StageContext:
    return context.model_copy(
        update={
            "summary": result.summary,
            "overall_complexity": result.overallComplexity,
            "recommendations": _unique([*context.recommendations, *result.recommendations]),
            "insights": _unique([*context.insights, *result.insights]),
        }
    )


def merge_refinement(context: StageContext, result: RefinementResult) -> StageContext:
    return context.model_copy(
        update={
            "summary": result.summary or context.summary,
            "clarity_score": result.clarityScore,
            "recommendations": list(result.recommendations) or context.recommendations,
            "missing_information": list(result.missingInformation),
        }
    )


def merge_ticket_quality(context: StageContext, result: TicketQualityRating) -> StageContext:
    return context.model_copy(update={"ticket_quality": result})


def merge_ac_validation(context: StageContext, result: AcceptanceCriteriaValidation) -> StageContext:
    return context.model_copy(update={"ac_validation": normalize_validation(result)})


def merge_peer_review(context: StageContext, result: PeerReviewAnalysis) -> StageContext:
    return context.model_copy(update={"peer_review": result})


def _ticket_is_reviewable(context: StageContext) -> bool:
    return context.ticket_quality is None or context.ticket_quality.reviewable


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


STAGES: dict[StepName, Stage] = {
    "fileAnalysis": Stage(
        name="fileAnalysis",
        schema=FileAnalysisBatch,
        build_prompt=prompts.build_file_analysis_prompt,
        merge=merge_file_analysis,
        fallback=fallbacks.fallback_file_analysis,
    ),
    "riskDetection": Stage(
        name="riskDetection",
        schema=RiskDetection,
        build_prompt=prompts.build_risk_detection_prompt,
        merge=merge_risk_detection,
        fallback=fallbacks.fallback_risk_detection,
    ),
    "summaryGeneration": Stage(
        name="summaryGeneration",
        schema=SummaryResult,
        build_prompt=prompts.build_summary_prompt,
        merge=merge_summary,
        fallback=fallbacks.fallback_summary,
    ),
    "selfRefinement": Stage(
        name="selfRefinement",
        schema=RefinementResult,
        build_prompt=prompts.build_refinement_prompt,
        merge=merge_refinement,
        fallback=fallbacks.fallback_refinement,
    ),
    "ticketQuality": Stage(
        name="ticketQuality",
        schema=TicketQualityRating,
        build_prompt=prompts.build_ticket_quality_prompt,
        merge=merge_ticket_quality,
        fallback=fallbacks.fallback_ticket_quality,
    ),
    "acValidation": Stage(
        name="acValidation",
        schema=AcceptanceCriteriaValidation,
        build_prompt=prompts.build_ac_validation_prompt,
        merge=merge_ac_validation,
        fallback=fallbacks.fallback_ac_validation,
        should_run=_ticket_is_reviewable,
    ),
    "peerReview": Stage(
        name="peerReview",
        schema=PeerReviewAnalysis,
        build_prompt=prompts.build_peer_review_prompt,
        merge=merge_peer_review,
        fallback=fallbacks.fallback_peer_review,
    ),
}
