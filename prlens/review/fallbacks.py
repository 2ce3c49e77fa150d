"""
阶段兜底（确定性，非 AI）。

模型不可用、输出不合 schema、超出 token 预算时，每个阶段用这里的函数产出
**同一 schema** 的结果，保证后续阶段和最终报告的结构不变。

依据：diff 规模、静态风险扫描、复杂度启发式、DevOps 成本、ticket 元数据。
"""

from __future__ import annotations

from prlens.review.complexity import overall_complexity
from prlens.review.complexity import score_file_complexity
from prlens.review.diff_parser import total_additions
from prlens.review.diff_parser import total_deletions
from prlens.review.models import FileAnalysis
from prlens.review.models import FileAnalysisBatch
from prlens.review.models import RefinementResult
from prlens.review.models import RiskDetection
from prlens.review.models import StageContext
from prlens.review.models import SummaryResult
from prlens.review.static_risks import summarize_risks
from prlens.tracker.peer_review import is_compliant
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import DerivedRequirement
from prlens.tracker.schemas import PeerReviewAnalysis
from prlens.tracker.schemas import ReviewFinding
from prlens.tracker.schemas import TicketFeedback
from prlens.tracker.schemas import TicketQualityDimensions
from prlens.tracker.schemas import TicketQualityRating
from prlens.tracker.schemas import Verdict

_STATUS_VERB = {"added": "Added", "modified": "Modified", "deleted": "Deleted"}


def fallback_file_analysis(context: StageContext) -> FileAnalysisBatch:
    analyses: list[FileAnalysis] = []
    for change in context.files:
        findings = [f for f in context.static_analysis.findings if f.file == change.path and f.severity != "suggestion"]
        analyses.append(
            FileAnalysis(
                path=change.path,
                summary=f"{_STATUS_VERB[change.status]} {change.language} file (+{change.additions}/-{change.deletions})",
                risks=[f.comment for f in findings],
                complexity=score_file_complexity(change=change),
                additions=change.additions,
                deletions=change.deletions,
            )
        )
    return FileAnalysisBatch(files=analyses)


def fallback_risk_detection(context: StageContext) -> RiskDetection:
    findings = context.static_analysis.findings
    return RiskDetection(risks=summarize_risks(fixes=findings), fixes=list(findings))


def describe_change(context: StageContext) -> str:
    """一句话描述变更规模（没有模型时的 summary）。"""
    files = context.files
    if not files:
        return "No file changes detected in the diff."
    additions = total_additions(files)
    deletions = total_deletions(files)
    languages = sorted({f.language for f in files if f.language != "unknown"})
    parts = [f"{len(files)} file(s) changed (+{additions}/-{deletions})"]
    if languages:
        parts.append(f"languages: {', '.join(languages)}")
    if context.title:
        parts.insert(0, context.title)
    return "; ".join(parts) + "."


def default_recommendations(context: StageContext) -> list[str]:
    static = context.static_analysis
    recommendations: list[str] = []
    critical = [f for f in static.findings if f.severity == "critical"]
    if critical:
        recommendations.append(f"Resolve {len(critical)} critical static finding(s) before merging")
    if static.test_suggestions:
        recommendations.append(f"Add tests for {len(static.test_suggestions)} changed file(s) without test coverage")
    if static.devops_cost_estimates:
        recommendations.append(
            f"Review infrastructure cost impact (~${static.total_devops_cost:.2f}/month) with the owning team"
        )
    if len(context.files) > 20:
        recommendations.append("Consider splitting this change into smaller pull requests")
    if not recommendations:
        recommendations.append("Review the changes manually; automated analysis found no blocking issues")
    return recommendations


def fallback_summary(context: StageContext) -> SummaryResult:
    static = context.static_analysis
    insights: list[str] = []
    if static.devops_file_types:
        insights.append(f"Infrastructure files changed: {', '.join(static.devops_file_types)}")
    if static.project_classification is not None and static.project_classification.project_type != "unknown":
        insights.append(f"Change classified as {static.project_classification.project_type}")
    if static.coverage_report is not None and static.coverage_report.available:
        insights.append(f"Existing coverage: {static.coverage_report.overall_percentage}%")
    return SummaryResult(
        summary=describe_change(context=context),
        overallComplexity=overall_complexity(changes=context.files),
        recommendations=default_recommendations(context=context),
        insights=insights,
    )


def fallback_refinement(context: StageContext) -> RefinementResult:
    # 没有模型就没有“改写”，原样保留
    return RefinementResult(
        clarityScore=context.clarity_score or 50,
        summary=context.summary or describe_change(context=context),
        recommendations=context.recommendations,
        missingInformation=[],
    )


def fallback_ticket_quality(context: StageContext) -> TicketQualityRating:
    """按 ticket 元数据的有无打分（只看“有没有”，不看写得好不好）。"""
    ticket = context.primary_ticket
    if ticket is None:
        raise ValueError("ticket stages require a primary ticket")

    description_len = len(ticket.description.strip())
    criteria = len(ticket.acceptance_criteria)
    dimensions = TicketQualityDimensions(
        descriptionClarity=_ladder(description_len, ((0, 0), (50, 30), (200, 60), (500, 80)), top=90),
        acceptanceCriteriaQuality=_ladder(criteria, ((0, 0), (1, 50), (3, 70)), top=85),
        testabilityScore=_ladder(criteria, ((0, 20), (2, 55)), top=75),
        scopeDefinition=60 if description_len >= 200 else 40 if description_len else 10,
        technicalContext=50 if ticket.components or ticket.labels else 30,
        visualDocumentation=80 if ticket.has_screenshots or ticket.has_diagrams else 20,
        estimationQuality=80 if ticket.story_points is not None else 10,
        completeness=0,
    )
    scored = dimensions.model_dump()
    scored.pop("completeness")
    completeness = round(sum(scored.values()) / len(scored))
    dimensions = dimensions.model_copy(update={"completeness": completeness})
    overall = round((sum(scored.values()) + completeness) / (len(scored) + 1))

    weaknesses: list[str] = []
    if not description_len:
        weaknesses.append("Ticket has no description")
    if not criteria:
        weaknesses.append("No explicit acceptance criteria")
    if ticket.story_points is None:
        weaknesses.append("Ticket is not estimated")
    reviewable = description_len > 0 or criteria > 0
    return TicketQualityRating(
        overallScore=overall,
        dimensions=dimensions,
        feedback=TicketFeedback(weaknesses=weaknesses),
        tier=quality_tier(score=overall),
        reviewable=reviewable,
        reviewabilityReason=(
            "Heuristic rating: ticket has enough text to derive requirements"
            if reviewable
            else "Heuristic rating: ticket has neither description nor acceptance criteria"
        ),
    )


def fallback_ac_validation(context: StageContext) -> AcceptanceCriteriaValidation:
    """
    不做语义判断：只把显式 AC 列为派生需求，不给出逐条结论，
    因此 compliancePercentage 为 None（而不是 0%）。
    """
    ticket = context.primary_ticket
    criteria = ticket.acceptance_criteria if ticket is not None else []
    return AcceptanceCriteriaValidation(
        derivedRequirements=[
            DerivedRequirement(id=f"AC-{i}", requirement=text, source="explicit_ac", importance="essential")
            for i, text in enumerate(criteria, start=1)
        ],
    )


def fallback_peer_review(context: StageContext) -> PeerReviewAnalysis:
    findings = context.static_analysis.findings
    blockers = [_static_finding(f.comment, f.file, f.line) for f in findings if f.severity == "critical"]
    warnings = [_static_finding(f.comment, f.file, f.line) for f in findings if f.severity == "warning"]

    validation = context.ac_validation
    compliance = validation.compliancePercentage if validation is not None else None
    if blockers:
        recommendation = "request_changes"
        summary = f"{len(blockers)} critical issue(s) found by static analysis must be fixed before merge."
    elif validation is not None and is_compliant(validation=validation, threshold=context.compliance_threshold):
        recommendation = "approve"
        summary = f"Acceptance criteria compliance is {compliance}% and no blocking issues were found."
    else:
        recommendation = "needs_discussion"
        summary = "Requirement coverage could not be verified automatically; a reviewer should confirm the ticket is satisfied."

    quality = max(0, 100 - 20 * len(blockers) - 5 * len(warnings))
    return PeerReviewAnalysis(
        implementationCompleteness=compliance or 0,
        qualityScore=quality,
        readyForReview=not blockers,
        blockers=blockers,
        warnings=warnings,
        recommendations=default_recommendations(context=context),
        verdict=Verdict(summary=summary, recommendation=recommendation, confidenceLevel=30),
    )


def quality_tier(score: int) -> str:
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "adequate"
    if score >= 25:
        return "poor"
    return "insufficient"


def _ladder(value: int, steps: tuple[tuple[int, int], ...], top: int) -> int:
    """value <= 阈值时取对应分数，都超过时取 top。"""
    for upper, score in steps:
        if value <= upper:
            return score
    return top


def _location(file: str, line: int | None) -> str:
    return f"{file}:{line}" if line else file


def _static_finding(comment: str, file: str, line: int | None) -> ReviewFinding:
    return ReviewFinding(issue=comment, reason="Static analysis", location=_location(file, line))
