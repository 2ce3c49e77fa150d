"""
纯文本（终端）渲染。

每个函数返回 `Section` 列表（key + 行），由 `report.formatter` 拼接；
section 是否出现、列表截多少条都只看 `Tier`。
"""

from __future__ import annotations

from collections.abc import Sequence

from prlens.report.tiers import Tier
from prlens.report.tiers import cap
from prlens.report.tiers import clip
from prlens.review.models import AgentResult
from prlens.review.models import CostEstimate
from prlens.review.models import CoverageReport
from prlens.review.models import ProjectClassification
from prlens.review.models import PromptOnlyResult
from prlens.review.models import StaticAnalysis
from prlens.review.models import SuggestedTest
from prlens.tracker.schemas import PeerReviewResult

Section = tuple[str, list[str]]

HEAVY_RULE = "═" * 63
LIGHT_RULE = "─" * 63
SEPARATOR = "━" * 40

COST_DISCLAIMER = "Estimates are approximate. Actual costs depend on usage and configuration."

CONFIDENCE_EMOJI = {"high": "🟢", "medium": "🟡", "low": "🔴"}
VERDICT_EMOJI = {"approve": "✅", "request_changes": "❌", "needs_discussion": "💬"}
VERDICT_TEXT = {"approve": "APPROVED", "request_changes": "CHANGES REQUESTED", "needs_discussion": "NEEDS DISCUSSION"}
STATUS_EMOJI = {"met": "✅", "partial": "🟡", "unmet": "❌", "unclear": "❓"}
SEVERITY_EMOJI = {"critical": "🔴", "major": "🟠", "minor": "🟡"}
LIKELIHOOD_EMOJI = {"high": "🔴", "medium": "🟠", "low": "🟡"}
IMPORTANCE_EMOJI = {"essential": "🔴", "expected": "🟡", "nice_to_have": "🟢"}
SOURCE_LABEL = {
    "description": "desc",
    "explicit_ac": "AC",
    "implied": "implied",
    "ticket_type": "type",
    "technical_context": "tech",
}
FIX_EMOJI = {"critical": "🔴", "warning": "🟡", "suggestion": "💡"}


def score_emoji(score: int | None) -> str:
    if score is None:
        return "⚪"
    if score >= 85:
        return "🟢"
    if score >= 70:
        return "🟡"
    if score >= 50:
        return "🟠"
    return "🔴"


def format_score(score: int) -> str:
    filled = score // 10
    return f"{score_emoji(score)} {'█' * filled}{'░' * (10 - filled)} {score}"


def format_compliance(value: int | None) -> str:
    return "n/a" if value is None else f"{value}%"


def format_cost_estimates(estimates: Sequence[CostEstimate], total: float) -> str:
    """DevOps 成本块（终端格式）。"""
    if not estimates:
        return "No cost estimates available"
    lines = ["💰 AWS Cost Estimates", SEPARATOR]
    for estimate in estimates:
        emoji = CONFIDENCE_EMOJI[estimate.confidence]
        lines.append(f"  {emoji} {estimate.resource_type.upper()}: ~${estimate.estimated_new_cost:.2f}/month")
        if estimate.details:
            lines.append(f"     {estimate.details}")
    lines.append("")
    lines.append(f"📊 Total Estimated Impact: ~${total:.2f}/month")
    lines.append(f"⚠️  {COST_DISCLAIMER}")
    return "\n".join(lines)


def minimal_parts(result: AgentResult | PromptOnlyResult) -> list[str]:
    """minimal 单行摘要的各个片段（终端和 markdown 共用）。"""
    static = result.static_analysis
    parts: list[str] = []
    if isinstance(result, AgentResult):
        parts.append(f"complexity {result.overall_complexity}/5")
        parts.append(f"{len(result.overall_risks)} risks")
    else:
        parts.append(f"{len(static.files)} files")
        parts.append(f"{len(result.prompts)} prompts pending")
    if static.devops_cost_estimates:
        parts.append(f"💰 ~${static.total_devops_cost:.2f}/month")
    if result.peer_review is not None and result.peer_review.enabled:
        parts.extend(_peer_review_parts(result.peer_review))
    return parts


def _peer_review_parts(peer_review: PeerReviewResult) -> list[str]:
    if peer_review.error and peer_review.analysis is None:
        return [f"⚠️ {peer_review.error}"]
    parts: list[str] = []
    analysis = peer_review.analysis
    if analysis is not None:
        recommendation = analysis.verdict.recommendation
        parts.append(f"{VERDICT_EMOJI[recommendation]} {VERDICT_TEXT[recommendation]}")
    if peer_review.ac_validation is not None:
        parts.append(f"{format_compliance(peer_review.ac_validation.compliancePercentage)} compliant")
    if peer_review.primary_ticket is not None:
        ticket = peer_review.primary_ticket
        parts.append(f"{ticket.key}: {clip(ticket.title, 40)}")
    if analysis is not None:
        parts.append(f"🚫 {len(analysis.blockers)} blockers")
        parts.append(f"⚠️ {len(analysis.warnings)} warnings")
    return parts


def minimal_line(result: AgentResult | PromptOnlyResult) -> str:
    label = "PEER REVIEW" if isinstance(result, AgentResult) and result.peer_review is not None else "PR ANALYSIS"
    return "\n".join([HEAVY_RULE, f"🔍 {label}: {' | '.join(minimal_parts(result))}", HEAVY_RULE])


def result_sections(result: AgentResult, tier: Tier) -> list[Section]:
    sections: list[Section] = []
    sections.append(
        (
            "summary",
            ["📋 SUMMARY", SEPARATOR, result.summary, "", f"Overall complexity: {result.overall_complexity}/5"],
        )
    )

    risks = cap(result.overall_risks, tier.max_risks)
    if risks:
        sections.append(("risks", ["⚠️  RISKS", SEPARATOR, *[f"  • {clip(r, tier.text_width)}" for r in risks]]))

    if tier.show_fixes and result.fixes:
        lines = ["🔧 SUGGESTED FIXES", SEPARATOR]
        for fix in cap(result.fixes, tier.max_warnings):
            location = f"{fix.file}:{fix.line}" if fix.line else fix.file
            lines.append(f"  {FIX_EMOJI[fix.severity]} [{fix.severity}] {location}")
            lines.append(f"     {clip(fix.comment, tier.text_width)}")
        sections.append(("fixes", lines))

    recommendations = cap(result.recommendations, tier.max_recommendations)
    if recommendations:
        sections.append(("recommendations", ["💡 RECOMMENDATIONS", SEPARATOR, *[f"  • {r}" for r in recommendations]]))

    if tier.show_insights and result.insights:
        sections.append(("insights", ["🔎 INSIGHTS", SEPARATOR, *[f"  • {i}" for i in result.insights]]))

    if tier.show_file_analyses and result.file_analyses:
        lines = ["📄 FILE ANALYSIS", SEPARATOR]
        for path, analysis in result.file_analyses.items():
            lines.append(f"  {path} (+{analysis.additions}/-{analysis.deletions}, complexity {analysis.complexity}/5)")
            lines.append(f"     {clip(analysis.summary, tier.text_width)}")
            for risk in analysis.risks:
                lines.append(f"     ⚠️  {clip(risk, tier.text_width)}")
        sections.append(("file_analyses", lines))

    sections.extend(static_sections(result.static_analysis, tier))

    if result.peer_review is not None and result.peer_review.enabled:
        sections.extend(peer_review_sections(result.peer_review, tier))

    if tier.show_run_details:
        lines = [
            "🤖 RUN DETAILS",
            SEPARATOR,
            f"  Model: {result.model}",
            f"  Tokens used: {result.total_tokens_used}",
            f"  Execution time: {result.execution_time:.2f}s",
            f"  Completed stages: {', '.join(result.completed_stages) or 'none'}",
        ]
        if result.fallback_stages:
            lines.append(f"  Fallback stages: {', '.join(result.fallback_stages)}")
        sections.append(("run_details", lines))
    return sections


def static_sections(static: StaticAnalysis, tier: Tier) -> list[Section]:
    sections: list[Section] = []
    if static.devops_cost_estimates:
        sections.append(
            ("devops_costs", format_cost_estimates(static.devops_cost_estimates, static.total_devops_cost).split("\n"))
        )
    if tier.show_test_suggestions and static.test_suggestions:
        sections.append(("test_suggestions", _test_suggestion_lines(static.test_suggestions, tier)))
    if tier.show_coverage and static.coverage_report is not None and static.coverage_report.available:
        sections.append(("coverage", _coverage_lines(static.coverage_report)))
    if tier.show_classification and static.project_classification is not None:
        sections.append(("classification", _classification_lines(static.project_classification)))
    return sections


def _test_suggestion_lines(suggestions: Sequence[SuggestedTest], tier: Tier) -> list[str]:
    lines = [f"🧪 Test Suggestions ({len(suggestions)} files need tests)", SEPARATOR]
    for suggestion in suggestions:
        lines.append(f"  📝 {suggestion.for_file}")
        lines.append(f"     Framework: {suggestion.test_framework}")
        lines.append(f"     Suggested test file: {suggestion.test_file_path}")
        if tier.show_file_analyses:
            lines.append(f"     {suggestion.description}")
    return lines


def _coverage_lines(report: CoverageReport) -> list[str]:
    lines = ["📊 Test Coverage Report", SEPARATOR]
    if report.overall_percentage is not None:
        emoji = "🟢" if report.overall_percentage >= 80 else "🟡" if report.overall_percentage >= 60 else "🔴"
        lines.append(f"  {emoji} Overall Coverage: {report.overall_percentage:.1f}%")
    if report.line_coverage is not None:
        lines.append(f"     Lines: {report.line_coverage:.1f}%")
    if report.branch_coverage is not None:
        lines.append(f"     Branches: {report.branch_coverage:.1f}%")
    if report.coverage_tool:
        lines.append(f"  Tool: {report.coverage_tool}")
    return lines


def _classification_lines(classification: ProjectClassification) -> list[str]:
    lines = [
        "🏷️  Project Classification",
        SEPARATOR,
        f"  Type: {classification.project_type} (confidence {classification.confidence}%)",
    ]
    lines.extend(f"     • {signal}" for signal in classification.signals)
    return lines


def peer_review_sections(peer_review: PeerReviewResult, tier: Tier) -> list[Section]:
    header = ["", HEAVY_RULE, "                    🔍 PEER REVIEW ANALYSIS", HEAVY_RULE, ""]
    sections: list[Section] = [("peer_review", header)]

    if peer_review.error:
        sections.append(("peer_review_error", [f"⚠️  {peer_review.error}", ""]))

    ticket = peer_review.primary_ticket
    if ticket is not None:
        lines = ["📋 LINKED TICKET", LIGHT_RULE, f"   Key:    {ticket.key}", f"   Title:  {ticket.title}"]
        if tier.show_ticket_details:
            lines.append(f"   Type:   {ticket.type.upper()}")
            lines.append(f"   Status: {ticket.status or 'unknown'}")
            if ticket.story_points:
                lines.append(f"   Points: {ticket.story_points:g}")
        lines.append("")
        sections.append(("linked_ticket", lines))

    quality = peer_review.ticket_quality
    if quality is not None and tier.show_ticket_quality:
        dims = quality.dimensions
        lines = [
            "📊 TICKET QUALITY RATING",
            LIGHT_RULE,
            f"   Overall Score: {score_emoji(quality.overallScore)} {quality.overallScore}/100 ({quality.tier.upper()})",
            "",
            "   Dimension Scores:",
            f"   • Description Clarity:     {format_score(dims.descriptionClarity)}",
            f"   • Acceptance Criteria:     {format_score(dims.acceptanceCriteriaQuality)}",
            f"   • Testability:             {format_score(dims.testabilityScore)}",
            f"   • Scope Definition:        {format_score(dims.scopeDefinition)}",
            f"   • Technical Context:       {format_score(dims.technicalContext)}",
            f"   • Visual Documentation:    {format_score(dims.visualDocumentation)}",
            f"   • Estimation Quality:      {format_score(dims.estimationQuality)}",
            f"   • Completeness:            {format_score(dims.completeness)}",
            "",
        ]
        if not quality.reviewable:
            lines.extend([f"   ⚠️  Ticket Not Reviewable: {quality.reviewabilityReason}", ""])
        if tier.show_dimension_weaknesses and quality.feedback.weaknesses:
            lines.append("   ⚠️  Ticket Weaknesses:")
            lines.extend(f"      • {w}" for w in quality.feedback.weaknesses)
            lines.append("")
        sections.append(("ticket_quality", lines))

    validation = peer_review.ac_validation
    if validation is not None:
        compliance = validation.compliancePercentage
        lines = [
            "✅ REQUIREMENTS VALIDATION",
            LIGHT_RULE,
            f"   Compliance: {score_emoji(compliance)} {format_compliance(compliance)}",
            "",
        ]
        if tier.show_derived_requirements and validation.derivedRequirements:
            lines.append("   📋 DERIVED REQUIREMENTS (from ticket analysis):")
            for req in validation.derivedRequirements:
                lines.append(f"   {IMPORTANCE_EMOJI[req.importance]} [{SOURCE_LABEL[req.source]}] {req.requirement}")
            lines.append("")

        criteria = validation.criteriaAnalysis
        if tier.unmet_requirements_only:
            criteria = [c for c in criteria if c.status != "met"]
        criteria = cap(criteria, tier.max_requirements)
        if criteria:
            lines.append("   📊 REQUIREMENT STATUS:")
            for item in criteria:
                lines.append(f"   {STATUS_EMOJI[item.status]} {clip(item.criteriaText, tier.criteria_width)}")
                if item.status != "met" and tier.show_requirement_explanations and item.explanation:
                    lines.append(f"      └─ {clip(item.explanation, tier.explanation_width)}")
            lines.append("")

        gaps = cap(validation.gaps, tier.max_gaps)
        if gaps:
            lines.append("   ❌ COVERAGE GAPS:")
            for gap in gaps:
                lines.append(f"   {SEVERITY_EMOJI[gap.severity]} [{gap.severity.upper()}] {gap.gapDescription}")
                if tier.show_gap_impact and gap.impact:
                    lines.append(f"      └─ Impact: {gap.impact}")
            lines.append("")

        if tier.show_missing_behaviors and validation.missingBehaviors:
            lines.append("   ⚠️  MISSING BEHAVIORS:")
            lines.extend(f"      • {b}" for b in validation.missingBehaviors)
            lines.append("")
        sections.append(("requirements", lines))

    review = peer_review.analysis
    if review is not None:
        recommendation = review.verdict.recommendation
        lines = [
            "🎯 PEER REVIEW VERDICT",
            LIGHT_RULE,
            f"   {VERDICT_EMOJI[recommendation]} {VERDICT_TEXT[recommendation]} "
            f"(Confidence: {review.verdict.confidenceLevel}%)",
            "",
            f"   {review.verdict.summary}",
            "",
            "   Scores:",
            f"   • Implementation Completeness: {format_score(review.implementationCompleteness)}",
            f"   • Quality Score:               {format_score(review.qualityScore)}",
            "",
        ]
        if review.blockers:
            lines.append("   🚫 BLOCKERS (must fix before merge):")
            for blocker in review.blockers:
                lines.append(f"      • {blocker.issue}")
                lines.append(f"        Reason: {blocker.reason}")
                if blocker.location:
                    lines.append(f"        Location: {blocker.location}")
            lines.append("")

        warnings = cap(review.warnings, tier.max_warnings)
        if warnings:
            lines.append("   ⚠️  WARNINGS (should address):")
            for warning in warnings:
                lines.append(f"      • {warning.issue}")
                if warning.reason and tier.show_warning_reasons:
                    lines.append(f"        Reason: {warning.reason}")
            lines.append("")
        sections.append(("verdict", lines))

        if tier.show_regression_risks and review.regressionRisks:
            lines = ["   ⚡ POTENTIAL REGRESSION RISKS:"]
            for risk in cap(review.regressionRisks, tier.max_regression_risks):
                lines.append(f"      {LIKELIHOOD_EMOJI[risk.likelihood]} {risk.risk}")
                if tier.show_regression_details:
                    lines.append(f"        Affected: {risk.affectedArea}")
                    lines.append(f"        Why: {risk.reasoning}")
            lines.append("")
            sections.append(("regression_risks", lines))

        if tier.show_uncovered_scenarios and review.uncoveredScenarios:
            lines = ["   🔍 SCENARIOS NOT HANDLED:"]
            for scenario in review.uncoveredScenarios:
                lines.append(f"      {SEVERITY_EMOJI[scenario.impact]} {scenario.scenario}")
                if scenario.relatedCriteria and tier.show_related_criteria:
                    lines.append(f"        Related to: {scenario.relatedCriteria}")
            lines.append("")
            sections.append(("uncovered_scenarios", lines))

        scope = review.scopeAnalysis
        if tier.show_scope_creep and scope.scopeCreepRisk:
            lines = ["   ⚠️  SCOPE CREEP DETECTED:", f"      {scope.scopeCreepDetails or 'Changes may exceed ticket scope'}"]
            if tier.show_out_of_scope and scope.outOfScope:
                lines.append("      Out of scope changes:")
                lines.extend(f"      • {s}" for s in cap(scope.outOfScope, tier.max_out_of_scope))
            lines.append("")
            sections.append(("scope_creep", lines))

        recommendations = cap(review.recommendations, tier.max_recommendations)
        if recommendations:
            lines = ["   💡 RECOMMENDATIONS:", *[f"      • {r}" for r in recommendations], ""]
            sections.append(("peer_review_recommendations", lines))

    sections.append(("peer_review_footer", [HEAVY_RULE, ""]))
    return sections
