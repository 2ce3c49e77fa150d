"""
Markdown 渲染（PR 评论 / MCP 返回）。

注意：
- 这里是**确定性输出**（不依赖 LLM），同一个结果 + 同一个级别永远得到同样的文本
- 显示哪些 section 只看 `Tier`，和终端渲染共用同一张表
"""

from __future__ import annotations

from prlens.report.console import CONFIDENCE_EMOJI
from prlens.report.console import COST_DISCLAIMER
from prlens.report.console import IMPORTANCE_EMOJI
from prlens.report.console import STATUS_EMOJI
from prlens.report.console import Section
from prlens.report.console import VERDICT_EMOJI
from prlens.report.console import VERDICT_TEXT
from prlens.report.console import format_compliance
from prlens.report.tiers import Tier
from prlens.report.tiers import cap
from prlens.report.tiers import clip
from prlens.review.models import AgentResult
from prlens.review.models import StaticAnalysis
from prlens.tracker.schemas import PeerReviewResult


def result_sections(result: AgentResult, tier: Tier) -> list[Section]:
    sections: list[Section] = [
        (
            "summary",
            [
                "## 📋 Summary",
                "",
                result.summary,
                "",
                f"**Overall complexity:** {result.overall_complexity}/5",
                "",
            ],
        )
    ]

    risks = cap(result.overall_risks, tier.max_risks)
    if risks:
        sections.append(("risks", ["### ⚠️ Risks", "", *[f"- {clip(r, tier.text_width)}" for r in risks], ""]))

    if tier.show_fixes and result.fixes:
        lines = ["### 🔧 Suggested Fixes", ""]
        for fix in cap(result.fixes, tier.max_warnings):
            location = f"{fix.file}:{fix.line}" if fix.line else fix.file
            lines.append(f"- **[{fix.severity}]** `{location}`: {clip(fix.comment, tier.text_width)}")
        lines.append("")
        sections.append(("fixes", lines))

    recommendations = cap(result.recommendations, tier.max_recommendations)
    if recommendations:
        sections.append(("recommendations", ["### 💡 Recommendations", "", *[f"- {r}" for r in recommendations], ""]))

    if tier.show_insights and result.insights:
        sections.append(("insights", ["### 🔎 Insights", "", *[f"- {i}" for i in result.insights], ""]))

    if tier.show_file_analyses and result.file_analyses:
        lines = ["### 📄 File Analysis", "", "| File | Changes | Complexity | Summary |", "|------|---------|------------|---------|"]
        for path, analysis in result.file_analyses.items():
            summary = clip(analysis.summary, tier.text_width).replace("|", "\\|")
            lines.append(
                f"| `{path}` | +{analysis.additions}/-{analysis.deletions} | {analysis.complexity}/5 | {summary} |"
            )
        lines.append("")
        sections.append(("file_analyses", lines))

    sections.extend(static_sections(result.static_analysis, tier))

    if result.peer_review is not None and result.peer_review.enabled:
        sections.extend(peer_review_sections(result.peer_review, tier))

    if tier.show_run_details:
        lines = [
            "<details>",
            "<summary>🤖 Run Details</summary>",
            "",
            f"- Model: `{result.model}`",
            f"- Tokens used: {result.total_tokens_used}",
            f"- Execution time: {result.execution_time:.2f}s",
            f"- Completed stages: {', '.join(result.completed_stages) or 'none'}",
        ]
        if result.fallback_stages:
            lines.append(f"- Fallback stages: {', '.join(result.fallback_stages)}")
        lines.extend(["", "</details>", ""])
        sections.append(("run_details", lines))
    return sections


def cost_estimate_lines(static: StaticAnalysis) -> list[str]:
    lines = ["## 💰 DevOps Cost Estimates", ""]
    if not static.devops_cost_estimates:
        lines.append("No DevOps infrastructure changes detected.")
        return lines
    lines.append(f"**Total Estimated Monthly Cost:** ${static.total_devops_cost:.2f}")
    lines.append("")
    for estimate in static.devops_cost_estimates:
        emoji = CONFIDENCE_EMOJI[estimate.confidence]
        lines.append(f"### {estimate.resource_type}")
        lines.append("")
        lines.append(f"{emoji} {estimate.resource_type.upper()}: ~${estimate.estimated_new_cost:.2f}/month")
        if estimate.details:
            lines.append(f"     {estimate.details}")
        lines.append("")
    lines.append(f"📊 Total Estimated Impact: ~${static.total_devops_cost:.2f}/month")
    lines.append("")
    lines.append(f"⚠️  {COST_DISCLAIMER}")
    lines.append("")
    return lines


def static_sections(static: StaticAnalysis, tier: Tier) -> list[Section]:
    sections: list[Section] = []
    if static.devops_cost_estimates:
        sections.append(("devops_costs", cost_estimate_lines(static)))

    if tier.show_test_suggestions and static.test_suggestions:
        lines = [f"### 🧪 Test Suggestions ({len(static.test_suggestions)})", ""]
        for suggestion in static.test_suggestions:
            lines.append(f"**{suggestion.for_file}**")
            lines.append(f"- Framework: {suggestion.test_framework}")
            lines.append(f"- Suggested path: {suggestion.test_file_path}")
            lines.append("")
        sections.append(("test_suggestions", lines))

    report = static.coverage_report
    if tier.show_coverage and report is not None and report.available:
        lines = ["### 📊 Test Coverage Report", ""]
        if report.overall_percentage is not None:
            emoji = "🟢" if report.overall_percentage >= 80 else "🟡" if report.overall_percentage >= 60 else "🔴"
            lines.append(f"{emoji} Overall Coverage: **{report.overall_percentage:.1f}%**")
        if report.line_coverage is not None:
            lines.append(f"- Lines: {report.line_coverage:.1f}%")
        if report.branch_coverage is not None:
            lines.append(f"- Branches: {report.branch_coverage:.1f}%")
        if report.coverage_tool:
            lines.extend(["", f"Tool: {report.coverage_tool}"])
        lines.append("")
        sections.append(("coverage", lines))

    classification = static.project_classification
    if tier.show_classification and classification is not None:
        lines = [
            "### 🏷️ Project Classification",
            "",
            f"**{classification.project_type}** (confidence {classification.confidence}%)",
            "",
            *[f"- {signal}" for signal in classification.signals],
            "",
        ]
        sections.append(("classification", lines))
    return sections


def peer_review_sections(peer_review: PeerReviewResult, tier: Tier) -> list[Section]:
    sections: list[Section] = [("peer_review", ["## 🔍 Peer Review Analysis", ""])]

    if peer_review.error:
        sections.append(("peer_review_error", [f"> ⚠️ {peer_review.error}", ""]))

    review = peer_review.analysis
    if review is not None:
        recommendation = review.verdict.recommendation
        sections.append(
            (
                "verdict_banner",
                [
                    f"### {VERDICT_EMOJI[recommendation]} Verdict: {VERDICT_TEXT[recommendation]}",
                    "",
                    f"> {review.verdict.summary}",
                    "",
                ],
            )
        )

    ticket = peer_review.primary_ticket
    if ticket is not None:
        heading = f"[{ticket.key}]({ticket.url})" if ticket.url else ticket.key
        lines = [f"### 📋 Linked Ticket: {heading}", "", f"**{ticket.title}**", ""]
        if tier.show_ticket_details:
            lines.extend(["| Property | Value |", "|----------|-------|", f"| Type | {ticket.type} |"])
            lines.append(f"| Status | {ticket.status or 'unknown'} |")
            if ticket.story_points:
                lines.append(f"| Story Points | {ticket.story_points:g} |")
            lines.append("")
        sections.append(("linked_ticket", lines))

    quality = peer_review.ticket_quality
    if quality is not None and tier.show_ticket_quality:
        lines = ["### 📊 Ticket Quality", "", f"**Overall Score: {quality.overallScore}/100** ({quality.tier})", ""]
        if not quality.reviewable:
            lines.extend([f"> ⚠️ **Warning:** {quality.reviewabilityReason}", ""])
        if tier.show_dimension_weaknesses and quality.feedback.weaknesses:
            lines.extend(["**Ticket Weaknesses:**", ""])
            lines.extend(f"- {w}" for w in quality.feedback.weaknesses)
            lines.append("")
        sections.append(("ticket_quality", lines))

    validation = peer_review.ac_validation
    if validation is not None:
        lines = [
            "### ✅ Requirements Validation",
            "",
            f"**Compliance: {format_compliance(validation.compliancePercentage)}**",
            "",
        ]
        if tier.show_derived_requirements and validation.derivedRequirements:
            lines.extend(
                [
                    "<details>",
                    "<summary>📋 Derived Requirements (from ticket analysis)</summary>",
                    "",
                    "| Importance | Source | Requirement |",
                    "|------------|--------|-------------|",
                ]
            )
            for req in validation.derivedRequirements:
                lines.append(f"| {IMPORTANCE_EMOJI[req.importance]} {req.importance} | {req.source} | {req.requirement} |")
            lines.extend(["", "</details>", ""])

        criteria = validation.criteriaAnalysis
        if tier.unmet_requirements_only:
            criteria = [c for c in criteria if c.status != "met"]
        criteria = cap(criteria, tier.max_requirements)
        if criteria:
            lines.extend(["| Status | Requirement |", "|--------|-------------|"])
            width = None if tier.criteria_width is None else 80
            for item in criteria:
                lines.append(f"| {STATUS_EMOJI[item.status]} {item.status} | {clip(item.criteriaText, width)} |")
            lines.append("")

        gaps = cap(validation.gaps, tier.max_gaps)
        if gaps:
            lines.extend(["#### ❌ Coverage Gaps", ""])
            for gap in gaps:
                lines.append(f"- **[{gap.severity}]** {gap.gapDescription}")
                if tier.show_gap_impact and gap.impact:
                    lines.append(f"  - _Impact:_ {gap.impact}")
            lines.append("")

        if tier.show_missing_behaviors and validation.missingBehaviors:
            lines.extend(["#### ⚠️ Missing Behaviors", ""])
            lines.extend(f"- {b}" for b in validation.missingBehaviors)
            lines.append("")
        sections.append(("requirements", lines))

    if review is None:
        return sections

    lines = [
        "### 🎯 Assessment Details",
        "",
        "| Metric | Score |",
        "|--------|-------|",
        f"| Implementation Completeness | {review.implementationCompleteness}% |",
        f"| Quality Score | {review.qualityScore}% |",
        f"| Confidence | {review.verdict.confidenceLevel}% |",
        "",
    ]
    if review.blockers:
        lines.extend(["#### 🚫 Blockers (Must Fix)", ""])
        for blocker in review.blockers:
            lines.append(f"- **{blocker.issue}**")
            lines.append(f"  - {blocker.reason}")
            if blocker.location:
                lines.append(f"  - 📍 {blocker.location}")
        lines.append("")
    warnings = cap(review.warnings, tier.max_warnings)
    if warnings:
        lines.extend(["#### ⚠️ Warnings (Should Address)", ""])
        for warning in warnings:
            lines.append(f"- **{warning.issue}**")
            if warning.reason and tier.show_warning_reasons:
                lines.append(f"  - {warning.reason}")
        lines.append("")
    sections.append(("verdict", lines))

    if tier.show_regression_risks and review.regressionRisks:
        lines = ["<details>", "<summary>⚡ Potential Regression Risks</summary>", ""]
        for risk in cap(review.regressionRisks, tier.max_regression_risks):
            lines.append(f"- **{risk.risk}** ({risk.likelihood} likelihood)")
            if tier.show_regression_details:
                lines.append(f"  - Affects: {risk.affectedArea}")
                lines.append(f"  - Reason: {risk.reasoning}")
        lines.extend(["", "</details>", ""])
        sections.append(("regression_risks", lines))

    if tier.show_uncovered_scenarios and review.uncoveredScenarios:
        lines = ["<details>", "<summary>🔍 Scenarios Not Handled</summary>", ""]
        for scenario in review.uncoveredScenarios:
            lines.append(f"- **[{scenario.impact}]** {scenario.scenario}")
            if scenario.relatedCriteria and tier.show_related_criteria:
                lines.append(f"  - Related to: {scenario.relatedCriteria}")
        lines.extend(["", "</details>", ""])
        sections.append(("uncovered_scenarios", lines))

    scope = review.scopeAnalysis
    if tier.show_scope_creep and scope.scopeCreepRisk:
        details = scope.scopeCreepDetails or "Changes may exceed ticket scope"
        lines = [f"> ⚠️ **Scope Creep Detected:** {details}", ""]
        if tier.show_out_of_scope and scope.outOfScope:
            lines.extend(f"- {s}" for s in cap(scope.outOfScope, tier.max_out_of_scope))
            lines.append("")
        sections.append(("scope_creep", lines))

    recommendations = cap(review.recommendations, tier.max_recommendations)
    if recommendations:
        lines = ["#### 💡 Recommendations", "", *[f"- {r}" for r in recommendations], ""]
        sections.append(("peer_review_recommendations", lines))
    return sections
