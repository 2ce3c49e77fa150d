"""
各阶段的 prompt 构建（纯函数）。

同一个 builder 同时服务两种执行方式：
- EXECUTE：上下文里已有前序阶段的结果，直接填入
- PROMPT_ONLY：前序结果还不存在，填入 `{RESULT_FROM_<step>.<field>}` 占位符，由外部调用方按顺序执行并替换

输出的 `schema` 是对应 pydantic 模型的 JSON schema。
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

from prlens.review.context import truncate_text
from prlens.review.models import AnalysisPrompt
from prlens.review.models import FileAnalysisBatch
from prlens.review.models import RefinementResult
from prlens.review.models import RiskDetection
from prlens.review.models import StageContext
from prlens.review.models import StepName
from prlens.review.models import SummaryResult
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import PeerReviewAnalysis
from prlens.tracker.schemas import Ticket
from prlens.tracker.schemas import TicketQualityRating

FILE_ANALYSIS_DIFF_LIMIT = 30_000
RISK_DIFF_LIMIT = 20_000
AC_DIFF_LIMIT = 15_000
PEER_REVIEW_DIFF_LIMIT = 10_000
TICKET_DESCRIPTION_LIMIT = 2_000

DIFF_TRUNCATION_MARKER = "\n... [diff truncated]"

PROMPT_ONLY_INSTRUCTIONS = (
    "Execute these prompts sequentially. "
    "Replace every {RESULT_FROM_<step>.<field>} placeholder with the matching field of that step's output. "
    "Parse each response according to the provided schema."
)


def placeholder(step: StepName, field: str) -> str:
    return "{RESULT_FROM_" + step + "." + field + "}"


def format_file_list(context: StageContext) -> str:
    if not context.files:
        return "(no files changed)"
    return "\n".join(f"{f.path} (+{f.additions}/-{f.deletions}) [{f.status}]" for f in context.files)


def schema_of(model: type[BaseModel]) -> dict[str, Any]:
    return model.model_json_schema()


def build_file_analysis_prompt(context: StageContext) -> AnalysisPrompt:
    diff = truncate_text(context.diff or "(empty diff)", FILE_ANALYSIS_DIFF_LIMIT, marker=DIFF_TRUNCATION_MARKER)
    prompt = (
        "Analyze each changed file of this pull request.\n"
        "For every file give a one-sentence summary, concrete risks, a complexity score (1-5) "
        "and actionable recommendations.\n\n"
        f"PR TITLE: {context.title or 'Untitled'}\n"
        f"PR DESCRIPTION: {context.options.description or 'No description'}\n"
        f"LANGUAGE: {context.options.language or 'auto'}  FRAMEWORK: {context.options.framework or 'auto'}\n\n"
        f"FILES CHANGED:\n{format_file_list(context)}\n\n"
        f"DIFF:\n{diff}\n"
    )
    return AnalysisPrompt(
        step="fileAnalysis",
        prompt=prompt,
        instructions="Analyze every changed file and return a JSON object matching the schema",
        context={"fileCount": len(context.files), "paths": [f.path for f in context.files]},
        output_schema=schema_of(FileAnalysisBatch),
    )


def build_risk_detection_prompt(context: StageContext) -> AnalysisPrompt:
    diff = truncate_text(context.diff or "(empty diff)", RISK_DIFF_LIMIT, marker=DIFF_TRUNCATION_MARKER)
    if context.file_analyses:
        per_file = "\n".join(f"- {fa.path}: {fa.summary}" for fa in context.file_analyses.values())
    else:
        per_file = placeholder("fileAnalysis", "files")
    findings = "\n".join(
        f"- [{f.severity}] {f.file}:{f.line or '?'} {f.comment}" for f in context.static_analysis.findings
    )
    prompt = (
        "Identify risks introduced by this change: security issues, breaking changes, "
        "missing error handling, data loss and performance regressions.\n"
        "For each concrete problem also propose a fix with file, line and severity (critical|warning|suggestion).\n\n"
        f"FILE SUMMARIES:\n{per_file}\n\n"
        f"STATIC ANALYSIS FINDINGS:\n{findings or 'None'}\n\n"
        f"DIFF:\n{diff}\n"
    )
    return AnalysisPrompt(
        step="riskDetection",
        prompt=prompt,
        instructions="Detect risks and return a JSON object matching the schema",
        context={"staticFindings": len(context.static_analysis.findings)},
        output_schema=schema_of(RiskDetection),
    )


def build_summary_prompt(context: StageContext) -> AnalysisPrompt:
    if context.file_analyses:
        per_file = "\n".join(
            f"- {fa.path} (complexity {fa.complexity}): {fa.summary}" for fa in context.file_analyses.values()
        )
    else:
        per_file = placeholder("fileAnalysis", "files")
    if not context.modes.risks:
        risks = "Not requested"
    elif context.risks:
        risks = "\n".join(f"- {r}" for r in context.risks)
    elif "riskDetection" in context.completed_stages or "riskDetection" in context.fallback_stages:
        risks = "None identified"
    else:
        risks = placeholder("riskDetection", "risks")
    static = context.static_analysis
    insights = [f"Total DevOps cost impact: ~${static.total_devops_cost:.2f}/month"] if static.devops_cost_estimates else []
    if static.project_classification is not None:
        insights.append(f"Project type: {static.project_classification.project_type}")
    prompt = (
        "Write an executive summary of this pull request for reviewers.\n"
        "Give the overall complexity (1-5), the most important recommendations and any notable insights.\n\n"
        f"PR TITLE: {context.title or 'Untitled'}\n"
        f"FILES CHANGED:\n{format_file_list(context)}\n\n"
        f"FILE SUMMARIES:\n{per_file}\n\n"
        f"RISKS:\n{risks}\n\n"
        f"STATIC INSIGHTS:\n{chr(10).join(insights) or 'None'}\n"
    )
    return AnalysisPrompt(
        step="summaryGeneration",
        prompt=prompt,
        instructions="Summarize the change and return a JSON object matching the schema",
        context={"summary": context.modes.summary, "complexity": context.modes.complexity},
        output_schema=schema_of(SummaryResult),
    )


def build_refinement_prompt(context: StageContext) -> AnalysisPrompt:
    summary = context.summary or placeholder("summaryGeneration", "summary")
    if context.recommendations:
        recommendations = "\n".join(f"- {r}" for r in context.recommendations)
    else:
        recommendations = placeholder("summaryGeneration", "recommendations")
    prompt = (
        "Review the draft analysis below for clarity and completeness.\n"
        "Rate its clarity (0-100), rewrite the summary if it can be clearer, tighten the recommendations "
        "and list any information a reviewer would still be missing.\n\n"
        f"DRAFT SUMMARY:\n{summary}\n\n"
        f"DRAFT RECOMMENDATIONS:\n{recommendations}\n"
    )
    return AnalysisPrompt(
        step="selfRefinement",
        prompt=prompt,
        instructions="Refine the analysis and return a JSON object matching the schema",
        output_schema=schema_of(RefinementResult),
    )


def build_ticket_quality_prompt(context: StageContext) -> AnalysisPrompt:
    ticket = _require_ticket(context=context)
    prompt = (
        "You are an expert at evaluating issue tracker tickets and user stories.\n"
        "Rate the quality of the ticket below.\n\n"
        f"{_ticket_block(ticket=ticket, description_limit=None)}\n"
        f"Has Screenshots/Mockups: {'Yes' if ticket.has_screenshots else 'No'}\n"
        f"Has Diagrams: {'Yes' if ticket.has_diagrams else 'No'}\n"
        f"Story Points: {ticket.story_points if ticket.story_points is not None else 'Not estimated'}\n"
        f"Labels: {', '.join(ticket.labels) or 'None'}\n"
        f"Components: {', '.join(ticket.components) or 'None'}\n\n"
        "Score each dimension 0-100: descriptionClarity, acceptanceCriteriaQuality, testabilityScore, "
        "scopeDefinition, technicalContext, visualDocumentation, estimationQuality, completeness.\n"
        "Tiers: excellent (85-100), good (70-84), adequate (50-69), poor (25-49), insufficient (0-24).\n"
        "A ticket is reviewable when a senior developer could derive concrete requirements from it, "
        "even without an explicit acceptance criteria field.\n"
    )
    return AnalysisPrompt(
        step="ticketQuality",
        prompt=prompt,
        instructions="Analyze the ticket quality and return a JSON object matching the schema",
        context={"ticketKey": ticket.key},
        output_schema=schema_of(TicketQualityRating),
    )


def build_ac_validation_prompt(context: StageContext) -> AnalysisPrompt:
    ticket = _require_ticket(context=context)
    diff = truncate_text(context.diff or "(empty diff)", AC_DIFF_LIMIT, marker=DIFF_TRUNCATION_MARKER)
    prompt = (
        "You are a senior developer reviewing a pull request against its ticket.\n"
        "Do not rely only on the explicit acceptance criteria: derive the requirements from the whole ticket, "
        "then mark each one as met, partial, unmet or unclear with code evidence. Report gaps and missing behaviors "
        "as findings.\n\n"
        f"{_ticket_block(ticket=ticket, description_limit=TICKET_DESCRIPTION_LIMIT, numbered_criteria=True)}\n\n"
        f"PR TITLE: {context.title or 'Untitled'}\n"
        f"PR DESCRIPTION: {context.options.description or 'No description'}\n\n"
        f"FILES CHANGED:\n{format_file_list(context)}\n\n"
        f"CODE DIFF:\n{diff}\n\n"
        f"PREVIOUS PR ANALYSIS SUMMARY:\n{context.summary or 'No summary available'}\n"
    )
    return AnalysisPrompt(
        step="acValidation",
        prompt=prompt,
        instructions="Validate acceptance criteria coverage and return a JSON object matching the schema",
        context={"ticketKey": ticket.key, "criteriaCount": len(ticket.acceptance_criteria)},
        output_schema=schema_of(AcceptanceCriteriaValidation),
    )


def build_peer_review_prompt(context: StageContext) -> AnalysisPrompt:
    ticket = _require_ticket(context=context)
    diff = truncate_text(context.diff or "(empty diff)", PEER_REVIEW_DIFF_LIMIT, marker=DIFF_TRUNCATION_MARKER)

    quality = context.ticket_quality
    quality_score = str(quality.overallScore) if quality else placeholder("ticketQuality", "overallScore")
    reviewable = str(quality.reviewable) if quality else placeholder("ticketQuality", "reviewable")

    validation = context.ac_validation
    if validation is not None:
        compliance = "n/a" if validation.compliancePercentage is None else str(validation.compliancePercentage)
        gaps = json.dumps([g.gapDescription for g in validation.gaps]) if validation.gaps else "None"
    elif quality is not None:
        # acValidation 被跳过（ticket 不可评审）
        compliance = "n/a"
        gaps = "Not evaluated"
    else:
        compliance = placeholder("acValidation", "compliancePercentage")
        gaps = placeholder("acValidation", "gaps")

    prompt = (
        "You are a senior developer doing a thorough peer review.\n"
        "Decide whether this change solves the ticket, what it might break elsewhere, "
        "which scenarios are not handled and whether it is ready to merge.\n\n"
        f"{_ticket_block(ticket=ticket, description_limit=TICKET_DESCRIPTION_LIMIT)}\n\n"
        f"PR TITLE: {context.title or 'Untitled'}\n"
        f"PR DESCRIPTION: {context.options.description or 'No description'}\n\n"
        f"FILES CHANGED:\n{format_file_list(context)}\n\n"
        f"DIFF SUMMARY:\n{diff}\n\n"
        f"EXISTING PR ANALYSIS:\nSummary: {context.summary or 'No summary available'}\n"
        f"Risks Identified: {', '.join(context.risks) or 'None identified'}\n\n"
        f"TICKET QUALITY ASSESSMENT:\nOverall Score: {quality_score}/100\nReviewable: {reviewable}\n\n"
        f"AC VALIDATION RESULTS:\nCompliance: {compliance}%\nGaps Found: {gaps}\n\n"
        f"A compliance of {context.compliance_threshold}% or more counts as satisfying the ticket.\n"
        "Verdict must be one of approve, request_changes, needs_discussion.\n"
    )
    return AnalysisPrompt(
        step="peerReview",
        prompt=prompt,
        instructions="Perform peer review analysis and return a JSON object matching the schema",
        context={"ticketKey": ticket.key, "dependsOn": ["ticketQuality", "acValidation"]},
        output_schema=schema_of(PeerReviewAnalysis),
    )


def _require_ticket(context: StageContext) -> Ticket:
    if context.primary_ticket is None:
        raise ValueError("ticket stages require a primary ticket")
    return context.primary_ticket


def _ticket_block(ticket: Ticket, description_limit: int | None, numbered_criteria: bool = False) -> str:
    description = ticket.description or "No description provided"
    if description_limit is not None:
        description = description[:description_limit]
    if numbered_criteria:
        criteria = "\n".join(f"AC-{i}: {c}" for i, c in enumerate(ticket.acceptance_criteria, start=1))
    else:
        criteria = "\n".join(ticket.acceptance_criteria)
    return (
        f"TICKET:\nKey: {ticket.key}\nType: {ticket.type}\nTitle: {ticket.title}\n"
        f"Description:\n{description}\n\n"
        f"Acceptance Criteria:\n{criteria or 'No acceptance criteria defined'}"
    )
