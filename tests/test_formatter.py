from __future__ import annotations

import pytest

from prlens.report.console import format_cost_estimates
from prlens.report.formatter import format_prompt_workflow
from prlens.report.formatter import format_report
from prlens.report.formatter import report_sections
from prlens.report.tiers import TIERS
from prlens.report.tiers import VERBOSITY_LEVELS
from prlens.report.tiers import clip
from prlens.report.tiers import get_tier
from prlens.review.models import AgentResult
from prlens.review.models import AnalysisPrompt
from prlens.review.models import CostEstimate
from prlens.review.models import CoverageReport
from prlens.review.models import FileAnalysis
from prlens.review.models import Fix
from prlens.review.models import ProjectClassification
from prlens.review.models import PromptOnlyResult
from prlens.review.models import StaticAnalysis
from prlens.review.models import SuggestedTest
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import CriteriaAnalysisItem
from prlens.tracker.schemas import PeerReviewAnalysis
from prlens.tracker.schemas import PeerReviewResult
from prlens.tracker.schemas import RegressionRisk
from prlens.tracker.schemas import ReviewFinding
from prlens.tracker.schemas import ScopeAnalysis
from prlens.tracker.schemas import Ticket
from prlens.tracker.schemas import TicketQualityDimensions
from prlens.tracker.schemas import TicketQualityRating
from prlens.tracker.schemas import UncoveredScenario
from prlens.tracker.schemas import Verdict

EC2 = CostEstimate(resource_type="ec2", estimated_new_cost=30.37, confidence="medium", details="t3.medium")

STATIC = StaticAnalysis(
    devops_cost_estimates=[EC2],
    total_devops_cost=30.37,
    test_suggestions=[
        SuggestedTest(for_file="src/a.py", test_framework="pytest", test_file_path="tests/test_a.py", description="d")
    ],
    coverage_report=CoverageReport(available=True, overall_percentage=82.0, coverage_tool="coverage.py"),
    project_classification=ProjectClassification(project_type="business_logic", confidence=90),
)

PEER_REVIEW = PeerReviewResult(
    enabled=True,
    primary_ticket=Ticket(key="ABC-123", title="Add SSO login", type="story", status="In Progress"),
    ticket_quality=TicketQualityRating(
        overallScore=72,
        dimensions=TicketQualityDimensions(
            descriptionClarity=70,
            acceptanceCriteriaQuality=70,
            testabilityScore=70,
            scopeDefinition=70,
            technicalContext=70,
            visualDocumentation=70,
            estimationQuality=70,
            completeness=80,
        ),
        tier="good",
        reviewable=True,
    ),
    ac_validation=AcceptanceCriteriaValidation(
        criteriaAnalysis=[
            CriteriaAnalysisItem(criteriaText="Users can log in", status="met"),
            CriteriaAnalysisItem(criteriaText="Sessions expire", status="partial", explanation="no expiry test"),
        ],
        compliancePercentage=75,
    ),
    analysis=PeerReviewAnalysis(
        implementationCompleteness=75,
        qualityScore=68,
        readyForReview=False,
        blockers=[ReviewFinding(issue="Token logged in plain text", reason="leaks secrets", location="auth.py:10")],
        warnings=[ReviewFinding(issue=f"warning {i}", reason=f"reason {i}") for i in range(7)],
        recommendations=["Add an expiry test"],
        scopeAnalysis=ScopeAnalysis(scopeCreepRisk=True, outOfScope=["Refactored billing"]),
        regressionRisks=[RegressionRisk(risk="Login loop", affectedArea="auth", likelihood="medium")],
        uncoveredScenarios=[UncoveredScenario(scenario="IdP down", impact="major", relatedCriteria="AC-1")],
        verdict=Verdict(summary="Fix logging first", recommendation="request_changes", confidenceLevel=80),
    ),
)

RESULT = AgentResult(
    summary="Adds SSO login",
    file_analyses={"src/a.py": FileAnalysis(path="src/a.py", summary="login flow", complexity=3)},
    fixes=[Fix(file="src/a.py", line=3, comment="validate state", severity="warning")],
    recommendations=[f"recommendation {i}" for i in range(6)],
    insights=["touches auth"],
    overall_complexity=3,
    overall_risks=["token leak"],
    model="m",
    static_analysis=STATIC,
    peer_review=PEER_REVIEW,
)

PROMPT_ONLY = PromptOnlyResult(
    prompts=[AnalysisPrompt(step="fileAnalysis", prompt="x" * 15_000, instructions="analyze")],
    instructions="Execute these prompts sequentially.",
    static_analysis=STATIC,
    peer_review=PeerReviewResult(enabled=True, error="No ticket reference found"),
)


@pytest.mark.parametrize("style", ["console", "markdown"])
@pytest.mark.parametrize("result", [RESULT, PROMPT_ONLY])
def test_sections_are_nested_across_levels(style: str, result: AgentResult | PromptOnlyResult) -> None:
    levels = [level for level in VERBOSITY_LEVELS if level != "minimal"]
    for lower, higher in zip(levels, levels[1:]):
        assert set(report_sections(result, lower, style)) <= set(report_sections(result, higher, style))


def test_detailed_shows_more_than_compact() -> None:
    compact = report_sections(RESULT, "compact")
    detailed = report_sections(RESULT, "detailed")
    assert "ticket_quality" not in compact
    assert {"ticket_quality", "regression_risks", "uncovered_scenarios", "file_analyses"} <= set(detailed)
    assert "run_details" in report_sections(RESULT, "verbose")


@pytest.mark.parametrize(("verbosity", "expected"), [("compact", 3), ("standard", 5), ("detailed", 7), ("verbose", 7)])
def test_warnings_are_capped_per_level(verbosity: str, expected: int) -> None:
    text = format_report(RESULT, verbosity=verbosity)
    assert sum(1 for i in range(7) if f"• warning {i}" in text) == expected


@pytest.mark.parametrize("style", ["console", "markdown"])
@pytest.mark.parametrize(("verbosity", "expected"), [("detailed", 3), ("verbose", 6)])
def test_out_of_scope_list_capped_per_level(style: str, verbosity: str, expected: int) -> None:
    scope = ScopeAnalysis(scopeCreepRisk=True, outOfScope=[f"unrelated change {i}" for i in range(6)])
    analysis = PEER_REVIEW.analysis.model_copy(update={"scopeAnalysis": scope})
    result = RESULT.model_copy(update={"peer_review": PEER_REVIEW.model_copy(update={"analysis": analysis})})
    text = format_report(result, verbosity=verbosity, style=style)
    assert sum(1 for i in range(6) if f"unrelated change {i}" in text) == expected


def test_minimal_is_single_line_between_rules() -> None:
    lines = format_report(RESULT, verbosity="minimal").split("\n")
    assert len(lines) == 3
    assert lines[0] == lines[2] == "═" * 63
    assert lines[1].startswith("🔍 PEER REVIEW: complexity 3/5 | 1 risks")
    assert "❌ CHANGES REQUESTED" in lines[1]
    assert "75% compliant" in lines[1]
    assert "ABC-123: Add SSO login" in lines[1]
    assert "🚫 1 blockers" in lines[1]
    assert report_sections(RESULT, "minimal") == ["minimal"]


def test_minimal_markdown() -> None:
    text = format_report(PROMPT_ONLY, verbosity="minimal", style="markdown")
    assert text.startswith("**🔍 PR Analysis:** 0 files | 1 prompts pending | 💰 ~$30.37/month")
    assert "\n" not in text


def test_compact_lists_only_unmet_requirements() -> None:
    compact = format_report(RESULT, verbosity="compact")
    assert "Sessions expire" in compact
    assert "Users can log in" not in compact
    assert "Users can log in" in format_report(RESULT, verbosity="standard")


def test_markdown_verdict_banner() -> None:
    text = format_report(RESULT, verbosity="standard", style="markdown")
    assert "### ❌ Verdict: CHANGES REQUESTED" in text
    assert "| Implementation Completeness | 75% |" in text


def test_invalid_verbosity_and_style_raise() -> None:
    with pytest.raises(ValueError):
        format_report(RESULT, verbosity="loud")
    with pytest.raises(ValueError):
        format_report(RESULT, style="html")
    with pytest.raises(ValueError):
        get_tier("")


def test_format_cost_estimates() -> None:
    assert format_cost_estimates([], 0) == "No cost estimates available"
    text = format_cost_estimates([EC2], 30.37)
    assert text.startswith("💰 AWS Cost Estimates")
    assert "🟡 EC2: ~$30.37/month" in text
    assert "📊 Total Estimated Impact: ~$30.37/month" in text


def test_prompt_workflow_truncates_long_prompts() -> None:
    normal = format_prompt_workflow(PROMPT_ONLY)
    assert "... (truncated for display)" in normal
    assert "## ⚠️ Peer Review Error" in normal
    assert "Execute the following 1 prompts sequentially:" in normal
    assert "### 📄 Step 1: fileAnalysis" in normal

    verbose = format_prompt_workflow(PROMPT_ONLY, verbose=True, title="SSO", repo="acme/web")
    assert "... (truncated for display)" not in verbose
    assert "**Repository:** acme/web" in verbose
    assert '- title: "SSO"' in verbose


def test_tier_table_helpers() -> None:
    assert TIERS["minimal"].single_line
    assert clip("abcdef", 3) == "abc..."
    assert clip("abc", None) == "abc"
