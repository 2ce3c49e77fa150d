from __future__ import annotations

from prlens.review.context import build_file_changes
from prlens.review.fallbacks import fallback_ac_validation
from prlens.review.fallbacks import fallback_file_analysis
from prlens.review.fallbacks import fallback_peer_review
from prlens.review.fallbacks import fallback_summary
from prlens.review.fallbacks import fallback_ticket_quality
from prlens.review.fallbacks import quality_tier
from prlens.review.models import Fix
from prlens.review.models import StageContext
from prlens.review.models import StaticAnalysis
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import Ticket

DIFF = "\n".join(["diff --git a/a.py b/a.py", "--- a/a.py", "+++ b/a.py", "@@ -1 +1,2 @@", "-x = 1", "+x = 2", "+y = 3"])
CRITICAL = Fix(file="a.py", line=2, comment="[hardcoded-secret] key", severity="critical", source="static")
WARNING = Fix(file="a.py", line=None, comment="[swallowed-exception] except", severity="warning", source="static")


def _context(findings: list[Fix] | None = None, **kwargs) -> StageContext:
    return StageContext(
        diff=DIFF,
        title="Tweak values",
        files=build_file_changes(diff=DIFF),
        static_analysis=StaticAnalysis(findings=findings or []),
        **kwargs,
    )


def test_fallback_file_analysis_covers_every_file() -> None:
    batch = fallback_file_analysis(_context([CRITICAL]))
    assert [fa.path for fa in batch.files] == ["a.py"]
    assert batch.files[0].summary == "Modified python file (+2/-1)"
    assert batch.files[0].risks == ["[hardcoded-secret] key"]


def test_fallback_summary_describes_change() -> None:
    summary = fallback_summary(_context([CRITICAL]))
    assert summary.summary == "Tweak values; 1 file(s) changed (+2/-1); languages: python."
    assert 1 <= summary.overallComplexity <= 5
    assert summary.recommendations[0] == "Resolve 1 critical static finding(s) before merging"


def test_fallback_ticket_quality_empty_ticket_is_not_reviewable() -> None:
    rating = fallback_ticket_quality(_context(primary_ticket=Ticket(key="ABC-1", title="t")))
    assert not rating.reviewable
    assert rating.tier == "insufficient"
    assert "No explicit acceptance criteria" in rating.feedback.weaknesses


def test_fallback_ac_validation_has_no_compliance() -> None:
    ticket = Ticket(key="ABC-1", title="t", acceptance_criteria=["works"])
    validation = fallback_ac_validation(_context(primary_ticket=ticket))
    assert validation.compliancePercentage is None
    assert [r.id for r in validation.derivedRequirements] == ["AC-1"]


def test_fallback_peer_review_verdicts() -> None:
    blocked = fallback_peer_review(_context([CRITICAL, WARNING]))
    assert blocked.verdict.recommendation == "request_changes"
    assert blocked.blockers[0].location == "a.py:2"
    assert blocked.warnings[0].location == "a.py"
    assert blocked.qualityScore == 75

    compliant = fallback_peer_review(_context(ac_validation=AcceptanceCriteriaValidation(compliancePercentage=80)))
    assert compliant.verdict.recommendation == "approve"

    unknown = fallback_peer_review(_context())
    assert unknown.verdict.recommendation == "needs_discussion"


def test_fallback_peer_review_respects_configured_threshold() -> None:
    validation = AcceptanceCriteriaValidation(compliancePercentage=80)
    at_threshold = fallback_peer_review(_context(ac_validation=validation, compliance_threshold=80))
    assert at_threshold.verdict.recommendation == "approve"
    below = fallback_peer_review(_context(ac_validation=validation, compliance_threshold=90))
    assert below.verdict.recommendation == "needs_discussion"
    assert below.implementationCompleteness == 80


def test_quality_tier_bounds() -> None:
    assert [quality_tier(s) for s in (85, 70, 50, 25, 24)] == ["excellent", "good", "adequate", "poor", "insufficient"]
