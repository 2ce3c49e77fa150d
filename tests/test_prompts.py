from __future__ import annotations

import pytest

from prlens.review.context import build_file_changes
from prlens.review.models import AnalysisModes
from prlens.review.models import StageContext
from prlens.review.models import SummaryResult
from prlens.review.prompts import DIFF_TRUNCATION_MARKER
from prlens.review.prompts import RISK_DIFF_LIMIT
from prlens.review.prompts import build_ac_validation_prompt
from prlens.review.prompts import build_peer_review_prompt
from prlens.review.prompts import build_risk_detection_prompt
from prlens.review.prompts import build_summary_prompt
from prlens.review.prompts import placeholder
from prlens.tracker.schemas import Ticket

DIFF = "\n".join(["diff --git a/a.py b/a.py", "--- a/a.py", "+++ b/a.py", "@@ -1 +1 @@", "-x = 1", "+x = 2"])
TICKET = Ticket(key="ABC-1", title="Change x", acceptance_criteria=["x equals two", "nothing else changes"])


def _context(**kwargs) -> StageContext:
    return StageContext(diff=DIFF, title="Change x", files=build_file_changes(diff=DIFF), **kwargs)


def test_placeholder_format() -> None:
    assert placeholder("acValidation", "gaps") == "{RESULT_FROM_acValidation.gaps}"


def test_summary_prompt_uses_placeholders_without_prior_results() -> None:
    prompt = build_summary_prompt(_context())
    assert prompt.step == "summaryGeneration"
    assert "{RESULT_FROM_fileAnalysis.files}" in prompt.prompt
    assert "{RESULT_FROM_riskDetection.risks}" in prompt.prompt
    assert prompt.output_schema == SummaryResult.model_json_schema()
    assert "schema" in prompt.model_dump(by_alias=True)


def test_summary_prompt_without_risk_mode() -> None:
    prompt = build_summary_prompt(_context(modes=AnalysisModes(risks=False)))
    assert "RISKS:\nNot requested" in prompt.prompt
    assert "RESULT_FROM_riskDetection" not in prompt.prompt


def test_risk_prompt_truncates_diff() -> None:
    big = DIFF + "\n" + "\n".join(f"+line {i}" for i in range(RISK_DIFF_LIMIT))
    prompt = build_risk_detection_prompt(StageContext(diff=big))
    assert DIFF_TRUNCATION_MARKER in prompt.prompt


def test_ticket_prompts_require_primary_ticket() -> None:
    with pytest.raises(ValueError):
        build_peer_review_prompt(_context())


def test_ac_validation_prompt_numbers_criteria() -> None:
    prompt = build_ac_validation_prompt(_context(primary_ticket=TICKET))
    assert "AC-1: x equals two" in prompt.prompt
    assert "AC-2: nothing else changes" in prompt.prompt
    assert prompt.context == {"ticketKey": "ABC-1", "criteriaCount": 2}


def test_peer_review_prompt_references_earlier_ticket_steps() -> None:
    prompt = build_peer_review_prompt(_context(primary_ticket=TICKET))
    assert "{RESULT_FROM_ticketQuality.overallScore}" in prompt.prompt
    assert "{RESULT_FROM_acValidation.compliancePercentage}" in prompt.prompt
    assert "A compliance of 70% or more" in prompt.prompt
