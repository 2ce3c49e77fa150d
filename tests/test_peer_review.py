from __future__ import annotations

from prlens.tracker.peer_review import compute_compliance
from prlens.tracker.peer_review import is_compliant
from prlens.tracker.peer_review import normalize_validation
from prlens.tracker.peer_review import status_counts
from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import CriteriaAnalysisItem


def _items(*statuses: str) -> list[CriteriaAnalysisItem]:
    return [CriteriaAnalysisItem(criteriaText=f"criterion {i}", status=s) for i, s in enumerate(statuses)]


def test_compute_compliance_examples() -> None:
    assert compute_compliance(_items("met", "met", "partial", "unmet")) == 63
    assert compute_compliance(_items("met", "unmet")) == 50
    assert compute_compliance(_items("partial")) == 50
    assert compute_compliance(_items("unclear", "unmet")) == 0


def test_compute_compliance_rounds_half_up() -> None:
    # 1/8 = 12.5%
    assert compute_compliance(_items("met", *["unmet"] * 7)) == 13
    # 0.5/8 = 6.25%
    assert compute_compliance(_items("partial", *["unmet"] * 7)) == 6


def test_compute_compliance_no_criteria_is_none() -> None:
    assert compute_compliance([]) is None


def test_normalize_validation_overrides_model_value() -> None:
    validation = AcceptanceCriteriaValidation(criteriaAnalysis=_items("met", "unmet"), compliancePercentage=99)
    normalized = normalize_validation(validation)
    assert normalized.compliancePercentage == 50
    assert validation.compliancePercentage == 99


def test_status_counts_and_threshold() -> None:
    validation = normalize_validation(AcceptanceCriteriaValidation(criteriaAnalysis=_items("met", "met", "met", "partial")))
    assert status_counts(validation) == {"met": 3, "partial": 1, "unmet": 0, "unclear": 0}
    assert validation.compliancePercentage == 88
    assert is_compliant(validation)
    assert not is_compliant(validation, threshold=90)
    assert not is_compliant(AcceptanceCriteriaValidation())
