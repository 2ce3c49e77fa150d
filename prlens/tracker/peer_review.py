"""
Peer review 的确定性计算（非 AI）。

- 合规率：`round(100 * (met + 0.5 * partial) / total)`（四舍五入，.5 向上）；total 为 0 时为 None
- 模型给出的 compliancePercentage 一律不信任，按 criteriaAnalysis 重算
- “满足”阈值默认 70%，来自 `PeerReviewConfig.compliance_threshold`
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from prlens.tracker.schemas import AcceptanceCriteriaValidation
from prlens.tracker.schemas import CriteriaAnalysisItem
from prlens.tracker.schemas import CriteriaStatus

DEFAULT_COMPLIANCE_THRESHOLD = 70


def compute_compliance(items: Sequence[CriteriaAnalysisItem]) -> int | None:
    total = len(items)
    if total == 0:
        return None
    counts = Counter(item.status for item in items)
    # 整数运算避免浮点误差：floor(100 * (2*met + partial) / (2*total) + 0.5)
    doubled = 100 * (2 * counts["met"] + counts["partial"])
    return (doubled + total) // (2 * total)


def normalize_validation(validation: AcceptanceCriteriaValidation) -> AcceptanceCriteriaValidation:
    """返回重算了 compliancePercentage 的新对象（不修改入参）。"""
    return validation.model_copy(update={"compliancePercentage": compute_compliance(validation.criteriaAnalysis)})


def status_counts(validation: AcceptanceCriteriaValidation) -> dict[CriteriaStatus, int]:
    counts = Counter(item.status for item in validation.criteriaAnalysis)
    return {status: counts[status] for status in ("met", "partial", "unmet", "unclear")}


def is_compliant(validation: AcceptanceCriteriaValidation, threshold: int = DEFAULT_COMPLIANCE_THRESHOLD) -> bool:
    """没有任何 criteria 时视为“无法判断”，返回 False。"""
    if validation.compliancePercentage is None:
        return False
    return validation.compliancePercentage >= threshold
