"""
覆盖率报告读取（只读文件系统）。

按顺序查找仓库下已有的报告：
1) `coverage.json`（coverage.py `coverage json` 输出）
2) `coverage/coverage-summary.json`（istanbul / nyc json-summary）
3) `coverage/lcov.info`

找不到或解析失败都返回 `available=False`，不抛异常。
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from prlens.review.models import CoverageReport

logger = logging.getLogger(__name__)


class _CoveragePyTotals(BaseModel):
    percent_covered: float
    covered_lines: int = 0
    num_statements: int = 0
    covered_branches: int | None = None
    num_branches: int | None = None


class _CoveragePyReport(BaseModel):
    totals: _CoveragePyTotals


class _IstanbulMetric(BaseModel):
    total: int = 0
    covered: int = 0
    pct: float | str = 0


class _IstanbulTotal(BaseModel):
    lines: _IstanbulMetric
    statements: _IstanbulMetric = Field(default_factory=_IstanbulMetric)
    branches: _IstanbulMetric = Field(default_factory=_IstanbulMetric)


class _IstanbulSummary(BaseModel):
    total: _IstanbulTotal


def read_coverage_report(repo_path: str | None) -> CoverageReport:
    if not repo_path:
        return CoverageReport(available=False)
    root = Path(repo_path)
    readers = (
        (root / "coverage.json", _read_coverage_py),
        (root / "coverage" / "coverage-summary.json", _read_istanbul),
        (root / "coverage" / "lcov.info", _read_lcov),
    )
    for path, reader in readers:
        if not path.is_file():
            continue
        try:
            return reader(path)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(f"coverage report unreadable: path={path} err={exc}")
    return CoverageReport(available=False)


def _read_coverage_py(path: Path) -> CoverageReport:
    report = _CoveragePyReport.model_validate_json(path.read_text(encoding="utf-8"))
    totals = report.totals
    line = _pct(covered=totals.covered_lines, total=totals.num_statements)
    branch = None
    if totals.num_branches:
        branch = _pct(covered=totals.covered_branches or 0, total=totals.num_branches)
    return CoverageReport(
        available=True,
        overall_percentage=round(totals.percent_covered, 2),
        line_coverage=line,
        branch_coverage=branch,
        coverage_tool="coverage.py",
    )


def _read_istanbul(path: Path) -> CoverageReport:
    summary = _IstanbulSummary.model_validate_json(path.read_text(encoding="utf-8"))
    total = summary.total
    line = _metric_pct(metric=total.lines)
    return CoverageReport(
        available=True,
        overall_percentage=line,
        line_coverage=line,
        branch_coverage=_metric_pct(metric=total.branches),
        coverage_tool="istanbul",
    )


def _read_lcov(path: Path) -> CoverageReport:
    found = hit = branches_found = branches_hit = 0
    for line in path.read_text(encoding="utf-8").splitlines():
        key, _, value = line.partition(":")
        if key == "LF":
            found += int(value)
        elif key == "LH":
            hit += int(value)
        elif key == "BRF":
            branches_found += int(value)
        elif key == "BRH":
            branches_hit += int(value)
    if found == 0:
        raise ValueError("lcov report has no line records")
    line_pct = _pct(covered=hit, total=found)
    return CoverageReport(
        available=True,
        overall_percentage=line_pct,
        line_coverage=line_pct,
        branch_coverage=_pct(covered=branches_hit, total=branches_found) if branches_found else None,
        coverage_tool="lcov",
    )


def _metric_pct(metric: _IstanbulMetric) -> float | None:
    # istanbul 对 total=0 的指标输出 "Unknown"
    if isinstance(metric.pct, str):
        return None
    return round(float(metric.pct), 2)


def _pct(covered: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(100 * covered / total, 2)
