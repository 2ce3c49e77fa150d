from __future__ import annotations

import pytest

from prlens.infra.budget import TokenBudgetExceededError
from prlens.infra.budget import check_token_budget
from prlens.infra.budget import estimate_tokens


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_check_token_budget_allows_exact_fit() -> None:
    check_token_budget(stage="summary", budget=100, used=60, requested=40)


def test_check_token_budget_rejects_overflow() -> None:
    with pytest.raises(TokenBudgetExceededError):
        check_token_budget(stage="summary", budget=100, used=60, requested=41)


def test_check_token_budget_validates_inputs() -> None:
    with pytest.raises(ValueError):
        check_token_budget(stage="", budget=100, used=0, requested=1)
    with pytest.raises(ValueError):
        check_token_budget(stage="x", budget=0, used=0, requested=1)
    with pytest.raises(ValueError):
        check_token_budget(stage="x", budget=10, used=-1, requested=1)
