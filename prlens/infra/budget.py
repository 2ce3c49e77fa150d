from __future__ import annotations

"""
Token 预算控制（每次分析调用一个预算）。

- 多阶段 pipeline 很容易在大 diff 上消耗大量 token
- 超预算的阶段直接拒绝（由 orchestrator 转为静态兜底），不再调用模型
"""

CHARS_PER_TOKEN = 4


class TokenBudgetExceededError(RuntimeError):
    """超过 token 预算时抛出的错误类型。"""

    pass


def estimate_tokens(text: str) -> int:
    """粗略估算：约 4 个字符 1 个 token（向上取整）。"""
    return -(-len(text) // CHARS_PER_TOKEN)


def check_token_budget(stage: str, budget: int, used: int, requested: int) -> None:
    """
    - stage: 阶段名（用于错误信息）
    - budget: 本次调用的预算上限
    - used: 已使用量
    - requested: 本阶段预计消耗
    """
    if not stage:
        raise ValueError("stage must be non-empty")
    if budget <= 0:
        raise ValueError("budget must be > 0")
    if used < 0 or requested < 0:
        raise ValueError("used/requested must be >= 0")
    if used + requested > budget:
        raise TokenBudgetExceededError(f"Token budget exceeded at {stage}: {used}+{requested}/{budget}")
