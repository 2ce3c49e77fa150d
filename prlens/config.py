"""
应用配置加载。

设计目标：
- **严格**：一个配置段只给了一部分变量就直接报错（避免“看起来跑了其实没配置好”）
- **可选**：LLM / Jira 整段缺失是合法的（分别降级为 stub 模型、不查 ticket 详情）
- **类型安全**：使用 Pydantic 校验 URL/整数/枚举等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl, ValidationError

Verbosity = Literal["minimal", "compact", "standard", "detailed", "verbose"]


class LLMConfig(BaseModel):
    base_url: HttpUrl
    api_key: str
    model: str


class JiraConfig(BaseModel):
    base_url: HttpUrl
    email: str
    api_token: str


class PeerReviewConfig(BaseModel):
    """peer review 相关开关；阈值/权重都是可覆盖的默认值。"""

    enabled: bool = False
    default_project: str | None = None
    ticket_pattern: str | None = None
    verbosity: Verbosity = "standard"
    compliance_threshold: int = Field(default=70, ge=0, le=100)


class AnalysisConfig(BaseModel):
    git_default_branch: str = "origin/main"
    git_log_limit: int = Field(default=10, gt=0)
    token_budget: int = Field(default=100_000, gt=0)


class AppConfig(BaseModel):
    llm: LLMConfig | None = None
    jira: JiraConfig | None = None
    peer_review: PeerReviewConfig = Field(default_factory=PeerReviewConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：某个段只配置了一部分、或值不合法则抛 `ValueError`
    """
    llm_values = _load_section(
        environ=environ,
        section="LLM",
        keys={"base_url": "LLM_BASE_URL", "api_key": "LLM_API_KEY", "model": "LLM_MODEL"},
    )
    jira_values = _load_section(
        environ=environ,
        section="Jira",
        keys={"base_url": "JIRA_BASE_URL", "email": "JIRA_EMAIL", "api_token": "JIRA_API_TOKEN"},
    )

    peer_review = _optional(
        environ=environ,
        keys={
            "enabled": "PEER_REVIEW_ENABLED",
            "default_project": "PEER_REVIEW_DEFAULT_PROJECT",
            "ticket_pattern": "PEER_REVIEW_TICKET_PATTERN",
            "verbosity": "PEER_REVIEW_VERBOSITY",
            "compliance_threshold": "PEER_REVIEW_COMPLIANCE_THRESHOLD",
        },
    )
    analysis = _optional(
        environ=environ,
        keys={
            "git_default_branch": "GIT_DEFAULT_BRANCH",
            "git_log_limit": "GIT_LOG_LIMIT",
            "token_budget": "ANALYSIS_TOKEN_BUDGET",
        },
    )

    # 交给 Pydantic 做类型校验（例如 URL 合法性、"true"/"false" 转 bool）
    try:
        return AppConfig(
            llm=LLMConfig.model_validate(llm_values) if llm_values else None,
            jira=JiraConfig.model_validate(jira_values) if jira_values else None,
            peer_review=PeerReviewConfig.model_validate(peer_review),
            analysis=AnalysisConfig.model_validate(analysis),
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _load_section(environ: Mapping[str, str], section: str, keys: Mapping[str, str]) -> dict[str, str] | None:
    """整段都没配 -> None；配了一部分 -> ValueError；全配 -> 字段字典。"""
    present = {field: environ[env] for field, env in keys.items() if environ.get(env)}
    if not present:
        return None
    missing = [env for field, env in keys.items() if field not in present]
    if missing:
        raise ValueError(f"Partial {section} config, missing env vars: {', '.join(missing)}")
    return present


def _optional(environ: Mapping[str, str], keys: Mapping[str, str]) -> dict[str, str]:
    return {field: environ[env] for field, env in keys.items() if environ.get(env)}
