"""
一次完整分析的流程编排（工程代码控制流程）：

1) 校验调用方参数（verbosity / 样式 / 执行模式，非法直接 ValueError）
2) 读取 git 信息：diff、标题、当前分支、commit、origin 仓库（失败都降级为默认值）
3) 交给 `AnalysisOrchestrator`（EXECUTE 或 PROMPT_ONLY）
4) 按 verbosity 渲染报告
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field

from prlens.config import AppConfig
from prlens.config import Verbosity
from prlens.git.service import GitCommandError
from prlens.git.service import GitService
from prlens.git.service import RepoInfo
from prlens.llm.client import OpenAICompatLLMClient
from prlens.report.formatter import ReportStyle
from prlens.report.formatter import format_prompt_workflow
from prlens.report.formatter import format_report
from prlens.report.tiers import get_tier
from prlens.review.models import AgentResult
from prlens.review.models import AnalysisModes
from prlens.review.models import AnalysisOptions
from prlens.review.models import ExecutionMode
from prlens.review.models import PromptOnlyResult
from prlens.review.orchestrator import AnalysisOrchestrator
from prlens.review.orchestrator import parse_execution_mode
from prlens.tracker.jira import JiraTicketProvider

logger = logging.getLogger(__name__)


class AnalysisRequest(BaseModel):
    """
    一次分析请求。

    diff / 标题 / 分支名 / commit 为空时才去 git 里读；显式给出的值优先。
    """

    diff: str | None = None
    title: str | None = None
    base_branch: str | None = None
    staged: bool = False
    branch_name: str | None = None
    commit_messages: list[str] | None = None
    description: str | None = None
    mode: ExecutionMode = ExecutionMode.EXECUTE
    verbosity: Verbosity | None = None
    style: ReportStyle = "console"
    modes: AnalysisModes = Field(default_factory=AnalysisModes)
    peer_review: bool | None = None
    self_refinement: bool | None = None
    repo_path: str | None = None


class AnalysisReport(BaseModel):
    result: AgentResult | PromptOnlyResult = Field(discriminator="kind")
    report: str
    title: str | None = None
    branch_name: str
    base_branch: str | None = None
    repo: RepoInfo = Field(default_factory=RepoInfo)


def build_analysis_orchestrator(config: AppConfig, http_client: httpx.AsyncClient) -> AnalysisOrchestrator:
    """按配置装配模型与 issue tracker；没配的部分分别降级为 stub 模型 / 不查 ticket。"""
    chat_model = None
    if config.llm is not None:
        chat_model = OpenAICompatLLMClient(
            api_key=config.llm.api_key,
            base_url=str(config.llm.base_url).rstrip("/"),
            http_client=http_client,
            model=config.llm.model,
        )
    ticket_provider = None
    if config.jira is not None:
        ticket_provider = JiraTicketProvider(
            base_url=str(config.jira.base_url),
            email=config.jira.email,
            api_token=config.jira.api_token,
            http_client=http_client,
        )
    return AnalysisOrchestrator(
        chat_model=chat_model,
        ticket_provider=ticket_provider,
        token_budget=config.analysis.token_budget,
        compliance_threshold=config.peer_review.compliance_threshold,
    )


async def run_analysis(
    request: AnalysisRequest,
    config: AppConfig,
    orchestrator: AnalysisOrchestrator,
    git: GitService | None = None,
) -> AnalysisReport:
    verbosity = request.verbosity or config.peer_review.verbosity
    tier = get_tier(verbosity)
    mode = parse_execution_mode(request.mode)

    base_branch = None if request.staged else (request.base_branch or config.analysis.git_default_branch)
    diff = request.diff
    if diff is None:
        diff = await _read_diff(git=git, base_branch=base_branch)

    title = request.title
    branch_name = request.branch_name
    commit_messages = request.commit_messages
    repo = RepoInfo()
    if git is not None:
        title = title or await git.pr_title()
        branch_name = branch_name or await git.current_branch()
        if commit_messages is None:
            commit_messages = await git.commit_messages(limit=config.analysis.git_log_limit)
        repo = await git.repo_info()

    if not diff:
        logger.info(f"no changes detected between {branch_name or 'unknown'} and {base_branch or 'staged'}")

    peer_review = config.peer_review
    options = AnalysisOptions(
        branch_name=branch_name or "unknown",
        commit_messages=commit_messages or [],
        description=request.description,
        ticket_pattern=peer_review.ticket_pattern,
        default_project=peer_review.default_project,
        peer_review_enabled=peer_review.enabled if request.peer_review is None else request.peer_review,
        self_refinement=request.self_refinement,
        repo_path=request.repo_path,
    )
    result = await orchestrator.analyze(diff=diff, title=title, modes=request.modes, options=options, mode=mode)

    if isinstance(result, PromptOnlyResult) and not tier.single_line:
        report = format_prompt_workflow(
            result,
            verbose=tier.name == "verbose",
            title=title,
            repo=f"{repo.owner}/{repo.name}",
            current_branch=options.branch_name,
            base_branch=base_branch,
        )
    else:
        report = format_report(result, verbosity=verbosity, style=request.style)

    return AnalysisReport(
        result=result,
        report=report,
        title=title,
        branch_name=options.branch_name,
        base_branch=base_branch,
        repo=repo,
    )


async def _read_diff(git: GitService | None, base_branch: str | None) -> str:
    if git is None:
        return ""
    args = [base_branch] if base_branch else ["--staged"]
    try:
        return await git.git_diff(args)
    except GitCommandError as exc:
        logger.warning(f"git diff unavailable, analyzing an empty change: {exc}")
        return ""
