"""
Analysis Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：阶段顺序固定，由 `stages.build_stage_plan` 决定哪些阶段参与
- **LLM 只负责“思考/生成结构化输出”**：每个阶段单次调用，JSON + schema 校验，不 loop
- **同一份阶段描述，两种执行器**：
  - `PromptCollector`（PROMPT_ONLY）：不调用模型，按顺序产出每个阶段的 prompt
  - `ModelRunner`（EXECUTE）：逐个阶段调用模型并合并结果；任何失败都走该阶段的确定性兜底

不论哪种模式，diff 解析、ticket 提取、静态风险扫描、DevOps 成本、测试建议、覆盖率、项目分类
都会确定性地跑一遍，结果放进 `static_analysis`。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from prlens.infra.budget import check_token_budget
from prlens.infra.budget import estimate_tokens
from prlens.llm.client import ChatModel
from prlens.llm.client import StubChatModel
from prlens.review.classifier import classify_project
from prlens.review.complexity import overall_complexity
from prlens.review.context import build_file_changes
from prlens.review.coverage import read_coverage_report
from prlens.review.devops_cost import analyze_devops_files
from prlens.review.fallbacks import describe_change
from prlens.review.models import AgentResult
from prlens.review.models import AnalysisModes
from prlens.review.models import AnalysisOptions
from prlens.review.models import AnalysisPrompt
from prlens.review.models import AnalysisResult
from prlens.review.models import DiffFileRecord
from prlens.review.models import ExecutionMode
from prlens.review.models import FileChange
from prlens.review.models import PromptOnlyResult
from prlens.review.models import StageContext
from prlens.review.models import StaticAnalysis
from prlens.review.prompts import PROMPT_ONLY_INSTRUCTIONS
from prlens.review.stages import Stage
from prlens.review.stages import build_stage_plan
from prlens.review.static_risks import scan_changes
from prlens.review.suggest_tests import suggest_tests
from prlens.review.tickets import TicketConfidence
from prlens.review.tickets import extract_ticket_references
from prlens.review.tickets import primary_reference
from prlens.tracker.base import TicketProvider
from prlens.tracker.base import fetch_tickets
from prlens.tracker.peer_review import DEFAULT_COMPLIANCE_THRESHOLD
from prlens.tracker.schemas import PeerReviewResult
from prlens.tracker.schemas import Ticket

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_BUDGET = 100_000


def parse_execution_mode(mode: ExecutionMode | str) -> ExecutionMode:
    """调用方传错模式属于契约错误，直接抛 ValueError。"""
    if isinstance(mode, ExecutionMode):
        return mode
    try:
        return ExecutionMode(str(mode).lower())
    except ValueError as exc:
        raise ValueError(f"Invalid execution mode: {mode!r} (expected 'execute' or 'prompt_only')") from exc


def run_static_analysis(
    files: list[FileChange],
    title: str | None,
    options: AnalysisOptions,
    confidence: TicketConfidence | None = None,
) -> StaticAnalysis:
    """所有不依赖模型的分析，两种模式共用。"""
    references = extract_ticket_references(
        title=title,
        branch_name=options.branch_name,
        commit_messages=options.commit_messages,
        ticket_pattern=options.ticket_pattern,
        default_project_prefix=options.default_project,
        description=options.description,
        confidence=confidence,
    )
    devops = analyze_devops_files(files=[(f.path, f.diff) for f in files])
    return StaticAnalysis(
        files=[
            DiffFileRecord(path=f.path, additions=f.additions, deletions=f.deletions, status=f.status) for f in files
        ],
        ticket_references=references,
        findings=scan_changes(changes=files),
        devops_cost_estimates=devops.estimates,
        total_devops_cost=devops.total_estimated_cost,
        devops_file_types=devops.file_types,
        test_suggestions=suggest_tests(changes=files, repo_path=options.repo_path),
        coverage_report=read_coverage_report(repo_path=options.repo_path),
        project_classification=classify_project(changes=files),
    )


@dataclass(frozen=True)
class PromptCollector:
    """PROMPT_ONLY 执行器：只构建 prompt，保持阶段顺序。"""

    def run(self, plan: Sequence[Stage], context: StageContext) -> list[AnalysisPrompt]:
        return [stage.build_prompt(context) for stage in plan]


@dataclass
class ModelRunner:
    """
    EXECUTE 执行器：阶段严格串行，第 k+1 个阶段在第 k 个完成后才开始。

    失败策略（每个阶段最多一次兜底，不重试）：
    - 超出 token 预算 -> 不调用模型，直接兜底
    - 模型报错 / JSON 不合 schema -> 兜底
    """

    chat_model: ChatModel
    token_budget: int = DEFAULT_TOKEN_BUDGET

    async def run(self, plan: Sequence[Stage], context: StageContext) -> StageContext:
        for stage in plan:
            context = await self.run_stage(stage=stage, context=context)
        return context

    async def run_stage(self, stage: Stage, context: StageContext) -> StageContext:
        if not stage.should_run(context):
            logger.info(f"stage skipped: {stage.name}")
            return context.model_copy(update={"skipped_stages": [*context.skipped_stages, stage.name]})

        prompt = stage.build_prompt(context)
        requested = estimate_tokens(prompt.prompt)
        before = self.chat_model.tokens_used
        try:
            check_token_budget(stage=stage.name, budget=self.token_budget, used=context.tokens_used, requested=requested)
            logger.info(f"stage start: {stage.name} (~{requested} prompt tokens)")
            result = await self.chat_model.invoke(prompt.prompt, stage.schema)
        except Exception as exc:
            logger.warning(f"stage {stage.name} falling back to static analysis: {exc}")
            merged = stage.merge(context, stage.fallback(context))
            return merged.model_copy(update={"fallback_stages": [*context.fallback_stages, stage.name]})

        spent = self.chat_model.tokens_used - before
        merged = stage.merge(context, result)
        return merged.model_copy(
            update={
                "completed_stages": [*context.completed_stages, stage.name],
                "tokens_used": context.tokens_used + (spent if spent > 0 else requested),
            }
        )


@dataclass(frozen=True)
class AnalysisOrchestrator:
    """
    Orchestrator 运行时依赖集合。

    - chat_model：为 None 时 EXECUTE 模式使用 `StubChatModel`（所有阶段走兜底）
    - ticket_provider：为 None 时不查 ticket 详情，用 ticket key 构造占位 ticket
    """

    chat_model: ChatModel | None = None
    ticket_provider: TicketProvider | None = None
    token_budget: int = DEFAULT_TOKEN_BUDGET
    compliance_threshold: int = DEFAULT_COMPLIANCE_THRESHOLD
    confidence: TicketConfidence = field(default_factory=TicketConfidence)

    async def analyze(
        self,
        diff: str,
        title: str | None = None,
        modes: AnalysisModes | None = None,
        options: AnalysisOptions | None = None,
        mode: ExecutionMode | str = ExecutionMode.EXECUTE,
    ) -> AnalysisResult:
        execution_mode = parse_execution_mode(mode)
        modes = modes or AnalysisModes()
        options = options or AnalysisOptions()
        started = time.monotonic()

        # 1) 确定性部分
        files = build_file_changes(diff=diff)
        static = run_static_analysis(files=files, title=title, options=options, confidence=self.confidence)
        peer_review = await self._lookup_tickets(static=static, options=options, title=title)

        context = StageContext(
            diff=diff,
            title=title,
            files=files,
            modes=modes,
            options=options,
            static_analysis=static,
            primary_ticket=peer_review.primary_ticket if peer_review is not None else None,
            compliance_threshold=self.compliance_threshold,
        )
        plan = build_stage_plan(context=context)
        logger.info(f"analysis plan: mode={execution_mode.value} steps={[s.name for s in plan]} files={len(files)}")

        # 2) PROMPT_ONLY：不调用模型
        if execution_mode is ExecutionMode.PROMPT_ONLY:
            return PromptOnlyResult(
                prompts=PromptCollector().run(plan=plan, context=context),
                instructions=PROMPT_ONLY_INSTRUCTIONS,
                modes=modes,
                static_analysis=static,
                peer_review=peer_review,
            )

        # 3) EXECUTE：逐阶段调用模型
        chat_model = self.chat_model or StubChatModel()
        runner = ModelRunner(chat_model=chat_model, token_budget=self.token_budget)
        final = await runner.run(plan=plan, context=context)
        return self._aggregate(
            context=final,
            peer_review=peer_review,
            model_name=chat_model.model_name,
            elapsed=time.monotonic() - started,
        )

    async def _lookup_tickets(
        self,
        static: StaticAnalysis,
        options: AnalysisOptions,
        title: str | None,
    ) -> PeerReviewResult | None:
        if not options.peer_review_enabled:
            return None
        references = static.ticket_references
        primary = primary_reference(references)
        if primary is None:
            return PeerReviewResult(enabled=True, ticket_references=references, error="No ticket reference found")

        linked: list[Ticket] = []
        error: str | None = None
        if self.ticket_provider is not None:
            linked = await fetch_tickets(provider=self.ticket_provider, keys=[r.key for r in references])
            if not any(t.key == primary.key for t in linked):
                error = f"Ticket {primary.key} could not be fetched from {self.ticket_provider.name}"

        primary_ticket = next((t for t in linked if t.key == primary.key), None)
        if primary_ticket is None:
            # 拿不到详情时仍然跑 peer review 阶段，只是 ticket 信息只有 key
            primary_ticket = Ticket(key=primary.key, title=title or primary.key)
        return PeerReviewResult(
            enabled=True,
            ticket_references=references,
            linked_tickets=linked,
            primary_ticket=primary_ticket,
            error=error,
        )

    def _aggregate(
        self,
        context: StageContext,
        peer_review: PeerReviewResult | None,
        model_name: str,
        elapsed: float,
    ) -> AgentResult:
        if peer_review is not None:
            peer_review = peer_review.model_copy(
                update={
                    "ticket_quality": context.ticket_quality,
                    "ac_validation": context.ac_validation,
                    "analysis": context.peer_review,
                }
            )
        return AgentResult(
            summary=context.summary or describe_change(context=context),
            file_analyses=context.file_analyses,
            fixes=context.fixes,
            recommendations=context.recommendations,
            insights=context.insights,
            overall_complexity=context.overall_complexity or overall_complexity(changes=context.files),
            overall_risks=context.risks,
            modes=context.modes,
            model=model_name,
            total_tokens_used=context.tokens_used,
            execution_time=round(elapsed, 3),
            completed_stages=context.completed_stages,
            fallback_stages=context.fallback_stages,
            static_analysis=context.static_analysis,
            peer_review=peer_review,
        )
