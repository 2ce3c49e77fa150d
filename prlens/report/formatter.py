"""
报告入口：分析结果 + verbosity + 样式 -> 文本。

- `format_report`：EXECUTE / PROMPT_ONLY 两种结果都能渲染（终端或 markdown）
- `format_prompt_workflow`：PROMPT_ONLY 的“按顺序执行这些 prompt”说明块
- 非法 verbosity / 样式是调用方错误，抛 ValueError；其它情况永远返回文本
"""

from __future__ import annotations

import logging
from typing import Literal

from prlens.report import console
from prlens.report import markdown
from prlens.report.console import Section
from prlens.report.tiers import Tier
from prlens.report.tiers import get_tier
from prlens.review.models import AgentResult
from prlens.review.models import PromptOnlyResult

logger = logging.getLogger(__name__)

ReportStyle = Literal["console", "markdown"]
REPORT_STYLES: tuple[ReportStyle, ...] = ("console", "markdown")

PROMPT_LIMIT_NORMAL = 10_000
PROMPT_LIMIT_VERBOSE = 20_000
EXPECTED_TOKEN_USAGE_MINIMUM = 10_000

PROMPT_STEP_EMOJIS = {
    "fileAnalysis": "📄",
    "riskDetection": "⚠️",
    "summaryGeneration": "📋",
    "selfRefinement": "✨",
    "ticketQuality": "🎯",
    "acValidation": "✅",
    "peerReview": "👥",
}
DEFAULT_PROMPT_EMOJI = "🔹"

PROMPT_EXECUTION_WARNING = (
    "**IMPORTANT:** You (the calling LLM) MUST execute ALL prompts below sequentially.\n"
    "Do NOT write manual analysis. Execute the prompts and use the results."
)
PEER_REVIEW_ERROR_CAUSES = (
    "- Issue tracker not reachable or misconfigured",
    "- No ticket reference found in the title, branch name or commits",
    "- Tracker credentials missing (set JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN)",
)


def format_report(
    result: AgentResult | PromptOnlyResult,
    verbosity: str = "standard",
    style: str = "console",
) -> str:
    tier = get_tier(verbosity)
    _check_style(style)

    if tier.single_line:
        if style == "console":
            return console.minimal_line(result)
        return f"**🔍 PR Analysis:** {' | '.join(console.minimal_parts(result))}"

    sections = build_sections(result=result, tier=tier, style=style)
    logger.debug(f"report rendered: verbosity={tier.name} style={style} sections={[key for key, _ in sections]}")
    separator = "\n" if style == "markdown" else f"\n{console.SEPARATOR}\n"
    return separator.join("\n".join(lines) for _, lines in sections)


def report_sections(result: AgentResult | PromptOnlyResult, verbosity: str, style: str = "console") -> list[str]:
    """当前级别下会出现的 section key（按渲染顺序）。"""
    tier = get_tier(verbosity)
    _check_style(style)
    if tier.single_line:
        return ["minimal"]
    return [key for key, _ in build_sections(result=result, tier=tier, style=style)]


def build_sections(result: AgentResult | PromptOnlyResult, tier: Tier, style: str) -> list[Section]:
    renderer = markdown if style == "markdown" else console
    if isinstance(result, AgentResult):
        return renderer.result_sections(result, tier)

    sections = renderer.static_sections(result.static_analysis, tier)
    if result.peer_review is not None and result.peer_review.enabled:
        sections.extend(renderer.peer_review_sections(result.peer_review, tier))
    workflow = format_prompt_workflow(result, verbose=tier.name == "verbose", include_static=False)
    sections.append(("prompt_workflow", workflow.split("\n")))
    return sections


def format_prompt_workflow(
    result: PromptOnlyResult,
    verbose: bool = False,
    title: str | None = None,
    repo: str | None = None,
    current_branch: str | None = None,
    base_branch: str | None = None,
    include_static: bool = True,
) -> str:
    """
    PROMPT_ONLY 结果的 markdown 说明块：静态分析、成本、每个 prompt（按长度截断）、下一步。

    - prompt 截断：普通 10000 字符，verbose 20000 字符
    - verbose 时额外输出仓库/分支头部和落库参数提示
    """
    lines: list[str] = []
    peer_review = result.peer_review
    peer_review_enabled = peer_review is not None and peer_review.enabled

    if verbose:
        lines.append("# 🤖 PR Analysis\n")
        lines.append(f"**Repository:** {repo or 'local/unknown'}")
        lines.append(f"**Branch:** {current_branch or 'unknown'} → {base_branch or 'staged'}")
        lines.append(f"**PR Title:** {title or 'Untitled'}")
        lines.append(f"**Peer Review:** {'✅ Enabled' if peer_review_enabled else '❌ Disabled'}")
        lines.append(f"**Prompts to execute:** {len(result.prompts)}\n")
        lines.append("---\n")

    if include_static:
        tier = get_tier("verbose" if verbose else "standard")
        lines.append("## 📊 Static Analysis Results\n")
        for key, section in markdown.static_sections(result.static_analysis, tier):
            if key != "devops_costs":
                lines.extend(section)
        lines.append("---\n")
        lines.extend(markdown.cost_estimate_lines(result.static_analysis))
        lines.append("\n---\n")

    if peer_review_enabled and peer_review is not None and peer_review.error:
        lines.append("## ⚠️ Peer Review Error\n")
        lines.append(f"Peer review was enabled but failed: {peer_review.error}")
        lines.append("")
        lines.append("**Possible causes:**")
        lines.extend(PEER_REVIEW_ERROR_CAUSES)
        lines.append("")
        lines.append("Analysis will continue with base prompts only.\n")

    lines.append("---\n")
    lines.append("## ⚡ LLM Analysis Workflow\n")
    lines.append(PROMPT_EXECUTION_WARNING)
    lines.append("")
    lines.append(result.instructions)
    lines.append("")
    lines.append(f"Execute the following {len(result.prompts)} prompts sequentially:\n")

    limit = PROMPT_LIMIT_VERBOSE if verbose else PROMPT_LIMIT_NORMAL
    for i, prompt in enumerate(result.prompts, start=1):
        emoji = PROMPT_STEP_EMOJIS.get(prompt.step, DEFAULT_PROMPT_EMOJI)
        lines.append(f"### {emoji} Step {i}: {prompt.step}\n")
        if verbose:
            lines.append(f"**Instructions:** {prompt.instructions}\n")
        lines.append("**Prompt:**\n```")
        lines.append(prompt.prompt[:limit])
        if len(prompt.prompt) > limit:
            lines.append("\n... (truncated for display)")
        lines.append("\n```\n")
        lines.append("---\n")

    lines.append("## 💾 Next Steps\n")
    lines.append("**CRITICAL - YOU MUST DO THIS:**")
    lines.append(
        f"1. **Execute ALL {len(result.prompts)} prompts** above sequentially "
        "(do NOT skip, do NOT write manual analysis)"
    )
    lines.append("2. **Parse the JSON responses** from each prompt execution")
    lines.append("3. **POST the parsed results to `/results`** to persist them")
    lines.append("4. **Present the complete analysis** to the user in a formatted summary")
    lines.append("")
    lines.append(
        f"**Expected token usage:** ~{EXPECTED_TOKEN_USAGE_MINIMUM}+ tokens "
        "(if significantly lower, prompts were not executed)"
    )

    if verbose:
        lines.append("")
        lines.append("**Save parameters:**")
        lines.append(f'- title: "{title or "Untitled"}"')
        lines.append("- complexity: (from summary step)")
        lines.append("- risks_count: (from risk detection step)")
        lines.append("- risks: (from risk detection step)")
        lines.append("- recommendations: (from summary step)")
        if peer_review_enabled:
            lines.append("- peer_review_enabled: true")
            lines.append("- ticket_key, ac_compliance_percentage, etc.: (from peer review steps)")

    return "\n".join(lines)


def _check_style(style: str) -> None:
    if style not in REPORT_STYLES:
        raise ValueError(f"Invalid report style: {style!r} (expected one of {', '.join(REPORT_STYLES)})")
