"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / LLM Client / Jira / 结果存储）
- 装配路由（health + analyze + results）

注意：
- 业务流程不写在这里（由 `review/pipeline.py` 和 `review/orchestrator.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）
"""

from __future__ import annotations

import os
from collections.abc import Mapping

import httpx
from fastapi import FastAPI, HTTPException

from prlens.config import load_config_from_env
from prlens.git.service import GitService
from prlens.review.pipeline import AnalysisReport
from prlens.review.pipeline import AnalysisRequest
from prlens.review.pipeline import build_analysis_orchestrator
from prlens.review.pipeline import run_analysis
from prlens.storage.store import AnalysisRecord
from prlens.storage.store import AnalysisStats
from prlens.storage.store import AnalysisStore
from prlens.storage.store import InMemoryAnalysisStore
from prlens.storage.store import stats


def build_app(environ: Mapping[str, str] | None = None, store: AnalysisStore | None = None) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：部分配置/非法值会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ if environ is None else environ)

    # 2) 可复用的 HTTP client：供 Jira 与 LLM 调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    # 3) orchestrator：没配 LLM 时走 stub 模型（全部阶段静态兜底）
    orchestrator = build_analysis_orchestrator(config=config, http_client=http_client)
    results = store if store is not None else InMemoryAnalysisStore()

    app = FastAPI(title="PR Lens", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    @app.post("/analyze")
    async def analyze(request: AnalysisRequest) -> AnalysisReport:
        """请求里没带 diff 时，从 `repo_path`（或当前目录）的 git 仓库读取。"""
        git = GitService(cwd=request.repo_path) if request.diff is None else None
        try:
            return await run_analysis(request=request, config=config, orchestrator=orchestrator, git=git)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.post("/results", status_code=201)
    async def save_results(record: AnalysisRecord) -> dict[str, str]:
        results.save(record)
        return {"status": "saved"}

    @app.get("/results")
    async def recent_results(limit: int = 10) -> list[AnalysisRecord]:
        try:
            return results.query(limit=limit)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/results/stats")
    async def results_stats() -> AnalysisStats:
        return stats(results.query())

    return app


# Uvicorn 默认会从模块级变量 `app` 读取 ASGI 应用
app = build_app()
