"""
基于 git CLI 的本地仓库信息读取。

约定：
- `git_diff` 失败直接抛 `GitCommandError`（由 pipeline 决定是否降级为空 diff）
- 其它读取都是“尽力而为”：失败记日志并返回默认值（分支 "unknown"、提交 []、标题 None）
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import anyio
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_GIT_LOG_LIMIT = 10
DEFAULT_MAX_DIFF_BYTES = 200 * 1024 * 1024

_SSH_REMOTE = re.compile(r"git@[^:]+:([^/]+)/(.+?)(?:\.git)?$")
_HTTPS_REMOTE = re.compile(r"https?://[^/]+/([^/]+)/(.+?)(?:\.git)?$")


class GitCommandError(RuntimeError):
    """git 命令返回非 0。"""


class RepoInfo(BaseModel):
    owner: str = "local"
    name: str = "unknown"


def parse_remote_url(url: str) -> RepoInfo:
    """支持 `git@host:owner/name.git` 和 `https://host/owner/name(.git)`，其它返回默认值。"""
    url = url.strip()
    for pattern in (_SSH_REMOTE, _HTTPS_REMOTE):
        match = pattern.search(url)
        if match:
            return RepoInfo(owner=match.group(1), name=match.group(2))
    return RepoInfo()


class GitService:
    """在 `cwd` 目录下执行 git 命令。"""

    def __init__(self, cwd: str | None = None, git_bin: str = "git") -> None:
        self._cwd = cwd
        self._git_bin = git_bin

    async def git_diff(self, args: Sequence[str] = ("origin/main",)) -> str:
        """`git diff <args>`；例如 `["--staged"]` 或 `["origin/main"]`。"""
        try:
            output = await _run_git(self._git_bin, ["diff", *args], self._cwd)
        except GitCommandError as exc:
            raise GitCommandError(f"Failed to get diff: {exc}") from exc
        if len(output) > DEFAULT_MAX_DIFF_BYTES:
            raise GitCommandError(f"Failed to get diff: output exceeds {DEFAULT_MAX_DIFF_BYTES} bytes")
        return output

    async def current_branch(self) -> str:
        try:
            branch = (await _run_git(self._git_bin, ["rev-parse", "--abbrev-ref", "HEAD"], self._cwd)).strip()
        except GitCommandError as exc:
            logger.warning(f"could not read current branch: {exc}")
            return "unknown"
        return branch or "unknown"

    async def commit_messages(self, limit: int = DEFAULT_GIT_LOG_LIMIT) -> list[str]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        try:
            output = await _run_git(self._git_bin, ["log", "--oneline", f"-{limit}"], self._cwd)
        except GitCommandError as exc:
            logger.warning(f"could not read commit messages: {exc}")
            return []
        return [line for line in output.splitlines() if line.strip()]

    async def pr_title(self) -> str | None:
        """没有显式标题时用最后一次提交的 subject。"""
        try:
            title = (await _run_git(self._git_bin, ["log", "-1", "--pretty=%s"], self._cwd)).strip()
        except GitCommandError as exc:
            logger.warning(f"could not read last commit subject: {exc}")
            return None
        return title or None

    async def author(self) -> str:
        try:
            author = (await _run_git(self._git_bin, ["log", "-1", "--pretty=%an"], self._cwd)).strip()
        except GitCommandError as exc:
            logger.warning(f"could not read last commit author: {exc}")
            return "unknown"
        return author or "unknown"

    async def repo_info(self) -> RepoInfo:
        try:
            url = await _run_git(self._git_bin, ["remote", "get-url", "origin"], self._cwd)
        except GitCommandError as exc:
            logger.warning(f"could not read origin remote: {exc}")
            return RepoInfo()
        return parse_remote_url(url)


async def _run_git(git_bin: str, args: list[str], cwd: str | None) -> str:
    cmd = [git_bin] + args
    try:
        result = await anyio.run_process(cmd, cwd=cwd, check=False)
    except OSError as exc:
        raise GitCommandError(f"git command failed: {' '.join(cmd)}: {exc}") from exc
    stdout = result.stdout.decode("utf-8", errors="replace")
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        logger.error(f"git failed: {' '.join(cmd)}\nstdout={stdout}\nstderr={stderr}")
        raise GitCommandError(f"git command failed: {' '.join(cmd)}")
    return stdout
