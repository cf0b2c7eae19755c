"""
Git Source Adapter

Architectural Intent:
- Infrastructure adapter implementing SourceControlPort
- Reads the short commit hash and current branch with the git CLI

Design Decisions:
- Outside a repository, or without git installed, both fields report
  "unknown" rather than failing the deployment
"""

import asyncio
import logging
import subprocess

from fleetshift.domain.entities.deployment import SourceRevision

logger = logging.getLogger(__name__)


class GitSourceAdapter:
    def __init__(self, repo_path: str = ".") -> None:
        self.repo_path = repo_path

    def _git(self, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", "-C", self.repo_path, *args],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError:
            logger.warning("git not found; source revision unknown")
            return "unknown"
        except subprocess.CalledProcessError as e:
            logger.warning("git %s failed: %s", " ".join(args), (e.stderr or "").strip())
            return "unknown"
        return result.stdout.strip() or "unknown"

    def _read(self) -> SourceRevision:
        return SourceRevision(
            commit=self._git("rev-parse", "--short", "HEAD"),
            branch=self._git("branch", "--show-current"),
        )

    async def revision(self) -> SourceRevision:
        return await asyncio.get_running_loop().run_in_executor(None, self._read)
