from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from repomap.analyzers.common import FactBag
from repomap.config import RepositoryConfig
from repomap.logging import get_logger
from repomap.utils import iter_files, path_matches

DEFAULT_IGNORE = [
    "**/node_modules/**",
    "**/.next/**",
    "**/dist/**",
    "**/build/**",
    "**/__tests__/**",
    "**/*.test.*",
    "**/*.spec.*",
    "**/*.stories.*",
    "**/__generated__/**",
]

# Never descended into, whatever the ignore patterns say.
PRUNED_DIRS = {"node_modules", ".git", ".next", ".repomap", "dist", "build", "coverage"}


class BaseAnalyzer:
    """One read-only extraction pass over a repository.

    Subclasses implement :meth:`run`; :meth:`analyze` runs it off the event
    loop so analyzers of one repository overlap while they wait on disk.
    """

    name = "base"

    def __init__(self, config: RepositoryConfig) -> None:
        self.config = config
        self.base_path = Path(config.path)
        self.logger: logging.Logger = get_logger(f"analyzers.{self.name}")

    async def analyze(self) -> FactBag:
        return await asyncio.to_thread(self.run)

    def run(self) -> FactBag:
        raise NotImplementedError

    def resolve_path(self, relative_path: str) -> Path:
        return self.base_path / relative_path

    def get_setting(self, key: str, default: str = "") -> str:
        return self.config.get_setting(key, default)

    def glob_files(
        self,
        patterns: list[str],
        root: str = "",
        ignore: list[str] | None = None,
    ) -> list[str]:
        """Repo-relative files under ``root`` matching ``patterns`` (relative to ``root``)."""
        search_root = self.resolve_path(root) if root else self.base_path
        if not search_root.is_dir():
            return []
        ignore_patterns = DEFAULT_IGNORE if ignore is None else ignore
        prefix = f"{root.strip('/')}/" if root else ""
        matched: list[str] = []
        for rel in iter_files(search_root, PRUNED_DIRS):
            if not path_matches(rel, patterns):
                continue
            if path_matches(rel, ignore_patterns):
                continue
            matched.append(f"{prefix}{rel}")
        return matched
