from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from repomap.git_utils import current_commit


@dataclass(slots=True)
class RepoInfo:
    version: str
    commit_hash: str


def read_package_version(repo_root: Path) -> str:
    manifest = repo_root / "package.json"
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "unknown"
    if not isinstance(data, dict):
        return "unknown"
    version = data.get("version")
    return str(version) if version else "unknown"


def resolve_repo_info(repo_root: Path) -> RepoInfo:
    return RepoInfo(version=read_package_version(repo_root), commit_hash=current_commit(repo_root))
