"""Detect the project kind of a directory when no config file exists."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from repomap.config import RepositoryConfig
from repomap.logging import get_logger

FRONTEND_ANALYZERS = ["pages", "graphql", "dataflow", "rest-api"]
BACKEND_ANALYZERS = ["routes", "models"]

logger = get_logger("env_detect")


@dataclass(slots=True)
class DetectedEnvironment:
    type: str
    path: str
    version: str | None = None
    features: list[str] = field(default_factory=list)


@dataclass(slots=True)
class EnvironmentDetection:
    environments: list[DetectedEnvironment] = field(default_factory=list)

    @property
    def has_nextjs(self) -> bool:
        return any(item.type == "nextjs" for item in self.environments)

    @property
    def has_react(self) -> bool:
        return any(item.type in {"react", "nextjs"} for item in self.environments)

    @property
    def has_rails(self) -> bool:
        return any(item.type == "rails" for item in self.environments)

    @property
    def primary(self) -> str:
        if self.has_nextjs:
            return "nextjs"
        if self.has_react:
            return "react"
        if self.has_rails:
            return "rails"
        return "generic"


def _gem_declared(gemfile: str, name: str) -> bool:
    return f"gem '{name}'" in gemfile or f'gem "{name}"' in gemfile


def detect_rails(root: Path) -> DetectedEnvironment | None:
    gemfile_path = root / "Gemfile"
    if not gemfile_path.is_file() or not (root / "config" / "routes.rb").is_file():
        return None
    gemfile = gemfile_path.read_text(encoding="utf-8", errors="ignore")
    if not _gem_declared(gemfile, "rails"):
        return None

    env = DetectedEnvironment(type="rails", path=str(root))
    match = re.search(r"""gem ['"]rails['"],\s*['"]([^'"]+)['"]""", gemfile)
    if match:
        env.version = match.group(1)
    if (root / "app" / "grpc_services").is_dir():
        env.features.append("grpc")
    application = root / "config" / "application.rb"
    if application.is_file() and "config.api_only = true" in application.read_text(encoding="utf-8", errors="ignore"):
        env.features.append("api-only")
    for gem in ("graphql", "devise"):
        if _gem_declared(gemfile, gem):
            env.features.append(gem)
    return env


def detect_javascript(root: Path) -> DetectedEnvironment | None:
    package_json = root / "package.json"
    if not package_json.is_file():
        return None
    try:
        manifest = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("cannot read %s: %s", package_json, exc)
        return None
    deps = {**(manifest.get("dependencies") or {}), **(manifest.get("devDependencies") or {})}
    if "react" not in deps:
        return None

    env = DetectedEnvironment(type="react", path=str(root), version=deps["react"])
    if "next" in deps:
        env.type = "nextjs"
        env.version = deps["next"]
        for candidate, feature in (("app", "app-router"), ("pages", "pages-router"), ("src/pages", "pages-router"), ("src/app", "app-router")):
            if (root / candidate).is_dir() and feature not in env.features:
                env.features.append(feature)
    if any(name in deps for name in ("@apollo/client", "graphql", "graphql-request", "urql")):
        env.features.append("graphql")
    if "typescript" in deps:
        env.features.append("typescript")
    if "redux" in deps or "@reduxjs/toolkit" in deps:
        env.features.append("redux")
    if "zustand" in deps:
        env.features.append("zustand")
    if "jotai" in deps or "recoil" in deps:
        env.features.append("atomic-state")
    return env


def detect_environments(root: Path) -> EnvironmentDetection:
    detection = EnvironmentDetection()
    for detector in (detect_rails, detect_javascript):
        env = detector(root)
        if env is not None:
            detection.environments.append(env)
    return detection


def analyzers_for(detection: EnvironmentDetection) -> list[str]:
    analyzers: list[str] = []
    if detection.has_react:
        analyzers.extend(FRONTEND_ANALYZERS)
    if detection.has_rails:
        analyzers.extend(BACKEND_ANALYZERS)
    return analyzers or list(FRONTEND_ANALYZERS)


def _pages_dir(root: Path) -> str:
    for candidate in ("src/pages", "pages", "app/javascript/pages"):
        if (root / candidate).is_dir():
            return candidate
    return "src/pages"


def detect_project(root: Path) -> RepositoryConfig:
    """Repository config for ``root`` inferred from its manifests and layout."""
    root = root.resolve()
    detection = detect_environments(root)
    name = root.name or "app"
    return RepositoryConfig(
        name=name,
        path=str(root),
        display_name=name,
        description=f"Auto-detected {detection.primary} project",
        type=detection.primary,
        analyzers=analyzers_for(detection),
        settings={"pages_dir": _pages_dir(root)},
    )
