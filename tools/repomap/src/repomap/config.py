from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG = """site_title: Repository Map
output_dir: .repomap/docs
concurrency: 8
repositories:
  - name: app
    display_name: Application
    description: Web frontend
    path: .
    type: nextjs
    analyzers:
      - pages
      - graphql
      - dataflow
      - rest-api
    settings:
      pages_dir: src/pages
      features_dir: src/features
      components_dir: src/common/components
analysis:
  include:
    - "**/*.{ts,tsx,js,jsx,mts,cts,mjs,cjs,graphql,gql,rb}"
  exclude:
    - "**/node_modules/**"
    - "**/.next/**"
    - "**/dist/**"
    - "**/build/**"
    - "**/coverage/**"
cache:
  enabled: true
  path: .repomap/cache.db
watch:
  debounce_seconds: 1.2
"""

REPOSITORY_TYPES = {"nextjs", "react", "rails", "generic"}


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class RepositoryConfig:
    name: str
    path: str
    display_name: str = ""
    description: str = ""
    branch: str | None = None
    type: str = "generic"
    analyzers: list[str] = field(default_factory=list)
    settings: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.name

    def get_setting(self, key: str, default: str) -> str:
        value = self.settings.get(key)
        return str(value) if value else default

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> RepositoryConfig:
        name = str(data.get("name", "")).strip()
        if not name:
            raise ConfigError("repository entry is missing a name")
        raw_path = Path(str(data.get("path", ".")))
        if base_dir is not None and not raw_path.is_absolute():
            raw_path = (base_dir / raw_path).resolve()
        kind = str(data.get("type", "generic"))
        if kind not in REPOSITORY_TYPES:
            raise ConfigError(f"repository {name}: unsupported type {kind!r}")
        return cls(
            name=name,
            path=str(raw_path),
            display_name=str(data.get("display_name", data.get("displayName", name))),
            description=str(data.get("description", "")),
            branch=data.get("branch"),
            type=kind,
            analyzers=[str(item) for item in data.get("analyzers", [])],
            settings={str(key): str(value) for key, value in (data.get("settings") or {}).items()},
        )


@dataclass(slots=True)
class AnalysisOptions:
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CacheConfig:
    enabled: bool = True
    path: str = ".repomap/cache.db"


@dataclass(slots=True)
class WatchConfig:
    debounce_seconds: float = 1.2


@dataclass(slots=True)
class RepomapConfig:
    site_title: str
    output_dir: str
    repositories: list[RepositoryConfig]
    analysis: AnalysisOptions
    cache: CacheConfig
    watch: WatchConfig
    concurrency: int = 8

    @classmethod
    def default(cls) -> RepomapConfig:
        data = yaml.safe_load(DEFAULT_CONFIG)
        return cls.from_dict(data)

    @classmethod
    def from_path(cls, path: Path) -> RepomapConfig:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {path}")
        return cls.from_dict(data, base_dir=path.parent.resolve())

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> RepomapConfig:
        repositories = [RepositoryConfig.from_dict(item, base_dir) for item in data.get("repositories") or []]

        analysis_data = data.get("analysis") or {}
        analysis = AnalysisOptions(
            include=list(analysis_data.get("include", [])),
            exclude=list(analysis_data.get("exclude", [])),
        )
        cache_data = data.get("cache") or {}
        cache = CacheConfig(
            enabled=bool(cache_data.get("enabled", True)),
            path=str(cache_data.get("path", ".repomap/cache.db")),
        )
        watch_data = data.get("watch") or {}
        watch = WatchConfig(debounce_seconds=float(watch_data.get("debounce_seconds", 1.2)))
        output_dir = str(data.get("output_dir", ".repomap/docs"))
        concurrency = int(data.get("concurrency", 8))

        env_output = os.getenv("REPOMAP_OUTPUT_DIR", "").strip()
        env_cache_path = os.getenv("REPOMAP_CACHE_PATH", "").strip()
        env_cache = os.getenv("REPOMAP_CACHE", "").strip().lower()
        env_concurrency = os.getenv("REPOMAP_CONCURRENCY", "").strip()

        if env_output:
            output_dir = env_output
        if env_cache_path:
            cache.path = env_cache_path
        if env_cache in {"0", "false", "no", "off"}:
            cache.enabled = False
        elif env_cache in {"1", "true", "yes", "on"}:
            cache.enabled = True
        if env_concurrency:
            try:
                concurrency = int(env_concurrency)
            except ValueError:
                pass

        if base_dir is not None:
            if not Path(output_dir).is_absolute():
                output_dir = str((base_dir / output_dir).resolve())
            if not Path(cache.path).is_absolute():
                cache.path = str((base_dir / cache.path).resolve())

        return cls(
            site_title=str(data.get("site_title", "Repository Map")),
            output_dir=output_dir,
            repositories=repositories,
            analysis=analysis,
            cache=cache,
            watch=watch,
            concurrency=max(1, concurrency),
        )

    def select(self, names: list[str]) -> RepomapConfig:
        if not names:
            return self
        wanted = set(names)
        chosen = [item for item in self.repositories if item.name in wanted]
        return RepomapConfig(
            site_title=self.site_title,
            output_dir=self.output_dir,
            repositories=chosen,
            analysis=self.analysis,
            cache=self.cache,
            watch=self.watch,
            concurrency=self.concurrency,
        )


def ensure_config(path: Path, force: bool = False, content: str | None = None) -> None:
    if path.exists() and not force:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content or DEFAULT_CONFIG, encoding="utf-8")


def dump_config(repositories: list[RepositoryConfig], site_title: str = "Repository Map") -> str:
    data = yaml.safe_load(DEFAULT_CONFIG)
    data["site_title"] = site_title
    data["repositories"] = [
        {
            "name": item.name,
            "display_name": item.display_name,
            "description": item.description,
            "path": item.path,
            "type": item.type,
            "analyzers": list(item.analyzers),
            "settings": dict(item.settings),
        }
        for item in repositories
    ]
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
