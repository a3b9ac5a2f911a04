from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

import repomap.engine as engine_module
from repomap.analyzers.common import FactBag
from repomap.analyzers.registry import create_analyzer
from repomap.config import AnalysisOptions, CacheConfig, ConfigError, RepomapConfig, RepositoryConfig, WatchConfig
from repomap.engine import DocGeneratorEngine, merge_results
from repomap.schemas import APICall, CoverageMetrics, GraphQLOperation
from repomap.storage.cache_store import AnalysisCache


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _config(tmp_path: Path, *repos: RepositoryConfig) -> RepomapConfig:
    return RepomapConfig(
        site_title="Test Map",
        output_dir=str(tmp_path / "out"),
        repositories=list(repos),
        analysis=AnalysisOptions(),
        cache=CacheConfig(enabled=True, path=str(tmp_path / "cache.db")),
        watch=WatchConfig(),
        concurrency=4,
    )


def _web_repo(tmp_path: Path, name: str = "web") -> RepositoryConfig:
    repo = tmp_path / name
    _write(repo, "src/pages/index.tsx", "export default function Home() { return <main />; }\n")
    _write(repo, "src/graphql/user.graphql", "query GetUser { user { id } }\n")
    _write(
        repo,
        "src/features/user/loadUsers.ts",
        "export async function loadUsers() { return fetch('/api/users'); }\n",
    )
    return RepositoryConfig(
        name=name,
        path=str(repo),
        type="nextjs",
        analyzers=["pages", "graphql", "rest-api"],
    )


def _bag(operation: str | None = None, call: str | None = None, scanned: int = 0) -> FactBag:
    bag = FactBag(coverage=CoverageMetrics(ts_files_scanned=scanned))
    if operation:
        bag.graphql_operations.append(GraphQLOperation(name=operation, type="query", file_path="a.graphql"))
    if call:
        bag.api_calls.append(APICall(id=call, method="GET", url="/x", call_type="fetch", file_path="a.ts", line=1))
    return bag


def test_merge_concatenates_in_bag_order() -> None:
    a, b, c = _bag("A", scanned=1), _bag("B", call="api-1", scanned=2), _bag("A", scanned=3)

    merged = merge_results([a, b, c], "web", "1.0.0", "abc", timestamp="t")

    assert [item.name for item in merged.graphql_operations] == ["A", "B", "A"]
    assert [item.id for item in merged.api_calls] == ["api-1"]
    assert merged.coverage.ts_files_scanned == 6

    left = merge_results([a, b], "web", "1.0.0", "abc", timestamp="t")
    nested = FactBag(graphql_operations=left.graphql_operations, api_calls=left.api_calls, coverage=left.coverage)
    regrouped = merge_results([nested, c], "web", "1.0.0", "abc", timestamp="t")
    assert regrouped.to_dict() == merged.to_dict()


def test_generate_collects_every_analyzer(tmp_path: Path) -> None:
    config = _config(tmp_path, _web_repo(tmp_path))

    report = asyncio.run(DocGeneratorEngine(config).generate())

    (repo,) = report.repositories
    assert repo.from_cache is False
    assert repo.commit_hash == "unknown"
    assert [page.path for page in repo.analysis.pages] == ["/"]
    assert [item.name for item in repo.analysis.graphql_operations] == ["GetUser"]
    assert [call.url for call in repo.analysis.api_calls] == ["/api/users"]
    assert repo.summary.total_pages == 1
    assert repo.summary.auth_required_pages == 1
    assert [item.title for item in report.diagrams] == [
        "web - Page Navigation",
        "web - Data Flow",
        "web - Component Hierarchy",
        "web - GraphQL Operations",
    ]


def test_second_run_is_served_from_cache(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = _config(tmp_path, _web_repo(tmp_path))
    asyncio.run(DocGeneratorEngine(config).generate())

    created: list[str] = []

    def counting_create(name: str, repo: RepositoryConfig):
        created.append(name)
        return create_analyzer(name, repo)

    monkeypatch.setattr(engine_module, "create_analyzer", counting_create)
    report = asyncio.run(DocGeneratorEngine(config).generate())

    assert created == []
    assert report.repositories[0].from_cache is True
    assert [item.name for item in report.repositories[0].analysis.graphql_operations] == ["GetUser"]


def test_changed_source_invalidates_cache(tmp_path: Path) -> None:
    repo = _web_repo(tmp_path)
    config = _config(tmp_path, repo)
    asyncio.run(DocGeneratorEngine(config).generate())

    _write(Path(repo.path), "src/graphql/order.graphql", "query GetOrder { order { id } }\n")
    report = asyncio.run(DocGeneratorEngine(config).generate())

    assert report.repositories[0].from_cache is False
    assert sorted(item.name for item in report.repositories[0].analysis.graphql_operations) == ["GetOrder", "GetUser"]


def test_failing_analyzer_does_not_sink_the_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = _config(tmp_path, _web_repo(tmp_path))

    def broken(self) -> FactBag:
        raise RuntimeError("boom")

    monkeypatch.setattr("repomap.analyzers.graphql.GraphQLAnalyzer.run", broken)
    report = asyncio.run(DocGeneratorEngine(config, cache=AnalysisCache(tmp_path / "isolated.db")).generate())

    (repo,) = report.repositories
    assert repo.analysis.graphql_operations == []
    assert [page.path for page in repo.analysis.pages] == ["/"]
    assert len(repo.analysis.api_calls) == 1


def test_missing_repository_is_skipped(tmp_path: Path) -> None:
    missing = RepositoryConfig(name="ghost", path=str(tmp_path / "ghost"), type="nextjs", analyzers=["pages"])
    config = _config(tmp_path, missing, _web_repo(tmp_path))

    report = asyncio.run(DocGeneratorEngine(config).generate())

    assert [item.name for item in report.repositories] == ["web"]


def test_shared_operations_are_linked_across_repositories(tmp_path: Path) -> None:
    config = _config(tmp_path, _web_repo(tmp_path, "web"), _web_repo(tmp_path, "admin"))

    report = asyncio.run(DocGeneratorEngine(config).generate())

    assert report.cross_repo_analysis is not None
    assert report.cross_repo_analysis.shared_types == ["GetUser"]
    assert [(link.source_repo, link.target_repo) for link in report.cross_repo_analysis.links] == [("web", "admin")]
    assert report.diagrams[-1].title == "Cross-Repository Architecture"


def test_no_repositories_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        asyncio.run(DocGeneratorEngine(_config(tmp_path)).generate())
