"""Analysis orchestrator.

For every configured repository: fingerprint the source tree, reuse a cached
result when the fingerprint still matches, otherwise run the configured
analyzers concurrently and merge their fact bags. Cross-repository links and
diagrams are derived once every repository has been analyzed.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path, PurePosixPath

from repomap.analyzers.base import PRUNED_DIRS
from repomap.analyzers.common import FACT_KINDS, FactBag
from repomap.analyzers.registry import create_analyzer
from repomap.config import AnalysisOptions, ConfigError, RepomapConfig, RepositoryConfig
from repomap.diagrams import generate_diagrams
from repomap.enrichment import enrich_pages
from repomap.linker import analyze_cross_repo, extract_cross_repo_links
from repomap.logging import get_logger
from repomap.metadata import resolve_repo_info
from repomap.parallel import DEFAULT_CONCURRENCY, parallel_map
from repomap.schemas import (
    AnalysisResult,
    CoverageMetrics,
    DocumentationReport,
    RepositoryReport,
    RepositorySummary,
)
from repomap.storage.cache_store import AnalysisCache, cache_key
from repomap.utils import is_included, iter_files, utc_now_iso

SOURCE_SUFFIXES = {".ts", ".tsx", ".js", ".jsx", ".mts", ".cts", ".mjs", ".cjs", ".graphql", ".gql", ".rb"}

logger = get_logger("engine")


class RepositoryError(RuntimeError):
    pass


def enumerate_source_files(root: Path, options: AnalysisOptions | None = None) -> list[str]:
    """Sorted repo-relative source files that take part in the fingerprint."""
    if not root.is_dir():
        raise RepositoryError(f"repository root is not a directory: {root}")
    include = options.include if options else []
    exclude = options.exclude if options else []
    files: list[str] = []
    for rel in iter_files(root, PRUNED_DIRS):
        if PurePosixPath(rel).suffix.lower() not in SOURCE_SUFFIXES:
            continue
        if is_included(rel, include, exclude):
            files.append(rel)
    return files


async def compute_fingerprint(root: Path, files: list[str], concurrency: int = DEFAULT_CONCURRENCY) -> str:
    """sha256 over the sorted ``(path, sha256(content))`` pairs."""

    async def digest(rel: str, _: int) -> tuple[str, str]:
        try:
            content = await asyncio.to_thread((root / rel).read_bytes)
        except OSError as exc:
            logger.debug("fingerprint: cannot read %s: %s", rel, exc)
            return rel, "unreadable"
        return rel, hashlib.sha256(content).hexdigest()

    pairs = await parallel_map(files, digest, concurrency)
    hasher = hashlib.sha256()
    for rel, content_hash in sorted(pairs):
        hasher.update(f"{rel}\0{content_hash}\n".encode("utf-8"))
    return hasher.hexdigest()


def merge_results(
    bags: list[FactBag],
    repository: str,
    version: str,
    commit_hash: str,
    timestamp: str | None = None,
) -> AnalysisResult:
    """Concatenate every fact kind in bag order and sum coverage; nothing is deduplicated."""
    merged = AnalysisResult(
        repository=repository,
        timestamp=timestamp or utc_now_iso(),
        version=version,
        commit_hash=commit_hash,
        coverage=CoverageMetrics(),
    )
    for bag in bags:
        if bag.coverage is not None:
            merged.coverage.add(bag.coverage)
        for kind in FACT_KINDS:
            getattr(merged, kind).extend(getattr(bag, kind))
    return merged


def summarize(result: AnalysisResult) -> RepositorySummary:
    auth_required = sum(1 for page in result.pages if page.authentication.required)
    return RepositorySummary(
        total_pages=len(result.pages),
        total_components=len(result.components),
        total_graphql_operations=len(result.graphql_operations),
        total_data_flows=len(result.data_flows),
        total_api_calls=len(result.api_calls),
        auth_required_pages=auth_required,
        public_pages=len(result.pages) - auth_required,
    )


class DocGeneratorEngine:
    def __init__(self, config: RepomapConfig, cache: AnalysisCache | None = None) -> None:
        self.config = config
        if cache is None and config.cache.enabled:
            cache = AnalysisCache(Path(config.cache.path))
        self.cache = cache

    async def generate(self) -> DocumentationReport:
        if not self.config.repositories:
            raise ConfigError("no repositories configured")
        if self.cache is not None:
            self.cache.load()

        reports: list[RepositoryReport] = []
        for repo in self.config.repositories:
            try:
                reports.append(await self.analyze_repository(repo))
            except Exception as exc:
                logger.error("repository %s failed: %s", repo.name, exc)

        results = [report.analysis for report in reports]
        cross_repo = analyze_cross_repo(reports)
        cross_repo.links = extract_cross_repo_links(results)
        diagrams = generate_diagrams(results, cross_repo.links)

        if self.cache is not None:
            self.cache.save()

        return DocumentationReport(
            generated_at=utc_now_iso(),
            repositories=reports,
            cross_repo_analysis=cross_repo,
            diagrams=diagrams,
        )

    async def analyze_repository(self, repo: RepositoryConfig) -> RepositoryReport:
        root = Path(repo.path)
        info = await asyncio.to_thread(resolve_repo_info, root)
        files = await asyncio.to_thread(enumerate_source_files, root, self.config.analysis)
        fingerprint = await compute_fingerprint(root, files, self.config.concurrency)
        key = cache_key(repo.name, info.commit_hash)

        if self.cache is not None:
            cached = self.cache.get(key, fingerprint)
            if cached is not None:
                logger.info("%s: cache hit (%s)", repo.name, key)
                analysis = AnalysisResult.from_dict(cached)
                return self._report(repo, analysis, from_cache=True)

        analyzers = []
        for name in repo.analyzers:
            analyzer = create_analyzer(name, repo)
            if analyzer is None:
                logger.debug("%s: analyzer %r unknown or not applicable", repo.name, name)
                continue
            analyzers.append(analyzer)

        outcomes = await asyncio.gather(*(analyzer.analyze() for analyzer in analyzers), return_exceptions=True)
        bags: list[FactBag] = []
        for analyzer, outcome in zip(analyzers, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("%s: analyzer %s failed: %s", repo.name, analyzer.name, outcome)
                bags.append(FactBag.empty())
            else:
                bags.append(outcome)

        analysis = merge_results(bags, repo.name, info.version, info.commit_hash)
        added = await asyncio.to_thread(enrich_pages, analysis, root, set(files))
        logger.info(
            "%s: %s pages, %s operations, %s api calls (%s linked by imports)",
            repo.name,
            len(analysis.pages),
            len(analysis.graphql_operations),
            len(analysis.api_calls),
            added,
        )

        if self.cache is not None:
            self.cache.set(key, fingerprint, analysis.to_dict())
        return self._report(repo, analysis, from_cache=False)

    @staticmethod
    def _report(repo: RepositoryConfig, analysis: AnalysisResult, from_cache: bool) -> RepositoryReport:
        return RepositoryReport(
            name=repo.name,
            display_name=repo.display_name,
            version=analysis.version,
            commit_hash=analysis.commit_hash,
            analysis=analysis,
            summary=summarize(analysis),
            from_cache=from_cache,
        )
