from __future__ import annotations

from repomap.analyzers.base import BaseAnalyzer
from repomap.analyzers.dataflow import DataFlowAnalyzer
from repomap.analyzers.graphql import GraphQLAnalyzer
from repomap.analyzers.pages import PagesAnalyzer
from repomap.analyzers.rails import RailsModelsAnalyzer, RailsRoutesAnalyzer
from repomap.analyzers.rest_api import RestApiAnalyzer
from repomap.config import RepositoryConfig

ANALYZERS: dict[str, type[BaseAnalyzer]] = {
    "pages": PagesAnalyzer,
    "graphql": GraphQLAnalyzer,
    "dataflow": DataFlowAnalyzer,
    "components": DataFlowAnalyzer,
    "rest-api": RestApiAnalyzer,
    "api": RestApiAnalyzer,
    "routes": RailsRoutesAnalyzer,
    "models": RailsModelsAnalyzer,
}

# Repository kinds whose source tree defines routed pages.
PAGE_KINDS = {"nextjs", "react", "rails", "generic"}


def create_analyzer(name: str, repo: RepositoryConfig) -> BaseAnalyzer | None:
    """Analyzer for a configured name, or ``None`` when unknown or inapplicable."""
    analyzer_cls = ANALYZERS.get(name)
    if analyzer_cls is None:
        return None
    if analyzer_cls is PagesAnalyzer and repo.type not in PAGE_KINDS:
        return None
    return analyzer_cls(repo)
