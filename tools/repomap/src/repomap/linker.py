from __future__ import annotations

from repomap.schemas import (
    AnalysisResult,
    APIConnection,
    CrossRepoAnalysis,
    CrossRepoLink,
    RepositoryReport,
)


def _repositories_by_operation(results: list[AnalysisResult]) -> dict[str, list[str]]:
    """Operation name → distinct repositories declaring it, in input order."""
    grouped: dict[str, list[str]] = {}
    for result in results:
        for operation in result.graphql_operations:
            repos = grouped.setdefault(operation.name, [])
            if result.repository not in repos:
                repos.append(result.repository)
    return grouped


def extract_cross_repo_links(results: list[AnalysisResult]) -> list[CrossRepoLink]:
    """One link per operation name shared by two or more repositories.

    Only the first two repositories observed with the name are linked, even
    when more share it.
    """
    links: list[CrossRepoLink] = []
    for name, repos in _repositories_by_operation(results).items():
        if len(repos) < 2:
            continue
        links.append(
            CrossRepoLink(
                source_repo=repos[0],
                source_path=f"graphql/{name}",
                target_repo=repos[1],
                target_path=f"graphql/{name}",
                link_type="graphql-operation",
                description=f"Shared GraphQL operation: {name}",
            )
        )
    return links


def analyze_cross_repo(reports: list[RepositoryReport]) -> CrossRepoAnalysis:
    results = [report.analysis for report in reports]
    shared_types = [name for name, repos in _repositories_by_operation(results).items() if len(repos) > 1]

    frontends = [report for report in reports if report.analysis.pages]
    backends = [report for report in reports if report.analysis.api_endpoints]
    connections: list[APIConnection] = []
    for frontend in frontends:
        used = [operation.name for operation in frontend.analysis.graphql_operations if operation.used_in]
        for backend in backends:
            for endpoint in backend.analysis.api_endpoints:
                connections.append(
                    APIConnection(
                        frontend=frontend.name,
                        backend=backend.name,
                        endpoint=endpoint.path,
                        operations=list(used),
                    )
                )
    return CrossRepoAnalysis(shared_types=shared_types, api_connections=connections)
