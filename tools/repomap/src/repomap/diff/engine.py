from __future__ import annotations

from repomap.schemas import AnalysisResult, DiffReport, DocumentationReport, RepositoryDiff
from repomap.utils import utc_now_iso


def _page_signatures(result: AnalysisResult) -> set[str]:
    return {page.path for page in result.pages}


def _operation_signatures(result: AnalysisResult) -> set[str]:
    return {f"{item.type}:{item.name}" for item in result.graphql_operations}


def _component_signatures(result: AnalysisResult) -> set[str]:
    return {f"{item.type}:{item.name}" for item in result.components}


def _api_call_signatures(result: AnalysisResult) -> set[str]:
    return {f"{item.method} {item.url}" for item in result.api_calls}


def diff_repository(name: str, base: AnalysisResult, head: AnalysisResult) -> RepositoryDiff:
    base_pages, head_pages = _page_signatures(base), _page_signatures(head)
    base_ops, head_ops = _operation_signatures(base), _operation_signatures(head)
    base_components, head_components = _component_signatures(base), _component_signatures(head)
    base_calls, head_calls = _api_call_signatures(base), _api_call_signatures(head)
    return RepositoryDiff(
        name=name,
        added_pages=sorted(head_pages - base_pages),
        removed_pages=sorted(base_pages - head_pages),
        added_operations=sorted(head_ops - base_ops),
        removed_operations=sorted(base_ops - head_ops),
        added_components=sorted(head_components - base_components),
        removed_components=sorted(base_components - head_components),
        added_api_calls=sorted(head_calls - base_calls),
        removed_api_calls=sorted(base_calls - head_calls),
    )


def build_diff_report(base: DocumentationReport, head: DocumentationReport) -> DiffReport:
    base_repos = {item.name: item.analysis for item in base.repositories}
    head_repos = {item.name: item.analysis for item in head.repositories}

    repositories: list[RepositoryDiff] = []
    for name in sorted(set(base_repos).intersection(head_repos)):
        change = diff_repository(name, base_repos[name], head_repos[name])
        if not change.is_empty():
            repositories.append(change)

    return DiffReport(
        base_generated_at=base.generated_at,
        head_generated_at=head.generated_at,
        generated_at=utc_now_iso(),
        added_repositories=sorted(set(head_repos) - set(base_repos)),
        removed_repositories=sorted(set(base_repos) - set(head_repos)),
        repositories=repositories,
    )
