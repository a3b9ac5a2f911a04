from __future__ import annotations

import json
from pathlib import Path

from repomap.diagrams import generate_diagrams
from repomap.engine import summarize
from repomap.render.markdown import render_pages
from repomap.render.renderer import render_outputs
from repomap.schemas import (
    AnalysisResult,
    CrossRepoAnalysis,
    DataFetchingInfo,
    DocumentationReport,
    GraphQLOperation,
    PageInfo,
    RepositoryReport,
)


def _repo(name: str, pages: list[PageInfo] | None = None) -> RepositoryReport:
    analysis = AnalysisResult(
        repository=name,
        timestamp="2026-01-01T00:00:00+00:00",
        version="1.0.0",
        commit_hash="0123456789abcdef",
        pages=pages or [],
        graphql_operations=[GraphQLOperation(name="GetUser", type="query", file_path="src/user.graphql")],
    )
    return RepositoryReport(
        name=name,
        display_name=name.title(),
        version="1.0.0",
        commit_hash=analysis.commit_hash,
        analysis=analysis,
        summary=summarize(analysis),
    )


def _report(*repos: RepositoryReport) -> DocumentationReport:
    results = [item.analysis for item in repos]
    return DocumentationReport(
        generated_at="2026-01-01T00:00:00+00:00",
        repositories=list(repos),
        cross_repo_analysis=CrossRepoAnalysis(),
        diagrams=generate_diagrams(results, []),
    )


def test_single_repository_outputs(tmp_path: Path) -> None:
    outputs = render_outputs(_report(_repo("web")), tmp_path, site_title="Web Map")

    assert "cross_repo" not in outputs
    for doc in ("index", "pages", "components", "graphql", "dataflow", "api"):
        assert (tmp_path / "repos" / "web" / f"{doc}.md").is_file()
    assert (tmp_path / "mermaid" / "web-page-navigation.mmd").is_file()

    index = (tmp_path / "index.md").read_text(encoding="utf-8")
    assert index.startswith("# Web Map")
    assert "[Web](repos/web/index.md)" in index
    assert "`0123456`" in index

    payload = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert payload["repositories"][0]["analysis"]["graphql_operations"][0]["name"] == "GetUser"
    assert DocumentationReport.from_dict(payload).repositories[0].summary.total_graphql_operations == 1

    diagrams = (tmp_path / "diagrams.md").read_text(encoding="utf-8")
    assert diagrams.count("```mermaid") == 4


def test_multi_repository_outputs_include_cross_repo(tmp_path: Path) -> None:
    outputs = render_outputs(_report(_repo("web"), _repo("admin")), tmp_path)

    assert outputs["cross_repo"] == tmp_path / "cross-repo.md"
    assert (tmp_path / "mermaid" / "cross-repository-architecture.mmd").is_file()
    index = (tmp_path / "index.md").read_text(encoding="utf-8")
    assert index.startswith("# Project Documentation")
    assert "[Cross Repository](cross-repo.md)" in index


def test_page_operations_grouped_by_reach() -> None:
    page = PageInfo(
        path="/users",
        file_path="src/pages/users.tsx",
        component="Users",
        data_fetching=[
            DataFetchingInfo(type="useQuery", operation_name="ListUsers"),
            DataFetchingInfo(type="useMutation", operation_name="SaveUser", source="close:src/features/user/Form.tsx"),
            DataFetchingInfo(type="useQuery", operation_name="Viewer", source="common:src/common/hooks/useViewer.ts"),
        ],
    )

    text = render_pages(_repo("web", [page]))

    direct = text.index("**Direct (this page)**")
    close = text.index("**Close (related)**")
    common = text.index("**Common (shared)**")
    assert direct < text.index("- Query `ListUsers`") < close
    assert close < text.index("- Mutation `SaveUser`") < common
    assert common < text.index("- Query `Viewer`")
    assert "**Indirect**" not in text
