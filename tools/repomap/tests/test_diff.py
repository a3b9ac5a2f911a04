from __future__ import annotations

from pathlib import Path

from repomap.diff.engine import build_diff_report
from repomap.diff.report_writer import write_diff_json, write_diff_markdown
from repomap.engine import summarize
from repomap.schemas import (
    AnalysisResult,
    APICall,
    DocumentationReport,
    GraphQLOperation,
    PageInfo,
    RepositoryReport,
)
from repomap.utils import read_json


def _repo(name: str, pages: list[str], operations: list[str], calls: list[str] | None = None) -> RepositoryReport:
    analysis = AnalysisResult(
        repository=name,
        timestamp="t",
        version="1.0.0",
        commit_hash="abc",
        pages=[PageInfo(path=path, file_path=f"src/pages{path}.tsx", component="Page") for path in pages],
        graphql_operations=[GraphQLOperation(name=item, type="query", file_path="a.graphql") for item in operations],
        api_calls=[
            APICall(id=f"api-{index}", method="GET", url=url, call_type="fetch", file_path="a.ts", line=1)
            for index, url in enumerate(calls or [], start=1)
        ],
    )
    return RepositoryReport(
        name=name,
        display_name=name,
        version="1.0.0",
        commit_hash="abc",
        analysis=analysis,
        summary=summarize(analysis),
    )


def test_fact_changes_per_repository() -> None:
    base = DocumentationReport(
        generated_at="base",
        repositories=[
            _repo("web", ["/", "/users"], ["GetUser"], ["/api/a"]),
            _repo("legacy", [], []),
            _repo("admin", ["/"], ["GetUser"]),
        ],
    )
    head = DocumentationReport(
        generated_at="head",
        repositories=[
            _repo("web", ["/", "/settings"], ["GetUser", "SaveUser"], ["/api/b"]),
            _repo("admin", ["/"], ["GetUser"]),
            _repo("mobile", [], []),
        ],
    )

    report = build_diff_report(base, head)

    assert report.added_repositories == ["mobile"]
    assert report.removed_repositories == ["legacy"]
    (web,) = report.repositories
    assert web.name == "web"
    assert web.added_pages == ["/settings"]
    assert web.removed_pages == ["/users"]
    assert web.added_operations == ["query:SaveUser"]
    assert web.removed_operations == []
    assert web.added_api_calls == ["GET /api/b"]
    assert web.removed_api_calls == ["GET /api/a"]


def test_writers(tmp_path: Path) -> None:
    base = DocumentationReport(generated_at="base", repositories=[_repo("web", ["/"], [])])
    head = DocumentationReport(generated_at="head", repositories=[_repo("web", ["/", "/new"], [])])
    report = build_diff_report(base, head)

    write_diff_markdown(report, tmp_path / "diff" / "report.md")
    write_diff_json(report, tmp_path / "diff" / "report.json")

    markdown = (tmp_path / "diff" / "report.md").read_text(encoding="utf-8")
    assert markdown.startswith("# Repomap Diff Report")
    assert "## web" in markdown
    assert "### Added Pages\n- /new" in markdown
    assert "### Removed Pages\n- None" in markdown
    assert read_json(tmp_path / "diff" / "report.json")["repositories"][0]["added_pages"] == ["/new"]


def test_unchanged_reports() -> None:
    base = DocumentationReport(generated_at="base", repositories=[_repo("web", ["/"], ["GetUser"])])

    report = build_diff_report(base, base)

    assert report.repositories == []
    assert report.added_repositories == []
    assert report.removed_repositories == []
