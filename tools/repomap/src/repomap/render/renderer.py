from __future__ import annotations

from pathlib import Path

from repomap.render import markdown
from repomap.schemas import DocumentationReport
from repomap.utils import slugify, write_json

REPO_DOCS = {
    "index": markdown.render_repo_index,
    "pages": markdown.render_pages,
    "components": markdown.render_components,
    "graphql": markdown.render_graphql,
    "dataflow": markdown.render_dataflow,
    "api": markdown.render_api,
}


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def render_outputs(report: DocumentationReport, output_dir: Path, site_title: str | None = None) -> dict[str, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    outputs: dict[str, Path] = {}

    write_json(output_dir / "report.json", report.to_dict())
    outputs["report_json"] = output_dir / "report.json"
    outputs["index"] = _write(output_dir / "index.md", markdown.render_index(report, site_title))

    for repo in report.repositories:
        for name, render in REPO_DOCS.items():
            outputs[f"repos/{repo.name}/{name}"] = _write(output_dir / "repos" / repo.name / f"{name}.md", render(repo))

    if len(report.repositories) > 1:
        outputs["cross_repo"] = _write(output_dir / "cross-repo.md", markdown.render_cross_repo(report))

    outputs["diagrams"] = _write(output_dir / "diagrams.md", markdown.render_diagrams(report.diagrams))
    for diagram in report.diagrams:
        slug = slugify(diagram.title)
        outputs[f"mermaid/{slug}"] = _write(output_dir / "mermaid" / f"{slug}.mmd", diagram.content)

    return outputs
