from __future__ import annotations

from pathlib import Path

from repomap.schemas import DiffReport
from repomap.utils import write_json


def write_diff_json(report: DiffReport, output_path: Path) -> None:
    write_json(output_path, report.to_dict())


def write_diff_markdown(report: DiffReport, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    lines.append("# Repomap Diff Report")
    lines.append("")
    lines.append(f"- Base: `{report.base_generated_at}`")
    lines.append(f"- Head: `{report.head_generated_at}`")
    lines.append(f"- Generated: `{report.generated_at}`")
    lines.append("")

    def section(title: str, items: list[str], level: str = "##") -> None:
        lines.append(f"{level} {title}")
        if not items:
            lines.append("- None")
        else:
            for item in items:
                lines.append(f"- {item}")
        lines.append("")

    section("Added Repositories", report.added_repositories)
    section("Removed Repositories", report.removed_repositories)

    if not report.repositories:
        lines.append("No fact changes in shared repositories.")
        lines.append("")

    for repo in report.repositories:
        lines.append(f"## {repo.name}")
        lines.append("")
        section("Added Pages", repo.added_pages, "###")
        section("Removed Pages", repo.removed_pages, "###")
        section("Added Operations", repo.added_operations, "###")
        section("Removed Operations", repo.removed_operations, "###")
        section("Added Components", repo.added_components, "###")
        section("Removed Components", repo.removed_components, "###")
        section("Added API Calls", repo.added_api_calls, "###")
        section("Removed API Calls", repo.removed_api_calls, "###")

    output_path.write_text("\n".join(lines), encoding="utf-8")
