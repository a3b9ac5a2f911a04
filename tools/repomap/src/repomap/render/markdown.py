from __future__ import annotations

from repomap.schemas import (
    DataFetchingInfo,
    Diagram,
    DocumentationReport,
    PageInfo,
    RepositoryReport,
)

SOURCE_GROUPS = [
    ("direct", "Direct (this page)"),
    ("close", "Close (related)"),
    ("indirect", "Indirect"),
    ("common", "Common (shared)"),
]


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    lines = [f"| {' | '.join(headers)} |", f"|{'|'.join('---' for _ in headers)}|"]
    for row in rows:
        lines.append(f"| {' | '.join(cell.replace('|', '/') for cell in row)} |")
    lines.append("")
    return lines


def _short(commit_hash: str) -> str:
    return commit_hash[:7]


def _category(path: str) -> str:
    parts = [part for part in path.split("/") if part]
    return parts[0] if parts else "root"


def _source_group(item: DataFetchingInfo) -> str:
    source = item.source or ""
    for key, _ in SOURCE_GROUPS[1:]:
        if source.startswith(f"{key}:"):
            return key
    return "direct"


def _operation_label(item: DataFetchingInfo) -> str:
    return (item.operation_name or "").removeprefix("→").strip()


def render_index(report: DocumentationReport, site_title: str | None = None) -> str:
    if site_title:
        title = site_title
    elif len(report.repositories) == 1:
        title = f"{report.repositories[0].display_name} Documentation"
    else:
        title = "Project Documentation"

    lines = [f"# {title}", "", f"Generated: {report.generated_at}", ""]
    lines.append("## Repositories" if len(report.repositories) > 1 else "## Overview")
    lines.append("")
    for repo in report.repositories:
        lines.append(f"### [{repo.display_name}](repos/{repo.name}/index.md)")
        lines.append("")
        lines.append(f"- **Version**: {repo.version}")
        lines.append(f"- **Commit**: `{_short(repo.commit_hash)}`")
        lines.append(f"- **Pages**: {repo.summary.total_pages}")
        lines.append(f"- **Components**: {repo.summary.total_components}")
        lines.append(f"- **GraphQL Ops**: {repo.summary.total_graphql_operations}")
        lines.append(f"- **API Calls**: {repo.summary.total_api_calls}")
        if repo.from_cache:
            lines.append("- **Cache**: hit")
        lines.append("")

    lines.append("## Quick Links")
    lines.append("")
    if len(report.repositories) > 1:
        lines.append("- [Cross Repository](cross-repo.md)")
    lines.append("- [Diagrams](diagrams.md)")
    lines.append("")
    return "\n".join(lines)


def render_repo_index(repo: RepositoryReport) -> str:
    summary = repo.summary
    coverage = repo.analysis.coverage
    lines = [f"# {repo.display_name}", "", f"Version: {repo.version} | Commit: `{_short(repo.commit_hash)}`", ""]
    lines.append("## Overview")
    lines.append("")
    lines.extend(
        _table(
            ["Metric", "Count"],
            [
                ["Pages", str(summary.total_pages)],
                ["Components", str(summary.total_components)],
                ["GraphQL Operations", str(summary.total_graphql_operations)],
                ["Data Flows", str(summary.total_data_flows)],
                ["API Calls", str(summary.total_api_calls)],
                ["Auth Required", str(summary.auth_required_pages)],
                ["Public", str(summary.public_pages)],
            ],
        )
    )
    lines.append("## Coverage")
    lines.append("")
    lines.extend(
        _table(
            ["Metric", "Value"],
            [
                ["TS/JS Files Scanned", str(coverage.ts_files_scanned)],
                ["TS Parse Failures", str(coverage.ts_parse_failures)],
                ["GraphQL Parse Failures", str(coverage.graphql_parse_failures)],
                ["Codegen Files Detected", str(coverage.codegen_files_detected)],
                ["Codegen Files Parsed", str(coverage.codegen_files_parsed)],
                ["Codegen Exports Found", str(coverage.codegen_exports_found)],
            ],
        )
    )
    lines.append("## Documentation")
    lines.append("")
    for name, title in [("pages", "Pages"), ("components", "Components"), ("graphql", "GraphQL"), ("dataflow", "Data Flow"), ("api", "API")]:
        lines.append(f"- [{title}]({name}.md)")
    lines.append("")
    return "\n".join(lines)


def _page_operations(page: PageInfo) -> list[str]:
    grouped: dict[str, dict[str, set[str]]] = {}
    for item in page.data_fetching:
        name = _operation_label(item)
        if len(name) < 2:
            continue
        bucket = grouped.setdefault(_source_group(item), {"queries": set(), "mutations": set()})
        bucket["mutations" if "Mutation" in item.type else "queries"].add(name)

    lines: list[str] = []
    for key, label in SOURCE_GROUPS:
        bucket = grouped.get(key)
        if not bucket:
            continue
        lines.append(f"**{label}**")
        lines.append("")
        for name in sorted(bucket["queries"]):
            lines.append(f"- Query `{name}`")
        for name in sorted(bucket["mutations"]):
            lines.append(f"- Mutation `{name}`")
        lines.append("")
    return lines


def render_pages(repo: RepositoryReport) -> str:
    pages = repo.analysis.pages
    lines = [f"# {repo.display_name} - Pages", ""]
    with_mutations = sum(1 for page in pages if any("Mutation" in item.type for item in page.data_fetching))
    with_queries = sum(1 for page in pages if any("Mutation" not in item.type for item in page.data_fetching))
    lines.extend(
        _table(
            ["Metric", "Value"],
            [
                ["Total", f"**{len(pages)}**"],
                ["Auth Required", str(repo.summary.auth_required_pages)],
                ["With Queries", str(with_queries)],
                ["With Mutations", str(with_mutations)],
            ],
        )
    )

    by_category: dict[str, list[PageInfo]] = {}
    for page in pages:
        by_category.setdefault(_category(page.path), []).append(page)

    for category, members in by_category.items():
        lines.append(f"## /{category}")
        lines.append("")
        rows = []
        for page in members:
            auth = "Required" if page.authentication.required else "Public"
            rows.append([f"`{page.path}`", auth, page.layout or "-"])
        lines.extend(_table(["Page", "Auth", "Layout"], rows))

        for page in members:
            details = _page_operations(page)
            if not details and not page.steps and not page.permissions:
                continue
            lines.append(f"### {page.path}")
            lines.append("")
            lines.append(f"> {page.file_path}")
            lines.append("")
            if page.authentication.roles:
                lines.append(f"Roles: {', '.join(page.authentication.roles)}")
                lines.append("")
            if page.permissions:
                lines.append(f"Permissions: {', '.join(page.permissions)}")
                lines.append("")
            if page.steps:
                lines.append("**Steps**")
                lines.append("")
                for step in page.steps:
                    lines.append(f"{step.id}. {step.name}")
                lines.append("")
            lines.extend(details)
    return "\n".join(lines)


def render_components(repo: RepositoryReport) -> str:
    lines = [f"# {repo.display_name} - Components", ""]
    by_type: dict[str, list] = {}
    for component in repo.analysis.components:
        by_type.setdefault(component.type, []).append(component)

    lines.extend(_table(["Type", "Count"], [[kind, str(len(items))] for kind, items in by_type.items()]))
    for kind, items in by_type.items():
        lines.append(f"## {kind[:1].upper()}{kind[1:]} ({len(items)})")
        lines.append("")
        for component in items:
            lines.append(f"### {component.name}")
            lines.append("")
            lines.append(f"> {component.file_path}")
            lines.append("")
            if component.props:
                prop_rows = [[prop.name, f"`{prop.type}`", "yes" if prop.required else "no"] for prop in component.props]
                lines.extend(_table(["Prop", "Type", "Required"], prop_rows))
            if component.hooks:
                lines.append(f"- Hooks: {', '.join(component.hooks)}")
            if component.dependencies:
                lines.append(f"- Uses: {', '.join(component.dependencies)}")
            if component.dependents:
                lines.append(f"- Used by: {', '.join(component.dependents)}")
            lines.append("")
    return "\n".join(lines)


def render_graphql(repo: RepositoryReport) -> str:
    lines = [f"# {repo.display_name} - GraphQL", ""]
    for kind, title in [("query", "Queries"), ("mutation", "Mutations"), ("subscription", "Subscriptions"), ("fragment", "Fragments")]:
        operations = [item for item in repo.analysis.graphql_operations if item.type == kind]
        if not operations:
            continue
        lines.append(f"## {title}")
        lines.append("")
        for operation in operations:
            lines.append(f"### {operation.name}")
            lines.append("")
            lines.append(f"> {operation.file_path}:{operation.line}")
            lines.append("")
            if operation.return_type and operation.return_type != "unknown":
                lines.append(f"- Returns: `{operation.return_type}`")
            for variable in operation.variables:
                marker = "!" if variable.required else ""
                lines.append(f"- `${variable.name}: {variable.type}{marker}`")
            if operation.fragments:
                lines.append(f"- Fragments: {', '.join(operation.fragments)}")
            if operation.used_in:
                lines.append(f"- Used in: {', '.join(operation.used_in)}")
            lines.append("")
    return "\n".join(lines)


def render_dataflow(repo: RepositoryReport) -> str:
    flows = repo.analysis.data_flows
    lines = [f"# {repo.display_name} - Data Flow", "", f"Total flows: {len(flows)}", ""]
    rows = []
    for flow in flows:
        chain = [flow.source.name, *(item.name for item in flow.via), flow.target.name]
        rows.append([flow.name, " → ".join(chain), ", ".join(flow.operations) or "-"])
    if rows:
        lines.extend(_table(["Flow", "Path", "Operations"], rows))
    return "\n".join(lines)


def render_api(repo: RepositoryReport) -> str:
    analysis = repo.analysis
    lines = [f"# {repo.display_name} - API", ""]
    if analysis.api_calls:
        lines.append("## Outgoing Calls")
        lines.append("")
        rows = [
            [call.method, f"`{call.url}`", call.category or "-", "yes" if call.requires_auth else "no", f"{call.file_path}:{call.line}"]
            for call in analysis.api_calls
        ]
        lines.extend(_table(["Method", "URL", "Category", "Auth", "Location"], rows))
    if analysis.api_endpoints:
        lines.append("## Routes")
        lines.append("")
        rows = [
            [endpoint.method, f"`{endpoint.path}`", f"{endpoint.controller}#{endpoint.action}", "yes" if endpoint.authentication else "no"]
            for endpoint in analysis.api_endpoints
        ]
        lines.extend(_table(["Method", "Path", "Target", "Auth"], rows))
    if analysis.models:
        lines.append("## Models")
        lines.append("")
        for model in analysis.models:
            lines.append(f"### {model.name}")
            lines.append("")
            lines.append(f"> {model.file_path} (table `{model.table_name or '-'}`)")
            lines.append("")
            for association in model.associations:
                lines.append(f"- {association.type} :{association.name}")
            for validation in model.validations:
                lines.append(f"- validates {validation}")
            lines.append("")
    if len(lines) == 2:
        lines.append("- None")
        lines.append("")
    return "\n".join(lines)


def render_cross_repo(report: DocumentationReport) -> str:
    analysis = report.cross_repo_analysis
    lines = ["# Cross Repository Analysis", ""]
    lines.append("## API Connections")
    lines.append("")
    if analysis is None or not analysis.api_connections:
        lines.append("- None")
        lines.append("")
    else:
        rows = [[item.frontend, item.backend, f"`{item.endpoint}`", str(len(item.operations))] for item in analysis.api_connections]
        lines.extend(_table(["Frontend", "Backend", "Endpoint", "Operations"], rows))

    lines.append("## Shared Types")
    lines.append("")
    shared = analysis.shared_types if analysis else []
    lines.extend(f"- `{name}`" for name in shared)
    if not shared:
        lines.append("- None")
    lines.append("")

    lines.append("## Links")
    lines.append("")
    links = analysis.links if analysis else []
    for link in links:
        lines.append(f"- {link.source_repo} → {link.target_repo} ({link.link_type}): {link.description}")
    if not links:
        lines.append("- None")
    lines.append("")
    return "\n".join(lines)


def render_diagrams(diagrams: list[Diagram]) -> str:
    lines = ["# Diagrams", ""]
    for diagram in diagrams:
        lines.append(f"## {diagram.title}")
        lines.append("")
        lines.append("```mermaid")
        lines.append(diagram.content)
        lines.append("```")
        lines.append("")
    return "\n".join(lines)
