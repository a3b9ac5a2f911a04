"""Bounded diagram graphs derived from analysis results.

Each builder returns a ``Diagram`` carrying its ``DiagramGraph`` and the
Mermaid text rendered from it. Candidate edges beyond a diagram's cap are
dropped silently.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from repomap.render.mermaid import render_mermaid
from repomap.schemas import (
    AnalysisResult,
    CrossRepoLink,
    DataFlow,
    DataFlowNode,
    Diagram,
    DiagramGraph,
    GraphEdge,
    GraphNode,
)

NAVIGATION_EDGE_LIMIT = 30
NAVIGATION_LINKS_PER_PAGE = 2
QUERY_FLOW_LIMIT = 20
MUTATION_FLOW_LIMIT = 20
CONTEXT_FLOW_LIMIT = 15
COMPONENTS_PER_TYPE = 20
DEPENDENCIES_PER_COMPONENT = 3
COMPONENT_EDGE_LIMIT = 50
QUERY_NODE_LIMIT = 15
MUTATION_NODE_LIMIT = 15
FRAGMENT_NODE_LIMIT = 10
LABEL_LIMIT = 40

_EMOJI = re.compile("[\U0001F4E1✏️\U0001F504\U0001F4E6]")


def node_id(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", value)


def clean_label(value: str) -> str:
    return _EMOJI.sub("", value).strip()[:LABEL_LIMIT]


@dataclass(slots=True)
class GraphBuilder:
    direction: str = "TB"
    edge_limit: int | None = None
    graph: DiagramGraph = field(init=False)
    _ids: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.graph = DiagramGraph(direction=self.direction, edge_limit=self.edge_limit)

    def group(self, group_id: str, label: str) -> str:
        self.graph.groups.setdefault(group_id, label)
        return group_id

    def node(self, id: str, label: str, shape: str = "box", group: str | None = None, css_class: str | None = None) -> str:
        if id not in self._ids:
            self._ids.add(id)
            self.graph.nodes.append(GraphNode(id=id, label=label, shape=shape, group=group, css_class=css_class))
        return id

    @property
    def full(self) -> bool:
        return self.edge_limit is not None and len(self.graph.edges) >= self.edge_limit

    def edge(self, source: str, target: str, style: str = "solid", label: str | None = None) -> bool:
        if self.full:
            return False
        self.graph.edges.append(GraphEdge(source=source, target=target, style=style, label=label))
        return True


def _diagram(title: str, builder: GraphBuilder, comment: str, related_files: list[str]) -> Diagram:
    return Diagram(
        type="flowchart",
        title=title,
        content=render_mermaid(builder.graph, comment),
        related_files=related_files,
        graph=builder.graph,
    )


def navigation_diagram(result: AnalysisResult) -> Diagram:
    builder = GraphBuilder(direction="TB", edge_limit=NAVIGATION_EDGE_LIMIT)
    ids: dict[str, str] = {}
    counter = 0
    for page in result.pages:
        parts = [part for part in page.path.split("/") if part]
        category = parts[0] if parts else "root"
        group = builder.group(node_id(category), "Root Pages" if category == "root" else f"/{category}")
        short = "/".join(parts[1:]) if len(parts) > 1 else page.path
        required = page.authentication.required
        label = f"{short} AUTH" if required else short
        ids[page.path] = builder.node(
            f"P{counter}",
            label,
            group=group,
            css_class="authRequired" if required else "public",
        )
        counter += 1

    for page in result.pages:
        if builder.full:
            break
        source = ids.get(page.path)
        for linked in page.linked_pages[:NAVIGATION_LINKS_PER_PAGE]:
            target = ids.get(linked)
            if source and target and source != target and not builder.edge(source, target):
                break

    return _diagram(
        f"{result.repository} - Page Navigation",
        builder,
        "Page Navigation Flow - Grouped by Category",
        [page.file_path for page in result.pages],
    )


def _is_query_flow(flow: DataFlow) -> bool:
    return "📡" in flow.name or any("Query" in item for item in flow.operations)


def _is_mutation_flow(flow: DataFlow) -> bool:
    return "✏️" in flow.name or any("Mutation" in item for item in flow.operations)


def _is_context_flow(flow: DataFlow) -> bool:
    return "🔄" in flow.name or flow.source.type == "context" or any("Context" in item for item in flow.operations)


def data_flow_diagram(result: AnalysisResult) -> Diagram:
    builder = GraphBuilder(direction="LR")
    ids: dict[tuple[str, str], str] = {}

    def flow_node(item: DataFlowNode) -> str:
        key = (item.type, item.name)
        if key not in ids:
            prefix = item.type[:1].upper() or "N"
            ids[key] = f"{prefix}{len(ids)}"
        return ids[key]

    sections = [
        ("Queries", "📡 Queries", _is_query_flow, QUERY_FLOW_LIMIT, ("circle", "box"), "solid", "query"),
        ("Mutations", "✏️ Mutations", _is_mutation_flow, MUTATION_FLOW_LIMIT, ("box", "circle"), "solid", "mutation"),
        ("Context", "🔄 Context", _is_context_flow, CONTEXT_FLOW_LIMIT, ("hexagon", "box"), "dotted", "context"),
    ]
    for group_id, label, matches, limit, shapes, style, css_class in sections:
        flows = [flow for flow in result.data_flows if matches(flow)][:limit]
        if not flows:
            continue
        group = builder.group(group_id, label)
        for flow in flows:
            source = builder.node(flow_node(flow.source), clean_label(flow.source.name), shapes[0], group, css_class)
            target = builder.node(flow_node(flow.target), clean_label(flow.target.name), shapes[1], group)
            builder.edge(source, target, style)

    return _diagram(
        f"{result.repository} - Data Flow",
        builder,
        "Data Flow Diagram",
        [flow.source.name for flow in result.data_flows],
    )


def component_diagram(result: AnalysisResult) -> Diagram:
    builder = GraphBuilder(direction="TB", edge_limit=COMPONENT_EDGE_LIMIT)
    by_type: dict[str, list[str]] = {}
    for component in result.components:
        by_type.setdefault(component.type, []).append(component.name)
    for kind, names in by_type.items():
        title = f"{kind[:1].upper()}{kind[1:]}s"
        group = builder.group(node_id(title), title)
        for name in names[:COMPONENTS_PER_TYPE]:
            builder.node(node_id(name), name, group=group)

    for component in result.components:
        if builder.full:
            break
        for dependency in component.dependencies[:DEPENDENCIES_PER_COMPONENT]:
            if not builder.edge(node_id(component.name), node_id(dependency)):
                break

    return _diagram(
        f"{result.repository} - Component Hierarchy",
        builder,
        "Component Hierarchy",
        [component.file_path for component in result.components],
    )


def graphql_diagram(result: AnalysisResult) -> Diagram:
    builder = GraphBuilder(direction="LR")
    api = builder.node("API", "GraphQL API", "cylinder")
    sections = [
        ("query", "Queries", "Q_", QUERY_NODE_LIMIT),
        ("mutation", "Mutations", "M_", MUTATION_NODE_LIMIT),
        ("fragment", "Fragments", "F_", FRAGMENT_NODE_LIMIT),
    ]
    for kind, group_id, prefix, limit in sections:
        operations = [operation for operation in result.graphql_operations if operation.type == kind][:limit]
        if not operations:
            continue
        group = builder.group(group_id, group_id)
        for operation in operations:
            shape = "parallelogram" if kind == "fragment" else "box"
            current = builder.node(f"{prefix}{node_id(operation.name)}", operation.name, shape, group)
            if kind != "fragment":
                builder.edge(current, api)

    return _diagram(
        f"{result.repository} - GraphQL Operations",
        builder,
        "GraphQL Operations",
        [operation.file_path for operation in result.graphql_operations],
    )


LINK_STYLES = {
    "api-call": "thick",
    "graphql-operation": "dotted",
}


def cross_repo_diagram(results: list[AnalysisResult], links: list[CrossRepoLink]) -> Diagram:
    builder = GraphBuilder(direction="TB")
    for result in results:
        repo_id = builder.group(node_id(result.repository), result.repository)
        builder.node(f"{repo_id}_pages", f"📄 {len(result.pages)} Pages", group=repo_id)
        builder.node(f"{repo_id}_gql", f"🔷 {len(result.graphql_operations)} GraphQL Ops", group=repo_id)
        builder.node(f"{repo_id}_comp", f"🧩 {len(result.components)} Components", group=repo_id)

    for link in links:
        builder.edge(
            f"{node_id(link.source_repo)}_gql",
            f"{node_id(link.target_repo)}_gql",
            LINK_STYLES.get(link.link_type, "solid"),
            link.link_type,
        )

    return _diagram(
        "Cross-Repository Architecture",
        builder,
        "Cross-Repository Architecture",
        [result.repository for result in results],
    )


def generate_diagrams(results: list[AnalysisResult], links: list[CrossRepoLink]) -> list[Diagram]:
    diagrams: list[Diagram] = []
    for result in results:
        diagrams.append(navigation_diagram(result))
        diagrams.append(data_flow_diagram(result))
        diagrams.append(component_diagram(result))
        diagrams.append(graphql_diagram(result))
    if len(results) > 1:
        diagrams.append(cross_repo_diagram(results, links))
    return diagrams
