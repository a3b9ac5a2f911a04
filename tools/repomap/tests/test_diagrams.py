from __future__ import annotations

from repomap.diagrams import (
    COMPONENT_EDGE_LIMIT,
    NAVIGATION_EDGE_LIMIT,
    component_diagram,
    data_flow_diagram,
    generate_diagrams,
    graphql_diagram,
    navigation_diagram,
)
from repomap.linker import extract_cross_repo_links
from repomap.render.mermaid import render_mermaid
from repomap.schemas import (
    AnalysisResult,
    AuthRequirement,
    ComponentInfo,
    DataFlow,
    DataFlowNode,
    DiagramGraph,
    GraphEdge,
    GraphNode,
    GraphQLOperation,
    PageInfo,
)


def _result(name: str = "web", **facts) -> AnalysisResult:
    return AnalysisResult(repository=name, timestamp="t", version="1.0.0", commit_hash="abc", **facts)


def _operation(name: str, kind: str = "query") -> GraphQLOperation:
    return GraphQLOperation(name=name, type=kind, file_path=f"src/graphql/{name}.graphql")


def test_navigation_edges_are_capped() -> None:
    pages = [
        PageInfo(
            path=f"/section/page-{index}",
            file_path=f"src/pages/section/page-{index}.tsx",
            component=f"Page{index}",
            linked_pages=[f"/section/page-{(index + 1) % 40}", f"/section/page-{(index + 2) % 40}"],
        )
        for index in range(40)
    ]

    diagram = navigation_diagram(_result(pages=pages))

    assert len(diagram.graph.nodes) == 40
    assert len(diagram.graph.edges) == NAVIGATION_EDGE_LIMIT
    assert diagram.title == "web - Page Navigation"
    assert diagram.content.count(" --> ") == NAVIGATION_EDGE_LIMIT


def test_navigation_groups_and_auth_classes() -> None:
    pages = [
        PageInfo(path="/", file_path="src/pages/index.tsx", component="Home", linked_pages=["/users/:id", "/missing"]),
        PageInfo(
            path="/users/:id",
            file_path="src/pages/users/[id].tsx",
            component="UserPage",
            authentication=AuthRequirement(required=False),
        ),
    ]

    graph = navigation_diagram(_result(pages=pages)).graph

    assert graph.groups == {"root": "Root Pages", "users": "/users"}
    assert [(node.id, node.label, node.css_class) for node in graph.nodes] == [
        ("P0", "/ AUTH", "authRequired"),
        ("P1", ":id", "public"),
    ]
    assert [(edge.source, edge.target) for edge in graph.edges] == [("P0", "P1")]


def test_component_edges_are_capped() -> None:
    components = [
        ComponentInfo(
            name=f"Widget{index}",
            file_path=f"src/common/components/Widget{index}.tsx",
            type="presentational",
            dependencies=[f"Dep{index}A", f"Dep{index}B", f"Dep{index}C", f"Dep{index}D"],
        )
        for index in range(30)
    ]

    diagram = component_diagram(_result(components=components))

    assert len(diagram.graph.edges) == COMPONENT_EDGE_LIMIT
    assert len([node for node in diagram.graph.nodes if node.group == "Presentationals"]) == 20


def test_data_flow_node_ids_are_stable() -> None:
    flows = [
        DataFlow(
            id="flow-1",
            name="📡 GetUser",
            description="",
            source=DataFlowNode(type="api", name="GraphQL: GetUser"),
            target=DataFlowNode(type="component", name="UserCard"),
            operations=["📡 Query: GetUser"],
        ),
        DataFlow(
            id="flow-2",
            name="✏️ UpdateUser",
            description="",
            source=DataFlowNode(type="component", name="UserCard"),
            target=DataFlowNode(type="api", name="GraphQL: UpdateUser"),
            operations=["✏️ Mutation: UpdateUser"],
        ),
    ]

    first = data_flow_diagram(_result(data_flows=flows))
    second = data_flow_diagram(_result(data_flows=flows))

    assert first.content == second.content
    assert [node.id for node in first.graph.nodes] == ["A0", "C1", "A2"]
    assert [(edge.source, edge.target) for edge in first.graph.edges] == [("A0", "C1"), ("C1", "A2")]
    assert first.graph.direction == "LR"


def test_graphql_diagram_shapes() -> None:
    operations = [_operation("GetUser"), _operation("SaveUser", "mutation"), _operation("UserFields", "fragment")]

    graph = graphql_diagram(_result(graphql_operations=operations)).graph

    assert [(node.id, node.shape) for node in graph.nodes] == [
        ("API", "cylinder"),
        ("Q_GetUser", "box"),
        ("M_SaveUser", "box"),
        ("F_UserFields", "parallelogram"),
    ]
    assert [(edge.source, edge.target) for edge in graph.edges] == [("Q_GetUser", "API"), ("M_SaveUser", "API")]


def test_cross_repo_diagram_only_for_several_repositories() -> None:
    web = _result("web", graphql_operations=[_operation("GetUser")])
    admin = _result("admin", graphql_operations=[_operation("GetUser")])

    assert len(generate_diagrams([web], [])) == 4

    links = extract_cross_repo_links([web, admin])
    diagrams = generate_diagrams([web, admin], links)
    cross = diagrams[-1]

    assert len(diagrams) == 9
    assert cross.title == "Cross-Repository Architecture"
    assert cross.graph.edges == [GraphEdge(source="web_gql", target="admin_gql", style="dotted", label="graphql-operation")]


def test_shared_operation_links_first_two_repositories() -> None:
    results = [
        _result("web", graphql_operations=[_operation("GetUser"), _operation("GetUser")]),
        _result("admin", graphql_operations=[_operation("GetUser"), _operation("ListOrders")]),
        _result("mobile", graphql_operations=[_operation("GetUser")]),
    ]

    links = extract_cross_repo_links(results)

    assert [(link.source_repo, link.target_repo, link.source_path) for link in links] == [
        ("web", "admin", "graphql/GetUser")
    ]
    assert extract_cross_repo_links(results[:1]) == []


def test_mermaid_text() -> None:
    graph = DiagramGraph(
        direction="LR",
        nodes=[
            GraphNode(id="API", label="GraphQL API", shape="cylinder"),
            GraphNode(id="Q_A", label='Say "hi"', group="Queries", css_class="query"),
        ],
        edges=[GraphEdge(source="Q_A", target="API", style="dotted", label="uses")],
        groups={"Queries": "Queries"},
    )

    assert render_mermaid(graph, "Demo").splitlines() == [
        "flowchart LR",
        "  %% Demo",
        '  API[("GraphQL API")]',
        "",
        "  subgraph Queries",
        "    direction TB",
        '    Q_A["Say #quot;hi#quot;"]',
        "  end",
        "",
        '  Q_A -.->|"uses"| API',
        "",
        "  classDef query fill:#dbeafe,stroke:#3b82f6,color:#1e40af",
        "  class Q_A query",
    ]
