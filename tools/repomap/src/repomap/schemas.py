from __future__ import annotations

import types
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from typing import Any, Union, get_args, get_origin, get_type_hints


def _coerce(annotation: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        options = [item for item in get_args(annotation) if item is not type(None)]
        return _coerce(options[0], value) if len(options) == 1 else value
    if origin is list:
        args = get_args(annotation)
        inner = args[0] if args else Any
        return [_coerce(inner, item) for item in value]
    if origin is dict:
        return dict(value)
    if isinstance(annotation, type) and is_dataclass(annotation) and isinstance(value, dict):
        return annotation.from_dict(value)
    return value


class Serializable:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """Rebuild an instance (and its nested dataclasses) from ``to_dict`` output."""
        hints = get_type_hints(cls)
        kwargs: dict[str, Any] = {}
        for item in fields(cls):
            if item.name in data:
                kwargs[item.name] = _coerce(hints[item.name], data[item.name])
        return cls(**kwargs)


@dataclass(slots=True)
class APICall(Serializable):
    id: str
    method: str
    url: str
    call_type: str
    file_path: str
    line: int
    containing_function: str = "unknown"
    used_in: list[str] = field(default_factory=list)
    requires_auth: bool = False
    category: str | None = None


@dataclass(slots=True)
class AuthRequirement(Serializable):
    required: bool = True
    roles: list[str] = field(default_factory=list)
    condition: str | None = None


@dataclass(slots=True)
class DataFetchingInfo(Serializable):
    type: str
    operation_name: str | None = None
    variables: list[str] = field(default_factory=list)
    source: str | None = None
    confidence: str | None = None
    evidence: list[str] = field(default_factory=list)


@dataclass(slots=True)
class NavigationInfo(Serializable):
    visible: bool = True
    current_nav_item: str | None = None
    mini: bool = False


@dataclass(slots=True)
class StepInfo(Serializable):
    id: int | str
    name: str
    component: str | None = None
    condition: str | None = None


@dataclass(slots=True)
class PageInfo(Serializable):
    path: str
    file_path: str
    component: str
    params: list[str] = field(default_factory=list)
    layout: str | None = None
    authentication: AuthRequirement = field(default_factory=AuthRequirement)
    permissions: list[str] = field(default_factory=list)
    data_fetching: list[DataFetchingInfo] = field(default_factory=list)
    navigation: NavigationInfo = field(default_factory=NavigationInfo)
    linked_pages: list[str] = field(default_factory=list)
    steps: list[StepInfo] = field(default_factory=list)


@dataclass(slots=True)
class VariableInfo(Serializable):
    name: str
    type: str
    required: bool = False


@dataclass(slots=True)
class GraphQLField(Serializable):
    name: str
    type: str | None = None
    fields: list[GraphQLField] = field(default_factory=list)


@dataclass(slots=True)
class GraphQLOperation(Serializable):
    name: str
    type: str
    file_path: str
    line: int = 1
    used_in: list[str] = field(default_factory=list)
    variables: list[VariableInfo] = field(default_factory=list)
    return_type: str = "unknown"
    fragments: list[str] = field(default_factory=list)
    fields: list[GraphQLField] = field(default_factory=list)
    variable_names: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PropInfo(Serializable):
    name: str
    type: str
    required: bool = True


@dataclass(slots=True)
class ComponentInfo(Serializable):
    name: str
    file_path: str
    type: str
    props: list[PropInfo] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    hooks: list[str] = field(default_factory=list)
    state_management: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DataFlowNode(Serializable):
    type: str
    name: str


@dataclass(slots=True)
class DataFlow(Serializable):
    id: str
    name: str
    description: str
    source: DataFlowNode
    target: DataFlowNode
    via: list[DataFlowNode] = field(default_factory=list)
    operations: list[str] = field(default_factory=list)


@dataclass(slots=True)
class APIEndpoint(Serializable):
    method: str
    path: str
    controller: str
    action: str
    authentication: bool = False
    permissions: list[str] = field(default_factory=list)
    file_path: str = ""
    line: int = 0


@dataclass(slots=True)
class AssociationInfo(Serializable):
    type: str
    name: str
    model: str | None = None
    foreign_key: str | None = None


@dataclass(slots=True)
class ModelInfo(Serializable):
    name: str
    file_path: str
    table_name: str | None = None
    attributes: list[str] = field(default_factory=list)
    associations: list[AssociationInfo] = field(default_factory=list)
    validations: list[str] = field(default_factory=list)
    scopes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CoverageMetrics(Serializable):
    ts_files_scanned: int = 0
    ts_parse_failures: int = 0
    graphql_parse_failures: int = 0
    codegen_files_detected: int = 0
    codegen_files_parsed: int = 0
    codegen_exports_found: int = 0

    def add(self, other: CoverageMetrics) -> None:
        self.ts_files_scanned += other.ts_files_scanned
        self.ts_parse_failures += other.ts_parse_failures
        self.graphql_parse_failures += other.graphql_parse_failures
        self.codegen_files_detected += other.codegen_files_detected
        self.codegen_files_parsed += other.codegen_files_parsed
        self.codegen_exports_found += other.codegen_exports_found


@dataclass(slots=True)
class CrossRepoLink(Serializable):
    source_repo: str
    source_path: str
    target_repo: str
    target_path: str
    link_type: str
    description: str


@dataclass(slots=True)
class AnalysisResult(Serializable):
    repository: str
    timestamp: str
    version: str
    commit_hash: str
    coverage: CoverageMetrics = field(default_factory=CoverageMetrics)
    pages: list[PageInfo] = field(default_factory=list)
    graphql_operations: list[GraphQLOperation] = field(default_factory=list)
    api_calls: list[APICall] = field(default_factory=list)
    components: list[ComponentInfo] = field(default_factory=list)
    data_flows: list[DataFlow] = field(default_factory=list)
    api_endpoints: list[APIEndpoint] = field(default_factory=list)
    models: list[ModelInfo] = field(default_factory=list)
    cross_repo_links: list[CrossRepoLink] = field(default_factory=list)


@dataclass(slots=True)
class RepositorySummary(Serializable):
    total_pages: int = 0
    total_components: int = 0
    total_graphql_operations: int = 0
    total_data_flows: int = 0
    total_api_calls: int = 0
    auth_required_pages: int = 0
    public_pages: int = 0


@dataclass(slots=True)
class RepositoryReport(Serializable):
    name: str
    display_name: str
    version: str
    commit_hash: str
    analysis: AnalysisResult
    summary: RepositorySummary
    from_cache: bool = False


@dataclass(slots=True)
class APIConnection(Serializable):
    frontend: str
    backend: str
    endpoint: str
    operations: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CrossRepoAnalysis(Serializable):
    shared_types: list[str] = field(default_factory=list)
    api_connections: list[APIConnection] = field(default_factory=list)
    links: list[CrossRepoLink] = field(default_factory=list)


@dataclass(slots=True)
class GraphNode(Serializable):
    id: str
    label: str
    shape: str = "box"
    group: str | None = None
    css_class: str | None = None


@dataclass(slots=True)
class GraphEdge(Serializable):
    source: str
    target: str
    style: str = "solid"
    label: str | None = None


@dataclass(slots=True)
class DiagramGraph(Serializable):
    direction: str = "TB"
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    groups: dict[str, str] = field(default_factory=dict)
    edge_limit: int | None = None


@dataclass(slots=True)
class Diagram(Serializable):
    type: str
    title: str
    content: str
    related_files: list[str] = field(default_factory=list)
    graph: DiagramGraph = field(default_factory=DiagramGraph)


@dataclass(slots=True)
class DocumentationReport(Serializable):
    generated_at: str
    repositories: list[RepositoryReport] = field(default_factory=list)
    cross_repo_analysis: CrossRepoAnalysis | None = None
    diagrams: list[Diagram] = field(default_factory=list)


@dataclass(slots=True)
class ResolvedModuleEvidence(Serializable):
    from_file: str
    specifier: str
    resolved_file: str
    config_file: str | None = None


@dataclass(slots=True)
class ResolvedModule(Serializable):
    file: str
    evidence: ResolvedModuleEvidence


@dataclass(slots=True)
class RepositoryDiff(Serializable):
    name: str
    added_pages: list[str] = field(default_factory=list)
    removed_pages: list[str] = field(default_factory=list)
    added_operations: list[str] = field(default_factory=list)
    removed_operations: list[str] = field(default_factory=list)
    added_components: list[str] = field(default_factory=list)
    removed_components: list[str] = field(default_factory=list)
    added_api_calls: list[str] = field(default_factory=list)
    removed_api_calls: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (
                self.added_pages,
                self.removed_pages,
                self.added_operations,
                self.removed_operations,
                self.added_components,
                self.removed_components,
                self.added_api_calls,
                self.removed_api_calls,
            )
        )


@dataclass(slots=True)
class DiffReport(Serializable):
    base_generated_at: str
    head_generated_at: str
    generated_at: str
    added_repositories: list[str] = field(default_factory=list)
    removed_repositories: list[str] = field(default_factory=list)
    repositories: list[RepositoryDiff] = field(default_factory=list)
