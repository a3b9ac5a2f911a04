from __future__ import annotations

import re

from tree_sitter import Node

from repomap.analyzers.base import BaseAnalyzer
from repomap.analyzers.common import FactBag
from repomap.analyzers.hooks import clean_operation_name
from repomap.analyzers.syntax import (
    FUNCTION_VALUE_NODES,
    ImportRef,
    SourceFile,
    call_arguments,
    callee_text,
    declarator_function,
    extract_imports,
    load_source,
    nodes_of_type,
    text,
)
from repomap.schemas import ComponentInfo, CoverageMetrics, DataFlow, DataFlowNode, PropInfo

COMPONENT_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
PROP_DRILLING_THRESHOLD = 5

# (marker in component source, label)
STATE_PATTERNS = [
    ("useState", "useState"),
    ("useReducer", "useReducer"),
    ("useContext", "useContext"),
    ("useQuery", "Apollo Query"),
    ("useMutation", "Apollo Mutation"),
    ("useRecoil", "Recoil"),
]


def is_component_name(name: str) -> bool:
    return bool(COMPONENT_RE.match(name))


def component_type(name: str, file_path: str) -> str:
    if "/pages/" in f"/{file_path}":
        return "page"
    if "Container" in name or "Provider" in name:
        return "container"
    if "Layout" in name:
        return "layout"
    return "presentational"


def operation_label(hook: str, call: Node) -> str:
    args = call_arguments(call)
    if not args:
        return hook
    name = clean_operation_name(text(args[0]))
    if hook == "useMutation":
        return f"✏️ Mutation: {name}"
    return f"📡 Query: {name}"


def context_label(call: Node) -> str:
    args = call_arguments(call)
    if not args:
        return "useContext"
    return f"🔄 Context: {re.sub(r'Context$', '', text(args[0]))}"


def hooks_used(node: Node) -> list[str]:
    hooks: list[str] = []
    for call in nodes_of_type(node, "call_expression"):
        name = callee_text(call)
        if not name.startswith("use"):
            continue
        if name in {"useQuery", "useMutation", "useLazyQuery"}:
            label = operation_label(name, call)
        elif name == "useContext":
            label = context_label(call)
        else:
            label = name
        if label not in hooks:
            hooks.append(label)
    return hooks


def state_management(node: Node) -> list[str]:
    body = text(node)
    found = [label for marker, label in STATE_PATTERNS if marker in body]
    if "useSelector" in body or "useDispatch" in body:
        found.append("Redux")
    return found


def local_dependencies(imports: list[ImportRef]) -> tuple[list[str], list[str]]:
    """Component/hook names and module specifiers imported from the project itself."""
    names: list[str] = []
    specs: list[str] = []
    for ref in imports:
        if ref.kind != "import" or not ref.spec.startswith((".", "@/")):
            continue
        specs.append(ref.spec)
        for local, imported in ref.names.items():
            if is_component_name(imported) or imported.startswith("use"):
                names.append(local)
        if ref.default and is_component_name(ref.default):
            names.append(ref.default)
    return names, specs


def _members(type_node: Node | None) -> list[PropInfo]:
    if type_node is None:
        return []
    props: list[PropInfo] = []
    for member in type_node.named_children:
        if member.type != "property_signature":
            continue
        annotation = member.child_by_field_name("type")
        props.append(
            PropInfo(
                name=text(member.child_by_field_name("name")),
                type=text(annotation).lstrip(":").strip() if annotation is not None else "any",
                required=not any(child.type == "?" for child in member.children),
            )
        )
    return props


def _local_types(root: Node) -> dict[str, Node]:
    declared: dict[str, Node] = {}
    for node in nodes_of_type(root, "interface_declaration", "type_alias_declaration"):
        name = text(node.child_by_field_name("name"))
        body = node.child_by_field_name("body") or node.child_by_field_name("value")
        if name and body is not None:
            declared[name] = body
    return declared


def extract_props(function: Node, local_types: dict[str, Node]) -> list[PropInfo]:
    params = function.child_by_field_name("parameters")
    if params is None:
        return []
    first = next((item for item in params.named_children if item.type in {"required_parameter", "optional_parameter"}), None)
    if first is None:
        return []
    annotation = first.child_by_field_name("type")
    if annotation is None or not annotation.named_children:
        return []
    type_node = annotation.named_children[0]
    if type_node.type == "object_type":
        return _members(type_node)
    # Props, React.FC<Props> style references resolved within the same file
    reference = text(type_node).split("<", 1)[0]
    return _members(local_types.get(reference))


class DataFlowAnalyzer(BaseAnalyzer):
    """Components, hooks and the data flows between them."""

    name = "dataflow"

    def run(self) -> FactBag:
        coverage = CoverageMetrics()
        components: list[ComponentInfo] = []
        roots = [
            self.get_setting("features_dir", "src/features"),
            self.get_setting("components_dir", "src/common/components"),
            self.get_setting("pages_dir", "src/pages"),
        ]
        seen: set[str] = set()
        for root in roots:
            for rel in self.glob_files(["**/*.tsx"], root=root.strip("/")):
                if rel in seen:
                    continue
                seen.add(rel)
                try:
                    source = load_source(self.resolve_path(rel), rel)
                except (OSError, UnicodeDecodeError) as exc:
                    self.logger.debug("skip %s: %s", rel, exc)
                    continue
                coverage.ts_files_scanned += 1
                if source.has_error:
                    coverage.ts_parse_failures += 1
                try:
                    components.extend(self.extract_components(source))
                except Exception as exc:
                    self.logger.warning("failed to analyze %s: %s", rel, exc)

        link_dependents(components)
        flows = build_data_flows(components)
        self.logger.info("found %s components and %s data flows", len(components), len(flows))
        return FactBag(components=components, data_flows=flows, coverage=coverage)

    def extract_components(self, source: SourceFile) -> list[ComponentInfo]:
        imports = extract_imports(source.root)
        dependencies, specs = local_dependencies(imports)
        local_types = _local_types(source.root)

        found: list[tuple[str, Node, bool]] = []
        for statement in source.root.named_children:
            node = statement
            if node.type == "export_statement":
                node = node.child_by_field_name("declaration") or node
            if node.type == "function_declaration":
                name = text(node.child_by_field_name("name"))
                if is_component_name(name):
                    found.append((name, node, False))
                elif name.startswith("use"):
                    found.append((name, node, True))
            elif node.type in {"lexical_declaration", "variable_declaration"}:
                for declarator in node.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    name = text(declarator.child_by_field_name("name"))
                    function = declarator_function(declarator)
                    if function is not None and function.type in FUNCTION_VALUE_NODES and is_component_name(name):
                        found.append((name, function, False))

        components: list[ComponentInfo] = []
        for name, node, is_hook in found:
            components.append(
                ComponentInfo(
                    name=name,
                    file_path=source.rel_path,
                    type="hook" if is_hook else component_type(name, source.rel_path),
                    props=extract_props(node, local_types),
                    dependencies=list(dependencies),
                    hooks=hooks_used(node),
                    state_management=state_management(node),
                    imports=list(specs),
                )
            )
        return components


def link_dependents(components: list[ComponentInfo]) -> None:
    by_name = {component.name: component for component in components}
    for component in components:
        for dependency in component.dependencies:
            target = by_name.get(dependency)
            if target is not None and component.name not in target.dependents:
                target.dependents.append(component.name)


def _context_flows(components: list[ComponentInfo]) -> list[DataFlow]:
    flows: list[DataFlow] = []
    providers = [item for item in components if "Provider" in item.name or "Context" in item.name]
    consumers = [item for item in components if any("Context" in hook for hook in item.hooks)]
    for provider in providers:
        context = provider.name.replace("Provider", "", 1).replace("Context", "", 1)
        for consumer in consumers:
            hook = next((item for item in consumer.hooks if "Context" in item and context in item), None)
            if hook is None and not any(context in item for item in consumer.hooks):
                continue
            flows.append(
                DataFlow(
                    id="",
                    name=f"🔄 {context} Context",
                    description=f"Data flows from {provider.name} to {consumer.name} via Context",
                    source=DataFlowNode(type="context", name=provider.name),
                    target=DataFlowNode(type="component", name=consumer.name),
                    operations=[hook or f"useContext({context})"],
                )
            )
    return flows


def _operation(hook: str, fallback: str) -> str:
    return hook.split(":", 1)[1].strip() if ":" in hook else fallback


def _apollo_flows(components: list[ComponentInfo]) -> list[DataFlow]:
    flows: list[DataFlow] = []
    for component in components:
        for hook in component.hooks:
            if "Query:" in hook or hook in {"useQuery", "useLazyQuery"}:
                operation = _operation(hook, component.name)
                flows.append(
                    DataFlow(
                        id="",
                        name=f"📡 {operation}",
                        description=f"{component.name} fetches {operation} via Apollo",
                        source=DataFlowNode(type="api", name=f"GraphQL: {operation}"),
                        target=DataFlowNode(type="component", name=component.name),
                        via=[DataFlowNode(type="cache", name="Apollo Cache")],
                        operations=[hook],
                    )
                )
        for hook in component.hooks:
            if "Mutation:" in hook or hook == "useMutation":
                operation = _operation(hook, component.name)
                flows.append(
                    DataFlow(
                        id="",
                        name=f"✏️ {operation}",
                        description=f"{component.name} mutates {operation} via Apollo",
                        source=DataFlowNode(type="component", name=component.name),
                        target=DataFlowNode(type="api", name=f"GraphQL: {operation}"),
                        operations=[hook],
                    )
                )
    return flows


def _prop_drilling_flows(components: list[ComponentInfo]) -> list[DataFlow]:
    return [
        DataFlow(
            id="",
            name=f"Prop Drilling through {component.name}",
            description=f"{component.name} passes {len(component.props)} props to children",
            source=DataFlowNode(type="component", name=component.name),
            target=DataFlowNode(type="component", name=component.dependents[0]),
            operations=["props"],
        )
        for component in components
        if len(component.props) > PROP_DRILLING_THRESHOLD and component.dependents
    ]


def build_data_flows(components: list[ComponentInfo]) -> list[DataFlow]:
    flows = _context_flows(components) + _apollo_flows(components) + _prop_drilling_flows(components)
    for index, flow in enumerate(flows, start=1):
        flow.id = f"flow-{index}"
    return flows
