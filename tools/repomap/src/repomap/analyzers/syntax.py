"""Tree-sitter helpers shared by the JS/TS analyzers."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Node, Parser, Tree

TS_LANGUAGE = Language(ts_typescript.language_typescript())
TSX_LANGUAGE = Language(ts_typescript.language_tsx())

# .tsx grammar is a superset that also accepts JSX in plain .js files
_TS_ONLY_SUFFIXES = {".ts", ".mts", ".cts"}

FUNCTION_NODES = {"function_declaration", "generator_function_declaration"}
FUNCTION_VALUE_NODES = {"arrow_function", "function_expression", "function"}


@dataclass(slots=True)
class SourceFile:
    rel_path: str
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def has_error(self) -> bool:
        return self.tree.root_node.has_error

    @property
    def text(self) -> str:
        return self.source.decode("utf-8")


@dataclass(slots=True)
class ImportRef:
    spec: str
    line: int
    kind: str = "import"
    default: str | None = None
    namespace: str | None = None
    names: dict[str, str] = field(default_factory=dict)
    type_only: bool = False

    def local_names(self) -> list[str]:
        output = list(self.names)
        if self.default:
            output.append(self.default)
        if self.namespace:
            output.append(self.namespace)
        return output


def parse_source(rel_path: str, source: bytes) -> SourceFile:
    tsx = Path(rel_path).suffix.lower() not in _TS_ONLY_SUFFIXES
    # parsers are not shared: analyzers run on worker threads
    tree = Parser(TSX_LANGUAGE if tsx else TS_LANGUAGE).parse(source)
    return SourceFile(rel_path=rel_path, source=source, tree=tree)


def load_source(path: Path, rel_path: str) -> SourceFile:
    """Read and parse a file. Raises OSError/UnicodeDecodeError for unreadable input."""
    source = path.read_bytes()
    source.decode("utf-8")
    return parse_source(rel_path, source)


def text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line(node: Node) -> int:
    return node.start_point[0] + 1


def walk(node: Node) -> Iterator[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def nodes_of_type(node: Node, *types: str) -> Iterator[Node]:
    wanted = set(types)
    for item in walk(node):
        if item.type in wanted:
            yield item


def callee_text(call: Node) -> str:
    return text(call.child_by_field_name("function")).replace("?.", ".")


def call_arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    if args.type == "template_string":
        return [args]
    return [item for item in args.named_children if item.type != "comment"]


def type_argument_names(call: Node) -> list[str]:
    type_args = call.child_by_field_name("type_arguments")
    if type_args is None:
        return []
    return [text(item) for item in type_args.named_children]


def is_tagged_template(call: Node) -> bool:
    args = call.child_by_field_name("arguments")
    return args is not None and args.type == "template_string"


def template_text(node: Node, substitution: str | None = None) -> str:
    """Body of a template literal; ``${...}`` parts are kept or replaced."""
    raw = node.text or b""
    if substitution is None:
        return raw[1:-1].decode("utf-8", errors="replace")
    base = node.start_byte
    parts: list[bytes] = []
    cursor = 1
    for child in node.named_children:
        if child.type != "template_substitution":
            continue
        parts.append(raw[cursor : child.start_byte - base])
        parts.append(substitution.encode("utf-8"))
        cursor = child.end_byte - base
    parts.append(raw[cursor:-1])
    return b"".join(parts).decode("utf-8", errors="replace")


def has_substitution(node: Node) -> bool:
    return any(child.type == "template_substitution" for child in node.named_children)


def string_value(node: Node | None, substitution: str = ":param") -> str | None:
    if node is None:
        return None
    if node.type == "string":
        return text(node)[1:-1]
    if node.type == "template_string":
        return template_text(node, substitution)
    return None


def is_string_like(node: Node | None) -> bool:
    return node is not None and node.type in {"string", "template_string"}


def object_property(obj: Node | None, key: str) -> Node | None:
    if obj is None or obj.type != "object":
        return None
    for child in obj.named_children:
        if child.type == "pair":
            name = text(child.child_by_field_name("key")).strip("\"'")
            if name == key:
                return child.child_by_field_name("value")
        elif child.type == "shorthand_property_identifier" and text(child) == key:
            return child
    return None


def object_keys(obj: Node | None) -> list[str]:
    if obj is None or obj.type != "object":
        return []
    keys: list[str] = []
    for child in obj.named_children:
        if child.type == "pair":
            keys.append(text(child.child_by_field_name("key")).strip("\"'"))
        elif child.type == "shorthand_property_identifier":
            keys.append(text(child))
    return keys


def find_ancestor(node: Node, types: set[str]) -> Node | None:
    current = node.parent
    while current is not None:
        if current.type in types:
            return current
        current = current.parent
    return None


def containing_function(node: Node) -> str:
    """Name of the nearest enclosing function, method or function-valued declarator."""
    current: Node | None = node
    while current is not None:
        if current.type in FUNCTION_NODES:
            name = current.child_by_field_name("name")
            return text(name) if name is not None else "anonymous"
        if current.type == "method_definition":
            return text(current.child_by_field_name("name"))
        if current.type in FUNCTION_VALUE_NODES:
            declarator = _owning_declarator(current)
            if declarator is not None:
                return text(declarator.child_by_field_name("name"))
        current = current.parent
    return "unknown"


def _owning_declarator(fn: Node) -> Node | None:
    # const load = () => ... / const Card = memo(function () { ... })
    candidate = fn.parent
    if candidate is not None and candidate.type == "arguments":
        candidate = candidate.parent.parent if candidate.parent is not None else None
    if candidate is None or candidate.type != "variable_declarator":
        return None
    name = candidate.child_by_field_name("name")
    if name is None or name.type != "identifier":
        return None
    found = declarator_function(candidate)
    if found is None or found.id != fn.id:
        return None
    return candidate


def declarator_function(declarator: Node) -> Node | None:
    value = declarator.child_by_field_name("value")
    if value is None:
        return None
    # memo(...) / forwardRef(...) wrappers
    if value.type == "call_expression":
        args = call_arguments(value)
        if args and args[0].type in FUNCTION_VALUE_NODES:
            return args[0]
    if value.type in FUNCTION_VALUE_NODES:
        return value
    return None


def extract_imports(root: Node) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for node in walk(root):
        if node.type == "import_statement":
            ref = _import_statement(node)
            if ref is not None:
                imports.append(ref)
        elif node.type == "export_statement":
            source = node.child_by_field_name("source")
            if source is not None:
                ref = ImportRef(spec=string_value(source) or "", line=line(node), kind="export")
                clause = next((item for item in node.named_children if item.type == "export_clause"), None)
                if clause is not None:
                    for spec in clause.named_children:
                        if spec.type != "export_specifier":
                            continue
                        name = text(spec.child_by_field_name("name"))
                        alias = spec.child_by_field_name("alias")
                        ref.names[text(alias) if alias is not None else name] = name
                imports.append(ref)
        elif node.type == "call_expression":
            function = node.child_by_field_name("function")
            args = call_arguments(node)
            if function is None or not args or args[0].type != "string":
                continue
            if function.type == "import":
                imports.append(ImportRef(spec=string_value(args[0]) or "", line=line(node), kind="dynamic"))
            elif function.type == "identifier" and text(function) == "require":
                imports.append(ImportRef(spec=string_value(args[0]) or "", line=line(node), kind="require"))
    return [item for item in imports if item.spec]


def _import_statement(node: Node) -> ImportRef | None:
    source = node.child_by_field_name("source")
    if source is None:
        require = next((item for item in node.named_children if item.type == "import_require_clause"), None)
        if require is None:
            return None
        source = require.child_by_field_name("source")
    spec = string_value(source)
    if not spec:
        return None
    ref = ImportRef(
        spec=spec,
        line=line(node),
        type_only=any(child.type == "type" for child in node.children),
    )
    clause = next((item for item in node.named_children if item.type == "import_clause"), None)
    if clause is None:
        return ref
    for child in clause.named_children:
        if child.type == "identifier":
            ref.default = text(child)
        elif child.type == "namespace_import":
            ident = next((item for item in child.named_children if item.type == "identifier"), None)
            ref.namespace = text(ident) if ident is not None else None
        elif child.type == "named_imports":
            for spec_node in child.named_children:
                if spec_node.type != "import_specifier":
                    continue
                name = text(spec_node.child_by_field_name("name"))
                alias = spec_node.child_by_field_name("alias")
                ref.names[text(alias) if alias is not None else name] = name
    return ref


def jsx_elements(root: Node) -> Iterator[Node]:
    return nodes_of_type(root, "jsx_opening_element", "jsx_self_closing_element")


def jsx_name(element: Node) -> str:
    return text(element.child_by_field_name("name"))


def jsx_attributes(element: Node) -> dict[str, Node | None]:
    attributes: dict[str, Node | None] = {}
    for child in element.named_children:
        if child.type != "jsx_attribute" or not child.named_children:
            continue
        name = text(child.named_children[0])
        value = child.named_children[-1] if len(child.named_children) > 1 else None
        attributes[name] = value
    return attributes


def jsx_attribute_string(value: Node | None) -> str | None:
    """Literal value of a JSX attribute (``"x"`` or ``{"x"}``/``{`x`}``)."""
    if value is None:
        return None
    if value.type == "string":
        return string_value(value)
    if value.type == "jsx_expression" and value.named_children:
        inner = value.named_children[0]
        if is_string_like(inner):
            return string_value(inner)
    return None
