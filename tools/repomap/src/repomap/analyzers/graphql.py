from __future__ import annotations

import re
from enum import Enum
from typing import Any

from graphql import GraphQLError, get_location, parse
from graphql.language import Node as GraphQLNode
from tree_sitter import Node

from repomap.analyzers.base import BaseAnalyzer
from repomap.analyzers.common import FactBag
from repomap.analyzers.hooks import has_graphql_indicators, is_graphql_hook
from repomap.analyzers.syntax import (
    SourceFile,
    call_arguments,
    find_ancestor,
    line,
    load_source,
    nodes_of_type,
    parse_source,
    string_value,
    template_text,
    text,
)
from repomap.schemas import CoverageMetrics, GraphQLField, GraphQLOperation, VariableInfo

CODEGEN_PATTERNS = [
    "**/__generated__/graphql.ts",
    "**/__generated__/gql.ts",
    "**/generated/graphql.ts",
    "**/generated/gql.ts",
    "**/*.generated.ts",
    "**/*.generated.tsx",
    "**/graphql/generated.ts",
    "**/gql/generated.ts",
]
BUILD_IGNORE = ["**/node_modules/**", "**/.next/**", "**/dist/**", "**/build/**"]
USAGE_IGNORE = BUILD_IGNORE + ["**/__generated__/**"]
MAX_FIELD_DEPTH = 5
GQL_TAGS = {"gql", "graphql"}
_WRAPPER_NODES = {"parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression", "type_assertion"}


def _pascal(kind: str) -> str:
    return "".join(part.capitalize() for part in kind.split("_"))


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_plain(value: Any) -> Any:
    """graphql-core AST → the JSON document shape codegen emits (``kind: "Field"`` …)."""
    if isinstance(value, GraphQLNode):
        out: dict[str, Any] = {"kind": _pascal(value.kind)}
        for key in value.keys:
            if key == "loc":
                continue
            out[_camel(key)] = to_plain(getattr(value, key, None))
        return out
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _name(node: dict[str, Any] | None) -> str | None:
    if not isinstance(node, dict):
        return None
    name = node.get("name")
    if isinstance(name, dict) and isinstance(name.get("value"), str):
        return name["value"]
    return None


def type_to_string(type_node: dict[str, Any] | None) -> str:
    if not isinstance(type_node, dict):
        return "unknown"
    kind = type_node.get("kind")
    if kind == "NonNullType":
        return f"{type_to_string(type_node.get('type'))}!"
    if kind == "ListType":
        return f"[{type_to_string(type_node.get('type'))}]"
    if kind == "NamedType":
        return _name(type_node) or "unknown"
    return "unknown"


def extract_fields(selection_set: dict[str, Any] | None, depth: int = 0) -> list[GraphQLField]:
    if not isinstance(selection_set, dict) or depth > MAX_FIELD_DEPTH:
        return []
    fields: list[GraphQLField] = []
    for selection in selection_set.get("selections") or []:
        kind = selection.get("kind")
        if kind == "Field":
            item = GraphQLField(name=_name(selection) or "unknown")
            arguments = selection.get("arguments") or []
            if arguments:
                item.type = f"({', '.join(_name(arg) or '' for arg in arguments)})"
            if selection.get("selectionSet"):
                item.fields = extract_fields(selection["selectionSet"], depth + 1)
            fields.append(item)
        elif kind == "FragmentSpread":
            fields.append(GraphQLField(name=f"...{_name(selection)}", type="fragment"))
        elif kind == "InlineFragment" and selection.get("selectionSet"):
            type_name = _name(selection.get("typeCondition")) or "inline"
            fields.append(
                GraphQLField(
                    name=f"... on {type_name}",
                    type="inline-fragment",
                    fields=extract_fields(selection["selectionSet"], depth + 1),
                )
            )
    return fields


def fragment_references(definition: dict[str, Any]) -> list[str]:
    found: list[str] = []
    stack = [definition]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        if node.get("kind") == "FragmentSpread" and _name(node):
            found.append(_name(node) or "")
        selection_set = node.get("selectionSet")
        if isinstance(selection_set, dict):
            stack.extend(reversed(selection_set.get("selections") or []))
    return found


def infer_return_type(definition: dict[str, Any]) -> str:
    selections = (definition.get("selectionSet") or {}).get("selections") or []
    if selections and selections[0].get("kind") == "Field":
        return _name(selections[0]) or "unknown"
    return "unknown"


def operation_from_definition(definition: dict[str, Any], file_path: str, line_no: int) -> GraphQLOperation | None:
    kind = definition.get("kind")
    if kind == "OperationDefinition":
        variables = [
            VariableInfo(
                name=_name(item.get("variable")) or "unknown",
                type=type_to_string(item.get("type")),
                required=(item.get("type") or {}).get("kind") == "NonNullType",
            )
            for item in definition.get("variableDefinitions") or []
        ]
        return GraphQLOperation(
            name=_name(definition) or "anonymous",
            type=str(definition.get("operation") or "query"),
            file_path=file_path,
            line=line_no,
            variables=variables,
            return_type=infer_return_type(definition),
            fragments=fragment_references(definition),
            fields=extract_fields(definition.get("selectionSet")),
        )
    if kind == "FragmentDefinition":
        return GraphQLOperation(
            name=_name(definition) or "anonymous",
            type="fragment",
            file_path=file_path,
            line=line_no,
            return_type=_name(definition.get("typeCondition")) or "unknown",
            fragments=fragment_references(definition),
            fields=extract_fields(definition.get("selectionSet")),
        )
    return None


def operations_from_source(source: str, file_path: str, line_offset: int = 0) -> list[GraphQLOperation]:
    """Parse a GraphQL document; raises GraphQLError on invalid syntax."""
    document = parse(source)
    operations: list[GraphQLOperation] = []
    for definition in document.definitions:
        line_no = 1
        if definition.loc is not None:
            line_no = get_location(definition.loc.source, definition.loc.start).line
        operation = operation_from_definition(to_plain(definition), file_path, line_no + line_offset)
        if operation is not None:
            operations.append(operation)
    return operations


def dedupe_operations(operations: list[GraphQLOperation]) -> list[GraphQLOperation]:
    seen: dict[str, GraphQLOperation] = {}
    for operation in operations:
        existing = seen.get(operation.name)
        if existing is None:
            seen[operation.name] = operation
            continue
        for path in operation.used_in:
            if path not in existing.used_in:
                existing.used_in.append(path)
        for name in operation.variable_names:
            if name not in existing.variable_names:
                existing.variable_names.append(name)
    return list(seen.values())


def js_value(node: Node | None) -> Any:
    """Literal JS value of an object/array/string/number/boolean node; anything else is None."""
    if node is None:
        return None
    if node.type == "object":
        out: dict[str, Any] = {}
        for child in node.named_children:
            if child.type != "pair":
                continue
            key_node = child.child_by_field_name("key")
            if key_node is None or key_node.type == "computed_property_name":
                continue
            key = string_value(key_node) if key_node.type == "string" else text(key_node)
            out[key or ""] = js_value(child.child_by_field_name("value"))
        return out
    if node.type == "array":
        return [js_value(item) for item in node.named_children if item.type != "comment"]
    if node.type in {"string", "template_string"}:
        return string_value(node, "")
    if node.type == "number":
        raw = text(node)
        try:
            return int(raw)
        except ValueError:
            try:
                return float(raw)
            except ValueError:
                return None
    if node.type == "true":
        return True
    if node.type == "false":
        return False
    return None


def _unwrap(node: Node | None) -> Node | None:
    while node is not None and node.type in _WRAPPER_NODES:
        node = node.named_children[0] if node.named_children else None
    return node


def codegen_document_exports(source: SourceFile) -> list[tuple[str, dict[str, Any], int]]:
    """(document name, document object, line) for ``export const XDocument = {...}``."""
    found: list[tuple[str, dict[str, Any], int]] = []
    for statement in nodes_of_type(source.root, "export_statement"):
        declaration = statement.child_by_field_name("declaration")
        if declaration is None or declaration.type not in {"lexical_declaration", "variable_declaration"}:
            continue
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            name = text(name_node)
            if name_node is None or name_node.type != "identifier" or not name.endswith("Document"):
                continue
            value = _unwrap(declarator.child_by_field_name("value"))
            if value is None or value.type != "object":
                continue
            document = js_value(value)
            if document.get("kind") != "Document" or not isinstance(document.get("definitions"), list):
                continue
            found.append((name, document, line(name_node)))
    return found


class GraphQLAnalyzer(BaseAnalyzer):
    name = "graphql"

    def run(self) -> FactBag:
        coverage = CoverageMetrics()
        operations: list[GraphQLOperation] = []

        operations.extend(self.analyze_graphql_files(coverage))
        operations.extend(self.analyze_inline(coverage))
        operations.extend(self.analyze_codegen(coverage))

        unique = dedupe_operations(operations)
        self.find_operation_usage(unique)
        self.logger.info("found %s GraphQL operations", len(unique))
        return FactBag(graphql_operations=unique, coverage=coverage)

    def analyze_graphql_files(self, coverage: CoverageMetrics) -> list[GraphQLOperation]:
        operations: list[GraphQLOperation] = []
        for rel in self.glob_files(["**/*.graphql", "**/*.gql"], ignore=["**/node_modules/**", "**/.next/**"]):
            try:
                content = self.resolve_path(rel).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("skip %s: %s", rel, exc)
                continue
            try:
                operations.extend(operations_from_source(content, rel))
            except GraphQLError as exc:
                coverage.graphql_parse_failures += 1
                self.logger.debug("invalid GraphQL in %s: %s", rel, exc.message)
        return operations

    def analyze_inline(self, coverage: CoverageMetrics) -> list[GraphQLOperation]:
        operations: list[GraphQLOperation] = []
        files = self.glob_files(["**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx"])
        coverage.ts_files_scanned += len(files)
        for rel in files:
            try:
                raw = self.resolve_path(rel).read_bytes()
                content = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("skip %s: %s", rel, exc)
                continue
            if "gql" not in content and "graphql" not in content:
                continue
            source = parse_source(rel, raw)
            if source.has_error:
                coverage.ts_parse_failures += 1
            operations.extend(self.inline_operations(source, coverage))
        return operations

    def inline_operations(self, source: SourceFile, coverage: CoverageMetrics) -> list[GraphQLOperation]:
        operations: list[GraphQLOperation] = []
        for call in nodes_of_type(source.root, "call_expression"):
            function = call.child_by_field_name("function")
            if function is None or function.type != "identifier" or text(function) not in GQL_TAGS:
                continue
            args = call_arguments(call)
            if not args:
                continue
            document = args[0]
            if document.type == "template_string":
                body = template_text(document, "")
            elif document.type == "string":
                body = string_value(document) or ""
            else:
                continue
            if not body.strip():
                continue
            try:
                found = operations_from_source(body, source.rel_path, line(document) - 1)
            except GraphQLError:
                coverage.graphql_parse_failures += 1
                continue
            declarator = find_ancestor(call, {"variable_declarator"})
            name_node = declarator.child_by_field_name("name") if declarator is not None else None
            if name_node is not None and name_node.type == "identifier":
                for operation in found:
                    operation.variable_names.extend([text(name_node), f"{operation.name}Document"])
            operations.extend(found)
        return operations

    def analyze_codegen(self, coverage: CoverageMetrics) -> list[GraphQLOperation]:
        operations: list[GraphQLOperation] = []
        for rel in self.glob_files(CODEGEN_PATTERNS, ignore=BUILD_IGNORE):
            try:
                source = load_source(self.resolve_path(rel), rel)
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.warning("failed to read codegen file %s: %s", rel, exc)
                continue
            content = source.text
            if "Document" not in content or "definitions" not in content:
                continue
            coverage.codegen_files_detected += 1
            exports = codegen_document_exports(source)
            coverage.codegen_files_parsed += 1
            coverage.codegen_exports_found += len(exports)
            for document_name, document, line_no in exports:
                definitions = document["definitions"]
                first = definitions[0] if definitions else None
                if not isinstance(first, dict) or first.get("kind") != "OperationDefinition":
                    continue
                if not _name(first):
                    continue
                operation = operation_from_definition(first, rel, line_no)
                if operation is None:
                    continue
                if operation.type not in {"mutation", "subscription"}:
                    operation.type = "query"
                operation.variable_names = [document_name]
                operations.append(operation)
            if exports:
                self.logger.debug("found %s operations in codegen output %s", len(exports), rel)
        return operations

    def find_operation_usage(self, operations: list[GraphQLOperation]) -> None:
        if not operations:
            return
        by_name: dict[str, GraphQLOperation] = {}
        by_document: dict[str, GraphQLOperation] = {}
        by_variable: dict[str, GraphQLOperation] = {}
        by_type_name: dict[str, GraphQLOperation] = {}
        for operation in operations:
            by_name[operation.name] = operation
            by_document[f"{operation.name}Document"] = operation
            for suffix in ("Query", "Mutation", "Subscription", "QueryVariables", "MutationVariables"):
                by_type_name[f"{operation.name}{suffix}"] = operation
            for variable in operation.variable_names:
                by_variable[variable] = operation

        names = sorted(by_document, key=len, reverse=True)
        document_re = re.compile(r"\b(" + "|".join(re.escape(item) for item in names) + r")\b") if names else None

        def mark(operation: GraphQLOperation | None, rel: str) -> None:
            if operation is not None and rel != operation.file_path and rel not in operation.used_in:
                operation.used_in.append(rel)

        for rel in self.glob_files(["**/*.ts", "**/*.tsx"], ignore=USAGE_IGNORE):
            try:
                source = load_source(self.resolve_path(rel), rel)
            except (OSError, UnicodeDecodeError):
                continue
            content = source.text
            if not has_graphql_indicators(content):
                continue
            if document_re is not None:
                for name in {match.group(1) for match in document_re.finditer(content)}:
                    mark(by_document.get(name), rel)

            for call in nodes_of_type(source.root, "call_expression"):
                hook = _callee_name(call)
                if not hook or not is_graphql_hook(hook):
                    continue
                type_name = _first_type_argument(call)
                if type_name:
                    mark(
                        by_type_name.get(type_name) or by_name.get(re.sub(r"Query$|Mutation$|Variables$", "", type_name)),
                        rel,
                    )
                arg_name = _first_argument_name(call)
                if arg_name:
                    clean = re.sub(r"Document$", "", arg_name)
                    mark(
                        by_variable.get(arg_name)
                        or by_variable.get(clean)
                        or by_name.get(clean)
                        or by_type_name.get(arg_name),
                        rel,
                    )


def _callee_name(call: Node) -> str | None:
    function = call.child_by_field_name("function")
    if function is None:
        return None
    if function.type == "identifier":
        return text(function)
    if function.type == "member_expression":
        prop = function.child_by_field_name("property")
        return text(prop) if prop is not None else None
    return None


def _first_type_argument(call: Node) -> str | None:
    type_args = call.child_by_field_name("type_arguments")
    if type_args is None or not type_args.named_children:
        return None
    first = type_args.named_children[0]
    if first.type == "type_identifier":
        return text(first)
    return None


def _first_argument_name(call: Node) -> str | None:
    args = call_arguments(call)
    if not args:
        return None
    first = args[0]
    if first.type == "identifier":
        return text(first)
    if first.type == "member_expression":
        prop = first.child_by_field_name("property")
        return text(prop) if prop is not None else None
    return None
