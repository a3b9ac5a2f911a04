from __future__ import annotations

import re
from pathlib import PurePosixPath

from tree_sitter import Node

from repomap.analyzers.base import DEFAULT_IGNORE, BaseAnalyzer
from repomap.analyzers.common import FactBag
from repomap.analyzers.hooks import hook_type
from repomap.analyzers.syntax import (
    FUNCTION_VALUE_NODES,
    ImportRef,
    SourceFile,
    call_arguments,
    callee_text,
    extract_imports,
    jsx_attributes,
    jsx_elements,
    jsx_name,
    load_source,
    nodes_of_type,
    object_property,
    text,
    walk,
)
from repomap.schemas import (
    AuthRequirement,
    CoverageMetrics,
    DataFetchingInfo,
    NavigationInfo,
    PageInfo,
    StepInfo,
)

PAGE_IGNORE = ["_app.*", "_document.*", "api/**", "**/*.d.ts"]
PUBLIC_PAGES = {"404", "permission-denied", "_app", "_document", "_error"}
AUTH_WRAPPERS = (
    "RequiredCondition",
    "ProtectedRoute",
    "AuthGuard",
    "PrivateRoute",
    "WithAuth",
    "RequireAuth",
    "Authenticated",
    "Authorized",
)
AUTH_ATTRIBUTES = {"condition", "roles", "permissions", "requiredRoles", "allowedRoles"}
APOLLO_HOOKS = ("useQuery", "useMutation", "useLazyQuery", "useSubscription")

# Framework types that look like components but never fetch data.
TYPE_NAMES = {
    "NextPage",
    "NextPageContext",
    "NextApiRequest",
    "NextApiResponse",
    "GetServerSideProps",
    "GetStaticProps",
    "GetStaticPaths",
    "InferGetServerSidePropsType",
    "InferGetStaticPropsType",
    "FC",
    "FunctionComponent",
    "VFC",
    "Component",
    "PureComponent",
    "ReactNode",
    "ReactElement",
    "PropsWithChildren",
    "ComponentProps",
    "ComponentType",
    "ElementType",
    "RefObject",
    "MutableRefObject",
    "Dispatch",
    "SetStateAction",
    "ChangeEvent",
    "MouseEvent",
    "KeyboardEvent",
    "FormEvent",
    "SyntheticEvent",
}
CONTAINER_SUFFIXES = (
    "Container",
    "Page",
    "Screen",
    "View",
    "Form",
    "Modal",
    "Dialog",
    "Panel",
    "Root",
    "Provider",
    "Wrapper",
)

PASCAL_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
ROUTE_PARAM_RE = re.compile(r":(\w+)")
ENUM_ROLE_RE = re.compile(r"(\w+Role|\w+Permission)\.(\w+)")
STRING_ROLE_RE = re.compile(r"['\"]([a-zA-Z_-]+)['\"]")
ROLE_WORD_RE = re.compile(r"admin|user|owner|member|guest|manager|editor|viewer", re.IGNORECASE)
CONST_ROLE_RE = re.compile(r"\b(ROLE_\w+|[A-Z]+_ROLE)\b")
QUOTED_PATH_RE = re.compile(r"['\"`]([^'\"`]+)['\"`]")
SSR_QUERY_RE = re.compile(r"query:\s*(\w+)")
STEP_STATE_RE = re.compile(r"\[\s*(step|currentStep|activeStep|page|currentPage|phase|stage)\s*,", re.IGNORECASE)
STEP_LIST_RE = re.compile(r"steps|pages|screens|views|components", re.IGNORECASE)
STEPPER_RE = re.compile(r"Stepper|Wizard|Steps|TabPanel|FormStep", re.IGNORECASE)
STEP_CONDITION_RE = re.compile(r"step\s*===?\s*\d+|currentStep|activeStep", re.IGNORECASE)
STEP_NUMBER_RE = re.compile(r"===?\s*(\d+)")
STEP_LABEL_RE = re.compile(r"(?:name|label|title)\s*:\s*['\"]([^'\"]+)['\"]")
STEP_COMPONENT_RE = re.compile(r"(?:component|content)\s*:\s*<?\s*(\w+)")


def file_to_route(rel_path: str) -> str:
    """``users/[id]/index.tsx`` → ``/users/:id``; ``[...slug]`` becomes ``*``."""
    route = re.sub(r"\.(tsx?|jsx?)$", "", rel_path)
    route = re.sub(r"(^|/)index$", "", route)
    route = re.sub(r"\[\.\.\.(\w+)\]", "*", route)
    route = re.sub(r"\[(\w+)\]", r":\1", route)
    return "/" + route


def route_params(route: str) -> list[str]:
    return ROUTE_PARAM_RE.findall(route)


def roles_from_condition(condition: str) -> list[str]:
    roles = [match.group(2) for match in ENUM_ROLE_RE.finditer(condition)]
    roles.extend(value for value in STRING_ROLE_RE.findall(condition) if ROLE_WORD_RE.search(value))
    roles.extend(CONST_ROLE_RE.findall(condition))
    return list(dict.fromkeys(roles))


def is_container_name(name: str) -> bool:
    if not name[:1].isupper() or name in TYPE_NAMES:
        return False
    if name.endswith(CONTAINER_SUFFIXES):
        return True
    return bool(re.search(r"Page[A-Z]?\w*$", name) or re.search(r"Container[A-Z]?\w*$", name))


def _is_internal_import(spec: str) -> bool:
    return spec.startswith((".", "/", "~/", "@/"))


def _declarators(root: Node) -> list[Node]:
    return list(nodes_of_type(root, "variable_declarator"))


def _assignment_to(root: Node, prop: str) -> Node | None:
    """Right-hand side of ``X.<prop> = ...``."""
    for node in nodes_of_type(root, "assignment_expression"):
        left = node.child_by_field_name("left")
        if left is None or left.type != "member_expression":
            continue
        if text(left.child_by_field_name("property")) == prop:
            return node.child_by_field_name("right")
    return None


def _first_jsx_name(node: Node | None) -> str | None:
    if node is None:
        return None
    element = next(jsx_elements(node), None)
    return jsx_name(element) if element is not None else None


class PagesAnalyzer(BaseAnalyzer):
    """Routed pages of a file-system router (``pages/`` directory)."""

    name = "pages"

    def run(self) -> FactBag:
        pages_dir = self.get_setting("pages_dir", "src/pages").strip("/")
        files = self.glob_files(
            ["**/*.tsx", "**/*.ts", "**/*.jsx", "**/*.js"],
            root=pages_dir,
            ignore=DEFAULT_IGNORE + PAGE_IGNORE,
        )
        self.logger.info("found %s page files under %s", len(files), pages_dir)

        coverage = CoverageMetrics()
        pages: list[PageInfo] = []
        for rel in files:
            try:
                source = load_source(self.resolve_path(rel), rel)
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("skip %s: %s", rel, exc)
                continue
            coverage.ts_files_scanned += 1
            if source.has_error:
                coverage.ts_parse_failures += 1
            try:
                page = self.analyze_page(source, rel[len(pages_dir) + 1 :] if pages_dir else rel)
            except Exception as exc:
                self.logger.warning("failed to analyze %s: %s", rel, exc)
                continue
            if page is not None:
                pages.append(page)
        return FactBag(pages=pages, coverage=coverage)

    def analyze_page(self, source: SourceFile, route_file: str) -> PageInfo | None:
        component = self.find_page_component(source.root)
        if component is None:
            return None
        route = file_to_route(route_file)
        return PageInfo(
            path=route,
            file_path=source.rel_path,
            component=component,
            params=route_params(route),
            layout=self.extract_layout(source.root),
            authentication=self.extract_authentication(source.root, route_file),
            permissions=self.extract_permissions(source.root),
            data_fetching=self.extract_data_fetching(source.root),
            navigation=self.extract_navigation(source.root),
            linked_pages=self.extract_linked_pages(source.root),
            steps=self.extract_steps(source.root),
        )

    def find_page_component(self, root: Node) -> str | None:
        for node in nodes_of_type(root, "export_statement"):
            if not any(child.type == "default" for child in node.children):
                continue
            declaration = node.child_by_field_name("declaration")
            if declaration is not None and declaration.type == "function_declaration":
                name = declaration.child_by_field_name("name")
                return text(name) if name is not None else "default"
            value = node.child_by_field_name("value")
            if value is None:
                continue
            if value.type == "identifier" and PASCAL_RE.match(text(value)):
                return text(value)
            if value.type in FUNCTION_VALUE_NODES:
                return "default"
            # export default withAuth(UserPage)
            if value.type == "call_expression":
                for arg in call_arguments(value):
                    if arg.type == "identifier" and PASCAL_RE.match(text(arg)):
                        return text(arg)

        declarators = _declarators(root)
        for declarator in declarators:
            if text(declarator.child_by_field_name("name")) == "Page":
                return "Page"
        for declarator in declarators:
            annotation = text(declarator.child_by_field_name("type"))
            if "NextPage" in annotation or "FC" in annotation:
                return text(declarator.child_by_field_name("name"))
        for declarator in declarators:
            name = text(declarator.child_by_field_name("name"))
            value = declarator.child_by_field_name("value")
            if not PASCAL_RE.match(name) or value is None or value.type not in FUNCTION_VALUE_NODES:
                continue
            if next(jsx_elements(value), None) is not None:
                return name
        return None

    def extract_layout(self, root: Node) -> str | None:
        return _first_jsx_name(_assignment_to(root, "getLayout"))

    def extract_authentication(self, root: Node, route_file: str) -> AuthRequirement:
        stem = PurePosixPath(route_file).name.split(".", 1)[0]
        auth = AuthRequirement(required=stem not in PUBLIC_PAGES)
        wrapper = next(
            (item for item in jsx_elements(root) if any(pattern in jsx_name(item) for pattern in AUTH_WRAPPERS)),
            None,
        )
        if wrapper is None:
            return auth
        auth.condition = "Additional permissions required"
        for name, value in jsx_attributes(wrapper).items():
            if name not in AUTH_ATTRIBUTES or value is None:
                continue
            auth.condition = text(value)
            roles = roles_from_condition(auth.condition)
            if roles:
                auth.roles = roles
        return auth

    def extract_permissions(self, root: Node) -> list[str]:
        permissions: list[str] = []
        for node in nodes_of_type(root, "member_expression"):
            value = text(node)
            if ("Permission" in value or "Role" in value or "isAdmin" in value) and value not in permissions:
                permissions.append(value)
        return permissions

    def extract_data_fetching(self, root: Node) -> list[DataFetchingInfo]:
        imports = extract_imports(root)
        aliases: dict[str, str] = {}
        has_apollo = False
        for ref in imports:
            if "apollo" not in ref.spec:
                continue
            has_apollo = True
            for local, imported in ref.names.items():
                if imported in APOLLO_HOOKS:
                    aliases[local] = imported

        fetching: list[DataFetchingInfo] = []
        for call in nodes_of_type(root, "call_expression"):
            hook = callee_text(call)
            if not self._is_fetching_hook(hook, aliases):
                continue
            info = self._hook_fetching(call, hook, aliases.get(hook) or hook_type(hook), has_apollo)
            if info is not None:
                fetching.append(info)

        fetching.extend(self._server_side_fetching(root, imports, fetching))
        if self._top_level_function(root, "getStaticProps") is not None:
            fetching.append(DataFetchingInfo(type="getStaticProps", operation_name="getStaticProps"))

        for ref in imports:
            if ref.type_only or not _is_internal_import(ref.spec):
                continue
            for local in ref.local_names():
                if local != ref.namespace and is_container_name(local):
                    fetching.append(DataFetchingInfo(type="component", operation_name=local))
        return fetching

    @staticmethod
    def _is_fetching_hook(name: str, aliases: dict[str, str]) -> bool:
        if name in aliases or name in APOLLO_HOOKS:
            return True
        if re.match(r"^use[A-Z].*Query$", name) and "Params" not in name and "String" not in name:
            return True
        return bool(re.match(r"^use[A-Z].*Mutation$", name))

    def _hook_fetching(self, call: Node, hook: str, kind: str, has_apollo: bool) -> DataFetchingInfo | None:
        args = call_arguments(call)
        if not args:
            # generated hooks (useUserQuery()) carry the operation in their name
            if re.match(r"^use[A-Z]", hook):
                operation = re.sub(r"Query$|Mutation$", "", hook[3:])
                return DataFetchingInfo(type=kind, operation_name=operation)
            return None

        first = text(args[0])
        # react-query style keys: arrays, objects, strings
        if first.startswith(("[", "{", "'", '"', "`")):
            return None
        apollo_shaped = (
            has_apollo
            or first.endswith(("Document", "Query", "Mutation"))
            or "gql" in first
            or bool(re.match(r"^[A-Z_]+$", first))
        )
        if not apollo_shaped:
            return None

        operation = re.sub(r"Query$|Mutation$", "", re.sub(r"Document$", "", first))
        variables: list[str] = []
        if len(args) > 1:
            container = next(
                (
                    pair.child_by_field_name("value")
                    for pair in nodes_of_type(args[1], "pair")
                    if text(pair.child_by_field_name("key")) == "variables"
                ),
                None,
            )
            if container is not None:
                for item in walk(container):
                    if item.type == "pair":
                        variables.append(text(item.child_by_field_name("key")).strip("\"'"))
                    elif item.type == "shorthand_property_identifier":
                        variables.append(text(item))
        return DataFetchingInfo(type=kind, operation_name=operation, variables=variables)

    @staticmethod
    def _top_level_function(root: Node, name: str) -> Node | None:
        for node in nodes_of_type(root, "function_declaration", "variable_declarator"):
            if text(node.child_by_field_name("name")) == name:
                return node
        return None

    def _server_side_fetching(
        self,
        root: Node,
        imports: list[ImportRef],
        existing: list[DataFetchingInfo],
    ) -> list[DataFetchingInfo]:
        ssr = self._top_level_function(root, "getServerSideProps")
        if ssr is None:
            return []

        used = {text(node) for node in nodes_of_type(root, "identifier") if _outside_import(node)}
        found: list[DataFetchingInfo] = []
        for ref in imports:
            for local in ref.names:
                if local.endswith("Document") and local in used:
                    found.append(
                        DataFetchingInfo(type="getServerSideProps", operation_name=f"→ {local[: -len('Document')]}")
                    )

        for document in SSR_QUERY_RE.findall(text(ssr)):
            operation = re.sub(r"Document$", "", document)
            known = existing + found
            if not any(operation in (item.operation_name or "") for item in known):
                found.append(DataFetchingInfo(type="getServerSideProps", operation_name=f"→ {operation}"))
        return found

    def extract_navigation(self, root: Node) -> NavigationInfo:
        navigation = NavigationInfo()
        style = _assignment_to(root, "globalNavigationStyle")
        if style is None or style.type != "object":
            return navigation
        visible = object_property(style, "visible")
        if visible is not None:
            navigation.visible = text(visible) == "true"
        current = object_property(style, "currentNavItem")
        if current is not None:
            value = text(current)
            navigation.current_nav_item = None if value == "null" else value.replace("'", "").replace('"', "")
        mini = object_property(style, "mini")
        if mini is not None:
            navigation.mini = text(mini) == "true"
        return navigation

    def extract_linked_pages(self, root: Node) -> list[str]:
        linked: list[str] = []

        def add(raw: str) -> None:
            match = QUOTED_PATH_RE.search(raw)
            if match and match.group(1) not in linked:
                linked.append(match.group(1))

        for call in nodes_of_type(root, "call_expression"):
            callee = callee_text(call)
            if "router.push" in callee or "router.replace" in callee or "Link" in callee:
                args = call_arguments(call)
                if args:
                    add(text(args[0]))
        for element in jsx_elements(root):
            if jsx_name(element) != "Link":
                continue
            href = jsx_attributes(element).get("href")
            if href is not None:
                add(text(href))
        return linked

    def extract_steps(self, root: Node) -> list[StepInfo]:
        steps: list[StepInfo] = []
        for call in nodes_of_type(root, "call_expression"):
            if callee_text(call) != "useState" or call.parent is None:
                continue
            match = STEP_STATE_RE.search(text(call.parent))
            if match:
                steps.extend(self._switch_steps(root, match.group(1)))
                steps.extend(self._listed_steps(root))

        steps.extend(self._stepper_steps(root))

        for ternary in nodes_of_type(root, "ternary_expression"):
            condition = text(ternary.child_by_field_name("condition"))
            if not STEP_CONDITION_RE.search(condition):
                continue
            number = STEP_NUMBER_RE.search(condition)
            component = _first_jsx_name(ternary.child_by_field_name("consequence"))
            if number and not steps and component:
                steps.append(StepInfo(id=int(number.group(1)), name=f"Step {number.group(1)}", component=component))
        return steps

    @staticmethod
    def _switch_steps(root: Node, variable: str) -> list[StepInfo]:
        steps: list[StepInfo] = []
        for switch in nodes_of_type(root, "switch_statement"):
            if variable not in text(switch.child_by_field_name("value")):
                continue
            body = switch.child_by_field_name("body")
            cases = [item for item in body.named_children if item.type == "switch_case"] if body else []
            for index, case in enumerate(cases):
                label = text(case.child_by_field_name("value")).replace("'", "").replace('"', "") or str(index)
                steps.append(
                    StepInfo(
                        id=int(label) if label.isdigit() else label,
                        name=f"Step {label}",
                        component=_first_jsx_name(case),
                    )
                )
        return steps

    @staticmethod
    def _listed_steps(root: Node) -> list[StepInfo]:
        steps: list[StepInfo] = []
        for array in nodes_of_type(root, "array"):
            owner = array.parent
            if owner is None:
                continue
            label = text(owner.child_by_field_name("name")) if owner.type == "variable_declarator" else text(owner)
            if not STEP_LIST_RE.search(label):
                continue
            for index, element in enumerate(array.named_children, start=1):
                raw = text(element)
                if element.type == "object":
                    name = STEP_LABEL_RE.search(raw)
                    component = STEP_COMPONENT_RE.search(raw)
                    steps.append(
                        StepInfo(
                            id=index,
                            name=name.group(1) if name else f"Step {index}",
                            component=component.group(1) if component else None,
                        )
                    )
                elif raw[:1].isupper():
                    steps.append(StepInfo(id=index, name=raw, component=raw))
        return steps

    @staticmethod
    def _stepper_steps(root: Node) -> list[StepInfo]:
        steps: list[StepInfo] = []
        for opening in nodes_of_type(root, "jsx_opening_element"):
            if not STEPPER_RE.search(jsx_name(opening)) or opening.parent is None:
                continue
            children = [
                child for child in opening.parent.named_children if child.type in {"jsx_element", "jsx_self_closing_element"}
            ]
            for index, child in enumerate(children, start=1):
                tag = child.child_by_field_name("open_tag") if child.type == "jsx_element" else child
                if tag is None:
                    continue
                component = jsx_name(tag)
                name = component
                attributes = jsx_attributes(tag)
                for key in ("label", "title", "name"):
                    if attributes.get(key) is not None:
                        name = re.sub(r"['\"{}]", "", text(attributes[key]))
                        break
                steps.append(StepInfo(id=index, name=name, component=component))
        return steps


def _outside_import(node: Node) -> bool:
    current = node.parent
    while current is not None:
        if current.type == "import_statement":
            return False
        current = current.parent
    return True
