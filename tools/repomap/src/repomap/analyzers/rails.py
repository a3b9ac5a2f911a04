"""Rails backends: ``config/routes.rb`` endpoints and ActiveRecord models.

Both extractors are line-oriented. Route files are walked with a stack of
open ``do ... end`` blocks so namespaces, scopes and nested resources apply
to everything declared inside them.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from repomap.analyzers.base import BaseAnalyzer
from repomap.analyzers.common import FactBag
from repomap.schemas import APIEndpoint, AssociationInfo, ModelInfo

VERB_RE = re.compile(r"^(get|post|put|patch|delete|match)\s*\(?\s*['\"]([^'\"]+)['\"](.*)$")
MEMBER_VERB_RE = re.compile(r"^(get|post|put|patch|delete)\s*\(?\s*:(\w+)(.*)$")
RESOURCES_RE = re.compile(r"^(resources|resource)\s*\(?\s*:(\w+)(.*)$")
NAMESPACE_RE = re.compile(r"^namespace\s*\(?\s*:(\w+)")
SCOPE_RE = re.compile(r"^scope\b(.*)$")
ROOT_RE = re.compile(r"^root\b(.*)$")
DRAW_RE = re.compile(r"^draw\s*\(?\s*:(\w+)")
AUTH_BLOCK_RE = re.compile(r"^(authenticate|authenticated)\b")
BLOCK_OPEN_RE = re.compile(r"\bdo\s*(\|[^|]*\|)?\s*$")
BLOCK_CLOSE_RE = re.compile(r"^end\b")
TARGET_RE = re.compile(r"(?:to:|=>)\s*['\"]([\w/]+)#(\w+)['\"]")
BARE_TARGET_RE = re.compile(r"^\s*,?\s*['\"]([\w/]+)#(\w+)['\"]")
OPTION_RE = r"{name}:\s*\[([^\]]*)\]|{name}:\s*:(\w+)"
STRING_OPTION_RE = r"{name}:\s*['\"]([^'\"]*)['\"]"

RESOURCE_ACTIONS = [
    ("index", "GET", ""),
    ("create", "POST", ""),
    ("new", "GET", "/new"),
    ("edit", "GET", "/:id/edit"),
    ("show", "GET", "/:id"),
    ("update", "PATCH", "/:id"),
    ("destroy", "DELETE", "/:id"),
]

CLASS_RE = re.compile(r"^class\s+([\w:]+)\s*<\s*(ApplicationRecord|ActiveRecord::Base)\b")
ASSOCIATION_RE = re.compile(r"^(belongs_to|has_many|has_one|has_and_belongs_to_many)\s*\(?\s*:(\w+)(.*)$")
VALIDATES_RE = re.compile(r"^(validates\w*)\s*\(?\s*(.*)$")
SCOPE_DEF_RE = re.compile(r"^scope\s*\(?\s*:(\w+)")
TABLE_NAME_RE = re.compile(r"^self\.table_name\s*=\s*['\"](\w+)['\"]")
ATTRIBUTE_RE = re.compile(r"^attribute\s*\(?\s*:(\w+)")
ENUM_RE = re.compile(r"^enum\s*\(?\s*:?(\w+)")


def strip_comment(raw: str) -> str:
    """Drop a trailing ``# comment`` while keeping ``#`` inside string literals."""
    quote: str | None = None
    for index, char in enumerate(raw):
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char == "#":
            return raw[:index].strip()
    return raw.strip()


def _option_list(rest: str, name: str) -> list[str] | None:
    match = re.search(OPTION_RE.format(name=name), rest)
    if match is None:
        return None
    if match.group(2):
        return [match.group(2)]
    return [item.strip().lstrip(":").strip("'\"") for item in match.group(1).split(",") if item.strip()]


def _string_option(rest: str, name: str) -> str | None:
    match = re.search(STRING_OPTION_RE.format(name=name), rest)
    return match.group(1) if match else None


def singularize(word: str) -> str:
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ses") or word.endswith("xes"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def classify(word: str) -> str:
    return "".join(part.capitalize() for part in singularize(word).split("_"))


def tableize(class_name: str) -> str:
    base = class_name.split("::")[-1]
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", base).lower()
    if snake.endswith("y") and not snake.endswith(("ay", "ey", "oy", "uy")):
        return snake[:-1] + "ies"
    if snake.endswith(("s", "x", "ch", "sh")):
        return snake + "es"
    return snake + "s"


@dataclass(slots=True)
class Frame:
    kind: str
    path: str = ""
    module: str = ""
    resource: str = ""
    singular: bool = False


@dataclass(slots=True)
class RouteScope:
    frames: list[Frame] = field(default_factory=list)

    def path_prefix(self) -> str:
        return "".join(frame.path for frame in self.frames)

    def module_prefix(self) -> str:
        return "/".join(frame.module for frame in self.frames if frame.module)

    def authenticated(self) -> bool:
        return any(frame.kind == "auth" for frame in self.frames)

    def innermost(self, *kinds: str) -> Frame | None:
        for frame in reversed(self.frames):
            if frame.kind in kinds:
                return frame
        return None


class RailsRoutesAnalyzer(BaseAnalyzer):
    """``config/routes.rb`` (and ``draw``-n files) → API endpoints."""

    name = "routes"

    def run(self) -> FactBag:
        main = "config/routes.rb"
        if not self.resolve_path(main).is_file():
            self.logger.info("no %s in %s", main, self.config.name)
            return FactBag()
        endpoints: list[APIEndpoint] = []
        self.parse_routes(main, RouteScope(), endpoints, set())
        self.logger.info("found %s route endpoints", len(endpoints))
        return FactBag(api_endpoints=endpoints)

    def parse_routes(self, rel: str, scope: RouteScope, endpoints: list[APIEndpoint], drawn: set[str]) -> None:
        drawn.add(rel)
        try:
            lines = self.resolve_path(rel).read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.debug("skip %s: %s", rel, exc)
            return

        depth = len(scope.frames)
        for number, raw in enumerate(lines, start=1):
            stripped = strip_comment(raw)
            if not stripped:
                continue
            if BLOCK_CLOSE_RE.match(stripped):
                if len(scope.frames) > depth:
                    scope.frames.pop()
                continue

            frame = self._statement(stripped, number, rel, scope, endpoints, drawn)
            if BLOCK_OPEN_RE.search(stripped):
                scope.frames.append(frame or Frame(kind="block"))
        del scope.frames[depth:]

    def _statement(
        self,
        line: str,
        number: int,
        rel: str,
        scope: RouteScope,
        endpoints: list[APIEndpoint],
        drawn: set[str],
    ) -> Frame | None:
        def emit(method: str, path: str, controller: str, action: str) -> None:
            module = scope.module_prefix()
            if module and controller and "/" not in controller:
                controller = f"{module}/{controller}"
            endpoints.append(
                APIEndpoint(
                    method=method,
                    path=scope.path_prefix() + path if path != "/" else scope.path_prefix() or "/",
                    controller=controller,
                    action=action,
                    authentication=scope.authenticated(),
                    file_path=rel,
                    line=number,
                )
            )

        container = scope.innermost("member", "collection")
        member_match = MEMBER_VERB_RE.match(line)
        if container is not None and member_match:
            resource = scope.innermost("resource")
            verb, action = member_match.group(1), member_match.group(2)
            on_member = container.kind == "member" and not (resource and resource.singular)
            endpoints.append(
                APIEndpoint(
                    method=verb.upper(),
                    path=scope.path_prefix() + (f"/:id/{action}" if on_member else f"/{action}"),
                    controller=self._controller(scope, resource.resource if resource else ""),
                    action=action,
                    authentication=scope.authenticated(),
                    file_path=rel,
                    line=number,
                )
            )
            return None

        if line.startswith(("member", "collection")) and BLOCK_OPEN_RE.search(line):
            return Frame(kind=line.split()[0])

        verb_match = VERB_RE.match(line)
        if verb_match:
            verb, path, rest = verb_match.groups()
            target = TARGET_RE.search(rest) or BARE_TARGET_RE.match(rest)
            if target:
                controller, action = target.group(1), target.group(2)
            else:
                parts = path.lstrip("/").split("/")
                controller, action = parts[0], parts[1] if len(parts) > 1 else "index"
            emit("ALL" if verb == "match" else verb.upper(), path if path.startswith("/") else f"/{path}", controller, action)
            return None

        root_match = ROOT_RE.match(line)
        if root_match:
            rest = root_match.group(1)
            target = TARGET_RE.search(rest) or BARE_TARGET_RE.match(rest)
            if target:
                emit("GET", "/", target.group(1), target.group(2))
            return None

        resources_match = RESOURCES_RE.match(line)
        if resources_match:
            return self._resources(resources_match, scope, emit)

        namespace_match = NAMESPACE_RE.match(line)
        if namespace_match:
            name = namespace_match.group(1)
            return Frame(kind="namespace", path=f"/{name}", module=name)

        scope_match = SCOPE_RE.match(line)
        if scope_match:
            rest = scope_match.group(1)
            positional = re.match(r"\s*\(?\s*['\"]([^'\"]+)['\"]", rest)
            path = _string_option(rest, "path") or (positional.group(1) if positional else "")
            module = _string_option(rest, "module") or ""
            if path and not path.startswith("/"):
                path = f"/{path}"
            return Frame(kind="scope", path=path or "", module=module)

        if AUTH_BLOCK_RE.match(line):
            return Frame(kind="auth")

        draw_match = DRAW_RE.match(line)
        if draw_match:
            target = f"config/routes/{draw_match.group(1)}.rb"
            if target not in drawn and self.resolve_path(target).is_file():
                self.parse_routes(target, scope, endpoints, drawn)
        return None

    @staticmethod
    def _controller(scope: RouteScope, resource: str) -> str:
        module = scope.module_prefix()
        return f"{module}/{resource}" if module else resource

    def _resources(
        self,
        match: re.Match[str],
        scope: RouteScope,
        emit: Callable[[str, str, str, str], None],
    ) -> Frame:
        singular = match.group(1) == "resource"
        name, rest = match.group(2), match.group(3)
        only = _option_list(rest, "only")
        excluded = set(_option_list(rest, "except") or [])
        controller = _string_option(rest, "controller") or (f"{name}s" if singular and not name.endswith("s") else name)

        parent = scope.innermost("resource")
        nested = ""
        if parent is not None and not parent.singular:
            nested = f"/:{singularize(parent.resource)}_id"

        for action, verb, suffix in RESOURCE_ACTIONS:
            if singular and action == "index":
                continue
            if only is not None and action not in only:
                continue
            if action in excluded:
                continue
            if singular:
                suffix = suffix.replace("/:id", "")
            emit(verb, f"{nested}/{name}{suffix}", controller, action)
        return Frame(kind="resource", path=f"{nested}/{name}", resource=controller, singular=singular)


class RailsModelsAnalyzer(BaseAnalyzer):
    """ActiveRecord models under ``app/models``."""

    name = "models"

    def run(self) -> FactBag:
        models: list[ModelInfo] = []
        for rel in self.glob_files(["**/*.rb"], root="app/models", ignore=[]):
            try:
                content = self.resolve_path(rel).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("skip %s: %s", rel, exc)
                continue
            model = parse_model(content, rel)
            if model is not None:
                models.append(model)
        self.logger.info("found %s models", len(models))
        return FactBag(models=models)


def parse_model(content: str, file_path: str) -> ModelInfo | None:
    model: ModelInfo | None = None
    for raw in content.splitlines():
        line = strip_comment(raw)
        if not line:
            continue
        if model is None:
            class_match = CLASS_RE.match(line)
            if class_match:
                model = ModelInfo(name=class_match.group(1), file_path=file_path)
            continue

        association = ASSOCIATION_RE.match(line)
        if association:
            kind, name, rest = association.groups()
            target = _string_option(rest, "class_name")
            foreign_key = _string_option(rest, "foreign_key")
            if foreign_key is None:
                symbol = re.search(r"foreign_key:\s*:(\w+)", rest)
                foreign_key = symbol.group(1) if symbol else None
            model.associations.append(
                AssociationInfo(type=kind, name=name, model=target or classify(name), foreign_key=foreign_key)
            )
            continue

        validation = VALIDATES_RE.match(line)
        if validation:
            method, rest = validation.groups()
            attributes = re.findall(r"(?:^|,)\s*:(\w+)", rest)
            rules = re.findall(r"(\w+):\s*(?!:)", rest)
            kind = rules[0] if method == "validates" and rules else method
            model.validations.append(f"{kind}: {', '.join(attributes)}" if attributes else kind)
            continue

        scope_match = SCOPE_DEF_RE.match(line)
        if scope_match:
            model.scopes.append(scope_match.group(1))
            continue

        table = TABLE_NAME_RE.match(line)
        if table:
            model.table_name = table.group(1)
            continue

        attribute = ATTRIBUTE_RE.match(line) or ENUM_RE.match(line)
        if attribute and attribute.group(1) not in model.attributes:
            model.attributes.append(attribute.group(1))

    if model is not None and model.table_name is None:
        model.table_name = tableize(model.name)
    return model
