from __future__ import annotations

import re
from dataclasses import dataclass

from tree_sitter import Node

from repomap.analyzers.base import BaseAnalyzer
from repomap.analyzers.common import FactBag
from repomap.analyzers.syntax import (
    SourceFile,
    call_arguments,
    callee_text,
    containing_function,
    is_string_like,
    line,
    load_source,
    nodes_of_type,
    object_property,
    string_value,
    text,
)
from repomap.schemas import APICall, CoverageMetrics

HTTP_METHODS = {"GET", "POST", "PUT", "DELETE", "PATCH"}
AXIOS_METHOD_RE = re.compile(r"^axios\.(get|post|put|delete|patch)$", re.IGNORECASE)
STATIC_ASSET_RE = re.compile(r"\.(css|js|png|jpg|jpeg|gif|svg|ico|woff|woff2|ttf|eot|html)$", re.IGNORECASE)
IDENTIFIER_PATH_RE = re.compile(r"^\w+(\.\w+)*$")
AUTH_MARKERS = ("credentials", "Authorization", "withCredentials")

# (category, url fragments) in priority order
PROVIDER_SIGNATURES: list[tuple[str, tuple[str, ...]]] = [
    ("HubSpot", ("hsforms.com", "hubspot")),
    ("AWS S3", ("amazonaws.com", "s3.")),
    ("Google API", ("googleapis.com",)),
    ("Stripe", ("stripe.com",)),
    ("Facebook", ("graph.facebook.com",)),
    ("Twitter", ("api.twitter.com",)),
    ("Slack", ("slack.com",)),
    ("Discord", ("discord.com",)),
    ("SendGrid", ("sendgrid.com",)),
    ("Twilio", ("twilio.com",)),
    ("Firebase", ("firebase",)),
    ("Supabase", ("supabase",)),
    ("Auth0", ("auth0.com",)),
    ("Okta", ("okta.com",)),
    ("GitHub Pages API", ("github.io",)),
]
EXTRA_API_HOSTS = ("cloudflare.com", "vercel.com", "netlify.com")


@dataclass(slots=True)
class UrlInfo:
    url: str
    is_placeholder: bool


def normalize_method(method: str) -> str:
    upper = method.upper()
    return upper if upper in HTTP_METHODS else "unknown"


def is_placeholder_url(url: str) -> bool:
    return url.startswith("[")


def is_api_url(url: str) -> bool:
    if url.startswith(("data:", "blob:")):
        return False
    if STATIC_ASSET_RE.search(url):
        return False
    if url.startswith(("/", "http")) or "/api/" in url or ".json" in url or "api." in url:
        return True
    for _, fragments in PROVIDER_SIGNATURES:
        if any(fragment in url for fragment in fragments):
            return True
    return any(host in url for host in EXTRA_API_HOSTS)


def categorize_api(url: str) -> str | None:
    if is_placeholder_url(url):
        return "Dynamic URL"
    for category, fragments in PROVIDER_SIGNATURES:
        if any(fragment in url for fragment in fragments):
            return category
    if url.startswith("/api/"):
        return "Internal API"
    if url.startswith("/"):
        return "Internal Route"
    return None


def extract_url(arg: Node) -> UrlInfo | None:
    """Concrete URL for literals, bracketed placeholder for anything computed."""
    if is_string_like(arg):
        value = (string_value(arg) or "").strip()
        return UrlInfo(url=value, is_placeholder=False) if value else None

    if arg.type == "call_expression":
        function = arg.child_by_field_name("function")
        args = call_arguments(arg)
        if function is not None and function.type == "identifier" and args and is_string_like(args[0]):
            path = (string_value(args[0]) or "").strip()
            if path:
                return UrlInfo(url=f"[{text(function)}] {path}", is_placeholder=True)

    raw = " ".join(text(arg).split())
    if arg.type in {"identifier", "member_expression"} or IDENTIFIER_PATH_RE.match(raw) or "." in raw:
        return UrlInfo(url=f"[{raw}]", is_placeholder=True)
    return None


def _requires_auth(options: Node | None, markers: tuple[str, ...] = AUTH_MARKERS) -> bool:
    if options is None:
        return False
    body = text(options)
    return any(marker in body for marker in markers)


class RestApiAnalyzer(BaseAnalyzer):
    """fetch / axios / useSWR call-sites."""

    name = "rest-api"

    def run(self) -> FactBag:
        api_calls: list[APICall] = []
        coverage = CoverageMetrics()
        files = self.glob_files(["**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx"])
        for rel in files:
            try:
                source = load_source(self.resolve_path(rel), rel)
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("skip %s: %s", rel, exc)
                continue
            coverage.ts_files_scanned += 1
            if source.has_error:
                coverage.ts_parse_failures += 1
            api_calls.extend(self.extract_calls(source))

        for index, call in enumerate(api_calls, start=1):
            call.id = f"api-{index}"
        self.logger.info("found %s REST API calls", len(api_calls))
        return FactBag(api_calls=api_calls, coverage=coverage)

    def extract_calls(self, source: SourceFile) -> list[APICall]:
        calls: list[APICall] = []
        for node in nodes_of_type(source.root, "call_expression"):
            try:
                call = self._inspect(node, source.rel_path)
            except Exception as exc:
                self.logger.debug("call-site %s:%s skipped: %s", source.rel_path, line(node), exc)
                continue
            if call is not None:
                calls.append(call)
        return calls

    def _inspect(self, node: Node, rel_path: str) -> APICall | None:
        callee = callee_text(node)
        if callee in {"fetch", "window.fetch"}:
            return self._fetch_call(node, rel_path)
        axios_match = AXIOS_METHOD_RE.match(callee)
        if axios_match:
            return self._axios_call(node, rel_path, axios_match.group(1))
        if callee == "axios":
            return self._axios_config_call(node, rel_path)
        if callee in {"useSWR", "useSWRImmutable"}:
            return self._swr_call(node, rel_path)
        return None

    def _make(self, node: Node, rel_path: str, method: str, url: str, call_type: str, auth: bool) -> APICall:
        return APICall(
            id="",
            method=method,
            url=url,
            call_type=call_type,
            file_path=rel_path,
            line=line(node),
            containing_function=containing_function(node),
            requires_auth=auth,
            category=categorize_api(url),
        )

    def _fetch_call(self, node: Node, rel_path: str) -> APICall | None:
        args = call_arguments(node)
        if not args:
            return None
        info = extract_url(args[0])
        if info is None:
            return None
        if not info.is_placeholder and not is_api_url(info.url):
            return None
        method = "GET"
        options = args[1] if len(args) > 1 else None
        method_node = object_property(options, "method")
        if is_string_like(method_node):
            method = normalize_method(string_value(method_node) or "")
        return self._make(node, rel_path, method, info.url, "fetch", _requires_auth(options))

    def _axios_call(self, node: Node, rel_path: str, method: str) -> APICall | None:
        args = call_arguments(node)
        if not args:
            return None
        info = extract_url(args[0])
        if info is None:
            return None
        options = args[-1] if len(args) > 1 else None
        auth = _requires_auth(options, ("withCredentials", "Authorization"))
        return self._make(node, rel_path, normalize_method(method), info.url, "axios", auth)

    def _axios_config_call(self, node: Node, rel_path: str) -> APICall | None:
        args = call_arguments(node)
        if not args or args[0].type != "object":
            return None
        url_node = object_property(args[0], "url")
        if not is_string_like(url_node):
            return None
        url = (string_value(url_node) or "").strip()
        if not url:
            return None
        method_node = object_property(args[0], "method")
        method = normalize_method(string_value(method_node) or "") if is_string_like(method_node) else "GET"
        auth = _requires_auth(args[0], ("withCredentials", "Authorization"))
        return self._make(node, rel_path, method, url, "axios", auth)

    def _swr_call(self, node: Node, rel_path: str) -> APICall | None:
        args = call_arguments(node)
        if not args:
            return None
        key = args[0]
        url: str | None = None
        if is_string_like(key):
            url = (string_value(key) or "").strip() or None
        elif key.type == "ternary_expression":
            for branch in ("consequence", "alternative"):
                candidate = key.child_by_field_name(branch)
                if is_string_like(candidate):
                    url = (string_value(candidate) or "").strip() or None
                    if url:
                        break
        else:
            raw = text(key)
            info = extract_url(key)
            if info is not None and "null" not in raw and "undefined" not in raw:
                url = info.url
        if not url:
            return None
        return self._make(node, rel_path, "GET", url, "useSWR", False)
