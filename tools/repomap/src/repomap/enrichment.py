"""Attach GraphQL operations to the pages that reach them through imports.

Every page entry file is walked breadth-first over the resolved import
graph. An operation defined or used in a reached file becomes a
``DataFetchingInfo`` of the page, labelled by how close and how shared the
reached file is.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from repomap.analyzers.syntax import extract_imports, load_source
from repomap.logging import get_logger
from repomap.resolver import KNOWN_EXTENSIONS, TsModuleResolver
from repomap.schemas import AnalysisResult, DataFetchingInfo, GraphQLOperation, PageInfo

MAX_DEPTH = 30
MAX_NODES = 20000

HOOK_BY_OPERATION = {
    "query": "useQuery",
    "mutation": "useMutation",
    "subscription": "useSubscription",
}

logger = get_logger("enrichment")


@dataclass(slots=True)
class Reach:
    """Files reached from one page: distance and BFS parent per file."""

    entry: str
    distance: dict[str, int] = field(default_factory=dict)
    parent: dict[str, str] = field(default_factory=dict)

    def chain(self, file: str) -> list[str]:
        path = [file]
        while path[-1] in self.parent:
            path.append(self.parent[path[-1]])
        return list(reversed(path))


@dataclass(slots=True)
class OperationRef:
    operation: GraphQLOperation
    file: str
    line: int | None


class ImportGraph:
    """Lazily parsed, resolver-backed import edges between repository files."""

    def __init__(self, repo_root: Path, known_files: set[str]) -> None:
        self.repo_root = repo_root
        self.resolver = TsModuleResolver(repo_root, known_files)
        self._edges: dict[str, list[str]] = {}

    def neighbours(self, rel: str) -> list[str]:
        if rel in self._edges:
            return self._edges[rel]
        targets: list[str] = []
        if PurePosixPath(rel).suffix in KNOWN_EXTENSIONS:
            try:
                source = load_source(self.repo_root / rel, rel)
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("skip %s: %s", rel, exc)
                source = None
            if source is not None:
                for ref in extract_imports(source.root):
                    if ref.type_only:
                        continue
                    resolved = self.resolver.resolve(rel, ref.spec)
                    if resolved is not None and resolved.file != rel and resolved.file not in targets:
                        targets.append(resolved.file)
        self._edges[rel] = targets
        return targets

    def walk(self, entry: str) -> Reach:
        reach = Reach(entry=entry, distance={entry: 0})
        queue = deque([entry])
        while queue and len(reach.distance) < MAX_NODES:
            current = queue.popleft()
            depth = reach.distance[current]
            if depth >= MAX_DEPTH:
                continue
            for target in self.neighbours(current):
                if target in reach.distance:
                    continue
                reach.distance[target] = depth + 1
                reach.parent[target] = current
                queue.append(target)
                if len(reach.distance) >= MAX_NODES:
                    break
        return reach


def _percentile(values: list[int], fraction: float) -> int:
    if not values:
        return 0
    ordered = sorted(values)
    index = max(0, math.ceil(fraction * len(ordered)) - 1)
    return ordered[index]


def _operation_index(operations: list[GraphQLOperation]) -> dict[str, list[OperationRef]]:
    index: dict[str, list[OperationRef]] = {}
    for operation in operations:
        if operation.type not in HOOK_BY_OPERATION:
            continue
        index.setdefault(operation.file_path, []).append(OperationRef(operation, operation.file_path, operation.line))
        for used in operation.used_in:
            if used != operation.file_path:
                index.setdefault(used, []).append(OperationRef(operation, used, None))
    return index


def classify_reach(distance: int, reach_count: int, common_threshold: int, close_threshold: float) -> tuple[str, str]:
    """(bucket, confidence) for an operation reached at ``distance``."""
    if distance == 0:
        return "", "certain"
    if reach_count >= common_threshold:
        return "common", "unknown"
    if distance <= 2:
        return "close", "certain"
    if reach_count <= close_threshold:
        return "close", "likely"
    return "indirect", "likely"


def _known_operation(page: PageInfo, name: str) -> bool:
    for item in page.data_fetching:
        existing = (item.operation_name or "").removeprefix("→ ").strip()
        if existing == name:
            return True
    return False


def enrich_pages(result: AnalysisResult, repo_root: Path, known_files: set[str]) -> int:
    """Append import-reachable operations to each page; returns how many were added."""
    if not result.pages or not result.graphql_operations:
        return 0
    by_file = _operation_index(result.graphql_operations)
    graph = ImportGraph(repo_root, known_files)

    reaches = [graph.walk(page.file_path) for page in result.pages]
    reach_counts: dict[str, int] = {}
    for reach in reaches:
        for file in reach.distance:
            reach_counts[file] = reach_counts.get(file, 0) + 1

    common_threshold = max(10, _percentile(list(reach_counts.values()), 0.9))
    close_threshold = max(2, 0.05 * len(result.pages))

    added = 0
    for page, reach in zip(result.pages, reaches):
        ordered = sorted(reach.distance.items(), key=lambda item: (item[1], item[0]))
        for file, distance in ordered:
            for ref in by_file.get(file, []):
                operation = ref.operation
                if _known_operation(page, operation.name):
                    continue
                bucket, confidence = classify_reach(distance, reach_counts[file], common_threshold, close_threshold)
                evidence = [" → ".join(reach.chain(file))]
                if ref.line is not None:
                    evidence.append(f"{ref.file}:{ref.line} defines {operation.name}")
                else:
                    evidence.append(f"{ref.file} references {operation.name}")
                page.data_fetching.append(
                    DataFetchingInfo(
                        type=HOOK_BY_OPERATION[operation.type],
                        operation_name=operation.name,
                        variables=[variable.name for variable in operation.variables],
                        source=f"{bucket}:{file}" if bucket else None,
                        confidence=confidence,
                        evidence=evidence,
                    )
                )
                added += 1
    logger.debug("linked %s operations to %s pages", added, len(result.pages))
    return added
