from __future__ import annotations

import json
import os
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from fnmatch import fnmatch
from hashlib import sha1
from pathlib import Path


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def stable_id(*parts: str) -> str:
    joined = "|".join(parts)
    return sha1(joined.encode("utf-8")).hexdigest()[:16]


def _expand_braces(pattern: str) -> list[str]:
    match = re.search(r"\{([^{}]+)\}", pattern)
    if not match:
        return [pattern]
    options = [item.strip() for item in match.group(1).split(",") if item.strip()]
    if not options:
        return [pattern]
    prefix = pattern[: match.start()]
    suffix = pattern[match.end() :]
    expanded: list[str] = []
    for option in options:
        expanded.extend(_expand_braces(f"{prefix}{option}{suffix}"))
    return expanded


def _glob_variants(pattern: str) -> list[str]:
    # fnmatch has no globstar; "**/" must also match zero directories
    variants = [pattern]
    if pattern.startswith("**/"):
        variants.append(pattern[3:])
    if "/**/" in pattern:
        variants.append(pattern.replace("/**/", "/"))
    return variants


def path_matches(path: str, patterns: Iterable[str]) -> bool:
    expanded_patterns: list[str] = []
    for pattern in patterns:
        for item in _expand_braces(pattern):
            expanded_patterns.extend(_glob_variants(item))
    return any(fnmatch(path, pattern) for pattern in expanded_patterns)


def is_included(path: str, include_patterns: list[str], exclude_patterns: list[str]) -> bool:
    include_ok = path_matches(path, include_patterns) if include_patterns else True
    exclude_hit = path_matches(path, exclude_patterns)
    return include_ok and not exclude_hit


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "item"


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def sanitize_label(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())


def iter_files(root: Path, ignored_dirs: Iterable[str] = ()) -> list[str]:
    """Repo-relative POSIX paths of every file under ``root``, skipping ignored directory names."""
    skip = set(ignored_dirs)
    files: list[str] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in skip)
        base = Path(current)
        for name in filenames:
            files.append((base / name).relative_to(root).as_posix())
    return sorted(files)
