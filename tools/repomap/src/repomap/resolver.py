"""Import specifier resolution honoring tsconfig/jsconfig aliases.

Resolution follows the TypeScript rules that matter for source maps:
relative specifiers resolve against the importing file, other specifiers go
through ``compilerOptions.paths`` and then ``baseUrl``. Package imports that
only live in ``node_modules`` are never resolved.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from repomap.logging import get_logger
from repomap.schemas import ResolvedModule, ResolvedModuleEvidence

CONFIG_NAMES = ("tsconfig.json", "jsconfig.json")
KNOWN_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mts", ".cts", ".mjs", ".cjs")
PROBE_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mts", ".cts", ".mjs", ".cjs", ".json")
_JS_TO_TS = {".js": (".ts", ".tsx"), ".jsx": (".tsx",), ".mjs": (".mts",), ".cjs": (".cts",)}
_STRIP_EXT = re.compile(r"\.(ts|tsx|js|jsx|mts|cts|mjs|cjs|d\.ts)$")

logger = get_logger("resolver")


@dataclass(slots=True)
class CompilerSettings:
    config_file: Path | None = None
    base_url: Path | None = None
    paths: dict[str, list[str]] = field(default_factory=dict)
    paths_dir: Path | None = None

    @property
    def paths_base(self) -> Path | None:
        if self.base_url is not None:
            return self.base_url
        return self.paths_dir


def strip_jsonc(text: str) -> str:
    """Drop comments and trailing commas so tsconfig files parse as JSON."""
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
            out.append(char)
            i += 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
            continue
        if char == ",":
            j = _skip_blank(text, i + 1)
            if j < length and text[j] in "}]":
                i += 1
                continue
        out.append(char)
        i += 1
    return "".join(out)


def _skip_blank(text: str, start: int) -> int:
    """Index of the next character that is neither whitespace nor inside a comment."""
    i = start
    length = len(text)
    while i < length:
        if text[i] in " \t\r\n":
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        else:
            break
    return i


def read_jsonc(path: Path) -> dict[str, Any]:
    data = json.loads(strip_jsonc(path.read_text(encoding="utf-8")))
    return data if isinstance(data, dict) else {}


class TsModuleResolver:
    def __init__(self, repo_root: Path, known_files: set[str]) -> None:
        self.repo_root = Path(os.path.abspath(repo_root))
        self.known_files = known_files
        self._config_path_cache: dict[Path, Path | None] = {}
        self._settings_cache: dict[Path, CompilerSettings | None] = {}

    def resolve(self, from_file: str, specifier: str) -> ResolvedModule | None:
        if not specifier:
            return None
        if not specifier.startswith((".", "/", "@")) and "/" not in specifier:
            return None

        from_abs = self.repo_root / from_file
        config_path = self._config_path_for(from_abs.parent)
        settings = self._settings_for(config_path) if config_path else None
        if settings is None:
            settings = CompilerSettings()

        resolved_abs = self._resolve_abs(from_abs.parent, specifier, settings)
        if resolved_abs is None:
            return None
        rel = self._to_repo_relative(resolved_abs)
        if rel is None:
            return None
        best = self.pick_known_file(rel)
        if best is None:
            return None

        config_rel = self._to_repo_relative(config_path) if config_path else None
        return ResolvedModule(
            file=best,
            evidence=ResolvedModuleEvidence(
                from_file=_normalize(from_file),
                specifier=specifier,
                resolved_file=best,
                config_file=config_rel,
            ),
        )

    def pick_known_file(self, rel: str) -> str | None:
        if rel in self.known_files:
            return rel
        stem = _STRIP_EXT.sub("", rel)
        direct = self._first_known_by_stem(stem)
        if direct:
            return direct
        return self._first_known_by_stem(f"{stem}/index")

    def _first_known_by_stem(self, stem: str) -> str | None:
        for ext in KNOWN_EXTENSIONS:
            candidate = f"{stem}{ext}"
            if candidate in self.known_files:
                return candidate
        return None

    def _config_path_for(self, directory: Path) -> Path | None:
        if directory in self._config_path_cache:
            return self._config_path_cache[directory]
        found = self._find_nearest_config(directory)
        self._config_path_cache[directory] = found
        return found

    def _find_nearest_config(self, start: Path) -> Path | None:
        current = Path(os.path.abspath(start))
        while True:
            for name in CONFIG_NAMES:
                candidate = current / name
                if candidate.is_file():
                    return candidate
            if current == self.repo_root or current.parent == current:
                return None
            current = current.parent
            if not _is_within(current, self.repo_root):
                return None

    def _settings_for(self, config_path: Path) -> CompilerSettings | None:
        if config_path in self._settings_cache:
            return self._settings_cache[config_path]
        try:
            settings = self._load_settings(config_path, set())
        except (OSError, ValueError) as exc:
            logger.debug("unreadable config %s: %s", config_path, exc)
            settings = None
        self._settings_cache[config_path] = settings
        return settings

    def _load_settings(self, config_path: Path, seen: set[Path]) -> CompilerSettings:
        if config_path in seen:
            raise ValueError(f"circular extends at {config_path}")
        seen.add(config_path)
        data = read_jsonc(config_path)

        settings = CompilerSettings()
        extends = data.get("extends")
        parents = extends if isinstance(extends, list) else [extends] if extends else []
        for item in parents:
            parent_path = self._locate_extends(config_path.parent, str(item))
            if parent_path is None:
                logger.debug("extends target not found: %s (from %s)", item, config_path)
                continue
            parent = self._load_settings(parent_path, seen)
            if parent.base_url is not None:
                settings.base_url = parent.base_url
            if parent.paths:
                settings.paths = parent.paths
                settings.paths_dir = parent.paths_dir

        options = data.get("compilerOptions") or {}
        if isinstance(options.get("baseUrl"), str):
            settings.base_url = Path(os.path.abspath(config_path.parent / options["baseUrl"]))
        if isinstance(options.get("paths"), dict):
            settings.paths = {
                str(key): [str(item) for item in value]
                for key, value in options["paths"].items()
                if isinstance(value, list)
            }
            settings.paths_dir = config_path.parent
        settings.config_file = config_path
        return settings

    def _locate_extends(self, config_dir: Path, target: str) -> Path | None:
        if target.startswith(".") or os.path.isabs(target):
            base = Path(os.path.abspath(config_dir / target))
            for candidate in (base, base.with_name(base.name + ".json")):
                if candidate.is_file():
                    return candidate
            return None
        current = config_dir
        while True:
            package = current / "node_modules" / target
            for candidate in (package, package.with_name(package.name + ".json"), package / "tsconfig.json"):
                if candidate.is_file():
                    return candidate
            if current.parent == current:
                return None
            current = current.parent

    def _resolve_abs(self, from_dir: Path, specifier: str, settings: CompilerSettings) -> Path | None:
        if specifier.startswith(("./", "../")) or specifier in {".", ".."}:
            return _probe(from_dir / specifier)
        if os.path.isabs(specifier):
            return _probe(Path(specifier))

        paths_base = settings.paths_base
        if settings.paths and paths_base is not None:
            for target in _match_paths(specifier, settings.paths):
                hit = _probe(paths_base / target)
                if hit is not None:
                    return hit
        if settings.base_url is not None:
            return _probe(settings.base_url / specifier)
        return None

    def _to_repo_relative(self, path: Path) -> str | None:
        absolute = Path(os.path.abspath(path))
        if not _is_within(absolute, self.repo_root):
            return None
        return _normalize(os.path.relpath(absolute, self.repo_root))


def _normalize(path: str) -> str:
    return os.path.normpath(path).replace("\\", "/")


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _match_paths(specifier: str, paths: dict[str, list[str]]) -> list[str]:
    if specifier in paths:
        return list(paths[specifier])
    best_prefix = -1
    best: list[str] = []
    for pattern, targets in paths.items():
        if pattern.count("*") != 1:
            continue
        prefix, suffix = pattern.split("*")
        if not specifier.startswith(prefix) or not specifier.endswith(suffix):
            continue
        if len(specifier) < len(prefix) + len(suffix):
            continue
        if len(prefix) <= best_prefix:
            continue
        star = specifier[len(prefix) : len(specifier) - len(suffix)]
        best_prefix = len(prefix)
        best = [item.replace("*", star) for item in targets]
    return best


def _probe(candidate: Path) -> Path | None:
    candidate = Path(os.path.abspath(candidate))
    if candidate.is_file():
        suffix = candidate.suffix
        if suffix in _JS_TO_TS:
            stem = candidate.with_suffix("")
            for ext in _JS_TO_TS[suffix]:
                swapped = stem.with_name(stem.name + ext)
                if swapped.is_file():
                    return swapped
        return candidate
    if candidate.suffix in _JS_TO_TS:
        stem = candidate.with_suffix("")
        for ext in _JS_TO_TS[candidate.suffix]:
            swapped = stem.with_name(stem.name + ext)
            if swapped.is_file():
                return swapped
    for ext in PROBE_EXTENSIONS:
        with_ext = candidate.with_name(candidate.name + ext)
        if with_ext.is_file():
            return with_ext
    if candidate.is_dir():
        manifest = candidate / "package.json"
        if manifest.is_file():
            try:
                data = json.loads(manifest.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                data = {}
            for key in ("types", "module", "main"):
                entry = data.get(key) if isinstance(data, dict) else None
                if isinstance(entry, str):
                    hit = _probe_file(candidate / entry)
                    if hit is not None:
                        return hit
        for ext in PROBE_EXTENSIONS:
            index = candidate / f"index{ext}"
            if index.is_file():
                return index
    return None


def _probe_file(candidate: Path) -> Path | None:
    candidate = Path(os.path.abspath(candidate))
    if candidate.is_file():
        return candidate
    for ext in PROBE_EXTENSIONS:
        with_ext = candidate.with_name(candidate.name + ext)
        if with_ext.is_file():
            return with_ext
    return None
