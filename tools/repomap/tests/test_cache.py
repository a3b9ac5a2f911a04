from __future__ import annotations

import asyncio
import sqlite3
from contextlib import closing
from pathlib import Path

from repomap.engine import compute_fingerprint, enumerate_source_files
from repomap.storage.cache_store import AnalysisCache, cache_key


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _fingerprint(root: Path, files: list[str] | None = None) -> str:
    return asyncio.run(compute_fingerprint(root, files if files is not None else enumerate_source_files(root)))


def test_source_enumeration_skips_pruned_and_foreign_files(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "export const a = 1;\n")
    _write(tmp_path, "src/b.graphql", "query B { b }\n")
    _write(tmp_path, "README.md", "# readme\n")
    _write(tmp_path, "node_modules/pkg/index.js", "module.exports = {};\n")

    assert enumerate_source_files(tmp_path) == ["src/a.ts", "src/b.graphql"]


def test_fingerprint_tracks_content_not_order(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "export const a = 1;\n")
    _write(tmp_path, "src/b.tsx", "export const B = () => null;\n")

    first = _fingerprint(tmp_path)
    assert _fingerprint(tmp_path) == first
    assert _fingerprint(tmp_path, ["src/b.tsx", "src/a.ts"]) == first

    _write(tmp_path, "src/a.ts", "export const a = 2;\n")
    assert _fingerprint(tmp_path) != first


def test_fingerprint_tolerates_unreadable_files(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "export const a = 1;\n")

    with_missing = _fingerprint(tmp_path, ["src/a.ts", "src/gone.ts"])

    assert with_missing != _fingerprint(tmp_path, ["src/a.ts"])


def test_cache_roundtrip_requires_matching_fingerprint(tmp_path: Path) -> None:
    path = tmp_path / ".repomap" / "cache.db"
    key = cache_key("web", "abc123")
    cache = AnalysisCache(path)
    cache.load()
    cache.set(key, "fp-1", {"repository": "web", "pages": []})
    cache.save()

    reloaded = AnalysisCache(path)
    reloaded.load()

    assert key == "web@abc123"
    assert reloaded.get(key, "fp-1") == {"repository": "web", "pages": []}
    assert reloaded.get(key, "fp-2") is None
    assert reloaded.get(cache_key("web", "other"), "fp-1") is None
    assert reloaded.stats()["entries"] == 1


def test_version_mismatch_starts_cold(tmp_path: Path) -> None:
    path = tmp_path / "cache.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        conn.execute("INSERT INTO meta(key, value) VALUES ('version', '1')")
        conn.commit()

    cache = AnalysisCache(path)
    cache.load()
    assert cache.get("web@abc", "fp") is None

    cache.set("web@abc", "fp", {"ok": True})
    cache.save()
    reloaded = AnalysisCache(path)
    reloaded.load()
    assert reloaded.get("web@abc", "fp") == {"ok": True}


def test_corrupt_store_is_rebuilt(tmp_path: Path) -> None:
    path = tmp_path / "cache.db"
    path.write_bytes(b"definitely not sqlite" * 100)

    cache = AnalysisCache(path)
    cache.load()
    assert cache.get("web@abc", "fp") is None

    cache.set("web@abc", "fp", {"ok": True})
    cache.save()
    reloaded = AnalysisCache(path)
    reloaded.load()
    assert reloaded.get("web@abc", "fp") == {"ok": True}
