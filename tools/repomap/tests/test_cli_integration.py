from __future__ import annotations

import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from repomap.cli import app

runner = CliRunner()
FIXTURE = Path(__file__).parent / "fixtures" / "sample_app"


def _sample_app(tmp_path: Path) -> Path:
    target = tmp_path / "sample_app"
    shutil.copytree(FIXTURE, target)
    return target


def _init(app_dir: Path) -> Path:
    result = runner.invoke(app, ["init", "--path", str(app_dir)])
    assert result.exit_code == 0, result.output
    return app_dir / "repomap.yaml"


def test_init_detects_project(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)

    result = runner.invoke(app, ["init", "--path", str(app_dir)])

    assert result.exit_code == 0, result.output
    assert "detected project type: nextjs" in result.output
    config_text = (app_dir / "repomap.yaml").read_text(encoding="utf-8")
    assert "name: sample_app" in config_text
    assert "path: ." in config_text

    again = runner.invoke(app, ["init", "--path", str(app_dir)])
    assert again.exit_code == 0
    assert "already exists" in again.output


def test_generate_writes_docs(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)
    output = tmp_path / "out"

    result = runner.invoke(app, ["generate", "--config", str(config), "--output", str(output), "--no-cache"])

    assert result.exit_code == 0, result.output
    assert "[repomap] generate complete" in result.output
    assert "- sample_app: 2 pages, 1 operations" in result.output
    assert (output / "index.md").is_file()
    assert (output / "repos" / "sample_app" / "pages.md").is_file()
    assert (output / "diagrams.md").is_file()
    assert not (app_dir / ".repomap" / "cache.db").exists()

    report = json.loads((output / "report.json").read_text(encoding="utf-8"))
    analysis = report["repositories"][0]["analysis"]
    assert sorted(page["path"] for page in analysis["pages"]) == ["/", "/users/:id"]
    user_page = next(page for page in analysis["pages"] if page["path"] == "/users/:id")
    assert [(item["operation_name"], item["source"]) for item in user_page["data_fetching"]] == [
        ("GetUser", "close:src/features/user/UserCard.tsx")
    ]


def test_second_generate_uses_cache(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)
    output = tmp_path / "out"

    first = runner.invoke(app, ["generate", "--config", str(config), "--output", str(output)])
    second = runner.invoke(app, ["generate", "--config", str(config), "--output", str(output)])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert "(cached)" not in first.output
    assert "(cached)" in second.output
    assert (app_dir / ".repomap" / "cache.db").is_file()


def test_diff_after_change(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)
    output = tmp_path / "out"
    assert runner.invoke(app, ["generate", "--config", str(config), "--output", str(output)]).exit_code == 0

    (app_dir / "src" / "pages" / "settings.tsx").write_text(
        "export default function Settings() { return <form />; }\n",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["diff", "--config", str(config), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "[repomap] diff complete" in result.output
    markdown = (output / "diff" / "report.md").read_text(encoding="utf-8")
    assert "### Added Pages\n- /settings" in markdown
    payload = json.loads((output / "diff" / "report.json").read_text(encoding="utf-8"))
    assert payload["repositories"][0]["added_pages"] == ["/settings"]


def test_diff_without_previous_report_fails(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)

    result = runner.invoke(app, ["diff", "--config", str(config), "--output", str(tmp_path / "empty")])

    assert result.exit_code == 1
    assert "no previous report" in result.output


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    config = tmp_path / "repomap.yaml"
    config.write_text("repositories:\n  - name: web\n    type: cobol\n", encoding="utf-8")

    result = runner.invoke(app, ["generate", "--config", str(config), "--output", str(tmp_path / "out")])

    assert result.exit_code == 1
    assert "unsupported type" in result.output


def test_generate_filters_unknown_repository(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)

    result = runner.invoke(
        app,
        ["generate", "--config", str(config), "--output", str(tmp_path / "out"), "--repo", "missing"],
    )

    assert result.exit_code == 1
    assert "no repositories configured" in result.output


def test_clear_cache_forces_fresh_analysis(tmp_path: Path) -> None:
    app_dir = _sample_app(tmp_path)
    config = _init(app_dir)
    output = tmp_path / "out"
    assert runner.invoke(app, ["generate", "--config", str(config), "--output", str(output)]).exit_code == 0

    cleared = runner.invoke(app, ["clear-cache", "--config", str(config)])
    rerun = runner.invoke(app, ["generate", "--config", str(config), "--output", str(output)])

    assert cleared.exit_code == 0, cleared.output
    assert "cleared 1 cache entries" in cleared.output
    assert rerun.exit_code == 0, rerun.output
    assert "(cached)" not in rerun.output
