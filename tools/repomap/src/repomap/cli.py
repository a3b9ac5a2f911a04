from __future__ import annotations

from pathlib import Path

import typer
import uvicorn

from repomap.config import ConfigError, RepomapConfig, dump_config, ensure_config
from repomap.diff.engine import build_diff_report
from repomap.diff.report_writer import write_diff_json, write_diff_markdown
from repomap.env_detect import detect_project
from repomap.logging import configure_logging
from repomap.pipeline import GenerateResult, run_generate
from repomap.ports import PortUnavailableError, find_available_port
from repomap.schemas import DocumentationReport
from repomap.storage.cache_store import AnalysisCache
from repomap.server.app import create_app
from repomap.utils import read_json
from repomap.watch.service import watch_loop

app = typer.Typer(help="Repomap: static architecture maps for web frontends")

CONFIG_NAME = "repomap.yaml"


def _fail(message: str) -> typer.Exit:
    typer.echo(f"[repomap] error: {message}", err=True)
    return typer.Exit(code=1)


def _load_config(path: Path) -> RepomapConfig:
    if path.exists():
        return RepomapConfig.from_path(path)
    typer.echo(f"[repomap] {path} not found, detecting project in {Path.cwd()}")
    config = RepomapConfig.default()
    config.repositories = [detect_project(Path.cwd())]
    return config


def _output_dir(config: RepomapConfig, output: Path | None) -> Path:
    return (output or Path(config.output_dir)).resolve()


def _print_summary(result: GenerateResult) -> None:
    for repo in result.report.repositories:
        summary = repo.summary
        cached = " (cached)" if repo.from_cache else ""
        typer.echo(
            f"- {repo.name}: {summary.total_pages} pages, {summary.total_graphql_operations} operations, "
            f"{summary.total_components} components, {summary.total_api_calls} api calls{cached}"
        )
    typer.echo(f"- diagrams: {len(result.report.diagrams)}")
    typer.echo(f"- index: {result.outputs['index']}")


@app.command()
def init(
    path: Path = typer.Option(Path("."), help="Project root"),
    force: bool = typer.Option(False, help="Overwrite existing config"),
) -> None:
    root = path.resolve()
    config_path = root / CONFIG_NAME
    if config_path.exists() and not force:
        typer.echo(f"[repomap] config already exists at {config_path} (use --force to overwrite)")
        return

    detected = detect_project(root)
    detected.path = "."
    ensure_config(config_path, force=force, content=dump_config([detected], site_title=f"{detected.display_name} Map"))
    typer.echo(f"[repomap] initialized config at {config_path}")
    typer.echo(f"[repomap] detected project type: {detected.type}")


@app.command()
def generate(
    config: Path = typer.Option(Path(CONFIG_NAME), help="Config file path"),
    output: Path | None = typer.Option(None, help="Output directory"),
    repo: list[str] | None = typer.Option(None, "--repo", help="Only analyze the named repository (repeatable)"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore and do not update the analysis cache"),
    watch: bool = typer.Option(False, "--watch", help="Regenerate when source files change"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    configure_logging(verbose=verbose)
    try:
        settings = _load_config(config).select(repo or [])
        output_dir = _output_dir(settings, output)
        result = run_generate(settings, output_dir=output_dir, use_cache=not no_cache)
    except ConfigError as exc:
        raise _fail(str(exc)) from exc

    typer.echo("[repomap] generate complete")
    _print_summary(result)

    if watch:
        def regenerate() -> None:
            rerun = run_generate(settings, output_dir=output_dir, use_cache=not no_cache)
            typer.echo(f"[repomap] regenerated {len(rerun.report.repositories)} repositories")

        typer.echo("[repomap] watching for changes, press Ctrl+C to stop")
        watch_loop(
            [Path(item.path) for item in settings.repositories],
            regenerate,
            delay_seconds=settings.watch.debounce_seconds,
        )


@app.command()
def diff(
    config: Path = typer.Option(Path(CONFIG_NAME), help="Config file path"),
    output: Path | None = typer.Option(None, help="Output directory holding the previous report"),
) -> None:
    configure_logging()
    try:
        settings = _load_config(config)
    except ConfigError as exc:
        raise _fail(str(exc)) from exc
    output_dir = _output_dir(settings, output)
    previous_path = output_dir / "report.json"
    if not previous_path.exists():
        raise _fail(f"no previous report at {previous_path}; run `repomap generate` first")

    base = DocumentationReport.from_dict(read_json(previous_path))
    try:
        head = run_generate(settings, output_dir=output_dir).report
    except ConfigError as exc:
        raise _fail(str(exc)) from exc

    report = build_diff_report(base, head)
    report_md = output_dir / "diff" / "report.md"
    report_json = output_dir / "diff" / "report.json"
    write_diff_markdown(report, report_md)
    write_diff_json(report, report_json)

    typer.echo("[repomap] diff complete")
    typer.echo(f"- added repositories: {len(report.added_repositories)}")
    typer.echo(f"- removed repositories: {len(report.removed_repositories)}")
    typer.echo(f"- changed repositories: {len(report.repositories)}")
    typer.echo(f"- report: {report_md}")


@app.command("clear-cache")
def clear_cache(
    config: Path = typer.Option(Path(CONFIG_NAME), help="Config file path"),
) -> None:
    configure_logging()
    try:
        settings = _load_config(config)
    except ConfigError as exc:
        raise _fail(str(exc)) from exc

    cache = AnalysisCache(Path(settings.cache.path))
    cache.load()
    removed = cache.stats()["entries"]
    cache.clear()
    cache.save()
    typer.echo(f"[repomap] cleared {removed} cache entries at {cache.path}")


@app.command()
def serve(
    config: Path = typer.Option(Path(CONFIG_NAME), help="Config file path"),
    output: Path | None = typer.Option(None, help="Output directory"),
    port: int = typer.Option(3030, help="Preferred port"),
    host: str = typer.Option("127.0.0.1", help="Bind address"),
) -> None:
    configure_logging()
    try:
        settings = _load_config(config)
        output_dir = _output_dir(settings, output)
        result = run_generate(settings, output_dir=output_dir)
        chosen = find_available_port(port, host=host)
    except (ConfigError, PortUnavailableError) as exc:
        raise _fail(str(exc)) from exc

    _print_summary(result)
    if chosen != port:
        typer.echo(f"[repomap] port {port} in use, using {chosen}")
    typer.echo(f"[repomap] serving http://{host}:{chosen}")
    uvicorn.run(create_app(output_dir), host=host, port=chosen)


if __name__ == "__main__":
    app()
