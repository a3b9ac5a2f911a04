from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from repomap.config import RepomapConfig
from repomap.engine import DocGeneratorEngine
from repomap.render.renderer import render_outputs
from repomap.schemas import DocumentationReport
from repomap.storage.cache_store import AnalysisCache


@dataclass(slots=True)
class GenerateResult:
    report: DocumentationReport
    outputs: dict[str, Path]


def run_generate(
    config: RepomapConfig,
    output_dir: Path | None = None,
    use_cache: bool = True,
    cache: AnalysisCache | None = None,
) -> GenerateResult:
    if not use_cache:
        config.cache.enabled = False
        cache = None
    target = output_dir or Path(config.output_dir)

    engine = DocGeneratorEngine(config, cache=cache)
    report = asyncio.run(engine.generate())
    outputs = render_outputs(report, target, site_title=config.site_title)
    return GenerateResult(report=report, outputs=outputs)
