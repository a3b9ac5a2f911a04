from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from repomap.utils import read_json


class HealthResponse(BaseModel):
    status: str = "ok"
    report_available: bool = False


class DiagramSummary(BaseModel):
    type: str
    title: str
    content: str
    related_files: list[str] = []


def resolve_doc_path(output_dir: Path, doc_path: str) -> Path:
    """Markdown file for ``doc_path`` under ``output_dir``; ``.md`` is optional."""
    root = output_dir.resolve()
    candidate = (root / doc_path).resolve()
    try:
        candidate.relative_to(root)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"path escapes the output directory: {doc_path}") from exc
    if candidate.suffix != ".md":
        candidate = candidate.with_name(f"{candidate.name}.md")
    if not candidate.is_file():
        raise HTTPException(status_code=404, detail=f"document not found: {doc_path}")
    return candidate


def create_app(output_dir: Path) -> FastAPI:
    app = FastAPI(
        title="Repomap Documentation API",
        version="0.3.0",
        docs_url="/api/docs",
        redoc_url=None,
        swagger_ui_oauth2_redirect_url="/api/docs/oauth2-redirect",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    report_path = output_dir / "report.json"

    def load_report() -> dict[str, Any]:
        if not report_path.exists():
            raise HTTPException(status_code=404, detail=f"report not generated yet: {report_path}")
        return read_json(report_path)

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(report_available=report_path.exists())

    @app.get("/api/report")
    def report() -> dict[str, Any]:
        return load_report()

    @app.get("/api/repos/{name}")
    def repository(name: str) -> dict[str, Any]:
        for item in load_report().get("repositories", []):
            if item.get("name") == name:
                return item
        raise HTTPException(status_code=404, detail=f"unknown repository: {name}")

    @app.get("/api/diagrams", response_model=list[DiagramSummary])
    def diagrams() -> list[DiagramSummary]:
        return [
            DiagramSummary(
                type=item["type"],
                title=item["title"],
                content=item["content"],
                related_files=item.get("related_files", []),
            )
            for item in load_report().get("diagrams", [])
        ]

    @app.get("/docs/{doc_path:path}", response_class=PlainTextResponse)
    def document(doc_path: str) -> PlainTextResponse:
        path = resolve_doc_path(output_dir, doc_path or "index")
        return PlainTextResponse(path.read_text(encoding="utf-8"), media_type="text/markdown")

    return app
