"""FastAPI upload front end for the upgrade pipeline.

``create_app`` wires one resolved :class:`UpgradeConfig` into the routes; no
module-level configuration is read. The upload route stages the artifact,
runs the pipeline in the worker threadpool and renders the result either as
JSON or, for browser form posts, as HTML.
"""

from __future__ import annotations

import html
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from hotswap.domain.config import UpgradeConfig
from hotswap.domain.ports import ArchiveToolsPort, ServiceControlPort
from hotswap.usecases.retention_sweep import RetentionSweeper
from hotswap.usecases.run_upgrade import RunUpgrade

from rest_api.uploads import UploadRejected, normalize_upload_name, stage_upload

LOGGER = logging.getLogger("rest_api.app")
HOUR_S = 3600.0


# ---------- Response models ----------
class UpgradeResponse(BaseModel):
    ok: bool
    message: str
    message_type: str
    logs: str = ""
    error: Optional[dict] = None


class HealthResponse(BaseModel):
    ok: bool
    target_dir: str
    service_name: str
    backup: bool
    service: bool


# ---------- HTML rendering ----------
_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>{title}</title></head>
<body>
<h1>{title}</h1>
<p>{description}</p>
{result}
<form action="/upload" method="post" enctype="multipart/form-data">
  <input type="file" name="file" accept="{accept}" required>
  <button type="submit">Upload and upgrade</button>
</form>
</body>
</html>
"""


def render_page(config: UpgradeConfig, result: Optional[UpgradeResponse] = None) -> str:
    """Render the upload form, optionally preceded by a result block."""
    block = ""
    if result is not None:
        block = f'<div class="{html.escape(result.message_type)}"><strong>{html.escape(result.message)}</strong></div>'
        if result.logs:
            block += f"\n<pre>{html.escape(result.logs)}</pre>"
    return _PAGE.format(
        title=html.escape(config.title),
        description=html.escape(config.description),
        accept=html.escape(",".join(config.accept_types), quote=True),
        result=block,
    )


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _respond(request: Request, config: UpgradeConfig, payload: UpgradeResponse, status_code: int):
    if _wants_html(request):
        return HTMLResponse(render_page(config, payload), status_code=status_code)
    return JSONResponse(payload.model_dump(), status_code=status_code)


# ---------- App factory ----------
def create_app(
    config: UpgradeConfig,
    *,
    archive_tools: Optional[ArchiveToolsPort] = None,
    service_control: Optional[ServiceControlPort] = None,
) -> FastAPI:
    """Build the upload application for one resolved configuration."""
    sweeper: Optional[RetentionSweeper] = None
    if config.enable_cleanup:
        sweeper = RetentionSweeper(
            config.upload_dir,
            interval_s=config.cleanup_interval * HOUR_S,
            max_age_s=config.file_max_age * HOUR_S,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if sweeper is not None:
            sweeper.start()
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.stop()

    app = FastAPI(title=config.title, version="1.0.0", lifespan=lifespan)
    app.state.config = config
    app.state.sweeper = sweeper
    app.state.pipeline = RunUpgrade(
        config,
        archive_tools=archive_tools,
        service_control=service_control,
    )

    @app.exception_handler(UploadRejected)
    async def _upload_rejected(request: Request, exc: UploadRejected):
        LOGGER.warning("Upload rejected: %s (%s)", exc.message, exc.code)
        if _wants_html(request):
            payload = UpgradeResponse(ok=False, message=f"{exc.message}: {exc.hint}", message_type="error")
            return HTMLResponse(render_page(config, payload), status_code=exc.status_code)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.get("/", response_class=HTMLResponse)
    def index():
        return HTMLResponse(render_page(config))

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(
            ok=True,
            target_dir=config.target_dir,
            service_name=config.service_name,
            backup=config.enable_backup,
            service=config.enable_service,
        )

    @app.post("/upload")
    def upload(request: Request, file: Optional[UploadFile] = File(None)):
        """Stage the uploaded artifact and run the upgrade pipeline on it."""
        if file is None:
            raise UploadRejected(
                code="upload.missing_file",
                message="Upload failed: no file received",
                hint="Send the artifact in the multipart field 'file'.",
            )
        filename = normalize_upload_name(file.filename or "")
        staged = stage_upload(
            source=file.file,
            upload_dir=Path(config.upload_dir),
            filename=filename,
            max_bytes=config.max_upload_bytes,
        )
        LOGGER.info("Received upload %s (%d bytes) staged at %s", filename, staged.stat().st_size, staged)

        result = app.state.pipeline(staged, filename)
        payload = UpgradeResponse(
            ok=result.ok,
            message=result.message,
            message_type="success" if result.ok else "error",
            logs=result.log_text,
            error=None if result.error is None else result.error.to_dict(),
        )
        return _respond(request, config, payload, 200 if result.ok else 500)

    return app


__all__ = ["create_app", "render_page", "UpgradeResponse"]
