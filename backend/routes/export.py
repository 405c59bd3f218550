"""
Stateless document routes: export an unsaved document, import a file,
generate a stylesheet.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from backend.models.project import CssRequest, ExportRequest, ImportResponse
from engine.core.css import generate_css
from engine.core.exporters import (
    DEFAULT_FILENAMES,
    EXPORT_FORMATS,
    FORMAT_HTML,
    MEDIA_TYPES,
    InvalidProjectFile,
    export_document,
    import_file,
)
from engine.core.styles import StyleMap, UnknownElementKey

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["export"])

# Uploads larger than this are refused before parsing
MAX_IMPORT_BYTES = 5 * 1024 * 1024


def download_response(fmt: str, body: str, filename: str | None = None) -> Response:
    """Wrap exported text as an attachment."""
    filename = filename or DEFAULT_FILENAMES[fmt]
    return Response(
        content=body,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def style_map_or_422(styles: dict | None) -> StyleMap:
    if styles is None:
        return StyleMap.default()
    try:
        return StyleMap(styles)
    except UnknownElementKey as e:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown element key: {e.key}",
        ) from e


@router.post("/export/{fmt}", status_code=200)
async def export_unsaved(fmt: str, req: ExportRequest) -> Response:
    """Export the document in the request body without saving it."""
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown export format.")
    styles = style_map_or_422(req.styles)

    options = {}
    if fmt == FORMAT_HTML:
        options = {
            "relative": req.relative_unit_mode,
            "reference_width": req.reference_width,
            "title": req.title,
        }
    return download_response(fmt, export_document(fmt, req.markdown, styles, **options))


@router.post("/import", status_code=200)
async def import_document(request: Request, filename: str | None = None) -> ImportResponse:
    """
    Import a project file or a Markdown file sent as the raw request body.

    Files named *.md / *.markdown are read as Markdown with optional
    frontmatter; anything else must be a project file.
    """
    raw = await request.body()
    if len(raw) > MAX_IMPORT_BYTES:
        raise HTTPException(status_code=413, detail="File too large.")
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(
            status_code=422,
            detail="File is not UTF-8 text.",
        ) from e

    try:
        imported = import_file(text, filename)
    except InvalidProjectFile as e:
        logger.info("import: rejected %s: %s", filename or "<upload>", e)
        raise HTTPException(
            status_code=422,
            detail="Invalid project file format.",
        ) from e

    return ImportResponse(
        markdown=imported.markdown,
        styles=imported.styles.to_dict() if imported.styles is not None else None,
        format=imported.format,
    )


@router.post("/css", status_code=200)
async def stylesheet(req: CssRequest) -> Response:
    """Generate the stylesheet for a style map."""
    styles = style_map_or_422(req.styles)
    css = generate_css(styles, relative=req.relative_unit_mode, reference_width=req.reference_width)
    return Response(content=css, media_type="text/css; charset=utf-8")
