from __future__ import annotations

import os
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from blog_builder.ingest import AccessDeniedError, safe_join

from api.dependencies import get_public_root

router = APIRouter(tags=["assets"])

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".pdf": "application/pdf",
    ".md": "text/markdown",
    ".txt": "text/plain",
}


@router.get("/md/{path:path}")
def get_asset(path: str, public_root: Path = Depends(get_public_root)):
    try:
        file_path = safe_join(public_root, path)
    except AccessDeniedError:
        raise HTTPException(status_code=403, detail="Access denied")
    if not file_path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {path}")
    media_type = MIME_TYPES.get(os.path.splitext(file_path.name)[1].lower(), "application/octet-stream")
    return FileResponse(file_path, media_type=media_type, headers={"Cache-Control": "public, max-age=3600"})
