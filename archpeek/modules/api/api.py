import io
import os
import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import PlainTextResponse
from rich.console import Console
import fastapi_swagger_dark as fsd

from archpeek.modules.formatters import render_tree
from archpeek.modules.keepers.previewer import ArchiveFormat, ParseOptions, PreviewResult, preview_path
from archpeek.modules.keepers.tree_builder import use_system_collation

app = FastAPI(
    title="archpeek API",
    docs_url=None,
    description="""
**archpeek API**
* Lists archive contents without extracting them
* zip, tar, tar.gz, gz, tar.bz2, bz2, rar
    """,
    version="1.0.0"
    )

# Create a router for the dark docs
router = APIRouter()

# Install dark theme on the router
fsd.install(router)

# Include the router in the app
app.include_router(router)

# Tree ordering follows the server locale
use_system_collation()


def _options(legacy_long_names: bool) -> ParseOptions:
    return ParseOptions(capture_long_names=not legacy_long_names)


def _parse_format(fmt):
    if fmt is None:
        return None
    try:
        return ArchiveFormat(fmt)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"format must be one of: {', '.join(f.value for f in ArchiveFormat)}"
        )


def _run_preview(path: str, fmt, legacy_long_names: bool) -> PreviewResult:
    target = Path(path).expanduser()
    if not target.exists():
        raise HTTPException(status_code=404, detail=f"Path not found: {path}")

    result = preview_path(target, fmt=_parse_format(fmt), options=_options(legacy_long_names))
    if result.error:
        raise HTTPException(status_code=422, detail=result.error)
    return result


@app.get("/health")
def health():
    """
    ## /health

    Liveness check.
    """
    return {"status": "ok"}


@app.get("/preview")
def preview(
    path: str = Query(..., description="Archive file or folder on the server"),
    format: str = Query(default=None, description="Force a format (zip, tar, tar.gz, gz, rar, tar.bz2, bz2)"),
    legacy_long_names: bool = Query(default=False, description="Skip GNU long names in .tar.gz streams"),
):
    """
    ## /preview

    Preview an archive on the server's filesystem.

    - Returns the flat entries and the sorted tree as JSON.

    - Example: `/preview?path=/data/backup.tar.gz`
    """
    return _run_preview(path, format, legacy_long_names).to_dict()


@app.get("/preview.txt", response_class=PlainTextResponse)
def preview_text(
    path: str = Query(..., description="Archive file or folder on the server"),
    format: str = Query(default=None, description="Force a format"),
    simple: bool = Query(default=False, description="Hide size and date columns"),
):
    """
    ## /preview.txt

    Preview an archive as a plain-text tree.
    """
    result = _run_preview(path, format, legacy_long_names=False)

    buffer = io.StringIO()
    console = Console(file=buffer, width=120, no_color=True, highlight=False)
    console.print(render_tree(result.tree, label=os.path.basename(result.path), show_details=not simple))
    return buffer.getvalue()


@app.post("/preview/upload")
def preview_upload(
    file: UploadFile = File(..., description="Archive to preview"),
    format: str = Query(default=None, description="Force a format"),
):
    """
    ## /preview/upload

    Preview an uploaded archive. The upload's file name drives format
    detection, so keep its extension.
    """
    fmt = _parse_format(format)
    name = os.path.basename(file.filename or "") or "upload"

    with tempfile.TemporaryDirectory(prefix="archpeek-") as tmp:
        target = Path(tmp) / name
        with open(target, "wb") as out:
            shutil.copyfileobj(file.file, out)

        result = preview_path(target, fmt=fmt)

    if result.error:
        raise HTTPException(status_code=422, detail=result.error)

    data = result.to_dict()
    data["path"] = name
    return data
