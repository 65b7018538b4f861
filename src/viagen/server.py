"""HTTP routes exposing the workspace access layer."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings
from .errors import InvalidRequestError, ViagenError
from .files import EditableWorkspace
from .git import ChangeTracker

logger = logging.getLogger(__name__)


class FileWriteRequest(BaseModel):
    """Body of a file write."""

    path: str = Field(min_length=1)
    content: str


def create_file_router(workspace: EditableWorkspace) -> APIRouter:
    """Routes for listing, reading and writing editable files."""
    router = APIRouter()

    @router.get("/files")
    async def list_files():
        files = await asyncio.to_thread(workspace.list_files)
        return {"files": files}

    @router.get("/file")
    async def read_file(path: Optional[str] = Query(default=None)):
        if not path:
            raise InvalidRequestError("Missing path parameter")
        content = await asyncio.to_thread(workspace.read, path)
        return {"path": path, "content": content}

    @router.post("/file")
    async def write_file(body: FileWriteRequest):
        await asyncio.to_thread(workspace.write, body.path, body.content)
        return {"status": "ok", "path": body.path}

    return router


def create_git_router(tracker: ChangeTracker) -> APIRouter:
    """Routes for working tree status and diffs."""
    router = APIRouter(prefix="/git")

    @router.get("/status")
    async def git_status():
        status = await tracker.status()
        return status.to_dict()

    @router.get("/diff")
    async def git_diff(path: Optional[str] = Query(default=None)):
        diff = await tracker.diff(path)
        return diff.to_dict()

    return router


def create_health_router(settings: Settings) -> APIRouter:
    """Route reporting whether the assistant has credentials."""
    router = APIRouter()

    @router.get("/health")
    async def health():
        configured = settings.assistant_configured
        return {
            "status": "ok" if configured else "error",
            "configured": configured,
            "git": bool(settings.github_token),
        }

    return router


async def _viagen_error_handler(request: Request, exc: ViagenError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        message = "Invalid JSON body"
    else:
        fields = sorted({str(error["loc"][-1]) for error in errors if error.get("loc")})
        message = f"Missing or invalid fields: {', '.join(fields)}" if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


def create_app(
    settings: Optional[Settings] = None,
    workspace: Optional[EditableWorkspace] = None,
    tracker: Optional[ChangeTracker] = None,
) -> FastAPI:
    """Build the FastAPI application for one project."""
    settings = settings or Settings()
    workspace = workspace or EditableWorkspace(settings.project_root, settings.editable)
    tracker = tracker or ChangeTracker(settings.project_root)

    app = FastAPI(title="viagen", version=__version__)
    app.add_exception_handler(ViagenError, _viagen_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    prefix = settings.route_prefix.rstrip("/")
    app.include_router(create_file_router(workspace), prefix=prefix)
    app.include_router(create_git_router(tracker), prefix=prefix)
    app.include_router(create_health_router(settings), prefix=prefix)

    app.state.settings = settings
    app.state.workspace = workspace
    app.state.tracker = tracker

    logger.info(f"Serving {workspace.project_root} with editable patterns {workspace.patterns}")
    return app
