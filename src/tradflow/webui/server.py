# Copyright 2025 KTTC AI (https://github.com/kttc-ai)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""FastAPI server exposing the translation workflow.

Thin facade: validates request bodies, forwards the caller's
Authorization header unchanged and maps workflow errors to HTTP statuses.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tradflow import __version__
from tradflow.core.models import (
    CommitBatch,
    CommitResult,
    LabelSetupResult,
    OperationResult,
    ResolvedFileEntry,
    UnitState,
)
from tradflow.core.workflow import TranslationWorkflow
from tradflow.github.base import BranchConflictError, PullRequestNotFoundError, RemoteError
from tradflow.utils.config import Settings, load_settings

logger = logging.getLogger(__name__)

# Remote statuses passed through to the caller; anything else is a bad gateway.
FORWARDED_REMOTE_STATUSES = frozenset({401, 403, 404, 422})


# Request models
class CreateTranslationRequest(BaseModel):
    """Request model for opening a translation unit."""

    name: str = Field(..., description="Pull request title", min_length=1)


class BranchRequest(BaseModel):
    """Request model for operations addressing one translation branch."""

    branch: str = Field(..., description="Translation branch", min_length=1)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events."""
    logger.info("tradflow server ready")

    yield

    logger.info("Shutting down tradflow server...")
    await app.state.workflow.close()


def create_app(
    settings: Settings | None = None, workflow: TranslationWorkflow | None = None
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Validated settings; loaded from the environment if None
        workflow: Prebuilt workflow (tests); built from settings if None

    Returns:
        Configured FastAPI app

    Raises:
        ConfigurationError: If required settings are missing
    """
    if workflow is None:
        workflow = TranslationWorkflow.from_settings(settings or load_settings())

    app = FastAPI(
        title="tradflow",
        description="Collaborative translation workflow on GitHub",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.workflow = workflow

    _configure_middleware(app)
    _register_error_handlers(app)
    _register_routes(app)

    return app


def _configure_middleware(app: FastAPI) -> None:
    """Configure CORS middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _register_error_handlers(app: FastAPI) -> None:
    """Map workflow errors to HTTP responses."""

    @app.exception_handler(PullRequestNotFoundError)
    async def pull_request_not_found(
        _request: Request, exc: PullRequestNotFoundError
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BranchConflictError)
    async def branch_conflict(_request: Request, exc: BranchConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(exc),
                "expected": exc.expected_sha,
                "actual": exc.actual_sha,
            },
        )

    @app.exception_handler(RemoteError)
    async def remote_error(_request: Request, exc: RemoteError) -> JSONResponse:
        status = exc.status if exc.status in FORWARDED_REMOTE_STATUSES else 502
        return JSONResponse(status_code=status, content={"detail": exc.to_dict()})

    @app.exception_handler(ValueError)
    async def invalid_value(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})


def _workflow(request: Request) -> TranslationWorkflow:
    workflow: TranslationWorkflow = request.app.state.workflow
    return workflow


def _register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    router = APIRouter(prefix="/translation")

    @router.get("/list")
    async def list_translations(
        request: Request, authorization: str | None = Header(default=None)
    ) -> list[dict[str, Any]]:
        """List translation pull requests against the main branch."""
        logger.info(
            "Listing translations (authorization %s)", "present" if authorization else "missing"
        )
        return await _workflow(request).list_translation_units(authorization)

    @router.post("/")
    async def create_translation(
        request: Request,
        body: CreateTranslationRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, Any]:
        """Open a new translation unit."""
        return await _workflow(request).create_translation_unit(body.name, authorization)

    @router.get("/files", response_model=list[ResolvedFileEntry])
    async def get_files(
        request: Request,
        branch: str = Query(..., min_length=1),
        authorization: str | None = Header(default=None),
    ) -> Any:
        """Translatable files at the tip of a branch (cached)."""
        return list(await _workflow(request).get_files(branch, authorization))

    @router.get("/files-at-branch-creation", response_model=list[ResolvedFileEntry])
    async def get_files_at_branch_creation(
        request: Request,
        branch: str = Query(..., min_length=1),
        authorization: str | None = Header(default=None),
    ) -> Any:
        """Translatable files as they were when the branch was created."""
        return list(await _workflow(request).get_files_at_branch_creation(branch, authorization))

    @router.post("/files", response_model=CommitResult)
    async def save_files(
        request: Request, body: CommitBatch, authorization: str | None = Header(default=None)
    ) -> CommitResult:
        """Commit edited files to a translation branch."""
        return await _workflow(request).save_files(body, authorization)

    @router.post("/submit-to-review", response_model=OperationResult)
    async def submit_to_review(
        request: Request, body: BranchRequest, authorization: str | None = Header(default=None)
    ) -> OperationResult:
        return await _workflow(request).submit_to_review(body.branch, authorization)

    @router.post("/approve", response_model=OperationResult)
    async def approve(
        request: Request, body: BranchRequest, authorization: str | None = Header(default=None)
    ) -> OperationResult:
        return await _workflow(request).approve(body.branch, authorization)

    @router.get("/state", response_model=UnitState)
    async def get_state(
        request: Request,
        branch: str = Query(..., min_length=1),
        authorization: str | None = Header(default=None),
    ) -> UnitState:
        """Label state and approval status of a translation unit."""
        return await _workflow(request).get_state(branch, authorization)

    @router.post("/setup-labels", response_model=LabelSetupResult)
    async def setup_labels(
        request: Request, authorization: str | None = Header(default=None)
    ) -> LabelSetupResult:
        """Create the workflow labels if they do not exist yet."""
        return await _workflow(request).setup_labels(authorization)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    app.include_router(router)


def run_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    """Run the API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for security).
              Use 0.0.0.0 to bind to all interfaces.
        port: Port to listen on
        reload: Enable auto-reload for development
    """
    import uvicorn

    if host == "0.0.0.0":  # nosec B104
        logger.warning(
            "Binding to 0.0.0.0 exposes the server to all network interfaces. "
            "Use 127.0.0.1 for local-only access."
        )

    logger.info(f"Starting tradflow on http://{host}:{port}")

    uvicorn.run(
        "tradflow.webui.server:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    run_server(reload=True)
