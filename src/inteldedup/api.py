"""FastAPI application exposing the command surface over HTTP."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Annotated

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from inteldedup import __version__
from inteldedup.app import build_command_context
from inteldedup.commands import handle_command

if TYPE_CHECKING:
    from collections.abc import Callable

    from inteldedup.commands import CommandContext

log = getLogger(__name__)


def create_app(
    *,
    context: CommandContext | None = None,
    context_factory: Callable[[], CommandContext] = build_command_context,
) -> FastAPI:
    """Build the API; the command context is created on first use unless given."""

    app = FastAPI(title="inteldedup", version=__version__)
    app.state.command_context = context

    def resolve_context() -> CommandContext:
        if app.state.command_context is None:
            app.state.command_context = context_factory()
        return app.state.command_context

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/dedup-scanner")
    async def dedup_scanner(
        request: Request,
        authorization: Annotated[str | None, Header()] = None,
    ) -> JSONResponse:
        raw = await request.body()
        try:
            body: object = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        # commands block on the database and drive their own event loop for HTTP
        command_context = await run_in_threadpool(resolve_context)
        response = await run_in_threadpool(
            handle_command, body, authorization=authorization, context=command_context
        )
        return JSONResponse(response.payload, status_code=response.status_code)

    return app
