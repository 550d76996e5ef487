"""
MemoBot FastAPI application.

Webhooks for messaging providers, the first-party chat endpoint and the
memory, tag, reminder and account-link APIs.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from memobot.config import get_settings
from memobot.core.errors import (
    AuthenticationFailure,
    MemobotError,
    NotFound,
    StateConflict,
    TransientDependencyFailure,
    ValidationFailure,
)
from memobot.infra.logging_config import LoggingConfig
from memobot.routers import categories, chat, links, memories, reminders, tags, webhooks

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AuthenticationFailure: 403,
    ValidationFailure: 422,
    StateConflict: 409,
    NotFound: 404,
    TransientDependencyFailure: 503,
}


async def memobot_error_handler(request: Request, exc: MemobotError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.user_message})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig.configure("DEBUG" if testing else settings.log_level)

    app = FastAPI(
        title="MemoBot API",
        description="Personal memory assistant over chat, Telegram and WhatsApp",
        version="0.1.0",
    )
    app.add_exception_handler(MemobotError, memobot_error_handler)

    app.include_router(webhooks.router)
    app.include_router(chat.router)
    app.include_router(memories.router)
    app.include_router(tags.router)
    app.include_router(categories.router)
    app.include_router(reminders.router)
    app.include_router(links.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "app": settings.app_name}

    add_pagination(app)
    return app


app = create_app()
