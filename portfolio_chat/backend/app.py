from __future__ import annotations

"""FastAPI backend for the portfolio website chat.

Run with:
    uvicorn portfolio_chat.backend.app:app --reload --port 8000

Env vars required:
    OPENAI_API_KEY
    OPENAI_ASSISTANT_ID   (streaming route)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from portfolio_chat import __version__
from portfolio_chat.backend import chat_route, openai_route, projects_route, users_route
from portfolio_chat.config import setup_logging
from portfolio_chat.utils.error_handler import ApiError

# App setup
# -----------------------------------------------------------------------------
setup_logging()

app = FastAPI(title="Portfolio Chat", version=__version__)

app.include_router(openai_route.router)
app.include_router(chat_route.router)
app.include_router(users_route.router)
app.include_router(projects_route.router)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
