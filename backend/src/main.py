"""FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.logging import RichHandler

from src.config import settings
from src.database import engine
from src.dependencies import close_clients
from src.routers.chat import router as chat_router
from src.routers.conversations import router as conversations_router
from src.services.errors import ChatServiceError, RequestParseError

logging.basicConfig(
    level=logging.INFO,
    format="%(name)s - %(message)s",
    datefmt="%H:%M:%S",
    handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
# Our app loggers: show DEBUG when debug=True, keep third-party libs at INFO
if settings.debug:
    for name in ("src.services", "src.routers"):
        logging.getLogger(name).setLevel(logging.DEBUG)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_clients()
    await engine.dispose()


app = FastAPI(
    title="Clinical Grounding Assistant",
    description="Evidence-only clinical question answering over product and rule records",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(
    request: Request, exc: ChatServiceError
) -> JSONResponse:
    logger.warning(
        "%s %s -> %d %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"content": "", "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    parse_error = RequestParseError(
        "INVALID_REQUEST", f"{field}: {message}" if field else message
    )
    return await chat_service_error_handler(request, parse_error)


app.include_router(chat_router)
app.include_router(conversations_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
