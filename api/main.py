import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import router as auth_router
from core import settings, supabase
from core.errors import (
    AmbiguousResultError,
    DataAccessError,
    MalformedInputError,
    NotFoundError,
    TransportError,
)
from core.logs import configure_logging
from items import router as items_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    # One pooled HTTP client per process.
    await supabase.init_client()
    try:
        yield
    finally:
        await supabase.close_client()


app = FastAPI(lifespan=lifespan)

_cors_origins = settings.cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    # Browsers refuse credentialed responses with a wildcard origin.
    allow_credentials="*" not in _cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router, tags=["auth"])
app.include_router(items_router.router, tags=["items"])


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "message": message})


@app.exception_handler(DataAccessError)
async def data_access_error_handler(request: Request, exc: DataAccessError) -> JSONResponse:
    # Internal detail stays in the logs; clients get fixed messages.
    if isinstance(exc, MalformedInputError):
        return _error(400, "bad_request", "Invalid request")
    if isinstance(exc, NotFoundError):
        return _error(404, "not_found", "Not found")
    if isinstance(exc, AmbiguousResultError):
        return _error(409, "conflict", "Multiple matching records")
    if isinstance(exc, TransportError):
        logger.warning("upstream_unavailable path=%s error=%s", request.url.path, exc)
        return _error(502, "upstream_unavailable", "Upstream service unavailable")

    logger.exception("data_access_failed path=%s", request.url.path, exc_info=exc)
    return _error(500, "internal_error", "Internal server error")


@app.get("/health")
def health() -> dict:
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port())
