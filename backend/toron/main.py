import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from toron.core.config import get_settings
from toron.core.errors import ToronError
from toron.api import api_router


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Toron Debate API", version="0.1.0")

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ToronError)
async def handle_toron_error(request: Request, exc: ToronError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/")
def root() -> dict:
    """Discovery: where the API lives and how to check it is up."""
    return {
        "name": "Toron",
        "status": "online",
        "conversations": "/v1/conversations",
        "gallery": "/v1/debates",
        "topics": "/v1/debates/topics",
        "health": "/health",
    }


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(api_router)
