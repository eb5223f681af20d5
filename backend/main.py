from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import ai_tools, analysis, auth, corpus, opinions
from core.config import settings
from core.database import engine, init_models
from core.logging import configure_logging, get_logger
from core.middleware import RequestLoggingMiddleware, SlowRequestMiddleware
from core.errors import register_error_handlers
from engines.statistics import get_statistics_refresher

VERSION = "0.1.0"

# Initialize logging before anything else
configure_logging(
    level=settings.LOG_LEVEL,
    json_logs=settings.LOG_JSON,
    log_sql=settings.LOG_SQL,
)

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("startup", message="Corpora API starting up")

    await init_models()
    log.info("database_connected", message="Database tables initialized")

    yield

    log.info("shutdown", message="Corpora API shutting down")
    refresher = get_statistics_refresher()
    if refresher.pending:
        log.info("statistics_drain", pending=refresher.pending)
    await refresher.drain()
    await engine.dispose()
    log.debug("database_disposed", message="Database connections closed")


app = FastAPI(
    title="Corpora API",
    description="Reading-corpus service: AI analysis of texts into vocabulary, themes and opinions",
    version=VERSION,
    lifespan=lifespan,
)

# Register structured error handlers
register_error_handlers(app)

# Middleware (order matters: last added = first executed)
app.add_middleware(
    SlowRequestMiddleware,
    slow_threshold_ms=settings.SLOW_REQUEST_MS,
    exempt_prefixes=("/ai", "/api/analysis"),
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(corpus.router, prefix="/api/corpus", tags=["corpus"])
app.include_router(opinions.router, prefix="/api/opinions", tags=["opinions"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(ai_tools.router, prefix="/ai", tags=["ai"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    log.info("server_config", host=settings.BACKEND_HOST, port=settings.BACKEND_PORT, debug=settings.APP_DEBUG)
    uvicorn.run(
        "main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.APP_DEBUG,
        log_config=None,  # Disable uvicorn's default logging, we handle it
    )
