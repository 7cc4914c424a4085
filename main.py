import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import uvicorn

from app.api.endpoints import (
    agent,
    auth,
    health,
    symbiote,
    trade,
)
from app.core.config import settings
from app.core.dependencies import autoplay_scheduler, wallet_watcher
from app.core.errors import SymbioteError
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.db.session import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    # release every autoplay timer and wallet poller before the loop closes
    await autoplay_scheduler.shutdown()
    await wallet_watcher.shutdown()


# Define the FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

# Per-client request limits, wrapped by CORS
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SymbioteError)
async def symbiote_error_handler(request: Request, exc: SymbioteError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


# Include your API routers
app.include_router(health.router)
app.include_router(auth.router, prefix="/auth")
app.include_router(agent.router)
app.include_router(symbiote.router)
app.include_router(trade.router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        ssl_keyfile=settings.SSL_KEY,
        ssl_certfile=settings.SSL_CERT,
        reload=settings.DEBUG
    )
