"""
i2s-arbiter: FastAPI application entry point.

Run with:
    i2s-arbiter
or:
    uvicorn i2s_arbiter.main:app --host 0.0.0.0 --port 8090
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from i2s_arbiter.api.routes import health as health_router
from i2s_arbiter.api.routes import services as services_router
from i2s_arbiter.arbiter import Arbiter
from i2s_arbiter.config import settings
from i2s_arbiter.devices import create_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# httpx logs every request at INFO; with a 2 s poll loop that drowns
# everything else.
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

WEB_DIR = Path(__file__).parent / "web"

# Grace period for in-flight requests on shutdown (seconds)
_SHUTDOWN_TIMEOUT: int = 5


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the arbiter and start polling on startup; stop both on shutdown."""
    client = create_client(timeout=settings.request_timeout)
    arbiter = Arbiter(
        settings.services,
        client,
        poll_interval=settings.poll_interval,
        default_service=settings.default_service,
    )
    app.state.arbiter = arbiter
    arbiter.start_polling()
    logger.info(
        "i2s-arbiter running with %d service(s): %s",
        len(settings.services),
        ", ".join(service.name for service in settings.services),
    )
    try:
        yield
    finally:
        await arbiter.stop_polling()
        await client.aclose()
        app.state.arbiter = None
        logger.info("i2s-arbiter stopped")


app = FastAPI(
    title="i2s-arbiter",
    description="Keeps at most one I2S audio service unlocked at a time.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(health_router.router, tags=["health"])
app.include_router(services_router.router, tags=["services"])

# Web UI last so it never shadows the API routes.
app.mount("/", StaticFiles(directory=WEB_DIR, html=True), name="web")


def run() -> None:
    """Console-script entry point."""
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        timeout_graceful_shutdown=_SHUTDOWN_TIMEOUT,
    )


if __name__ == "__main__":
    run()
