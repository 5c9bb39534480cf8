"""
Tamilarr application

Wires the addon routes, the health probes and the request logging
middleware into one FastAPI app. Startup creates the tables, applies the
provider rate limit and loads the tracker list, which is then refreshed in
the background.

    uvicorn tamilarr.main:app      (from backend/)
    python backend/dev.py          (auto reload)
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from tamilarr.config import Config
from tamilarr.models.base import Base
from tamilarr.database import engine
from tamilarr.services.rate_limiter import configure_rate_limit
from tamilarr.services.structured_logging import (
    set_request_id, clear_context, generate_request_id, setup_json_logging
)
from tamilarr.services.tracker_list import get_tracker_list

# uvicorn may already have configured the root logger
root_logger = logging.getLogger()
if not root_logger.handlers:
    setup_json_logging(level=Config.LOG_LEVEL, json_output=Config.LOG_FORMAT == "json")
root_logger.setLevel(Config.LOG_LEVEL)

for uvicorn_logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
    logging.getLogger(uvicorn_logger_name).setLevel(logging.INFO)

# Per-request client logs are too chatty at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request and one per response, tagged with the request id.

    The id comes from the client's X-Request-ID header or is generated, is
    echoed back in the response header and stays in the logging context
    until the response is sent. Liveness probes are passed through silently.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/health/live"):
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        client = request.client.host if request.client else "-"
        logger.info(f"[{request_id}] {request.method} {request.url.path} from {client}")

        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(f"[{request_id}] {response.status_code} in {_elapsed_ms(started):.1f}ms")
            return response
        except Exception as e:
            logger.error(f"[{request_id}] {type(e).__name__} after {_elapsed_ms(started):.1f}ms: {e}")
            raise
        finally:
            clear_context()


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


async def run_tracker_refresh_loop(interval: int) -> None:
    """Refresh the tracker list every ``interval`` seconds."""
    tracker_list = get_tracker_list()
    while True:
        await asyncio.sleep(interval)
        await tracker_list.fetch_and_cache()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: tables, rate limit, tracker list. Shutdown: stop the refresh task."""
    logger.info(f"Starting {Config.APP_TITLE} {Config.APP_VERSION}")
    if Config.validate():
        logger.info(f"Configuration: {Config.get_summary()}")
    else:
        logger.error(f"Invalid configuration: {Config.get_summary()}")

    Base.metadata.create_all(bind=engine)
    configure_rate_limit("realdebrid", Config.DEBRID_RATE_PER_SECOND, Config.DEBRID_RATE_BURST)

    if Config.is_debrid_enabled():
        logger.info("Real-Debrid enabled: streams resolve through the provider")
    else:
        logger.warning("REAL_DEBRID_API_KEY not set: serving peer-to-peer streams only")

    await get_tracker_list().fetch_and_cache()
    refresh_task = asyncio.create_task(run_tracker_refresh_loop(Config.TRACKER_REFRESH_INTERVAL))
    logger.info(f"Ready; tracker list refreshes every {Config.TRACKER_REFRESH_INTERVAL}s")

    yield

    refresh_task.cancel()
    try:
        await refresh_task
    except asyncio.CancelledError:
        pass
    logger.info(f"{Config.APP_TITLE} stopped")


tags_metadata = [
    {
        "name": "stremio",
        "description": "Addon protocol: manifest, stream listing and on-demand debrid resolution.",
    },
    {
        "name": "health",
        "description": "Health check endpoints. Kubernetes-compatible liveness/readiness probes.",
    },
]

app = FastAPI(
    title=Config.APP_TITLE,
    description="""
## Tamilarr API

Stremio-compatible addon serving forum releases of Tamil movies and web series.

### Playback
- **Real-Debrid**: releases are resolved on demand into direct HTTP links
- **Peer-to-peer**: without a provider key, streams carry the infohash plus tracker and DHT sources

### Rate Limits
- Real-Debrid API: 250 requests per minute
""",
    version=Config.APP_VERSION,
    lifespan=lifespan,
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(RequestLoggingMiddleware)

# Media-center clients call the addon from arbitrary origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

from tamilarr.api import stremio_routes, health_routes  # noqa: E402

app.include_router(stremio_routes.router)
app.include_router(health_routes.router)


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to the addon manifest."""
    return RedirectResponse(url="/manifest.json")

