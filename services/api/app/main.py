"""
Suggest-Users API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Initialise DB connection pool and create tables if not present
  3. Start the auth provider HTTP client
  4. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from app.config import settings
from app.database import init_db
from app.errors import register_exception_handlers
from app.telemetry import setup_tracing, instrument_app
from app.clients.auth_client import auth_client
from app.routers import posts, suggestions, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
if settings.otel_enabled:
    setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Suggest-Users API (env=%s)", settings.environment)

    await init_db()
    await auth_client.start()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await auth_client.stop()


app = FastAPI(
    title="Suggest-Users API",
    description=(
        "Social graph service with a weighted 'people you may know' ranker "
        "over follows, hashtags, engagement, location and activity."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS: any origin may call the API ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

register_exception_handlers(app)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(suggestions.router, prefix="/suggestions", tags=["Suggestions"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics — scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
if settings.otel_enabled:
    instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
