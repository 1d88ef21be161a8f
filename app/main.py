"""
Application entry point for the RouteWise disclosure service.
"""

from contextlib import asynccontextmanager

import mlflow
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.consent_service.router import router as consent_router
from app.core.config import settings
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.core.security import verify_access_token
from app.core.services import build_services
from app.db.mongodb import check_connection_health, connect_mongo
from app.disclosure_service.router import router as driver_view_router
from app.preference_service.router import router as preference_router
from app.utils.logger import get_logger

logger = get_logger(__name__)


# =========================================================
# Lifespan
# =========================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application", extra={"env": settings.ENV})

    client = None
    database = None
    if settings.MONGO_URI:
        client, database = connect_mongo(settings.MONGO_URI, settings.MONGO_DB)
    else:
        logger.warning("MONGO_URI not set, using in-memory stores")

    if settings.MLFLOW_TRACKING_URI and settings.ENV != "test":
        mlflow.set_tracking_uri(settings.MLFLOW_TRACKING_URI)
        mlflow.set_experiment("routewise")

    app.state.mongo_client = client
    app.state.services = build_services(settings, database)

    yield

    if client is not None:
        client.close()
        logger.info("MongoDB connection closed")


# =========================================================
# App Init
# =========================================================
app = FastAPI(
    lifespan=lifespan,
    title="RouteWise Disclosure Service",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================
# Rate Limiting
# =========================================================
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# =========================================================
# Attach user -> request.state (for user-based limits)
# =========================================================
@app.middleware("http")
async def attach_user_to_state(request: Request, call_next):
    request.state.user = None

    auth = request.headers.get("authorization")
    if auth and auth.startswith("Bearer "):
        try:
            request.state.user = verify_access_token(auth.split(" ", 1)[1])
        except ValueError as e:
            logger.warning("Invalid access token", extra={"error": str(e)})

    return await call_next(request)


# =========================================================
# Request Logging
# =========================================================
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "Incoming request",
        extra={
            "method": request.method,
            "path": request.url.path,
        },
    )
    return await call_next(request)


# =========================================================
# Routers
# =========================================================
app.include_router(preference_router)
app.include_router(driver_view_router)
app.include_router(consent_router)

logger.info(
    "API routers registered",
    extra={"routers": ["preferences", "driver_view", "consent"]},
)


# =========================================================
# Health
# =========================================================
@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "database": check_connection_health(getattr(app.state, "mongo_client", None)),
    }


# Initialize Sentry
if settings.ENV == "prod" and settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(),
            StarletteIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=settings.ENV,
    )
    logger.info("Sentry initialized for error tracking")
