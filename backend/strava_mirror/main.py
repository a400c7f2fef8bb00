import logging
import sys
from contextlib import asynccontextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from strava_mirror.api.v1 import activities, auth, photos, strava

# Ensure app loggers (sync, token refresh, uploads) print to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("strava_mirror").setLevel(logging.DEBUG)
from strava_mirror.config import settings
from strava_mirror.core.errors import SyncError
from strava_mirror.db.session import init_db
from strava_mirror.services.http_client import close_http_client, init_http_client
from strava_mirror.services.storage import LocalBlobStorage, get_storage
from strava_mirror.services.strava_link import StravaLinker
from prometheus_client import make_asgi_app

logger = logging.getLogger("strava_mirror.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app_env == "production":
        if not settings.encryption_key or len(settings.encryption_key) < 32:
            raise RuntimeError(
                "ENCRYPTION_KEY must be set in production (min 32 chars). "
                'Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"'
            )
    await init_db()
    init_http_client(timeout=settings.strava_timeout_seconds)
    yield
    await close_http_client()


limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="Strava Mirror API",
    description="Mirror Strava activities and photos into local storage and push edits back",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.state.strava_linker = StravaLinker()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/uploads/"):
            # Uploaded photos are embedded by the frontend from another origin
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Cache-Control"] = "no-cache"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(strava.router, prefix="/api/v1")
app.include_router(activities.router, prefix="/api/v1")
app.include_router(photos.router, prefix="/api/v1")

_storage = get_storage()
if isinstance(_storage, LocalBlobStorage):
    _storage.ensure_root()
    app.mount("/uploads", StaticFiles(directory=str(_storage.root)), name="uploads")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
