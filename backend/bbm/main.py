import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bbm.config import settings
from bbm.middleware.exceptions import register_exception_handlers
from bbm.middleware.rate_limit import RateLimitMiddleware
from bbm.middleware.security import SecureCookieMiddleware, SecurityHeadersMiddleware
from bbm.routers import auth, health, logs, notifications, stock, users
from bbm.services.scheduler import lifespan

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="BBM Monitor",
    description="Fuel stock monitoring for the GENSET and TUG_ASSIST tanks",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# Security headers (first - applies to all responses)
app.add_middleware(SecurityHeadersMiddleware)

# Secure cookies (production only)
app.add_middleware(SecureCookieMiddleware)

# Rate limiting
app.add_middleware(
    RateLimitMiddleware,
    default_limit=settings.rate_limit_default,
    authenticated_limit=settings.rate_limit_authenticated,
    default_window=60,
    exempt_paths=["/health", "/health/ready", "/docs", "/openapi.json"],
)

# CORS (credentials on, for the refresh cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(stock.router, prefix="/stock", tags=["stock"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(logs.router, prefix="/logs", tags=["logs"])
