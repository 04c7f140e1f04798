# app/main.py
from datetime import datetime, timezone

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handlers import register_exception_handlers
from app.api.routers import auth, promotions, roles, users
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import export_metrics
from app.middleware import ObservabilityMiddleware

# --- Models registration (necesario para que Alembic los detecte) ---
import app.models.user       # noqa: F401
import app.models.promotion  # noqa: F401

TAGS_METADATA = [
    {"name": "auth", "description": "Login and token refresh."},
    {"name": "users", "description": "Users, role assignment and direct permission grants."},
    {"name": "roles", "description": "Roles and the permission catalog."},
    {"name": "promotions", "description": "Promotion administration and discount evaluation for the till."},
]

setup_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Point-of-sale backend.\n\n"
        "- **Promotions**: time-boxed discounts by product, category or store-wide, "
        "ranked by priority and evaluated per sale line.\n"
        "- **Users & roles**: permission-based access for admins, managers and cashiers.\n\n"
        "Use the **Authorize** button to try protected endpoints."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(auth.router, prefix=settings.API_V1_STR)
app.include_router(users.router, prefix=settings.API_V1_STR)
app.include_router(roles.router, prefix=settings.API_V1_STR)
app.include_router(promotions.router, prefix=settings.API_V1_STR)


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/metrics", include_in_schema=False)
def metrics():
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)
