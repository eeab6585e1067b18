"""
FastAPI app assembly: middleware, error mapping and router wiring.
"""
import logging
import os
from fastapi import FastAPI, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from compliance.utils.runtime import load_environment

load_environment()

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


from compliance.errors import ComplianceError, ErrorCode
from compliance.api.deps import get_current_user_context
from compliance.api.orgs import router as orgs_router
from compliance.api.deadlines import router as deadlines_router
from compliance.api.alerts import router as alerts_router
from compliance.api.documents import router as documents_router
from compliance.api.forms import router as forms_router
from compliance.api.profiles import router as profiles_router
from compliance.api.templates import router as templates_router
from compliance.api.billing import router as billing_router
from compliance.api.audits import router as audits_router
from compliance.api.notifications import router as notifications_router
from compliance.api.onboarding import router as onboarding_router
from compliance.api.calendar import router as calendar_router
from compliance.api.dashboard import router as dashboard_router
from compliance.api.jobs import router as jobs_router
from compliance.api.reports import router as reports_router
from compliance.api.webhooks import router as webhooks_router
from compliance.utils.feature_flags import get_feature_flags

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="Compliance Calendar Service",
    description="API for tracking regulatory deadlines, alerts, documents and compliance forms.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False


def _cors_origins():
    configured = os.getenv("CORS_ORIGINS")
    if configured:
        return [o.strip() for o in configured.split(",") if o.strip()]
    return [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:8000",
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware: enforce read-only for unauthenticated requests
@app.middleware("http")
async def enforce_readonly_for_guests(request: Request, call_next):
    # Provider callbacks authenticate with their own token
    if request.url.path.startswith("/webhooks/"):
        return await call_next(request)
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        # In dev mode, allow; authentication is handled by route dependencies
        is_dev_mode = os.getenv("DEV_MODE", "false").lower() == "true"
        if not is_dev_mode:
            h = request.headers
            user_present = (
                h.get("x-auth-request-user")
                or h.get("x-auth-request-email")
                or h.get("x-forwarded-user")
                or h.get("x-forwarded-email")
            )
            if not user_present:
                return JSONResponse(
                    {
                        "error": ErrorCode.UNAUTHENTICATED.value,
                        "message": "Guest mode is read-only. Sign in to perform changes.",
                        "detail": {},
                    },
                    status_code=status.HTTP_401_UNAUTHORIZED,
                )
    return await call_next(request)


@app.exception_handler(ComplianceError)
async def compliance_error_handler(request: Request, exc: ComplianceError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code.value, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.http_status)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    # Utility validators raise ValueError; surface them as invalid input
    return JSONResponse(
        {"error": ErrorCode.INVALID_INPUT.value, "message": str(exc), "detail": {}},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


@app.get("/user-info")
def get_user_info(user_context = Depends(get_current_user_context)):
    """Return the authenticated user, memberships and feature flags."""
    user, current_user = user_context
    return {
        "authenticated": True,
        "user_id": str(user.id),
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": current_user["is_superadmin"],
        "memberships": current_user["memberships"],
        "feature_flags": get_feature_flags(),
    }


app.include_router(orgs_router)
app.include_router(deadlines_router)
app.include_router(alerts_router)
app.include_router(documents_router)
app.include_router(forms_router)
app.include_router(profiles_router)
app.include_router(templates_router)
app.include_router(billing_router)
app.include_router(audits_router)
app.include_router(notifications_router)
app.include_router(onboarding_router)
app.include_router(calendar_router)
app.include_router(dashboard_router)
app.include_router(reports_router)
app.include_router(jobs_router)
app.include_router(webhooks_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "compliance-service"}
