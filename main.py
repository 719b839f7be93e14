"""
TailorFlow Billing Backend
Shop trials, subscriptions, Paystack payments and the scheduled trial processor
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from admin_tools import admin_router
from backend.utils.access_gate import SubscriptionLockedError
from backend.utils.responses import locked_response
from config.settings import LOGS_DIR, settings
from database import get_session_factory, init_db
from jobs.trial_scheduler import TrialJobScheduler
from routers.billing_router import billing_router
from routers.feature_router import feature_router
from routers.shop_router import shop_router
from routers.trial_router import trial_router
from services.feature_service import FeatureService
from services.kv_store import JsonFileStore
from services.paystack_service import PaystackService
from services.trial_service import TrialService

# Logging setup - write ALL events to /logs/app.log
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="TailorFlow Billing")


def _is_render_env() -> bool:
    """Check if running in Render.com environment"""
    return bool(settings.render)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"ok": False, "data": {}, "error": "internal_error", "message": "Internal Server Error"}
            )


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # Paystack inline checkout loads from js.paystack.co and calls api.paystack.co
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' https://js.paystack.co; "
            "connect-src 'self' https://api.paystack.co; "
            "frame-src https://checkout.paystack.com; "
            "object-src 'none'; "
            "base-uri 'self';"
        )

        # HTTPS is only guaranteed on Render
        if _is_render_env():
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SubscriptionLockedError)
async def subscription_locked_handler(request: Request, exc: SubscriptionLockedError):
    return locked_response(exc.status.to_dict())


# ============================================================================
# SERVICES - created once per process, handed out through backend.dependencies
# ============================================================================

def configure_services(target: FastAPI) -> None:
    target.state.trial_service = TrialService(
        JsonFileStore(settings.trial_store_dir),
        trial_days=settings.trial_days,
    )
    target.state.paystack_service = PaystackService(
        settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
    )
    target.state.feature_service = FeatureService()
    target.state.trial_scheduler = TrialJobScheduler(
        get_session_factory(),
        interval_seconds=settings.trial_job_interval_seconds,
        reminder_window_hours=settings.reminder_window_hours,
    )


@app.on_event("startup")
async def initialize_database():
    """Create all tables."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


@app.on_event("startup")
async def start_services():
    configure_services(app)
    if not settings.paystack_secret_key:
        logger.warning("Startup check: PAYSTACK_SECRET_KEY is missing; payments are disabled")
    if settings.trial_job_enabled:
        app.state.trial_scheduler.start()


@app.on_event("shutdown")
async def stop_services():
    scheduler = getattr(app.state, "trial_scheduler", None)
    if scheduler is not None:
        await scheduler.stop()


@app.get("/health")
async def health():
    return {"ok": True}


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(billing_router)
app.include_router(shop_router)
app.include_router(trial_router)
app.include_router(feature_router)
app.include_router(admin_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
