from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from contextlib import asynccontextmanager
import logging
import traceback

from app.config import Capabilities, get_env_presence, get_settings
from app.rate_limit import limiter
from app.scrape_routes import router as scrape_router
from core.task_queue import get_task_queue
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifecycle events."""
    settings = get_settings()
    logger.info(f"[scraper] env: SCRAPER_ENV={settings.env}")

    queue = get_task_queue()
    queue.start()

    # Start the scrape scheduler
    scheduler_started = False
    if settings.scheduler_disabled:
        logger.info("[orchestrator] Scheduler disabled by SCRAPER_DISABLE_SCHEDULER")
    elif not settings.db_url:
        logger.warning("[orchestrator] No PostgreSQL database URL configured (need SUPABASE_DB_URL or DATABASE_URL), scheduler not started")
    else:
        try:
            from orchestrator import start_scheduler
            await start_scheduler()
            scheduler_started = True
        except Exception as e:
            logger.error(f"[orchestrator] Failed to start scheduler: {e}")

    yield

    # Shutdown
    if scheduler_started:
        try:
            from orchestrator import stop_scheduler
            await stop_scheduler()
        except Exception as e:
            logger.error(f"[orchestrator] Failed to stop scheduler: {e}")
    await queue.stop()


app = FastAPI(title="Opportunity Scraper API", version="0.1.0", lifespan=lifespan)

# Add rate limiter state
app.state.limiter = limiter

# Rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Error masking middleware
@app.middleware("http")
async def error_masking_middleware(request: Request, call_next):
    """Mask detailed errors in production; show full errors in dev."""
    try:
        response = await call_next(request)
        return response
    except HTTPException:
        # Let HTTPException propagate untouched (proper status codes like 404, 400)
        raise
    except Exception as e:
        is_dev = get_settings().is_dev

        logger.error(f"Unhandled error: {str(e)}")
        if is_dev:
            logger.error(traceback.format_exc())
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "error": str(e),
                    "traceback": traceback.format_exc()
                }
            )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": "An internal error occurred. Please try again later."
            }
        )


# Triggers are invoked by the platform's scheduler and admin tooling, not browsers with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(scrape_router)


@app.get("/api/healthz")
async def healthz():
    return Capabilities.get_status()


@app.get("/api/capabilities")
async def capabilities():
    return {
        "env": get_env_presence(),
        "queue": {
            "running": get_task_queue().running,
            "completed": get_task_queue().completed,
            "failed": get_task_queue().failed,
        },
    }
