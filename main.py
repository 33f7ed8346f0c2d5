import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from core.config import settings
from core.database import create_db_and_tables, engine
from routes.cron import router as cron_router
from services.addon_expiration import run_expiration_jobs
from services.cache_service import close_cache_client

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =========================================
# ⏰ In-process expiration scheduler
# =========================================
def _run_jobs_once() -> None:
    with Session(engine) as session:
        run_expiration_jobs(session)


async def run_periodic_expiration_jobs(interval_seconds: int) -> None:
    """Run the expiration jobs now and then every `interval_seconds`."""
    while True:
        try:
            await asyncio.to_thread(_run_jobs_once)
        except Exception as e:
            logger.exception(f"Background expiration job error: {e}")
        await asyncio.sleep(interval_seconds)


# =========================================
# 🏁 Lifespan (DB initialization)
# =========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("✅ Database tables created on startup.")

    scheduler_task = None
    if settings.ENABLE_EXPIRATION_SCHEDULER:
        scheduler_task = asyncio.create_task(
            run_periodic_expiration_jobs(settings.EXPIRATION_JOB_INTERVAL_SECONDS)
        )
        logger.info(f"⏰ Expiration scheduler started (every {settings.EXPIRATION_JOB_INTERVAL_SECONDS}s)")

    yield

    if scheduler_task:
        scheduler_task.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler_task
    close_cache_client()
    logger.info("✅ Application shutting down.")


# =========================================
#  ✅ FastAPI App
# =========================================
app = FastAPI(lifespan=lifespan, title=f"{settings.APP_NAME} Add-on Expiration Service")

allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================
# 📦 Routers
# =========================================
app.include_router(cron_router)


# =========================================
# 🩺 Health Check
# =========================================
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Expiration service is running"}


@app.get("/")
def read_root():
    return {"message": f"Welcome to the {settings.APP_NAME} expiration service!"}
