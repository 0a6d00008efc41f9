"""
FastAPI app entrypoint.

Trigger drivers run on the in-process scheduler (SCHEDULER_ENABLED=true) and/or from external
cron services via POST /triggers/{name}.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from familynotify.api.routes import admin, calendar, push, shopping, tasks, triggers
from familynotify.config import settings
from familynotify.scheduler.notify_jobs import register_jobs

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler(timezone="UTC")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        job_ids = register_jobs(_scheduler)
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("Scheduler started with jobs: %s", ", ".join(job_ids))
    else:
        logger.info("Scheduler disabled; drivers run via POST /triggers/{name}")
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Family Hub Notifications", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(triggers.router, tags=["triggers"])
app.include_router(calendar.router, tags=["calendar"])
app.include_router(shopping.router, tags=["shopping"])
app.include_router(tasks.router, tags=["tasks"])
app.include_router(push.router, tags=["push"])
app.include_router(admin.router, tags=["admin"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Family Hub Notifications API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
