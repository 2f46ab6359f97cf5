import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Config
from app.domains.scheduling.handlers import router as scheduling_router

logging.basicConfig(level=getattr(logging, Config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


app = FastAPI(title="Salon Scheduling API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(scheduling_router)
logger.info(
    "Scheduling API ready (slot step=%dmin, calendar step=%dmin)",
    Config.SLOT_STEP_MINUTES,
    Config.CALENDAR_SNAP_MINUTES,
)


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
