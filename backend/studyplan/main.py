import logging
from typing import Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .logging_config import configure_logging
from .plan_routes import router as plan_router
from .practice_routes import router as practice_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Study Scheduler", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

settings_snapshot = get_settings()
logger.info("Scheduler starting with review placement: %s", settings_snapshot.review_placement)
logger.info("Review seed configured: %s", settings_snapshot.review_seed is not None)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "review_placement": settings.review_placement}


app.include_router(plan_router)
app.include_router(practice_router)
