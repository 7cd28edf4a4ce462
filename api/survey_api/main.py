import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ALLOWED_ORIGINS, DB_STARTUP_ATTEMPTS, DB_STARTUP_DELAY_SECONDS, LOG_LEVEL
from .database import database_ready, init_db
from .routes import include_modular_routers

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Survey Platform API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "X-Respondent-Email"],
)
include_modular_routers(app)


def wait_for_db(attempts: int = DB_STARTUP_ATTEMPTS, delay_seconds: float = DB_STARTUP_DELAY_SECONDS) -> None:
    for attempt in range(1, attempts + 1):
        if database_ready():
            return
        logger.warning("[STARTUP] database not reachable (attempt %d/%d)", attempt, attempts)
        time.sleep(delay_seconds)
    raise RuntimeError(f"Database still unreachable after {attempts} attempts")


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    init_db()
    logger.info("[STARTUP] survey tables ready")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
