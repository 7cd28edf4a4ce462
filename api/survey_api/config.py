import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/survey_platform")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DB_STARTUP_ATTEMPTS = int(os.getenv("DB_STARTUP_ATTEMPTS", "20"))
DB_STARTUP_DELAY_SECONDS = float(os.getenv("DB_STARTUP_DELAY_SECONDS", "1.5"))

# Calendar-day comparisons for the go-live gate happen in this zone.
SURVEY_TIMEZONE = os.getenv("SURVEY_TIMEZONE", "UTC")

TEXT_TOP_WORDS_LIMIT = int(os.getenv("TEXT_TOP_WORDS_LIMIT", "30"))
ANALYTICS_EXTRA_STOP_WORDS = frozenset(
    w.strip().lower() for w in os.getenv("ANALYTICS_EXTRA_STOP_WORDS", "").split(",") if w.strip()
)

CORS_ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

RL_ANALYTICS_LIMIT = int(os.getenv("RL_ANALYTICS_LIMIT", "30"))
RL_RESPONSES_LIMIT = int(os.getenv("RL_RESPONSES_LIMIT", "120"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
