import os

STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").strip().lower()
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/pulse")

SURVEYS_NAMESPACE = os.getenv("SURVEYS_NAMESPACE", "pulse-surveys")
RESPONSES_NAMESPACE = os.getenv("RESPONSES_NAMESPACE", "pulse-responses")
TRACKING_NAMESPACE = os.getenv("TRACKING_NAMESPACE", "pulse-tracking")

DEDUP_SECRET = os.getenv("DEDUP_SECRET", "")
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

STORE_MAX_ATTEMPTS = int(os.getenv("STORE_MAX_ATTEMPTS", "8"))
USER_INDEX_FETCH_WORKERS = int(os.getenv("USER_INDEX_FETCH_WORKERS", "8"))

SURVEY_ID_LENGTH = 8
DEFAULT_MULTI_SELECT_OPTIONS = ["Option A", "Option B", "Option C"]

RL_SUBMIT_LIMIT = int(os.getenv("RL_SUBMIT_LIMIT", "30"))
RL_CREATE_LIMIT = int(os.getenv("RL_CREATE_LIMIT", "20"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
