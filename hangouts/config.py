import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hangouts.db")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Hangout flow
# Polls created for multi-option hangouts stay open this long
VOTING_WINDOW_HOURS = int(os.getenv("VOTING_WINDOW_HOURS", "48"))
DEFAULT_CONSENSUS_TYPE = os.getenv("DEFAULT_CONSENSUS_TYPE", "PERCENTAGE")
DEFAULT_CONSENSUS_THRESHOLD = float(os.getenv("DEFAULT_CONSENSUS_THRESHOLD", "50"))
# Share of participants whose votes are required when no minParticipants is given
DEFAULT_MIN_PARTICIPANT_RATIO = float(os.getenv("DEFAULT_MIN_PARTICIPANT_RATIO", "0.5"))
AUTO_FINALIZE_ON_CONSENSUS = os.getenv("AUTO_FINALIZE_ON_CONSENSUS", "true").lower() == "true"

# Poll state cache (Redis). Disabled when no Redis is configured.
POLL_STATE_CACHE_TTL = int(os.getenv("POLL_STATE_CACHE_TTL", "30"))
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")

# Background worker
ARQ_MAX_JOBS = int(os.getenv("ARQ_MAX_JOBS", "20"))
ARQ_JOB_TIMEOUT = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
ARQ_KEEP_RESULT = int(os.getenv("ARQ_KEEP_RESULT", "3600"))
