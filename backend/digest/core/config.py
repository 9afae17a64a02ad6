import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


BACKEND_HOST = os.environ.get("BACKEND_HOST", "127.0.0.1")
BACKEND_PORT = int(os.environ.get("BACKEND_PORT", "3000"))
BACKEND_WORKERS = int(os.environ.get("BACKEND_WORKERS", "2"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = _env_list(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001,"
    "http://127.0.0.1:3000,http://127.0.0.1:3001",
)

FAST_FETCH_TIMEOUT_SEC = float(os.environ.get("FAST_FETCH_TIMEOUT_SEC", "10"))
FULL_FETCH_TIMEOUT_SEC = float(os.environ.get("FULL_FETCH_TIMEOUT_SEC", "15"))

RENDER_ENABLED = _env_bool("RENDER_ENABLED", True)
RENDER_TIMEOUT_SEC = float(os.environ.get("RENDER_TIMEOUT_SEC", "20"))
RENDER_CONCURRENCY = int(os.environ.get("RENDER_CONCURRENCY", "2"))

OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.environ.get(
    "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
)
OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "openai/gpt-3.5-turbo")
COMPLETION_TIMEOUT_SEC = float(os.environ.get("COMPLETION_TIMEOUT_SEC", "60"))

SUMMARY_MAX_INPUT_CHARS = int(os.environ.get("SUMMARY_MAX_INPUT_CHARS", "25000"))
SUMMARY_MAX_TOKENS = int(os.environ.get("SUMMARY_MAX_TOKENS", "2000"))
SUMMARY_STRUCTURED = _env_bool("SUMMARY_STRUCTURED", True)
PREVIEW_SENTENCES = int(os.environ.get("PREVIEW_SENTENCES", "3"))

JOB_RETENTION_SEC = int(os.environ.get("JOB_RETENTION_SEC", "3600"))
JOB_MAX_RECORDS = int(os.environ.get("JOB_MAX_RECORDS", "1000"))

SEMANTIC_SCHOLAR_URL = os.environ.get(
    "SEMANTIC_SCHOLAR_URL",
    "https://api.semanticscholar.org/graph/v1/paper/search",
)
SEARCH_MIN_INTERVAL_SEC = float(os.environ.get("SEARCH_MIN_INTERVAL_SEC", "1.0"))
SEARCH_RETRIES = int(os.environ.get("SEARCH_RETRIES", "3"))
SEARCH_TIMEOUT_SEC = float(os.environ.get("SEARCH_TIMEOUT_SEC", "15"))
