import os
from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "production").lower()
DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orgmirror.db")
AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true"

LOG_DRIVER: str = os.getenv("LOG_DRIVER", "console")
LOG_FILE: str = os.getenv("LOG_FILE", "orgmirror.log")

GITHUB_WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET")
GITHUB_APP_ID = os.getenv("GITHUB_APP_ID")
GITHUB_APP_PRIVATE_KEY_PATH = os.getenv("GITHUB_APP_PRIVATE_KEY_PATH")
GITHUB_APP_NAME = os.getenv("GITHUB_APP_NAME", "orgmirror")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
GITHUB_INSTALLATION_ID = os.getenv("GITHUB_INSTALLATION_ID")
GITHUB_REQUEST_TIMEOUT = float(os.getenv("GITHUB_REQUEST_TIMEOUT", 10))
GITHUB_PAGE_SIZE = int(os.getenv("GITHUB_PAGE_SIZE", 100))
GITHUB_PAGE_DELAY = float(os.getenv("GITHUB_PAGE_DELAY", 0.25))
RATE_LIMIT_COOLDOWN_SECONDS = float(os.getenv("RATE_LIMIT_COOLDOWN_SECONDS", 60))
TIMEOUT_COOLDOWN_SECONDS = float(os.getenv("TIMEOUT_COOLDOWN_SECONDS", 10))
MAX_TIMEOUT_RETRIES = int(os.getenv("MAX_TIMEOUT_RETRIES", 2))

LLM = os.getenv("LLM", "litellm")
VALID_LLMS = ["litellm", "gemini"]
if LLM not in VALID_LLMS:
    raise ValueError(f"Invalid LLM: {LLM}. Must be one of {VALID_LLMS}")
LLM_MODEL = os.getenv("LLM_MODEL", "gemini/gemini-2.5-flash")

ENABLE_PR_REVIEW_COMMENT = (
    os.getenv("ENABLE_PR_REVIEW_COMMENT", "false").lower() == "true"
)
ENABLE_PR_DESCRIPTION_REWRITE = (
    os.getenv("ENABLE_PR_DESCRIPTION_REWRITE", "false").lower() == "true"
)
COMMAND_FRESHNESS_SECONDS = int(os.getenv("COMMAND_FRESHNESS_SECONDS", 300))

POLL_ENABLED = os.getenv("POLL_ENABLED", "false").lower() == "true"
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", 30))
POLL_REPOSITORIES = [
    name.strip()
    for name in os.getenv("POLL_REPOSITORIES", "").split(",")
    if name.strip()
]
INSTALLATION_SETTLE_SECONDS = float(os.getenv("INSTALLATION_SETTLE_SECONDS", 10))
FETCH_BATCH_SIZE = int(os.getenv("FETCH_BATCH_SIZE", 3))
FETCH_BATCH_DELAY = float(os.getenv("FETCH_BATCH_DELAY", 1))

SYNC_NOTIFY_URL = os.getenv("SYNC_NOTIFY_URL")
SYNC_NOTIFY_API_KEY = os.getenv("SYNC_NOTIFY_API_KEY")

OM_API_KEY = os.getenv("OM_API_KEY")

if GITHUB_WEBHOOK_SECRET is None:
    raise ValueError("GITHUB_WEBHOOK_SECRET environment variable is not set.")

if FETCH_BATCH_SIZE < 1:
    raise ValueError(f"Invalid FETCH_BATCH_SIZE: {FETCH_BATCH_SIZE}. Must be >= 1")
