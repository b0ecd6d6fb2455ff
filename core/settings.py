import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# .env in the data directory wins over one in the repo root
DATA_DIR = Path(os.environ.get("DATA_DIR", BASE_DIR / "data"))

for env_file in (DATA_DIR / ".env", BASE_DIR / ".env"):
    if env_file.exists():
        load_dotenv(env_file)


def _env_float(name, default):
    value = os.environ.get(name, "").strip()
    return float(value) if value else default


SECRET_KEY = os.environ.get("SECRET_KEY", "appscout-cli-no-sessions")

DEBUG = os.environ.get("DEBUG", "False").lower() in ("true", "1", "yes")

INSTALLED_APPS = [
    "appscout",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"autoescape": False},
    },
]

# Every run is stateless
DATABASES = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {"format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "console",
        },
    },
    "loggers": {
        "appscout": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}

# --------------------------------------------------------------------------- #
# Claude
# --------------------------------------------------------------------------- #

ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
CLAUDE_MODEL = os.environ.get("CLAUDE_MODEL", "claude-sonnet-4-20250514")
CLAUDE_MAX_TOKENS = int(os.environ.get("CLAUDE_MAX_TOKENS", "2000"))
CLAUDE_TEMPERATURE = _env_float("CLAUDE_TEMPERATURE", 0.3)
CLAUDE_MAX_RETRIES = int(os.environ.get("CLAUDE_MAX_RETRIES", "3"))
CLAUDE_RETRY_BASE_SECONDS = _env_float("CLAUDE_RETRY_BASE_SECONDS", 1.0)

# --------------------------------------------------------------------------- #
# Keyword research
# --------------------------------------------------------------------------- #

APPSCOUT_PLATFORM = os.environ.get("APPSCOUT_PLATFORM", "itunes")
APPSCOUT_COUNTRY = os.environ.get("APPSCOUT_COUNTRY", "us").lower()
APPSCOUT_CONCURRENCY = int(os.environ.get("APPSCOUT_CONCURRENCY", "3"))
APPSCOUT_MAX_CONCURRENCY = int(os.environ.get("APPSCOUT_MAX_CONCURRENCY", "20"))
APPSCOUT_BATCH_DELAY = _env_float("APPSCOUT_BATCH_DELAY", 1.0)
APPSCOUT_SCORER_TIMEOUT = _env_float("APPSCOUT_SCORER_TIMEOUT", None)
APPSCOUT_HTTP_TIMEOUT = _env_float("APPSCOUT_HTTP_TIMEOUT", 30.0)
APPSCOUT_SIMILAR_APPS = int(os.environ.get("APPSCOUT_SIMILAR_APPS", "3"))
APPSCOUT_SAMPLE_SIZE = int(os.environ.get("APPSCOUT_SAMPLE_SIZE", "5"))
APPSCOUT_SCREENSHOT_LIMIT = int(os.environ.get("APPSCOUT_SCREENSHOT_LIMIT", "4"))
APPSCOUT_MIN_KEYWORDS = int(os.environ.get("APPSCOUT_MIN_KEYWORDS", "20"))
