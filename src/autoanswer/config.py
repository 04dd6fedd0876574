"""Configuration for AutoAnswer."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from a .env file when present.
load_dotenv()

LOG_ROOT = Path("logs")

# "openai" or "gemini"; the CLI flag overrides it.
ANSWER_PROVIDER = os.getenv("AUTOANSWER_PROVIDER", "openai").lower()

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

DEFAULT_BROWSER = os.getenv("AUTOANSWER_BROWSER", "chromium").lower()

PLAYWRIGHT_CHANNEL = os.getenv("PLAYWRIGHT_CHANNEL", "chrome")

PLAYWRIGHT_EXECUTABLE = os.getenv("PLAYWRIGHT_EXECUTABLE") or None

AUTO_SUBMIT = os.getenv("AUTOANSWER_AUTO_SUBMIT", "false").lower() in {"1", "true", "yes"}

VIEWPORT = {"width": 1440, "height": 900}

# Milliseconds without DOM mutations before a page counts as settled.
PAGE_QUIET_MS = int(os.getenv("AUTOANSWER_PAGE_QUIET_MS", "400"))

# Payload caps sent to the answer provider.
PAGE_TEXT_LIMIT = 20000
BLOCK_TEXT_LIMIT = 4000

EXCHANGE_LOG_MAX_ENTRIES = 200
EXCHANGE_LOG_MAX_AGE_DAYS = 60

# Pixel height of one element in the markup-only layout estimate.
STATIC_LINE_HEIGHT = 24
STATIC_LINE_WIDTH = 320


def get_openai_api_key() -> str | None:
    """Return the OpenAI API key or None when it is not configured."""
    return os.getenv("OPENAI_API_KEY") or None


def get_google_api_key() -> str | None:
    """Return the Gemini API key or None when it is not configured."""
    return os.getenv("GOOGLE_API_KEY") or None
