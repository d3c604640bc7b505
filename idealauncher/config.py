# Configuration settings shared across the application

import os

# Available LLM models
LLM_MODELS = [
    {"id": "gemini-2.0-flash-lite", "name": "Gemini 2.0 Flash Lite (Fast + Cheap)"},
    {"id": "gemini-2.0-flash", "name": "Gemini 2.0 Flash (Fast)"},
    {"id": "gemini-2.5-flash-lite", "name": "Gemini 2.5 Flash Lite (Fast + Cheap)"},
    {"id": "gemini-2.5-flash", "name": "Gemini 2.5 Flash"},
    {"id": "gemini-2.5-pro", "name": "Gemini 2.5 Pro"},
]

# Default model
DEFAULT_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# Per-flow sampling temperatures
CHAT_TEMP = 0.7
RESEARCH_TEMP = 0.7
NAMING_TEMP = 0.8
PLANNING_TEMP = 0.7
EXPORT_TEMP = 0.3

# Chat context window (messages sent to the model)
CHAT_HISTORY_LIMIT = 50

# Character budgets used when building prompt context
DOCUMENT_CONTEXT_CHARS = 1500
RESEARCH_DOCUMENT_CHARS = 1000
EXPORT_DOCUMENT_CHARS = 2000

# MVP / tech stack generation limits
MAX_MVP_FEATURES = 10
MIN_MUST_FEATURES = 2
MAX_MUST_FEATURES = 5
MAX_TECH_RECOMMENDATIONS = 8

# Idea constraints
TITLE_MAX_LENGTH = 100
VERSION_HISTORY_LIMIT = 20

# Client defaults
CLIENT_TIMEOUT_SECONDS = 30.0
CLIENT_STREAM_TIMEOUT_SECONDS = 60.0
CLIENT_RETRIES = 3
CACHE_DEFAULT_TTL_SECONDS = 5 * 60
CACHE_CLEANUP_INTERVAL_SECONDS = 5 * 60

# Version outbox retry policy
OUTBOX_MAX_ATTEMPTS = 5
OUTBOX_BACKOFF_SECONDS = 1.0

# Third-party domain lookup
DOMAINR_STATUS_URL = "https://domainr.p.rapidapi.com/v2/status"
DOMAINR_HOST = "domainr.p.rapidapi.com"
DOMAIN_CHECK_TIMEOUT_SECONDS = 10.0

# CORS
CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "*").split(",") if o]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_gemini_api_key():
    """Read lazily so a missing key only fails the call that needs it."""
    return os.environ.get("GEMINI_API_KEY")


def get_domainr_api_key():
    return os.environ.get("DOMAINR_API_KEY")
