import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()

LLM_BASE_URL = os.getenv("LLM_BASE_URL", "http://localhost:8001/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "mistral-7b-instruct")
LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))

# Generator call limits
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
HTTP_MAX_ATTEMPTS = int(os.getenv("HTTP_MAX_ATTEMPTS", "5"))
HTTP_BACKOFF_MAX_SECONDS = float(os.getenv("HTTP_BACKOFF_MAX_SECONDS", "5"))
VALIDATION_MAX_ATTEMPTS = int(os.getenv("VALIDATION_MAX_ATTEMPTS", "5"))

# Transcript debounce
DEBOUNCE_BASE_SECONDS = float(os.getenv("DEBOUNCE_BASE_SECONDS", "1.0"))
DEBOUNCE_SLOW_SECONDS = float(os.getenv("DEBOUNCE_SLOW_SECONDS", "2.0"))
SLOW_THRESHOLD_SECONDS = float(os.getenv("SLOW_THRESHOLD_SECONDS", "5.0"))
FAST_THRESHOLD_SECONDS = float(os.getenv("FAST_THRESHOLD_SECONDS", "2.0"))
COOLDOWN_SECONDS = float(os.getenv("COOLDOWN_SECONDS", "0"))

TRANSCRIPT_MAX_CHUNKS = int(os.getenv("TRANSCRIPT_MAX_CHUNKS", "10"))
TRANSCRIPT_MAX_AGE_SECONDS = float(os.getenv("TRANSCRIPT_MAX_AGE_SECONDS", "30"))

VIEWPORT_WIDTH = float(os.getenv("VIEWPORT_WIDTH", "1000"))
VIEWPORT_HEIGHT = float(os.getenv("VIEWPORT_HEIGHT", "800"))

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./voicecanvas.db")
