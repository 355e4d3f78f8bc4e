"""
Central configuration — reads from .env file.

Every value is read once at import time. Missing API keys are NOT fatal here:
each adapter checks its own key at call time, so the server can start (and
/health answers) before every backend is configured.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Recognition backends ──────────────────────────────────────────────────────
# SerpApi key powers both Google Lens (visual matches) and Google Shopping (prices)
# Sign up at https://serpapi.com → Dashboard → API Key
SERPAPI_API_KEY: str | None       = os.getenv("SERPAPI_API_KEY")
# Only needed for RECOGNITION_STRATEGY=labels (Cloud Vision web detection)
GOOGLE_VISION_API_KEY: str | None = os.getenv("GOOGLE_VISION_API_KEY")

# Recognition strategy:
#   lens    → SerpApi Google Lens, one row per distinct visual match (default)
#   labels  → Cloud Vision best-guess label + Google Shopping price lookup
RECOGNITION_STRATEGY: str = os.getenv("RECOGNITION_STRATEGY", "lens").strip().lower()

# Google Shopping / Lens locale
SERPAPI_GL: str = os.getenv("SERPAPI_GL", "us")
SERPAPI_HL: str = os.getenv("SERPAPI_HL", "en")

# ── Condition assessment (Gemini) ─────────────────────────────────────────────
GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL: str          = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

# ── Pipeline behaviour ────────────────────────────────────────────────────────
# Files per upload request; the orchestrator never has more than one in flight
BATCH_SIZE: int             = int(os.getenv("BATCH_SIZE", "20"))
# Per external call. Recognition timeouts are fatal, pricing/condition degrade.
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))

# ── Upload server ─────────────────────────────────────────────────────────────
SERVER_HOST: str   = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int   = int(os.getenv("SERVER_PORT", "8080"))
MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "100"))

# Log file directory
DATA_DIR: str = os.getenv("DATA_DIR", "data")
