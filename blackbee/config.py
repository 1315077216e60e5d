import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file (cwd first, then project root)
load_dotenv()
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL: str = os.getenv("BLACKBEE_MODEL", "gemini-2.5-flash")

# Upper bound for one Gemini call; analyses are never retried
ANALYSIS_TIMEOUT_SECONDS: float = float(os.getenv("BLACKBEE_ANALYSIS_TIMEOUT", "60"))

HOST: str = os.getenv("BLACKBEE_HOST", "0.0.0.0")
PORT: int = int(os.getenv("BLACKBEE_PORT", "8000"))
LOG_LEVEL: str = os.getenv("BLACKBEE_LOG_LEVEL", "INFO").upper()

SESSION_COOKIE: str = "blackbee_session"

# In-memory sessions: least recently used are dropped past the cap or after idling
MAX_SESSIONS: int = int(os.getenv("BLACKBEE_MAX_SESSIONS", "256"))
SESSION_TTL_SECONDS: float = float(os.getenv("BLACKBEE_SESSION_TTL", "3600"))
