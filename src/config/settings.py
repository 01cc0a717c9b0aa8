"""
Environment settings loaded from .env file.
"""
import os
from dotenv import load_dotenv

load_dotenv()


# --- Redis (live store) ---
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# --- Database (durable store) ---
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///search_keywords.db")
DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

# --- Reconciliation ---
FULL_RESYNC_INTERVAL_S: float = float(os.getenv("FULL_RESYNC_INTERVAL_S", "10"))
DIRTY_RESYNC_INTERVAL_S: float = float(os.getenv("DIRTY_RESYNC_INTERVAL_S", "60"))
FULL_RESYNC_TOP_N: int = int(os.getenv("FULL_RESYNC_TOP_N", "100"))

# --- Cache warming ---
WARM_TOP_K: int = int(os.getenv("WARM_TOP_K", "100"))

# --- Recent list ---
RECENT_CAPACITY: int = int(os.getenv("RECENT_CAPACITY", "10"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
