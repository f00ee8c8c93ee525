import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# ---------- LLM ----------
LLM_API_KEY = os.getenv("LLM_API_KEY") or os.getenv("MISTRAL_API_KEY") or os.getenv("OPENAI_API_KEY")
LLM_API_BASE = os.getenv("LLM_API_BASE", "https://api.mistral.ai/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "mistral-large-latest")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))

# ---------- Pools ----------
FIRMS_SOURCE = os.getenv("FIRMS_SOURCE")
INVESTORS_SOURCE = os.getenv("INVESTORS_SOURCE")
STARTUPS_SOURCE = os.getenv("STARTUPS_SOURCE")
POOL_READ_LIMIT = int(os.getenv("POOL_READ_LIMIT", "500"))
FIRM_MATCH_LIMIT = int(os.getenv("FIRM_MATCH_LIMIT", "50"))
INVESTOR_MATCH_LIMIT = int(os.getenv("INVESTOR_MATCH_LIMIT", "30"))

ENRICH_TEAM_PROFILES = _env_bool("ENRICH_TEAM_PROFILES")

# ---------- Live channel ----------
WS_PATH = os.getenv("WS_PATH", "/ws/notifications")
WS_HEARTBEAT_SECONDS = float(os.getenv("WS_HEARTBEAT_SECONDS", "30"))
WS_AUTH_GRACE_SECONDS = float(os.getenv("WS_AUTH_GRACE_SECONDS", "10"))
WS_SHARDS = int(os.getenv("WS_SHARDS", "16"))

# ---------- HTTP ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = _env_list(
    "CORS_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost,http://127.0.0.1",
)
