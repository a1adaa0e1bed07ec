import json
import os
from pathlib import Path
from typing import Any

QUESTIONNAIRE_VERSION = int(os.getenv("QUESTIONNAIRE_VERSION", "1"))
_default_questions = Path(__file__).resolve().parent / "questions.json"
QUESTIONS_PATH = Path(os.getenv("QUESTIONS_PATH", str(_default_questions)))
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", "0.70"))
SUGGEST_MIN_SCORE = int(os.getenv("SUGGEST_MIN_SCORE", "0"))
SUGGEST_TOP_K = int(os.getenv("SUGGEST_TOP_K", "20"))

PERSISTENCE_WORKERS = int(os.getenv("PERSISTENCE_WORKERS", "4"))
SESSION_CACHE_SIZE = int(os.getenv("SESSION_CACHE_SIZE", "512"))

PREFERENCE_WEIGHTS: dict[str, Any] = {
    "education_importance": float(os.getenv("EDUCATION_W", "0.15")),
    "height_preference": float(os.getenv("HEIGHT_W", "0.10")),
    "ethnicity_importance": float(os.getenv("ETHNICITY_W", "0.20")),
    "religion_importance": float(os.getenv("RELIGION_W", "0.20")),
    "age_importance": float(os.getenv("AGE_W", "0.20")),
    "appearance_importance": float(os.getenv("APPEARANCE_W", "0.15")),
}

if os.getenv("PREFERENCE_WEIGHTS_JSON"):
    try:
        PREFERENCE_WEIGHTS.update(json.loads(os.getenv("PREFERENCE_WEIGHTS_JSON", "{}")))
    except json.JSONDecodeError:
        pass

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
