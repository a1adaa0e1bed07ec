import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import PERSISTENCE_WORKERS, SESSION_CACHE_SIZE
from .database import SessionLocal
from .errors import LoadFailure, PersistenceFailure, PreferenceMappingError, SessionStateError
from .questionnaire_loader import get_question_catalog
from .repo import SqlAnswerStore, list_answer_sets
from .routes import include_modular_routers
from .services.answer_session import SessionRegistry

logger = logging.getLogger(__name__)

app = FastAPI(title="Matchmaking Questionnaire API")
include_modular_routers(app)

# Specific origins are required for credentialed (cookie) requests.
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def report_persistence_failure(failure: PersistenceFailure) -> None:
    logger.warning("[questionnaire] persistence failure op=%s key=%s: %s", failure.operation, failure.key, failure.cause)


answer_store = SqlAnswerStore()
persistence_executor = ThreadPoolExecutor(max_workers=max(1, PERSISTENCE_WORKERS), thread_name_prefix="answer-persist")
session_registry = SessionRegistry(
    answer_store,
    executor=persistence_executor,
    max_sessions=SESSION_CACHE_SIZE,
    on_persistence_failure=report_persistence_failure,
)


@app.exception_handler(LoadFailure)
def load_failure_handler(request: Request, exc: LoadFailure) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": {"message": "Questionnaire is temporarily unavailable", "retry": True, "errors": exc.errors}},
    )


@app.exception_handler(SessionStateError)
def session_state_handler(request: Request, exc: SessionStateError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PreferenceMappingError)
def preference_mapping_handler(request: Request, exc: PreferenceMappingError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"detail": f"Compatibility configuration error: {exc}"})


def run_migrations() -> None:
    env_dir = os.getenv("MIGRATIONS_DIR", "").strip()
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if env_dir:
        migrations_dir = Path(env_dir)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={env_dir or '<unset>'}, {docker_dir}, {local_dir}"
        )

    files = sorted([f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql"])
    with SessionLocal() as db:
        for fname in files:
            sql = (migrations_dir / fname).read_text(encoding="utf-8")
            db.execute(text(sql))
        db.commit()


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    run_migrations()
    try:
        catalog = get_question_catalog()
        logger.info("[questionnaire] catalog ready questions=%s", len(catalog))
    except LoadFailure as exc:
        # Sessions retry the load on first use.
        logger.error("[questionnaire] catalog unavailable at startup: %s", exc)


@app.on_event("shutdown")
def on_shutdown() -> None:
    persistence_executor.shutdown(wait=True)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
