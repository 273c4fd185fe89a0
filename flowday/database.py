import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from flowday.config import get_settings
from flowday.models import models

logger = logging.getLogger("database")

# ---------------------------------------------------------------------------
# Engine state
# ---------------------------------------------------------------------------
# The store lives in memory and is rebuilt from fixtures on every startup, so
# the engine is created by init_db_async() rather than at import time.

async_engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker] = None
_CURRENT_DB_URL: Optional[str] = None


def _detect_driver(url: str) -> str:
    try:
        return make_url(url).drivername
    except Exception:
        return url.split(":", 1)[0]


def _make_engine(url: str) -> AsyncEngine:
    engine_kwargs: Dict[str, Any] = {"echo": False}
    if _detect_driver(url).startswith("sqlite"):
        # A single shared connection keeps one in-memory database for all sessions
        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    global _CURRENT_DB_URL
    _CURRENT_DB_URL = url
    return create_async_engine(url, **engine_kwargs)


def session() -> AsyncSession:
    """Open a new session on the current engine."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database is not initialized; call init_db_async() first")
    return AsyncSessionLocal()


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------

def get_database_dsn(hide_password: bool = True) -> str:
    url_str = _CURRENT_DB_URL or ""
    try:
        url = make_url(cast(str, url_str))
        return url.render_as_string(hide_password=hide_password)
    except Exception:
        return url_str


def _load_fixture(fixtures_dir: Path, name: str) -> List[Dict[str, Any]]:
    path = fixtures_dir / name
    if not path.exists():
        logger.warning("Fixture %s not found, skipping", path)
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Fixture {path} must contain a JSON list")
    return data


def _task_from_fixture(row: Dict[str, Any], now: datetime) -> models.Task:
    # Fixture due dates are relative so the seeded calendar always surrounds today
    due_in_hours = row.get("due_in_hours")
    due_date = now + timedelta(hours=float(due_in_hours)) if due_in_hours is not None else None
    status = row.get("status", "pending")
    return models.Task(
        title=row["title"],
        description=row.get("description"),
        priority=row.get("priority", "medium"),
        category=row.get("category", "personal"),
        status=status,
        reminder=row.get("reminder", "none"),
        tags=list(row.get("tags") or []),
        due_date=due_date,
        created_at=now - timedelta(days=1),
        completed_at=due_date if status == "completed" else None,
    )


async def seed_db_async(fixtures_dir: Optional[Path] = None) -> None:
    """Populate the store from the static JSON fixtures."""
    fixtures_dir = Path(fixtures_dir or get_settings().fixtures_dir)
    now = datetime.now(timezone.utc).replace(second=0, microsecond=0)

    tasks = [_task_from_fixture(row, now) for row in _load_fixture(fixtures_dir, "tasks.json")]
    categories = [models.Category(**row) for row in _load_fixture(fixtures_dir, "categories.json")]
    stats = [models.DailyStats(**row) for row in _load_fixture(fixtures_dir, "daily_stats.json")]

    async with session() as dbs:
        dbs.add_all(categories + tasks + stats)
        await dbs.commit()
    logger.info(
        "Seeded %d task(s), %d categor(ies), %d daily stat row(s)",
        len(tasks),
        len(categories),
        len(stats),
    )


async def init_db_async(*, seed: bool = True) -> None:
    """Create a fresh engine, build tables and load fixtures."""
    global async_engine, AsyncSessionLocal

    settings = get_settings()
    try:
        if async_engine is not None:
            await async_engine.dispose()
        async_engine = _make_engine(str(settings.database_url).strip())
        AsyncSessionLocal = async_sessionmaker(bind=async_engine, expire_on_commit=False)

        async with async_engine.begin() as conn:
            await conn.run_sync(models.Base.metadata.drop_all)
            await conn.run_sync(models.Base.metadata.create_all)
        if seed:
            await seed_db_async(settings.fixtures_dir)
        logger.info("Database initialized successfully.")
    except Exception as e:
        logger.critical("Database initialization failed: %s", e)
        raise RuntimeError("Failed to initialize database") from e


async def shutdown_db_async() -> None:
    """Dispose the async engine cleanly."""
    global async_engine, AsyncSessionLocal
    if async_engine is None:
        return
    try:
        await async_engine.dispose()
        logger.info("Database connection pool closed.")
    except Exception as e:
        logger.error("Error shutting down database engine: %s", e)
        raise
    finally:
        async_engine = None
        AsyncSessionLocal = None
