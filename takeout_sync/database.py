"""Database connection and initialization."""

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from takeout_sync.config import settings

# Import all models so SQLModel registers them
import takeout_sync.models  # noqa: F401


def make_engine(db_path: Path | str) -> Engine:
    """Create an engine for the SQLite catalog at db_path."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


engine = make_engine(settings.db_path)


def init_db(target: Engine | None = None) -> None:
    """Create all tables and enable WAL mode."""
    target = target or engine
    SQLModel.metadata.create_all(target)

    with target.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL")
        conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()


def get_session():
    """FastAPI dependency: yields a database session."""
    with Session(engine) as session:
        yield session
