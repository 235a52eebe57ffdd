from sqlmodel import create_engine, SQLModel
from sqlalchemy import event
from sqlalchemy.engine import Engine

from circuitguard.core.config import settings
from circuitguard.core.logging_config import get_logger

logger = get_logger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the breaker state table (SQLite or PostgreSQL)."""
    if database_url.startswith("sqlite"):
        # Breakers are shared across request threads
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

    db_engine = create_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,  # Allow burst connections
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300,  # Recycle connections every 5 min
        pool_timeout=30,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
    )

    @event.listens_for(db_engine, "connect")
    def set_statement_timeout(dbapi_connection, connection_record):
        """Breaker reads sit on the request path, keep them short."""
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("SET statement_timeout = '5s'")
        except Exception as e:
            logger.warning("Could not set statement timeout", error=str(e))
        finally:
            cursor.close()

    return db_engine


engine = create_db_engine(settings.DATABASE_URL)


def create_db_and_tables(db_engine: Engine | None = None) -> None:
    # Register the table on SQLModel.metadata
    import circuitguard.models  # noqa: F401

    SQLModel.metadata.create_all(db_engine or engine)
