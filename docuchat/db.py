from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from docuchat.config import settings
from docuchat.utils.logging import logger


engine = create_engine(settings.database_url, echo=False, future=True)
logger.info("Database engine created")

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """
    Create the pgvector extension (PostgreSQL only) and all tables.
    Called once at API startup.
    """
    # models must be imported so their tables are registered on Base.metadata
    from docuchat import models  # noqa: F401

    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        logger.info("pgvector extension ensured")

    logger.info("Creating database tables (if not exist)")
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    logger.debug("DB session created")
    try:
        yield db
    except Exception as exc:
        logger.exception(f"Error during DB session usage: {exc}")
        raise
    finally:
        db.close()
        logger.debug("DB session closed")
