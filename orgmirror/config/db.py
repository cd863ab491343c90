from sqlmodel import SQLModel, create_engine, Session
from orgmirror.utils.logger import logger
from orgmirror.config import settings

engine = None


def get_engine():
    global engine
    if engine is None:
        logger.info("Database engine is not initialized. Creating a new one.")
        database_url = settings.DATABASE_URL
        connect_args = {}
        if database_url.startswith("sqlite"):
            logger.info("Using SQLite database.")
            # Webhook requests and the poll thread share the engine.
            connect_args["check_same_thread"] = False
        else:
            logger.info("Using a non-SQLite database (e.g., PostgreSQL).")

        engine = create_engine(
            database_url, echo=settings.DEBUG_MODE, connect_args=connect_args
        )
        logger.info("Database engine created successfully.")
    return engine


def get_session():
    with Session(get_engine()) as session:
        yield session


def create_db_and_tables():
    # Registers every table on SQLModel.metadata.
    import orgmirror.models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())
    logger.info("Database tables created.")
