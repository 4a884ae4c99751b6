import logging

import sqlalchemy
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings

logger = logging.getLogger(__name__)

# Created on first use so that DATABASE_URL deployments (and tests) never start it
_connector = None


def getconnection():
    """
    Open a Cloud SQL connection.
    settings.DB_HOST holds INSTANCE_CONNECTION_NAME.
    """
    global _connector
    from google.cloud.sql.connector import Connector

    if _connector is None:
        _connector = Connector()

    conn = _connector.connect(
        settings.DB_HOST,
        "pymysql",
        user=settings.DB_USER,
        password=settings.DB_PASSWORD,
        db=settings.DB_NAME,
        charset="utf8mb4",
    )
    return conn


def _create_sqlite_engine(url: str):
    engine = sqlalchemy.create_engine(
        url,
        # Request handlers run in FastAPI's threadpool
        connect_args={"check_same_thread": False, "timeout": settings.LOCK_TIMEOUT_SECONDS},
    )

    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT and rollback of earlier reads. Let SQLAlchemy emit BEGIN itself.
    @sqlalchemy.event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # IMMEDIATE takes the write lock up front. A deferred BEGIN lets two
    # read-then-write transactions deadlock on the lock upgrade, and SQLite
    # fails one at once instead of waiting out the busy timeout.
    @sqlalchemy.event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_db_engine(url: str = ""):
    """Engine for an explicit URL, or for Cloud SQL through the connector."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return _create_sqlite_engine(url)
    if url:
        return sqlalchemy.create_engine(url, pool_pre_ping=True)
    return sqlalchemy.create_engine(
        "mysql+pymysql://",
        creator=getconnection,
        pool_pre_ping=True,
    )


# Do not crash when connection settings are missing (local runs etc.)
try:
    engine = create_db_engine()
except Exception as e:
    logger.warning("Could not create database engine: %s", e)
    engine = None

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    Dependency that yields a database session.
    """
    if engine is None:
        raise Exception("Database engine is not initialized.")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
