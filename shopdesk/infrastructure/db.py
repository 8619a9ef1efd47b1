from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from shopdesk.core_settings import get_settings
from shopdesk.domain.models import Base

def build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, future=True, pool_pre_ping=True)

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        options["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, echo=False, future=True, **options)

    # pysqlite defers BEGIN, which breaks SAVEPOINT; emit it ourselves
    @event.listens_for(sqlite_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine

settings = get_settings()
engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_models(bind: Engine = None):
    Base.metadata.create_all(bind or engine)
