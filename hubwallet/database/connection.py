from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from hubwallet.config import settings


def _enable_sqlite_immediate_transactions(engine: Engine) -> None:
    """SQLite에서 트랜잭션 시작 시 RESERVED 락을 즉시 획득하도록 설정

    pysqlite의 지연 BEGIN을 끄고 BEGIN IMMEDIATE를 직접 발행한다.
    읽기 락을 쥔 채 쓰기 락으로 승격하다 발생하는 SQLITE_BUSY를 막고
    SAVEPOINT도 정상 동작한다.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _enable_sqlite_immediate_transactions(engine)
        return engine

    return create_engine(
        database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=echo,  # 디버그 모드에서 SQL 로깅
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False keeps ORM rows readable after the ledger commit.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


engine = create_db_engine(settings.database_url, echo=settings.DEBUG)

SessionLocal = create_session_factory(engine)
