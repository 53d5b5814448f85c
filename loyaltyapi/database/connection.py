from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from loyaltyapi.config import settings


def create_db_engine(url: str, **kwargs) -> Engine:
    """DATABASE_URL 에 맞는 엔진 생성

    - PostgreSQL: 커넥션 풀 + statement_timeout (트랜잭션 최악 지연 제한)
    - SQLite: 드라이버 자동 트랜잭션을 끄고 BEGIN 을 직접 발행해야 SAVEPOINT 가 동작함
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        connect_args.update(kwargs.pop("connect_args", {}))
        engine = create_engine(
            url, echo=settings.DEBUG, connect_args=connect_args, **kwargs
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=settings.DEBUG,  # 디버그 모드에서 SQL 로깅
        connect_args={
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
        },
        **kwargs,
    )


engine = create_db_engine(settings.DATABASE_URL)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope (common FastAPI pattern).
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)
