from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker

from hubwallet.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context(session_factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """컨텍스트 매니저를 사용한 데이터베이스 세션 관리

    블록이 정상 종료되면 commit, 예외가 발생하면 rollback 후 다시 던진다.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
