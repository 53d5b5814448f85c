import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from loyaltyapi.core.exceptions import BaseAPIException, TransactionAbortedError
from loyaltyapi.database.connection import SessionLocal

logger = logging.getLogger(__name__)


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
def transactional(db: Session) -> Iterator[Session]:
    """하나의 작업 단위(unit of work)를 원자적으로 커밋

    블록이 정상 종료되면 커밋하고, 어떤 예외든 발생하면 전체를 롤백한다.
    도메인 예외(BaseAPIException)는 그대로 전파하고, SQLAlchemy 오류는
    재시도 가능한 TransactionAbortedError 로 변환한다.
    """
    try:
        yield db
        db.commit()
    except BaseAPIException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction aborted and rolled back: {str(e)}")
        raise TransactionAbortedError(details={"cause": type(e).__name__}) from e
    except Exception:
        db.rollback()
        raise
