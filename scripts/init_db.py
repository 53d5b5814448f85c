import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loyaltyapi import models  # noqa: F401  (registers tables on Base.metadata)
from loyaltyapi.config import settings
from loyaltyapi.database.connection import engine
from loyaltyapi.logging_config import setup_logging
from loyaltyapi.models.base import Base

logger = logging.getLogger("loyaltyapi")


def init_db():
    """테이블 생성 (이미 있는 테이블은 건너뜀)"""
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({settings.ENVIRONMENT})")


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    init_db()
