import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from alembic import command
from alembic.config import Config

from hubwallet.config import settings
from hubwallet.logging_config import setup_logging

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

logger = logging.getLogger(__name__)


def init_db(revision: str = "head"):
    """데이터베이스 초기화 - 서비스 시작 전 한 번 마이그레이션 실행"""
    alembic_cfg = Config(os.path.join(ROOT_DIR, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(ROOT_DIR, "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))

    try:
        command.upgrade(alembic_cfg, revision)
        logger.info(f"Database migrated to {revision}")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    init_db(sys.argv[1] if len(sys.argv) > 1 else "head")
