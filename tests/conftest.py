import pytest

from hubwallet.database.connection import create_db_engine, create_session_factory
from hubwallet.models.base import Base
from hubwallet.models import wallet  # noqa: F401
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.wallet_service import WalletService


@pytest.fixture
def db_engine(tmp_path):
    """테스트마다 독립된 파일 기반 SQLite DB"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'wallet.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def ledger_service(session_factory):
    return LedgerService(session_factory)


@pytest.fixture
def wallet_service(session_factory):
    return WalletService(session_factory)
