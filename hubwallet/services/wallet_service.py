import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import sessionmaker

from hubwallet.config import Settings, settings as default_settings
from hubwallet.database.session import get_db_context
from hubwallet.repositories.account_repository import AccountRepository
from hubwallet.repositories.ledger_repository import LedgerRepository
from hubwallet.schemas.wallet import (
    HistoryFilter,
    IntegrityCheckResponse,
    LedgerHistoryResponse,
    WalletSnapshot,
)

logger = logging.getLogger(__name__)

BALANCE_FIELDS = ("coins", "experience", "tickets", "games_played")


class WalletService:
    """지갑 조회 / 정합성 검증 서비스 (읽기 전용)"""

    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or default_settings

    def snapshot(self, player_id: str) -> WalletSnapshot:
        """플레이어 지갑 스냅샷 조회

        계정이 없는 플레이어는 row 를 만들지 않고 0 잔액으로 응답한다.
        """
        with get_db_context(self.session_factory) as db:
            accounts = AccountRepository(db)
            account = accounts.find(player_id)
            if account is None:
                return accounts.empty_snapshot(player_id)
            return accounts.to_snapshot(account)

    def history(
        self, player_id: str, history_filter: Optional[HistoryFilter] = None
    ) -> LedgerHistoryResponse:
        """원장 내역 조회 (최신순)

        Args:
            player_id: 플레이어 ID
            history_filter: 필터 / 페이징 (limit 은 HISTORY_MAX_LIMIT 으로 제한)
        """
        history_filter = history_filter or HistoryFilter()
        if history_filter.limit > self.settings.HISTORY_MAX_LIMIT:
            history_filter = history_filter.model_copy(
                update={"limit": self.settings.HISTORY_MAX_LIMIT}
            )

        with get_db_context(self.session_factory) as db:
            entries, total_count = LedgerRepository(db).get_history(
                player_id, history_filter
            )

        logger.info(f"Retrieved ledger for {player_id}: {total_count} entries")
        return LedgerHistoryResponse(
            player_id=player_id,
            entries=entries,
            total_count=total_count,
            has_next=history_filter.offset + history_filter.limit < total_count,
        )

    def verify_player(self, player_id: str) -> IntegrityCheckResponse:
        """
        특정 플레이어의 잔액-원장 정합성 검증

        검증 방식:
        1. 계정의 각 잔액 == 원장 델타 합계
        2. 최신 항목의 balance_after == 계정 코인 잔액
        """
        with get_db_context(self.session_factory) as db:
            account = AccountRepository(db).find(player_id)
            ledger = LedgerRepository(db)
            sums = ledger.sum_deltas(player_id)
            latest = ledger.get_latest_entry(player_id)

        recorded = {
            field: (getattr(account, field) if account is not None else 0)
            for field in BALANCE_FIELDS
        }
        calculated = {field: sums[field] for field in BALANCE_FIELDS}
        latest_balance_after = latest.balance_after if latest is not None else None

        ok = recorded == calculated and (
            latest_balance_after is None or latest_balance_after == recorded["coins"]
        )
        if not ok:
            logger.warning(
                f"Ledger mismatch for {player_id}: recorded={recorded}, "
                f"calculated={calculated}, latest_balance_after={latest_balance_after}"
            )

        return IntegrityCheckResponse(
            status="OK" if ok else "MISMATCH",
            player_id=player_id,
            recorded=recorded,
            calculated=calculated,
            latest_balance_after=latest_balance_after,
            entry_count=sums["entries"],
            verified_at=datetime.now(timezone.utc),
        )

    def verify_global(self) -> IntegrityCheckResponse:
        """
        전체 원장 정합성 검증

        모든 계정 잔액 합계 == 모든 원장 델타 합계 (원장 밖에서 생기거나 사라진 코인이 없어야 함)
        대량 데이터에서는 시간이 걸릴 수 있으므로 정기 점검용
        """
        with get_db_context(self.session_factory) as db:
            totals = AccountRepository(db).totals()
            sums = LedgerRepository(db).sum_deltas()

        recorded = {field: totals[field] for field in BALANCE_FIELDS}
        calculated = {field: sums[field] for field in BALANCE_FIELDS}
        ok = recorded == calculated
        if not ok:
            logger.warning(
                f"Global ledger mismatch: recorded={recorded}, calculated={calculated}"
            )

        return IntegrityCheckResponse(
            status="OK" if ok else "MISMATCH",
            recorded=recorded,
            calculated=calculated,
            entry_count=sums["entries"],
            account_count=totals["accounts"],
            verified_at=datetime.now(timezone.utc),
        )
