"""
원장 리포지토리 - wallet_ledger 항목 기록 및 조회

핵심 특징:
- 항목은 삽입만 된다 (수정/삭제 없음)
- 각 항목은 기록 시점의 잔액 스냅샷(*_after)을 함께 저장한다
- 조회는 항상 최신순(id desc) 이며 같은 플레이어 안에서 id 순서는 반영 순서와 같다
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from hubwallet.models.wallet import (
    LedgerCategory,
    PlayerAccount,
    WalletLedgerEntry,
    level_for_experience,
)
from hubwallet.repositories.base import BaseRepository
from hubwallet.schemas.wallet import (
    AppliedResult,
    HistoryFilter,
    LedgerEntryResponse,
    TransactionIntent,
)


class LedgerRepository(BaseRepository[WalletLedgerEntry, LedgerEntryResponse]):
    def __init__(self, db: Session):
        super().__init__(WalletLedgerEntry, LedgerEntryResponse, db)

    def _to_entry_response(self, model_instance: WalletLedgerEntry) -> LedgerEntryResponse:
        """
        SQLAlchemy 모델을 Pydantic 스키마로 변환

        Note:
            - coin_delta 부호에 따라 거래 유형(CREDIT/DEBIT/NONE) 결정
        """
        coin_delta = model_instance.coin_delta
        if coin_delta > 0:
            transaction_type = "CREDIT"
        elif coin_delta < 0:
            transaction_type = "DEBIT"
        else:
            transaction_type = "NONE"

        return LedgerEntryResponse(
            id=model_instance.id,
            category=LedgerCategory(model_instance.category),
            transaction_type=transaction_type,
            coin_delta=coin_delta,
            experience_delta=model_instance.experience_delta,
            ticket_delta=model_instance.ticket_delta,
            plays_delta=model_instance.plays_delta,
            balance_after=model_instance.balance_after,
            reason=model_instance.reason,
            source_game=model_instance.source_game,
            reference=model_instance.reference,
            run_id=model_instance.run_id,
            created_at=model_instance.created_at,
        )

    @staticmethod
    def to_applied_result(entry: WalletLedgerEntry) -> AppliedResult:
        """원장 항목 → 반영 결과 (중복 요청 재응답에도 사용)"""
        return AppliedResult(
            entry_id=entry.id,
            player_id=entry.player_id,
            category=LedgerCategory(entry.category),
            balance_after=entry.balance_after,
            experience_after=entry.experience_after,
            tickets_after=entry.tickets_after,
            games_played_after=entry.games_played_after,
            level_after=level_for_experience(entry.experience_after),
        )

    def insert_entry(
        self, intent: TransactionIntent, account: PlayerAccount
    ) -> WalletLedgerEntry:
        """반영 후 계정 상태를 스냅샷으로 하여 원장 항목 삽입"""
        entry = WalletLedgerEntry(
            player_id=intent.player_id,
            category=intent.category.value,
            coin_delta=intent.coin_delta,
            experience_delta=intent.experience_delta,
            ticket_delta=intent.ticket_delta,
            plays_delta=intent.plays_delta,
            balance_after=account.coins,
            experience_after=account.experience,
            tickets_after=account.tickets,
            games_played_after=account.games_played,
            idempotency_key=intent.idempotency_key,
            run_id=intent.run_id,
            reason=intent.reason,
            source_game=intent.source_game,
            reference=intent.reference,
            meta=intent.meta,
        )
        self.db.add(entry)
        self.db.flush()
        self.db.refresh(entry)
        return entry

    def get_history(
        self, player_id: str, history_filter: HistoryFilter
    ) -> Tuple[List[LedgerEntryResponse], int]:
        """플레이어 원장 조회 (최신순, 필터/페이징)"""
        query = self.db.query(self.model_class).filter(
            self.model_class.player_id == player_id
        )
        if history_filter.category is not None:
            query = query.filter(
                self.model_class.category == history_filter.category.value
            )
        if history_filter.source_game:
            query = query.filter(
                self.model_class.source_game == history_filter.source_game
            )
        if history_filter.since is not None:
            query = query.filter(self.model_class.created_at >= history_filter.since)
        if history_filter.until is not None:
            query = query.filter(self.model_class.created_at < history_filter.until)

        total_count = query.count()

        model_instances = (
            query.order_by(desc(self.model_class.id))
            .limit(history_filter.limit)
            .offset(history_filter.offset)
            .all()
        )
        return [self._to_entry_response(m) for m in model_instances], total_count

    def get_latest_entry(self, player_id: str) -> Optional[WalletLedgerEntry]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.player_id == player_id)
            .order_by(desc(self.model_class.id))
            .first()
        )

    def sum_deltas(self, player_id: Optional[str] = None) -> Dict[str, Any]:
        """원장 델타 합계 (player_id 미지정 시 전체)"""
        query = self.db.query(
            func.count(self.model_class.id),
            func.coalesce(func.sum(self.model_class.coin_delta), 0),
            func.coalesce(func.sum(self.model_class.experience_delta), 0),
            func.coalesce(func.sum(self.model_class.ticket_delta), 0),
            func.coalesce(func.sum(self.model_class.plays_delta), 0),
        )
        if player_id is not None:
            query = query.filter(self.model_class.player_id == player_id)

        entry_count, coins, experience, tickets, games_played = query.one()
        return {
            "entries": int(entry_count),
            "coins": int(coins),
            "experience": int(experience),
            "tickets": int(tickets),
            "games_played": int(games_played),
        }

    def find_by_idempotency_key(self, idempotency_key: str) -> Optional[WalletLedgerEntry]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.idempotency_key == idempotency_key)
            .first()
        )

    def find_by_run(self, player_id: str, run_id: str) -> Optional[WalletLedgerEntry]:
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.player_id == player_id,
                self.model_class.run_id == run_id,
            )
            .first()
        )
