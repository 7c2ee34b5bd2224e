"""
멱등성 키 / run id 선점 리포지토리

ledger_claims 의 (scope, owner, token) 유니크 제약이 선점 판정을 담당한다.
확인 후 삽입(check-then-insert)이 아니라 삽입 결과로 판정하므로
동시 요청 중 정확히 하나만 CLAIMED 를 받는다.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hubwallet.models.wallet import (
    GLOBAL_OWNER,
    ClaimScope,
    LedgerClaim,
    WalletLedgerEntry,
)
from hubwallet.repositories.base import BaseRepository
from hubwallet.schemas.wallet import ClaimResult, ClaimStatus


class ClaimRepository(BaseRepository[LedgerClaim, ClaimResult]):
    def __init__(self, db: Session):
        super().__init__(LedgerClaim, ClaimResult, db)

    @staticmethod
    def owner_for(scope: ClaimScope, player_id: str) -> str:
        """멱등성 키는 전역, run id 는 플레이어별"""
        return GLOBAL_OWNER if scope == ClaimScope.IDEMPOTENCY else player_id

    def claim(self, scope: ClaimScope, owner: str, token: str) -> ClaimResult:
        result = self._insert_ignoring_conflict(
            {"scope": scope.value, "owner": owner, "token": token},
            conflict_columns=["scope", "owner", "token"],
            returning=[LedgerClaim.id],
        )
        claim_id = result.scalar_one_or_none()
        return ClaimResult(
            status=ClaimStatus.CLAIMED if claim_id is not None else ClaimStatus.ALREADY_CLAIMED,
            scope=scope,
            owner=owner,
            token=token,
            claim_id=claim_id,
        )

    def attach_entry(self, claim_id: int, entry_id: int) -> None:
        """선점 기록에 생성된 원장 항목 연결 (같은 트랜잭션 안에서)"""
        self.db.execute(
            update(LedgerClaim)
            .where(LedgerClaim.id == claim_id)
            .values(entry_id=entry_id)
            .execution_options(synchronize_session=False)
        )

    def find_entry_for(
        self, scope: ClaimScope, owner: str, token: str
    ) -> Optional[WalletLedgerEntry]:
        """선점된 키로 기록된 원장 항목 조회 (중복 요청 재응답용)"""
        stmt = (
            select(WalletLedgerEntry)
            .join(LedgerClaim, LedgerClaim.entry_id == WalletLedgerEntry.id)
            .where(
                LedgerClaim.scope == scope.value,
                LedgerClaim.owner == owner,
                LedgerClaim.token == token,
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()
