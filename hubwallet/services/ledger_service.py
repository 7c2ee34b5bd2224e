"""
원장 엔진 - 모든 잔액 변동의 유일한 쓰기 경로

apply(intent) 는 하나의 DB 트랜잭션 안에서:
1. 멱등성 키 (없으면 run id) 선점 - 이미 선점되었으면 DuplicateResult
2. 계정 row 보장 (insert, on conflict do nothing)
3. 가드 조건부 UPDATE - 결과 잔액 중 하나라도 음수면 롤백 후 InsufficientBalance
4. 원장 항목 삽입 + 선점 기록에 항목 연결
5. 커밋 후 AppliedResult

어느 단계에서 실패하든 트랜잭션 전체가 롤백되므로 부분 반영은 없다.
저장소 장애는 InfrastructureFailure(retryable) 로 돌려주고, 호출자는 같은 키로 재시도한다.
"""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from hubwallet.config import Settings, settings as default_settings
from hubwallet.models.wallet import ClaimScope, PlayerAccount, WalletLedgerEntry
from hubwallet.repositories.account_repository import DELTA_COLUMNS, AccountRepository
from hubwallet.repositories.claim_repository import ClaimRepository
from hubwallet.repositories.ledger_repository import LedgerRepository
from hubwallet.schemas.wallet import (
    ClaimResult,
    DuplicateResult,
    InfrastructureFailure,
    InsufficientBalance,
    LedgerResult,
    TransactionIntent,
)

logger = logging.getLogger(__name__)


class LedgerService:
    """거래 의도를 원자적으로 반영하는 원장 엔진"""

    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or default_settings

    def apply(self, intent: TransactionIntent) -> LedgerResult:
        """거래 의도 반영

        Args:
            intent: 생성 시점에 검증이 끝난 거래 의도

        Returns:
            LedgerResult: AppliedResult | DuplicateResult | InsufficientBalance | InfrastructureFailure
        """
        db = self.session_factory()
        try:
            return self._apply_in_transaction(db, intent)
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                f"Integrity conflict while applying intent for {intent.player_id}: {e.orig}"
            )
            return self._recheck_conflict(intent)
        except (OperationalError, DBAPIError) as e:
            db.rollback()
            logger.error(
                f"Storage failure while applying intent for {intent.player_id}: {e}",
                exc_info=True,
            )
            return InfrastructureFailure(
                player_id=intent.player_id,
                message="Ledger storage is temporarily unavailable",
            )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _apply_in_transaction(self, db: Session, intent: TransactionIntent) -> LedgerResult:
        player_id = intent.player_id
        claims = ClaimRepository(db)
        accounts = AccountRepository(db)
        ledger = LedgerRepository(db)

        self._set_timeouts(db)

        claim: Optional[ClaimResult] = None
        if intent.idempotency_key:
            claim = claims.claim(
                ClaimScope.IDEMPOTENCY,
                claims.owner_for(ClaimScope.IDEMPOTENCY, player_id),
                intent.idempotency_key,
            )
        elif intent.run_id:
            claim = claims.claim(
                ClaimScope.RUN,
                claims.owner_for(ClaimScope.RUN, player_id),
                intent.run_id,
            )

        if claim is not None and not claim.claimed:
            original = claims.find_entry_for(claim.scope, claim.owner, claim.token)
            result = self._duplicate(player_id, claim.scope, claim.token, original)
            db.rollback()
            logger.info(
                f"Duplicate {claim.scope.value} key {claim.token} for {player_id}"
            )
            return result

        accounts.ensure_exists(player_id)
        account = accounts.apply_deltas(player_id, intent.deltas())
        if account is None:
            result = self._insufficient(intent, accounts.find(player_id))
            db.rollback()
            logger.warning(
                f"Insufficient balance for {player_id}: shortfalls={result.shortfalls}"
            )
            return result

        entry = ledger.insert_entry(intent, account)
        if claim is not None:
            claims.attach_entry(claim.claim_id, entry.id)
        db.commit()

        applied = ledger.to_applied_result(entry)
        logger.info(
            f"Applied ledger entry {entry.id} for {player_id}: "
            f"category={entry.category}, coins={intent.coin_delta:+d}, "
            f"exp={intent.experience_delta:+d}, tickets={intent.ticket_delta:+d}, "
            f"plays={intent.plays_delta:+d}, balance_after={entry.balance_after}"
        )
        return applied

    def _set_timeouts(self, db: Session) -> None:
        """PostgreSQL 트랜잭션 단위 lock / statement 타임아웃"""
        if db.get_bind().dialect.name != "postgresql":
            return
        lock_ms = int(self.settings.LEDGER_LOCK_TIMEOUT_MS)
        statement_ms = int(self.settings.LEDGER_STATEMENT_TIMEOUT_MS)
        db.execute(text(f"SET LOCAL lock_timeout = {lock_ms}"))
        db.execute(text(f"SET LOCAL statement_timeout = {statement_ms}"))

    @staticmethod
    def _duplicate(
        player_id: str,
        scope: ClaimScope,
        key: str,
        original: Optional[WalletLedgerEntry],
    ) -> DuplicateResult:
        """멱등성 키는 전역이므로 다른 플레이어의 항목은 original 로 돌려주지 않는다"""
        if original is not None and original.player_id != player_id:
            logger.warning(
                f"{scope.value} key {key} from {player_id} belongs to another player"
            )
            original = None
        return DuplicateResult(
            player_id=player_id,
            scope=scope,
            key=key,
            original=(
                LedgerRepository.to_applied_result(original)
                if original is not None
                else None
            ),
        )

    @staticmethod
    def _insufficient(
        intent: TransactionIntent, account: Optional[PlayerAccount]
    ) -> InsufficientBalance:
        current = {
            column: (getattr(account, column) if account is not None else 0)
            for column in DELTA_COLUMNS.values()
        }
        shortfalls = {}
        for delta_name, column in DELTA_COLUMNS.items():
            after = current[column] + getattr(intent, delta_name)
            if after < 0:
                shortfalls[column] = -after
        return InsufficientBalance(
            player_id=intent.player_id, shortfalls=shortfalls, **current
        )

    def _recheck_conflict(self, intent: TransactionIntent) -> LedgerResult:
        """
        원장 항목의 보조 유니크 제약 충돌 후 재확인

        같은 키로 이미 기록된 항목이 있으면 DuplicateResult, 없으면 재시도 가능한 장애
        """
        db = self.session_factory()
        try:
            ledger = LedgerRepository(db)
            if intent.idempotency_key:
                entry = ledger.find_by_idempotency_key(intent.idempotency_key)
                if entry is not None:
                    return self._duplicate(
                        intent.player_id,
                        ClaimScope.IDEMPOTENCY,
                        intent.idempotency_key,
                        entry,
                    )
            if intent.run_id:
                entry = ledger.find_by_run(intent.player_id, intent.run_id)
                if entry is not None:
                    return self._duplicate(
                        intent.player_id, ClaimScope.RUN, intent.run_id, entry
                    )
        except DBAPIError as e:
            logger.error(f"Conflict recheck failed for {intent.player_id}: {e}")
        finally:
            db.rollback()
            db.close()

        return InfrastructureFailure(
            player_id=intent.player_id,
            message="Ledger write conflicted and could not be resolved",
        )
