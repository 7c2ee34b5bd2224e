"""
지갑 API 라우터

- POST /wallet/transactions: 거래 반영 (Idempotency-Key 헤더 권장)
- GET /wallet/balance: 내 지갑 스냅샷
- GET /wallet/history: 내 원장 내역 (최신순)
- GET /wallet/integrity: 내 잔액-원장 정합성 검증
- GET /wallet/integrity/global: 전체 원장 정합성 검증 (관리자 전용)

플레이어 ID 는 X-User-Id 헤더로 전달된다 (없으면 401).
"""

import logging
from datetime import datetime
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from hubwallet.containers import Container
from hubwallet.core.identity import (
    get_current_player_id,
    get_idempotency_key,
    require_admin,
)
from hubwallet.core.ledger_results import to_transaction_response
from hubwallet.models.wallet import LedgerCategory
from hubwallet.schemas.wallet import (
    HistoryFilter,
    IntegrityCheckResponse,
    LedgerHistoryResponse,
    TransactionIntent,
    TransactionResponse,
    WalletSnapshot,
    WalletTransactionRequest,
)
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.post("/transactions", response_model=TransactionResponse)
@inject
def create_transaction(
    request: WalletTransactionRequest,
    player_id: str = Depends(get_current_player_id),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> TransactionResponse:
    """
    거래 반영

    HTTP Status:
        200: 반영 완료 또는 이미 반영된 거래 (duplicate=true)
        400: 잔액 부족 (BALANCE_001)
        401: 플레이어 식별 불가
        422: 입력 검증 실패 (VALIDATION_001)
        503: 저장소 장애 - 같은 Idempotency-Key 로 재시도 (UNAVAILABLE_001)
    """
    intent = TransactionIntent(
        player_id=player_id,
        idempotency_key=idempotency_key,
        **request.model_dump(),
    )
    result = ledger_service.apply(intent)
    return to_transaction_response(result, wallet_service)


@router.get("/balance", response_model=WalletSnapshot)
@inject
def get_balance(
    player_id: str = Depends(get_current_player_id),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> WalletSnapshot:
    """내 지갑 스냅샷 (코인 / 경험치 / 레벨 / 티켓 / 플레이 횟수)"""
    return wallet_service.snapshot(player_id)


@router.get("/history", response_model=LedgerHistoryResponse)
@inject
def get_history(
    category: Optional[LedgerCategory] = Query(None, description="거래 유형"),
    game: Optional[str] = Query(None, max_length=64, description="게임 ID"),
    since: Optional[datetime] = Query(None, description="이 시각 이후 (포함)"),
    until: Optional[datetime] = Query(None, description="이 시각 이전 (미포함)"),
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    player_id: str = Depends(get_current_player_id),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> LedgerHistoryResponse:
    """
    내 원장 내역 조회 (최신순)

    사용 예시:
        GET /wallet/history?limit=20&offset=0
        GET /wallet/history?category=game&game=tetris
    """
    history_filter = HistoryFilter(
        category=category,
        source_game=game,
        since=since,
        until=until,
        limit=limit,
        offset=offset,
    )
    return wallet_service.history(player_id, history_filter)


@router.get("/integrity", response_model=IntegrityCheckResponse)
@inject
def verify_my_integrity(
    player_id: str = Depends(get_current_player_id),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> IntegrityCheckResponse:
    """내 잔액이 원장 델타 합계와 일치하는지 검증"""
    return wallet_service.verify_player(player_id)


# ============================================================================
# 관리자 전용 엔드포인트
# ============================================================================


@router.get("/integrity/global", response_model=IntegrityCheckResponse)
@inject
def verify_global_integrity(
    player_id: str = Depends(require_admin),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> IntegrityCheckResponse:
    """
    전체 원장 정합성 검증

    대량 데이터에서는 시간이 걸릴 수 있음 - 정기 점검용
    ADMIN_PLAYER_IDS 에 없는 플레이어는 403 (AUTH_002)
    """
    logger.info(f"Global integrity check requested by {player_id}")
    return wallet_service.verify_global()
