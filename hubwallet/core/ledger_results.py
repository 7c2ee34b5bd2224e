"""
원장 결과 → HTTP 응답 변환

- AppliedResult        → 200 {success, duplicate: false, result, wallet}
- DuplicateResult      → 200 {success, duplicate: true, result, wallet}
- InsufficientBalance  → 400 BALANCE_001
- InfrastructureFailure → 503 UNAVAILABLE_001 + Retry-After
"""

import logging

from sqlalchemy.exc import DBAPIError

from hubwallet.config import settings
from hubwallet.core.exceptions import InsufficientBalanceError, ServiceUnavailableError
from hubwallet.schemas.wallet import (
    AppliedResult,
    DuplicateResult,
    InfrastructureFailure,
    InsufficientBalance,
    LedgerResult,
    TransactionResponse,
)
from hubwallet.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


def to_transaction_response(
    result: LedgerResult, wallet_service: WalletService
) -> TransactionResponse:
    if isinstance(result, InsufficientBalance):
        raise InsufficientBalanceError(
            details={
                "shortfalls": result.shortfalls,
                "balances": {
                    "coins": result.coins,
                    "experience": result.experience,
                    "tickets": result.tickets,
                    "games_played": result.games_played,
                },
            }
        )
    if isinstance(result, InfrastructureFailure):
        raise ServiceUnavailableError(
            message=result.message,
            retry_after=settings.RETRY_AFTER_SECONDS,
        )
    if not isinstance(result, (AppliedResult, DuplicateResult)):
        raise TypeError(f"Unexpected ledger result: {type(result).__name__}")

    try:
        wallet = wallet_service.snapshot(result.player_id)
    except DBAPIError as e:
        # 거래는 이미 반영됨 - 같은 키로 재시도하면 DuplicateResult 를 받는다
        logger.error(f"Snapshot after apply failed for {result.player_id}: {e}")
        raise ServiceUnavailableError(retry_after=settings.RETRY_AFTER_SECONDS)

    return TransactionResponse(
        duplicate=isinstance(result, DuplicateResult),
        result=result,
        wallet=wallet,
    )
