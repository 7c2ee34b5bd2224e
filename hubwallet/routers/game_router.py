import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends

from hubwallet.containers import Container
from hubwallet.core.identity import get_current_player_id
from hubwallet.core.ledger_results import to_transaction_response
from hubwallet.schemas.wallet import GameFinishRequest, TransactionResponse
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.reward_policy import GameRewardPolicy
from hubwallet.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


@router.post("/finish", response_model=TransactionResponse)
@inject
def finish_game(
    request: GameFinishRequest,
    player_id: str = Depends(get_current_player_id),
    reward_policy: GameRewardPolicy = Depends(Provide[Container.services.game_reward_policy]),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> TransactionResponse:
    """
    게임 1판 종료 - 점수에 따라 경험치/코인/티켓 지급

    같은 run_id 로 다시 보내면 점수가 달라도 보상은 한 번만 반영된다 (duplicate=true).
    """
    meta = {}
    if request.duration_sec is not None:
        meta["duration_sec"] = request.duration_sec
    if request.mode:
        meta["mode"] = request.mode

    intent = reward_policy.build_intent(
        player_id=player_id,
        game=request.game,
        score=request.score,
        run_id=request.run_id,
        meta=meta,
    )
    result = ledger_service.apply(intent)
    return to_transaction_response(result, wallet_service)
