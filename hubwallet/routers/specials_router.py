from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends

from hubwallet.containers import Container
from hubwallet.core.identity import get_current_player_id
from hubwallet.core.ledger_results import to_transaction_response
from hubwallet.schemas.wallet import LuckySpinRequest, TransactionResponse
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.reward_policy import LuckySpinPolicy
from hubwallet.services.wallet_service import WalletService

router = APIRouter(prefix="/specials", tags=["specials"])


@router.post("/lucky-spin", response_model=TransactionResponse)
@inject
def lucky_spin(
    request: LuckySpinRequest,
    player_id: str = Depends(get_current_player_id),
    spin_policy: LuckySpinPolicy = Depends(Provide[Container.services.lucky_spin_policy]),
    ledger_service: LedgerService = Depends(Provide[Container.services.ledger_service]),
    wallet_service: WalletService = Depends(Provide[Container.services.wallet_service]),
) -> TransactionResponse:
    """오늘의 행운 스핀 - 티켓 5장 소모, 10~59 코인 + 같은 양의 경험치

    티켓이 부족하면 400 BALANCE_001, 같은 spin_id 재전송은 duplicate=true
    """
    intent = spin_policy.build_intent(player_id=player_id, spin_id=request.spin_id)
    result = ledger_service.apply(intent)
    return to_transaction_response(result, wallet_service)
