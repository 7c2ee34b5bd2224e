"""
플레이어 식별 의존성

인증(JWT 검증 등)은 앞단 게이트웨이가 처리하고, 검증된 플레이어 ID 를
X-User-Id 헤더로 전달한다. 이 모듈은 그 값을 신뢰하되 형식만 확인한다.
"""

from typing import Optional

from fastapi import Depends, Header

from hubwallet.config import settings
from hubwallet.core.exceptions import AuthenticationError, AuthorizationError
from hubwallet.schemas.wallet import clean_text, normalize_player_id

PLAYER_ID_HEADER = "X-User-Id"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


def get_current_player_id(
    x_user_id: Optional[str] = Header(None, alias=PLAYER_ID_HEADER),
) -> str:
    """현재 플레이어 ID (헤더 없음 / 형식 오류 → 401)"""
    if not x_user_id:
        raise AuthenticationError("Missing player identity")
    try:
        return normalize_player_id(x_user_id)
    except ValueError as e:
        raise AuthenticationError("Invalid player identity", details={"reason": str(e)})


def require_admin(player_id: str = Depends(get_current_player_id)) -> str:
    """관리자 전용 엔드포인트용 의존성 (ADMIN_PLAYER_IDS 에 없으면 403)"""
    admins = {admin_id.strip() for admin_id in settings.ADMIN_PLAYER_IDS}
    if player_id not in admins:
        raise AuthorizationError("Admin access required")
    return player_id


def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias=IDEMPOTENCY_KEY_HEADER),
) -> Optional[str]:
    """호출자가 첫 시도 전에 정한 멱등성 키 (재시도 시 같은 값)"""
    return clean_text(idempotency_key)
