"""
지갑 원장 스키마

- TransactionIntent: 원장 엔진에 전달되는 검증된 거래 의도 (검증 경계)
- LedgerResult: 엔진 처리 결과 태그 유니온
  (AppliedResult | DuplicateResult | InsufficientBalance | InfrastructureFailure)
- 조회용 스냅샷 / 원장 내역 / 정합성 검증 응답
"""

import re
import unicodedata
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from hubwallet.config import settings
from hubwallet.models.wallet import ClaimScope, LedgerCategory

PLAYER_ID_MAX_LEN = 64
PLAYER_ID_REGEX = re.compile(r"^[A-Za-z0-9_\-.:@]+$")
KEY_MAX_LEN = 128
REASON_MAX_LEN = 120
GAME_MAX_LEN = 64

_CONTROL_CHARS = re.compile(r"[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F]")


def clean_text(value: Any) -> Optional[str]:
    """제어문자 제거 + NFKC 정규화 + 연속 공백 축약. 빈 문자열은 None"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("must be a string")
    s = _CONTROL_CHARS.sub("", value)
    s = unicodedata.normalize("NFKC", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s or None


def normalize_player_id(value: Any) -> str:
    player_id = clean_text(value)
    if not player_id:
        raise ValueError("player_id is required")
    if len(player_id) > PLAYER_ID_MAX_LEN:
        raise ValueError(f"player_id must be at most {PLAYER_ID_MAX_LEN} chars")
    if not PLAYER_ID_REGEX.match(player_id):
        raise ValueError("player_id has invalid characters")
    return player_id


class TransactionIntent(BaseModel):
    """원장 엔진 입력 - 생성 시점에 모든 사전조건을 검증한다"""

    player_id: str = Field(..., description="인증 계층이 확인한 플레이어 ID")
    coin_delta: int = Field(0, strict=True, description="코인 변동량")
    experience_delta: int = Field(0, strict=True, description="경험치 변동량")
    ticket_delta: int = Field(0, strict=True, description="티켓 변동량")
    plays_delta: int = Field(0, strict=True, description="플레이 횟수 변동량")
    category: Optional[LedgerCategory] = Field(
        None, description="거래 유형 (미지정 시 코인 부호로 결정)"
    )
    idempotency_key: Optional[str] = Field(None, description="호출자 지정 멱등성 키")
    run_id: Optional[str] = Field(None, description="게임 1판 / 스핀 식별자")
    reason: Optional[str] = Field(None, description="거래 사유")
    source_game: Optional[str] = Field(None, description="관련 게임 ID")
    reference: Optional[str] = Field(None, description="참조 정보")
    meta: Optional[Dict[str, Any]] = Field(None, description="부가 메타데이터")

    @field_validator("player_id", mode="before")
    @classmethod
    def _check_player_id(cls, v):
        return normalize_player_id(v)

    @field_validator("idempotency_key", "run_id", "reference", mode="before")
    @classmethod
    def _check_key(cls, v):
        key = clean_text(v)
        if key is not None and len(key) > KEY_MAX_LEN:
            raise ValueError(f"must be at most {KEY_MAX_LEN} chars")
        return key

    @field_validator("reason", mode="before")
    @classmethod
    def _check_reason(cls, v):
        reason = clean_text(v)
        if reason is not None and len(reason) > REASON_MAX_LEN:
            reason = reason[:REASON_MAX_LEN]
        return reason

    @field_validator("source_game", mode="before")
    @classmethod
    def _check_source_game(cls, v):
        game = clean_text(v)
        return game.lower()[:GAME_MAX_LEN] if game else None

    @model_validator(mode="after")
    def _check_deltas(self):
        deltas = self.deltas()
        for name, value in deltas.items():
            if abs(value) > settings.LEDGER_MAX_DELTA:
                raise ValueError(
                    f"{name} out of range (|{name}| <= {settings.LEDGER_MAX_DELTA})"
                )
        if not any(deltas.values()):
            raise ValueError("at least one delta must be non-zero")

        if self.category is None:
            if self.coin_delta > 0:
                self.category = LedgerCategory.EARN
            elif self.coin_delta < 0:
                self.category = LedgerCategory.SPEND
            else:
                self.category = LedgerCategory.REWARD
        elif self.category == LedgerCategory.EARN and self.coin_delta <= 0:
            raise ValueError("earn requires a positive coin_delta")
        elif self.category == LedgerCategory.SPEND and self.coin_delta >= 0:
            raise ValueError("spend requires a negative coin_delta")
        return self

    def deltas(self) -> Dict[str, int]:
        return {
            "coin_delta": self.coin_delta,
            "experience_delta": self.experience_delta,
            "ticket_delta": self.ticket_delta,
            "plays_delta": self.plays_delta,
        }


# ============================================================================
# Ledger results
# ============================================================================


class LedgerResultStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INFRASTRUCTURE_FAILURE = "infrastructure_failure"


class AppliedResult(BaseModel):
    """거래 반영 완료"""

    status: Literal["applied"] = "applied"
    entry_id: int = Field(..., description="원장 항목 ID")
    player_id: str
    category: LedgerCategory
    balance_after: int = Field(..., description="거래 후 코인 잔액")
    experience_after: int
    tickets_after: int
    games_played_after: int
    level_after: int


class DuplicateResult(BaseModel):
    """이미 반영된 거래 - 오류가 아닌 성공 no-op"""

    status: Literal["duplicate"] = "duplicate"
    player_id: str
    scope: ClaimScope = Field(..., description="중복 판정된 키 공간")
    key: str = Field(..., description="중복 판정된 키")
    original: Optional[AppliedResult] = Field(
        None, description="최초 반영 결과 (조회 가능한 경우)"
    )


class InsufficientBalance(BaseModel):
    """잔액 부족 - 정상적인 비즈니스 결과, 부분 반영 없음"""

    status: Literal["insufficient_balance"] = "insufficient_balance"
    player_id: str
    shortfalls: Dict[str, int] = Field(
        ..., description="음수가 될 필드별 부족분 (예: {'coins': 20})"
    )
    coins: int
    experience: int
    tickets: int
    games_played: int


class InfrastructureFailure(BaseModel):
    """저장소 장애 - 같은 멱등성 키로 재시도 가능"""

    status: Literal["infrastructure_failure"] = "infrastructure_failure"
    player_id: str
    retryable: bool = True
    message: str


LedgerResult = Annotated[
    Union[AppliedResult, DuplicateResult, InsufficientBalance, InfrastructureFailure],
    Field(discriminator="status"),
]


# ============================================================================
# Read projections
# ============================================================================


class WalletSnapshot(BaseModel):
    """플레이어 지갑 스냅샷"""

    player_id: str
    coins: int = Field(..., description="코인 잔액")
    experience: int = Field(..., description="누적 경험치")
    level: int = Field(..., description="경험치 기반 레벨")
    tickets: int = Field(..., description="티켓 잔액")
    games_played: int = Field(..., description="플레이 횟수")
    next_level_at: int = Field(..., description="다음 레벨 도달 경험치")
    updated_at: Optional[datetime] = Field(None, description="마지막 변동 시각")

    class Config:
        from_attributes = True


class HistoryFilter(BaseModel):
    """원장 내역 조회 조건"""

    category: Optional[LedgerCategory] = None
    source_game: Optional[str] = None
    since: Optional[datetime] = Field(None, description="이 시각 이후 (포함)")
    until: Optional[datetime] = Field(None, description="이 시각 이전 (미포함)")
    limit: int = Field(settings.HISTORY_DEFAULT_LIMIT, ge=1)
    offset: int = Field(0, ge=0)

    @field_validator("source_game", mode="before")
    @classmethod
    def _normalize_game(cls, v):
        game = clean_text(v)
        return game.lower() if game else None

    @model_validator(mode="after")
    def _check_window(self):
        if self.since and self.until and self.since >= self.until:
            raise ValueError("since must be before until")
        return self


class LedgerEntryResponse(BaseModel):
    """원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    category: LedgerCategory
    transaction_type: str = Field(..., description="CREDIT / DEBIT / NONE")
    coin_delta: int
    experience_delta: int
    ticket_delta: int
    plays_delta: int
    balance_after: int = Field(..., description="트랜잭션 후 코인 잔액")
    reason: Optional[str] = None
    source_game: Optional[str] = None
    reference: Optional[str] = None
    run_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LedgerHistoryResponse(BaseModel):
    """원장 내역 조회 응답 (최신순)"""

    player_id: str
    entries: List[LedgerEntryResponse]
    total_count: int = Field(..., description="조건에 맞는 전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class IntegrityCheckResponse(BaseModel):
    """잔액-원장 정합성 검증 응답"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    player_id: Optional[str] = Field(None, description="플레이어 ID (단일 검증 시)")
    recorded: Dict[str, int] = Field(default_factory=dict, description="계정 잔액")
    calculated: Dict[str, int] = Field(
        default_factory=dict, description="원장 델타 합계"
    )
    latest_balance_after: Optional[int] = Field(
        None, description="최신 항목의 balance_after"
    )
    entry_count: int = 0
    account_count: Optional[int] = None
    verified_at: datetime


# ============================================================================
# HTTP request / response bodies
# ============================================================================


class WalletTransactionRequest(BaseModel):
    """지갑 거래 요청 (플레이어 ID는 인증 계층에서 주입)"""

    coin_delta: int = Field(0, strict=True)
    experience_delta: int = Field(0, strict=True)
    ticket_delta: int = Field(0, strict=True)
    plays_delta: int = Field(0, strict=True)
    category: Optional[LedgerCategory] = None
    run_id: Optional[str] = Field(None, max_length=KEY_MAX_LEN)
    reason: Optional[str] = None
    source_game: Optional[str] = None
    reference: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class GameFinishRequest(BaseModel):
    """게임 1판 종료 요청"""

    game: str = Field(..., min_length=1, max_length=GAME_MAX_LEN)
    score: int = Field(..., ge=0, le=1_000_000_000)
    run_id: str = Field(..., min_length=1, max_length=KEY_MAX_LEN)
    duration_sec: Optional[int] = Field(None, ge=0)
    mode: Optional[str] = Field(None, max_length=32)


class LuckySpinRequest(BaseModel):
    """행운 스핀 요청"""

    spin_id: str = Field(..., min_length=1, max_length=KEY_MAX_LEN)


class TransactionResponse(BaseModel):
    """거래 처리 응답"""

    success: bool = True
    duplicate: bool = False
    result: Union[AppliedResult, DuplicateResult] = Field(..., discriminator="status")
    wallet: WalletSnapshot


# ============================================================================
# Idempotency / run index
# ============================================================================


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"


class ClaimResult(BaseModel):
    """키 선점 결과"""

    status: ClaimStatus
    scope: ClaimScope
    owner: str
    token: str
    claim_id: Optional[int] = Field(None, description="선점에 성공한 경우의 claim ID")

    @property
    def claimed(self) -> bool:
        return self.status == ClaimStatus.CLAIMED
