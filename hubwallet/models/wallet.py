"""
지갑 원장 데이터 모델

- player_accounts: 플레이어별 잔액 스냅샷 (coins / experience / tickets / games_played / level)
- wallet_ledger: 모든 잔액 변동을 기록하는 불변 원장
- ledger_claims: 멱등성 키 / run id 선점 테이블 (유니크 제약 기반)

player_accounts 의 각 잔액은 항상 해당 플레이어 원장 델타의 합과 같아야 한다.
"""

import enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from hubwallet.models.base import BaseModel, CreatedAtMixin, TimestampMixin

MAX_LEVEL = 999
EXP_PER_LEVEL = 1000


def level_for_experience(experience: int) -> int:
    """경험치로부터 레벨 계산 (1 ~ 999)"""
    exp = max(0, int(experience or 0))
    return min(MAX_LEVEL, exp // EXP_PER_LEVEL + 1)


class LedgerCategory(str, enum.Enum):
    EARN = "earn"
    SPEND = "spend"
    GAME = "game"
    REWARD = "reward"


class ClaimScope(str, enum.Enum):
    IDEMPOTENCY = "idempotency"  # 전역 멱등성 키
    RUN = "run"  # 플레이어별 게임 1판 / 스핀 식별자


# 전역 멱등성 키의 owner 값
GLOBAL_OWNER = "*"


class PlayerAccount(BaseModel, TimestampMixin):
    __tablename__ = "player_accounts"
    __table_args__ = (
        CheckConstraint("coins >= 0", name="ck_player_accounts_coins_non_negative"),
        CheckConstraint(
            "experience >= 0", name="ck_player_accounts_experience_non_negative"
        ),
        CheckConstraint("tickets >= 0", name="ck_player_accounts_tickets_non_negative"),
        CheckConstraint(
            "games_played >= 0", name="ck_player_accounts_games_played_non_negative"
        ),
        CheckConstraint("level >= 1", name="ck_player_accounts_level_positive"),
    )

    player_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    coins: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    experience: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    tickets: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    games_played: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return (
            f"<PlayerAccount(player_id={self.player_id}, coins={self.coins}, "
            f"experience={self.experience}, tickets={self.tickets})>"
        )


class WalletLedgerEntry(BaseModel, CreatedAtMixin):
    """
    지갑 원장 - 모든 잔액 변동 내역

    1. 불변성: 한번 생성된 레코드는 수정/삭제되지 않음 (정정은 반대 부호의 새 항목)
    2. 멱등성: idempotency_key 전역 유니크, (player_id, run_id) 플레이어별 유니크
    3. 스냅샷: *_after 필드는 기록 시점의 잔액이며 이후 재계산되지 않음
    """

    __tablename__ = "wallet_ledger"
    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_wallet_ledger_idempotency_key"),
        UniqueConstraint("player_id", "run_id", name="uq_wallet_ledger_player_run"),
        CheckConstraint(
            "category IN ('earn','spend','game','reward')",
            name="ck_wallet_ledger_category",
        ),
        CheckConstraint(
            "coin_delta <> 0 OR experience_delta <> 0 "
            "OR ticket_delta <> 0 OR plays_delta <> 0",
            name="ck_wallet_ledger_non_empty",
        ),
        CheckConstraint("balance_after >= 0", name="ck_wallet_ledger_balance_after"),
        Index("idx_wallet_ledger_player_id", "player_id", "id"),
        Index("idx_wallet_ledger_player_created", "player_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    player_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("player_accounts.player_id"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(16), nullable=False)

    coin_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    experience_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    ticket_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    plays_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    experience_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tickets_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    games_played_after: Mapped[int] = mapped_column(BigInteger, nullable=False)

    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    run_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_game: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )


class LedgerClaim(BaseModel, CreatedAtMixin):
    """멱등성 키 / run id 선점 기록 - 유니크 제약이 곧 선점 판정"""

    __tablename__ = "ledger_claims"
    __table_args__ = (
        UniqueConstraint("scope", "owner", "token", name="uq_ledger_claims_key"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    scope: Mapped[str] = mapped_column(String(16), nullable=False)
    owner: Mapped[str] = mapped_column(String(64), nullable=False)
    token: Mapped[str] = mapped_column(String(128), nullable=False)
    entry_id: Mapped[Optional[int]] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("wallet_ledger.id"),
        nullable=True,
    )
