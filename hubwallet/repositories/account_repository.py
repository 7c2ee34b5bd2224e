"""
계정 리포지토리 - player_accounts 잔액 스냅샷

쓰기 경로(ensure_exists, apply_deltas)는 원장 엔진의 트랜잭션 안에서만 호출된다.
"""

from typing import Dict, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from hubwallet.models.wallet import (
    EXP_PER_LEVEL,
    MAX_LEVEL,
    PlayerAccount,
    level_for_experience,
)
from hubwallet.repositories.base import BaseRepository
from hubwallet.schemas.wallet import WalletSnapshot

# delta 필드 → 계정 컬럼
DELTA_COLUMNS = {
    "coin_delta": "coins",
    "experience_delta": "experience",
    "ticket_delta": "tickets",
    "plays_delta": "games_played",
}


class AccountRepository(BaseRepository[PlayerAccount, WalletSnapshot]):
    def __init__(self, db: Session):
        super().__init__(PlayerAccount, WalletSnapshot, db)

    @staticmethod
    def to_snapshot(account: PlayerAccount) -> WalletSnapshot:
        """계정 row → 스냅샷 (레벨은 경험치로 다시 계산)"""
        level = level_for_experience(account.experience)
        return WalletSnapshot(
            player_id=account.player_id,
            coins=account.coins,
            experience=account.experience,
            level=level,
            tickets=account.tickets,
            games_played=account.games_played,
            next_level_at=level * EXP_PER_LEVEL,
            updated_at=account.updated_at,
        )

    @staticmethod
    def empty_snapshot(player_id: str) -> WalletSnapshot:
        return WalletSnapshot(
            player_id=player_id,
            coins=0,
            experience=0,
            level=1,
            tickets=0,
            games_played=0,
            next_level_at=EXP_PER_LEVEL,
            updated_at=None,
        )

    def find(self, player_id: str) -> Optional[PlayerAccount]:
        return self.db.get(PlayerAccount, player_id, populate_existing=True)

    def ensure_exists(self, player_id: str) -> bool:
        """계정 row 보장 - 동시 생성 경쟁은 오류 없이 한쪽만 삽입

        Returns:
            bool: 이번 호출에서 새로 생성되었는지 여부
        """
        result = self._insert_ignoring_conflict(
            {
                "player_id": player_id,
                "coins": 0,
                "experience": 0,
                "level": 1,
                "tickets": 0,
                "games_played": 0,
            },
            conflict_columns=["player_id"],
        )
        return bool(result.rowcount)

    def get(self, player_id: str) -> PlayerAccount:
        """계정 조회 (없으면 0으로 초기화하여 생성)"""
        self.ensure_exists(player_id)
        account = self.find(player_id)
        if account is None:
            raise LookupError(f"Account {player_id} vanished after creation")
        return account

    def apply_deltas(
        self, player_id: str, deltas: Dict[str, int]
    ) -> Optional[PlayerAccount]:
        """
        가드 조건부 UPDATE - 모든 결과 잔액이 0 이상일 때만 반영

        UPDATE player_accounts
           SET coins = coins + :dc, ..., level = f(experience + :de), updated_at = now()
         WHERE player_id = :p AND coins + :dc >= 0 AND ...

        UPDATE가 row lock을 잡고 WHERE를 최신 버전에 대해 다시 평가하므로
        같은 플레이어에 대한 동시 차감은 직렬화된다.

        Returns:
            반영 후 계정 (가드 실패 시 None)
        """
        model = PlayerAccount
        values = {}
        guards = [model.player_id == player_id]
        for delta_name, column_name in DELTA_COLUMNS.items():
            delta = deltas.get(delta_name, 0)
            column = getattr(model, column_name)
            if delta:
                values[column_name] = column + delta
            if delta < 0:
                guards.append(column + delta >= 0)

        new_experience = model.experience + deltas.get("experience_delta", 0)
        values["level"] = case(
            (new_experience >= (MAX_LEVEL - 1) * EXP_PER_LEVEL, MAX_LEVEL),
            else_=new_experience // EXP_PER_LEVEL + 1,
        )
        values["updated_at"] = func.now()

        stmt = (
            update(model)
            .where(*guards)
            .values(**values)
            .returning(model.player_id)
            .execution_options(synchronize_session=False)
        )
        updated = self.db.execute(stmt).scalar_one_or_none()
        if updated is None:
            return None
        return self.find(player_id)

    def totals(self) -> Dict[str, int]:
        """전체 계정 잔액 합계 (전역 정합성 검증용)"""
        model = PlayerAccount
        row = self.db.execute(
            select(
                func.count(model.player_id),
                func.coalesce(func.sum(model.coins), 0),
                func.coalesce(func.sum(model.experience), 0),
                func.coalesce(func.sum(model.tickets), 0),
                func.coalesce(func.sum(model.games_played), 0),
            )
        ).one()
        return {
            "accounts": int(row[0]),
            "coins": int(row[1]),
            "experience": int(row[2]),
            "tickets": int(row[3]),
            "games_played": int(row[4]),
        }
