"""
보상 정책 - 게임 결과 / 스페셜 이벤트를 거래 의도로 변환

정책은 델타만 계산하고 실제 반영은 LedgerService 가 담당한다.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Optional

from hubwallet.config import Settings, settings as default_settings
from hubwallet.models.wallet import LedgerCategory
from hubwallet.schemas.wallet import TransactionIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameRule:
    xp_per_score: float  # 점수 1점당 경험치
    coin_per_score: float  # 점수 1점당 코인
    tickets_per_play: int  # 1판당 티켓
    min_score_for_reward: int = 0  # 이 점수 미만이면 플레이 횟수만 증가


DEFAULT_GAME_RULE = GameRule(xp_per_score=1, coin_per_score=0, tickets_per_play=0)

GAME_RULES: Dict[str, GameRule] = {
    "brick-breaker": GameRule(
        xp_per_score=1, coin_per_score=0.01, tickets_per_play=1, min_score_for_reward=10
    ),
    "tetris": GameRule(
        xp_per_score=0.5, coin_per_score=0.005, tickets_per_play=1, min_score_for_reward=5
    ),
    "dino-runner": GameRule(xp_per_score=0.2, coin_per_score=0.002, tickets_per_play=0),
}


class GameRewardPolicy:
    """게임 1판 결과 → 거래 의도"""

    def __init__(
        self,
        rules: Optional[Dict[str, GameRule]] = None,
        settings: Optional[Settings] = None,
    ):
        self.rules = GAME_RULES if rules is None else rules
        self.settings = settings or default_settings

    def rule_for(self, game: str) -> GameRule:
        return self.rules.get(game.strip().lower(), DEFAULT_GAME_RULE)

    def build_intent(
        self,
        player_id: str,
        game: str,
        score: int,
        run_id: str,
        meta: Optional[Dict] = None,
    ) -> TransactionIntent:
        if not run_id:
            raise ValueError("run_id is required for game rewards")

        game_id = game.strip().lower()
        rule = self.rule_for(game_id)
        safe_score = score if score > 0 else 0
        meta = {**(meta or {}), "score": safe_score}

        if safe_score < rule.min_score_for_reward:
            meta["no_reward"] = True
            return TransactionIntent(
                player_id=player_id,
                plays_delta=1,
                category=LedgerCategory.GAME,
                run_id=run_id,
                reason=f"play_{game_id}",
                source_game=game_id,
                meta=meta,
            )

        coins = math.trunc(safe_score * rule.coin_per_score)
        if coins > self.settings.GAME_MAX_COINS_PER_RUN:
            logger.info(
                f"Capping game coins for {player_id} ({game_id}): "
                f"{coins} -> {self.settings.GAME_MAX_COINS_PER_RUN}"
            )
            coins = self.settings.GAME_MAX_COINS_PER_RUN

        return TransactionIntent(
            player_id=player_id,
            coin_delta=coins,
            experience_delta=math.trunc(safe_score * rule.xp_per_score),
            ticket_delta=rule.tickets_per_play,
            plays_delta=1,
            category=LedgerCategory.GAME,
            run_id=run_id,
            reason=f"play_{game_id}",
            source_game=game_id,
            meta=meta,
        )


class LuckySpinPolicy:
    """오늘의 행운 스핀 - 티켓을 소모하고 랜덤 코인 + 같은 양의 경험치 지급"""

    def __init__(
        self, rng: Optional[random.Random] = None, settings: Optional[Settings] = None
    ):
        self.rng = rng or random.Random()
        self.settings = settings or default_settings

    def build_intent(self, player_id: str, spin_id: str) -> TransactionIntent:
        reward = self.rng.randint(
            self.settings.SPIN_MIN_REWARD, self.settings.SPIN_MAX_REWARD
        )
        ticket_cost = self.settings.SPIN_TICKET_COST
        return TransactionIntent(
            player_id=player_id,
            coin_delta=reward,
            experience_delta=reward,
            ticket_delta=-ticket_cost,
            category=LedgerCategory.REWARD,
            run_id=spin_id,
            reason="today_lucky_spin",
            meta={"reward_points": reward, "ticket_cost": ticket_cost},
        )
