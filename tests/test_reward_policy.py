import random

import pytest

from hubwallet.config import Settings
from hubwallet.models.wallet import LedgerCategory
from hubwallet.schemas.wallet import AppliedResult, DuplicateResult, InsufficientBalance
from hubwallet.services.reward_policy import (
    DEFAULT_GAME_RULE,
    GameRewardPolicy,
    GameRule,
    LuckySpinPolicy,
)


class TestGameRewardPolicy:
    def test_brick_breaker_reward(self):
        # When
        intent = GameRewardPolicy().build_intent("p1", "Brick-Breaker ", 1234, "run-1")

        # Then
        assert intent.category == LedgerCategory.GAME
        assert intent.coin_delta == 12
        assert intent.experience_delta == 1234
        assert intent.ticket_delta == 1
        assert intent.plays_delta == 1
        assert intent.run_id == "run-1"
        assert intent.source_game == "brick-breaker"
        assert intent.reason == "play_brick-breaker"
        assert intent.meta == {"score": 1234}

    def test_below_minimum_score_only_counts_play(self):
        intent = GameRewardPolicy().build_intent("p1", "tetris", 4, "run-2")

        assert intent.deltas() == {
            "coin_delta": 0,
            "experience_delta": 0,
            "ticket_delta": 0,
            "plays_delta": 1,
        }
        assert intent.meta["no_reward"] is True

    def test_fractional_rewards_truncate(self):
        intent = GameRewardPolicy().build_intent("p1", "dino-runner", 999, "run-3")

        assert intent.experience_delta == 199
        assert intent.coin_delta == 1
        assert intent.ticket_delta == 0

    def test_unknown_game_uses_default_rule(self):
        policy = GameRewardPolicy()

        intent = policy.build_intent("p1", "snake", 77, "run-4")

        assert policy.rule_for("snake") == DEFAULT_GAME_RULE
        assert intent.experience_delta == 77
        assert intent.coin_delta == 0

    def test_coins_are_capped_per_run(self):
        policy = GameRewardPolicy(
            rules={"jackpot": GameRule(xp_per_score=0, coin_per_score=10, tickets_per_play=0)},
            settings=Settings(GAME_MAX_COINS_PER_RUN=500),
        )

        intent = policy.build_intent("p1", "jackpot", 1000, "run-5")

        assert intent.coin_delta == 500

    def test_run_id_is_required(self):
        with pytest.raises(ValueError):
            GameRewardPolicy().build_intent("p1", "tetris", 100, "")

    def test_replayed_run_is_rewarded_once(self, ledger_service, wallet_service):
        # Given
        policy = GameRewardPolicy()
        first = ledger_service.apply(policy.build_intent("p1", "tetris", 1000, "run-6"))

        # When: 같은 run 에 더 높은 점수로 재전송
        second = ledger_service.apply(policy.build_intent("p1", "tetris", 90000, "run-6"))

        # Then
        assert isinstance(first, AppliedResult)
        assert isinstance(second, DuplicateResult)
        snapshot = wallet_service.snapshot("p1")
        assert snapshot.coins == 5
        assert snapshot.experience == 500
        assert snapshot.games_played == 1


class TestLuckySpinPolicy:
    def test_spin_costs_tickets_and_rewards_coins(self):
        # Given
        expected = random.Random(7).randint(10, 59)

        # When
        intent = LuckySpinPolicy(rng=random.Random(7)).build_intent("p1", "spin-1")

        # Then
        assert intent.category == LedgerCategory.REWARD
        assert intent.coin_delta == expected
        assert intent.experience_delta == expected
        assert intent.ticket_delta == -5
        assert intent.run_id == "spin-1"

    def test_rewards_stay_in_range(self):
        policy = LuckySpinPolicy(rng=random.Random(3))

        rewards = {policy.build_intent("p1", f"spin-{i}").coin_delta for i in range(200)}

        assert min(rewards) >= 10
        assert max(rewards) <= 59

    def test_spin_without_tickets_is_rejected(self, ledger_service, wallet_service):
        # Given
        ledger_service.apply(
            GameRewardPolicy().build_intent("p1", "brick-breaker", 100, "run-1")
        )

        # When
        result = ledger_service.apply(
            LuckySpinPolicy(rng=random.Random(1)).build_intent("p1", "spin-1")
        )

        # Then
        assert isinstance(result, InsufficientBalance)
        assert result.shortfalls == {"tickets": 4}
        assert wallet_service.snapshot("p1").tickets == 1

    def test_spin_id_is_deduplicated(self, ledger_service, wallet_service):
        # Given
        ledger_service.apply(
            GameRewardPolicy().build_intent("p1", "tetris", 100, "run-1")
        )
        for i in range(2, 7):
            ledger_service.apply(
                GameRewardPolicy().build_intent("p1", "tetris", 100, f"run-{i}")
            )
        policy = LuckySpinPolicy(rng=random.Random(5))

        # When
        first = ledger_service.apply(policy.build_intent("p1", "spin-9"))
        second = ledger_service.apply(policy.build_intent("p1", "spin-9"))

        # Then
        assert isinstance(first, AppliedResult)
        assert isinstance(second, DuplicateResult)
        assert wallet_service.snapshot("p1").tickets == 1
