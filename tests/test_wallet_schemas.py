from datetime import datetime

import pytest
from pydantic import ValidationError

from hubwallet.config import settings
from hubwallet.models.wallet import LedgerCategory, level_for_experience
from hubwallet.schemas.wallet import HistoryFilter, TransactionIntent, clean_text


class TestTransactionIntent:
    """거래 의도 검증 경계"""

    @pytest.mark.parametrize(
        "coin_delta, expected",
        [(5, LedgerCategory.EARN), (-5, LedgerCategory.SPEND), (0, LedgerCategory.REWARD)],
    )
    def test_category_is_derived_from_coin_sign(self, coin_delta, expected):
        intent = TransactionIntent(player_id="p1", coin_delta=coin_delta, experience_delta=1)

        assert intent.category == expected

    def test_category_must_match_coin_sign(self):
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", coin_delta=-5, category=LedgerCategory.EARN)
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", coin_delta=5, category=LedgerCategory.SPEND)

    def test_experience_only_reward_is_allowed(self):
        intent = TransactionIntent(player_id="p1", experience_delta=10)

        assert intent.coin_delta == 0
        assert intent.category == LedgerCategory.REWARD

    def test_all_zero_deltas_are_rejected(self):
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1")

    def test_delta_bounds(self):
        limit = settings.LEDGER_MAX_DELTA

        TransactionIntent(player_id="p1", coin_delta=limit)
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", coin_delta=limit + 1)
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", ticket_delta=-(limit + 1))

    @pytest.mark.parametrize("value", [1.5, "10", True])
    def test_deltas_must_be_integers(self, value):
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", coin_delta=value)

    @pytest.mark.parametrize("player_id", ["", "   ", "a" * 65, "bad id!", None])
    def test_invalid_player_ids(self, player_id):
        with pytest.raises(ValidationError):
            TransactionIntent(player_id=player_id, coin_delta=1)

    def test_player_id_is_normalized(self):
        intent = TransactionIntent(player_id="  user-1@hub  ", coin_delta=1)

        assert intent.player_id == "user-1@hub"

    def test_keys_are_trimmed_and_blank_becomes_none(self):
        intent = TransactionIntent(
            player_id="p1", coin_delta=1, idempotency_key="  k-1 ", run_id="   "
        )

        assert intent.idempotency_key == "k-1"
        assert intent.run_id is None

    def test_long_keys_are_rejected(self):
        with pytest.raises(ValidationError):
            TransactionIntent(player_id="p1", coin_delta=1, idempotency_key="k" * 129)

    def test_reason_is_cleaned_and_truncated(self):
        intent = TransactionIntent(
            player_id="p1", coin_delta=1, reason="\x07bonus\t\n" + "x" * 200
        )

        assert intent.reason.startswith("bonus x")
        assert len(intent.reason) == 120


class TestHelpers:
    def test_clean_text_normalizes_width(self):
        assert clean_text("ＡＢＣ") == "ABC"

    @pytest.mark.parametrize(
        "experience, level",
        [(0, 1), (999, 1), (1000, 2), (5500, 6), (998_000, 999), (10**9, 999), (-5, 1)],
    )
    def test_level_for_experience(self, experience, level):
        assert level_for_experience(experience) == level

    def test_history_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            HistoryFilter(since=datetime(2026, 1, 2), until=datetime(2026, 1, 1))
