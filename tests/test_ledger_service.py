import random
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from hubwallet.models.wallet import ClaimScope, LedgerCategory, WalletLedgerEntry
from hubwallet.repositories.account_repository import AccountRepository
from hubwallet.schemas.wallet import (
    AppliedResult,
    DuplicateResult,
    InfrastructureFailure,
    InsufficientBalance,
    TransactionIntent,
)
from hubwallet.services.ledger_service import LedgerService


def _intent(player_id="p1", **kwargs) -> TransactionIntent:
    return TransactionIntent(player_id=player_id, **kwargs)


def _entries(session_factory, player_id):
    with session_factory() as db:
        return (
            db.query(WalletLedgerEntry)
            .filter(WalletLedgerEntry.player_id == player_id)
            .order_by(WalletLedgerEntry.id)
            .all()
        )


class TestLedgerScenarios:
    """기본 거래 시나리오"""

    def test_new_player_earn(self, ledger_service, wallet_service):
        # Given / When
        result = ledger_service.apply(
            _intent("p1", coin_delta=50, category=LedgerCategory.EARN)
        )

        # Then
        assert isinstance(result, AppliedResult)
        assert result.balance_after == 50
        assert result.category == LedgerCategory.EARN
        assert wallet_service.snapshot("p1").coins == 50

    def test_overdraft_is_rejected_without_side_effects(
        self, ledger_service, wallet_service, session_factory
    ):
        # Given
        ledger_service.apply(_intent("p1", coin_delta=50, category=LedgerCategory.EARN))

        # When
        result = ledger_service.apply(
            _intent("p1", coin_delta=-70, category=LedgerCategory.SPEND)
        )

        # Then
        assert isinstance(result, InsufficientBalance)
        assert result.shortfalls == {"coins": 20}
        assert result.coins == 50
        assert wallet_service.snapshot("p1").coins == 50
        assert len(_entries(session_factory, "p1")) == 1

    def test_retry_with_same_idempotency_key_is_duplicate(
        self, ledger_service, wallet_service
    ):
        # Given
        ledger_service.apply(_intent("p1", coin_delta=50))
        spend = _intent(
            "p1", coin_delta=-30, category=LedgerCategory.SPEND, idempotency_key="buy-42"
        )

        # When
        first = ledger_service.apply(spend)
        retry = ledger_service.apply(spend)

        # Then
        assert isinstance(first, AppliedResult)
        assert isinstance(retry, DuplicateResult)
        assert retry.scope == ClaimScope.IDEMPOTENCY
        assert retry.key == "buy-42"
        assert retry.original is not None
        assert retry.original.entry_id == first.entry_id
        assert retry.original.balance_after == 20
        assert wallet_service.snapshot("p1").coins == 20

    def test_rejected_attempt_does_not_consume_idempotency_key(
        self, ledger_service, wallet_service
    ):
        # Given: 잔액 부족으로 거절된 키
        spend = _intent("p1", coin_delta=-30, idempotency_key="buy-43")
        assert isinstance(ledger_service.apply(spend), InsufficientBalance)

        # When: 충전 후 같은 키로 재시도
        ledger_service.apply(_intent("p1", coin_delta=100))
        result = ledger_service.apply(spend)

        # Then
        assert isinstance(result, AppliedResult)
        assert wallet_service.snapshot("p1").coins == 70

    def test_run_id_dedup_ignores_payload_changes(self, ledger_service, wallet_service):
        # Given
        first = ledger_service.apply(
            _intent("p2", coin_delta=10, experience_delta=1000, run_id="run-abc")
        )

        # When
        second = ledger_service.apply(_intent("p2", coin_delta=9999, run_id="run-abc"))

        # Then
        assert isinstance(first, AppliedResult)
        assert first.level_after == 2
        assert isinstance(second, DuplicateResult)
        assert second.scope == ClaimScope.RUN
        snapshot = wallet_service.snapshot("p2")
        assert snapshot.coins == 10
        assert snapshot.experience == 1000
        assert snapshot.level == 2

    def test_run_id_is_scoped_per_player(self, ledger_service):
        # Given
        ledger_service.apply(_intent("p1", coin_delta=5, run_id="run-1"))

        # When
        result = ledger_service.apply(_intent("p2", coin_delta=5, run_id="run-1"))

        # Then
        assert isinstance(result, AppliedResult)

    def test_idempotency_key_is_global(self, ledger_service, wallet_service):
        # Given
        ledger_service.apply(_intent("p1", coin_delta=5, idempotency_key="shared"))

        # When
        result = ledger_service.apply(_intent("p2", coin_delta=5, idempotency_key="shared"))

        # Then
        assert isinstance(result, DuplicateResult)
        assert wallet_service.snapshot("p2").coins == 0

    def test_duplicate_key_of_another_player_hides_original(self, ledger_service):
        # Given
        ledger_service.apply(_intent("alice", coin_delta=777, idempotency_key="k"))

        # When
        result = ledger_service.apply(_intent("bob", coin_delta=5, idempotency_key="k"))

        # Then
        assert isinstance(result, DuplicateResult)
        assert result.player_id == "bob"
        assert result.original is None

    def test_duplicate_key_of_same_player_keeps_original(self, ledger_service):
        # Given
        first = ledger_service.apply(_intent("alice", coin_delta=777, idempotency_key="k"))

        # When
        result = ledger_service.apply(_intent("alice", coin_delta=777, idempotency_key="k"))

        # Then
        assert result.original.entry_id == first.entry_id
        assert result.original.player_id == "alice"

    def test_recheck_hides_another_players_entry(self, session_factory):
        # Given: 선점 기록 없이 원장 항목만 다른 플레이어 소유로 존재
        with session_factory() as db:
            db.add(
                WalletLedgerEntry(
                    player_id="alice",
                    category=LedgerCategory.EARN.value,
                    coin_delta=777,
                    balance_after=777,
                    experience_after=0,
                    tickets_after=0,
                    games_played_after=0,
                    idempotency_key="k",
                )
            )
            db.commit()
        service = LedgerService(session_factory)

        # When
        result = service._recheck_conflict(
            _intent("bob", coin_delta=5, idempotency_key="k")
        )

        # Then
        assert isinstance(result, DuplicateResult)
        assert result.scope == ClaimScope.IDEMPOTENCY
        assert result.original is None

    def test_zero_delta_is_rejected_before_storage(self, session_factory):
        # When / Then: 의도 생성 자체가 실패하므로 엔진에 넘길 값이 없다
        with pytest.raises(ValidationError):
            TransactionIntent(
                player_id="p3",
                coin_delta=0,
                experience_delta=0,
                ticket_delta=0,
                plays_delta=0,
            )
        with session_factory() as db:
            assert AccountRepository(db).find("p3") is None

    def test_ticket_shortfall_reports_field(self, ledger_service):
        # Given
        ledger_service.apply(_intent("p1", coin_delta=10, ticket_delta=2))

        # When
        result = ledger_service.apply(_intent("p1", coin_delta=10, ticket_delta=-5))

        # Then
        assert isinstance(result, InsufficientBalance)
        assert result.shortfalls == {"tickets": 3}
        assert result.tickets == 2

    def test_level_is_capped(self, ledger_service, wallet_service):
        # When
        result = ledger_service.apply(_intent("p1", experience_delta=5_000_000))

        # Then
        assert result.level_after == 999
        assert wallet_service.snapshot("p1").level == 999

    def test_entry_records_snapshot_and_metadata(self, ledger_service, session_factory):
        # When
        ledger_service.apply(
            _intent(
                "p1",
                coin_delta=12,
                experience_delta=3,
                plays_delta=1,
                category=LedgerCategory.GAME,
                run_id="run-9",
                reason="  play\x00 tetris  ",
                source_game="Tetris",
                meta={"score": 300},
            )
        )

        # Then
        [entry] = _entries(session_factory, "p1")
        assert entry.category == "game"
        assert entry.balance_after == 12
        assert entry.experience_after == 3
        assert entry.games_played_after == 1
        assert entry.reason == "play tetris"
        assert entry.source_game == "tetris"
        assert entry.meta == {"score": 300}


class TestLedgerConflicts:
    """보조 유니크 제약 / 저장소 장애 처리"""

    def test_entry_run_conflict_with_new_idempotency_key_is_duplicate(
        self, ledger_service, wallet_service
    ):
        # Given: run-7 은 멱등성 키와 함께 기록되어 run claim 이 없음
        first = ledger_service.apply(
            _intent("p1", coin_delta=5, idempotency_key="k-1", run_id="run-7")
        )

        # When: 다른 키, 같은 run
        result = ledger_service.apply(
            _intent("p1", coin_delta=5, idempotency_key="k-2", run_id="run-7")
        )

        # Then
        assert isinstance(result, DuplicateResult)
        assert result.scope == ClaimScope.RUN
        assert result.original.entry_id == first.entry_id
        assert wallet_service.snapshot("p1").coins == 5

    def test_storage_failure_is_retryable(self):
        # Given
        db = Mock()
        db.get_bind.return_value.dialect.name = "sqlite"
        db.execute.side_effect = OperationalError(
            "INSERT", {}, Exception("database is locked")
        )
        service = LedgerService(Mock(return_value=db))

        # When
        result = service.apply(_intent("p1", coin_delta=5, idempotency_key="k-9"))

        # Then
        assert isinstance(result, InfrastructureFailure)
        assert result.retryable is True
        db.rollback.assert_called()
        db.close.assert_called_once()
        db.commit.assert_not_called()

    def test_postgres_sets_transaction_timeouts(self):
        # Given
        db = Mock()
        db.get_bind.return_value.dialect.name = "postgresql"
        service = LedgerService(Mock())

        # When
        service._set_timeouts(db)

        # Then
        statements = [str(call.args[0]) for call in db.execute.call_args_list]
        assert statements == [
            f"SET LOCAL lock_timeout = {service.settings.LEDGER_LOCK_TIMEOUT_MS}",
            f"SET LOCAL statement_timeout = {service.settings.LEDGER_STATEMENT_TIMEOUT_MS}",
        ]


class TestLedgerInvariants:
    """잔액 비음수 / 원장 일관성 / 동시성"""

    @pytest.mark.parametrize("seed", range(8))
    def test_random_sequences_never_go_negative(
        self, seed, ledger_service, wallet_service
    ):
        rng = random.Random(seed)
        players = ["alice", "bob", "carol"]
        expected = {p: {"coins": 0, "experience": 0, "tickets": 0} for p in players}

        for _ in range(40):
            player = rng.choice(players)
            deltas = {
                "coin_delta": rng.randint(-60, 60),
                "experience_delta": rng.randint(-5, 20),
                "ticket_delta": rng.randint(-3, 3),
            }
            if not any(deltas.values()):
                deltas["coin_delta"] = 1
            result = ledger_service.apply(_intent(player, **deltas))

            after = {
                "coins": expected[player]["coins"] + deltas["coin_delta"],
                "experience": expected[player]["experience"] + deltas["experience_delta"],
                "tickets": expected[player]["tickets"] + deltas["ticket_delta"],
            }
            if min(after.values()) < 0:
                assert isinstance(result, InsufficientBalance)
                assert set(result.shortfalls) == {k for k, v in after.items() if v < 0}
            else:
                assert isinstance(result, AppliedResult)
                assert result.balance_after == after["coins"]
                expected[player] = after

        for player in players:
            snapshot = wallet_service.snapshot(player)
            assert snapshot.coins == expected[player]["coins"] >= 0
            assert snapshot.experience == expected[player]["experience"] >= 0
            assert snapshot.tickets == expected[player]["tickets"] >= 0
            assert wallet_service.verify_player(player).status == "OK"
        assert wallet_service.verify_global().status == "OK"

    def test_concurrent_debits_do_not_lose_updates(self, ledger_service, wallet_service):
        # Given: 잔액 N-1
        n = 8
        ledger_service.apply(_intent("racer", coin_delta=n - 1))

        # When: N 개의 동시 1코인 차감
        with ThreadPoolExecutor(max_workers=n) as pool:
            results = list(
                pool.map(
                    lambda i: ledger_service.apply(
                        _intent("racer", coin_delta=-1, reference=f"debit-{i}")
                    ),
                    range(n),
                )
            )

        # Then
        applied = [r for r in results if isinstance(r, AppliedResult)]
        rejected = [r for r in results if isinstance(r, InsufficientBalance)]
        assert len(applied) == n - 1
        assert len(rejected) == 1
        assert sorted(r.balance_after for r in applied) == list(range(n - 1))
        assert wallet_service.snapshot("racer").coins == 0
        assert wallet_service.verify_player("racer").status == "OK"

    def test_concurrent_same_key_applies_once(self, ledger_service, wallet_service):
        # Given
        n = 6
        intent = _intent("racer", coin_delta=5, idempotency_key="same-key")

        # When
        with ThreadPoolExecutor(max_workers=n) as pool:
            results = list(pool.map(lambda _: ledger_service.apply(intent), range(n)))

        # Then
        assert sum(isinstance(r, AppliedResult) for r in results) == 1
        assert sum(isinstance(r, DuplicateResult) for r in results) == n - 1
        assert wallet_service.snapshot("racer").coins == 5
