import random

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from hubwallet.main import create_app
from hubwallet.services.ledger_service import LedgerService
from hubwallet.services.reward_policy import LuckySpinPolicy
from hubwallet.services.wallet_service import WalletService


@pytest.fixture
def app(session_factory):
    app = create_app()
    services = app.container.services
    services.ledger_service.override(
        providers.Factory(LedgerService, session_factory=session_factory)
    )
    services.wallet_service.override(
        providers.Factory(WalletService, session_factory=session_factory)
    )
    services.lucky_spin_policy.override(
        providers.Object(LuckySpinPolicy(rng=random.Random(11)))
    )
    yield app
    services.ledger_service.reset_override()
    services.wallet_service.reset_override()
    services.lucky_spin_policy.reset_override()


@pytest.fixture
def client(app):
    return TestClient(app)


HEADERS = {"X-User-Id": "gamer-1"}


class TestGameFinish:
    """POST /api/v1/games/finish"""

    def test_finish_awards_rewards(self, client):
        # When
        response = client.post(
            "/api/v1/games/finish",
            json={"game": "brick-breaker", "score": 1500, "run_id": "run-1", "duration_sec": 90},
            headers=HEADERS,
        )

        # Then
        assert response.status_code == 200
        wallet = response.json()["wallet"]
        assert wallet["coins"] == 15
        assert wallet["experience"] == 1500
        assert wallet["level"] == 2
        assert wallet["tickets"] == 1
        assert wallet["games_played"] == 1

    def test_resubmitted_run_is_duplicate(self, client):
        # Given
        body = {"game": "tetris", "score": 1000, "run_id": "run-2"}
        client.post("/api/v1/games/finish", json=body, headers=HEADERS)

        # When
        response = client.post(
            "/api/v1/games/finish", json={**body, "score": 999999}, headers=HEADERS
        )

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["duplicate"] is True
        assert data["wallet"]["coins"] == 5

    def test_run_id_is_required(self, client):
        response = client.post(
            "/api/v1/games/finish", json={"game": "tetris", "score": 10}, headers=HEADERS
        )

        assert response.status_code == 422

    def test_negative_score_is_rejected(self, client):
        response = client.post(
            "/api/v1/games/finish",
            json={"game": "tetris", "score": -1, "run_id": "run-3"},
            headers=HEADERS,
        )

        assert response.status_code == 422


class TestLuckySpin:
    """POST /api/v1/specials/lucky-spin"""

    def test_spin_without_tickets(self, client):
        response = client.post(
            "/api/v1/specials/lucky-spin", json={"spin_id": "spin-1"}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["shortfalls"] == {"tickets": 5}

    def test_spin_after_earning_tickets(self, client):
        # Given: brick-breaker 5판 → 티켓 5장
        for i in range(5):
            client.post(
                "/api/v1/games/finish",
                json={"game": "brick-breaker", "score": 10, "run_id": f"run-{i}"},
                headers=HEADERS,
            )
        expected = random.Random(11).randint(10, 59)

        # When
        response = client.post(
            "/api/v1/specials/lucky-spin", json={"spin_id": "spin-2"}, headers=HEADERS
        )

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["result"]["status"] == "applied"
        assert data["wallet"]["tickets"] == 0
        assert data["wallet"]["coins"] == expected
