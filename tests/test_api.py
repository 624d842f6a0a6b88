"""
HTTP surface tests: status codes, admin header and the room / wallet
payloads, driven through FastAPI's TestClient.
"""
import hashlib
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from services.fairness_service import stake_weighted_pick
from services.stake_ledger import StakeEntry
from tests.conftest import ADMIN_TOKEN

ADMIN = {"X-Admin-Token": ADMIN_TOKEN}


def future(hours=1):
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


@pytest.fixture
def create_room(client):
    def _create_room(**overrides):
        payload = {
            "name": "Test Room",
            "min_stake": "1",
            "max_stake": "100",
            "settlement_time": future(),
            "payout_type": "split",
            "created_by": "admin",
        }
        payload.update(overrides)
        response = client.post("/api/lottery/rooms", json=payload, headers=ADMIN)
        assert response.status_code == 200, response.text
        return response.json()
    return _create_room


@pytest.fixture
def deposit(client):
    def _deposit(user_id, amount="100"):
        response = client.post(
            f"/api/wallet/{user_id}/deposit", json={"amount": amount}, headers=ADMIN
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _deposit


def join(client, room_id, player, amount):
    return client.post(
        f"/api/lottery/rooms/{room_id}/join", json={"player": player, "amount": amount}
    )


# =============================================================================
# Rooms
# =============================================================================

class TestRoomEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/").json()["status"] == "ok"

    def test_create_room_returns_open_room(self, create_room):
        room = create_room()
        assert room["status"] == "open"
        assert room["closed"] is False
        assert room["players"] == []
        assert Decimal(room["total_pool"]) == 0
        assert room["seconds_left"] > 0

    def test_create_room_requires_admin(self, client):
        payload = {
            "min_stake": "1",
            "max_stake": "100",
            "settlement_time": future(),
            "payout_type": "split",
            "created_by": "admin",
        }
        assert client.post("/api/lottery/rooms", json=payload).status_code == 401
        response = client.post(
            "/api/lottery/rooms", json=payload, headers={"X-Admin-Token": "wrong"}
        )
        assert response.status_code == 401

    def test_create_room_with_invalid_bounds(self, client):
        payload = {
            "min_stake": "10",
            "max_stake": "5",
            "settlement_time": future(),
            "payout_type": "split",
            "created_by": "admin",
        }
        response = client.post("/api/lottery/rooms", json=payload, headers=ADMIN)
        assert response.status_code == 400

    def test_create_room_in_the_past(self, client):
        payload = {
            "min_stake": "1",
            "max_stake": "5",
            "settlement_time": future(hours=-1),
            "payout_type": "split",
            "created_by": "admin",
        }
        response = client.post("/api/lottery/rooms", json=payload, headers=ADMIN)
        assert response.status_code == 400

    def test_create_room_with_bounds_off_the_amount_unit(self, client):
        payload = {
            "min_stake": "0.0000001",
            "max_stake": "5",
            "settlement_time": future(),
            "payout_type": "winner_takes_all",
            "created_by": "admin",
        }
        response = client.post("/api/lottery/rooms", json=payload, headers=ADMIN)
        assert response.status_code == 400

    def test_new_room_publishes_seed_hash_only(self, create_room):
        room = create_room()
        assert len(room["settlement_seed_hash"]) == 64
        assert room["settlement_seed"] is None

    def test_get_unknown_room(self, client):
        assert client.get("/api/lottery/rooms/missing").status_code == 404
        assert client.get("/api/lottery/rooms/missing/winners").status_code == 404
        assert client.get("/api/lottery/rooms/missing/stakes").status_code == 404

    def test_list_rooms_with_filters(self, client, create_room):
        split_room = create_room(payout_type="split")
        wta_room = create_room(payout_type="winner_takes_all")
        client.post(f"/api/lottery/rooms/{wta_room['id']}/close", headers=ADMIN)

        all_rooms = client.get("/api/lottery/rooms").json()["rooms"]
        assert {r["id"] for r in all_rooms} == {split_room["id"], wta_room["id"]}

        open_rooms = client.get("/api/lottery/rooms", params={"status": "open"}).json()["rooms"]
        assert [r["id"] for r in open_rooms] == [split_room["id"]]

        wta = client.get(
            "/api/lottery/rooms", params={"payout_type": "winner_takes_all"}
        ).json()["rooms"]
        assert [r["id"] for r in wta] == [wta_room["id"]]

    def test_list_rooms_rejects_unknown_status(self, client):
        assert client.get("/api/lottery/rooms", params={"status": "paused"}).status_code == 422


# =============================================================================
# Joining
# =============================================================================

class TestJoinEndpoint:

    def test_join_debits_wallet(self, client, create_room, deposit):
        room = create_room()
        deposit("alice", "50")

        response = join(client, room["id"], "alice", "20")

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["stake"]) == Decimal("20")
        assert Decimal(body["new_balance"]) == Decimal("30")

        detail = client.get(f"/api/lottery/rooms/{room['id']}").json()
        assert detail["players"] == ["alice"]
        assert Decimal(detail["total_pool"]) == Decimal("20")

        stakes = client.get(f"/api/lottery/rooms/{room['id']}/stakes").json()
        assert [(s["player"], Decimal(s["stake"])) for s in stakes] == [("alice", Decimal("20"))]

    def test_join_unknown_room(self, client, deposit):
        deposit("alice")
        assert join(client, "missing", "alice", "10").status_code == 404

    def test_join_below_minimum(self, client, create_room, deposit):
        room = create_room(min_stake="1")
        deposit("alice")
        response = join(client, room["id"], "alice", "0.5")
        assert response.status_code == 400

    def test_join_without_funds(self, client, create_room):
        room = create_room()
        response = join(client, room["id"], "broke", "10")
        assert response.status_code == 400
        assert client.get(f"/api/lottery/rooms/{room['id']}/stakes").json() == []

    def test_join_with_amount_finer_than_unit(self, client, create_room, deposit):
        room = create_room(min_stake="0.000001")
        deposit("alice")
        response = join(client, room["id"], "alice", "0.5000006")
        assert response.status_code == 400
        assert client.get(f"/api/lottery/rooms/{room['id']}/stakes").json() == []

    def test_join_closed_room(self, client, create_room, deposit):
        room = create_room()
        deposit("alice")
        client.post(f"/api/lottery/rooms/{room['id']}/close", headers=ADMIN)
        assert join(client, room["id"], "alice", "10").status_code == 400


# =============================================================================
# Close / settle
# =============================================================================

class TestSettlementEndpoints:

    def test_close_requires_admin(self, client, create_room):
        room = create_room()
        assert client.post(f"/api/lottery/rooms/{room['id']}/close").status_code == 401

    def test_close_twice_conflicts(self, client, create_room):
        room = create_room()
        first = client.post(f"/api/lottery/rooms/{room['id']}/close", headers=ADMIN)
        second = client.post(f"/api/lottery/rooms/{room['id']}/close", headers=ADMIN)
        assert first.status_code == 200
        assert second.status_code == 409
        assert client.get(f"/api/lottery/rooms/{room['id']}").json()["status"] == "closed"

    def test_close_unknown_room(self, client):
        assert client.post("/api/lottery/rooms/missing/close", headers=ADMIN).status_code == 404

    def test_settle_open_room(self, client, create_room):
        room = create_room()
        response = client.post(f"/api/lottery/rooms/{room['id']}/settle", headers=ADMIN)
        assert response.status_code == 400

    def test_settle_without_participants(self, client, create_room):
        room = create_room()
        client.post(f"/api/lottery/rooms/{room['id']}/close", headers=ADMIN)
        response = client.post(f"/api/lottery/rooms/{room['id']}/settle", headers=ADMIN)
        assert response.status_code == 400

    def test_split_settlement_flow(self, client, create_room, deposit):
        room = create_room(payout_type="split")
        room_id = room["id"]
        for player, amount in (("A", "10"), ("B", "30"), ("C", "60")):
            deposit(player, "100")
            assert join(client, room_id, player, amount).status_code == 200

        client.post(f"/api/lottery/rooms/{room_id}/close", headers=ADMIN)
        response = client.post(f"/api/lottery/rooms/{room_id}/settle", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total_pool"]) == Decimal("100")
        assert body["seed_hash"] == room["settlement_seed_hash"]
        assert [(w["address"], Decimal(w["prize"]), w["rank"]) for w in body["winners"]] == [
            ("C", Decimal("60"), 1),
            ("B", Decimal("30"), 2),
            ("A", Decimal("10"), 3),
        ]

        detail = client.get(f"/api/lottery/rooms/{room_id}").json()
        assert detail["status"] == "settled"
        assert detail["settlement_seed_hash"] == body["seed_hash"]

        winners = client.get(f"/api/lottery/rooms/{room_id}/winners").json()
        assert [w["address"] for w in winners] == ["C", "B", "A"]

        again = client.post(f"/api/lottery/rooms/{room_id}/settle", headers=ADMIN)
        assert again.status_code == 409

    def test_revealed_seed_matches_hash_published_at_creation(self, client, create_room, deposit):
        room = create_room(payout_type="winner_takes_all")
        room_id = room["id"]
        published_hash = room["settlement_seed_hash"]
        for player, amount in (("A", "1"), ("B", "99")):
            deposit(player, amount)
            join(client, room_id, player, amount)

        before = client.get(f"/api/lottery/rooms/{room_id}").json()
        assert before["settlement_seed_hash"] == published_hash
        assert before["settlement_seed"] is None

        client.post(f"/api/lottery/rooms/{room_id}/close", headers=ADMIN)
        body = client.post(f"/api/lottery/rooms/{room_id}/settle", headers=ADMIN).json()

        assert hashlib.sha256(body["seed"].encode()).hexdigest() == published_hash
        after = client.get(f"/api/lottery/rooms/{room_id}").json()
        assert after["settlement_seed"] == body["seed"]

        candidates = [StakeEntry("A", Decimal("1")), StakeEntry("B", Decimal("99"))]
        assert body["winners"][0]["address"] == stake_weighted_pick(candidates, body["seed"])

    def test_settle_request_cannot_pick_seed_or_winner(self, client, create_room, deposit):
        room = create_room(payout_type="winner_takes_all")
        room_id = room["id"]
        for player in ("A", "B"):
            deposit(player, "5")
            join(client, room_id, player, "5")
        client.post(f"/api/lottery/rooms/{room_id}/close", headers=ADMIN)

        body = client.post(
            f"/api/lottery/rooms/{room_id}/settle",
            json={"seed": "chosen-seed", "winner": "A"},
            headers=ADMIN
        ).json()

        assert body["seed"] != "chosen-seed"
        assert hashlib.sha256(body["seed"].encode()).hexdigest() == room["settlement_seed_hash"]
        candidates = [StakeEntry("A", Decimal("5")), StakeEntry("B", Decimal("5"))]
        assert body["winners"][0]["address"] == stake_weighted_pick(candidates, body["seed"])

    def test_winner_takes_all_settlement(self, client, create_room, deposit):
        room = create_room(payout_type="winner_takes_all")
        room_id = room["id"]
        for player in ("A", "B"):
            deposit(player, "5")
            join(client, room_id, player, "5")

        client.post(f"/api/lottery/rooms/{room_id}/close", headers=ADMIN)
        body = client.post(f"/api/lottery/rooms/{room_id}/settle", headers=ADMIN).json()

        assert len(body["winners"]) == 1
        winner = body["winners"][0]
        assert winner["address"] in {"A", "B"}
        assert Decimal(winner["prize"]) == Decimal("10")
        assert body["seed"]

        balance = client.get(f"/api/wallet/{winner['address']}/balance").json()
        assert Decimal(balance["balance"]) == Decimal("10")


# =============================================================================
# Wallet
# =============================================================================

class TestWalletEndpoints:

    def test_deposit_requires_admin(self, client):
        response = client.post("/api/wallet/alice/deposit", json={"amount": "10"})
        assert response.status_code == 401

    def test_deposit_rejects_non_positive_amount(self, client):
        response = client.post("/api/wallet/alice/deposit", json={"amount": "0"}, headers=ADMIN)
        assert response.status_code == 422

    def test_balance_and_transactions(self, client, deposit):
        deposit("alice", "40")
        deposit("alice", "2")

        balance = client.get("/api/wallet/alice/balance").json()
        assert Decimal(balance["balance"]) == Decimal("42")

        transactions = client.get("/api/wallet/alice/transactions").json()
        assert len(transactions) == 2
        assert all(tx["type"] == "deposit" for tx in transactions)

    def test_history_and_stats_after_settlement(self, client, create_room, deposit):
        room = create_room(payout_type="split")
        room_id = room["id"]
        for player, amount in (("A", "25"), ("B", "75")):
            deposit(player, "100")
            join(client, room_id, player, amount)
        client.post(f"/api/lottery/rooms/{room_id}/close", headers=ADMIN)
        client.post(f"/api/lottery/rooms/{room_id}/settle", headers=ADMIN)

        history = client.get("/api/wallet/B/history").json()
        assert len(history) == 1
        assert history[0]["win"] is True
        assert history[0]["outcome"]["room_id"] == room_id

        stats = client.get("/api/wallet/B/stats").json()
        assert stats["games_played"] == 1
        assert stats["wins"] == 1
        assert Decimal(stats["total_wagered"]) == Decimal("75")
        assert Decimal(stats["balance"]) == Decimal("100")
