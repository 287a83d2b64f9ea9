from __future__ import annotations

import os
import unittest
from decimal import Decimal
from typing import Any, Dict, List
from unittest import mock

from fastapi.testclient import TestClient

import service
from cache import TTLCache
from config import Settings
from payloads import fixture


def bet_json(**overrides: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "bet_id": "b1",
        "match_id": 1001,
        "stake": 100,
        "odds": 2.5,
        "market_id": 1,
        "selection": "1",
    }
    body.update(overrides)
    return body


class StubClient:
    def __init__(self, payloads: Dict[str, Any]) -> None:
        self.payloads = payloads
        self.requested: List[str] = []

    def get_fixture(self, match_id: str) -> Dict[str, Any]:
        self.requested.append(match_id)
        if match_id not in self.payloads:
            raise ValueError(f"Fixture not found for id={match_id}")
        return self.payloads[match_id]


class ServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(service.app)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_markets_lists_classifier_table(self) -> None:
        body = self.client.get("/markets").json()
        self.assertEqual(body["count"], len(body["markets"]))
        by_id = {row["market_id"]: row for row in body["markets"]}
        self.assertEqual(by_id[1]["family"], "MATCH_RESULT")
        self.assertTrue(by_id[66]["provider_authoritative"])
        self.assertEqual(by_id[20]["side"], "home")

    def test_settle_single_bet(self) -> None:
        response = self.client.post("/settle", json={"bet": bet_json(), "match": fixture()})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "won")
        self.assertEqual(body["bet_id"], "b1")
        self.assertEqual(Decimal(body["payout"]), Decimal("250"))
        self.assertEqual(body["diagnostics"]["family"], "MATCH_RESULT")

    def test_settle_structured_selection(self) -> None:
        bet = bet_json(market_id=4, selection="", selection_details={"label": "Over", "total": 2.5})
        body = self.client.post("/settle", json={"bet": bet, "match": fixture()}).json()
        self.assertEqual(body["status"], "won")

    def test_settle_pending_match(self) -> None:
        match = fixture(state_id=1, state_name="Not Started")
        body = self.client.post("/settle", json={"bet": bet_json(), "match": match}).json()
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["payout"], "0")

    def test_rejects_odds_at_or_below_one(self) -> None:
        response = self.client.post("/settle", json={"bet": bet_json(odds=1.0), "match": fixture()})
        self.assertEqual(response.status_code, 422)

    def test_rejects_non_positive_stake(self) -> None:
        response = self.client.post("/settle", json={"bet": bet_json(stake=0), "match": fixture()})
        self.assertEqual(response.status_code, 422)

    def test_requires_market_or_odd(self) -> None:
        response = self.client.post("/settle", json={"bet": bet_json(market_id=None), "match": fixture()})
        self.assertEqual(response.status_code, 422)

    def test_batch_keeps_order_and_reports_missing_matches(self) -> None:
        payload = {
            "bets": [
                bet_json(bet_id="a", selection="X"),
                bet_json(bet_id="b", match_id=2002),
                bet_json(bet_id="c", market_id=8, selection="2-1"),
            ],
            "matches": {"1001": fixture()},
        }
        body = self.client.post("/settle/batch", json=payload).json()
        results = body["results"]
        self.assertEqual([r["bet_id"] for r in results], ["a", "b", "c"])
        self.assertEqual([r["status"] for r in results], ["lost", "error", "won"])
        self.assertEqual(results[1]["reason"], "Match data not found for match 2002")

    def test_batch_requires_match_ids(self) -> None:
        payload = {"bets": [bet_json(match_id=None)], "matches": {"1001": fixture()}}
        self.assertEqual(self.client.post("/settle/batch", json=payload).status_code, 422)

    def test_batch_requires_bets(self) -> None:
        payload = {"bets": [], "matches": {}}
        self.assertEqual(self.client.post("/settle/batch", json=payload).status_code, 422)


class FixtureEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(service.app)
        self.stub = StubClient({"1001": fixture()})
        patches = [
            mock.patch.object(service, "_make_client", return_value=self.stub),
            mock.patch.object(service, "_facts_cache", TTLCache(ttl_seconds=60)),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_settles_with_fetched_fixtures(self) -> None:
        payload = {"bets": [bet_json(bet_id="a"), bet_json(bet_id="b", selection="2")]}
        body = self.client.post("/settle/fixtures", json=payload).json()
        self.assertEqual(body["results"]["a"]["status"], "won")
        self.assertEqual(body["results"]["b"]["status"], "lost")
        self.assertEqual(self.stub.requested, ["1001"])

    def test_finished_fixture_is_served_from_cache(self) -> None:
        payload = {"bets": [bet_json()]}
        self.client.post("/settle/fixtures", json=payload)
        self.client.post("/settle/fixtures", json=payload)
        self.assertEqual(self.stub.requested, ["1001"])

    def test_unknown_fixture_is_error_outcome(self) -> None:
        payload = {"bets": [bet_json(match_id=4040)]}
        body = self.client.post("/settle/fixtures", json=payload).json()
        self.assertEqual(body["results"]["b1"]["status"], "error")
        self.assertIn("4040", body["results"]["b1"]["reason"])


class MissingTokenTests(unittest.TestCase):
    def test_fixture_endpoint_without_token_is_bad_request(self) -> None:
        client = TestClient(service.app)
        settings = Settings(sportmonks_api_token=None)
        with mock.patch.object(service, "get_settings", return_value=settings), \
                mock.patch.dict(os.environ, {"SPORTMONKS_API_TOKEN": ""}):
            response = client.post("/settle/fixtures", json={"bets": [bet_json()]})
        self.assertEqual(response.status_code, 400)
        self.assertIn("Missing API token", response.json()["detail"])


if __name__ == "__main__":
    unittest.main()
