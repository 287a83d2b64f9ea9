from __future__ import annotations

import unittest
from decimal import Decimal

from models import Bet, Outcome, OutcomeStatus, Score, SelectionDetails, Side, payout_for


class BetTests(unittest.TestCase):
    def test_coerces_numbers_and_ids(self) -> None:
        bet = Bet(stake="10", odds=1.5, market_id="8", match_id=1001, odd_id=77)  # type: ignore[arg-type]
        self.assertEqual(bet.stake, Decimal("10"))
        self.assertEqual(bet.odds, Decimal("1.5"))
        self.assertEqual(bet.market_id, 8)
        self.assertEqual((bet.match_id, bet.odd_id), ("1001", "77"))

    def test_rejects_invalid_stake_and_odds(self) -> None:
        for stake, odds in (("0", "2"), ("-5", "2"), ("10", "1"), ("10", "0.5"), ("ten", "2")):
            with self.subTest(stake=stake, odds=odds):
                with self.assertRaises(ValueError):
                    Bet(stake=stake, odds=odds)  # type: ignore[arg-type]

    def test_from_dict_snake_case(self) -> None:
        bet = Bet.from_dict({
            "bet_id": "b1",
            "match_id": "1001",
            "stake": 20,
            "odds": "2.10",
            "market_id": 1,
            "selection": "1",
            "selection_details": {"label": "Home", "total": 2.5},
            "is_live": True,
        })
        self.assertEqual(bet.market_id, 1)
        self.assertEqual(bet.selection_details, SelectionDetails(label="Home", total="2.5"))
        self.assertTrue(bet.is_live)

    def test_from_dict_camel_case(self) -> None:
        bet = Bet.from_dict({
            "_id": "abc",
            "matchId": 1001,
            "oddId": 9001,
            "stake": "5",
            "odds": "3.4",
            "betOption": "Over 2.5",
            "betDetails": {"market_id": "4", "label": "Over", "name": " ", "market_description": "Goals"},
            "inplay": False,
        })
        self.assertEqual(bet.bet_id, "abc")
        self.assertEqual(bet.match_id, "1001")
        self.assertEqual(bet.odd_id, "9001")
        self.assertEqual(bet.market_id, 4)
        self.assertEqual(bet.selection, "Over 2.5")
        self.assertIsNone(bet.selection_details.name)
        self.assertEqual(bet.selection_details.market_description, "Goals")


class OutcomeTests(unittest.TestCase):
    def test_payout_law(self) -> None:
        stake, odds = Decimal("40"), Decimal("2.25")
        self.assertEqual(payout_for(OutcomeStatus.WON, stake, odds), Decimal("90"))
        self.assertEqual(payout_for(OutcomeStatus.PUSH, stake, odds), stake)
        self.assertEqual(payout_for(OutcomeStatus.CANCELED, stake, odds), stake)
        for status in (OutcomeStatus.LOST, OutcomeStatus.PENDING, OutcomeStatus.ERROR):
            self.assertEqual(payout_for(status, stake, odds), Decimal("0"))

    def test_for_bet_and_to_dict(self) -> None:
        bet = Bet(stake=Decimal("25"), odds=Decimal("8.50"), bet_id="b7")
        outcome = Outcome.for_bet(bet, OutcomeStatus.WON, "Actual score 2-1", {"actual": "2-1"})
        self.assertEqual(outcome.to_dict(), {
            "bet_id": "b7",
            "status": "won",
            "payout": "212.50",
            "reason": "Actual score 2-1",
            "diagnostics": {"actual": "2-1"},
        })


class ScoreTests(unittest.TestCase):
    def test_sides(self) -> None:
        score = Score(2, 1)
        self.assertEqual(str(score), "2-1")
        self.assertEqual(score.total, 3)
        self.assertEqual(score.for_side(Side.AWAY), 1)
        self.assertEqual(score.against_side(Side.AWAY), 2)


if __name__ == "__main__":
    unittest.main()
