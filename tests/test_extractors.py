from __future__ import annotations

import unittest

from extractors import (
    build_match_facts,
    extract_card_stats,
    extract_corner_stats,
    extract_full_time_score,
    extract_goal_events,
    extract_half_time_score,
    extract_player_stat,
    extract_second_half_score,
    is_match_finished,
)
from models import CornerStats, Score, Side, StatKind
from payloads import AWAY_ID, HOME_ID, fixture, goal, odd, stat


class FinalityTests(unittest.TestCase):
    def test_finished_by_state_id(self) -> None:
        for state_id in (5, 7, 8):
            self.assertTrue(is_match_finished({"state": {"id": state_id}}))

    def test_finished_by_state_name(self) -> None:
        self.assertTrue(is_match_finished({"state": {"id": None, "name": "Finished"}}))
        self.assertTrue(is_match_finished({"state": {"short_name": "FT"}}))
        self.assertTrue(is_match_finished({"state": {"state": "FT_PEN"}}))

    def test_not_finished(self) -> None:
        self.assertFalse(is_match_finished({"state": {"id": 1, "name": "Not Started", "short_name": "NS"}}))
        self.assertFalse(is_match_finished({}))
        self.assertFalse(is_match_finished({"state": "FT"}))


class ScoreExtractionTests(unittest.TestCase):
    def test_full_time_sums_half_segments(self) -> None:
        self.assertEqual(extract_full_time_score(fixture()), Score(2, 1))

    def test_full_time_falls_back_to_current(self) -> None:
        match = {"scores": [
            {"description": "CURRENT", "score": {"goals": 3, "participant": "home"}},
            {"description": "CURRENT", "score": {"goals": 0, "participant": "away"}},
        ]}
        self.assertEqual(extract_full_time_score(match), Score(3, 0))

    def test_full_time_falls_back_to_legacy_entry(self) -> None:
        match = {"scores": [{"description": "FT", "score": {"goals": {"home": 1, "away": 4}}}]}
        self.assertEqual(extract_full_time_score(match), Score(1, 4))

    def test_full_time_absent(self) -> None:
        self.assertIsNone(extract_full_time_score({"scores": []}))
        self.assertIsNone(extract_full_time_score({}))

    def test_half_time_from_first_half_segments(self) -> None:
        self.assertEqual(extract_half_time_score(fixture()), Score(1, 0))

    def test_half_time_legacy_fallback(self) -> None:
        match = {"scores": [{"description": "HALFTIME", "score": {"goals": {"home": 0, "away": 2}}}]}
        self.assertEqual(extract_half_time_score(match), Score(0, 2))

    def test_half_time_absent(self) -> None:
        match = {"scores": [{"description": "CURRENT", "score": {"goals": 1, "participant": "home"}}]}
        self.assertIsNone(extract_half_time_score(match))

    def test_second_half_from_segments(self) -> None:
        self.assertEqual(extract_second_half_score(fixture()), Score(1, 1))

    def test_second_half_derived_from_full_and_half_time(self) -> None:
        match = {"scores": [
            {"description": "HT", "score": {"goals": {"home": 1, "away": 0}}},
            {"description": "CURRENT", "score": {"goals": 2, "participant": "home"}},
            {"description": "CURRENT", "score": {"goals": 1, "participant": "away"}},
        ]}
        self.assertEqual(extract_second_half_score(match), Score(1, 1))

    def test_second_half_absent_without_half_time(self) -> None:
        match = {"scores": [{"description": "FT", "score": {"goals": {"home": 1, "away": 1}}}]}
        self.assertIsNone(extract_second_half_score(match))


class StatisticsExtractionTests(unittest.TestCase):
    def test_corners_by_location(self) -> None:
        corners = extract_corner_stats(fixture())
        self.assertEqual(corners, CornerStats(6, 4))
        self.assertEqual(corners.total, 10)

    def test_corners_by_participant_id(self) -> None:
        match = fixture(statistics=[
            {"type_id": 34, "participant_id": HOME_ID, "data": {"value": 3}},
            {"type_id": 34, "participant_id": AWAY_ID, "data": {"value": 8}},
        ])
        self.assertEqual(extract_corner_stats(match), CornerStats(3, 8))

    def test_corners_absent_is_not_zero(self) -> None:
        self.assertIsNone(extract_corner_stats(fixture(statistics=[stat(84, "home", 1)])))
        zero = extract_corner_stats(fixture(statistics=[stat(34, "home", 0), stat(34, "away", 0)]))
        self.assertEqual(zero, CornerStats(0, 0))

    def test_cards_add_yellow_and_red(self) -> None:
        cards = extract_card_stats(fixture())
        self.assertEqual((cards.home, cards.away, cards.total), (2, 4, 6))

    def test_cards_absent(self) -> None:
        self.assertIsNone(extract_card_stats(fixture(statistics=[])))


class EventExtractionTests(unittest.TestCase):
    def test_goal_events_sorted_with_stoppage_time(self) -> None:
        match = fixture(events=[
            goal(HOME_ID, "Late", 46),
            goal(AWAY_ID, "Stoppage", 45, 2),
            goal(HOME_ID, "Early", 10),
        ])
        names = [ev.player_name for ev in extract_goal_events(match)]
        self.assertEqual(names, ["Early", "Late", "Stoppage"])

    def test_missed_penalties_ignored_and_own_goals_flagged(self) -> None:
        match = fixture(events=[
            goal(HOME_ID, "Penalty Taker", 30, type_id=16),
            goal(AWAY_ID, "Missed", 40, type_id=17),
            goal(HOME_ID, "Unlucky", 50, type_id=15),
            {"type_id": 19, "participant_id": HOME_ID, "player_name": "Booked", "minute": 60},
        ])
        events = extract_goal_events(match)
        self.assertEqual([ev.player_name for ev in events], ["Penalty Taker", "Unlucky"])
        self.assertFalse(events[0].is_own_goal)
        self.assertTrue(events[1].is_own_goal)

    def test_event_side_from_participant(self) -> None:
        events = extract_goal_events(fixture())
        self.assertEqual([ev.side for ev in events], [Side.HOME, Side.AWAY, Side.HOME])

    def test_player_stat_case_insensitive(self) -> None:
        match = fixture()
        self.assertEqual(extract_player_stat(match, "bukayo SAKA", StatKind.SHOTS_ON_TARGET), 3.0)
        self.assertEqual(extract_player_stat(match, "Kai Havertz", StatKind.SHOTS_TOTAL), 2.0)

    def test_player_stat_absent(self) -> None:
        match = fixture()
        self.assertIsNone(extract_player_stat(match, "Saka", StatKind.SHOTS_ON_TARGET))
        self.assertIsNone(extract_player_stat(match, "Cole Palmer", StatKind.SHOTS_ON_TARGET))


class BuildMatchFactsTests(unittest.TestCase):
    def test_builds_complete_facts(self) -> None:
        match = fixture(
            odds=[odd(9001, 1, "1", True), odd(9002, 1, "X", False)],
            inplayodds=[odd(7001, 1, "1", None)],
        )
        facts = build_match_facts(match)
        self.assertTrue(facts.is_finished)
        self.assertEqual(facts.match_id, "1001")
        self.assertEqual((facts.home_name, facts.away_name), ("Arsenal", "Chelsea"))
        self.assertEqual(facts.full_time_score, Score(2, 1))
        self.assertEqual(len(facts.goal_events), 3)
        self.assertTrue(facts.provider_odds["9001"].winning)
        self.assertFalse(facts.provider_odds["9002"].winning)
        self.assertIsNone(facts.live_odds["7001"].winning)
        self.assertEqual(facts.find_odd(9001).market_id, 1)
        self.assertEqual(facts.player_stat("Bukayo Saka", StatKind.SHOTS_TOTAL), 5.0)

    def test_participants_without_location_are_home_first(self) -> None:
        match = {"participants": [{"id": 1, "name": "First"}, {"id": 2, "name": "Second"}]}
        facts = build_match_facts(match)
        self.assertEqual((facts.home_name, facts.away_name), ("First", "Second"))
        self.assertFalse(facts.is_finished)

    def test_rejects_non_mapping_payload(self) -> None:
        with self.assertRaises(ValueError):
            build_match_facts(["not", "a", "fixture"])  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
