from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from models import (
    CardStats,
    CornerStats,
    GoalEvent,
    LineupPlayer,
    MatchFacts,
    ProviderOdd,
    Score,
    Side,
    StatKind,
)

logger = logging.getLogger(__name__)


FINISHED_STATE_IDS = {5, 7, 8}
FINISHED_STATE_NAMES = {"finished", "ended", "ft", "fulltime", "completed", "closed", "aet", "ft_pen"}

GOAL_EVENT_TYPES = {14, 15, 16}
OWN_GOAL_EVENT_TYPE = 15

FIRST_HALF = "1ST_HALF"
SECOND_HALF_ONLY = "2ND_HALF_ONLY"
CURRENT = "CURRENT"
LEGACY_HALF_TIME = {"HT", "HALFTIME"}
LEGACY_FULL_TIME = {"FT", "FULLTIME"}


# ═══════════════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lstrip("-").isdigit():
            return int(cleaned)
    return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_list(value: Any) -> List[Dict[str, Any]]:
    # Includes sometimes arrive wrapped as {"data": [...]}.
    if isinstance(value, Mapping) and "data" in value:
        value = value["data"]
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    return None


def _segment_score(scores: Iterable[Mapping[str, Any]], description: str) -> Optional[Score]:
    """Sum goals of every ``description`` segment per participant side."""
    home = away = 0
    found = False
    for entry in scores:
        if entry.get("description") != description:
            continue
        score = entry.get("score") or {}
        goals = _to_int(score.get("goals"))
        participant = str(score.get("participant") or "").lower()
        if goals is None or participant not in {"home", "away"}:
            continue
        found = True
        if participant == "home":
            home += goals
        else:
            away += goals
    return Score(home, away) if found else None


def _legacy_score(scores: Iterable[Mapping[str, Any]], descriptions: set[str]) -> Optional[Score]:
    for entry in scores:
        if entry.get("description") not in descriptions:
            continue
        goals = (entry.get("score") or {}).get("goals")
        if not isinstance(goals, Mapping):
            continue
        home = _to_int(goals.get("home"))
        away = _to_int(goals.get("away"))
        if home is None and away is None:
            continue
        return Score(home or 0, away or 0)
    return None


def _participants(match: Mapping[str, Any]) -> Tuple[Optional[Mapping[str, Any]], Optional[Mapping[str, Any]]]:
    participants = _as_list(match.get("participants"))
    home = away = None
    for participant in participants:
        location = str((participant.get("meta") or {}).get("location") or "").lower()
        if location == "home" and home is None:
            home = participant
        elif location == "away" and away is None:
            away = participant
    # Home first when the feed omits locations.
    remaining = [p for p in participants if p is not home and p is not away]
    if home is None and remaining:
        home = remaining.pop(0)
    if away is None and remaining:
        away = remaining.pop(0)
    return home, away


def _participant_ids(match: Mapping[str, Any]) -> Tuple[Optional[int], Optional[int]]:
    home, away = _participants(match)
    return (
        _to_int(home.get("id")) if home else None,
        _to_int(away.get("id")) if away else None,
    )


def _side_of(entry: Mapping[str, Any], home_id: Optional[int], away_id: Optional[int]) -> Optional[Side]:
    location = str(entry.get("location") or "").lower()
    if location in {"home", "away"}:
        return Side(location)
    participant_id = _to_int(entry.get("participant_id"))
    if participant_id is None:
        return None
    if participant_id == home_id:
        return Side.HOME
    if participant_id == away_id:
        return Side.AWAY
    return None


def _side_totals(
    match: Mapping[str, Any], type_ids: Iterable[int]
) -> Optional[Tuple[int, int]]:
    wanted = {int(t) for t in type_ids}
    home_id, away_id = _participant_ids(match)
    home = away = 0
    found = False
    for entry in _as_list(match.get("statistics")):
        if _to_int(entry.get("type_id")) not in wanted:
            continue
        side = _side_of(entry, home_id, away_id)
        value = _to_int((entry.get("data") or {}).get("value"))
        if side is None or value is None:
            continue
        found = True
        if side == Side.HOME:
            home += value
        else:
            away += value
    return (home, away) if found else None


# ═══════════════════════════════════════════════════════════════════════════════
#  State and scores
# ═══════════════════════════════════════════════════════════════════════════════


def is_match_finished(match: Mapping[str, Any]) -> bool:
    state = match.get("state") or {}
    if not isinstance(state, Mapping):
        return False
    state_id = _to_int(state.get("id", match.get("state_id")))
    if state_id in FINISHED_STATE_IDS:
        return True
    for key in ("state", "short_name", "name", "developer_name"):
        value = state.get(key)
        if isinstance(value, str) and value.strip().lower() in FINISHED_STATE_NAMES:
            return True
    return False


def extract_full_time_score(match: Mapping[str, Any]) -> Optional[Score]:
    """Regular-time score: first half plus second-half-only segments.

    Falls back to a ``CURRENT`` segment and then to a legacy ``FT`` entry.
    """
    scores = _as_list(match.get("scores"))
    first = _segment_score(scores, FIRST_HALF)
    second = _segment_score(scores, SECOND_HALF_ONLY)
    if first is not None or second is not None:
        first = first or Score(0, 0)
        second = second or Score(0, 0)
        return Score(first.home + second.home, first.away + second.away)
    current = _segment_score(scores, CURRENT)
    if current is not None:
        return current
    return _legacy_score(scores, LEGACY_FULL_TIME | {CURRENT})


def extract_half_time_score(match: Mapping[str, Any]) -> Optional[Score]:
    scores = _as_list(match.get("scores"))
    first = _segment_score(scores, FIRST_HALF)
    if first is not None:
        return first
    return _legacy_score(scores, LEGACY_HALF_TIME)


def extract_second_half_score(match: Mapping[str, Any]) -> Optional[Score]:
    scores = _as_list(match.get("scores"))
    second = _segment_score(scores, SECOND_HALF_ONLY)
    if second is not None:
        return second
    full_time = extract_full_time_score(match)
    half_time = extract_half_time_score(match)
    if full_time is None or half_time is None:
        return None
    home = full_time.home - half_time.home
    away = full_time.away - half_time.away
    if home < 0 or away < 0:
        logger.warning("Inconsistent score segments for match %s", match.get("id"))
        return None
    return Score(home, away)


# ═══════════════════════════════════════════════════════════════════════════════
#  Statistics, events, lineups
# ═══════════════════════════════════════════════════════════════════════════════


def extract_corner_stats(match: Mapping[str, Any]) -> Optional[CornerStats]:
    totals = _side_totals(match, [StatKind.CORNERS])
    if totals is None:
        return None
    return CornerStats(home=totals[0], away=totals[1])


def extract_card_stats(match: Mapping[str, Any]) -> Optional[CardStats]:
    totals = _side_totals(match, [StatKind.YELLOW_CARDS, StatKind.RED_CARDS])
    if totals is None:
        return None
    return CardStats(home=totals[0], away=totals[1])


def extract_goal_events(match: Mapping[str, Any]) -> Tuple[GoalEvent, ...]:
    """Goals, own goals and penalties ordered by ``minute + extra_minute``."""
    home_id, away_id = _participant_ids(match)
    events: List[GoalEvent] = []
    for entry in _as_list(match.get("events")):
        type_id = _to_int(entry.get("type_id"))
        if type_id not in GOAL_EVENT_TYPES:
            continue
        events.append(
            GoalEvent(
                side=_side_of(entry, home_id, away_id),
                participant_id=_to_int(entry.get("participant_id")),
                player_name=str(entry.get("player_name") or ""),
                minute=_to_int(entry.get("minute")) or 0,
                extra_minute=_to_int(entry.get("extra_minute")) or 0,
                is_own_goal=type_id == OWN_GOAL_EVENT_TYPE,
            )
        )
    # sorted() is stable, so simultaneous goals keep feed order.
    return tuple(sorted(events, key=lambda ev: ev.sort_minute))


def extract_lineups(match: Mapping[str, Any]) -> Tuple[LineupPlayer, ...]:
    players: List[LineupPlayer] = []
    for entry in _as_list(match.get("lineups")):
        name = _optional_str(entry.get("player_name"))
        if name is None:
            continue
        stats: Dict[int, float] = {}
        for detail in _as_list(entry.get("details")):
            type_id = _to_int(detail.get("type_id"))
            value = _to_float((detail.get("data") or {}).get("value"))
            if type_id is None or value is None:
                continue
            stats[type_id] = value
        players.append(
            LineupPlayer(
                player_name=name,
                player_id=_to_int(entry.get("player_id")),
                team_id=_to_int(entry.get("team_id")),
                stats=stats,
            )
        )
    return tuple(players)


def extract_player_stat(match: Mapping[str, Any], player_name: str, stat_kind: StatKind) -> Optional[float]:
    """Case-insensitive exact lineup lookup; ``None`` when player or stat is missing."""
    wanted = (player_name or "").strip().casefold()
    if not wanted:
        return None
    for player in extract_lineups(match):
        if player.player_name.strip().casefold() == wanted:
            return player.stats.get(int(stat_kind))
    return None


def extract_odds(entries: Any) -> Dict[str, ProviderOdd]:
    odds: Dict[str, ProviderOdd] = {}
    for entry in _as_list(entries):
        odd_id = _optional_str(entry.get("id"))
        if odd_id is None:
            continue
        odds[odd_id] = ProviderOdd(
            odd_id=odd_id,
            market_id=_to_int(entry.get("market_id")),
            label=_optional_str(entry.get("label")),
            name=_optional_str(entry.get("name")),
            total=_optional_str(entry.get("total")),
            handicap=_optional_str(entry.get("handicap")),
            winning=_to_bool(entry.get("winning")),
        )
    return odds


# ═══════════════════════════════════════════════════════════════════════════════
#  Facts
# ═══════════════════════════════════════════════════════════════════════════════


def build_match_facts(match: Mapping[str, Any]) -> MatchFacts:
    if not isinstance(match, Mapping):
        raise ValueError(f"Match payload must be a mapping, got {type(match).__name__}")
    state = match.get("state") if isinstance(match.get("state"), Mapping) else {}
    home, away = _participants(match)
    live_entries = match.get("inplayodds", match.get("inplayOdds"))
    return MatchFacts(
        match_id=_optional_str(match.get("id")),
        is_finished=is_match_finished(match),
        state_id=_to_int(state.get("id", match.get("state_id"))),
        state_name=_optional_str(state.get("name") or state.get("state")),
        home_name=str((home or {}).get("name") or "Home"),
        away_name=str((away or {}).get("name") or "Away"),
        home_id=_to_int((home or {}).get("id")),
        away_id=_to_int((away or {}).get("id")),
        full_time_score=extract_full_time_score(match),
        half_time_score=extract_half_time_score(match),
        second_half_score=extract_second_half_score(match),
        corner_stats=extract_corner_stats(match),
        card_stats=extract_card_stats(match),
        goal_events=extract_goal_events(match),
        lineups=extract_lineups(match),
        provider_odds=extract_odds(match.get("odds")),
        live_odds=extract_odds(live_entries),
    )
