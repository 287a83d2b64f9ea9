from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from models import MarketFamily, Side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketMeta:
    family: MarketFamily
    name: str
    provider_authoritative: bool = False
    side: Optional[Side] = None


def _m(
    family: MarketFamily,
    name: str,
    provider_authoritative: bool = False,
    side: Optional[Side] = None,
) -> MarketMeta:
    return MarketMeta(family=family, name=name, provider_authoritative=provider_authoritative, side=side)


F = MarketFamily


# Corner sub-markets share one family and are told apart by id.
CORNERS_OVER_UNDER_ID = 60
CORNERS_TEAM_ID = 61
CORNERS_RANGE_ID = 62
CORNERS_EXACT_ID = 63

# Other goalscorer ids settle as anytime unless the market description says otherwise.
FIRST_GOALSCORER_ID = 247
LAST_GOALSCORER_ID = 248


MARKET_TABLE: Dict[int, MarketMeta] = {
    # ── result ──
    1: _m(F.MATCH_RESULT, "Fulltime Result"),
    2: _m(F.DOUBLE_CHANCE, "Double Chance"),
    10: _m(F.DRAW_NO_BET, "Draw No Bet"),
    22: _m(F.HALF_TIME_RESULT, "Half Time Result"),
    23: _m(F.SECOND_HALF_RESULT, "Second Half Result"),
    29: _m(F.HALF_TIME_FULL_TIME, "Half Time/Full Time"),
    # ── goals totals ──
    4: _m(F.OVER_UNDER_GOALS, "Goals Over/Under"),
    5: _m(F.OVER_UNDER_GOALS, "Alternative Goals Over/Under"),
    7: _m(F.GOAL_LINE, "Goal Line"),
    27: _m(F.FIRST_HALF_GOALS, "1st Half Goals"),
    28: _m(F.FIRST_HALF_GOALS, "Alternative 1st Half Goals"),
    39: _m(F.EXACT_TOTAL_GOALS, "Exact Total Goals"),
    18: _m(F.TEAM_EXACT_GOALS, "Home Team Exact Goals", side=Side.HOME),
    19: _m(F.TEAM_EXACT_GOALS, "Away Team Exact Goals", side=Side.AWAY),
    20: _m(F.TEAM_TOTAL_GOALS, "Home Team Goals", side=Side.HOME),
    21: _m(F.TEAM_TOTAL_GOALS, "Away Team Goals", side=Side.AWAY),
    12: _m(F.ODD_EVEN_GOALS, "Goals Odd/Even"),
    24: _m(F.ODD_EVEN_GOALS_FIRST_HALF, "1st Half Goals Odd/Even"),
    25: _m(F.ODD_EVEN_GOALS_SECOND_HALF, "2nd Half Goals Odd/Even"),
    31: _m(F.HIGHEST_SCORING_HALF, "Highest Scoring Half"),
    # ── correct score ──
    8: _m(F.CORRECT_SCORE, "Correct Score"),
    # ── handicap ──
    6: _m(F.ASIAN_HANDICAP, "Asian Handicap"),
    26: _m(F.HALF_TIME_ASIAN_HANDICAP, "1st Half Asian Handicap"),
    9: _m(F.THREE_WAY_HANDICAP, "3-Way Handicap"),
    # ── both teams / clean sheet ──
    14: _m(F.BOTH_TEAMS_TO_SCORE, "Both Teams To Score"),
    15: _m(F.BOTH_TEAMS_TO_SCORE_FIRST_HALF, "Both Teams To Score - 1st Half"),
    16: _m(F.BOTH_TEAMS_TO_SCORE_SECOND_HALF, "Both Teams To Score - 2nd Half"),
    17: _m(F.CLEAN_SHEET, "Clean Sheet"),
    30: _m(F.WIN_TO_NIL, "Win To Nil"),
    # ── goal events ──
    FIRST_GOALSCORER_ID: _m(F.GOALSCORERS, "First Goalscorer"),
    LAST_GOALSCORER_ID: _m(F.GOALSCORERS, "Last Goalscorer"),
    11: _m(F.LAST_TEAM_TO_SCORE, "Last Team To Score"),
    32: _m(F.FIRST_TEAM_TO_SCORE, "First Team To Score"),
    # ── combo markets ──
    13: _m(F.RESULT_AND_BOTH_TEAMS_TO_SCORE, "Result/Both Teams To Score"),
    37: _m(F.RESULT_AND_TOTAL_GOALS, "Result/Total Goals"),
    38: _m(F.HALF_TIME_RESULT_AND_TOTAL_GOALS, "Half Time Result/Total Goals"),
    # ── statistics ──
    CORNERS_OVER_UNDER_ID: _m(F.CORNERS, "Corners Over/Under"),
    CORNERS_TEAM_ID: _m(F.CORNERS, "Team Corners"),
    CORNERS_RANGE_ID: _m(F.CORNERS, "Total Corners Range"),
    CORNERS_EXACT_ID: _m(F.CORNERS, "Exact Total Corners"),
    45: _m(F.CARDS_TOTAL, "Cards Over/Under"),
    # ── player props ──
    66: _m(F.PLAYER_CARDS, "Player To Be Booked", provider_authoritative=True),
    267: _m(F.PLAYER_SHOTS_ON_TARGET, "Player Shots On Target"),
    268: _m(F.PLAYER_TOTAL_SHOTS, "Player Total Shots"),
    # ── provider settled only ──
    40: _m(F.UNKNOWN, "Time Of First Goal", provider_authoritative=True),
    41: _m(F.UNKNOWN, "Team To Score In Both Halves", provider_authoritative=True),
    42: _m(F.UNKNOWN, "Winning Margin", provider_authoritative=True),
    43: _m(F.UNKNOWN, "Method Of First Goal", provider_authoritative=True),
    44: _m(F.UNKNOWN, "Corners Handicap", provider_authoritative=True),
    46: _m(F.UNKNOWN, "Penalty Awarded", provider_authoritative=True),
}


def _parse_market_id(market_id: Any) -> Optional[int]:
    if market_id is None or isinstance(market_id, bool):
        return None
    try:
        return int(str(market_id).strip())
    except ValueError:
        return None


class MarketClassifier:
    """Read-only view over a market metadata table."""

    def __init__(self, table: Optional[Mapping[int, MarketMeta]] = None) -> None:
        self._table: Dict[int, MarketMeta] = dict(MARKET_TABLE if table is None else table)

    def meta(self, market_id: Any) -> Optional[MarketMeta]:
        parsed = _parse_market_id(market_id)
        if parsed is None:
            return None
        return self._table.get(parsed)

    def classify(self, market_id: Any) -> MarketFamily:
        meta = self.meta(market_id)
        return meta.family if meta is not None else MarketFamily.UNKNOWN

    def is_provider_authoritative(self, market_id: Any) -> bool:
        meta = self.meta(market_id)
        return bool(meta and meta.provider_authoritative)

    def side(self, market_id: Any) -> Optional[Side]:
        meta = self.meta(market_id)
        return meta.side if meta is not None else None

    def items(self) -> list[tuple[int, MarketMeta]]:
        return sorted(self._table.items())


# ═══════════════════════════════════════════════════════════════════════════════
#  JSON overlay
# ═══════════════════════════════════════════════════════════════════════════════


def _meta_from_entry(entry: Mapping[str, Any], base: Optional[MarketMeta]) -> MarketMeta:
    meta = base or MarketMeta(family=MarketFamily.UNKNOWN, name="")
    family = entry.get("family")
    if family is not None:
        try:
            meta = replace(meta, family=MarketFamily(str(family).upper()))
        except ValueError as exc:
            raise ValueError(f"Unknown market family '{family}'") from exc
    if entry.get("name") is not None:
        meta = replace(meta, name=str(entry["name"]))
    flag = entry.get("provider_authoritative", entry.get("has_winning_calculations"))
    if flag is not None:
        meta = replace(meta, provider_authoritative=bool(flag))
    if "side" in entry:
        side = entry.get("side")
        meta = replace(meta, side=Side(str(side).lower()) if side else None)
    return meta


def load_market_table(path: str | Path, base: Optional[Mapping[int, MarketMeta]] = None) -> Dict[int, MarketMeta]:
    """Overlay a ``{"markets": {"<id>": {...}}}`` JSON file on the default table."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    markets = payload.get("markets") if isinstance(payload, Mapping) else None
    if not isinstance(markets, Mapping):
        raise ValueError(f"Market table {path} must contain a 'markets' object")

    table: Dict[int, MarketMeta] = dict(MARKET_TABLE if base is None else base)
    for raw_id, entry in markets.items():
        market_id = _parse_market_id(raw_id)
        if market_id is None or not isinstance(entry, Mapping):
            logger.warning("Skipping malformed market entry %r in %s", raw_id, path)
            continue
        table[market_id] = _meta_from_entry(entry, table.get(market_id))
    logger.info("Loaded %d market overrides from %s", len(markets), path)
    return table


# ═══════════════════════════════════════════════════════════════════════════════
#  Module-level lookups
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_CLASSIFIER = MarketClassifier()


def classify(market_id: Any) -> MarketFamily:
    return DEFAULT_CLASSIFIER.classify(market_id)


def is_provider_authoritative(market_id: Any) -> bool:
    return DEFAULT_CLASSIFIER.is_provider_authoritative(market_id)
