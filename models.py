from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple


class OutcomeStatus(str, Enum):
    WON = "won"
    LOST = "lost"
    PUSH = "push"
    CANCELED = "canceled"
    PENDING = "pending"
    ERROR = "error"


class MarketFamily(str, Enum):
    UNKNOWN = "UNKNOWN"
    # ── result ──
    MATCH_RESULT = "MATCH_RESULT"
    DOUBLE_CHANCE = "DOUBLE_CHANCE"
    DRAW_NO_BET = "DRAW_NO_BET"
    HALF_TIME_RESULT = "HALF_TIME_RESULT"
    SECOND_HALF_RESULT = "SECOND_HALF_RESULT"
    HALF_TIME_FULL_TIME = "HALF_TIME_FULL_TIME"
    # ── goals totals ──
    OVER_UNDER_GOALS = "OVER_UNDER_GOALS"
    GOAL_LINE = "GOAL_LINE"
    FIRST_HALF_GOALS = "FIRST_HALF_GOALS"
    EXACT_TOTAL_GOALS = "EXACT_TOTAL_GOALS"
    TEAM_TOTAL_GOALS = "TEAM_TOTAL_GOALS"
    TEAM_EXACT_GOALS = "TEAM_EXACT_GOALS"
    ODD_EVEN_GOALS = "ODD_EVEN_GOALS"
    ODD_EVEN_GOALS_FIRST_HALF = "ODD_EVEN_GOALS_FIRST_HALF"
    ODD_EVEN_GOALS_SECOND_HALF = "ODD_EVEN_GOALS_SECOND_HALF"
    HIGHEST_SCORING_HALF = "HIGHEST_SCORING_HALF"
    # ── correct score ──
    CORRECT_SCORE = "CORRECT_SCORE"
    # ── handicap ──
    ASIAN_HANDICAP = "ASIAN_HANDICAP"
    HALF_TIME_ASIAN_HANDICAP = "HALF_TIME_ASIAN_HANDICAP"
    THREE_WAY_HANDICAP = "THREE_WAY_HANDICAP"
    # ── both teams / clean sheet ──
    BOTH_TEAMS_TO_SCORE = "BOTH_TEAMS_TO_SCORE"
    BOTH_TEAMS_TO_SCORE_FIRST_HALF = "BOTH_TEAMS_TO_SCORE_FIRST_HALF"
    BOTH_TEAMS_TO_SCORE_SECOND_HALF = "BOTH_TEAMS_TO_SCORE_SECOND_HALF"
    CLEAN_SHEET = "CLEAN_SHEET"
    WIN_TO_NIL = "WIN_TO_NIL"
    # ── goal events ──
    GOALSCORERS = "GOALSCORERS"
    FIRST_TEAM_TO_SCORE = "FIRST_TEAM_TO_SCORE"
    LAST_TEAM_TO_SCORE = "LAST_TEAM_TO_SCORE"
    # ── combo markets ──
    RESULT_AND_BOTH_TEAMS_TO_SCORE = "RESULT_AND_BOTH_TEAMS_TO_SCORE"
    RESULT_AND_TOTAL_GOALS = "RESULT_AND_TOTAL_GOALS"
    HALF_TIME_RESULT_AND_TOTAL_GOALS = "HALF_TIME_RESULT_AND_TOTAL_GOALS"
    # ── statistics ──
    CORNERS = "CORNERS"
    CARDS_TOTAL = "CARDS_TOTAL"
    # ── player props ──
    PLAYER_SHOTS_ON_TARGET = "PLAYER_SHOTS_ON_TARGET"
    PLAYER_TOTAL_SHOTS = "PLAYER_TOTAL_SHOTS"
    PLAYER_CARDS = "PLAYER_CARDS"


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"


class StatKind(IntEnum):
    """Statistic type identifiers used by the fixture feed."""

    SHOTS_TOTAL = 42
    CORNERS = 34
    RED_CARDS = 83
    YELLOW_CARDS = 84
    SHOTS_ON_TARGET = 86


# ═══════════════════════════════════════════════════════════════════════════════
#  Match facts
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Score:
    home: int
    away: int

    @property
    def total(self) -> int:
        return self.home + self.away

    def for_side(self, side: Side) -> int:
        return self.home if side == Side.HOME else self.away

    def against_side(self, side: Side) -> int:
        return self.away if side == Side.HOME else self.home

    def __str__(self) -> str:
        return f"{self.home}-{self.away}"


@dataclass(frozen=True)
class CornerStats:
    home: int
    away: int

    @property
    def total(self) -> int:
        return self.home + self.away


@dataclass(frozen=True)
class CardStats:
    home: int
    away: int

    @property
    def total(self) -> int:
        return self.home + self.away


@dataclass(frozen=True)
class GoalEvent:
    side: Optional[Side]
    participant_id: Optional[int]
    player_name: str
    minute: int
    extra_minute: int = 0
    is_own_goal: bool = False

    @property
    def sort_minute(self) -> int:
        return self.minute + self.extra_minute


@dataclass(frozen=True)
class LineupPlayer:
    player_name: str
    player_id: Optional[int] = None
    team_id: Optional[int] = None
    stats: Mapping[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderOdd:
    odd_id: str
    market_id: Optional[int] = None
    label: Optional[str] = None
    name: Optional[str] = None
    total: Optional[str] = None
    handicap: Optional[str] = None
    winning: Optional[bool] = None


@dataclass(frozen=True)
class MatchFacts:
    match_id: Optional[str]
    is_finished: bool
    state_id: Optional[int] = None
    state_name: Optional[str] = None
    home_name: str = "Home"
    away_name: str = "Away"
    home_id: Optional[int] = None
    away_id: Optional[int] = None
    full_time_score: Optional[Score] = None
    half_time_score: Optional[Score] = None
    second_half_score: Optional[Score] = None
    corner_stats: Optional[CornerStats] = None
    card_stats: Optional[CardStats] = None
    goal_events: Tuple[GoalEvent, ...] = ()
    lineups: Tuple[LineupPlayer, ...] = ()
    provider_odds: Mapping[str, ProviderOdd] = field(default_factory=dict)
    live_odds: Mapping[str, ProviderOdd] = field(default_factory=dict)

    def find_player(self, player_name: str) -> Optional[LineupPlayer]:
        wanted = (player_name or "").strip().casefold()
        if not wanted:
            return None
        for player in self.lineups:
            if player.player_name.strip().casefold() == wanted:
                return player
        return None

    def player_stat(self, player_name: str, stat_kind: StatKind) -> Optional[float]:
        player = self.find_player(player_name)
        if player is None:
            return None
        return player.stats.get(int(stat_kind))

    def find_odd(self, odd_id: Any, live: bool = False) -> Optional[ProviderOdd]:
        if odd_id is None:
            return None
        odds = self.live_odds if live else self.provider_odds
        return odds.get(str(odd_id))

    def team_name(self, side: Side) -> str:
        return self.home_name if side == Side.HOME else self.away_name


# ═══════════════════════════════════════════════════════════════════════════════
#  Bets and outcomes
# ═══════════════════════════════════════════════════════════════════════════════


def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError) as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}") from exc


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class SelectionDetails:
    label: Optional[str] = None
    name: Optional[str] = None
    total: Optional[str] = None
    handicap: Optional[str] = None
    market_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SelectionDetails":
        data = data or {}
        return cls(
            label=_optional_str(data.get("label")),
            name=_optional_str(data.get("name")),
            total=_optional_str(data.get("total")),
            handicap=_optional_str(data.get("handicap")),
            market_description=_optional_str(data.get("market_description")),
        )


@dataclass(frozen=True)
class Bet:
    stake: Decimal
    odds: Decimal
    market_id: Optional[int] = None
    selection: str = ""
    selection_details: SelectionDetails = field(default_factory=SelectionDetails)
    is_live: bool = False
    bet_id: Optional[str] = None
    match_id: Optional[str] = None
    odd_id: Optional[str] = None

    def __post_init__(self) -> None:
        stake = _to_decimal(self.stake, "stake")
        odds = _to_decimal(self.odds, "odds")
        if stake <= 0:
            raise ValueError(f"stake must be positive, got {stake}")
        if odds <= 1:
            raise ValueError(f"odds must be greater than 1.0, got {odds}")
        object.__setattr__(self, "stake", stake)
        object.__setattr__(self, "odds", odds)
        if self.market_id is not None:
            object.__setattr__(self, "market_id", int(self.market_id))
        for attr in ("bet_id", "match_id", "odd_id"):
            value = getattr(self, attr)
            if value is not None:
                object.__setattr__(self, attr, str(value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bet":
        """Build a bet from a JSON/persisted record (snake_case or camelCase keys)."""
        details = data.get("selection_details") or data.get("betDetails") or {}
        market_id = data.get("market_id", data.get("marketId"))
        if market_id in (None, "") and details.get("market_id") not in (None, ""):
            market_id = details.get("market_id")
        selection = data.get("selection") or data.get("betOption") or ""
        return cls(
            stake=data["stake"],
            odds=data["odds"],
            market_id=int(market_id) if market_id not in (None, "") else None,
            selection=str(selection),
            selection_details=SelectionDetails.from_dict(details),
            is_live=bool(data.get("is_live", data.get("inplay", False))),
            bet_id=data.get("bet_id", data.get("_id")),
            match_id=data.get("match_id", data.get("matchId")),
            odd_id=data.get("odd_id", data.get("oddId")),
        )


def payout_for(status: OutcomeStatus, stake: Decimal, odds: Decimal) -> Decimal:
    if status == OutcomeStatus.WON:
        return stake * odds
    if status in (OutcomeStatus.PUSH, OutcomeStatus.CANCELED):
        return stake
    return Decimal("0")


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    payout: Decimal
    reason: str
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    bet_id: Optional[str] = None

    @classmethod
    def for_bet(
        cls,
        bet: Bet,
        status: OutcomeStatus,
        reason: str,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> "Outcome":
        return cls(
            status=status,
            payout=payout_for(status, bet.stake, bet.odds),
            reason=reason,
            diagnostics=dict(diagnostics or {}),
            bet_id=bet.bet_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bet_id": self.bet_id,
            "status": self.status.value,
            "payout": str(self.payout),
            "reason": self.reason,
            "diagnostics": self.diagnostics,
        }
