from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from models import Bet, Score, Side


class ResultPick(str, Enum):
    HOME_WIN = "HOME_WIN"
    DRAW = "DRAW"
    AWAY_WIN = "AWAY_WIN"


class YesNo(str, Enum):
    YES = "YES"
    NO = "NO"


class OverUnderSide(str, Enum):
    OVER = "Over"
    UNDER = "Under"


def _fmt_number(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class OverUnder:
    side: OverUnderSide
    threshold: float

    def __str__(self) -> str:
        return f"{self.side.value} {_fmt_number(self.threshold)}"


@dataclass(frozen=True)
class Handicap:
    side: Optional[Side]
    value: float

    def __str__(self) -> str:
        sign = "+" if self.value > 0 else ""
        who = self.side.value.title() if self.side is not None else "Draw"
        return f"{who} {sign}{_fmt_number(self.value)}"


@dataclass(frozen=True)
class SelectionDescriptor:
    """Structured selection fields with the legacy text kept as a fallback."""

    label: Optional[str] = None
    name: Optional[str] = None
    total: Optional[str] = None
    handicap: Optional[str] = None
    market_description: Optional[str] = None
    text: Optional[str] = None

    @classmethod
    def from_bet(cls, bet: Bet) -> "SelectionDescriptor":
        details = bet.selection_details
        return cls(
            label=details.label,
            name=details.name,
            total=details.total,
            handicap=details.handicap,
            market_description=details.market_description,
            text=(bet.selection or "").strip() or None,
        )

    @property
    def is_structured(self) -> bool:
        return any(v is not None for v in (self.label, self.name, self.total, self.handicap))

    def candidates(self) -> List[str]:
        """Selection texts in precedence order: label, name, legacy text."""
        return [v for v in (self.label, self.name, self.text) if v]

    @property
    def primary(self) -> Optional[str]:
        values = self.candidates()
        return values[0] if values else None


# ═══════════════════════════════════════════════════════════════════════════════
#  Token maps
# ═══════════════════════════════════════════════════════════════════════════════

_RESULT_MAP = {
    "1": ResultPick.HOME_WIN, "H": ResultPick.HOME_WIN, "HOME": ResultPick.HOME_WIN,
    "HOME WIN": ResultPick.HOME_WIN, "W1": ResultPick.HOME_WIN,
    "X": ResultPick.DRAW, "D": ResultPick.DRAW, "DRAW": ResultPick.DRAW, "TIE": ResultPick.DRAW,
    "2": ResultPick.AWAY_WIN, "A": ResultPick.AWAY_WIN, "AWAY": ResultPick.AWAY_WIN,
    "AWAY WIN": ResultPick.AWAY_WIN, "W2": ResultPick.AWAY_WIN,
}

_YES_NO_MAP = {
    "YES": YesNo.YES, "Y": YesNo.YES, "GG": YesNo.YES, "TRUE": YesNo.YES,
    "NO": YesNo.NO, "N": YesNo.NO, "NG": YesNo.NO, "FALSE": YesNo.NO,
}

_SIDE_MAP = {
    "1": Side.HOME, "H": Side.HOME, "HOME": Side.HOME, "HOME TEAM": Side.HOME,
    "2": Side.AWAY, "A": Side.AWAY, "AWAY": Side.AWAY, "AWAY TEAM": Side.AWAY,
}

_OU_SIDE_RE = re.compile(r"^\s*(over|under|o|u)(?=[\s\d.+]|$)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_SCORE_RE = re.compile(r"^\s*(\d+)\s*[-:]\s*(\d+)\s*$")
_START_SCORE_RE = re.compile(r"\bstarts?\s*(\d+)\s*[-:]\s*(\d+)", re.IGNORECASE)
_HANDICAP_TEXT_RE = re.compile(r"^\s*(.*?)\s*\(?\s*([-+]?\d+(?:\.\d+)?)\s*\)?\s*$")
_PAIR_SEPARATORS = ("/", " - ", " & ", "&")


def _key(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (text or "").strip()).upper()


def _parse_number(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    cleaned = str(text).strip()
    if not cleaned:
        return None
    # Split lines such as "0.0, -0.5" settle on their midpoint.
    parts = [p for p in re.split(r"\s*,\s*", cleaned) if p]
    values: List[float] = []
    for part in parts:
        match = _NUMBER_RE.search(part)
        if match is None:
            return None
        values.append(float(match.group(0)))
    if not values:
        return None
    return sum(values) / len(values)


# ═══════════════════════════════════════════════════════════════════════════════
#  Names and sides
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_player_name(name: Optional[str]) -> str:
    text = unicodedata.normalize("NFD", (name or "").strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^\w\s]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def fuzzy_player_match(a: Optional[str], b: Optional[str]) -> bool:
    """Exact normalized match, or enough shared tokens longer than one char.

    ``"B. Finne"`` matches ``"Bendik Finne"``: one shared token is enough when
    the shorter name only has one usable token.
    """
    left = normalize_player_name(a)
    right = normalize_player_name(b)
    if not left or not right:
        return False
    if left == right:
        return True
    left_words = [w for w in left.split(" ") if len(w) > 1]
    right_words = [w for w in right.split(" ") if len(w) > 1]
    if not left_words or not right_words:
        return False
    shared = [w for w in left_words if w in right_words]
    return len(shared) >= min(2, len(left_words), len(right_words))


def _team_key(name: Optional[str]) -> str:
    return normalize_player_name(name)


def resolve_side(text: Optional[str], home_name: Optional[str] = None, away_name: Optional[str] = None) -> Optional[Side]:
    """Explicit side labels first, then a team-name match in either direction."""
    key = _key(text)
    if not key:
        return None
    if key in _SIDE_MAP:
        return _SIDE_MAP[key]
    wanted = _team_key(text)
    home = _team_key(home_name)
    away = _team_key(away_name)
    if home and wanted == home:
        return Side.HOME
    if away and wanted == away:
        return Side.AWAY
    if len(wanted) < 3:
        return None
    home_hit = bool(home) and (home in wanted or wanted in home)
    away_hit = bool(away) and (away in wanted or wanted in away)
    if home_hit and not away_hit:
        return Side.HOME
    if away_hit and not home_hit:
        return Side.AWAY
    return None


def split_pair(text: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split a compound selection such as ``"Away/No"`` or ``"Arsenal - Draw"``."""
    cleaned = (text or "").strip()
    for separator in _PAIR_SEPARATORS:
        if separator in cleaned:
            first, second = cleaned.split(separator, 1)
            first, second = first.strip(), second.strip()
            if first and second:
                return first, second
    return None


# ═══════════════════════════════════════════════════════════════════════════════
#  Picks
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_result(
    text: Optional[str],
    home_name: Optional[str] = None,
    away_name: Optional[str] = None,
) -> Optional[ResultPick]:
    key = _key(text)
    if not key:
        return None
    if key in _RESULT_MAP:
        return _RESULT_MAP[key]
    side = resolve_side(text, home_name, away_name)
    if side == Side.HOME:
        return ResultPick.HOME_WIN
    if side == Side.AWAY:
        return ResultPick.AWAY_WIN
    return None


def normalize_yes_no(text: Optional[str]) -> Optional[YesNo]:
    return _YES_NO_MAP.get(_key(text))


def normalize_over_under(label: Optional[str], total: Optional[str] = None) -> Optional[OverUnder]:
    """Parse ``label="Over", total="2.5"`` or legacy text like ``"Under 3.5"``.

    A structured ``total`` wins over any number found in the label. No
    threshold means no selection: the caller decides how to settle that.
    """
    match = _OU_SIDE_RE.match(label or "")
    if match is None:
        return None
    side = OverUnderSide.OVER if match.group(1).lower().startswith("o") else OverUnderSide.UNDER
    threshold = _parse_number(total)
    if threshold is None:
        threshold = _parse_number((label or "")[match.end():])
    if threshold is None:
        return None
    return OverUnder(side=side, threshold=threshold)


def normalize_handicap(
    label: Optional[str],
    handicap: Optional[str] = None,
    home_name: Optional[str] = None,
    away_name: Optional[str] = None,
) -> Optional[Handicap]:
    """``label="Home", handicap="-1.5"`` or legacy text like ``"Arsenal -1"``."""
    raw = (label or "").strip()
    value = _parse_number(handicap)
    who = raw
    if value is None:
        match = _HANDICAP_TEXT_RE.match(raw)
        if match is None:
            return None
        who, value = match.group(1), float(match.group(2))
    key = _key(who)
    if key in {"X", "DRAW", "TIE"}:
        return Handicap(side=None, value=value)
    side = resolve_side(who, home_name, away_name)
    if side is None:
        return None
    return Handicap(side=side, value=value)


def normalize_score(text: Optional[str]) -> Optional[str]:
    match = _SCORE_RE.match(text or "")
    if match is None:
        return None
    return f"{int(match.group(1))}-{int(match.group(2))}"


def normalize_start_score(text: Optional[str]) -> Optional[Score]:
    """Virtual starting score of a ``"Starts 0-1"`` handicap."""
    match = _START_SCORE_RE.search(text or "")
    if match is None:
        return None
    return Score(int(match.group(1)), int(match.group(2)))


def parse_range(text: Optional[str]) -> Optional[Tuple[int, Optional[int]]]:
    """Inclusive ``"A - B"`` bound; ``"13+"`` is open ended, a lone number exact."""
    cleaned = text or ""
    numbers = re.findall(r"\d+(?:\.\d+)?", cleaned)
    # Fractional lines belong to over/under markets, never to a goal count.
    if any("." in number for number in numbers):
        return None
    if len(numbers) == 1:
        value = int(numbers[0])
        if cleaned.strip().endswith("+") or "more" in cleaned.lower():
            return value, None
        return value, value
    if len(numbers) != 2:
        return None
    low, high = int(numbers[0]), int(numbers[1])
    return (low, high) if low <= high else (high, low)


def first_number(values: Iterable[Optional[str]]) -> Optional[float]:
    for value in values:
        parsed = _parse_number(value)
        if parsed is not None:
            return parsed
    return None
