from __future__ import annotations

import re
from typing import Any, Callable, Iterable, List, Optional

from markets import (
    CORNERS_EXACT_ID,
    CORNERS_RANGE_ID,
    CORNERS_TEAM_ID,
    FIRST_GOALSCORER_ID,
    LAST_GOALSCORER_ID,
)
from models import Bet, MarketFamily, MatchFacts, Outcome, OutcomeStatus, ProviderOdd, Score, Side, StatKind
from selections import (
    OverUnder,
    OverUnderSide,
    ResultPick,
    SelectionDescriptor,
    YesNo,
    first_number,
    fuzzy_player_match,
    normalize_handicap,
    normalize_over_under,
    normalize_result,
    normalize_score,
    normalize_start_score,
    normalize_yes_no,
    parse_range,
    resolve_side,
    split_pair,
)

# ═══════════════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════════════

W = OutcomeStatus.WON
L = OutcomeStatus.LOST
PUSH = OutcomeStatus.PUSH
CANCELED = OutcomeStatus.CANCELED

Calculator = Callable[[Bet, MatchFacts, Optional[Side]], Outcome]


def _outcome(bet: Bet, status: OutcomeStatus, reason: str, **diagnostics: Any) -> Outcome:
    """Shorthand outcome builder."""
    return Outcome.for_bet(bet, status, reason, diagnostics)


def _won(flag: bool) -> OutcomeStatus:
    return W if flag else L


def _result_category(score: Score) -> ResultPick:
    if score.home > score.away:
        return ResultPick.HOME_WIN
    if score.home < score.away:
        return ResultPick.AWAY_WIN
    return ResultPick.DRAW


_PERIOD_LABEL = {"FT": "Full-time", "HT": "Half-time", "2H": "Second-half"}


def _period_score(facts: MatchFacts, period: str) -> Optional[Score]:
    if period == "FT":
        return facts.full_time_score
    if period == "HT":
        return facts.half_time_score
    if period == "2H":
        return facts.second_half_score
    return None


def _missing(bet: Bet, what: str) -> Outcome:
    return _outcome(bet, CANCELED, f"{what} not available: stake returned")


def _unrecognized(bet: Bet, desc: SelectionDescriptor, market: str) -> Outcome:
    return _outcome(
        bet, CANCELED, f"Unrecognized {market} selection '{desc.primary or ''}': stake returned",
    )


def _pick_result(desc: SelectionDescriptor, facts: MatchFacts) -> Optional[ResultPick]:
    for text in desc.candidates():
        pick = normalize_result(text, facts.home_name, facts.away_name)
        if pick is not None:
            return pick
    return None


def _pick_yes_no(texts: Iterable[Optional[str]]) -> Optional[YesNo]:
    for text in texts:
        pick = normalize_yes_no(text)
        if pick is not None:
            return pick
    return None


_OU_ANYWHERE_RE = re.compile(r"\b(over|under)\b", re.IGNORECASE)


def _pick_over_under(texts: Iterable[Optional[str]], *thresholds: Optional[str]) -> Optional[OverUnder]:
    """First over/under reading: structured thresholds first, then the text itself."""
    for text in texts:
        if not text:
            continue
        match = _OU_ANYWHERE_RE.search(text)
        if match is None:
            continue
        tail = text[match.start():]
        for threshold in (*thresholds, None):
            pick = normalize_over_under(tail, threshold)
            if pick is not None:
                return pick
    return None


def _desc_over_under(desc: SelectionDescriptor) -> Optional[OverUnder]:
    return _pick_over_under(desc.candidates(), desc.total, desc.name, desc.handicap)


_SIDE_WORD_RE = re.compile(r"\b(home|away)\b", re.IGNORECASE)


def _team_side(facts: MatchFacts, desc: SelectionDescriptor, pinned: Optional[Side]) -> Optional[Side]:
    if pinned is not None:
        return pinned
    texts = [desc.market_description, *desc.candidates()]
    for text in texts:
        side = resolve_side(text, facts.home_name, facts.away_name)
        if side is not None:
            return side
    for text in texts:
        match = _SIDE_WORD_RE.search(text or "")
        if match is not None:
            return Side(match.group(1).lower())
    return None


def _settle_ou(bet: Bet, value: float, pick: OverUnder, what: str, **diagnostics: Any) -> Outcome:
    # Landing exactly on a whole line loses both ways.
    diagnostics.update(actual=value, threshold=pick.threshold, side=pick.side.value)
    if pick.side == OverUnderSide.OVER:
        won = value > pick.threshold
    else:
        won = value < pick.threshold
    return _outcome(bet, _won(won), f"{what}={value}, {pick}", **diagnostics)


def _settle_range(bet: Bet, value: int, bounds: tuple[int, Optional[int]], what: str) -> Outcome:
    low, high = bounds
    won = value >= low and (high is None or value <= high)
    shown = f"{low}+" if high is None else (f"{low}" if low == high else f"{low}-{high}")
    return _outcome(bet, _won(won), f"{what}={value}, selection {shown}", actual=value, low=low, high=high)


def _find_provider_odd(bet: Bet, facts: MatchFacts, live: Optional[bool] = None) -> Optional[ProviderOdd]:
    use_live = bet.is_live if live is None else live
    return facts.find_odd(bet.odd_id, live=use_live)


def provider_flag_outcome(bet: Bet, facts: MatchFacts, live: Optional[bool] = None) -> Optional[Outcome]:
    """Settle from the feed's ``winning`` flag; ``None`` when it cannot be resolved."""
    odd = _find_provider_odd(bet, facts, live)
    if odd is None or odd.winning is None:
        return None
    return _outcome(
        bet,
        _won(odd.winning),
        f"Provider settled selection '{odd.label or odd.name or odd.odd_id}' as {'winning' if odd.winning else 'losing'}",
        odd_id=odd.odd_id,
        winning=odd.winning,
    )


def _provider_fallback(bet: Bet, facts: MatchFacts, what: str) -> Outcome:
    flagged = provider_flag_outcome(bet, facts)
    if flagged is not None:
        return flagged
    return _missing(bet, what)


# ═══════════════════════════════════════════════════════════════════════════════
#  Generic period-parametrised helpers
# ═══════════════════════════════════════════════════════════════════════════════


def _eval_period_result(bet: Bet, facts: MatchFacts, period: str) -> Outcome:
    score = _period_score(facts, period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = _pick_result(desc, facts)
    if pick is None:
        return _unrecognized(bet, desc, "result")
    actual = _result_category(score)
    return _outcome(
        bet, _won(pick == actual), f"{_PERIOD_LABEL[period]} score {score}",
        score=str(score), actual=actual.value, selection=pick.value,
    )


def _eval_period_over_under(bet: Bet, facts: MatchFacts, period: str) -> Outcome:
    score = _period_score(facts, period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = _desc_over_under(desc)
    if pick is None:
        return _unrecognized(bet, desc, "over/under")
    return _settle_ou(bet, score.total, pick, f"{_PERIOD_LABEL[period]} goals", score=str(score))


def _eval_period_btts(bet: Bet, facts: MatchFacts, period: str) -> Outcome:
    score = _period_score(facts, period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = _pick_yes_no(desc.candidates())
    if pick is None:
        return _unrecognized(bet, desc, "both teams to score")
    btts = score.home > 0 and score.away > 0
    won = btts if pick == YesNo.YES else not btts
    return _outcome(
        bet, _won(won), f"{_PERIOD_LABEL[period]} goals {score}: both scored={'yes' if btts else 'no'}",
        score=str(score), both_scored=btts, selection=pick.value,
    )


def _eval_period_odd_even(bet: Bet, facts: MatchFacts, period: str) -> Outcome:
    score = _period_score(facts, period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = next((t.strip().upper() for t in desc.candidates() if t.strip().upper() in {"ODD", "EVEN"}), None)
    if pick is None:
        return _unrecognized(bet, desc, "odd/even")
    actual = "EVEN" if score.total % 2 == 0 else "ODD"
    return _outcome(
        bet, _won(pick == actual), f"{_PERIOD_LABEL[period]} total={score.total} ({actual})",
        total=score.total, actual=actual, selection=pick,
    )


def _eval_period_asian_handicap(bet: Bet, facts: MatchFacts, period: str) -> Outcome:
    score = _period_score(facts, period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    handicap = None
    for text in desc.candidates():
        handicap = normalize_handicap(text, desc.handicap, facts.home_name, facts.away_name)
        if handicap is not None:
            break
    if handicap is None or handicap.side is None:
        return _unrecognized(bet, desc, "handicap")
    home, away = float(score.home), float(score.away)
    if handicap.side == Side.HOME:
        home += handicap.value
    else:
        away += handicap.value
    diagnostics = dict(score=str(score), handicap=handicap.value, side=handicap.side.value,
                       adjusted=f"{home:g}-{away:g}")
    if home == away:
        return _outcome(bet, PUSH, f"Adjusted score tied ({home:g}-{away:g})", **diagnostics)
    won = home > away if handicap.side == Side.HOME else away > home
    return _outcome(bet, _won(won), f"Adjusted score {home:g}-{away:g}", **diagnostics)


# ═══════════════════════════════════════════════════════════════════════════════
#  Result markets
# ═══════════════════════════════════════════════════════════════════════════════


def _result_match_result(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_result(bet, facts, "FT")


def _result_half_time_result(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_result(bet, facts, "HT")


def _result_second_half_result(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_result(bet, facts, "2H")


_DOUBLE_CHANCE_MAP = {
    "1X": {ResultPick.HOME_WIN, ResultPick.DRAW},
    "X2": {ResultPick.DRAW, ResultPick.AWAY_WIN},
    "12": {ResultPick.HOME_WIN, ResultPick.AWAY_WIN},
}


def _double_chance_pick(text: str, facts: MatchFacts) -> Optional[set[ResultPick]]:
    compact = re.sub(r"\s+", "", text).upper()
    if compact in _DOUBLE_CHANCE_MAP:
        return _DOUBLE_CHANCE_MAP[compact]
    parts = split_pair(text)
    if parts is None and re.search(r"\s+or\s+", text, re.IGNORECASE):
        first, second = re.split(r"\s+or\s+", text, maxsplit=1, flags=re.IGNORECASE)
        parts = (first, second)
    if parts is None:
        return None
    picks = {normalize_result(p, facts.home_name, facts.away_name) for p in parts}
    if None in picks or len(picks) != 2:
        return None
    return picks  # type: ignore[return-value]


def _result_double_chance(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    picks = None
    for text in desc.candidates():
        picks = _double_chance_pick(text, facts)
        if picks is not None:
            break
    if picks is None:
        return _unrecognized(bet, desc, "double chance")
    actual = _result_category(score)
    return _outcome(
        bet, _won(actual in picks), f"Full-time score {score}",
        score=str(score), actual=actual.value, selection=sorted(p.value for p in picks),
    )


def _result_draw_no_bet(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = _pick_result(desc, facts)
    if pick is None or pick == ResultPick.DRAW:
        return _unrecognized(bet, desc, "draw no bet")
    actual = _result_category(score)
    if actual == ResultPick.DRAW:
        return _outcome(bet, CANCELED, f"Draw {score}: stake returned", score=str(score))
    return _outcome(
        bet, _won(pick == actual), f"Full-time score {score}",
        score=str(score), actual=actual.value, selection=pick.value,
    )


def _result_half_time_full_time(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    half_time = facts.half_time_score
    full_time = facts.full_time_score
    if half_time is None or full_time is None:
        return _missing(bet, "Half-time or full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    for text in desc.candidates():
        parts = split_pair(text)
        if parts is None:
            continue
        ht_pick = normalize_result(parts[0], facts.home_name, facts.away_name)
        ft_pick = normalize_result(parts[1], facts.home_name, facts.away_name)
        if ht_pick is None or ft_pick is None:
            continue
        ht_actual = _result_category(half_time)
        ft_actual = _result_category(full_time)
        won = ht_pick == ht_actual and ft_pick == ft_actual
        return _outcome(
            bet, _won(won), f"Half-time {half_time}, full-time {full_time}",
            half_time=str(half_time), full_time=str(full_time),
            selection=[ht_pick.value, ft_pick.value], actual=[ht_actual.value, ft_actual.value],
        )
    return _unrecognized(bet, desc, "half-time/full-time")


def _result_highest_scoring_half(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    first = facts.half_time_score
    second = facts.second_half_score
    if first is None or second is None:
        return _missing(bet, "Half scores")
    desc = SelectionDescriptor.from_bet(bet)
    picks = {"1ST HALF": "FIRST", "FIRST HALF": "FIRST", "1": "FIRST",
             "2ND HALF": "SECOND", "SECOND HALF": "SECOND", "2": "SECOND",
             "TIE": "TIE", "EQUAL": "TIE", "DRAW": "TIE", "X": "TIE"}
    pick = next((picks[t.strip().upper()] for t in desc.candidates() if t.strip().upper() in picks), None)
    if pick is None:
        return _unrecognized(bet, desc, "highest scoring half")
    if first.total > second.total:
        actual = "FIRST"
    elif first.total < second.total:
        actual = "SECOND"
    else:
        actual = "TIE"
    return _outcome(
        bet, _won(pick == actual), f"First half {first.total} goals, second half {second.total}",
        first_half=first.total, second_half=second.total, actual=actual, selection=pick,
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Goals totals
# ═══════════════════════════════════════════════════════════════════════════════


def _result_over_under_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_over_under(bet, facts, "FT")


def _result_goal_line(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_over_under(bet, facts, "FT")


def _result_first_half_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_over_under(bet, facts, "HT")


def _result_odd_even_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_odd_even(bet, facts, "FT")


def _result_odd_even_first_half(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_odd_even(bet, facts, "HT")


def _result_odd_even_second_half(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_odd_even(bet, facts, "2H")


def _goal_count_selection(desc: SelectionDescriptor) -> Optional[tuple[int, Optional[int]]]:
    for text in (desc.label, desc.name, desc.total, desc.text):
        if not text:
            continue
        bounds = parse_range(text)
        if bounds is not None:
            return bounds
    return None


def _result_exact_total_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    bounds = _goal_count_selection(desc)
    if bounds is None:
        return _unrecognized(bet, desc, "exact goals")
    return _settle_range(bet, score.total, bounds, "Total goals")


def _result_team_total_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    side = _team_side(facts, desc, pinned)
    pick = _desc_over_under(desc)
    if side is None or pick is None:
        return _unrecognized(bet, desc, "team total")
    return _settle_ou(
        bet, score.for_side(side), pick, f"{facts.team_name(side)} goals", team=side.value, score=str(score),
    )


def _result_team_exact_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    side = _team_side(facts, desc, pinned)
    bounds = _goal_count_selection(desc)
    if side is None or bounds is None:
        return _unrecognized(bet, desc, "team exact goals")
    return _settle_range(bet, score.for_side(side), bounds, f"{facts.team_name(side)} goals")


# ═══════════════════════════════════════════════════════════════════════════════
#  Correct score and handicaps
# ═══════════════════════════════════════════════════════════════════════════════


def _result_correct_score(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    pick = next((s for s in (normalize_score(t) for t in desc.candidates()) if s is not None), None)
    if pick is None:
        return _unrecognized(bet, desc, "correct score")
    actual = str(score)
    return _outcome(
        bet, _won(pick == actual), f"Actual score {actual}, selection {pick}", actual=actual, selection=pick,
    )


def _result_asian_handicap(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_asian_handicap(bet, facts, "FT")


def _result_half_time_asian_handicap(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_asian_handicap(bet, facts, "HT")


def _result_three_way_handicap(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    texts = [*desc.candidates(), desc.handicap, desc.market_description]

    start = next((s for s in (normalize_start_score(t) for t in texts) if s is not None), None)
    if start is not None:
        pick = _pick_result(desc, facts)
        if pick is None:
            return _unrecognized(bet, desc, "3-way handicap")
        home, away = score.home + start.home, score.away + start.away
        line = f"starts {start}"
    else:
        handicap = None
        for text in desc.candidates():
            handicap = normalize_handicap(text, desc.handicap, facts.home_name, facts.away_name)
            if handicap is not None:
                break
        if handicap is None:
            return _unrecognized(bet, desc, "3-way handicap")
        if handicap.value != int(handicap.value):
            return _outcome(
                bet, CANCELED, f"3-way handicap needs a whole line, got {handicap.value:g}: stake returned",
                handicap=handicap.value,
            )
        # Draw selections quote the line from the home side.
        home, away = score.home, score.away
        if handicap.side == Side.AWAY:
            away += int(handicap.value)
        else:
            home += int(handicap.value)
        pick = {Side.HOME: ResultPick.HOME_WIN, Side.AWAY: ResultPick.AWAY_WIN, None: ResultPick.DRAW}[handicap.side]
        line = f"{handicap.value:+g}"
    adjusted = Score(home, away)
    actual = _result_category(adjusted)
    return _outcome(
        bet, _won(pick == actual), f"Handicap {line}: adjusted score {adjusted}",
        score=str(score), adjusted=str(adjusted), actual=actual.value, selection=pick.value,
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Both teams / clean sheet
# ═══════════════════════════════════════════════════════════════════════════════


def _result_btts(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_btts(bet, facts, "FT")


def _result_btts_first_half(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_btts(bet, facts, "HT")


def _result_btts_second_half(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_period_btts(bet, facts, "2H")


def _side_and_yes_no(
    facts: MatchFacts, desc: SelectionDescriptor, pinned: Optional[Side],
) -> tuple[Optional[Side], Optional[YesNo]]:
    texts: List[Optional[str]] = list(desc.candidates())
    for text in desc.candidates():
        parts = split_pair(text)
        if parts is not None:
            texts.extend(parts)
    pick = _pick_yes_no(texts)
    side = pinned
    if side is None:
        for text in [desc.market_description, *texts]:
            side = resolve_side(text, facts.home_name, facts.away_name)
            if side is not None:
                break
    return side, pick


def _result_clean_sheet(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    side, pick = _side_and_yes_no(facts, desc, pinned)
    if side is None or pick is None:
        return _unrecognized(bet, desc, "clean sheet")
    kept = score.against_side(side) == 0
    won = kept if pick == YesNo.YES else not kept
    return _outcome(
        bet, _won(won), f"{facts.team_name(side)} conceded {score.against_side(side)}",
        team=side.value, clean_sheet=kept, selection=pick.value,
    )


def _result_win_to_nil(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    side, pick = _side_and_yes_no(facts, desc, pinned)
    if side is None:
        return _unrecognized(bet, desc, "win to nil")
    achieved = score.for_side(side) > 0 and score.against_side(side) == 0
    won = achieved if pick in (None, YesNo.YES) else not achieved
    return _outcome(
        bet, _won(won), f"Final score {score}", team=side.value, win_to_nil=achieved, score=str(score),
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Goal events
# ═══════════════════════════════════════════════════════════════════════════════

_SCORER_KIND_BY_MARKET = {FIRST_GOALSCORER_ID: "FIRST", LAST_GOALSCORER_ID: "LAST"}
_SCORER_KIND_RE = re.compile(r"\b(first|last|anytime)\b", re.IGNORECASE)


def _scorer_kind(bet: Bet, desc: SelectionDescriptor) -> str:
    # Labels and names carry the player, so only the market says which goal counts.
    kind = _SCORER_KIND_BY_MARKET.get(bet.market_id)
    if kind is not None:
        return kind
    match = _SCORER_KIND_RE.search(desc.market_description or "")
    return match.group(1).upper() if match is not None else "ANYTIME"


def _result_goalscorers(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    if not facts.goal_events:
        return _missing(bet, "Goal events")
    desc = SelectionDescriptor.from_bet(bet)
    kind = _scorer_kind(bet, desc)
    player = desc.name or desc.text
    if not player:
        return _unrecognized(bet, desc, "goalscorer")
    scorers = [ev for ev in facts.goal_events if not ev.is_own_goal]
    if kind == "ANYTIME":
        matched = [ev for ev in scorers if fuzzy_player_match(ev.player_name, player)]
        return _outcome(
            bet, _won(bool(matched)), f"{player} scored {len(matched)} goal(s)",
            kind=kind, player=player, goals=len(matched),
        )
    if not scorers:
        return _outcome(bet, L, "Only own goals were scored", kind=kind, player=player)
    event = scorers[0] if kind == "FIRST" else scorers[-1]
    won = fuzzy_player_match(event.player_name, player)
    return _outcome(
        bet, _won(won), f"{kind.title()} scorer {event.player_name} ({event.minute}')",
        kind=kind, player=player, scorer=event.player_name, minute=event.minute,
    )


def _eval_team_to_score(bet: Bet, facts: MatchFacts, which: str) -> Outcome:
    if not facts.goal_events:
        return _missing(bet, "Goal events")
    desc = SelectionDescriptor.from_bet(bet)
    pick = next(
        (s for s in (resolve_side(t, facts.home_name, facts.away_name) for t in desc.candidates()) if s is not None),
        None,
    )
    if pick is None:
        return _unrecognized(bet, desc, f"{which.lower()} team to score")
    event = facts.goal_events[0] if which == "FIRST" else facts.goal_events[-1]
    if event.side is None:
        return _missing(bet, "Scoring side")
    return _outcome(
        bet, _won(event.side == pick), f"{which.title()} goal by {facts.team_name(event.side)} ({event.minute}')",
        actual=event.side.value, selection=pick.value, minute=event.minute,
    )


def _result_first_team_to_score(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_team_to_score(bet, facts, "FIRST")


def _result_last_team_to_score(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_team_to_score(bet, facts, "LAST")


# ═══════════════════════════════════════════════════════════════════════════════
#  Combo markets
# ═══════════════════════════════════════════════════════════════════════════════


def _combo_parts(desc: SelectionDescriptor) -> Optional[tuple[str, str]]:
    for text in desc.candidates():
        parts = split_pair(text)
        if parts is not None:
            return parts
    return None


def _result_result_btts(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    score = facts.full_time_score
    if score is None:
        return _missing(bet, "Full-time score")
    desc = SelectionDescriptor.from_bet(bet)
    parts = _combo_parts(desc)
    if parts is None:
        return _unrecognized(bet, desc, "result/both teams to score")
    result_pick = normalize_result(parts[0], facts.home_name, facts.away_name)
    btts_pick = normalize_yes_no(parts[1])
    if result_pick is None or btts_pick is None:
        return _unrecognized(bet, desc, "result/both teams to score")
    actual = _result_category(score)
    btts = score.home > 0 and score.away > 0
    won = result_pick == actual and (btts if btts_pick == YesNo.YES else not btts)
    return _outcome(
        bet, _won(won), f"Final score {score}",
        score=str(score), actual=actual.value, both_scored=btts,
        selection=[result_pick.value, btts_pick.value],
    )


def _eval_result_and_total(bet: Bet, facts: MatchFacts, result_period: str) -> Outcome:
    score = _period_score(facts, result_period)
    if score is None:
        return _missing(bet, f"{_PERIOD_LABEL[result_period]} score")
    desc = SelectionDescriptor.from_bet(bet)
    parts = _combo_parts(desc)
    if parts is None:
        return _unrecognized(bet, desc, "result/total goals")
    result_pick = normalize_result(parts[0], facts.home_name, facts.away_name)
    total_pick = _pick_over_under([parts[1]], desc.total, desc.handicap)
    if result_pick is None or total_pick is None:
        return _unrecognized(bet, desc, "result/total goals")
    actual = _result_category(score)
    if total_pick.side == OverUnderSide.OVER:
        total_ok = score.total > total_pick.threshold
    else:
        total_ok = score.total < total_pick.threshold
    return _outcome(
        bet, _won(result_pick == actual and total_ok), f"{_PERIOD_LABEL[result_period]} score {score}",
        score=str(score), actual=actual.value, total=score.total,
        selection=[result_pick.value, str(total_pick)],
    )


def _result_result_total_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_result_and_total(bet, facts, "FT")


def _result_half_time_result_total_goals(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_result_and_total(bet, facts, "HT")


# ═══════════════════════════════════════════════════════════════════════════════
#  Statistics
# ═══════════════════════════════════════════════════════════════════════════════


def _result_corners(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    corners = facts.corner_stats
    if corners is None:
        return _provider_fallback(bet, facts, "Corner statistics")
    desc = SelectionDescriptor.from_bet(bet)
    diagnostics = dict(home=corners.home, away=corners.away)

    if bet.market_id == CORNERS_TEAM_ID:
        side = _team_side(facts, desc, pinned)
        pick = _desc_over_under(desc)
        if side is None or pick is None:
            return _unrecognized(bet, desc, "team corners")
        return _settle_ou(bet, corners.home if side == Side.HOME else corners.away, pick,
                          f"{facts.team_name(side)} corners", team=side.value, **diagnostics)

    if bet.market_id in (CORNERS_RANGE_ID, CORNERS_EXACT_ID):
        bounds = _goal_count_selection(desc)
        if bounds is None:
            return _unrecognized(bet, desc, "corners")
        if bet.market_id == CORNERS_EXACT_ID and bounds[1] is not None and bounds[0] != bounds[1]:
            return _unrecognized(bet, desc, "exact corners")
        return _settle_range(bet, corners.total, bounds, "Total corners")

    pick = _desc_over_under(desc)
    if pick is None:
        return _unrecognized(bet, desc, "corners over/under")
    return _settle_ou(bet, corners.total, pick, "Total corners", **diagnostics)


def _result_cards_total(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    cards = facts.card_stats
    if cards is None:
        return _provider_fallback(bet, facts, "Card statistics")
    desc = SelectionDescriptor.from_bet(bet)
    pick = _desc_over_under(desc)
    if pick is None:
        return _unrecognized(bet, desc, "cards over/under")
    return _settle_ou(bet, cards.total, pick, "Total cards", home=cards.home, away=cards.away)


# ═══════════════════════════════════════════════════════════════════════════════
#  Player props
# ═══════════════════════════════════════════════════════════════════════════════


def _eval_player_stat(bet: Bet, facts: MatchFacts, kind: StatKind, what: str) -> Outcome:
    desc = SelectionDescriptor.from_bet(bet)
    player_name = desc.name or desc.text
    if not player_name:
        return _unrecognized(bet, desc, what)
    # A bare number ("0.5") in the label means an over line.
    pick = _pick_over_under([desc.label, desc.total, desc.text], desc.total)
    if pick is None:
        threshold = first_number([desc.label, desc.total])
        if threshold is None:
            return _unrecognized(bet, desc, what)
        pick = OverUnder(side=OverUnderSide.OVER, threshold=threshold)
    player = facts.find_player(player_name)
    if player is None:
        return _outcome(bet, CANCELED, f"{player_name} not found in lineups: stake returned", player=player_name)
    value = player.stats.get(int(kind))
    # No detail entry for a lineup player means the stat was never recorded.
    if value is None:
        return _outcome(
            bet, L, f"{player.player_name} has no recorded {what}",
            player=player.player_name, actual=None, threshold=pick.threshold, side=pick.side.value,
        )
    return _settle_ou(bet, value, pick, f"{player.player_name} {what}", player=player.player_name)


def _result_player_shots_on_target(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_player_stat(bet, facts, StatKind.SHOTS_ON_TARGET, "shots on target")


def _result_player_total_shots(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _eval_player_stat(bet, facts, StatKind.SHOTS_TOTAL, "total shots")


def _result_player_cards(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    return _provider_fallback(bet, facts, "Provider result for player card market")


def _result_unknown(bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    flagged = provider_flag_outcome(bet, facts)
    if flagged is not None:
        return flagged
    return _outcome(
        bet, CANCELED, f"Market {bet.market_id} is not settled by the engine: stake returned",
        market_id=bet.market_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Registry
# ═══════════════════════════════════════════════════════════════════════════════

FAMILY_CALCULATORS: dict[MarketFamily, Calculator] = {
    # result
    MarketFamily.MATCH_RESULT: _result_match_result,
    MarketFamily.DOUBLE_CHANCE: _result_double_chance,
    MarketFamily.DRAW_NO_BET: _result_draw_no_bet,
    MarketFamily.HALF_TIME_RESULT: _result_half_time_result,
    MarketFamily.SECOND_HALF_RESULT: _result_second_half_result,
    MarketFamily.HALF_TIME_FULL_TIME: _result_half_time_full_time,
    # goals totals
    MarketFamily.OVER_UNDER_GOALS: _result_over_under_goals,
    MarketFamily.GOAL_LINE: _result_goal_line,
    MarketFamily.FIRST_HALF_GOALS: _result_first_half_goals,
    MarketFamily.EXACT_TOTAL_GOALS: _result_exact_total_goals,
    MarketFamily.TEAM_TOTAL_GOALS: _result_team_total_goals,
    MarketFamily.TEAM_EXACT_GOALS: _result_team_exact_goals,
    MarketFamily.ODD_EVEN_GOALS: _result_odd_even_goals,
    MarketFamily.ODD_EVEN_GOALS_FIRST_HALF: _result_odd_even_first_half,
    MarketFamily.ODD_EVEN_GOALS_SECOND_HALF: _result_odd_even_second_half,
    MarketFamily.HIGHEST_SCORING_HALF: _result_highest_scoring_half,
    # correct score / handicap
    MarketFamily.CORRECT_SCORE: _result_correct_score,
    MarketFamily.ASIAN_HANDICAP: _result_asian_handicap,
    MarketFamily.HALF_TIME_ASIAN_HANDICAP: _result_half_time_asian_handicap,
    MarketFamily.THREE_WAY_HANDICAP: _result_three_way_handicap,
    # both teams / clean sheet
    MarketFamily.BOTH_TEAMS_TO_SCORE: _result_btts,
    MarketFamily.BOTH_TEAMS_TO_SCORE_FIRST_HALF: _result_btts_first_half,
    MarketFamily.BOTH_TEAMS_TO_SCORE_SECOND_HALF: _result_btts_second_half,
    MarketFamily.CLEAN_SHEET: _result_clean_sheet,
    MarketFamily.WIN_TO_NIL: _result_win_to_nil,
    # goal events
    MarketFamily.GOALSCORERS: _result_goalscorers,
    MarketFamily.FIRST_TEAM_TO_SCORE: _result_first_team_to_score,
    MarketFamily.LAST_TEAM_TO_SCORE: _result_last_team_to_score,
    # combos
    MarketFamily.RESULT_AND_BOTH_TEAMS_TO_SCORE: _result_result_btts,
    MarketFamily.RESULT_AND_TOTAL_GOALS: _result_result_total_goals,
    MarketFamily.HALF_TIME_RESULT_AND_TOTAL_GOALS: _result_half_time_result_total_goals,
    # statistics
    MarketFamily.CORNERS: _result_corners,
    MarketFamily.CARDS_TOTAL: _result_cards_total,
    # player props
    MarketFamily.PLAYER_SHOTS_ON_TARGET: _result_player_shots_on_target,
    MarketFamily.PLAYER_TOTAL_SHOTS: _result_player_total_shots,
    MarketFamily.PLAYER_CARDS: _result_player_cards,
    MarketFamily.UNKNOWN: _result_unknown,
}


def calculate(family: MarketFamily, bet: Bet, facts: MatchFacts, pinned: Optional[Side] = None) -> Outcome:
    """Run the family's calculator; ``pinned`` is the team side fixed by the market, if any."""
    return FAMILY_CALCULATORS.get(family, _result_unknown)(bet, facts, pinned)
