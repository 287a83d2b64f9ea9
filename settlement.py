from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from cache import TTLCache
from calculators import calculate, provider_flag_outcome
from extractors import build_match_facts
from markets import DEFAULT_CLASSIFIER, MarketClassifier
from models import Bet, MatchFacts, Outcome, OutcomeStatus

logger = logging.getLogger(__name__)

MatchInput = Union[MatchFacts, Mapping[str, Any]]
Resolver = Callable[[str], Optional[MatchInput]]


def _facts(match: MatchInput) -> MatchFacts:
    if isinstance(match, MatchFacts):
        return match
    return build_match_facts(match)


def _error(bet: Bet, exc: BaseException | str) -> Outcome:
    reason = exc if isinstance(exc, str) else (str(exc) or type(exc).__name__)
    return Outcome(status=OutcomeStatus.ERROR, payout=Decimal("0"), reason=reason, bet_id=bet.bet_id)


def _resolve_market_id(bet: Bet, facts: MatchFacts) -> Optional[int]:
    if bet.market_id is not None:
        return bet.market_id
    odd = None
    if bet.is_live:
        odd = facts.find_odd(bet.odd_id, live=True)
    if odd is None:
        odd = facts.find_odd(bet.odd_id)
    return odd.market_id if odd is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
#  Orchestrator
# ═══════════════════════════════════════════════════════════════════════════════


def _settle(bet: Bet, facts: MatchFacts, classifier: MarketClassifier) -> Outcome:
    if not facts.is_finished:
        state = facts.state_name or facts.state_id
        return Outcome.for_bet(bet, OutcomeStatus.PENDING, f"Match not finished yet (state={state})")

    market_id = _resolve_market_id(bet, facts)
    if market_id is None:
        return Outcome.for_bet(
            bet, OutcomeStatus.CANCELED, f"Market for odd {bet.odd_id} could not be resolved: stake returned",
        )
    if bet.market_id is None:
        bet = replace(bet, market_id=market_id)

    if classifier.is_provider_authoritative(market_id):
        flagged = provider_flag_outcome(bet, facts)
        if flagged is not None:
            return flagged
        if not bet.is_live:
            return Outcome.for_bet(
                bet, OutcomeStatus.CANCELED, f"No provider result for odd {bet.odd_id}: stake returned",
                {"market_id": market_id},
            )
        # Live odd ids are not stable after the match, fall back to our own rules.
        logger.debug("No live provider flag for bet %s, using calculator", bet.bet_id)

    family = classifier.classify(market_id)
    outcome = calculate(family, bet, facts, classifier.side(market_id))
    return replace(
        outcome, diagnostics={"market_id": market_id, "family": family.value, **outcome.diagnostics},
    )


def settle(bet: Bet, match: MatchInput, classifier: Optional[MarketClassifier] = None) -> Outcome:
    """Settle one bet against a raw fixture payload or prebuilt facts.

    Never raises: unexpected failures become ``error`` outcomes with a zero
    payout.
    """
    try:
        return _settle(bet, _facts(match), classifier or DEFAULT_CLASSIFIER)
    except Exception as exc:
        logger.exception("Settlement failed for bet %s (market %s)", bet.bet_id, bet.market_id)
        return _error(bet, exc)


# ═══════════════════════════════════════════════════════════════════════════════
#  Batch settlement
# ═══════════════════════════════════════════════════════════════════════════════


def _lookup(matches: Mapping[Any, Optional[MatchInput]], match_id: Optional[str]) -> Optional[MatchInput]:
    if match_id is None:
        return None
    if match_id in matches:
        return matches[match_id]
    if match_id.isdigit() and int(match_id) in matches:
        return matches[int(match_id)]
    return None


def settle_many(
    bets: Iterable[Bet],
    match_facts_by_match_id: Mapping[Any, Optional[MatchInput]],
    classifier: Optional[MarketClassifier] = None,
) -> List[Outcome]:
    """One outcome per bet, in input order; facts are built once per match."""
    facts_by_match: Dict[Optional[str], Union[MatchFacts, str]] = {}
    outcomes: List[Outcome] = []
    for bet in bets:
        if bet.match_id not in facts_by_match:
            raw = _lookup(match_facts_by_match_id, bet.match_id)
            if raw is None:
                facts_by_match[bet.match_id] = f"Match data not found for match {bet.match_id}"
            else:
                try:
                    facts_by_match[bet.match_id] = _facts(raw)
                except Exception as exc:
                    logger.exception("Could not build facts for match %s", bet.match_id)
                    facts_by_match[bet.match_id] = f"Invalid match data for match {bet.match_id}: {exc}"
        facts = facts_by_match[bet.match_id]
        if isinstance(facts, str):
            outcomes.append(_error(bet, facts))
        else:
            outcomes.append(settle(bet, facts, classifier))
    return outcomes


class SettlementProcessor:
    """Settles bets grouped by match, fetching each match once.

    Only finished matches are kept in the cache so pending bets see fresh
    data on the next run.
    """

    def __init__(
        self,
        resolver: Resolver,
        cache: Optional[TTLCache[MatchFacts]] = None,
        classifier: Optional[MarketClassifier] = None,
    ) -> None:
        self.resolver = resolver
        self.cache = cache
        self.classifier = classifier or DEFAULT_CLASSIFIER

    def _fetch(self, match_id: str) -> MatchFacts:
        raw = self.resolver(match_id)
        if raw is None:
            raise LookupError(f"Match data not found for match {match_id}")
        return _facts(raw)

    def load_facts(self, match_id: str) -> MatchFacts:
        if self.cache is None:
            return self._fetch(match_id)
        if self.cache.has(match_id):
            logger.debug("Match facts cache hit for %s", match_id)
        return self.cache.get_or_load(
            match_id, lambda: self._fetch(match_id), should_cache=lambda facts: facts.is_finished,
        )

    def settle_bets(self, bets: Iterable[Bet]) -> Dict[str, Outcome]:
        groups: Dict[Optional[str], List[tuple[str, Bet]]] = {}
        for index, bet in enumerate(bets):
            key = bet.bet_id if bet.bet_id is not None else f"#{index}"
            groups.setdefault(bet.match_id, []).append((key, bet))

        results: Dict[str, Outcome] = {}
        for match_id, members in groups.items():
            if match_id is None:
                for key, bet in members:
                    results[key] = _error(bet, "Bet has no match id")
                continue
            try:
                facts = self.load_facts(match_id)
            except Exception as exc:
                logger.warning("Could not resolve match %s: %s", match_id, exc)
                for key, bet in members:
                    results[key] = _error(bet, f"Could not resolve match {match_id}: {exc}")
                continue
            for key, bet in members:
                results[key] = settle(bet, facts, self.classifier)
        return results
