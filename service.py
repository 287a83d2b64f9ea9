from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator, model_validator

from api_client import SportMonksClient
from cache import TTLCache
from config import build_classifier, configure_logging, get_settings
from markets import MarketClassifier
from models import Bet, MatchFacts, SelectionDetails
from settlement import SettlementProcessor, settle, settle_many

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
#  Pydantic models
# ═══════════════════════════════════════════════════════════════════════════════


class SelectionDetailsIn(BaseModel):
    label: Optional[str] = None
    name: Optional[str] = None
    total: Optional[str] = None
    handicap: Optional[str] = None
    market_description: Optional[str] = None

    @field_validator("label", "name", "total", "handicap", "market_description", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None


class BetIn(BaseModel):
    bet_id: Optional[str] = None
    match_id: Optional[Union[int, str]] = None
    odd_id: Optional[Union[int, str]] = None
    stake: Decimal = Field(gt=0)
    odds: Decimal = Field(gt=1)
    market_id: Optional[int] = None
    selection: str = ""
    selection_details: SelectionDetailsIn = Field(default_factory=SelectionDetailsIn)
    is_live: bool = False

    @field_validator("selection")
    @classmethod
    def strip_selection(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def require_market_or_odd(self) -> "BetIn":
        if self.market_id is None and self.odd_id is None:
            raise ValueError("Provide market_id or odd_id so the market can be resolved")
        return self

    def to_bet(self) -> Bet:
        details = self.selection_details
        return Bet(
            stake=self.stake,
            odds=self.odds,
            market_id=self.market_id,
            selection=self.selection,
            selection_details=SelectionDetails(
                label=details.label,
                name=details.name,
                total=details.total,
                handicap=details.handicap,
                market_description=details.market_description,
            ),
            is_live=self.is_live,
            bet_id=self.bet_id,
            match_id=None if self.match_id is None else str(self.match_id),
            odd_id=None if self.odd_id is None else str(self.odd_id),
        )


class SettleRequest(BaseModel):
    bet: BetIn
    match: Dict[str, Any]


class BatchSettleRequest(BaseModel):
    bets: List[BetIn] = Field(min_length=1)
    matches: Dict[str, Optional[Dict[str, Any]]]

    @model_validator(mode="after")
    def require_match_ids(self) -> "BatchSettleRequest":
        missing = [b.bet_id or str(i) for i, b in enumerate(self.bets) if b.match_id is None]
        if missing:
            raise ValueError(f"Bets without match_id: {', '.join(missing)}")
        return self


class FixtureSettleRequest(BaseModel):
    bets: List[BetIn] = Field(min_length=1)
    api_token: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
#  Collaborators
# ═══════════════════════════════════════════════════════════════════════════════

_classifier: MarketClassifier | None = None
_facts_cache: TTLCache[MatchFacts] | None = None


def _get_classifier() -> MarketClassifier:
    global _classifier
    if _classifier is None:
        _classifier = build_classifier(get_settings())
    return _classifier


def _get_cache() -> TTLCache[MatchFacts]:
    global _facts_cache
    if _facts_cache is None:
        settings = get_settings()
        _facts_cache = TTLCache(ttl_seconds=settings.facts_cache_ttl_seconds, maxsize=settings.facts_cache_maxsize)
    return _facts_cache


def _make_client(api_token: Optional[str]) -> SportMonksClient:
    settings = get_settings()
    try:
        return SportMonksClient(
            base_url=settings.sportmonks_base_url,
            api_token=api_token or settings.sportmonks_api_token,
            timeout=settings.request_timeout,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _to_bets(items: List[BetIn]) -> List[Bet]:
    try:
        return [item.to_bet() for item in items]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ═══════════════════════════════════════════════════════════════════════════════
#  FastAPI app
# ═══════════════════════════════════════════════════════════════════════════════

configure_logging(get_settings())

app = FastAPI(title="Bet Settlement API", version="1.0.0")


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/markets")
def markets() -> dict:
    rows = [
        {
            "market_id": market_id,
            "name": meta.name,
            "family": meta.family.value,
            "provider_authoritative": meta.provider_authoritative,
            "side": meta.side.value if meta.side is not None else None,
        }
        for market_id, meta in _get_classifier().items()
    ]
    return {"count": len(rows), "markets": rows}


@app.post("/settle")
def settle_bet(payload: SettleRequest) -> dict:
    bet = _to_bets([payload.bet])[0]
    return settle(bet, payload.match, _get_classifier()).to_dict()


@app.post("/settle/batch")
def settle_batch(payload: BatchSettleRequest) -> dict:
    bets = _to_bets(payload.bets)
    outcomes = settle_many(bets, payload.matches, _get_classifier())
    return {"results": [outcome.to_dict() for outcome in outcomes]}


@app.post("/settle/fixtures")
def settle_fixtures(payload: FixtureSettleRequest) -> dict:
    bets = _to_bets(payload.bets)
    client = _make_client(payload.api_token)
    processor = SettlementProcessor(client.get_fixture, cache=_get_cache(), classifier=_get_classifier())
    results = processor.settle_bets(bets)
    logger.info("Settled %d bet(s) across %d fixture(s)", len(results), len({b.match_id for b in bets}))
    return {"results": {bet_id: outcome.to_dict() for bet_id, outcome in results.items()}}
