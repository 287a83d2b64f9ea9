from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List

from api_client import SportMonksClient
from cache import TTLCache
from config import build_classifier, configure_logging, get_settings
from models import Bet
from settlement import SettlementProcessor, settle_many


def load_input(path: Path) -> tuple[List[Bet], Dict[str, Any]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    bets = [Bet.from_dict(item) for item in payload.get("bets", [])]
    matches = {str(key): value for key, value in (payload.get("matches") or {}).items()}
    return bets, matches


def main() -> None:
    parser = argparse.ArgumentParser(description="Settle bets against final match data")
    parser.add_argument("--input", required=True, help="Path to JSON with 'bets' and optional 'matches'")
    parser.add_argument("--fetch", action="store_true", help="Fetch match data from the fixture API")
    parser.add_argument("--api-token", required=False, help="API token (optional if SPORTMONKS_API_TOKEN is set)")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)
    classifier = build_classifier(settings)
    bets, matches = load_input(Path(args.input))

    if args.fetch:
        client = SportMonksClient(
            base_url=settings.sportmonks_base_url,
            api_token=args.api_token or settings.sportmonks_api_token,
            timeout=settings.request_timeout,
        )
        processor = SettlementProcessor(
            client.get_fixture,
            cache=TTLCache(ttl_seconds=settings.facts_cache_ttl_seconds, maxsize=settings.facts_cache_maxsize),
            classifier=classifier,
        )
        results = processor.settle_bets(bets)
        output: Dict[str, Any] = {"results": {key: o.to_dict() for key, o in results.items()}}
    else:
        outcomes = settle_many(bets, matches, classifier)
        output = {"results": [o.to_dict() for o in outcomes]}

    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
