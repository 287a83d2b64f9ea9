from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import requests

from extractors import FINISHED_STATE_IDS, FINISHED_STATE_NAMES

logger = logging.getLogger(__name__)


FIXTURE_INCLUDES = "state;scores;participants;lineups.details;events;statistics;odds;inplayOdds"


class SportMonksClient:
    def __init__(self, base_url: str, api_token: str | None = None, timeout: float = 15) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token or os.getenv("SPORTMONKS_API_TOKEN")
        if not self.api_token:
            raise ValueError("Missing API token. Set SPORTMONKS_API_TOKEN or pass api_token explicitly.")
        self.timeout = timeout

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        response = requests.get(
            url,
            params=params,
            headers={"Authorization": self.api_token, "Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict) or "data" not in payload:
            raise ValueError(f"Unexpected API response shape from {url}")
        return payload

    # ── helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def is_final_status(state_id: Optional[int] = None, state_name: Optional[str] = None) -> bool:
        if state_id in FINISHED_STATE_IDS:
            return True
        return (state_name or "").strip().lower() in FINISHED_STATE_NAMES

    # ── fixtures ─────────────────────────────────────────────────────────────

    def get_fixture(self, match_id: int | str) -> Dict[str, Any]:
        """Fetch one fixture with every include the settlement engine reads."""
        payload = self._get(f"football/fixtures/{match_id}", {"include": FIXTURE_INCLUDES})
        fixture = payload.get("data")
        if not isinstance(fixture, dict) or not fixture:
            raise ValueError(f"Fixture not found for id={match_id}")
        logger.debug("Fetched fixture %s (state=%s)", match_id, (fixture.get("state") or {}).get("id"))
        return fixture

    def __call__(self, match_id: str) -> Dict[str, Any]:
        return self.get_fixture(match_id)
