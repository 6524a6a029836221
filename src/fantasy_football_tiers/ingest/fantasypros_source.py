import logging
import math
import re
from typing import Any

import httpx

from fantasy_football_tiers.domain.errors import TransientFetchError
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.domain.result import Err, Ok, Result
from fantasy_football_tiers.domain.settings import UpstreamSettings
from fantasy_football_tiers.ingest._retry import RetryDecorator

logger = logging.getLogger(__name__)

# Season-long projected points for the top player at each position, decayed by rank.
_BASE_POINTS: dict[str, float] = {
    "QB": 380,
    "RB": 300,
    "WR": 260,
    "TE": 180,
    "K": 130,
    "DST": 135,
    "OVERALL": 260,
}
_DEFAULT_BASE_POINTS = 200.0
_POINTS_DECAY = 0.03

_POS_RANK_RE = re.compile(r"(\d+)$")


def _number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number or None


def estimate_projected_points(position: str, rank: float) -> float:
    base = _BASE_POINTS.get(position.upper(), _DEFAULT_BASE_POINTS)
    return float(round(base * math.exp(-rank * _POINTS_DECAY)))


def _map_position(raw: str) -> str:
    try:
        position = Position.parse(raw)
    except ValueError:
        return Position.FLEX.value
    return position.value


def _position_rank(raw: Any) -> int | None:
    if raw is None:
        return None
    match = _POS_RANK_RE.search(str(raw))
    return int(match.group(1)) if match else None


def map_consensus_rows(rows: list[Any]) -> list[RankedEntity]:
    """Convert consensus-rankings rows into entities, keeping provider order."""
    entities: list[RankedEntity] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning("Skipping malformed consensus row %d: %r", index, row)
            continue
        name = row.get("player_name")
        if not name:
            logger.debug("Skipping consensus row %d without a player name", index)
            continue
        position = _map_position(str(row.get("player_position_id") or ""))
        average_rank = _number(row.get("rank_ecr")) or _number(row.get("rank_ave")) or float(index + 1)
        tier = _number(row.get("tier"))
        entities.append(
            RankedEntity(
                id=str(row.get("player_id") or f"fp-{index}"),
                name=str(name),
                position=position,
                team=str(row.get("player_team_id") or "FA"),
                average_rank=average_rank,
                standard_deviation=_number(row.get("rank_std")),
                projected_points=estimate_projected_points(position, average_rank),
                tier=int(tier) if tier is not None else None,
                position_rank=_position_rank(row.get("pos_rank")),
                min_rank=_number(row.get("rank_min")),
                max_rank=_number(row.get("rank_max")),
            )
        )
    return entities


class FantasyProsClient:
    """Consensus rankings from the FantasyPros public API.

    Every failure comes back as ``Err(TransientFetchError)``. The client never
    caches and only retries when a retry decorator is supplied.
    """

    def __init__(
        self,
        settings: UpstreamSettings,
        client: httpx.Client | None = None,
        retry: RetryDecorator | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.Client(timeout=httpx.Timeout(settings.timeout_seconds, connect=5.0))
        self._get = retry(self._get_once) if retry is not None else self._get_once

    @property
    def source_detail(self) -> str:
        return f"{self._settings.base_url}/{self._settings.season}/consensus-rankings"

    def _get_once(self, params: dict[str, str]) -> httpx.Response:
        response = self._client.get(
            self.source_detail,
            params=params,
            headers={"x-api-key": self._settings.api_key, "Accept": "application/json"},
        )
        response.raise_for_status()
        return response

    def fetch(self, group: Position, fmt: ScoringFormat) -> Result[list[RankedEntity], TransientFetchError]:
        if not self._settings.api_key:
            return Err(TransientFetchError("FantasyPros API key not configured", group.value, fmt.value))

        params = {"scoring": fmt.api_param, "position": group.value}
        logger.debug("GET %s params=%s", self.source_detail, params)
        try:
            response = self._get(params)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                message = "Invalid FantasyPros API key"
            elif status == 429:
                message = "FantasyPros rate limit exceeded"
            else:
                message = f"FantasyPros responded {status}"
            logger.warning("%s for %s %s", message, group, fmt)
            return Err(TransientFetchError(message, group.value, fmt.value, status_code=status))
        except httpx.TimeoutException as e:
            logger.warning("FantasyPros request timed out for %s %s: %s", group, fmt, e)
            return Err(TransientFetchError(f"Request timed out: {e}", group.value, fmt.value))
        except httpx.RequestError as e:
            logger.warning("FantasyPros request failed for %s %s: %s", group, fmt, e)
            return Err(TransientFetchError(f"Network error: {e}", group.value, fmt.value))

        try:
            payload = response.json()
        except ValueError as e:
            return Err(TransientFetchError(f"Malformed response body: {e}", group.value, fmt.value))
        rows = payload.get("players") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            return Err(TransientFetchError("Response has no 'players' list", group.value, fmt.value))
        if rows and not any(isinstance(row, dict) for row in rows):
            return Err(TransientFetchError("Response has no player objects", group.value, fmt.value))

        try:
            entities = map_consensus_rows(rows)
        except (TypeError, ValueError) as e:
            logger.warning("Malformed FantasyPros rows for %s %s: %s", group, fmt, e)
            return Err(TransientFetchError(f"Malformed response rows: {e}", group.value, fmt.value))
        logger.info("Fetched %d %s players (%s) from FantasyPros", len(entities), group, fmt.display_name)
        return Ok(entities)
