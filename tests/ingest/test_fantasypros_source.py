import json
from typing import Any

import httpx
import pytest
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_none

from fantasy_football_tiers.domain.ranked_entity import Position, ScoringFormat
from fantasy_football_tiers.domain.result import Err, Ok
from fantasy_football_tiers.domain.settings import UpstreamSettings
from fantasy_football_tiers.ingest.fantasypros_source import (
    FantasyProsClient,
    estimate_projected_points,
    map_consensus_rows,
)
from fantasy_football_tiers.ingest.protocols import UpstreamClient

_NO_WAIT_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_none(),
    retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
    reraise=True,
)

_SETTINGS = UpstreamSettings(base_url="https://fp.test/nfl", api_key="secret-key", season=2026)


def _row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "player_id": 19798,
        "player_name": "Bijan Robinson",
        "player_team_id": "ATL",
        "player_position_id": "RB",
        "rank_ecr": 1,
        "rank_std": "0.8",
        "rank_min": "1",
        "rank_max": "3",
        "pos_rank": "RB1",
        "tier": 1,
    }
    row.update(overrides)
    return row


def _json_response(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})


class FakeTransport(httpx.BaseTransport):
    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.requests: list[httpx.Request] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._response


class FailNTransport(httpx.BaseTransport):
    """Returns error responses for the first N requests, then succeeds."""

    def __init__(self, fail_count: int, success_response: httpx.Response) -> None:
        self._fail_count = fail_count
        self._success_response = success_response
        self.call_count = 0

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.call_count += 1
        if self.call_count <= self._fail_count:
            return httpx.Response(503, content=b"Service Unavailable")
        return self._success_response


class RaisingTransport(httpx.BaseTransport):
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        raise self._exc


def _client(
    transport: httpx.BaseTransport, settings: UpstreamSettings = _SETTINGS, **kwargs: Any
) -> FantasyProsClient:
    return FantasyProsClient(settings, client=httpx.Client(transport=transport), **kwargs)


class TestFantasyProsClient:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(_client(FakeTransport(_json_response({"players": []}))), UpstreamClient)

    def test_source_detail(self) -> None:
        client = _client(FakeTransport(_json_response({"players": []})))
        assert client.source_detail == "https://fp.test/nfl/2026/consensus-rankings"

    def test_request_shape(self) -> None:
        transport = FakeTransport(_json_response({"players": [_row()]}))
        _client(transport).fetch(Position.RB, ScoringFormat.HALF_PPR)

        (request,) = transport.requests
        assert request.url.path == "/nfl/2026/consensus-rankings"
        assert request.url.params["scoring"] == "HALF"
        assert request.url.params["position"] == "RB"
        assert request.headers["x-api-key"] == "secret-key"

    def test_success_maps_players(self) -> None:
        rows = [_row(), _row(player_id=2, player_name="B", rank_ecr=2)]
        transport = FakeTransport(_json_response({"players": rows}))
        result = _client(transport).fetch(Position.RB, ScoringFormat.PPR)

        assert isinstance(result, Ok)
        first, second = result.value
        assert first.id == "19798"
        assert first.name == "Bijan Robinson"
        assert first.team == "ATL"
        assert first.average_rank == 1.0
        assert first.standard_deviation == 0.8
        assert first.position_rank == 1
        assert first.tier == 1
        assert second.average_rank == 2.0

    def test_empty_players_is_ok(self) -> None:
        result = _client(FakeTransport(_json_response({"players": []}))).fetch(Position.K, ScoringFormat.PPR)
        assert result == Ok([])

    def test_missing_api_key_makes_no_request(self) -> None:
        transport = FakeTransport(_json_response({"players": []}))
        result = _client(transport, UpstreamSettings(api_key="")).fetch(Position.RB, ScoringFormat.PPR)

        assert isinstance(result, Err)
        assert "API key" in result.error.message
        assert transport.requests == []

    @pytest.mark.parametrize(
        ("status", "message"),
        [
            (401, "Invalid FantasyPros API key"),
            (429, "FantasyPros rate limit exceeded"),
            (500, "FantasyPros responded 500"),
        ],
    )
    def test_status_errors(self, status: int, message: str) -> None:
        result = _client(FakeTransport(httpx.Response(status))).fetch(Position.QB, ScoringFormat.STANDARD)

        assert isinstance(result, Err)
        assert result.error.message == message
        assert result.error.status_code == status
        assert result.error.group == "QB"
        assert result.error.format == "STANDARD"

    def test_timeout(self) -> None:
        result = _client(RaisingTransport(httpx.ReadTimeout("slow"))).fetch(Position.QB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert result.error.message.startswith("Request timed out")
        assert result.error.status_code is None

    def test_network_error(self) -> None:
        result = _client(RaisingTransport(httpx.ConnectError("refused"))).fetch(Position.QB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert result.error.message.startswith("Network error")

    def test_malformed_body(self) -> None:
        response = httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})
        result = _client(FakeTransport(response)).fetch(Position.QB, ScoringFormat.PPR)
        assert isinstance(result, Err)

    def test_redirect_loop_is_err(self) -> None:
        exc = httpx.TooManyRedirects("loop")
        result = _client(RaisingTransport(exc)).fetch(Position.QB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert result.error.message.startswith("Network error")

    def test_only_non_object_rows_is_err(self) -> None:
        result = _client(FakeTransport(_json_response({"players": [None]}))).fetch(Position.RB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert "player objects" in result.error.message

    def test_non_object_rows_are_skipped(self) -> None:
        transport = FakeTransport(_json_response({"players": [None, "x", _row()]}))
        result = _client(transport).fetch(Position.RB, ScoringFormat.PPR)
        assert isinstance(result, Ok)
        assert [e.name for e in result.value] == ["Bijan Robinson"]

    def test_body_without_players(self) -> None:
        result = _client(FakeTransport(_json_response({"data": []}))).fetch(Position.QB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert "players" in result.error.message

    def test_no_retry_by_default(self) -> None:
        transport = FailNTransport(1, _json_response({"players": [_row()]}))
        result = _client(transport).fetch(Position.RB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert transport.call_count == 1

    def test_retry_decorator_recovers(self) -> None:
        transport = FailNTransport(2, _json_response({"players": [_row()]}))
        result = _client(transport, retry=_NO_WAIT_RETRY).fetch(Position.RB, ScoringFormat.PPR)
        assert isinstance(result, Ok)
        assert transport.call_count == 3

    def test_retry_exhausted_is_err(self) -> None:
        transport = FailNTransport(5, _json_response({"players": []}))
        result = _client(transport, retry=_NO_WAIT_RETRY).fetch(Position.RB, ScoringFormat.PPR)
        assert isinstance(result, Err)
        assert result.error.status_code == 503
        assert transport.call_count == 3


class TestMapConsensusRows:
    def test_rank_falls_back_to_average_then_index(self) -> None:
        rows = [
            _row(rank_ecr=None, rank_ave="4.5"),
            _row(rank_ecr=None, rank_ave=None),
        ]
        first, second = map_consensus_rows(rows)
        assert first.average_rank == 4.5
        assert second.average_rank == 2.0

    def test_defaults(self) -> None:
        (entity,) = map_consensus_rows([_row(player_team_id=None, player_position_id="LB", player_id=None)])
        assert entity.team == "FA"
        assert entity.position == "FLEX"
        assert entity.id == "fp-0"

    def test_position_aliases(self) -> None:
        (entity,) = map_consensus_rows([_row(player_position_id="DEF")])
        assert entity.position == "DST"

    def test_skips_rows_without_name(self) -> None:
        assert map_consensus_rows([_row(player_name="")]) == []

    def test_non_finite_numbers_are_dropped(self) -> None:
        (entity,) = map_consensus_rows([_row(tier="inf", rank_std="nan")])
        assert entity.tier is None
        assert entity.standard_deviation is None

    def test_projected_points(self) -> None:
        (entity,) = map_consensus_rows([_row(rank_ecr=10)])
        assert entity.projected_points == estimate_projected_points("RB", 10)


class TestEstimateProjectedPoints:
    def test_decays_with_rank(self) -> None:
        assert estimate_projected_points("WR", 1) > estimate_projected_points("WR", 20)

    def test_unknown_position_uses_default_base(self) -> None:
        assert estimate_projected_points("FLEX", 0) == 200.0

    def test_known_base(self) -> None:
        assert estimate_projected_points("QB", 0) == 380.0
