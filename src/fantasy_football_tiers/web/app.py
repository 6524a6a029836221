import logging
from typing import Any

from flask import Flask, Response, jsonify, request

from fantasy_football_tiers.domain.cache_entry import CacheStats
from fantasy_football_tiers.domain.dataset import DatasetAction, DatasetStats
from fantasy_football_tiers.domain.errors import AuthorizationError, InvalidRequestError
from fantasy_football_tiers.domain.pipeline import PipelineRequest
from fantasy_football_tiers.domain.ranked_entity import Position, RankedEntity, ScoringFormat
from fantasy_football_tiers.services.container import ServiceContainer
from fantasy_football_tiers.web.auth import require_pipeline_auth
from fantasy_football_tiers.web.rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes"}
_FALSE_VALUES = {"0", "false", "no"}
_DEFAULT_PURGE_DAYS = 7


def _parse_group(raw: str | None) -> Position:
    if not raw:
        raise InvalidRequestError("'group' is required")
    try:
        return Position.parse(raw)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from None


def _parse_format(raw: str | None) -> ScoringFormat:
    if not raw:
        return ScoringFormat.PPR
    try:
        return ScoringFormat.parse(raw)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from None


def _parse_flag(raw: str | None, *, bare: bool = False) -> bool:
    """Query flag value; ``bare`` is what a valueless flag such as ``?clearCache`` means."""
    if raw is None:
        return False
    if raw == "":
        return bare
    return raw.strip().lower() in _TRUE_VALUES


def _body_flag(body: dict[str, Any], name: str, default: bool) -> bool:
    value = body.get(name, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise InvalidRequestError(f"'{name}' must be a boolean")


def _parse_entities(raw: object) -> list[RankedEntity]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidRequestError("'entities' must be a list")
    try:
        return [RankedEntity.from_dict(item) for item in raw]
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidRequestError(f"Invalid entity: {e}") from None


def _parse_pipeline_request(body: dict[str, Any], defaults: PipelineRequest) -> PipelineRequest:
    try:
        groups = tuple(Position.parse(g) for g in body["groups"]) if body.get("groups") else defaults.groups
        formats = tuple(ScoringFormat.parse(f) for f in body["formats"]) if body.get("formats") else defaults.formats
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidRequestError(str(e)) from None
    unfetchable = [g for g in groups if not g.fetchable]
    if unfetchable:
        raise InvalidRequestError(f"Cannot fetch aggregate groups: {', '.join(unfetchable)}")
    return PipelineRequest(
        groups=groups,
        formats=formats,
        force_refresh=_body_flag(body, "forceRefresh", False),
        update_cache=_body_flag(body, "updateCache", True),
        update_database=_body_flag(body, "updateDatabase", True),
    )


def _cache_stats_dict(stats: CacheStats) -> dict[str, Any]:
    return {
        "totalEntries": stats.total_entries,
        "totalBytes": stats.total_bytes,
        "oldest": stats.oldest,
        "newest": stats.newest,
    }


def _dataset_stats_dict(stats: DatasetStats) -> dict[str, Any]:
    return {
        "totalDatasets": stats.total_datasets,
        "activeDatasets": stats.active_datasets,
        "totalPlayers": stats.total_players,
        "oldest": stats.oldest,
        "newest": stats.newest,
    }


def _players_block(players: list[RankedEntity] | None) -> dict[str, Any]:
    players = players or []
    return {"players": [p.to_dict() for p in players], "count": len(players)}


def create_app(
    container: ServiceContainer,
    *,
    rate_limiter: FixedWindowRateLimiter | None = None,
) -> Flask:
    """Create the Flask app serving rankings, manual edits and the privileged pipeline.

    GET /data and GET /data/tiers read through the accessor. POST /data applies
    a set/append/clear edit. POST, DELETE and GET /pipeline run, purge and
    describe the fetch pipeline; the first two need the bearer secret.
    """
    app = Flask(__name__)
    server = container.server_settings
    limiter = rate_limiter or FixedWindowRateLimiter(server.rate_limit_requests, server.rate_limit_window_seconds)

    @app.errorhandler(InvalidRequestError)
    def invalid_request(error: InvalidRequestError) -> tuple[Response, int]:
        return jsonify({"success": False, "error": str(error)}), 400

    @app.errorhandler(AuthorizationError)
    def unauthorized(error: AuthorizationError) -> tuple[Response, int]:
        return jsonify({"success": False, "error": "Unauthorized"}), 401

    @app.route("/data", methods=["GET"])
    def get_data() -> tuple[Response, int]:
        group = _parse_group(request.args.get("group"))
        fmt = _parse_format(request.args.get("format"))

        if _parse_flag(request.args.get("compare")):
            entry = container.cache.get(group, fmt)
            comparison = {
                "cache": _players_block(list(entry.data) if entry is not None else None),
                "database": _players_block(container.repo.get_players(group.value, fmt.value)),
                "sample": _players_block(container.sample.get(group)),
            }
            return jsonify({"success": True, "group": group.value, "format": fmt.value, "comparison": comparison}), 200

        result = container.accessor.get(group, fmt)
        body = result.to_dict()
        return jsonify(body), 200 if body["success"] else 503

    @app.route("/data/tiers", methods=["GET"])
    def get_tiers() -> tuple[Response, int]:
        group = _parse_group(request.args.get("group"))
        fmt = _parse_format(request.args.get("format"))
        try:
            max_tiers = int(request.args.get("tiers", server.default_tier_count))
            result, tiers = container.accessor.tiers(group, fmt, max_tiers)
        except ValueError as e:
            raise InvalidRequestError(str(e)) from None
        return jsonify(
            {
                "success": True,
                "group": group.value,
                "format": fmt.value,
                "provenance": result.provenance.value,
                "cacheStatus": result.cache_status.value,
                "count": len(result.entities),
                "tiers": [t.to_dict() for t in tiers],
            }
        ), 200

    @app.route("/data", methods=["POST"])
    def post_data() -> tuple[Response, int]:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        group = _parse_group(body.get("group"))
        fmt = _parse_format(body.get("format"))
        try:
            action = DatasetAction(str(body.get("action", DatasetAction.SET)).lower())
        except ValueError:
            raise InvalidRequestError(f"Unknown action: {body.get('action')!r}") from None
        entities = _parse_entities(body.get("entities"))
        count = container.writer.apply(group, fmt, action, entities)
        return jsonify(
            {"success": True, "group": group.value, "format": fmt.value, "action": action.value, "count": count}
        ), 200

    @app.route("/pipeline", methods=["POST"])
    def run_pipeline() -> tuple[Response, int]:
        decision = limiter.check(request.remote_addr or "unknown")
        if not decision.allowed:
            response = jsonify({"success": False, "error": "Too many requests"})
            response.headers["Retry-After"] = str(decision.retry_after)
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = "0"
            return response, 429

        require_pipeline_auth(request.headers.get("Authorization"), container.pipeline_settings)

        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        settings = container.pipeline_settings
        defaults = PipelineRequest(groups=settings.default_groups, formats=settings.default_formats)
        pipeline_request = _parse_pipeline_request(body, defaults)

        report = container.orchestrator.run(pipeline_request)
        return jsonify(report.to_dict()), 200 if report.success else 500

    @app.route("/pipeline", methods=["DELETE"])
    def purge_pipeline() -> tuple[Response, int]:
        require_pipeline_auth(request.headers.get("Authorization"), container.pipeline_settings)
        try:
            days = float(request.args.get("days", _DEFAULT_PURGE_DAYS))
        except ValueError:
            raise InvalidRequestError("'days' must be a number") from None
        if days < 0:
            raise InvalidRequestError("'days' must not be negative")

        cache_removed = 0
        if _parse_flag(request.args.get("clearCache"), bare=True):
            cache_removed = container.cache.purge_older_than(days)
        datasets_removed = container.repo.cleanup_old_data(days)
        logger.info("Purge older than %s days: %d cache entries, %d datasets", days, cache_removed, datasets_removed)
        return jsonify(
            {
                "success": True,
                "days": days,
                "cacheEntriesRemoved": cache_removed,
                "datasetsRemoved": datasets_removed,
            }
        ), 200

    @app.route("/pipeline", methods=["GET"])
    def pipeline_status() -> tuple[Response, int]:
        cache_settings = container.cache_settings
        pipeline_settings = container.pipeline_settings
        body: dict[str, Any] = {
            "success": True,
            "config": {
                "freshWindowSeconds": cache_settings.fresh_window_seconds,
                "staleWindowSeconds": cache_settings.stale_window_seconds,
                "maxAgeSeconds": cache_settings.max_age_seconds,
                "politenessDelayMs": pipeline_settings.politeness_delay_ms,
                "defaultTierCount": server.default_tier_count,
                "environment": pipeline_settings.environment,
                "authConfigured": bool(pipeline_settings.secret),
            },
            "needsRefresh": {
                f"{group}_{fmt}": needed
                for (group, fmt), needed in container.accessor.needs_background_refresh().items()
            },
        }
        if _parse_flag(request.args.get("stats"), bare=True):
            body["stats"] = {
                "cache": _cache_stats_dict(container.cache.stats()),
                "database": _dataset_stats_dict(container.repo.get_stats()),
            }
        return jsonify(body), 200

    return app
