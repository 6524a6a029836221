import hmac
import logging

from fantasy_football_tiers.domain.errors import AuthorizationError
from fantasy_football_tiers.domain.settings import PipelineSettings

logger = logging.getLogger(__name__)


def require_pipeline_auth(authorization: str | None, settings: PipelineSettings) -> None:
    """Raise AuthorizationError unless the header carries ``Bearer <secret>``.

    With no secret configured, only a development environment is let through.
    """
    if not settings.secret:
        if settings.allows_unauthenticated:
            return
        logger.warning("Rejected privileged request: no pipeline secret configured")
        raise AuthorizationError("Pipeline secret is not configured")
    expected = f"Bearer {settings.secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Rejected privileged request with missing or invalid bearer token")
        raise AuthorizationError("Invalid or missing bearer token")
