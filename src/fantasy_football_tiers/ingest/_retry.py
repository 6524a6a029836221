import logging
from collections.abc import Callable
from typing import Any, TypeAlias

import httpx
from tenacity import RetryCallState, retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

logger = logging.getLogger(__name__)

RetryDecorator: TypeAlias = Callable[[Callable[..., Any]], Callable[..., Any]]


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    # 401 will not fix itself; 429 and 5xx might
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def default_http_retry(label: str, attempts: int = 3) -> RetryDecorator:
    """Return a tenacity retry decorator configured for upstream HTTP calls.

    *label* is interpolated into the warning message emitted before each
    retry attempt, e.g. ``"Retrying <label> (attempt 2): <error>"``.
    """

    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning("Retrying %s (attempt %d): %s", label, retry_state.attempt_number, retry_state.outcome)

    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=1, max=10),
        retry=retry_if_exception(_is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )
