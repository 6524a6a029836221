from dataclasses import dataclass


@dataclass(frozen=True)
class FtError:
    message: str


@dataclass(frozen=True)
class TransientFetchError(FtError):
    """Network, timeout or non-2xx failure from the upstream provider."""

    group: str
    format: str
    status_code: int | None = None


class FantasyTiersError(Exception):
    """Base class for raised errors."""


class StorageFullError(FantasyTiersError):
    """The cache storage medium is full or unavailable."""


class AuthorizationError(FantasyTiersError):
    """A privileged operation was attempted without a valid secret."""


class AllSourcesExhaustedError(FantasyTiersError):
    def __init__(self, group: str, format: str, reason: str) -> None:
        super().__init__(f"No data available for {group} {format}: {reason}")
        self.group = group
        self.format = format
        self.reason = reason


class InvalidRequestError(FantasyTiersError):
    """A request named an unknown group, format or action."""
