from __future__ import annotations

__all__ = ("KayakCacheError", "InstallFailure", "EdgeRequestError", "UnsupportedMethod", "InvalidTarget")


class KayakCacheError(Exception): ...


class InstallFailure(KayakCacheError):
    """A shell asset could not be fetched while installing a version."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"Could not fetch {url} during install (status {status_code})")


class EdgeRequestError(KayakCacheError):
    status_code: int = 400


class UnsupportedMethod(EdgeRequestError):
    status_code = 405


class InvalidTarget(EdgeRequestError):
    status_code = 400
