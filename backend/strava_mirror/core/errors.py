"""
Domain errors. Each carries a stable `kind` and the HTTP status it maps to;
main.py installs a handler that renders {"error": kind, "detail": message}.
"""

from __future__ import annotations


class SyncError(Exception):
    kind = "sync_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.kind.replace("_", " ").capitalize()


class Unauthenticated(SyncError):
    kind = "unauthenticated"
    status_code = 401


class NotConnected(SyncError):
    kind = "not_connected"
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "User not connected to Strava"


class RefreshFailed(SyncError):
    kind = "refresh_failed"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Could not refresh Strava access token"


class RemoteError(SyncError):
    """Non-2xx (or transport failure) from Strava. status is None for transport errors."""

    kind = "remote_error"
    status_code = 502

    def __init__(self, status: int | None, body: str = "", message: str | None = None):
        self.status = status
        self.body = body
        super().__init__(message or f"Strava request failed (status={status})")


class RemoteUpdateFailed(SyncError):
    kind = "remote_update_failed"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Failed to update activity on Strava"


class Forbidden(SyncError):
    kind = "forbidden"
    status_code = 403


class NotFound(SyncError):
    kind = "not_found"
    status_code = 404


class StorageWriteFailed(SyncError):
    kind = "storage_write_failed"
    status_code = 500

    @classmethod
    def default_message(cls) -> str:
        return "Could not store uploaded file"


class LinkError(SyncError):
    kind = "link_error"
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "Unknown or expired authorization state"


class InvalidUpload(SyncError):
    kind = "invalid_upload"
    status_code = 400
