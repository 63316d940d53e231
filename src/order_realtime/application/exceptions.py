from __future__ import annotations


class AppError(Exception):
    """Base error for relay operations. ``detail`` is returned to the caller as-is."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    """Push request the relay refuses to queue (bad user id, empty content, missing title)."""
