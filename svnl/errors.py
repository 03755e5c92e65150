"""Errors that abort processing of a single competition."""

from __future__ import annotations

from typing import Any, Optional


class ScrapeError(Exception):
    """Base class for failures that are fatal to one competition only."""

    def __init__(self, message: str, *, competition_id: Optional[str] = None, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.competition_id = competition_id
        self.context = context or {}

    def __str__(self) -> str:
        base = super().__str__()
        if self.competition_id:
            return f"{base} (competition {self.competition_id})"
        return base


class NoResultTable(ScrapeError):
    """Raised when a page contains no table with both name and club headers."""


class FetchError(ScrapeError):
    """Raised when a page cannot be downloaded."""
