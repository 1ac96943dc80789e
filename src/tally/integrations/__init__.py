"""Source integrations: raw API items → destination records → calendar events."""

from __future__ import annotations

from typing import Any

from .base import (
    CALENDAR_CREATED_PROPERTY,
    BaseIntegration,
    TransformedItem,
    TransformError,
    format_date_long,
    plain_value,
)
from .clients import FetchClient, FetchError, JsonFileFetchClient, StaticFetchClient
from .github import GitHubIntegration
from .oura import OuraIntegration
from .steam import SteamIntegration
from .strava import StravaIntegration
from .tasks import TaskReader
from .withings import WithingsIntegration

__all__ = [
    "INTEGRATION_CLASSES",
    "CALENDAR_CREATED_PROPERTY",
    "BaseIntegration",
    "FetchClient",
    "FetchError",
    "GitHubIntegration",
    "JsonFileFetchClient",
    "OuraIntegration",
    "StaticFetchClient",
    "SteamIntegration",
    "StravaIntegration",
    "TaskReader",
    "TransformError",
    "TransformedItem",
    "WithingsIntegration",
    "create_integration",
    "format_date_long",
    "plain_value",
]

INTEGRATION_CLASSES: dict[str, type[BaseIntegration]] = {
    "oura": OuraIntegration,
    "strava": StravaIntegration,
    "withings": WithingsIntegration,
    "github": GitHubIntegration,
    "steam": SteamIntegration,
}


def create_integration(integration_id: str, **kwargs: Any) -> BaseIntegration:
    """Factory function to create an integration by id.

    Raises
    ------
    KeyError
        If no integration is implemented for ``integration_id``
    """
    try:
        cls = INTEGRATION_CLASSES[integration_id]
    except KeyError:
        available = ", ".join(sorted(INTEGRATION_CLASSES))
        raise KeyError(f"Unknown integration '{integration_id}' (available: {available})") from None
    return cls(**kwargs)
