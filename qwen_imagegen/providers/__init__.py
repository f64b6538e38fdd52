"""Session and credential providers."""

from __future__ import annotations

from .dryrun import DryRunSessionProvider
from .playwright_session import PlaywrightSessionProvider
from .tokens import StaticTokenProvider

__all__ = [
    "DryRunSessionProvider",
    "PlaywrightSessionProvider",
    "StaticTokenProvider",
]
