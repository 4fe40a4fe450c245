"""Factory for creating a relay core."""

from __future__ import annotations

import logging

from .config import RelaySettings
from .core import RelayCore

logger = logging.getLogger(__name__)


def create_relay_core(settings: RelaySettings | None = None) -> RelayCore:
    """Create a relay core from explicit settings or from the environment.

    - settings given → used as-is
    - otherwise → RelaySettings.from_env() (PORT, HOST, LOG_LEVEL)

    Returns an unstarted core. Caller must await core.start().
    """
    if settings is None:
        settings = RelaySettings.from_env()

    logger.info(
        "Relay core: upstream %s, port %d, staleness window %.0fs",
        settings.stream_url,
        settings.port,
        settings.staleness_window,
    )
    return RelayCore(settings)
