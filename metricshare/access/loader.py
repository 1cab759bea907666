"""Load access configuration from settings and token files."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from metricshare.core.config import MetricShareSettings

from .records import parse_token_records
from .tokens import AccessTokenManager, ScopedAccessToken, SharedSecret


def load_access_tokens(path: Path) -> list[ScopedAccessToken]:
    """Read scoped access tokens from a JSON file."""
    records = parse_token_records(path.read_bytes())
    tokens = [ScopedAccessToken.from_record(record) for record in records]
    logger.info(f"Loaded {len(tokens)} access tokens from {path}")
    return tokens


def access_manager_from_settings(settings: MetricShareSettings) -> AccessTokenManager:
    """Collect the shared secret and token file named in the settings."""
    manager = AccessTokenManager()
    if settings.shared_secret:
        manager.add(SharedSecret(settings.shared_secret))
    if settings.access_token_file is not None:
        for token in load_access_tokens(settings.access_token_file):
            manager.add(token)
    if not len(manager):
        logger.warning("No credentials configured; every request will be denied")
    return manager
