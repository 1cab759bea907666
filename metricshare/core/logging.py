"""Central logging configuration helpers for metricshare."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

from loguru import logger

PACKAGE_PREFIX = "metricshare."

DEFAULT_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


def _normalize_scopes(debug_scopes: Iterable[str]) -> tuple[str, ...]:
    scopes: list[str] = []
    for scope in debug_scopes:
        scope = scope.strip()
        if not scope:
            continue
        if not scope.startswith(PACKAGE_PREFIX) and scope != "metricshare":
            scope = f"{PACKAGE_PREFIX}{scope}"
        scopes.append(scope)
    return tuple(scopes)


def scoped_debug_filter(scopes: tuple[str, ...]):
    """Build a loguru filter passing DEBUG records from the given modules only."""

    def _filter(record: object) -> bool:
        if not isinstance(record, Mapping):
            return False
        if getattr(record.get("level"), "name", None) != "DEBUG":
            return False
        record_name = record.get("name") or ""
        return any(record_name.startswith(scope) for scope in scopes)

    return _filter


def configure_logging(
    level: str,
    *,
    debug_scopes: Iterable[str] = (),
    colorize: bool = False,
    log_file: Path | None = None,
) -> tuple[int, ...]:
    """Install the metricshare log handlers.

    ``debug_scopes`` names modules (``server.provider`` or the full
    ``metricshare.server.provider``) whose DEBUG records are shown even when
    ``level`` is higher. ``log_file`` adds a rotating file sink at ``level``.
    """
    logger.remove()

    handler_ids: list[int] = [
        logger.add(
            sys.stderr,
            level=level,
            format=DEFAULT_LOG_FORMAT,
            colorize=colorize,
        )
    ]

    if log_file is not None:
        handler_ids.append(
            logger.add(
                log_file,
                level=level,
                format=DEFAULT_LOG_FORMAT,
                rotation="10 MB",
                retention=5,
            )
        )

    scopes = _normalize_scopes(debug_scopes)
    if scopes and level.upper() != "DEBUG":
        handler_ids.append(
            logger.add(
                sys.stderr,
                level="DEBUG",
                format=DEFAULT_LOG_FORMAT,
                colorize=colorize,
                filter=scoped_debug_filter(scopes),
            )
        )

    return tuple(handler_ids)
