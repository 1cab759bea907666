"""
Access control for exposed metrics.

Credentials share one capability interface, ``MetricAccessManager``. The
provider only ever calls ``get_allowed_metrics`` and never inspects which kind
of credential it holds.
"""

from .loader import access_manager_from_settings, load_access_tokens
from .records import (
    ScopedAccessTokenRecord,
    dump_token_records,
    parse_token_records,
)
from .tokens import (
    AccessTokenManager,
    GenericAccessToken,
    MetricAccessManager,
    ScopedAccessToken,
    SharedSecret,
    as_access_manager,
    secrets_match,
)

__all__ = [
    "AccessTokenManager",
    "GenericAccessToken",
    "MetricAccessManager",
    "ScopedAccessToken",
    "ScopedAccessTokenRecord",
    "SharedSecret",
    "access_manager_from_settings",
    "as_access_manager",
    "dump_token_records",
    "load_access_tokens",
    "parse_token_records",
    "secrets_match",
]
