"""Discord REST transport and resource reconcilers for infrastructure-as-code hosts."""

from .config import DiscordProviderConfig
from .constants import DISCORD_API_BASE_URL, PACKAGE_VERSION
from .context import ProviderContext, build_context
from .errors import (
    DiscordConfigError,
    DiscordError,
    DiscordHTTPError,
    InvalidInputError,
    ResourceNotFoundError,
    is_discord_http_status,
)
from .ratelimit import GlobalRateLimiter, RateLimitSignal
from .rest import DiscordRestClient

__version__ = PACKAGE_VERSION

__all__ = [
    "DISCORD_API_BASE_URL",
    "DiscordConfigError",
    "DiscordError",
    "DiscordHTTPError",
    "DiscordProviderConfig",
    "DiscordRestClient",
    "GlobalRateLimiter",
    "InvalidInputError",
    "ProviderContext",
    "RateLimitSignal",
    "ResourceNotFoundError",
    "__version__",
    "build_context",
    "is_discord_http_status",
]
