from __future__ import annotations

PACKAGE_VERSION = "0.4.0"

DISCORD_API_BASE_URL = "https://discord.com/api/v10"

# Total attempts per request, including the first; only 429s are retried.
MAX_RATE_LIMIT_ATTEMPTS = 10

# Used when a 429 carries no parseable retry hint.
DEFAULT_RETRY_AFTER_SECONDS = 1.0

DEFAULT_TIMEOUT_SECONDS = 30.0

AUDIT_LOG_REASON_HEADER = "X-Audit-Log-Reason"
RATE_LIMIT_GLOBAL_HEADER = "X-RateLimit-Global"
RATE_LIMIT_RESET_AFTER_HEADER = "X-RateLimit-Reset-After"

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

# Method sentinel for the generic API resource: skip the remote call.
SKIP_METHOD = "SKIP"
