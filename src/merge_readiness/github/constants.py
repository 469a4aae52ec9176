"""Shared constants used by the merge_readiness GitHub client."""

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
ACCEPT_HEADER = "application/vnd.github+json"
RETRY_STATUSES = {408, 429, 500, 502, 503, 504}
AUTH_STATUSES = {401, 403}
MERGE_REJECTED_STATUSES = {405, 409}
MERGE_STRATEGIES = frozenset({"merge", "squash", "rebase"})
