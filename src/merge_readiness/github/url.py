from __future__ import annotations

from urllib.parse import quote


def validate_repository(repository: str) -> str:
    """Return ``owner/name`` stripped, or raise ``ValueError``."""
    normalized = repository.strip().strip("/")
    owner, sep, name = normalized.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError("repository must look like 'owner/name'")
    return normalized


def build_repository_url(api_url: str, repository: str) -> str:
    """Build the REST base URL for one repository."""
    return f"{api_url.rstrip('/')}/repos/{validate_repository(repository)}"


def branch_ref_path(branch: str) -> str:
    """Build the ``git/refs`` path for a branch, keeping ``/`` separators."""
    return f"git/refs/heads/{quote(branch, safe='/')}"
