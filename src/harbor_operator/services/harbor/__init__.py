"""Harbor API client."""

from .client import HarborAPIError, HarborClient, is_conflict, is_forbidden, is_not_found

__all__ = [
    "HarborAPIError",
    "HarborClient",
    "is_conflict",
    "is_forbidden",
    "is_not_found",
]
