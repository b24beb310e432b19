"""Directory API access - query catalog and page client."""

from .client import DirectoryClient
from .queries import group_members_url, groups_url, user_fields, users_url

__all__ = [
    "DirectoryClient",
    "users_url",
    "groups_url",
    "group_members_url",
    "user_fields",
]
