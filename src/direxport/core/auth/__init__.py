"""Token providers and per-operation token acquisition."""

from .providers import ManagedIdentityTokenProvider, StaticTokenProvider, TokenProvider
from .source import TokenSource, is_token_operation

__all__ = [
    "TokenProvider",
    "StaticTokenProvider",
    "ManagedIdentityTokenProvider",
    "TokenSource",
    "is_token_operation",
]
