"""HTTP transports for the directory API and delivery endpoint."""

from .base import ApiResponse, Backend, RequestSpec
from .http_backend import HttpBackend

__all__ = [
    "ApiResponse",
    "Backend",
    "RequestSpec",
    "HttpBackend",
]
