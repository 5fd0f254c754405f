"""Task service API client."""

from .client import (
    API_PREFIX,
    ApiClient,
    TaskApiError,
    TaskNetworkError,
    TaskNotFoundError,
    TaskValidationError,
)

__all__ = [
    "API_PREFIX",
    "ApiClient",
    "TaskApiError",
    "TaskNetworkError",
    "TaskNotFoundError",
    "TaskValidationError",
]
