"""Upload API errors and exceptions."""
from .api_errors import APIError, describe_status

__all__ = [
    'APIError',
    'describe_status',
]
