"""Request/response helpers for the upload API."""
from .response_handler import ResponseHandler

__all__ = [
    'ResponseHandler',
]
