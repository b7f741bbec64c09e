"""Response handler for API responses."""
import json
from typing import Dict, Any

from ..errors import APIError, describe_status
from ...exceptions import MalformedResponseError


class ResponseHandler:
    """
    Handles the ``{success, data?, error?}`` envelope every endpoint returns.

    Non-2xx statuses and ``success: false`` become APIError; bodies that
    cannot be read as an envelope become MalformedResponseError.
    """

    @staticmethod
    def is_success_status(status: int) -> bool:
        """True for 2xx statuses."""
        return 200 <= status < 300

    @staticmethod
    def parse_body(response_text: str) -> Any:
        """Parses JSON response text, None if it is not JSON."""
        if not response_text or not response_text.strip():
            return None
        try:
            return json.loads(response_text)
        except ValueError:
            return None

    @staticmethod
    def extract_error(body: Any) -> str:
        """Gets the server's error message from an envelope, if any."""
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        return ''

    @staticmethod
    def process_response(status: int, response_text: str) -> Dict[str, Any]:
        """
        Validates a response and unwraps its ``data`` object.

        Args:
            status: HTTP status code
            response_text: Raw response body

        Returns:
            The envelope's ``data`` object

        Raises:
            APIError: On non-2xx status or ``success: false``
            MalformedResponseError: If the body is not a usable envelope
        """
        body = ResponseHandler.parse_body(response_text)

        if not ResponseHandler.is_success_status(status):
            message = ResponseHandler.extract_error(body) or describe_status(status)
            raise APIError(status, message)

        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Invalid response from server: expected JSON envelope, got {response_text[:100]!r}",
                error_code=status
            )

        if not body.get('success'):
            raise APIError(status, ResponseHandler.extract_error(body) or 'Invalid response from server')

        data = body.get('data')
        if not isinstance(data, dict):
            raise MalformedResponseError(
                "Invalid response from server: envelope has no data object",
                error_code=status
            )

        return data
