"""Interface for the HTTP transport the client sends requests through.

The core never depends on a particular HTTP library, only on this contract.
"""

import abc

from ..models.transport import ApiRequest, ApiResponse


class HttpTransport(abc.ABC):
    """Abstract Base Class for sending one request and returning its response."""

    @abc.abstractmethod
    def send(self, request: ApiRequest) -> ApiResponse:
        """Sends a single request. Performs no retries of its own.

        Args:
            request: The request to send.

        Returns:
            The decoded response; `ApiResponse.outcome` classifies it.

        Raises:
            httpx.TransportError: On network-level failures (treated as retryable).
        """
        pass

    def close(self) -> None:
        """Releases any pooled connections."""
        pass
