"""HttpTransport implementation on top of httpx."""

import logging
from typing import Optional

import httpx

from apptivo.domain.interfaces.transport import HttpTransport
from apptivo.domain.models.transport import ApiRequest, ApiResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api2.apptivo.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpxTransport(HttpTransport):
    """Sends ApiRequests through a pooled `httpx.Client`. Performs no retries."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)
        logger.debug(f"HttpxTransport initialized for {self.client.base_url} (timeout={timeout}s)")

    def send(self, request: ApiRequest) -> ApiResponse:
        # Query strings carry keys, so only the endpoint name is logged
        logger.debug(f"Sending {request.name}")
        response = self.client.request(
            request.method,
            request.path,
            params=request.params or None,
            data=request.data,
        )
        body = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text or None
        logger.debug(f"{request.name} -> HTTP {response.status_code}")
        return ApiResponse(status_code=response.status_code, body=body, text=response.text)

    def close(self) -> None:
        self.client.close()
