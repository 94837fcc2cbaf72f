"""Client for the Apptivo endpoints the core needs: config data and login.

Each method performs exactly one remote call and raises a typed error for
anything but success, leaving retries to ResilientInvoker.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from apptivo.domain.exceptions import AuthenticationError, FatalCallError, RetryableCallError
from apptivo.domain.interfaces.config_source import ConfigSource
from apptivo.domain.interfaces.transport import HttpTransport
from apptivo.domain.models.common import AppId, SessionKey
from apptivo.domain.models.config import ConfigDocument
from apptivo.domain.models.credentials import Credentials, SessionCredentials
from apptivo.domain.models.transport import ApiRequest, CallOutcome

logger = logging.getLogger(__name__)

DAO_PATH = "/app/dao/v6"
CUSTOM_APP_PATH = f"{DAO_PATH}/customapp"
LOGIN_PATH = "/app/login"


def app_route(app_id: str) -> Tuple[str, Dict[str, str]]:
    """Path and extra params for an app name ('contacts') or numeric custom app id."""
    if str(app_id).isdigit():
        return CUSTOM_APP_PATH, {"objectId": str(app_id)}
    return f"{DAO_PATH}/{app_id}", {}


class ApptivoApiClient(ConfigSource):
    """Thin adapter from ApiRequest/ApiResponse to domain objects."""

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    def call(self, request: ApiRequest) -> Any:
        """Sends one request and returns the decoded body of a successful response.

        Raises:
            RetryableCallError: Rate limited, server error or empty body.
            AuthenticationError: HTTP 401/403.
            FatalCallError: Any other failure.
        """
        response = self.transport.send(request)
        outcome = response.outcome
        if outcome is CallOutcome.SUCCESS:
            return response.body
        if outcome is CallOutcome.RETRYABLE:
            raise RetryableCallError(
                f"{request.name} returned HTTP {response.status_code} with a retryable outcome",
                status_code=response.status_code,
            )
        if response.is_auth_failure:
            raise AuthenticationError(
                f"{request.name} was rejected with HTTP {response.status_code}", status_code=response.status_code,
            )
        raise FatalCallError(
            f"{request.name} failed with HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    def fetch_config(
        self, app_id: AppId, credentials: Credentials, session_key: Optional[SessionKey] = None
    ) -> ConfigDocument:
        path, params = app_route(app_id)
        params.update(a="getConfigData")
        params.update(credentials.auth_params())
        if session_key:
            params["sessionKey"] = session_key
        body = self.call(ApiRequest("GET", path, params=params, endpoint=f"getConfigData[{app_id}]"))
        try:
            document = ConfigDocument.from_payload(app_id, body)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise FatalCallError(f"Malformed config data for '{app_id}': {e}") from e
        logger.debug(f"Fetched config for '{app_id}': {document!r}")
        return document

    def authenticate(self, credentials: SessionCredentials) -> SessionKey:
        """Exchanges a login for a session key."""
        data = {"emailId": credentials.email_id, "password": credentials.password}
        if credentials.firm_id:
            data["firmId"] = credentials.firm_id
        body = self.call(ApiRequest("POST", LOGIN_PATH, data=data, endpoint="login"))
        key = body.get("sessionKey") if isinstance(body, Mapping) else None
        if not key:
            raise AuthenticationError("Login response did not contain a session key.")
        return SessionKey(str(key))
