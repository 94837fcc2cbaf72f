"""Interface for fetching per-account application configuration."""

import abc
from typing import Optional

from ..models.common import AppId, SessionKey
from ..models.config import ConfigDocument
from ..models.credentials import Credentials


class ConfigSource(abc.ABC):
    """Abstract Base Class for retrieving a ConfigDocument from the remote side."""

    @abc.abstractmethod
    def fetch_config(
        self, app_id: AppId, credentials: Credentials, session_key: Optional[SessionKey] = None
    ) -> ConfigDocument:
        """Performs exactly one remote call for the configuration of `app_id`.

        Raises:
            RetryableCallError: The call may succeed if repeated.
            FatalCallError: The call cannot succeed as issued.
            AuthenticationError: The remote side rejected the credentials.
        """
        pass
