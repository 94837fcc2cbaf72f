"""Credential value objects for one Apptivo business account.

`Credentials` holds the API/access key pair that authenticates most endpoints.
`SessionCredentials` holds the login used to obtain a session key for the
endpoints that reject key-based authentication.
"""

from dataclasses import dataclass
from typing import Dict, Optional


def _mask(secret: str) -> str:
    if not secret:
        return "''"
    return f"'{secret[:2]}***'"


@dataclass(frozen=True)
class Credentials:
    """API/access key pair plus the optional employee we act on behalf of."""
    api_key: str
    access_key: str
    acting_user_email: Optional[str] = None

    def __post_init__(self):
        if not self.api_key or not self.access_key:
            raise ValueError("Both api_key and access_key are required.")

    def __repr__(self) -> str:
        return (
            f"Credentials(api_key={_mask(self.api_key)}, access_key={_mask(self.access_key)}, "
            f"acting_user_email={self.acting_user_email!r})"
        )

    def auth_params(self) -> Dict[str, str]:
        """Query parameters that authenticate a request with this key pair."""
        params = {"apiKey": self.api_key, "accessKey": self.access_key}
        params.update(self.user_name_param())
        return params

    def user_name_param(self) -> Dict[str, str]:
        """The `userName` parameter, empty when no acting user is configured."""
        if self.acting_user_email:
            return {"userName": self.acting_user_email}
        return {}


@dataclass(frozen=True)
class SessionCredentials:
    """Login exchanged for a session key."""
    email_id: str
    password: str
    firm_id: str = ""

    def __repr__(self) -> str:
        return f"SessionCredentials(email_id={self.email_id!r}, password='***', firm_id={self.firm_id!r})"
