import copy
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from typer.testing import CliRunner

from apptivo.core.controller import ApptivoController
from apptivo.domain.models.config import ConfigDocument
from apptivo.domain.models.credentials import Credentials
from apptivo.domain.models.record import ObjectData
from apptivo.infrastructure.config import settings
from apptivo.infrastructure.http.transport import HttpxTransport

TEST_BASE_URL = "https://api.apptivo.test"

# Shape of a getConfigData response, trimmed to what the resolvers read
CONFIG_PAYLOAD: Dict[str, Any] = {
    "webLayout": {
        "sections": [
            {
                "id": "sec_basic",
                "label": "Basic Information",
                "attributes": [
                    {"attributeId": "firstName_attr", "label": {"modifiedLabel": "First Name"},
                     "attributeType": "input", "tagName": "firstName", "type": "Standard"},
                    {"attributeId": "1001", "label": "Lead Source", "attributeType": "select", "type": "Custom",
                     "optionValueList": [{"optionId": "11", "optionObject": "Web"},
                                         {"optionId": "12", "optionObject": "Referral"}]},
                    {"attributeId": "status_attr", "label": "Status", "attributeType": "select",
                     "tagName": "statusName", "type": "Standard",
                     "optionValueList": [{"optionId": "S1", "optionObject": "Open"},
                                         {"optionId": "S2", "optionObject": "Closed"}]},
                ],
            },
            {
                "id": "sec_extra",
                "label": "Additional Information",
                "attributes": [
                    {"attributeId": "1002", "label": "Notes", "attributeType": "textarea", "type": "Custom"},
                    # Same label as a field above: lookups without a section return the first one
                    {"attributeId": "1003", "label": "Lead Source", "attributeType": "input", "type": "Custom"},
                ],
            },
            {
                "id": "sec_items",
                "label": "Line Items",
                "sectionType": "table",
                "attributeId": "2000",
                "attributes": [
                    {"attributeId": "10", "label": "Product", "attributeType": "input"},
                    {"attributeId": "20", "label": "Quantity", "attributeType": "number"},
                ],
            },
        ]
    },
    "defaultCountry": {"countryName": "United States", "countryId": 176, "countryCode": "US"},
}

RECORD_PAYLOAD: Dict[str, Any] = {
    "id": "555",
    "firstName": "Ada",
    "statusName": "Open",
    "statusId": "S1",
    "customAttributes": [
        {"customAttributeId": "1001", "customAttributeValue": "Web", "customAttributeType": "select",
         "customAttributeValueId": "11"},
        {"customAttributeId": "2000", "customAttributeType": "table", "rows": [
            {"id": "r1", "customAttributes": [
                {"customAttributeId": "10", "customAttributeValue": "Widget"},
                {"customAttributeId": "20", "customAttributeValue": "3"},
            ]},
            {"id": "r2", "customAttributes": [
                {"customAttributeId": "20", "customAttributeValue": "5"},
            ]},
        ]},
    ],
    "addresses": [
        {"addressType": "Billing Address", "addressLine1": "1 Main St", "city": "Springfield",
         "state": "Illinois", "country": "United States", "countryId": "176", "countryCode": "US"},
    ],
}


class FakeApptivoServer:
    """httpx.MockTransport handler serving canned responses per URL path.

    Responses queued for a path are served in order; the last one repeats.
    Every request is recorded.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, List[Tuple[int, Any, Optional[Exception]]]] = {}

    def add(self, path: str, status: int = 200, json: Any = None, error: Optional[Exception] = None) -> "FakeApptivoServer":
        self.routes.setdefault(path, []).append((status, json, error))
        return self

    def calls(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, text=f"No route for {request.url.path}")
        status, body, error = queue.pop(0) if len(queue) > 1 else queue[0]
        if error is not None:
            raise error
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


@pytest.fixture
def config_payload() -> Dict[str, Any]:
    return copy.deepcopy(CONFIG_PAYLOAD)


@pytest.fixture
def config_document(config_payload) -> ConfigDocument:
    return ConfigDocument.from_payload("contacts", config_payload)


@pytest.fixture
def record_payload() -> Dict[str, Any]:
    return copy.deepcopy(RECORD_PAYLOAD)


@pytest.fixture
def object_data(record_payload) -> ObjectData:
    return ObjectData.from_payload(record_payload)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(api_key="api-key-123", access_key="access-key-456")


@pytest.fixture
def server() -> FakeApptivoServer:
    return FakeApptivoServer()


@pytest.fixture
def transport(server):
    client = httpx.Client(base_url=TEST_BASE_URL, transport=httpx.MockTransport(server))
    http_transport = HttpxTransport(client=client)
    yield http_transport
    http_transport.close()


@pytest.fixture
def controller(credentials, transport) -> ApptivoController:
    """Controller over the fake server, without pre-call sleeps."""
    return ApptivoController(credentials, transport=transport, max_retries=1, sleep_seconds=0)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keeps loaded and overridden configuration from leaking between tests."""
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    yield
    settings.clear_test_config()
