import copy
from types import MappingProxyType

import pytest
from unittest.mock import MagicMock

from apptivo.core.controller import ApptivoController
from apptivo.domain.exceptions import AttributeNotFoundError, AuthenticationError, ConfigFetchError
from apptivo.domain.interfaces.transport import HttpTransport
from apptivo.domain.models.config import ConfigDocument
from apptivo.domain.models.credentials import SessionCredentials
from apptivo.infrastructure.session.session_manager import SessionState

CONTACTS_PATH = "/app/dao/v6/contacts"
LOGIN_PATH = "/app/login"


def test_config_is_fetched_once_for_many_lookups(controller, server, config_payload, record_payload):
    server.add(CONTACTS_PATH, json=config_payload)

    first = controller.get_attr_details_from_label("First Name", record_payload, "contacts")
    notes = controller.get_attr_settings_from_label("Notes", "contacts")
    value = controller.create_new_attr_obj_from_label_and_value("Lead Source", "Web", "contacts")

    assert first.value == "Ada"
    assert notes.attribute_id == "1002"
    assert value.value_id == "11"
    assert len(server.calls(CONTACTS_PATH)) == 1


def test_config_request_carries_api_keys(controller, server, config_payload):
    server.add(CONTACTS_PATH, json=config_payload)
    controller.get_config_data("contacts")

    params = server.calls(CONTACTS_PATH)[0].url.params
    assert params["a"] == "getConfigData"
    assert params["apiKey"] == "api-key-123"
    assert params["accessKey"] == "access-key-456"
    assert "sessionKey" not in params


def test_rate_limited_fetch_is_retried(controller, server, config_payload):
    # Apptivo answers a throttled call with an empty 200
    server.add(CONTACTS_PATH, status=200).add(CONTACTS_PATH, json=config_payload)

    document = controller.get_config_data("contacts")

    assert isinstance(document, ConfigDocument)
    assert len(server.calls(CONTACTS_PATH)) == 2


def test_fetch_failure_is_not_cached(controller, server, config_payload):
    server.add(CONTACTS_PATH, status=400, json={"message": "bad request"}).add(CONTACTS_PATH, json=config_payload)

    with pytest.raises(ConfigFetchError) as exc_info:
        controller.get_config_data("contacts")
    assert exc_info.value.app_id == "contacts"
    assert controller.get_all_config_data() == {}

    assert controller.get_config_data("contacts").app_id == "contacts"


def test_table_helpers(controller, server, config_payload, record_payload):
    server.add(CONTACTS_PATH, json=config_payload)

    rows = controller.get_table_section_rows_from_section_label("Line Items", record_payload, "contacts")
    assert len(rows) == 2
    assert controller.get_table_row_attr_value_from_label("Quantity", rows[1], "contacts") == "5"
    assert ApptivoController.get_table_row_col_index_from_attribute_id("20", rows[0]) == 1
    assert ApptivoController.get_table_section_rows_from_section_id("2000", record_payload)[0].row_id == "r1"
    assert ApptivoController.get_table_section_rows_from_section_id("404", record_payload) is None

    with pytest.raises(AttributeNotFoundError):
        controller.get_table_section_rows_from_section_label("Basic Information", record_payload, "contacts")


def test_address_helper(record_payload):
    assert ApptivoController.get_address_value_from_type_and_field("Billing Address", "state", record_payload) == "Illinois"


def test_set_associated_field_values(controller, config_document, object_data):
    controller.config_cache.set("contacts", config_document)
    result = controller.set_associated_field_values("country", "Mexico", object_data, "contacts")
    assert result.found
    assert object_data.address("Billing Address").get("state") is None


def test_set_associated_field_values_on_a_raw_payload(controller, config_document, record_payload):
    controller.config_cache.set("contacts", config_document)

    result = controller.set_associated_field_values("state", "Texas", record_payload, "contacts")

    assert result.found
    assert record_payload["addresses"][0]["state"] == "Texas"
    assert record_payload["addresses"][0]["city"] == "Springfield"
    assert record_payload["firstName"] == "Ada"
    assert controller.get_attr_details_from_label("Lead Source", record_payload, "contacts").value == "Web"


def test_set_associated_field_values_leaves_payload_alone_on_failure(controller, config_document, record_payload):
    controller.config_cache.set("contacts", config_document)
    before = copy.deepcopy(record_payload)

    result = controller.set_associated_field_values("statusName", "Archived", record_payload, "contacts")

    assert not result.found
    assert record_payload == before


def test_set_associated_field_values_rejects_read_only_payload(controller, config_document, record_payload):
    controller.config_cache.set("contacts", config_document)
    with pytest.raises(TypeError):
        controller.set_associated_field_values("state", "Texas", MappingProxyType(record_payload), "contacts")


def test_preloaded_config_skips_fetch(controller, server, config_document):
    controller.replace_config_data({"contacts": config_document})
    assert controller.get_config_data("contacts") is config_document
    assert server.requests == []


def test_session_key_is_sent_with_config_fetch(credentials, transport, server, config_payload):
    server.add(LOGIN_PATH, json={"sessionKey": "sk-1"}).add(CONTACTS_PATH, json=config_payload)
    controller = ApptivoController(
        credentials,
        transport=transport,
        session_credentials=SessionCredentials(email_id="me@example.com", password="pw", firm_id="42"),
        sleep_seconds=0,
    )

    controller.get_config_data("contacts")

    assert len(server.calls(LOGIN_PATH)) == 1
    assert server.calls(CONTACTS_PATH)[0].url.params["sessionKey"] == "sk-1"
    assert controller.session.state is SessionState.AUTHENTICATED


def test_set_session_credentials_authenticates(controller, server):
    server.add(LOGIN_PATH, json={"sessionKey": "sk-2"})

    key = controller.set_session_credentials("me@example.com", "pw")

    assert key == "sk-2"
    assert b"emailId=me%40example.com" in server.calls(LOGIN_PATH)[0].content


def test_rejected_session_is_marked_expired(controller, server, config_payload):
    server.add(LOGIN_PATH, json={"sessionKey": "sk-old"}).add(CONTACTS_PATH, status=401)
    controller.set_session_credentials("me@example.com", "pw")

    with pytest.raises(ConfigFetchError) as exc_info:
        controller.get_config_data("contacts")

    assert isinstance(exc_info.value.cause, AuthenticationError)
    assert controller.session.state is SessionState.EXPIRED
    assert controller.session.session_key is None


def test_retry_settings(controller):
    controller.api_retries = 3
    controller.api_sleep_time = 0.5
    assert controller.invoker.max_retries == 3
    assert controller.invoker.sleep_seconds == 0.5
    with pytest.raises(ValueError):
        controller.api_retries = -1
    with pytest.raises(ValueError):
        controller.api_sleep_time = -0.1


def test_context_manager_closes_transport(credentials):
    transport = MagicMock(spec=HttpTransport)
    with ApptivoController(credentials, transport=transport) as controller:
        assert controller.transport is transport
    transport.close.assert_called_once()
