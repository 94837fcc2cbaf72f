import pytest

from apptivo.domain.exceptions import AttributeNotFoundError, ConfigFetchError, RetriesExhaustedError
from apptivo.domain.models.credentials import Credentials, SessionCredentials
from apptivo.domain.models.record import AttributeValue, ObjectData, TableSectionRow
from apptivo.domain.models.transport import ApiResponse, CallOutcome, classify_response


# --- Credentials ---

def test_credentials_require_both_keys():
    with pytest.raises(ValueError):
        Credentials(api_key="", access_key="secret")


def test_credentials_repr_masks_keys():
    creds = Credentials(api_key="abcdef", access_key="uvwxyz", acting_user_email="ops@example.com")
    text = repr(creds)
    assert "abcdef" not in text
    assert "uvwxyz" not in text
    assert "ops@example.com" in text


def test_auth_params_include_acting_user():
    creds = Credentials(api_key="k", access_key="a", acting_user_email="ops@example.com")
    assert creds.auth_params() == {"apiKey": "k", "accessKey": "a", "userName": "ops@example.com"}
    assert Credentials(api_key="k", access_key="a").auth_params() == {"apiKey": "k", "accessKey": "a"}


def test_session_credentials_repr_masks_password():
    assert "hunter2" not in repr(SessionCredentials(email_id="me@example.com", password="hunter2"))


# --- Record data ---

def test_object_data_splits_table_sections(object_data: ObjectData):
    assert [attr.attribute_id for attr in object_data.custom_attributes] == ["1001"]
    rows = object_data.table_sections["2000"]
    assert [row.row_id for row in rows] == ["r1", "r2"]
    assert [cell.attribute_id for cell in rows[0].cells] == ["10", "20"]
    assert object_data.fields["firstName"] == "Ada"
    assert "customAttributes" not in object_data.fields


def test_object_data_addresses(object_data: ObjectData):
    address = object_data.address("Billing Address")
    assert address.get("city") == "Springfield"
    assert object_data.address("Shipping Address") is None


def test_put_attribute_replaces_by_id(object_data: ObjectData):
    object_data.put_attribute(AttributeValue(attribute_id="1001", value="Referral", value_id="12"))
    object_data.put_attribute(AttributeValue(attribute_id="1002", value="hello"))
    assert object_data.attribute("1001").value == "Referral"
    assert [attr.attribute_id for attr in object_data.custom_attributes] == ["1001", "1002"]


def test_to_payload_keeps_table_rows(object_data: ObjectData):
    payload = object_data.to_payload()
    table = [attr for attr in payload["customAttributes"] if attr.get("customAttributeType") == "table"]
    assert table[0]["customAttributeId"] == "2000"
    assert table[0]["rows"][1] == {"customAttributes": [{"customAttributeId": "20", "customAttributeValue": "5"}], "id": "r2"}
    assert payload["addresses"][0]["addressType"] == "Billing Address"


def test_attribute_value_payload_shape():
    value = AttributeValue(attribute_id="1001", value="Web", type_hint="select", value_id="11")
    assert value.to_payload() == {
        "customAttributeId": "1001",
        "customAttributeValue": "Web",
        "customAttributeType": "select",
        "customAttributeValueId": "11",
    }


def test_row_without_cells():
    assert TableSectionRow.from_payload({}).cells == ()


# --- Response classification ---

@pytest.mark.parametrize("status, body, expected", [
    (200, {"data": []}, CallOutcome.SUCCESS),
    (200, None, CallOutcome.RETRYABLE),
    (200, {}, CallOutcome.RETRYABLE),
    (429, {"message": "slow down"}, CallOutcome.RETRYABLE),
    (503, None, CallOutcome.RETRYABLE),
    (400, {"message": "bad"}, CallOutcome.FATAL),
    (401, None, CallOutcome.FATAL),
])
def test_classify_response(status, body, expected):
    assert classify_response(status, body) is expected


def test_auth_failure_flag():
    assert ApiResponse(status_code=403).is_auth_failure
    assert not ApiResponse(status_code=404).is_auth_failure


# --- Errors ---

def test_errors_carry_context():
    cause = ValueError("boom")
    assert ConfigFetchError("contacts", cause).context == {"app_id": "contacts"}
    exhausted = RetriesExhaustedError(attempts=2, last_cause=cause, endpoint="login")
    assert exhausted.context == {"attempts": 2, "endpoint": "login"}
    assert exhausted.last_cause is cause
    missing = AttributeNotFoundError("Line Items", "contacts", reason="is not a table section")
    assert "is not a table section" in str(missing)
