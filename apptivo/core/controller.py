"""ApptivoController: the per-account context callers construct and share.

Owns the credentials, the session manager, the config cache and the retry
policy for one business account. All state lives on the instance, so two
controllers (or two tests) never share a cache or a session.
"""

import logging
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union

from apptivo.core.services.attribute_resolver import AttributeResolver
from apptivo.core.services.table_resolver import TableSectionResolver
from apptivo.domain.events.api_events import EventListener
from apptivo.domain.exceptions import AuthenticationError
from apptivo.domain.interfaces.throttle import ThrottleStrategy
from apptivo.domain.interfaces.transport import HttpTransport
from apptivo.domain.models.common import AppId, LabelPath, SessionKey
from apptivo.domain.models.config import ConfigDocument
from apptivo.domain.models.credentials import Credentials, SessionCredentials
from apptivo.domain.models.record import AttributeValue, ObjectData, TableSectionRow
from apptivo.domain.models.resolution import ResolvedAttribute
from apptivo.infrastructure.cache.config_cache import ConfigCache
from apptivo.infrastructure.http.api_client import ApptivoApiClient
from apptivo.infrastructure.http.transport import HttpxTransport
from apptivo.infrastructure.resilience.api_retry import DEFAULT_MAX_RETRIES, DEFAULT_SLEEP_SECONDS, ResilientInvoker
from apptivo.infrastructure.resilience.cancellation import CancelToken
from apptivo.infrastructure.session.session_manager import SessionManager

logger = logging.getLogger(__name__)

RecordInput = Union[ObjectData, Mapping[str, Any]]


def as_object_data(record: RecordInput) -> ObjectData:
    if isinstance(record, ObjectData):
        return record
    return ObjectData.from_payload(record)


class ApptivoController:
    """Resolves labels against cached per-account configuration."""

    def __init__(
        self,
        credentials: Credentials,
        transport: Optional[HttpTransport] = None,
        session_credentials: Optional[SessionCredentials] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep_seconds: float = DEFAULT_SLEEP_SECONDS,
        throttle: Optional[ThrottleStrategy] = None,
        event_listener: Optional[EventListener] = None,
        attribute_resolver: Optional[AttributeResolver] = None,
    ):
        """Initializes the controller.

        Args:
            credentials: API/access key pair of the business account.
            transport: HTTP transport. An HttpxTransport is created if None.
            session_credentials: Login for endpoints that need a session key.
            max_retries: Default retries per remote call.
            sleep_seconds: Default delay before every remote call attempt.
            throttle: Pre-call throttle strategy (flat sleep if None).
            event_listener: Receives domain events from every component.
            attribute_resolver: Resolver with custom association rules.
        """
        self.credentials = credentials
        self.transport = transport or HttpxTransport()
        self.api = ApptivoApiClient(self.transport)
        self.invoker = ResilientInvoker(
            max_retries=max_retries, sleep_seconds=sleep_seconds, throttle=throttle, event_listener=event_listener,
        )
        self.session = SessionManager(
            self.api.authenticate, invoker=self.invoker, credentials=session_credentials, event_listener=event_listener,
        )
        self.config_cache = ConfigCache(self._load_config, invoker=self.invoker, event_listener=event_listener)
        self.attributes = attribute_resolver or AttributeResolver()
        self.tables = TableSectionResolver(self.attributes)
        logger.debug(f"ApptivoController created for {credentials!r}")

    def __enter__(self) -> "ApptivoController":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    # --- Retry settings ---

    @property
    def api_sleep_time(self) -> float:
        return self.invoker.sleep_seconds

    @api_sleep_time.setter
    def api_sleep_time(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("api_sleep_time must not be negative")
        self.invoker.sleep_seconds = seconds

    @property
    def api_retries(self) -> int:
        return self.invoker.max_retries

    @api_retries.setter
    def api_retries(self, retries: int) -> None:
        if retries < 0:
            raise ValueError("api_retries must not be negative")
        self.invoker.max_retries = retries

    # --- Session ---

    def set_session_credentials(
        self, email_id: str, password: str, firm_id: str = "", cancel_token: Optional[CancelToken] = None,
    ) -> SessionKey:
        """Stores session credentials and authenticates with them right away."""
        credentials = SessionCredentials(email_id=email_id, password=password, firm_id=firm_id)
        return self.session.ensure_session_key(credentials, cancel_token=cancel_token)

    def _load_config(self, app_id: AppId) -> ConfigDocument:
        session_key = self.session.session_key
        try:
            return self.api.fetch_config(app_id, self.credentials, session_key)
        except AuthenticationError:
            if session_key:
                # The caller decides whether to re-authenticate and retry
                self.session.mark_expired()
            raise

    # --- Configuration ---

    def get_config_data(self, app_id: str, cancel_token: Optional[CancelToken] = None) -> ConfigDocument:
        """Cached configuration of one application, fetched on first use.

        When session credentials are configured, a session key is obtained
        before the first fetch and sent along with it.
        """
        if app_id not in self.config_cache and self.session.credentials is not None and not self.session.is_valid:
            self.session.ensure_session_key(cancel_token=cancel_token)
        return self.config_cache.get(app_id, cancel_token=cancel_token)

    def get_all_config_data(self) -> Dict[str, ConfigDocument]:
        return self.config_cache.get_all()

    def replace_config_data(self, documents: Mapping[str, ConfigDocument]) -> None:
        self.config_cache.replace_all(documents)

    # --- Attributes ---

    def get_attr_details_from_label(self, label: LabelPath, record: RecordInput, app_id: str) -> ResolvedAttribute:
        """Attribute id and current record value for a label."""
        config = self.get_config_data(app_id)
        return self.attributes.resolve_by_label(label, config, as_object_data(record))

    def get_attr_settings_from_label(self, label: LabelPath, app_id: str) -> ResolvedAttribute:
        config = self.get_config_data(app_id)
        return self.attributes.get_settings_descriptor(label, config)

    def create_new_attr_obj_from_label_and_value(self, label: LabelPath, value: Any, app_id: str) -> AttributeValue:
        config = self.get_config_data(app_id)
        return self.attributes.build_attribute_value(label, value, config)

    def set_associated_field_values(
        self, tag_name: str, new_value: str, record: RecordInput, app_id: str, address_type: Optional[str] = None,
    ) -> ResolvedAttribute:
        """Updates a field and its dependent fields on `record` in place.

        A raw payload mapping is rewritten with the updated record; an
        immutable mapping raises TypeError.
        """
        config = self.get_config_data(app_id)
        if isinstance(record, ObjectData):
            return self.attributes.set_associated_field_values(tag_name, new_value, record, config, address_type)
        if not isinstance(record, MutableMapping):
            raise TypeError(f"Record must be ObjectData or a mutable mapping, not {type(record).__name__}")

        staged = ObjectData.from_payload(record)
        result = self.attributes.set_associated_field_values(tag_name, new_value, staged, config, address_type)
        if result.found:
            record.clear()
            record.update(staged.to_payload())
        return result

    @staticmethod
    def get_address_value_from_type_and_field(address_type: str, field_name: str, record: RecordInput) -> Optional[str]:
        return AttributeResolver.get_address_value(address_type, field_name, as_object_data(record))

    # --- Table sections ---

    def get_table_section_rows_from_section_label(
        self, section_label: str, record: RecordInput, app_id: str
    ) -> Optional[List[TableSectionRow]]:
        config = self.get_config_data(app_id)
        return self.tables.get_section_rows_by_label(section_label, as_object_data(record), config)

    @staticmethod
    def get_table_section_rows_from_section_id(section_id: str, record: RecordInput) -> Optional[List[TableSectionRow]]:
        return TableSectionResolver.get_section_rows(section_id, as_object_data(record))

    @staticmethod
    def get_table_row_col_index_from_attribute_id(attribute_id: str, row: TableSectionRow) -> Optional[int]:
        return TableSectionResolver.get_column_index(attribute_id, row)

    def get_table_row_attr_value_from_label(self, label: LabelPath, row: TableSectionRow, app_id: str) -> Optional[str]:
        config = self.get_config_data(app_id)
        return self.tables.get_cell_value_by_label(label, row, config)
