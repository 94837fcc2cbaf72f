"""Domain models describing a per-account application configuration.

Apptivo returns the layout of every application (contacts, opportunities,
custom apps ...) as a JSON document. It is parsed once into a tree of
descriptors and indexed by label so that resolution never rescans the raw
payload.

Sections are a tagged union: a `SectionDescriptor` holds ordinary fields, a
`TableSectionDescriptor` holds the columns of a repeating-row sub-structure.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .common import AppId, AttributeId, SectionId

TABLE_SECTION_TYPES = ("table", "tablesection")
SELECT_TYPE_HINTS = ("select", "radio", "multiselect", "check")


@dataclass(frozen=True)
class OptionDescriptor:
    """One selectable value of a select-style field."""
    option_id: str
    value: str


@dataclass(frozen=True)
class FieldDescriptor:
    """A field of an ordinary section."""
    label: str
    attribute_id: AttributeId
    type_hint: str = "input"
    tag_name: Optional[str] = None
    attribute_type: str = "Custom"  # 'Custom' or 'Standard'
    section_id: Optional[SectionId] = None
    options: Tuple[OptionDescriptor, ...] = ()

    kind = "field"

    @property
    def is_select(self) -> bool:
        return self.type_hint.lower() in SELECT_TYPE_HINTS

    def option_for(self, value: str) -> Optional[OptionDescriptor]:
        for option in self.options:
            if option.value == value:
                return option
        return None


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column of a table section."""
    label: str
    attribute_id: AttributeId
    column_index: int
    type_hint: str = "input"

    kind = "column"


@dataclass(frozen=True)
class SectionDescriptor:
    section_id: SectionId
    label: str
    fields: Tuple[FieldDescriptor, ...] = ()

    kind = "section"


@dataclass(frozen=True)
class TableSectionDescriptor:
    """A repeating-row section. Its attribute id keys the rows in record data."""
    attribute_id: AttributeId
    label: str
    columns: Tuple[ColumnDescriptor, ...] = ()

    kind = "table"


AnySection = Union[SectionDescriptor, TableSectionDescriptor]
AnyDescriptor = Union[FieldDescriptor, ColumnDescriptor, SectionDescriptor, TableSectionDescriptor]


def _label_text(raw_label: Any) -> str:
    """Apptivo labels are either plain strings or {'modifiedLabel': ..., 'originalLabel': ...}."""
    if isinstance(raw_label, Mapping):
        return str(raw_label.get("modifiedLabel") or raw_label.get("originalLabel") or "")
    if raw_label is None:
        return ""
    return str(raw_label)


def _parse_options(attribute: Mapping[str, Any]) -> Tuple[OptionDescriptor, ...]:
    raw_options = attribute.get("optionValueList") or attribute.get("values") or []
    options = []
    for raw in raw_options:
        if isinstance(raw, Mapping):
            value = raw.get("optionObject", raw.get("value"))
            if value is None:
                continue
            options.append(OptionDescriptor(option_id=str(raw.get("optionId", raw.get("id", ""))), value=str(value)))
        else:
            options.append(OptionDescriptor(option_id=str(raw), value=str(raw)))
    return tuple(options)


class ConfigDocument:
    """Parsed configuration of one application for one business account.

    Attribute ids are unique within a document. Labels are not: every lookup
    returns the first match in document order.
    """

    def __init__(
        self,
        app_id: AppId,
        sections: Tuple[AnySection, ...],
        default_country: Optional[Dict[str, str]] = None,
        raw: Optional[Mapping[str, Any]] = None,
    ):
        self.app_id = app_id
        self.sections = tuple(sections)
        self.default_country = default_country
        self.raw = raw if raw is not None else {}
        self._build_index()

    @classmethod
    def from_payload(cls, app_id: str, payload: Mapping[str, Any]) -> "ConfigDocument":
        """Parses a `getConfigData` response body."""
        if not isinstance(payload, Mapping):
            raise ValueError(f"Config payload for '{app_id}' must be an object, got {type(payload).__name__}")

        web_layout = payload.get("webLayout") or {}
        raw_sections = web_layout.get("sections") or payload.get("sections") or []

        sections: List[AnySection] = []
        for raw_section in raw_sections:
            section_id = str(raw_section.get("id") or raw_section.get("sectionId") or "")
            label = _label_text(raw_section.get("label"))
            attributes = [a for a in raw_section.get("attributes") or [] if a.get("attributeId")]
            section_type = str(raw_section.get("sectionType") or "").lower()

            if section_type in TABLE_SECTION_TYPES:
                columns = tuple(
                    ColumnDescriptor(
                        label=_label_text(attr.get("label")),
                        attribute_id=AttributeId(str(attr["attributeId"])),
                        column_index=int(attr.get("columnIndex", index)),
                        type_hint=str(attr.get("attributeType") or "input"),
                    )
                    for index, attr in enumerate(attributes)
                )
                table_id = raw_section.get("attributeId") or section_id
                sections.append(TableSectionDescriptor(
                    attribute_id=AttributeId(str(table_id)), label=label, columns=columns,
                ))
            else:
                fields = tuple(
                    FieldDescriptor(
                        label=_label_text(attr.get("label")),
                        attribute_id=AttributeId(str(attr["attributeId"])),
                        type_hint=str(attr.get("attributeType") or "input"),
                        tag_name=attr.get("tagName"),
                        attribute_type=str(attr.get("type") or "Custom"),
                        section_id=SectionId(section_id),
                        options=_parse_options(attr),
                    )
                    for attr in attributes
                )
                sections.append(SectionDescriptor(section_id=SectionId(section_id), label=label, fields=fields))

        default_country = None
        raw_country = payload.get("defaultCountry")
        if isinstance(raw_country, Mapping) and raw_country.get("countryName"):
            default_country = {
                "country": str(raw_country["countryName"]),
                "countryId": str(raw_country.get("countryId", "")),
                "countryCode": str(raw_country.get("countryCode", "")),
            }

        return cls(AppId(str(app_id)), tuple(sections), default_country=default_country, raw=payload)

    def _build_index(self) -> None:
        self._by_attribute_id: Dict[str, AnyDescriptor] = {}
        self._sections_by_label: Dict[str, AnySection] = {}
        self._tables_by_label: Dict[str, TableSectionDescriptor] = {}
        self._fields_by_label: Dict[str, FieldDescriptor] = {}
        self._fields_by_tag: Dict[str, FieldDescriptor] = {}
        self._columns_by_label: Dict[str, ColumnDescriptor] = {}
        # section label -> member label -> descriptor
        self._members: Dict[str, Dict[str, Union[FieldDescriptor, ColumnDescriptor]]] = {}

        for section in self.sections:
            if section.kind == "table":
                self._register(section.attribute_id, section)
                self._tables_by_label.setdefault(section.label, section)
                members = section.columns
            else:
                members = section.fields
            self._sections_by_label.setdefault(section.label, section)
            section_members = self._members.setdefault(section.label, {})

            for member in members:
                self._register(member.attribute_id, member)
                section_members.setdefault(member.label, member)
                if member.kind == "column":
                    self._columns_by_label.setdefault(member.label, member)
                else:
                    self._fields_by_label.setdefault(member.label, member)
                    if member.tag_name:
                        self._fields_by_tag.setdefault(member.tag_name, member)

    def _register(self, attribute_id: str, descriptor: AnyDescriptor) -> None:
        if attribute_id in self._by_attribute_id:
            raise ValueError(f"Duplicate attribute id '{attribute_id}' in config for '{self.app_id}'")
        self._by_attribute_id[attribute_id] = descriptor

    # --- Lookups ---

    def find_field(self, label: str) -> Optional[FieldDescriptor]:
        return self._fields_by_label.get(label)

    def find_field_by_tag(self, tag_name: str) -> Optional[FieldDescriptor]:
        return self._fields_by_tag.get(tag_name)

    def find_column(self, label: str) -> Optional[ColumnDescriptor]:
        return self._columns_by_label.get(label)

    def find_in_section(self, section_label: str, label: str) -> Optional[Union[FieldDescriptor, ColumnDescriptor]]:
        return self._members.get(section_label, {}).get(label)

    def find_section(self, label: str) -> Optional[AnySection]:
        return self._sections_by_label.get(label)

    def find_table_section(self, label: str) -> Optional[TableSectionDescriptor]:
        return self._tables_by_label.get(label)

    def descriptor(self, attribute_id: str) -> Optional[AnyDescriptor]:
        return self._by_attribute_id.get(attribute_id)

    def fields(self) -> Iterator[FieldDescriptor]:
        for section in self.sections:
            if section.kind == "section":
                yield from section.fields

    def table_sections(self) -> Iterator[TableSectionDescriptor]:
        for section in self.sections:
            if section.kind == "table":
                yield section

    def __len__(self) -> int:
        return len(self._by_attribute_id)

    def __repr__(self) -> str:
        return f"ConfigDocument(app_id={self.app_id!r}, sections={len(self.sections)}, attributes={len(self)})"
