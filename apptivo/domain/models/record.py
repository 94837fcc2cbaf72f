"""Typed view of one Apptivo record payload.

Record data arrives as JSON where custom field values live in a flat
`customAttributes` list. Entries typed `table` carry the rows of a table
section instead of a scalar value. Addresses live in their own list.
Everything else is kept as standard top-level fields.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .common import AttributeId

TABLE_ATTRIBUTE_TYPE = "table"


@dataclass
class AttributeValue:
    """A custom attribute value in the shape the API expects for writes."""
    attribute_id: AttributeId
    value: Any
    type_hint: Optional[str] = None
    tag_name: Optional[str] = None
    value_id: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "AttributeValue":
        value_id = raw.get("customAttributeValueId")
        return cls(
            attribute_id=AttributeId(str(raw["customAttributeId"])),
            value=raw.get("customAttributeValue"),
            type_hint=raw.get("customAttributeType"),
            tag_name=raw.get("customAttributeTagName"),
            value_id=str(value_id) if value_id is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "customAttributeId": self.attribute_id,
            "customAttributeValue": self.value,
        }
        if self.type_hint:
            payload["customAttributeType"] = self.type_hint
        if self.tag_name:
            payload["customAttributeTagName"] = self.tag_name
        if self.value_id is not None:
            payload["customAttributeValueId"] = self.value_id
        return payload


@dataclass(frozen=True)
class TableCell:
    attribute_id: AttributeId
    value: Any = None


@dataclass(frozen=True)
class TableSectionRow:
    """One row of a table section; cells keep the order the API returned."""
    cells: Tuple[TableCell, ...]
    row_id: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "TableSectionRow":
        cells = tuple(
            TableCell(attribute_id=AttributeId(str(cell["customAttributeId"])), value=cell.get("customAttributeValue"))
            for cell in raw.get("customAttributes") or []
            if cell.get("customAttributeId") is not None
        )
        row_id = raw.get("id", raw.get("rowId"))
        return cls(cells=cells, row_id=str(row_id) if row_id is not None else None)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "customAttributes": [
                {"customAttributeId": cell.attribute_id, "customAttributeValue": cell.value} for cell in self.cells
            ]
        }
        if self.row_id is not None:
            payload["id"] = self.row_id
        return payload


@dataclass
class Address:
    address_type: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Optional[Any]:
        return self.fields.get(name)


@dataclass
class ObjectData:
    """Mutable record view; only `set_associated_field_values` writes to it."""
    custom_attributes: List[AttributeValue] = field(default_factory=list)
    table_sections: Dict[str, List[TableSectionRow]] = field(default_factory=dict)
    addresses: List[Address] = field(default_factory=list)
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ObjectData":
        data = cls()
        for raw in payload.get("customAttributes") or []:
            if raw.get("customAttributeId") is None:
                continue
            if str(raw.get("customAttributeType", "")).lower() == TABLE_ATTRIBUTE_TYPE:
                section_id = str(raw["customAttributeId"])
                data.table_sections[section_id] = [TableSectionRow.from_payload(row) for row in raw.get("rows") or []]
            else:
                data.custom_attributes.append(AttributeValue.from_payload(raw))
        for raw in payload.get("addresses") or []:
            data.addresses.append(Address(address_type=str(raw.get("addressType", "")), fields=dict(raw)))
        data.fields = {k: v for k, v in payload.items() if k not in ("customAttributes", "addresses")}
        return data

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        custom = [attr.to_payload() for attr in self.custom_attributes]
        for section_id, rows in self.table_sections.items():
            custom.append({
                "customAttributeId": section_id,
                "customAttributeType": TABLE_ATTRIBUTE_TYPE,
                "rows": [row.to_payload() for row in rows],
            })
        payload["customAttributes"] = custom
        payload["addresses"] = [dict(address.fields, addressType=address.address_type) for address in self.addresses]
        return payload

    def attribute(self, attribute_id: str) -> Optional[AttributeValue]:
        for attr in self.custom_attributes:
            if attr.attribute_id == attribute_id:
                return attr
        return None

    def put_attribute(self, value: AttributeValue) -> None:
        """Replaces the attribute with the same id, or appends it."""
        for index, attr in enumerate(self.custom_attributes):
            if attr.attribute_id == value.attribute_id:
                self.custom_attributes[index] = value
                return
        self.custom_attributes.append(value)

    def address(self, address_type: str) -> Optional[Address]:
        for address in self.addresses:
            if address.address_type == address_type:
                return address
        return None
