"""Resolves human-readable labels into Apptivo attribute identifiers.

All lookups are pure reads over an already parsed ConfigDocument, so a
single resolver can be shared across threads. Labels match case-sensitively
and the first match in document order wins.

Optional lookups (`resolve_by_label`) report absence through
`ResolvedAttribute.found`. Lookups whose result is structurally required
downstream (section ids, write targets) raise AttributeNotFoundError.
"""

import copy
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from apptivo.domain.exceptions import AttributeNotFoundError
from apptivo.domain.models.common import AttributeId, LabelPath, normalize_label_path
from apptivo.domain.models.config import ColumnDescriptor, ConfigDocument, FieldDescriptor
from apptivo.domain.models.record import Address, AttributeValue, ObjectData
from apptivo.domain.models.resolution import ResolvedAttribute

DEFAULT_ADDRESS_TYPE = "Billing Address"
ADDRESS_TAGS = ("addressLine1", "addressLine2", "city", "county", "state", "zipCode", "country")


class AssociationError(Exception):
    """Raised while staging associated changes; nothing has been written yet."""


# A rule mutates a staged copy of the record after the primary change
AssociationRule = Callable[[str, Address, ConfigDocument], None]


def _state_implies_country(new_value: str, address: Address, config: ConfigDocument) -> None:
    if address.get("country") or not config.default_country:
        return
    address.fields.update(config.default_country)


def _country_clears_state(new_value: str, address: Address, config: ConfigDocument) -> None:
    address.fields.pop("state", None)
    address.fields.pop("stateCode", None)
    address.fields.pop("countryId", None)
    address.fields.pop("countryCode", None)


DEFAULT_ADDRESS_RULES: Dict[str, AssociationRule] = {
    "state": _state_implies_country,
    "country": _country_clears_state,
}


class AttributeResolver:
    """Label -> attribute resolution against a ConfigDocument."""

    def __init__(self, address_rules: Optional[Mapping[str, AssociationRule]] = None):
        self.address_rules = dict(DEFAULT_ADDRESS_RULES if address_rules is None else address_rules)

    # --- Lookups ---

    def _lookup(self, label: LabelPath, config: ConfigDocument) -> Optional[Union[FieldDescriptor, ColumnDescriptor]]:
        path = normalize_label_path(label)
        if len(path) == 1:
            return config.find_field(path[0])
        return config.find_in_section(path[0], path[1])

    def resolve_by_label(
        self, label: LabelPath, config: ConfigDocument, object_data: Optional[ObjectData] = None
    ) -> ResolvedAttribute:
        """Resolves a field label, or a [section, field] path.

        When `object_data` is given, the record's current value is returned
        as well. A missing label yields `found=False`, never an exception.
        """
        descriptor = self._lookup(label, config)
        if descriptor is None:
            return ResolvedAttribute.missing(f"No field labelled {label!r} in config for '{config.app_id}'")

        value = None
        diagnostic = None
        if object_data is not None:
            if descriptor.kind == "column":
                diagnostic = "Table column values are read per row"
            else:
                value = self._record_value(descriptor, object_data)
                if value is None:
                    diagnostic = "Field is empty on this record"
        return ResolvedAttribute(
            attribute_id=descriptor.attribute_id, value=value, found=True, diagnostic=diagnostic, descriptor=descriptor,
        )

    def get_settings_descriptor(self, label: LabelPath, config: ConfigDocument) -> ResolvedAttribute:
        """Returns the config descriptor behind a label without reading any record."""
        return self.resolve_by_label(label, config)

    def resolve_column(self, label: LabelPath, config: ConfigDocument) -> Optional[ColumnDescriptor]:
        """Resolves a table column label, or a [table section, column] path."""
        path = normalize_label_path(label)
        if len(path) == 1:
            return config.find_column(path[0])
        member = config.find_in_section(path[0], path[1])
        if member is not None and member.kind == "column":
            return member
        return None

    def resolve_section_attribute_id(self, section_label: str, config: ConfigDocument) -> AttributeId:
        """Attribute id of a table section.

        Raises:
            AttributeNotFoundError: No table section carries that label.
        """
        section = config.find_table_section(section_label)
        if section is None:
            raise AttributeNotFoundError(section_label, config.app_id, reason="is not a table section")
        return section.attribute_id

    @staticmethod
    def _record_value(descriptor: FieldDescriptor, object_data: ObjectData) -> Any:
        attr = object_data.attribute(descriptor.attribute_id)
        if attr is not None:
            return attr.value
        if descriptor.tag_name:
            return object_data.fields.get(descriptor.tag_name)
        return None

    # --- Writes ---

    def build_attribute_value(self, label: LabelPath, raw_value: Any, config: ConfigDocument) -> AttributeValue:
        """Builds the `{attributeId, value}` object used to write a field.

        Raises:
            AttributeNotFoundError: The label does not resolve to a field.
        """
        descriptor = self._lookup(label, config)
        if descriptor is None:
            raise AttributeNotFoundError(label, config.app_id)

        value_id = None
        if descriptor.kind == "field" and descriptor.is_select:
            values = raw_value if isinstance(raw_value, (list, tuple)) else [raw_value]
            option_ids = [option.option_id for option in map(descriptor.option_for, map(str, values)) if option]
            if option_ids:
                value_id = ",".join(option_ids)
        return AttributeValue(
            attribute_id=descriptor.attribute_id,
            value=raw_value,
            type_hint=descriptor.type_hint,
            tag_name=getattr(descriptor, "tag_name", None),
            value_id=value_id,
        )

    def set_associated_field_values(
        self,
        tag_name: str,
        new_value: str,
        target: ObjectData,
        config: ConfigDocument,
        address_type: Optional[str] = None,
    ) -> ResolvedAttribute:
        """Sets a field and every field that must change with it.

        Address tags (`state`, `city` ...) update the record's address and
        run the address association rules; select fields update their option
        id in lockstep. Changes are staged on a copy and committed together,
        so on failure `target` is left exactly as it was.
        """
        staged = copy.deepcopy(target)
        try:
            if tag_name in ADDRESS_TAGS:
                result = self._stage_address_change(tag_name, new_value, staged, config, address_type)
            else:
                result = self._stage_field_change(tag_name, new_value, staged, config)
        except AssociationError as e:
            return ResolvedAttribute.missing(str(e))

        target.custom_attributes[:] = staged.custom_attributes
        target.addresses[:] = staged.addresses
        target.fields.clear()
        target.fields.update(staged.fields)
        return result

    def _stage_address_change(
        self, tag_name: str, new_value: str, staged: ObjectData, config: ConfigDocument, address_type: Optional[str],
    ) -> ResolvedAttribute:
        wanted_type = address_type or (staged.addresses[0].address_type if staged.addresses else DEFAULT_ADDRESS_TYPE)
        address = staged.address(wanted_type)
        if address is None:
            address = Address(address_type=wanted_type)
            staged.addresses.append(address)

        changed: List[str] = [tag_name]
        before = dict(address.fields)
        rule = self.address_rules.get(tag_name)
        if rule is not None and address.get(tag_name) != new_value:
            rule(new_value, address, config)
        address.fields[tag_name] = new_value
        changed.extend(key for key in address.fields if address.fields.get(key) != before.get(key) and key != tag_name)
        changed.extend(key for key in before if key not in address.fields)

        return ResolvedAttribute(
            attribute_id=AttributeId(f"{wanted_type}.{tag_name}"),
            value=new_value,
            found=True,
            diagnostic=f"Updated {', '.join(changed)} on {wanted_type}",
        )

    def _stage_field_change(
        self, tag_name: str, new_value: str, staged: ObjectData, config: ConfigDocument,
    ) -> ResolvedAttribute:
        descriptor = config.find_field_by_tag(tag_name) or config.find_field(tag_name)
        if descriptor is None:
            raise AssociationError(f"No field with tag or label {tag_name!r} in config for '{config.app_id}'")

        option = None
        if descriptor.is_select and descriptor.options:
            option = descriptor.option_for(new_value)
            if option is None:
                raise AssociationError(f"{new_value!r} is not an option of {descriptor.label!r}")

        changed = [descriptor.label]
        if descriptor.attribute_type.lower() == "standard" and descriptor.tag_name:
            staged.fields[descriptor.tag_name] = new_value
            # Standard select fields come in name/id pairs: statusName + statusId
            if option is not None and descriptor.tag_name.endswith("Name"):
                id_field = descriptor.tag_name[: -len("Name")] + "Id"
                staged.fields[id_field] = option.option_id
                changed.append(id_field)
        else:
            staged.put_attribute(AttributeValue(
                attribute_id=descriptor.attribute_id,
                value=new_value,
                type_hint=descriptor.type_hint,
                tag_name=descriptor.tag_name,
                value_id=option.option_id if option is not None else None,
            ))
            if option is not None:
                changed.append("option id")

        return ResolvedAttribute(
            attribute_id=descriptor.attribute_id,
            value=new_value,
            found=True,
            diagnostic=f"Updated {', '.join(changed)}",
            descriptor=descriptor,
        )

    # --- Addresses ---

    @staticmethod
    def get_address_value(address_type: str, field_name: str, object_data: ObjectData) -> Optional[str]:
        """Value of one field of the record's address of the given type, if any."""
        address = object_data.address(address_type)
        if address is None:
            return None
        value = address.get(field_name)
        return str(value) if value is not None else None
